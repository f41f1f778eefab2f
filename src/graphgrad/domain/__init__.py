"""
Backend-agnostic contracts of graphgrad: protocols, operation kinds and
errors. Nothing in this package depends on the array substrate.
"""

from ._errors import (
    GraphError,
    ShapeMismatchError,
    UntrackedBackwardError,
    UncomputedDependencyError,
    BorrowConflictError,
    CyclicGraphError,
)
from ._op_kind import OpKind
from ._tensor import ITensor
from ._parameter import IParameter
from ._optimizers import IOptimizer, ILRScheduler

__all__ = [
    "GraphError",
    "ShapeMismatchError",
    "UntrackedBackwardError",
    "UncomputedDependencyError",
    "BorrowConflictError",
    "CyclicGraphError",
    "OpKind",
    "ITensor",
    "IParameter",
    "IOptimizer",
    "ILRScheduler",
]
