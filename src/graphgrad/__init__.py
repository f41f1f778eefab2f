"""
graphgrad: a define-by-run reverse-mode automatic differentiation engine
over NumPy arrays.

Expressions on tensors build a graph lazily; ``forward()`` evaluates it and
``backward()`` accumulates gradients into every tracked leaf.

    >>> import graphgrad as gg
    >>> w = gg.Parameter([1.0, 2.0])
    >>> loss = (w * w).sum()
    >>> loss.backward()
    >>> w.grad
    array([2., 4.], dtype=float32)
"""

import logging

from .domain import (
    BorrowConflictError,
    CyclicGraphError,
    GraphError,
    OpKind,
    ShapeMismatchError,
    UncomputedDependencyError,
    UntrackedBackwardError,
)
from .infrastructure import *  # noqa: F401,F403
from .infrastructure import __all__ as _infrastructure_all
from .infrastructure._config import get_config as _get_config

_logger = logging.getLogger(__name__)
_logger.addHandler(logging.NullHandler())
_logger.setLevel(_get_config().log_level)

__version__ = "0.1.0"

__all__ = [
    "GraphError",
    "ShapeMismatchError",
    "UntrackedBackwardError",
    "UncomputedDependencyError",
    "BorrowConflictError",
    "CyclicGraphError",
    "OpKind",
    *_infrastructure_all,
]
