"""
Operation rules and tensor-method mixins.

Importing this package registers the forward and vector-Jacobian-product
rule of every `OpKind`. The registry is checked once all rule modules are
loaded, so a kind without both rules fails at import time instead of in the
middle of a pass.
"""

from ...domain._op_kind import OpKind
from ..nodes import BackwardNode, GraphNode, op_rule_manager

from ._arithmetic import TensorMixinArithmetic, binary, power
from ._unary import TensorMixinUnary
from ._reduction import TensorMixinReduction, normalize_axes
from ._linalg import TensorMixinLinalg, matmul
from ._shape import TensorMixinShape, concatenate, stack
from ._nn import TensorMixinNN
from ._conv2d import conv2d


def _check_rule_coverage() -> None:
    for cls, method, role in (
        (GraphNode, GraphNode.compute, "forward"),
        (BackwardNode, BackwardNode.vjp, "vjp"),
    ):
        missing = op_rule_manager.missing_states(cls, method, OpKind)
        if missing:
            names = ", ".join(sorted(str(k) for k in missing))
            raise ImportError(f"missing {role} rules for: {names}")


_check_rule_coverage()

__all__ = [
    "TensorMixinArithmetic",
    "TensorMixinUnary",
    "TensorMixinReduction",
    "TensorMixinLinalg",
    "TensorMixinShape",
    "TensorMixinNN",
    "binary",
    "power",
    "matmul",
    "concatenate",
    "stack",
    "conv2d",
    "normalize_axes",
]
