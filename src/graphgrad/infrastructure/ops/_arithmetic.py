"""
Elementwise arithmetic: ADD, SUB, MUL, DIV, POW, NEG, ABS.

Binary operations follow NumPy broadcasting. The output shape is checked when
the expression is built, so incompatible operands fail before any node is
allocated. VJP rules return contributions in the broadcast shape; the
backward node sums them back to each operand's own shape.

Python scalars are lifted to untracked 0-d leaves with the dtype of the
tensor operand.
"""

from __future__ import annotations

from numbers import Number
from typing import TYPE_CHECKING, Union

import numpy as np

from ...domain._op_kind import OpKind
from ..graph import as_tensor, trace
from ..nodes import BackwardNode, GraphNode, broadcast_shapes, op_rule_manager

if TYPE_CHECKING:
    from ..tensor._tensor import Tensor

Operand = Union["Tensor", Number, np.ndarray]


def binary(kind: OpKind, a: Operand, b: Operand) -> "Tensor":
    """
    Build an elementwise binary node after lifting scalars.

    Raises
    ------
    ShapeMismatchError
        If the operand shapes do not broadcast.
    """
    from ..tensor._tensor import Tensor

    like = a if isinstance(a, Tensor) else b
    dtype = like.dtype if isinstance(like, Tensor) else None
    a = as_tensor(a, dtype=dtype)
    b = as_tensor(b, dtype=dtype)
    shape = broadcast_shapes(a.shape, b.shape, op=str(kind))
    return trace(kind, (a, b), shape)


def power(base: "Tensor", exponent: Number) -> "Tensor":
    """
    Raise `base` to a constant scalar power.

    Raises
    ------
    TypeError
        If `exponent` is not a Python or NumPy real number.
    """
    if isinstance(exponent, (bool, np.bool_)) or not isinstance(exponent, Number):
        raise TypeError(
            f"exponent must be a real scalar, got {type(exponent).__name__}"
        )
    return trace(OpKind.POW, (base,), base.shape, {"exponent": float(exponent)})


class TensorMixinArithmetic:
    """
    Elementwise operators for tensor handles.

    Every operator returns a new lazy handle; values are produced by
    `forward()`.
    """

    def __add__(self, other: Operand) -> "Tensor":
        return binary(OpKind.ADD, self, other)

    def __radd__(self, other: Operand) -> "Tensor":
        return binary(OpKind.ADD, other, self)

    def __sub__(self, other: Operand) -> "Tensor":
        return binary(OpKind.SUB, self, other)

    def __rsub__(self, other: Operand) -> "Tensor":
        return binary(OpKind.SUB, other, self)

    def __mul__(self, other: Operand) -> "Tensor":
        return binary(OpKind.MUL, self, other)

    def __rmul__(self, other: Operand) -> "Tensor":
        return binary(OpKind.MUL, other, self)

    def __truediv__(self, other: Operand) -> "Tensor":
        return binary(OpKind.DIV, self, other)

    def __rtruediv__(self, other: Operand) -> "Tensor":
        return binary(OpKind.DIV, other, self)

    def __pow__(self, exponent: Number) -> "Tensor":
        return power(self, exponent)

    def __neg__(self) -> "Tensor":
        return trace(OpKind.NEG, (self,), self.shape)

    def __abs__(self) -> "Tensor":
        return trace(OpKind.ABS, (self,), self.shape)

    def abs(self) -> "Tensor":
        return trace(OpKind.ABS, (self,), self.shape)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.ADD)
def _add_forward(node: GraphNode, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a + b


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.ADD)
def _add_vjp(node: BackwardNode, grad: np.ndarray, a: np.ndarray, b: np.ndarray):
    return grad, grad


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.SUB)
def _sub_forward(node: GraphNode, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a - b


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.SUB)
def _sub_vjp(node: BackwardNode, grad: np.ndarray, a: np.ndarray, b: np.ndarray):
    return grad, (-grad if node.needs_grad(1) else None)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.MUL)
def _mul_forward(node: GraphNode, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a * b


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.MUL)
def _mul_vjp(node: BackwardNode, grad: np.ndarray, a: np.ndarray, b: np.ndarray):
    ga = grad * b if node.needs_grad(0) else None
    gb = grad * a if node.needs_grad(1) else None
    return ga, gb


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.DIV)
def _div_forward(node: GraphNode, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a / b


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.DIV)
def _div_vjp(node: BackwardNode, grad: np.ndarray, a: np.ndarray, b: np.ndarray):
    # d(a/b)/db = -a / b^2
    ga = grad / b if node.needs_grad(0) else None
    gb = -grad * a / (b * b) if node.needs_grad(1) else None
    return ga, gb


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.POW)
def _pow_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.power(x, node.meta["exponent"])


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.POW)
def _pow_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    p = node.meta["exponent"]
    if p == 0:
        # x ** 0 is constant; 0 * 0 ** -1 would be nan at x == 0
        return (np.zeros_like(grad),)
    return (grad * p * np.power(x, p - 1.0),)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.NEG)
def _neg_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return -x


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.NEG)
def _neg_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    return (-grad,)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.ABS)
def _abs_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.abs(x)


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.ABS)
def _abs_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    # subgradient 0 at x == 0
    return (grad * np.sign(x),)
