"""
Linear algebra: MATMUL and TRANSPOSE.

MATMUL follows `numpy.matmul` semantics: 1-D operands are promoted to a row
(left) or column (right) vector and the promoted axis is dropped from the
result; leading batch dimensions broadcast. The VJP rule works on the
promoted operands and lets the backward node sum over broadcast batch axes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np

from ...domain._errors import ShapeMismatchError
from ...domain._op_kind import OpKind
from ..graph import as_tensor, trace
from ..nodes import BackwardNode, GraphNode, broadcast_shapes, op_rule_manager
from ._shape import _normalize_axis

if TYPE_CHECKING:
    from ..tensor._tensor import Tensor


def matmul_shape(a: tuple[int, ...], b: tuple[int, ...]) -> tuple[int, ...]:
    """
    Infer the `numpy.matmul` result shape.

    Raises
    ------
    ShapeMismatchError
        If an operand is 0-d, the contracted dimensions differ, or the batch
        dimensions do not broadcast.
    """
    if len(a) == 0 or len(b) == 0:
        raise ShapeMismatchError("matmul", a, b, detail="operands must be at least 1-D")

    a2 = (1,) + a if len(a) == 1 else a
    b2 = b + (1,) if len(b) == 1 else b
    if a2[-1] != b2[-2]:
        raise ShapeMismatchError(
            "matmul", a, b, detail=f"contracted dims {a2[-1]} != {b2[-2]}"
        )

    batch = broadcast_shapes(a2[:-2], b2[:-2], op="matmul")
    out = batch + (a2[-2], b2[-1])
    if len(a) == 1:
        out = out[:-2] + out[-1:]
    if len(b) == 1:
        out = out[:-1]
    return out


def matmul(a, b) -> "Tensor":
    from ..tensor._tensor import Tensor

    like = a if isinstance(a, Tensor) else b
    a = as_tensor(a, dtype=like.dtype)
    b = as_tensor(b, dtype=like.dtype)
    return trace(OpKind.MATMUL, (a, b), matmul_shape(a.shape, b.shape))


class TensorMixinLinalg:
    """
    Matrix product and axis permutation for tensor handles.
    """

    def matmul(self, other) -> "Tensor":
        return matmul(self, other)

    def __matmul__(self, other) -> "Tensor":
        return matmul(self, other)

    def __rmatmul__(self, other) -> "Tensor":
        return matmul(other, self)

    def transpose(self, axes: Optional[Sequence[int]] = None) -> "Tensor":
        """
        Permute axes; reverses them when `axes` is None.

        Raises
        ------
        ValueError
            If `axes` is not a permutation of ``range(ndim)`` or names an
            axis outside it.
        TypeError
            If an axis is not an integer.
        """
        ndim = self.ndim
        if axes is None:
            perm = tuple(reversed(range(ndim)))
        else:
            perm = tuple(_normalize_axis(a, ndim, "transpose") for a in axes)
            if sorted(perm) != list(range(ndim)):
                raise ValueError(
                    f"axes {tuple(axes)!r} is not a permutation of {ndim} axes"
                )
        shape = tuple(self.shape[p] for p in perm)
        return trace(OpKind.TRANSPOSE, (self,), shape, {"axes": perm})

    @property
    def T(self) -> "Tensor":
        return self.transpose()


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.MATMUL)
def _matmul_forward(node: GraphNode, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.matmul(a, b)


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.MATMUL)
def _matmul_vjp(node: BackwardNode, grad: np.ndarray, a: np.ndarray, b: np.ndarray):
    a_vec, b_vec = a.ndim == 1, b.ndim == 1
    a2 = a[np.newaxis, :] if a_vec else a
    b2 = b[:, np.newaxis] if b_vec else b

    g2 = grad
    if a_vec and b_vec:
        g2 = grad.reshape(1, 1)
    elif a_vec:
        g2 = np.expand_dims(grad, -2)
    elif b_vec:
        g2 = np.expand_dims(grad, -1)

    ga = gb = None
    if node.needs_grad(0):
        ga = np.matmul(g2, np.swapaxes(b2, -1, -2))
        if a_vec:
            ga = ga[..., 0, :]
    if node.needs_grad(1):
        gb = np.matmul(np.swapaxes(a2, -1, -2), g2)
        if b_vec:
            gb = gb[..., 0]
    return ga, gb


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.TRANSPOSE)
def _transpose_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.transpose(x, node.meta["axes"])


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.TRANSPOSE)
def _transpose_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    return (np.transpose(grad, np.argsort(node.meta["axes"])),)
