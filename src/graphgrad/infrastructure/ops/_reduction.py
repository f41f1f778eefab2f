"""
Reductions: SUM, MEAN, MAX.

Reductions accept ``axis`` as None (all axes), an int, or a tuple of ints,
plus ``keepdims``. The metadata always stores the normalized axis tuple so
the VJP rules can re-insert reduced dimensions before broadcasting the
gradient back to the operand shape.

MAX routes the gradient to every maximal entry of a slice and splits it
evenly among ties.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence, Union

import numpy as np

from ...domain._op_kind import OpKind
from ..graph import trace
from ..nodes import BackwardNode, GraphNode, op_rule_manager

if TYPE_CHECKING:
    from ..tensor._tensor import Tensor

Axis = Optional[Union[int, Sequence[int]]]


def normalize_axes(axis: Axis, ndim: int) -> tuple[int, ...]:
    """
    Normalize `axis` into a sorted tuple of non-negative axes.

    Raises
    ------
    TypeError
        If `axis` is not None, an int, or a sequence of ints.
    ValueError
        If an axis is out of bounds or repeated.
    """
    if axis is None:
        return tuple(range(ndim))
    if isinstance(axis, (int, np.integer)) and not isinstance(axis, bool):
        axes = (int(axis),)
    elif isinstance(axis, (tuple, list)):
        axes = tuple(axis)
        if not all(
            isinstance(a, (int, np.integer)) and not isinstance(a, bool) for a in axes
        ):
            raise TypeError(f"axis entries must be ints, got {axis!r}")
    else:
        raise TypeError(f"axis must be None, int or tuple of ints, got {axis!r}")

    out = []
    for a in axes:
        a = int(a)
        if a < -ndim or a >= ndim:
            raise ValueError(f"axis {a} out of bounds for ndim {ndim}")
        out.append(a % ndim if ndim else a)
    if len(set(out)) != len(out):
        raise ValueError(f"repeated axis in {axis!r}")
    return tuple(sorted(out))


def reduced_shape(
    shape: tuple[int, ...], axes: tuple[int, ...], keepdims: bool
) -> tuple[int, ...]:
    if keepdims:
        return tuple(1 if i in axes else d for i, d in enumerate(shape))
    return tuple(d for i, d in enumerate(shape) if i not in axes)


def _expand(grad: np.ndarray, node: BackwardNode) -> np.ndarray:
    """Re-insert reduced axes so `grad` broadcasts against the operand."""
    if node.meta["keepdims"]:
        return grad
    shape = reduced_shape(node.operand_shapes[0], node.meta["axes"], True)
    return grad.reshape(shape)


def _reduce(kind: OpKind, x: "Tensor", axis: Axis, keepdims: bool) -> "Tensor":
    axes = normalize_axes(axis, x.ndim)
    shape = reduced_shape(x.shape, axes, bool(keepdims))
    return trace(kind, (x,), shape, {"axes": axes, "keepdims": bool(keepdims)})


class TensorMixinReduction:
    """
    Reduction methods for tensor handles.
    """

    def sum(self, axis: Axis = None, keepdims: bool = False) -> "Tensor":
        """
        Sum of elements over `axis` (all axes when None).

        Backward rule: the output gradient is broadcast back over the reduced
        axes.
        """
        return _reduce(OpKind.SUM, self, axis, keepdims)

    def mean(self, axis: Axis = None, keepdims: bool = False) -> "Tensor":
        """
        Arithmetic mean over `axis` (all axes when None).

        Backward rule: the output gradient is broadcast back and divided by
        the number of reduced elements.
        """
        return _reduce(OpKind.MEAN, self, axis, keepdims)

    def max(self, axis: Axis = None, keepdims: bool = False) -> "Tensor":
        """
        Maximum over `axis` (all axes when None).

        Backward rule: the gradient of each slice is shared evenly by every
        entry equal to the slice maximum.

        Raises
        ------
        ValueError
            If a reduced axis has length zero.
        """
        axes = normalize_axes(axis, self.ndim)
        if any(self.shape[a] == 0 for a in axes):
            raise ValueError("max() of an empty axis is undefined")
        return _reduce(OpKind.MAX, self, axis, keepdims)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.SUM)
def _sum_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.sum(x, axis=node.meta["axes"], keepdims=node.meta["keepdims"])


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.SUM)
def _sum_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    return (np.broadcast_to(_expand(grad, node), x.shape),)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.MEAN)
def _mean_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.mean(x, axis=node.meta["axes"], keepdims=node.meta["keepdims"])


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.MEAN)
def _mean_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    count = 1
    for a in node.meta["axes"]:
        count *= x.shape[a]
    return (np.broadcast_to(_expand(grad, node) / max(count, 1), x.shape),)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.MAX)
def _max_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.max(x, axis=node.meta["axes"], keepdims=node.meta["keepdims"])


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.MAX)
def _max_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    axes = node.meta["axes"]
    peak = np.max(x, axis=axes, keepdims=True)
    mask = (x == peak).astype(grad.dtype)
    ties = np.sum(mask, axis=axes, keepdims=True)
    return (mask * _expand(grad, node) / ties,)
