"""
Shape and indexing operations.

RESHAPE, UNSQUEEZE and SQUEEZE only change the view of the data; their VJP
reshapes the gradient back. BROADCAST_TO relies on the backward node's
sum-reduction to undo the broadcast. INDEX scatters the gradient with
`numpy.add.at`, so repeated integer indices accumulate. CONCATENATE and
STACK take any number of operands and split the gradient between them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Sequence, Union

import numpy as np

from ...domain._errors import ShapeMismatchError
from ...domain._op_kind import OpKind
from ..graph import as_tensor, trace
from ..nodes import BackwardNode, GraphNode, broadcast_shapes, op_rule_manager

if TYPE_CHECKING:
    from ..tensor._tensor import Tensor


def _normalize_axis(axis: int, ndim: int, op: str) -> int:
    if not isinstance(axis, (int, np.integer)) or isinstance(axis, bool):
        raise TypeError(f"{op}: axis must be an int, got {axis!r}")
    axis = int(axis)
    if axis < -ndim or axis >= ndim:
        raise ValueError(f"{op}: axis {axis} out of bounds for ndim {ndim}")
    return axis % ndim


def resolve_shape(shape: tuple[int, ...], new_shape: Sequence[int]) -> tuple[int, ...]:
    """
    Resolve a single ``-1`` entry of `new_shape` against the size of `shape`.

    Raises
    ------
    ShapeMismatchError
        If the sizes differ or the inferred dimension is not integral.
    """
    new_shape = tuple(int(d) for d in new_shape)
    size = int(np.prod(shape, dtype=np.int64))
    unknown = [i for i, d in enumerate(new_shape) if d == -1]
    if len(unknown) > 1 or any(d < -1 for d in new_shape):
        raise ShapeMismatchError("reshape", shape, new_shape, detail="invalid target")

    if unknown:
        known = int(np.prod([d for d in new_shape if d != -1], dtype=np.int64))
        if known == 0 or size % known:
            raise ShapeMismatchError(
                "reshape", shape, new_shape, detail="cannot infer -1 dimension"
            )
        i = unknown[0]
        new_shape = new_shape[:i] + (size // known,) + new_shape[i + 1 :]

    if int(np.prod(new_shape, dtype=np.int64)) != size:
        raise ShapeMismatchError("reshape", shape, new_shape, detail="size differs")
    return new_shape


def _normalize_index(index: Any) -> Any:
    """Replace tensor and list entries of an index by NumPy arrays."""
    from ..tensor._tensor import Tensor

    def conv(item):
        if isinstance(item, Tensor):
            return np.asarray(item.to_numpy()).astype(np.intp)
        if isinstance(item, list):
            return np.asarray(item)
        return item

    if isinstance(index, tuple):
        return tuple(conv(i) for i in index)
    return conv(index)


def concatenate(tensors: Sequence["Tensor"], axis: int = 0) -> "Tensor":
    """
    Join tensors along an existing axis.

    Raises
    ------
    ValueError
        If `tensors` is empty.
    ShapeMismatchError
        If ranks or non-concatenated dimensions differ.
    """
    tensors = [as_tensor(t) for t in tensors]
    if not tensors:
        raise ValueError("concatenate() requires a non-empty sequence")

    first = tensors[0].shape
    if len(first) == 0:
        raise ShapeMismatchError("concatenate", first, detail="0-d operands")
    axis = _normalize_axis(axis, len(first), "concatenate")

    for t in tensors[1:]:
        s = t.shape
        if len(s) != len(first) or any(
            a != b for i, (a, b) in enumerate(zip(s, first)) if i != axis
        ):
            raise ShapeMismatchError("concatenate", first, s)

    sizes = tuple(t.shape[axis] for t in tensors)
    shape = first[:axis] + (sum(sizes),) + first[axis + 1 :]
    return trace(OpKind.CONCATENATE, tensors, shape, {"axis": axis, "sizes": sizes})


def stack(tensors: Sequence["Tensor"], axis: int = 0) -> "Tensor":
    """
    Join same-shape tensors along a new axis.

    Raises
    ------
    ValueError
        If `tensors` is empty.
    ShapeMismatchError
        If the shapes differ.
    """
    tensors = [as_tensor(t) for t in tensors]
    if not tensors:
        raise ValueError("stack() requires a non-empty sequence")

    first = tensors[0].shape
    for t in tensors[1:]:
        if t.shape != first:
            raise ShapeMismatchError("stack", first, t.shape)

    axis = _normalize_axis(axis, len(first) + 1, "stack")
    shape = first[:axis] + (len(tensors),) + first[axis:]
    return trace(OpKind.STACK, tensors, shape, {"axis": axis})


class TensorMixinShape:
    """
    Shape manipulation and indexing for tensor handles.
    """

    def reshape(self, *shape: Union[int, Sequence[int]]) -> "Tensor":
        if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
            shape = tuple(shape[0])
        new_shape = resolve_shape(self.shape, shape)
        return trace(OpKind.RESHAPE, (self,), new_shape)

    def unsqueeze(self, axis: int) -> "Tensor":
        """Insert a size-1 dimension at `axis` (``-1`` appends)."""
        axis = _normalize_axis(axis, self.ndim + 1, "unsqueeze")
        shape = self.shape[:axis] + (1,) + self.shape[axis:]
        return trace(OpKind.UNSQUEEZE, (self,), shape, {"axis": axis})

    def squeeze(self, axis: Optional[int] = None) -> "Tensor":
        """
        Remove size-1 dimensions (all of them when `axis` is None).

        Raises
        ------
        ShapeMismatchError
            If the selected dimension is not of size 1.
        """
        if axis is None:
            shape = tuple(d for d in self.shape if d != 1)
        else:
            axis = _normalize_axis(axis, self.ndim, "squeeze")
            if self.shape[axis] != 1:
                raise ShapeMismatchError(
                    "squeeze", self.shape, detail=f"axis {axis} has size {self.shape[axis]}"
                )
            shape = self.shape[:axis] + self.shape[axis + 1 :]
        return trace(OpKind.SQUEEZE, (self,), shape, {"axis": axis})

    def broadcast_to(self, shape: Sequence[int]) -> "Tensor":
        """
        Broadcast to `shape` following NumPy rules.

        Raises
        ------
        ShapeMismatchError
            If this tensor cannot be broadcast to `shape`.
        """
        shape = tuple(int(d) for d in shape)
        if broadcast_shapes(self.shape, shape, op="broadcast_to") != shape:
            raise ShapeMismatchError("broadcast_to", self.shape, shape)
        return trace(OpKind.BROADCAST_TO, (self,), shape, {"shape": shape})

    def __getitem__(self, index: Any) -> "Tensor":
        """
        Basic and integer-array indexing.

        Backward rule: the gradient is scattered back with `numpy.add.at`.

        Raises
        ------
        IndexError
            If the index is out of bounds, as NumPy raises it.
        """
        index = _normalize_index(index)
        probe = np.broadcast_to(np.empty((), dtype=self.dtype), self.shape)
        shape = probe[index].shape
        return trace(OpKind.INDEX, (self,), shape, {"index": index})


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.RESHAPE)
def _reshape_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return x.reshape(node.output.shape)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.UNSQUEEZE)
def _unsqueeze_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.expand_dims(x, node.meta["axis"])


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.SQUEEZE)
def _squeeze_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return x.reshape(node.output.shape)


# RESHAPE, UNSQUEEZE and SQUEEZE share one backward rule.
@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.RESHAPE)
@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.UNSQUEEZE)
@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.SQUEEZE)
def _reshape_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    return (grad.reshape(x.shape),)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.BROADCAST_TO)
def _broadcast_to_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.broadcast_to(x, node.meta["shape"])


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.BROADCAST_TO)
def _broadcast_to_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    return (grad,)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.INDEX)
def _index_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return x[node.meta["index"]]


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.INDEX)
def _index_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    out = np.zeros(x.shape, dtype=grad.dtype)
    np.add.at(out, node.meta["index"], grad)
    return (out,)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.CONCATENATE)
def _concatenate_forward(node: GraphNode, *xs: np.ndarray) -> np.ndarray:
    return np.concatenate(xs, axis=node.meta["axis"])


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.CONCATENATE)
def _concatenate_vjp(node: BackwardNode, grad: np.ndarray, *xs: np.ndarray):
    offsets = np.cumsum(node.meta["sizes"])[:-1]
    parts = np.split(grad, offsets, axis=node.meta["axis"])
    return tuple(p if node.needs_grad(i) else None for i, p in enumerate(parts))


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.STACK)
def _stack_forward(node: GraphNode, *xs: np.ndarray) -> np.ndarray:
    return np.stack(xs, axis=node.meta["axis"])


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.STACK)
def _stack_vjp(node: BackwardNode, grad: np.ndarray, *xs: np.ndarray):
    axis = node.meta["axis"]
    return tuple(
        np.take(grad, i, axis=axis) if node.needs_grad(i) else None
        for i in range(len(xs))
    )
