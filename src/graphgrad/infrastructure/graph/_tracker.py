"""
Graph builder: threads new nodes together for every tensor expression.

Operation builders validate operands, infer the output shape and then call
`trace`, which allocates:

- a zero-filled `DataNode` for the result,
- a `GraphNode` recording the operation (always, so evaluation stays lazy),
- a `GradientAccumulator` and a `BackwardNode` only when at least one operand
  is tracked.

Nothing is computed here; values appear when `forward()` (or `backward()`)
is called on a handle that depends on the result.
"""

from __future__ import annotations

from numbers import Integral, Number
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence

import numpy as np

from ...domain._op_kind import OpKind
from .._config import default_dtype
from ..nodes import BackwardNode, DataNode, GradientAccumulator, GraphNode

if TYPE_CHECKING:
    from ..tensor._tensor import Tensor


_FLOATING_KINDS = frozenset(
    {
        OpKind.DIV,
        OpKind.POW,
        OpKind.EXP,
        OpKind.LOG,
        OpKind.SQRT,
        OpKind.LEAKY_RELU,
        OpKind.SIGMOID,
        OpKind.TANH,
        OpKind.SOFTPLUS,
        OpKind.MEAN,
        OpKind.SOFTMAX,
        OpKind.LOG_SOFTMAX,
    }
)


def trace(
    kind: OpKind,
    operands: Sequence["Tensor"],
    shape: tuple[int, ...],
    meta: Optional[Mapping[str, Any]] = None,
    dtype=None,
) -> "Tensor":
    """
    Record `kind` applied to `operands` and return the (uncomputed) result.

    Parameters
    ----------
    kind : OpKind
        Operation tag.
    operands : Sequence[Tensor]
        Operand handles, in the order the rules expect them.
    shape : tuple[int, ...]
        Output shape inferred by the builder.
    meta : Mapping[str, Any], optional
        Operation metadata shared by the forward and backward nodes.
    dtype : numpy dtype-like, optional
        Output dtype. Defaults to the NumPy result type of the operands.
        Kinds in `_FLOATING_KINDS` promote integer operands to the default
        floating dtype.

    Returns
    -------
    Tensor
        A new computed handle. It is tracked iff any operand is tracked.
    """
    from ..tensor._tensor import Tensor

    data_nodes = [t._data for t in operands]
    if dtype is None:
        dtype = np.result_type(*[d.dtype for d in data_nodes])
        if kind in _FLOATING_KINDS and not np.issubdtype(dtype, np.floating):
            dtype = default_dtype()

    out = DataNode.zeros(tuple(shape), dtype)
    GraphNode(kind, data_nodes, out, meta)

    gradient: Optional[GradientAccumulator] = None
    if any(t.requires_grad for t in operands):
        gradient = GradientAccumulator(out.shape, out.dtype)
        BackwardNode(
            kind,
            data_nodes,
            [t._grad for t in operands],
            out,
            gradient,
            meta,
        )

    return Tensor._from_nodes(out, gradient)


def as_tensor(value, dtype=None) -> "Tensor":
    """
    Lift `value` to a tensor handle.

    Tensors are returned unchanged. Python numbers and array-likes become
    untracked leaves; numbers use `dtype` (or the default dtype) so that
    ``x * 2`` keeps the dtype of ``x``.

    Raises
    ------
    TypeError
        If `value` cannot be converted to a numeric array.
    """
    from ..tensor._tensor import Tensor

    if isinstance(value, Tensor):
        return value
    if isinstance(value, (bool, np.bool_)):
        raise TypeError("boolean values cannot be used as tensor operands")
    if isinstance(value, Number):
        dt = np.dtype(dtype) if dtype is not None else default_dtype()
        if np.issubdtype(dt, np.integer) and not isinstance(value, Integral):
            dt = default_dtype()
        return Tensor(np.asarray(value, dtype=dt), dtype=dt)
    if isinstance(value, (np.ndarray, list, tuple)):
        arr = np.asarray(value)
        if not np.issubdtype(arr.dtype, np.number):
            raise TypeError(f"cannot build a tensor from dtype {arr.dtype}")
        return Tensor(arr, dtype=dtype)
    raise TypeError(f"unsupported operand type {type(value)!r}")
