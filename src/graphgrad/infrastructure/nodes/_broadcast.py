"""
Broadcasting helpers shared by forward shape inference and backward
reduction.

`sum_to_shape` is the inverse of broadcasting:
- Forward: a smaller operand is broadcast to a larger shape for elementwise
  ops.
- Backward: the gradient contribution is sum-reduced over the broadcast axes
  to recover the operand's original shape.

Every backward node reduces every contribution through `sum_to_shape`
using the operand shape cached at construction time, so the reverse pass
mirrors the forward broadcast exactly. The reduction is always a sum.
"""

from __future__ import annotations

import numpy as np

from ...domain._errors import ShapeMismatchError


def broadcast_shapes(*shapes: tuple[int, ...], op: str = "broadcast") -> tuple[int, ...]:
    """
    Compute the NumPy broadcast of `shapes`.

    Parameters
    ----------
    *shapes : tuple[int, ...]
        Operand shapes.
    op : str, optional
        Operation name used in the error message.

    Returns
    -------
    tuple[int, ...]
        The broadcast result shape.

    Raises
    ------
    ShapeMismatchError
        If the shapes cannot be broadcast together.
    """
    try:
        return tuple(int(d) for d in np.broadcast_shapes(*shapes))
    except ValueError as exc:
        raise ShapeMismatchError(op, *shapes, detail="not broadcastable") from exc


def _sum_to_shape_reduce_axes(
    src_shape: tuple[int, ...], target_shape: tuple[int, ...]
) -> tuple[tuple[int, ...], int]:
    """
    Compute the reduction axes and rank padding for `sum_to_shape`.

    `target_shape` is left-padded with ones to the rank of `src_shape`; an
    axis is reduced when the padded target dimension is 1 while the source
    dimension is not.

    Returns
    -------
    reduce_axes:
        Axes of the source to sum over with `keepdims=True`.
    pad:
        Number of leading dimensions added to the target.

    Raises
    ------
    ShapeMismatchError
        If `target_shape` could not have been broadcast to `src_shape`.
    """
    src = tuple(int(d) for d in src_shape)
    tgt = tuple(int(d) for d in target_shape)

    if len(tgt) > len(src):
        raise ShapeMismatchError(
            "sum_to_shape", src, tgt, detail="target rank exceeds source rank"
        )

    pad = len(src) - len(tgt)
    padded_tgt = (1,) * pad + tgt

    for i, (sd, td) in enumerate(zip(src, padded_tgt)):
        if td not in (1, sd):
            raise ShapeMismatchError(
                "sum_to_shape", src, tgt, detail=f"dim mismatch at axis {i}"
            )

    reduce_axes = tuple(
        i for i, (sd, td) in enumerate(zip(src, padded_tgt)) if td == 1 and sd != 1
    )
    return reduce_axes, pad


def sum_to_shape(array: np.ndarray, target_shape: tuple[int, ...]) -> np.ndarray:
    """
    Sum-reduce `array` to `target_shape`.

    Parameters
    ----------
    array : np.ndarray
        A gradient contribution in the broadcast (result) shape.
    target_shape : tuple[int, ...]
        The operand's pre-broadcast shape.

    Returns
    -------
    np.ndarray
        An array of exactly `target_shape`. When no reduction is needed the
        input array is returned unchanged.
    """
    target_shape = tuple(int(d) for d in target_shape)
    if array.shape == target_shape:
        return array

    reduce_axes, pad = _sum_to_shape_reduce_axes(array.shape, target_shape)

    out = array
    if reduce_axes:
        out = np.sum(out, axis=reduce_axes, keepdims=True)
    if pad:
        out = out.reshape(out.shape[pad:])

    return out.reshape(target_shape)
