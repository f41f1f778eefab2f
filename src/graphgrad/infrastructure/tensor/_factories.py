"""
Factory functions for leaf tensors.

All factories build leaves: they own their data node and, when
``requires_grad=True``, a gradient accumulator. Shapes may be given as an
int or a tuple of ints. When `dtype` is omitted the library default dtype is
used (see `graphgrad.infrastructure._config`).
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

from .._config import default_dtype
from ._tensor import Tensor

Shape = Union[int, Sequence[int]]


def _shape(shape: Shape) -> tuple[int, ...]:
    if isinstance(shape, (int, np.integer)):
        return (int(shape),)
    return tuple(int(d) for d in shape)


def _dtype(dtype) -> np.dtype:
    return np.dtype(dtype) if dtype is not None else default_dtype()


def tensor(data, requires_grad: bool = False, dtype=None) -> Tensor:
    """Build a leaf from array-like `data` (copied)."""
    return Tensor(data, requires_grad=requires_grad, dtype=dtype)


def from_numpy(array: np.ndarray, requires_grad: bool = False) -> Tensor:
    """
    Build a leaf from a NumPy array, keeping its dtype.

    Raises
    ------
    TypeError
        If `array` is not an ndarray.
    """
    if not isinstance(array, np.ndarray):
        raise TypeError(f"from_numpy() expects an ndarray, got {type(array)!r}")
    return Tensor(array, requires_grad=requires_grad, dtype=array.dtype)


def zeros(shape: Shape, requires_grad: bool = False, dtype=None) -> Tensor:
    dt = _dtype(dtype)
    return Tensor(np.zeros(_shape(shape), dtype=dt), requires_grad, dtype=dt)


def ones(shape: Shape, requires_grad: bool = False, dtype=None) -> Tensor:
    dt = _dtype(dtype)
    return Tensor(np.ones(_shape(shape), dtype=dt), requires_grad, dtype=dt)


def full(shape: Shape, value: float, requires_grad: bool = False, dtype=None) -> Tensor:
    dt = _dtype(dtype)
    return Tensor(np.full(_shape(shape), value, dtype=dt), requires_grad, dtype=dt)


def zeros_like(t: Tensor, requires_grad: bool = False) -> Tensor:
    return zeros(t.shape, requires_grad=requires_grad, dtype=t.dtype)


def ones_like(t: Tensor, requires_grad: bool = False) -> Tensor:
    return ones(t.shape, requires_grad=requires_grad, dtype=t.dtype)
