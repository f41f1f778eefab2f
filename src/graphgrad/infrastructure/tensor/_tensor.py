"""
Concrete tensor handle (NumPy backend).

A `Tensor` is a thin, user-facing view over the node layer:

- `_data`: the shared `DataNode` holding the values,
- `_grad`: the `GradientAccumulator` collecting the gradient, or None when
  the handle is untracked.

Leaves own both buffers directly. Computed handles are produced by the
operation builders (see `graphgrad.infrastructure.ops`) and start out
uncomputed: their values appear after `forward()` or `backward()`.

Design notes
------------
- Gradient tracking is a per-handle capability, fixed at construction and
  propagated to results (a result is tracked iff any operand is tracked).
- Forward and backward schedules are computed once per handle and cached;
  the graph behind a handle never changes after it is built.
- Values and gradients are exposed as read-only NumPy views. Leaves are
  mutated through `copy_from_numpy()` (or `Parameter.assign()`), which
  invalidates every dependent graph node.
"""

from __future__ import annotations

from numbers import Number
from typing import List, Optional

import numpy as np

from ...domain._errors import GraphError, ShapeMismatchError, UntrackedBackwardError
from ...domain._tensor import ITensor
from .._config import default_dtype
from ..graph import backward_order, forward_order, run_backward, run_forward
from ..nodes import BackwardNode, DataNode, GradientAccumulator, GraphNode
from ..ops import (
    TensorMixinArithmetic,
    TensorMixinLinalg,
    TensorMixinNN,
    TensorMixinReduction,
    TensorMixinShape,
    TensorMixinUnary,
)


class Tensor(
    TensorMixinArithmetic,
    TensorMixinUnary,
    TensorMixinReduction,
    TensorMixinLinalg,
    TensorMixinShape,
    TensorMixinNN,
    ITensor,
):
    """
    Gradient-aware n-dimensional array handle.

    Parameters
    ----------
    data : array-like
        Initial values. The handle stores its own copy.
    requires_grad : bool, optional
        Whether the leaf accumulates gradients. Defaults to False.
    dtype : numpy dtype-like, optional
        Element dtype. Floating ndarrays keep their dtype when omitted;
        anything else is converted to the library default dtype.

    Notes
    -----
    Use `Parameter` for trainable leaves; it defaults `requires_grad` to True
    and adds `assign()` for optimizers.
    """

    # make NumPy defer to the reflected operators (``np.float32(2) * t``)
    __array_ufunc__ = None

    def __init__(self, data, requires_grad: bool = False, dtype=None) -> None:
        if isinstance(data, Tensor):
            data = data.to_numpy()
        arr = np.array(data, dtype=dtype, copy=True)
        if not np.issubdtype(arr.dtype, np.number):
            raise TypeError(f"cannot build a tensor from dtype {arr.dtype}")
        if dtype is None and not (
            isinstance(data, np.ndarray) and np.issubdtype(arr.dtype, np.floating)
        ):
            arr = arr.astype(default_dtype())

        if requires_grad and not np.issubdtype(arr.dtype, np.floating):
            raise TypeError("only floating tensors can require gradients")

        self._data: DataNode = DataNode(arr)
        self._grad: Optional[GradientAccumulator] = (
            GradientAccumulator(arr.shape, arr.dtype) if requires_grad else None
        )
        self._forward_cache: Optional[List[GraphNode]] = None
        self._backward_cache: Optional[List[BackwardNode]] = None

    @classmethod
    def _from_nodes(
        cls, data: DataNode, grad: Optional[GradientAccumulator]
    ) -> "Tensor":
        """
        Wrap existing nodes in a new handle, bypassing `__init__`.
        """
        obj = cls.__new__(cls)
        obj._data = data
        obj._grad = grad
        obj._forward_cache = None
        obj._backward_cache = None
        return obj

    # ------------------------------------------------------------------
    # metadata
    # ------------------------------------------------------------------
    @property
    def shape(self) -> tuple[int, ...]:
        return self._data.shape

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def ndim(self) -> int:
        return len(self._data.shape)

    @property
    def size(self) -> int:
        return int(np.prod(self._data.shape, dtype=np.int64))

    @property
    def requires_grad(self) -> bool:
        return self._grad is not None

    @property
    def is_leaf(self) -> bool:
        return self._data.is_leaf

    def __len__(self) -> int:
        if not self.shape:
            raise TypeError("len() of a 0-d tensor")
        return self.shape[0]

    def __repr__(self) -> str:
        producer = self._data.producer
        if producer is None:
            origin = "leaf"
        else:
            state = "computed" if producer.computed else "pending"
            origin = f"{producer.kind}, {state}"
        return (
            f"Tensor(shape={self.shape}, dtype={self.dtype}, "
            f"requires_grad={self.requires_grad}, {origin})"
        )

    # ------------------------------------------------------------------
    # values
    # ------------------------------------------------------------------
    def _check_readable(self) -> None:
        producer = self._data.producer
        if producer is None:
            return
        if not producer.computed:
            raise GraphError(
                f"value of this {producer.kind} result has not been computed; "
                "call forward() first"
            )
        if any(node.is_stale() for node in self._forward_order()):
            raise GraphError(
                f"value of this {producer.kind} result is out of date because an "
                "input changed; call forward() first"
            )

    @property
    def data(self) -> np.ndarray:
        """
        Read-only view of the current values.

        Raises
        ------
        GraphError
            If the handle is a computed result that has not been evaluated,
            or if any value it depends on changed since it was last
            evaluated.
        """
        self._check_readable()
        return self._data.view()

    @property
    def grad(self) -> Optional[np.ndarray]:
        """
        Read-only view of the accumulated gradient.

        Returns None for untracked handles and for intermediate handles
        whose gradient buffer was released by `no_grad()`.
        """
        if self._grad is None or self._grad.released:
            return None
        return self._grad.view()

    def to_numpy(self) -> np.ndarray:
        """Return a writable copy of the current values."""
        return np.array(self.data, copy=True)

    def item(self) -> float:
        """
        Return the single value of a one-element tensor as a Python scalar.

        Raises
        ------
        ValueError
            If the tensor has more than one element.
        """
        if self.size != 1:
            raise ValueError(
                f"item() requires a single-element tensor, got shape {self.shape}"
            )
        return self.data.item()

    def copy_from_numpy(self, array) -> None:
        """
        Overwrite the values of a leaf in place.

        Every graph node computed from the previous values becomes stale and
        is re-evaluated by the next `forward()`.

        Raises
        ------
        GraphError
            If this handle is a computed result.
        ShapeMismatchError
            If `array` does not have this tensor's shape.
        """
        if not self.is_leaf:
            raise GraphError("copy_from_numpy() is only allowed on leaf tensors")
        arr = np.asarray(array, dtype=self.dtype)
        if arr.shape != self.shape:
            raise ShapeMismatchError("copy_from_numpy", self.shape, arr.shape)
        with self._data.borrow_mut() as buf:
            buf[...] = arr

    # ------------------------------------------------------------------
    # graph entry points
    # ------------------------------------------------------------------
    def _forward_order(self) -> List[GraphNode]:
        if self._forward_cache is None:
            self._forward_cache = forward_order(self._data)
        return self._forward_cache

    def _backward_order(self) -> List[BackwardNode]:
        if self._backward_cache is None:
            self._backward_cache = backward_order(self._grad)
        return self._backward_cache

    def forward(self) -> "Tensor":
        """
        Evaluate every graph node this handle depends on that is not up to
        date.

        Re-running `forward()` without modifying any leaf evaluates nothing.

        Returns
        -------
        Tensor
            This handle, for chaining (``y.forward().item()``).
        """
        run_forward(self._forward_order())
        return self

    def _seed_array(self, seed) -> np.ndarray:
        if seed is None:
            return np.ones(self.shape, dtype=self.dtype)
        if isinstance(seed, (bool, np.bool_)):
            raise TypeError("seed must be numeric")
        if isinstance(seed, Number):
            return np.full(self.shape, seed, dtype=self.dtype)
        if isinstance(seed, Tensor):
            seed = seed.data
        arr = np.asarray(seed, dtype=self.dtype)
        if arr.shape != self.shape:
            raise ShapeMismatchError(
                "backward", self.shape, arr.shape, detail="seed shape"
            )
        return arr

    def backward(self, seed=None) -> None:
        """
        Propagate gradients from this handle to every tracked ancestor.

        Forward evaluation runs first if needed. Gradients of tracked leaves
        accumulate across calls; intermediate gradients describe the most
        recent pass.

        Parameters
        ----------
        seed : None, number, array-like or Tensor, optional
            Gradient of the final objective w.r.t. this handle. None means
            ones of this handle's shape; a number fills that shape; arrays
            must have exactly this shape.

        Raises
        ------
        UntrackedBackwardError
            If the handle does not require gradients.
        ShapeMismatchError
            If the seed shape differs from this handle's shape.
        """
        if self._grad is None:
            raise UntrackedBackwardError(self.shape)
        seed_arr = self._seed_array(seed)
        self.forward()
        run_backward(self._grad, self._backward_order(), seed_arr)

    def reset(self) -> None:
        """Mark every graph node behind this handle as not computed."""
        for node in self._forward_order():
            node.reset()

    def zero_grad(self) -> None:
        """Reset this handle's accumulated gradient to zero."""
        if self._grad is not None:
            self._grad.zero_()

    def detach(self) -> "Tensor":
        """
        Return an untracked handle sharing this handle's values.

        The new handle evaluates lazily through the same graph nodes but never
        propagates gradients.
        """
        return Tensor._from_nodes(self._data, None)

    def no_grad(self) -> None:
        """
        Release the intermediate gradient buffers behind this handle.

        Leaf gradients are kept. `backward()` raises until `with_grad()` is
        called.
        """
        if self._grad is None:
            return
        for node in self._backward_order():
            node.gradient.release()

    def with_grad(self) -> None:
        """Re-allocate the buffers released by `no_grad()` (zero-filled)."""
        if self._grad is None:
            return
        for node in self._backward_order():
            node.gradient.allocate()
