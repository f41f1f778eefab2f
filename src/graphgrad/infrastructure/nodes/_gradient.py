"""
Gradient accumulators: shared storage collecting a tensor's total gradient.

An accumulator mirrors the shape of its data node. During one backward pass
it receives additive contributions from every consumer of the value; once
all consumers have been visited it holds the total gradient.

Leaf accumulators (parameters) keep accumulating across passes until they
are zeroed explicitly. Intermediate accumulators are zeroed by the
scheduler at the start of every pass that reaches them.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Optional

import numpy as np

from ...domain._errors import GraphError, ShapeMismatchError
from ._buffer import SharedBuffer

if TYPE_CHECKING:
    from ._backward_node import BackwardNode


class GradientAccumulator(SharedBuffer):
    """
    Zero-initialized, additively-mutated gradient buffer.

    Parameters
    ----------
    shape : tuple[int, ...]
        Shape of the associated data node.
    dtype : numpy dtype-like
        Element dtype of the associated data node.

    Attributes
    ----------
    producer : Optional[BackwardNode]
        The backward node that reads this accumulator to push gradients to
        its operands, or None for leaf accumulators.
    """

    __slots__ = ("_shape", "_dtype", "_producer", "_released", "_write_lock")

    def __init__(self, shape: tuple[int, ...], dtype) -> None:
        self._shape = tuple(int(d) for d in shape)
        self._dtype = np.dtype(dtype)
        super().__init__(np.zeros(self._shape, dtype=self._dtype))
        self._producer: Optional["BackwardNode"] = None
        self._released: bool = False
        # held across each whole read-modify-write so writers queue
        self._write_lock = threading.Lock()

    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def producer(self) -> Optional["BackwardNode"]:
        return self._producer

    @property
    def is_leaf(self) -> bool:
        return self._producer is None

    @property
    def released(self) -> bool:
        return self._released

    def attach_producer(self, node: "BackwardNode") -> None:
        if self._producer is not None:
            raise GraphError("gradient accumulator already has a backward node")
        self._producer = node

    def _check_live(self) -> None:
        if self._released:
            raise GraphError(
                "gradient buffer was released by no_grad(); call with_grad() first"
            )

    def _check_shape(self, array: np.ndarray, op: str) -> None:
        if tuple(array.shape) != self._shape:
            raise ShapeMismatchError(op, self._shape, tuple(array.shape))

    def accumulate(self, contribution: np.ndarray) -> None:
        """
        Add `contribution` into the buffer.

        Concurrent callers are serialized: each addition completes before
        the next one opens its write window.

        Raises
        ------
        ShapeMismatchError
            If the contribution does not have exactly the accumulator shape.
        """
        self._check_shape(contribution, "accumulate")
        with self._write_lock:
            self._check_live()
            with self.borrow_mut() as buf:
                buf += contribution

    def overwrite(self, seed: np.ndarray) -> None:
        """
        Replace the buffer contents with `seed`.
        """
        self._check_shape(seed, "seed")
        with self._write_lock:
            self._check_live()
            with self.borrow_mut() as buf:
                buf[...] = seed

    def zero_(self) -> None:
        """Reset every entry to zero."""
        with self._write_lock:
            if self._released:
                return
            with self.borrow_mut() as buf:
                buf.fill(0)

    def release(self) -> None:
        """
        Drop the backing storage.

        Only intermediate accumulators are released; a released accumulator
        rejects contributions until `allocate()` is called.
        """
        with self._write_lock:
            self._array = np.zeros((0,), dtype=self._dtype)
            self._released = True

    def allocate(self) -> None:
        """Restore a zero-filled buffer after `release()`."""
        with self._write_lock:
            if self._released:
                self._array = np.zeros(self._shape, dtype=self._dtype)
                self._released = False

    def view(self) -> np.ndarray:
        self._check_live()
        return super().view()

    def __repr__(self) -> str:
        origin = "leaf" if self._producer is None else str(self._producer.kind)
        return f"GradientAccumulator(shape={self._shape}, origin={origin})"
