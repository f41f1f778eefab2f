"""
Shared, window-guarded array buffers.

A `SharedBuffer` is the storage primitive behind both data nodes and
gradient accumulators. Many graph nodes hold a reference to the same buffer;
access goes through explicit windows:

- `borrow()` opens a shared window and yields a read-only view. Any number
  of shared windows may be open at once.
- `borrow_mut()` opens an exclusive window and yields the writable array.
  It requires that no other window is open.

The scheduler's visitation order guarantees that windows never overlap in a
correct pass (a node's output is written exactly once, before any consumer
reads it; an accumulator is read only after every consumer has written it).
The runtime bookkeeping below turns a violation of that protocol into a
`BorrowConflictError` instead of silently corrupted values.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

import numpy as np

from ...domain._errors import BorrowConflictError


class SharedBuffer:
    """
    Reference-shared NumPy buffer with shared/exclusive access windows.

    Parameters
    ----------
    array : np.ndarray
        Backing storage. The buffer takes ownership; callers should not keep
        writable aliases.

    Notes
    -----
    Window bookkeeping is protected by a lock, so two overlapping windows
    always produce a `BorrowConflictError` rather than a torn read. Callers
    that need writers to queue instead (see `GradientAccumulator`) hold
    their own lock across the whole window.
    """

    __slots__ = ("_array", "_readers", "_writing", "_lock", "__weakref__")

    def __init__(self, array: np.ndarray) -> None:
        self._array: np.ndarray = array
        self._readers: int = 0
        self._writing: bool = False
        self._lock = threading.Lock()

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self._array.shape)

    @property
    def dtype(self) -> np.dtype:
        return self._array.dtype

    def _owner(self) -> str:
        return type(self).__name__

    def _open_shared(self) -> None:
        with self._lock:
            if self._writing:
                raise BorrowConflictError(self._owner(), "shared", "exclusive")
            self._readers += 1

    def _close_shared(self) -> None:
        with self._lock:
            self._readers -= 1

    def _open_exclusive(self) -> None:
        with self._lock:
            if self._writing:
                raise BorrowConflictError(self._owner(), "exclusive", "exclusive")
            if self._readers:
                raise BorrowConflictError(self._owner(), "exclusive", "shared")
            self._writing = True

    def _close_exclusive(self) -> None:
        with self._lock:
            self._writing = False

    @contextmanager
    def borrow(self) -> Iterator[np.ndarray]:
        """
        Open a shared window.

        Yields
        ------
        np.ndarray
            A read-only view of the buffer.

        Raises
        ------
        BorrowConflictError
            If an exclusive window is open.
        """
        self._open_shared()
        try:
            yield self.view()
        finally:
            self._close_shared()

    @contextmanager
    def borrow_mut(self) -> Iterator[np.ndarray]:
        """
        Open an exclusive window.

        Yields
        ------
        np.ndarray
            The writable backing array.

        Raises
        ------
        BorrowConflictError
            If any other window is open.
        """
        self._open_exclusive()
        try:
            yield self._array
        finally:
            self._close_exclusive()
            self._on_write()

    def _on_write(self) -> None:
        """Hook invoked after every exclusive window closes."""

    def view(self) -> np.ndarray:
        """
        Return a read-only view of the buffer outside of any window.

        The view aliases the storage: later writes through `borrow_mut`
        are visible through it.
        """
        v = self._array.view()
        v.flags.writeable = False
        return v

    @property
    def is_borrowed(self) -> bool:
        """True while any window is open."""
        return self._writing or self._readers > 0
