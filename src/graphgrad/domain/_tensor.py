"""
Tensor interface definitions.

This module defines the domain-level interface for tensor handles using
structural typing. The interface captures the properties required for a
handle to participate in graph construction, forward evaluation and
backward propagation, without depending on the array substrate.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Union, runtime_checkable

Number = Union[int, float]


@runtime_checkable
class ITensor(Protocol):
    """
    Tensor handle interface.

    An `ITensor` is the user-visible value of the engine: either a leaf
    (parameter or plain input) or the lazily-evaluated result of an
    operation.

    Notes
    -----
    - `requires_grad` is a per-handle capability fixed when the handle is
      built; it is never read from ambient global state.
    - `forward` and `backward` are the two entry points into the scheduler.
    """

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of the tensor."""
        ...

    @property
    def requires_grad(self) -> bool:
        """True if the handle carries a gradient accumulator."""
        ...

    @property
    def is_leaf(self) -> bool:
        """True if the handle has no producing operation."""
        ...

    @property
    def grad(self) -> Optional[Any]:
        """
        Return the accumulated gradient, or None for untracked handles.
        """
        ...

    def zero_grad(self) -> None:
        """Reset the accumulated gradient to zero."""
        ...

    def forward(self) -> None:
        """Evaluate every uncomputed node this handle depends on."""
        ...

    def backward(self, seed: Optional[Any] = None) -> None:
        """Propagate gradients from this handle to every tracked ancestor."""
        ...

    def to_numpy(self) -> Any:
        """Return a copy of the current values."""
        ...
