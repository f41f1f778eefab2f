"""
Trainable parameter interface definitions.

This module defines the domain-level interface for trainable leaves used by
optimization algorithms. Optimizers only need read access to a parameter's
values, read/write access to its accumulated gradient, and a way to write
updated values back.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class IParameter(Protocol):
    """
    Domain-level interface for trainable parameters.

    Notes
    -----
    - Parameters are differentiable leaves: they own a gradient accumulator
      but no backward node, so they are sinks of backward propagation.
    - `assign` is the only supported way to mutate parameter values; it
      invalidates every graph node computed from the previous values.
    """

    @property
    def requires_grad(self) -> bool:
        """True if gradients are accumulated for this parameter."""
        ...

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of the parameter."""
        ...

    @property
    def data(self) -> Any:
        """Read-only view of the parameter values."""
        ...

    @property
    def grad(self) -> Optional[Any]:
        """
        Read-only view of the accumulated gradient, or None if the parameter
        is frozen.
        """
        ...

    def zero_grad(self) -> None:
        """Reset the accumulated gradient to zero."""
        ...

    def assign(self, values: Any) -> None:
        """Overwrite the parameter values in place."""
        ...
