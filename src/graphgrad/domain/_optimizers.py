"""
Domain-level optimizer and learning-rate scheduler contracts for graphgrad.

This module defines the `IOptimizer` and `ILRScheduler` protocols, which
specify the minimal interface required by update rules (e.g., SGD, Adam) and
by the schedulers that adjust their learning rate between epochs.

Notes
-----
- Domain contracts are backend-agnostic and must not depend on NumPy or
  infrastructure implementations.
- Optimizers are external collaborators of the differentiation engine: they
  only read leaf values and accumulated gradients, and write leaf values.
"""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable


@runtime_checkable
class IOptimizer(Protocol):
    """
    Optimizer interface contract.

    Required members
    ----------------
    - `step()` applies one optimization update to managed parameters.
    - `zero_grad()` resets gradients for managed parameters.
    - `lr` is the current learning rate; schedulers rewrite it.
    """

    lr: float

    def step(self) -> None:
        """
        Apply one optimization step.
        """
        ...

    def zero_grad(self) -> None:
        """
        Reset gradients for all managed parameters.
        """
        ...

    @property
    def params(self) -> Iterable[object]:
        """
        Return the parameters managed by this optimizer.
        """
        ...


@runtime_checkable
class ILRScheduler(Protocol):
    """
    Learning-rate scheduler contract.

    Schedulers are stepped once per epoch, after the optimizer update.
    Several schedulers may be chained on one optimizer: each one is applied
    to the learning rate produced by the scheduler stepped before it.
    """

    def step(self) -> None:
        """Update the learning rate of the attached optimizer."""
        ...

    def get_last_lr(self) -> float:
        """Learning rate before the most recent `step()`."""
        ...

    def get_current_lr(self) -> float:
        """Learning rate after the most recent `step()`."""
        ...

    @property
    def current_epoch(self) -> int:
        """Number of `step()` calls performed so far."""
        ...
