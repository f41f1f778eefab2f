"""
Learning-rate schedulers.

A scheduler is attached to an optimizer and stepped once per epoch, after
the optimizer update. Every `step()`:

1. remembers the learning rate in effect (`get_last_lr()`),
2. advances `current_epoch` by one,
3. computes the new learning rate and writes it to ``optimizer.lr``.

Schedulers read the optimizer's learning rate at step time, so several of
them can be chained on one optimizer; each one transforms the rate left by
the previous one. `LambdaLR` is the exception: it always rescales the
initial rate.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from ...domain._optimizers import IOptimizer

logger = logging.getLogger(__name__)


class _LRScheduler:
    """
    Shared bookkeeping of all schedulers.

    Parameters
    ----------
    optimizer : IOptimizer
        Optimizer whose ``lr`` attribute is rewritten.
    """

    def __init__(self, optimizer: IOptimizer) -> None:
        if not hasattr(optimizer, "lr"):
            raise TypeError(
                f"{type(optimizer).__name__} has no 'lr' attribute to schedule"
            )
        self.optimizer = optimizer
        self._last_lr: float = float(optimizer.lr)
        self._current_lr: float = float(optimizer.lr)
        self._epoch: int = 0

    def _next_lr(self, lr: float, epoch: int) -> float:
        raise NotImplementedError

    def step(self) -> None:
        """Advance one epoch and update the optimizer learning rate."""
        self._last_lr = float(self.optimizer.lr)
        self._epoch += 1
        self._current_lr = float(self._next_lr(self._last_lr, self._epoch))
        self.optimizer.lr = self._current_lr
        logger.debug(
            "%s: epoch %d lr %g -> %g",
            type(self).__name__,
            self._epoch,
            self._last_lr,
            self._current_lr,
        )

    def get_last_lr(self) -> float:
        return self._last_lr

    def get_current_lr(self) -> float:
        return self._current_lr

    @property
    def current_epoch(self) -> int:
        return self._epoch

    @current_epoch.setter
    def current_epoch(self, epoch: int) -> None:
        epoch = int(epoch)
        if epoch < 0:
            raise ValueError(f"epoch must be >= 0, got {epoch}")
        self._epoch = epoch

    def print_lr(self) -> None:
        """Print the learning rate set by the most recent step."""
        print(
            f"epoch {self._epoch}: learning rate adjusted to [{self._current_lr}]"
        )


def _check_gamma(gamma: float) -> float:
    gamma = float(gamma)
    if gamma <= 0.0:
        raise ValueError(f"gamma must be > 0, got {gamma}")
    return gamma


class LambdaLR(_LRScheduler):
    """
    Set the learning rate to ``initial_lr * lr_fn(epoch)``.
    """

    def __init__(self, optimizer: IOptimizer, lr_fn: Callable[[int], float]) -> None:
        super().__init__(optimizer)
        self.lr_fn = lr_fn
        self.initial_lr = float(optimizer.lr)

    def _next_lr(self, lr: float, epoch: int) -> float:
        return self.initial_lr * self.lr_fn(epoch)


class MultiplicativeLR(_LRScheduler):
    """
    Multiply the learning rate by ``lr_fn(epoch)`` at every step.
    """

    def __init__(self, optimizer: IOptimizer, lr_fn: Callable[[int], float]) -> None:
        super().__init__(optimizer)
        self.lr_fn = lr_fn

    def _next_lr(self, lr: float, epoch: int) -> float:
        return lr * self.lr_fn(epoch)


class StepLR(_LRScheduler):
    """
    Multiply the learning rate by `gamma` every `step_size` epochs.
    """

    def __init__(self, optimizer: IOptimizer, step_size: int, gamma: float) -> None:
        super().__init__(optimizer)
        step_size = int(step_size)
        if step_size <= 0:
            raise ValueError(f"step_size must be > 0, got {step_size}")
        self.step_size = step_size
        self.gamma = _check_gamma(gamma)

    def _next_lr(self, lr: float, epoch: int) -> float:
        return lr * self.gamma if epoch % self.step_size == 0 else lr


class MultiStepLR(_LRScheduler):
    """
    Multiply the learning rate by `gamma` when the epoch reaches a milestone.
    """

    def __init__(
        self, optimizer: IOptimizer, milestones: Iterable[int], gamma: float
    ) -> None:
        super().__init__(optimizer)
        self.milestones = sorted(int(m) for m in milestones)
        if any(m <= 0 for m in self.milestones):
            raise ValueError(f"milestones must be positive, got {self.milestones}")
        self.gamma = _check_gamma(gamma)

    def _next_lr(self, lr: float, epoch: int) -> float:
        return lr * self.gamma if epoch in self.milestones else lr


class ExponentialLR(_LRScheduler):
    """
    Multiply the learning rate by `gamma` at every step.
    """

    def __init__(self, optimizer: IOptimizer, gamma: float) -> None:
        super().__init__(optimizer)
        self.gamma = _check_gamma(gamma)

    def _next_lr(self, lr: float, epoch: int) -> float:
        return lr * self.gamma
