"""
Stochastic Gradient Descent (SGD) optimizer implementation.

The optimizer updates `Parameter` instances in place using their accumulated
gradients, optionally with classical momentum and coupled L2 weight decay.

Design notes
------------
- Optimizers read values from `p.data` and the accumulated gradient from
  `p.grad` (both read-only NumPy views) and write new values with
  `p.assign()`. They never touch graph or backward nodes.
- Parameters with ``grad is None`` (frozen) are skipped.
- Gradients are not cleared by `step()`; call `zero_grad()` before the next
  backward pass, since leaf gradients accumulate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Sequence

import numpy as np

from .._parameter import Parameter


@dataclass
class SGD:
    """
    Stochastic Gradient Descent (SGD) optimizer.

    Update rule
    -----------
    For each parameter ``p`` with gradient ``g``:

    - If ``weight_decay > 0`` (classical L2 regularization):
        ``g <- g + weight_decay * p``
    - If ``momentum > 0``:
        ``b <- momentum * b + g`` and ``g <- b``
    - Parameter update:
        ``p <- p - lr * g``

    Parameters
    ----------
    params : Sequence[Parameter]
        Parameters to be optimized.
    lr : float, optional
        Learning rate. Must be positive. Defaults to 1e-3.
    momentum : float, optional
        Momentum factor in [0, 1). Defaults to 0.0 (plain SGD).
    weight_decay : float, optional
        Classical L2 weight decay coefficient (coupled). Must be non-negative.
        Defaults to 0.0.
    """

    params: Sequence[Parameter]
    lr: float = 1e-3
    momentum: float = 0.0
    weight_decay: float = 0.0

    def __init__(
        self,
        params: Iterable[Parameter],
        *,
        lr: float = 1e-3,
        momentum: float = 0.0,
        weight_decay: float = 0.0,
    ) -> None:
        """
        Construct an SGD optimizer.

        Raises
        ------
        ValueError
            If ``lr <= 0``, ``momentum`` is outside [0, 1) or
            ``weight_decay < 0``.
        """
        self.params = list(params)
        self.lr = float(lr)
        self.momentum = float(momentum)
        self.weight_decay = float(weight_decay)

        if self.lr <= 0.0:
            raise ValueError(f"lr must be > 0, got {self.lr}")
        if not (0.0 <= self.momentum < 1.0):
            raise ValueError(f"momentum must be in [0, 1), got {self.momentum}")
        if self.weight_decay < 0.0:
            raise ValueError(f"weight_decay must be >= 0, got {self.weight_decay}")

        # id(p) -> momentum buffer
        self._velocity: Dict[int, np.ndarray] = {}

    def zero_grad(self) -> None:
        """Reset the accumulated gradient of every managed parameter."""
        for p in self.params:
            p.zero_grad()

    def step(self) -> None:
        """Apply one SGD update step to all managed parameters."""
        for p in self.params:
            g = p.grad
            if g is None:
                continue

            x = p.data
            if self.weight_decay != 0.0:
                g = g + self.weight_decay * x

            if self.momentum != 0.0:
                buf = self._velocity.get(id(p))
                if buf is None:
                    buf = np.array(g, copy=True)
                else:
                    buf = self.momentum * buf + g
                self._velocity[id(p)] = buf
                g = buf

            p.assign(x - self.lr * g)
