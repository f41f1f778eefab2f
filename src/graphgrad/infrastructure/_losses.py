"""
Loss functions for graphgrad.

Every loss is composed from differentiable primitives (arithmetic, unary,
reduction and indexing operations), so no loss needs its own node kind or
backward rule: gradients flow through the primitives it is built from.

Currently implemented losses:
- mse_loss             : mean/sum of squared errors
- mae_loss             : mean/sum of absolute errors
- bce_loss             : binary cross entropy on probabilities
- bce_with_logits_loss : binary cross entropy on logits (numerically stable)
- nll_loss             : negative log-likelihood on log-probabilities
- cross_entropy_loss   : log_softmax followed by nll_loss
- kldiv_loss           : Kullback-Leibler divergence, input in log-space

Design notes
------------
- `reduction` is "mean" (default) or "sum"; the result is always a 0-d
  tensor intended as the terminal of backward propagation.
- Targets are treated as constants. They may be tensors, arrays or lists;
  class targets of `nll_loss` / `cross_entropy_loss` are integer indices.
"""

from __future__ import annotations

from typing import Union

import numpy as np

from ..domain._errors import ShapeMismatchError
from .graph import as_tensor
from .tensor._tensor import Tensor

Target = Union[Tensor, np.ndarray, list]

_REDUCTIONS = ("mean", "sum")


def _reduce(values: Tensor, reduction: str) -> Tensor:
    if reduction == "mean":
        return values.mean()
    if reduction == "sum":
        return values.sum()
    raise ValueError(f"reduction must be one of {_REDUCTIONS}, got {reduction!r}")


def _same_shape_target(name: str, input: Tensor, target: Target) -> Tensor:
    target = as_tensor(target, dtype=input.dtype)
    if target.shape != input.shape:
        raise ShapeMismatchError(name, input.shape, target.shape)
    return target


def _class_indices(name: str, input: Tensor, target: Target) -> np.ndarray:
    if isinstance(target, Tensor):
        target = target.to_numpy()
    idx = np.asarray(target)
    if idx.ndim != 1 or input.ndim != 2 or idx.shape[0] != input.shape[0]:
        raise ShapeMismatchError(
            name, input.shape, idx.shape, detail="expected (N, C) input and (N,) target"
        )
    if not np.issubdtype(idx.dtype, np.integer):
        if not np.all(np.equal(np.mod(idx, 1), 0)):
            raise TypeError(f"{name}: class targets must be integers")
        idx = idx.astype(np.intp)
    if idx.size and (idx.min() < 0 or idx.max() >= input.shape[1]):
        raise ValueError(f"{name}: class index out of range [0, {input.shape[1]})")
    return idx


def mse_loss(input: Tensor, target: Target, reduction: str = "mean") -> Tensor:
    """
    Squared error between `input` and `target`.

    Raises
    ------
    ShapeMismatchError
        If the shapes differ.
    """
    diff = input - _same_shape_target("mse_loss", input, target)
    return _reduce(diff * diff, reduction)


def mae_loss(input: Tensor, target: Target, reduction: str = "mean") -> Tensor:
    """Absolute error between `input` and `target`."""
    diff = input - _same_shape_target("mae_loss", input, target)
    return _reduce(diff.abs(), reduction)


def bce_loss(
    input: Tensor, target: Target, reduction: str = "mean", eps: float = 1e-7
) -> Tensor:
    """
    Binary cross entropy on probabilities in [0, 1].

    `eps` is added inside both logarithms so that saturated probabilities
    give a large finite loss instead of ``inf``.
    """
    t = _same_shape_target("bce_loss", input, target)
    loss = -(t * (input + eps).log() + (1.0 - t) * (1.0 - input + eps).log())
    return _reduce(loss, reduction)


def bce_with_logits_loss(
    input: Tensor, target: Target, reduction: str = "mean"
) -> Tensor:
    """
    Binary cross entropy on logits.

    Uses ``softplus(x) - x * t``, which equals
    ``-(t * log(sigmoid(x)) + (1 - t) * log(1 - sigmoid(x)))`` without
    overflowing for large ``|x|``.
    """
    t = _same_shape_target("bce_with_logits_loss", input, target)
    return _reduce(input.softplus() - input * t, reduction)


def nll_loss(input: Tensor, target: Target, reduction: str = "mean") -> Tensor:
    """
    Negative log-likelihood.

    Parameters
    ----------
    input : Tensor
        Log-probabilities of shape (N, C).
    target : array-like of int
        Class indices of shape (N,).
    """
    idx = _class_indices("nll_loss", input, target)
    picked = input[np.arange(idx.shape[0]), idx]
    return _reduce(-picked, reduction)


def cross_entropy_loss(input: Tensor, target: Target, reduction: str = "mean") -> Tensor:
    """
    Cross entropy on unnormalized logits of shape (N, C) with class indices.
    """
    return nll_loss(input.log_softmax(axis=1), target, reduction)


def kldiv_loss(input: Tensor, target: Target, reduction: str = "mean") -> Tensor:
    """
    Kullback-Leibler divergence ``sum(t * (log t - input))``.

    Parameters
    ----------
    input : Tensor
        Log-probabilities.
    target : array-like
        Probabilities of the same shape; zero entries contribute nothing.
    """
    t = _same_shape_target("kldiv_loss", input, target)
    tv = t.to_numpy()
    with np.errstate(divide="ignore", invalid="ignore"):
        t_log_t = np.where(tv > 0, tv * np.log(np.where(tv > 0, tv, 1)), 0.0)
    return _reduce(Tensor(t_log_t.astype(input.dtype)) - t * input, reduction)
