"""
Concrete trainable parameter implementation.

This module defines `Parameter`, an infrastructure-level implementation of the
domain contract `IParameter`. A `Parameter` is a leaf `Tensor` intended to be
optimized by training algorithms (e.g., SGD, Adam).

Design notes
------------
- `Parameter` subclasses `Tensor` to reuse storage, operators and the graph
  entry points.
- The gradient accumulator is owned directly by the leaf: it has no backward
  node, so backward propagation ends here and optimizers read the total
  gradient from `grad`.
- Values are rewritten only through `assign()`, which bumps the data-node
  version so every graph node built on top of the parameter is re-evaluated
  by the next forward pass.
"""

from __future__ import annotations

from ..domain._parameter import IParameter
from .tensor._tensor import Tensor


class Parameter(Tensor, IParameter):
    """
    Trainable leaf tensor.

    Parameters
    ----------
    data : array-like
        Initial values (copied).
    requires_grad : bool, optional
        Whether this parameter accumulates gradients. Defaults to True.
        A parameter built with ``requires_grad=False`` is frozen: it carries
        no accumulator and optimizers skip it.
    dtype : numpy dtype-like, optional
        Element dtype; see `Tensor`.
    """

    def __init__(self, data, requires_grad: bool = True, dtype=None) -> None:
        super().__init__(data, requires_grad=requires_grad, dtype=dtype)

    def assign(self, values) -> None:
        """
        Overwrite the parameter values in place.

        Parameters
        ----------
        values : array-like
            New values; must have the parameter shape.

        Raises
        ------
        ShapeMismatchError
            If `values` has a different shape.
        """
        self.copy_from_numpy(values)

    def __repr__(self) -> str:
        return (
            f"Parameter(shape={self.shape}, dtype={self.dtype}, "
            f"requires_grad={self.requires_grad})"
        )
