"""
Elementwise unary functions and activations.

EXP, LOG, SQRT, RELU, LEAKY_RELU, SIGMOID, TANH and SOFTPLUS keep the operand
shape. Rules whose derivative is cheapest to express through the forward
result (exp, sqrt, sigmoid, tanh) read it back from the backward node
instead of recomputing it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...domain._op_kind import OpKind
from ..graph import trace
from ..nodes import BackwardNode, GraphNode, op_rule_manager

if TYPE_CHECKING:
    from ..tensor._tensor import Tensor


def _stable_sigmoid(x: np.ndarray) -> np.ndarray:
    """Sigmoid without overflow for large negative inputs."""
    out = np.empty(x.shape, dtype=np.result_type(x, 1.0))
    pos = x >= 0
    out[pos] = 1.0 / (1.0 + np.exp(-x[pos]))
    ex = np.exp(x[~pos])
    out[~pos] = ex / (1.0 + ex)
    return out


class TensorMixinUnary:
    """
    Elementwise math functions and activations for tensor handles.
    """

    def exp(self) -> "Tensor":
        return trace(OpKind.EXP, (self,), self.shape)

    def log(self) -> "Tensor":
        """
        Natural logarithm.

        Non-positive entries follow NumPy (``-inf``/``nan``), no error is
        raised.
        """
        return trace(OpKind.LOG, (self,), self.shape)

    def sqrt(self) -> "Tensor":
        return trace(OpKind.SQRT, (self,), self.shape)

    def relu(self) -> "Tensor":
        return trace(OpKind.RELU, (self,), self.shape)

    def leaky_relu(self, slope: float = 0.01) -> "Tensor":
        """
        Leaky ReLU: ``x`` for positive inputs, ``slope * x`` otherwise.

        Raises
        ------
        ValueError
            If `slope` is negative.
        """
        slope = float(slope)
        if slope < 0.0:
            raise ValueError(f"slope must be >= 0, got {slope}")
        return trace(OpKind.LEAKY_RELU, (self,), self.shape, {"slope": slope})

    def sigmoid(self) -> "Tensor":
        return trace(OpKind.SIGMOID, (self,), self.shape)

    def tanh(self) -> "Tensor":
        return trace(OpKind.TANH, (self,), self.shape)

    def softplus(self) -> "Tensor":
        """``log(1 + exp(x))``, evaluated without overflow."""
        return trace(OpKind.SOFTPLUS, (self,), self.shape)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.EXP)
def _exp_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.exp(x)


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.EXP)
def _exp_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    return (grad * node.result,)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.LOG)
def _log_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.log(x)


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.LOG)
def _log_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    return (grad / x,)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.SQRT)
def _sqrt_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.sqrt(x)


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.SQRT)
def _sqrt_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    return (grad / (2.0 * node.result),)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.RELU)
def _relu_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.maximum(x, 0)


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.RELU)
def _relu_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    return (grad * (x > 0),)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.LEAKY_RELU)
def _leaky_relu_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.where(x > 0, x, node.meta["slope"] * x)


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.LEAKY_RELU)
def _leaky_relu_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    return (np.where(x > 0, grad, node.meta["slope"] * grad),)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.SIGMOID)
def _sigmoid_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return _stable_sigmoid(x)


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.SIGMOID)
def _sigmoid_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    s = node.result
    return (grad * s * (1.0 - s),)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.TANH)
def _tanh_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.tanh(x)


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.TANH)
def _tanh_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    t = node.result
    return (grad * (1.0 - t * t),)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.SOFTPLUS)
def _softplus_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    return np.maximum(x, 0) + np.log1p(np.exp(-np.abs(x)))


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.SOFTPLUS)
def _softplus_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    return (grad * _stable_sigmoid(x),)
