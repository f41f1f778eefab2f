"""
Normalizing activations: SOFTMAX and LOG_SOFTMAX along one axis.

Both forward rules subtract the per-slice maximum before exponentiating.
The VJP rules are expressed through the forward result:

- softmax:      dx = s * (g - sum(g * s))
- log_softmax:  dx = g - exp(y) * sum(g)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...domain._op_kind import OpKind
from ..graph import trace
from ..nodes import BackwardNode, GraphNode, op_rule_manager
from ._shape import _normalize_axis

if TYPE_CHECKING:
    from ..tensor._tensor import Tensor


def _normalized(kind: OpKind, x: "Tensor", axis: int) -> "Tensor":
    axis = _normalize_axis(axis, x.ndim, str(kind))
    return trace(kind, (x,), x.shape, {"axis": axis})


class TensorMixinNN:
    """
    Softmax-family activations for tensor handles.
    """

    def softmax(self, axis: int = -1) -> "Tensor":
        return _normalized(OpKind.SOFTMAX, self, axis)

    def log_softmax(self, axis: int = -1) -> "Tensor":
        return _normalized(OpKind.LOG_SOFTMAX, self, axis)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.SOFTMAX)
def _softmax_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    axis = node.meta["axis"]
    e = np.exp(x - np.max(x, axis=axis, keepdims=True))
    return e / np.sum(e, axis=axis, keepdims=True)


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.SOFTMAX)
def _softmax_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    s = node.result
    dot = np.sum(grad * s, axis=node.meta["axis"], keepdims=True)
    return (s * (grad - dot),)


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.LOG_SOFTMAX)
def _log_softmax_forward(node: GraphNode, x: np.ndarray) -> np.ndarray:
    axis = node.meta["axis"]
    shifted = x - np.max(x, axis=axis, keepdims=True)
    return shifted - np.log(np.sum(np.exp(shifted), axis=axis, keepdims=True))


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.LOG_SOFTMAX)
def _log_softmax_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray):
    total = np.sum(grad, axis=node.meta["axis"], keepdims=True)
    return (grad - np.exp(node.result) * total,)
