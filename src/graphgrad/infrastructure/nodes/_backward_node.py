"""
Backward nodes: the reverse half of the computation graph.

A `BackwardNode` mirrors one tracked `GraphNode`. It references the
gradient accumulators of its operands (None where an operand is untracked),
its own accumulator, the data nodes needed by the vector-Jacobian-product
rule, and the operand shapes captured before any broadcasting.

`propagate()` is the single place where gradients move: it reads the
node's total incoming gradient, asks the per-kind rule (`vjp`) for one
contribution per operand, sum-reduces each contribution to the cached
operand shape, and adds it into the operand accumulator.
"""

from __future__ import annotations

import weakref
from contextlib import ExitStack
from typing import Any, Mapping, Optional, Sequence

import numpy as np

from ...domain._errors import GraphError
from ...domain._op_kind import OpKind
from ._broadcast import sum_to_shape
from ._data import DataNode
from ._gradient import GradientAccumulator


class BackwardNode:
    """
    Reverse record of one differentiable operation.

    Parameters
    ----------
    kind : OpKind
        Operation tag selecting the vector-Jacobian-product rule.
    operand_data : Sequence[DataNode]
        Data nodes of the operands (read by rules such as MUL or MATMUL).
    operand_grads : Sequence[Optional[GradientAccumulator]]
        Accumulators receiving contributions; None for untracked operands.
    output_data : DataNode
        Data node of the forward result (read by rules such as EXP).
    gradient : GradientAccumulator
        This node's own accumulator.
    meta : Mapping[str, Any], optional
        Operation metadata shared with the forward node.
    """

    __slots__ = (
        "kind",
        "operand_data",
        "operand_grads",
        "output_data",
        "_gradient",
        "operand_shapes",
        "meta",
        "__weakref__",
    )

    def __init__(
        self,
        kind: OpKind,
        operand_data: Sequence[DataNode],
        operand_grads: Sequence[Optional[GradientAccumulator]],
        output_data: DataNode,
        gradient: GradientAccumulator,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> None:
        operand_data = tuple(operand_data)
        operand_grads = tuple(operand_grads)
        if len(operand_data) != len(operand_grads):
            raise GraphError(
                f"{kind}: {len(operand_data)} operands but "
                f"{len(operand_grads)} gradient slots"
            )
        if any(g is gradient for g in operand_grads):
            raise GraphError(f"{kind}: a node cannot push gradients into itself")
        gradient.attach_producer(self)

        self.kind: OpKind = kind
        self.operand_data: tuple[DataNode, ...] = operand_data
        self.operand_grads: tuple[Optional[GradientAccumulator], ...] = operand_grads
        self.output_data: DataNode = output_data
        self._gradient = weakref.ref(gradient)
        self.operand_shapes: tuple[tuple[int, ...], ...] = tuple(
            d.shape for d in operand_data
        )
        self.meta: dict[str, Any] = dict(meta or {})

    @property
    def gradient(self) -> GradientAccumulator:
        g = self._gradient()
        if g is None:
            raise GraphError(f"{self.kind}: gradient buffer no longer exists")
        return g

    @property
    def result(self) -> np.ndarray:
        """Read-only view of the forward result."""
        return self.output_data.view()

    def needs_grad(self, index: int) -> bool:
        """True if operand `index` receives gradient contributions."""
        return self.operand_grads[index] is not None

    def vjp(
        self, grad: np.ndarray, *operands: np.ndarray
    ) -> Sequence[Optional[np.ndarray]]:
        """
        Vector-Jacobian-product rule for this node's kind.

        Parameters
        ----------
        grad : np.ndarray
            Total gradient w.r.t. the forward result (read-only).
        *operands : np.ndarray
            Read-only operand values in operand order.

        Returns
        -------
        Sequence[Optional[np.ndarray]]
            One contribution per operand, either in the operand shape or in
            the broadcast result shape; None for operands that do not need
            gradients.

        Notes
        -----
        Replaced by a kind-dispatching wrapper once operation rules are
        registered.
        """
        raise NotImplementedError(f"no vjp rule registered for {self.kind}")

    def propagate(self) -> None:
        """
        Push this node's gradient into every tracked operand accumulator.

        Raises
        ------
        GraphError
            If the rule returns the wrong number of contributions.
        """
        gradient = self.gradient
        with ExitStack() as stack:
            grad = stack.enter_context(gradient.borrow())
            arrays = [stack.enter_context(d.borrow()) for d in self.operand_data]
            contributions = tuple(self.vjp(grad, *arrays))

        if len(contributions) != len(self.operand_grads):
            raise GraphError(
                f"{self.kind}: vjp returned {len(contributions)} contributions "
                f"for {len(self.operand_grads)} operands"
            )

        for accumulator, shape, contribution in zip(
            self.operand_grads, self.operand_shapes, contributions
        ):
            if accumulator is None or contribution is None:
                continue
            accumulator.accumulate(sum_to_shape(np.asarray(contribution), shape))

    def __repr__(self) -> str:
        tracked = sum(g is not None for g in self.operand_grads)
        return (
            f"BackwardNode(kind={self.kind}, operands={len(self.operand_grads)}, "
            f"tracked={tracked})"
        )
