"""
Graph nodes: the forward half of the computation graph.

A `GraphNode` records one operation: its kind, the data nodes it reads, the
data node it writes, and operation metadata (axes, strides, exponents, ...).
Evaluation is memoized through the `computed` flag; a node is re-evaluated
only after an explicit `reset()` or when one of its operands has been
rewritten since the last evaluation (detected through data-node versions).

The per-kind evaluation rule is provided by `GraphNode.compute`, which is
dispatched on `self.kind` through `op_rule_manager`. Rules receive
read-only operand arrays and return the output array; they never touch
buffers directly.
"""

from __future__ import annotations

import weakref
from contextlib import ExitStack
from typing import Any, Mapping, Optional, Sequence

import numpy as np

from ...domain._errors import (
    CyclicGraphError,
    GraphError,
    ShapeMismatchError,
    UncomputedDependencyError,
)
from ...domain._op_kind import OpKind
from ._data import DataNode


class GraphNode:
    """
    Forward record of one differentiable operation.

    Parameters
    ----------
    kind : OpKind
        Operation tag selecting the evaluation rule.
    operands : Sequence[DataNode]
        Data nodes read by the operation, in operand order.
    output : DataNode
        Pre-allocated buffer receiving the result. It must be a fresh node:
        not one of `operands` and not produced by another graph node.
    meta : Mapping[str, Any], optional
        Operation-specific metadata.

    Raises
    ------
    CyclicGraphError
        If `output` is one of `operands` or already has a producer.

    Notes
    -----
    The output buffer holds this node strongly (through `producer`); the node
    only keeps a weak reference back, so the pair does not form a reference
    cycle and is collected as soon as no handle or consumer needs the value.
    """

    __slots__ = (
        "kind",
        "operands",
        "_output",
        "meta",
        "_computed",
        "_seen_versions",
        "evaluations",
        "__weakref__",
    )

    def __init__(
        self,
        kind: OpKind,
        operands: Sequence[DataNode],
        output: DataNode,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if not isinstance(kind, OpKind):
            raise TypeError(f"kind must be an OpKind, got {type(kind)!r}")
        operands = tuple(operands)
        if any(op is output for op in operands):
            raise CyclicGraphError(
                f"{kind}: a node cannot consume its own output."
            )
        output.attach_producer(self)

        self.kind: OpKind = kind
        self.operands: tuple[DataNode, ...] = operands
        self._output = weakref.ref(output)
        self.meta: dict[str, Any] = dict(meta or {})
        self._computed: bool = False
        self._seen_versions: tuple[int, ...] = ()
        self.evaluations: int = 0

    @property
    def output(self) -> DataNode:
        out = self._output()
        if out is None:
            raise GraphError(f"{self.kind}: output buffer no longer exists")
        return out

    @property
    def computed(self) -> bool:
        return self._computed

    def compute(self, *operands: np.ndarray) -> np.ndarray:
        """
        Evaluation rule for this node's kind.

        Parameters
        ----------
        *operands : np.ndarray
            Read-only operand arrays in operand order.

        Returns
        -------
        np.ndarray
            The operation result; must have the output buffer's shape.

        Notes
        -----
        Replaced by a kind-dispatching wrapper once operation rules are
        registered.
        """
        raise NotImplementedError(f"no forward rule registered for {self.kind}")

    def is_stale(self) -> bool:
        """
        True if the node must be (re-)evaluated before its value can be used.
        """
        if not self._computed:
            return True
        return self._seen_versions != tuple(op.version for op in self.operands)

    def reset(self) -> None:
        """Clear the `computed` flag so the next forward pass re-evaluates."""
        self._computed = False

    def evaluate(self) -> None:
        """
        Run the evaluation rule and write the result into the output buffer.

        A computed node is left untouched.

        Raises
        ------
        UncomputedDependencyError
            If an operand produced by another node has not been computed.
        ShapeMismatchError
            If the rule returns an array of the wrong shape.
        """
        if self._computed:
            return

        for i, operand in enumerate(self.operands):
            producer = operand.producer
            if producer is not None and not producer.computed:
                raise UncomputedDependencyError(str(self.kind), i)

        with ExitStack() as stack:
            arrays = [stack.enter_context(op.borrow()) for op in self.operands]
            result = np.asarray(self.compute(*arrays))

        output = self.output
        if tuple(result.shape) != output.shape:
            raise ShapeMismatchError(
                str(self.kind),
                output.shape,
                tuple(result.shape),
                detail="forward rule returned an unexpected shape",
            )

        with output.borrow_mut() as buf:
            # refuses float -> int truncation
            np.copyto(buf, result, casting="same_kind")

        self._seen_versions = tuple(op.version for op in self.operands)
        self._computed = True
        self.evaluations += 1

    def __repr__(self) -> str:
        return (
            f"GraphNode(kind={self.kind}, operands={len(self.operands)}, "
            f"computed={self._computed})"
        )
