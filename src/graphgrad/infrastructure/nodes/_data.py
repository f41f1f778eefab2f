"""
Data nodes: shared storage for a tensor's values.

A `DataNode` is referenced by every tensor handle, graph node and backward
node that reads the same value. Leaves own their data node outright;
computed values get a data node whose single writer is the `GraphNode`
recorded in `producer`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import numpy as np

from ...domain._errors import CyclicGraphError
from ._buffer import SharedBuffer

if TYPE_CHECKING:
    from ._graph_node import GraphNode


class DataNode(SharedBuffer):
    """
    Shared, versioned value buffer.

    Parameters
    ----------
    array : np.ndarray
        Initial values. For computed nodes this is a zero-filled buffer of
        the inferred output shape.

    Attributes
    ----------
    version : int
        Incremented every time an exclusive window closes. Graph nodes record
        operand versions at evaluation time to detect stale results.
    producer : Optional[GraphNode]
        The node that writes this buffer, or None for leaves.
    """

    __slots__ = ("_version", "_producer")

    def __init__(self, array: np.ndarray) -> None:
        super().__init__(array)
        self._version: int = 0
        self._producer: Optional["GraphNode"] = None

    @classmethod
    def zeros(cls, shape: tuple[int, ...], dtype) -> "DataNode":
        return cls(np.zeros(shape, dtype=dtype))

    @property
    def version(self) -> int:
        return self._version

    @property
    def producer(self) -> Optional["GraphNode"]:
        return self._producer

    @property
    def is_leaf(self) -> bool:
        return self._producer is None

    def attach_producer(self, node: "GraphNode") -> None:
        """
        Record `node` as the single writer of this buffer.

        Raises
        ------
        CyclicGraphError
            If a producer is already attached.
        """
        if self._producer is not None:
            raise CyclicGraphError(
                f"data node already produced by a {self._producer.kind} node; "
                "an output buffer can only have one producer."
            )
        self._producer = node

    def _on_write(self) -> None:
        self._version += 1

    def __repr__(self) -> str:
        origin = "leaf" if self._producer is None else str(self._producer.kind)
        return (
            f"DataNode(shape={self.shape}, dtype={self.dtype}, "
            f"origin={origin}, version={self._version})"
        )
