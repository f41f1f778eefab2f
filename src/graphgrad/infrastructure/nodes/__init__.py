"""
Node layer of the computation graph.

- `DataNode` / `GradientAccumulator`: shared, window-guarded buffers.
- `GraphNode` / `BackwardNode`: forward and reverse operation records.
- `op_rule_manager`: registers per-kind forward and VJP rules.
"""

from ._broadcast import broadcast_shapes, sum_to_shape
from ._buffer import SharedBuffer
from ._data import DataNode
from ._gradient import GradientAccumulator
from ._graph_node import GraphNode
from ._backward_node import BackwardNode
from ._rule_builder import op_rule_manager

__all__ = [
    "broadcast_shapes",
    "sum_to_shape",
    "SharedBuffer",
    "DataNode",
    "GradientAccumulator",
    "GraphNode",
    "BackwardNode",
    "op_rule_manager",
]
