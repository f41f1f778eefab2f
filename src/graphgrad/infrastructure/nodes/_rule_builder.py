"""
Operation-rule manager for kind-based dispatch.

This module defines the control-path manager used to register per-operation
forward and vector-Jacobian-product rules on graph and backward nodes.

The manager is created by specializing the generic `create_path_builder`
utility with the state attribute name ``"kind"``. As a result, method
dispatch is performed based on the runtime value of ``self.kind`` on node
objects.

Typical usage
-------------
Operation modules register their rules with this manager:

    @op_rule_manager(GraphNode, GraphNode.compute, OpKind.ADD)
    def add_forward(node, a, b): ...

    @op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.ADD)
    def add_vjp(node, grad, a, b): ...

At runtime, ``node.compute(...)`` dispatches to the rule whose registered
kind matches ``node.kind``.
"""

from ...domain.utils._control_path import create_path_builder

# Control-path manager that dispatches node methods based on `self.kind`
op_rule_manager = create_path_builder("kind")
