"""
Topological scheduling of forward evaluation and backward propagation.

Forward order lists graph nodes with operands before consumers; backward
order lists backward nodes with consumers before producers. Both are
depth-first post-orders computed with an explicit stack (deep graphs never
reach the interpreter recursion limit) and deduplicated by node identity,
so a node shared by several branches is visited once.

Traversal stops at leaves: a data node without producer ends the forward
walk, and an operand without accumulator (untracked) is never entered by
the backward walk.
"""

from __future__ import annotations

import logging
from typing import List

import numpy as np

from ...domain._errors import GraphError, ShapeMismatchError
from ..nodes import BackwardNode, DataNode, GradientAccumulator, GraphNode

logger = logging.getLogger(__name__)


def forward_order(root: DataNode) -> List[GraphNode]:
    """
    Return the graph nodes reachable from `root`, operands first.

    Parameters
    ----------
    root : DataNode
        Data node of the terminal value.

    Returns
    -------
    list[GraphNode]
        Post-order of producers; empty when `root` is a leaf.
    """
    order: List[GraphNode] = []
    start = root.producer
    if start is None:
        return order

    visited: set[int] = set()
    stack: list[tuple[GraphNode, bool]] = [(start, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded:
            order.append(node)
            continue
        if id(node) in visited:
            continue
        visited.add(id(node))

        stack.append((node, True))
        for operand in reversed(node.operands):
            producer = operand.producer
            if producer is not None and id(producer) not in visited:
                stack.append((producer, False))

    return order


def backward_order(terminal: GradientAccumulator) -> List[BackwardNode]:
    """
    Return the backward nodes reachable from `terminal`, consumers first.

    Parameters
    ----------
    terminal : GradientAccumulator
        Accumulator of the value backward propagation starts from.

    Returns
    -------
    list[BackwardNode]
        Reverse topological order; empty when `terminal` is a leaf
        accumulator.
    """
    post: List[BackwardNode] = []
    start = terminal.producer
    if start is None:
        return post

    visited: set[int] = set()
    stack: list[tuple[BackwardNode, bool]] = [(start, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded:
            post.append(node)
            continue
        if id(node) in visited:
            continue
        visited.add(id(node))

        stack.append((node, True))
        for accumulator in reversed(node.operand_grads):
            if accumulator is None:
                continue
            producer = accumulator.producer
            if producer is not None and id(producer) not in visited:
                stack.append((producer, False))

    post.reverse()
    return post


def run_forward(order: List[GraphNode]) -> int:
    """
    Evaluate every node of `order` that is not up to date.

    Nodes whose operands were rewritten since their last evaluation are
    reset first. Because `order` is topological, an upstream re-evaluation
    bumps the version of its output and marks its consumers stale in turn.

    Returns
    -------
    int
        Number of nodes evaluated in this pass.
    """
    evaluated = 0
    for node in order:
        if node.computed and node.is_stale():
            node.reset()
        if not node.computed:
            node.evaluate()
            evaluated += 1

    logger.debug("forward pass: %d/%d nodes evaluated", evaluated, len(order))
    return evaluated


def run_backward(
    terminal: GradientAccumulator, order: List[BackwardNode], seed: np.ndarray
) -> None:
    """
    Propagate `seed` from `terminal` through `order`.

    Every accumulator owned by a node in `order` (intermediate gradients) is
    zeroed first, so intermediate values always describe the current pass.
    The terminal is then seeded: overwritten when it is intermediate,
    accumulated into when it is a leaf. Leaf accumulators reached by the
    pass keep their previous contents and accumulate.

    Raises
    ------
    GraphError
        If an accumulator on the path was released by ``no_grad()``. Raised
        before any accumulator is modified.
    ShapeMismatchError
        If `seed` does not have the terminal shape.
    """
    if tuple(seed.shape) != terminal.shape:
        raise ShapeMismatchError("backward", terminal.shape, tuple(seed.shape))
    if terminal.released or any(node.gradient.released for node in order):
        raise GraphError(
            "gradient buffers on this graph were released by no_grad(); "
            "call with_grad() before backward()"
        )

    for node in order:
        node.gradient.zero_()

    if terminal.is_leaf:
        terminal.accumulate(seed)
    else:
        terminal.overwrite(seed)

    for node in order:
        node.propagate()

    logger.debug("backward pass: %d nodes propagated", len(order))
