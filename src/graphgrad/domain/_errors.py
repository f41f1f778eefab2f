"""
Graph- and differentiation-related exceptions for graphgrad.

This module defines the error hierarchy raised by the graph builder, the
scheduler and the shared-buffer layer. Every error derives from
`GraphError`, so callers can catch the whole family at once, while the
concrete subclasses identify the violated rule:

- `ShapeMismatchError`: operand shapes are incompatible for an operation
  (including failed broadcasts and mismatched seeds/gradients).
- `UntrackedBackwardError`: backward propagation requested on a handle that
  carries no gradient tracking.
- `UncomputedDependencyError`: a node was evaluated before its operands.
  Unreachable with a correct schedule; indicates a scheduler bug.
- `BorrowConflictError`: overlapping exclusive/shared access windows on the
  same buffer.
- `CyclicGraphError`: an operation would consume its own output.

All errors are raised before any state is mutated.
"""


class GraphError(RuntimeError):
    """
    Base class for every error raised by the differentiation engine.
    """


class ShapeMismatchError(GraphError, ValueError):
    """
    Raised when operand shapes are incompatible for the requested operation.

    Attributes
    ----------
    op : str
        The operation that rejected the shapes (e.g., "add", "matmul").
    shapes : tuple[tuple[int, ...], ...]
        The offending shapes, in operand order.
    """

    def __init__(self, op: str, *shapes: tuple[int, ...], detail: str = "") -> None:
        """
        Initialize the ShapeMismatchError.

        Parameters
        ----------
        op : str
            Name of the operation.
        *shapes : tuple[int, ...]
            Shapes involved in the failed check.
        detail : str, optional
            Extra human-readable context appended to the message.
        """
        rendered = " vs ".join(str(tuple(s)) for s in shapes)
        message = f"{op}: incompatible shapes {rendered}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.op = op
        self.shapes = tuple(tuple(s) for s in shapes)


class UntrackedBackwardError(GraphError):
    """
    Raised when backward propagation is requested on an untracked handle.

    A handle is untracked when neither it nor any of its ancestors requires
    gradients, so there is no accumulator to seed.
    """

    def __init__(self, shape: tuple[int, ...]) -> None:
        super().__init__(
            f"backward() called on a tensor of shape {tuple(shape)} that does not "
            "require gradients."
        )
        self.shape = tuple(shape)


class UncomputedDependencyError(GraphError):
    """
    Raised when a graph node is evaluated before one of its operands.

    Notes
    -----
    The scheduler visits nodes in dependency order, so this error signals a
    broken schedule rather than a user mistake.
    """

    def __init__(self, kind: str, operand_index: int) -> None:
        super().__init__(
            f"{kind}: operand {operand_index} has not been computed yet."
        )
        self.kind = kind
        self.operand_index = operand_index


class BorrowConflictError(GraphError):
    """
    Raised when exclusive and shared access windows overlap on one buffer.
    """

    def __init__(self, owner: str, requested: str, active: str) -> None:
        super().__init__(
            f"{owner}: cannot open a {requested} borrow while a {active} borrow "
            "is active."
        )
        self.owner = owner
        self.requested = requested
        self.active = active


class CyclicGraphError(GraphError):
    """
    Raised when a node would consume its own output or rebind an output that
    is already produced by another node.
    """
