"""
Closed enumeration of differentiable operation kinds.

Every graph node and backward node is tagged with exactly one `OpKind`.
Forward-evaluation and vector-Jacobian-product rules are registered per
kind, and the rule registry is checked for completeness against this
enumeration, so adding an operation means adding a member here plus its two
rules.
"""

from enum import Enum, unique


@unique
class OpKind(Enum):
    """Operation tag carried by graph and backward nodes."""

    # binary elementwise (broadcasting)
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"

    # unary elementwise
    POW = "pow"
    NEG = "neg"
    ABS = "abs"
    EXP = "exp"
    LOG = "log"
    SQRT = "sqrt"
    RELU = "relu"
    LEAKY_RELU = "leaky_relu"
    SIGMOID = "sigmoid"
    TANH = "tanh"
    SOFTPLUS = "softplus"

    # reductions
    SUM = "sum"
    MEAN = "mean"
    MAX = "max"

    # linear algebra
    MATMUL = "matmul"
    TRANSPOSE = "transpose"

    # shape manipulation
    RESHAPE = "reshape"
    UNSQUEEZE = "unsqueeze"
    SQUEEZE = "squeeze"
    BROADCAST_TO = "broadcast_to"
    INDEX = "index"
    CONCATENATE = "concatenate"
    STACK = "stack"

    # neural-network primitives
    SOFTMAX = "softmax"
    LOG_SOFTMAX = "log_softmax"
    CONV2D = "conv2d"

    def __str__(self) -> str:
        return self.value
