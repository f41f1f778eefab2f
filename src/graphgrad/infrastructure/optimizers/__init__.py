from ._sgd import SGD
from ._adam import Adam
from ._lr_scheduler import (
    ExponentialLR,
    LambdaLR,
    MultiplicativeLR,
    MultiStepLR,
    StepLR,
)

__all__ = [
    "SGD",
    "Adam",
    "LambdaLR",
    "MultiplicativeLR",
    "StepLR",
    "MultiStepLR",
    "ExponentialLR",
]
