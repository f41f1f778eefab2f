"""
NumPy-backed implementation of the graphgrad contracts.
"""

from ._config import GraphConfig, default_dtype, get_config, set_default_dtype
from .tensor import (
    Tensor,
    from_numpy,
    full,
    ones,
    ones_like,
    tensor,
    zeros,
    zeros_like,
)
from .ops import concatenate, conv2d, stack
from ._parameter import Parameter
from ._losses import (
    bce_loss,
    bce_with_logits_loss,
    cross_entropy_loss,
    kldiv_loss,
    mae_loss,
    mse_loss,
    nll_loss,
)
from .optimizers import (
    SGD,
    Adam,
    ExponentialLR,
    LambdaLR,
    MultiplicativeLR,
    MultiStepLR,
    StepLR,
)
from .serialization import load_state_, load_state_payload_, save_state, state_payload
from .encoding import ndarray_to_payload, payload_to_ndarray

__all__ = [
    "GraphConfig",
    "get_config",
    "set_default_dtype",
    "default_dtype",
    "Tensor",
    "Parameter",
    "tensor",
    "from_numpy",
    "zeros",
    "ones",
    "full",
    "zeros_like",
    "ones_like",
    "concatenate",
    "stack",
    "conv2d",
    "mse_loss",
    "mae_loss",
    "bce_loss",
    "bce_with_logits_loss",
    "nll_loss",
    "cross_entropy_loss",
    "kldiv_loss",
    "SGD",
    "Adam",
    "LambdaLR",
    "MultiplicativeLR",
    "StepLR",
    "MultiStepLR",
    "ExponentialLR",
    "ndarray_to_payload",
    "payload_to_ndarray",
    "state_payload",
    "load_state_payload_",
    "save_state",
    "load_state_",
]
