from ._scheduler import backward_order, forward_order, run_backward, run_forward
from ._tracker import as_tensor, trace

__all__ = [
    "forward_order",
    "backward_order",
    "run_forward",
    "run_backward",
    "trace",
    "as_tensor",
]
