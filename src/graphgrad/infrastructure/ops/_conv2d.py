"""
NumPy Conv2D kernels and the CONV2D operation.

The kernels gather every receptive field with `sliding_window_view` and
contract it against the weights with `einsum`, so no Python loop runs over
batch or output positions. The input gradient is scattered back one kernel
offset at a time (``K_h * K_w`` strided additions).

Tensor layout
-------------
All tensors follow the NCHW layout:

- N: batch size
- C: channels
- H: height
- W: width

Weights are (C_out, C_in, K_h, K_w); the optional bias is (C_out,).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Tuple, Union

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ...domain._errors import ShapeMismatchError
from ...domain._op_kind import OpKind
from ..graph import as_tensor, trace
from ..nodes import BackwardNode, GraphNode, op_rule_manager

if TYPE_CHECKING:
    from ..tensor._tensor import Tensor

Pair = Union[int, Tuple[int, int]]


def _pair(v: Pair) -> Tuple[int, int]:
    """
    Normalize an integer or pair into a 2-tuple.

    Raises
    ------
    ValueError
        If `v` is not an int or a pair of ints.
    """
    if isinstance(v, (int, np.integer)) and not isinstance(v, bool):
        return int(v), int(v)
    if isinstance(v, (tuple, list)) and len(v) == 2:
        return int(v[0]), int(v[1])
    raise ValueError(f"expected an int or a pair of ints, got {v!r}")


def conv2d_output_shape(
    x_shape: tuple[int, ...],
    w_shape: tuple[int, ...],
    b_shape: Optional[tuple[int, ...]],
    stride: Tuple[int, int],
    padding: Tuple[int, int],
) -> tuple[int, int, int, int]:
    """
    Validate Conv2D operand shapes and return the output shape.

    Returns
    -------
    tuple[int, int, int, int]
        (N, C_out, H_out, W_out) with
        ``H_out = (H + 2 * p_h - K_h) // s_h + 1`` (same for W).

    Raises
    ------
    ShapeMismatchError
        If ranks, channels or bias size disagree, or the padded input is
        smaller than the kernel.
    ValueError
        If a stride is not positive or a padding is negative.
    """
    s_h, s_w = stride
    p_h, p_w = padding
    if s_h <= 0 or s_w <= 0:
        raise ValueError(f"stride must be positive, got {stride}")
    if p_h < 0 or p_w < 0:
        raise ValueError(f"padding must be non-negative, got {padding}")

    if len(x_shape) != 4 or len(w_shape) != 4:
        raise ShapeMismatchError(
            "conv2d", x_shape, w_shape, detail="expected 4-D input and weight"
        )
    N, C_in, H, W = x_shape
    C_out, C_in2, K_h, K_w = w_shape
    if C_in != C_in2:
        raise ShapeMismatchError(
            "conv2d", x_shape, w_shape, detail=f"in_channels {C_in} != {C_in2}"
        )
    if b_shape is not None and tuple(b_shape) != (C_out,):
        raise ShapeMismatchError(
            "conv2d", (C_out,), b_shape, detail="bias must be (C_out,)"
        )

    H_out = (H + 2 * p_h - K_h) // s_h + 1
    W_out = (W + 2 * p_w - K_w) // s_w + 1
    if H_out <= 0 or W_out <= 0:
        raise ShapeMismatchError(
            "conv2d", x_shape, w_shape, detail="kernel larger than padded input"
        )
    return N, C_out, H_out, W_out


def _windows(
    x: np.ndarray, k: Tuple[int, int], stride: Tuple[int, int], padding: Tuple[int, int]
) -> np.ndarray:
    """Return strided receptive fields of shape (N, C, H_out, W_out, K_h, K_w)."""
    p_h, p_w = padding
    x_pad = np.pad(x, ((0, 0), (0, 0), (p_h, p_h), (p_w, p_w)), mode="constant")
    win = sliding_window_view(x_pad, k, axis=(2, 3))
    return win[:, :, :: stride[0], :: stride[1]]


def conv2d_forward(
    x: np.ndarray,
    w: np.ndarray,
    b: Optional[np.ndarray],
    stride: Tuple[int, int],
    padding: Tuple[int, int],
) -> np.ndarray:
    """
    Compute the forward pass of a 2D convolution.

    Parameters
    ----------
    x : np.ndarray
        Input of shape (N, C_in, H, W).
    w : np.ndarray
        Weights of shape (C_out, C_in, K_h, K_w).
    b : Optional[np.ndarray]
        Bias of shape (C_out,), or None.
    stride, padding : tuple[int, int]
        Normalized hyper-parameters.

    Returns
    -------
    np.ndarray
        Output of shape (N, C_out, H_out, W_out).
    """
    K_h, K_w = w.shape[2], w.shape[3]
    N, _, H_out, W_out = conv2d_output_shape(
        x.shape, w.shape, None if b is None else b.shape, stride, padding
    )
    win = _windows(x, (K_h, K_w), stride, padding)[:, :, :H_out, :W_out]
    y = np.einsum("nchwij,ocij->nohw", win, w, optimize=True)
    if b is not None:
        y = y + b[np.newaxis, :, np.newaxis, np.newaxis]
    return y


def conv2d_backward(
    x: np.ndarray,
    w: np.ndarray,
    grad_out: np.ndarray,
    stride: Tuple[int, int],
    padding: Tuple[int, int],
    need_x: bool = True,
    need_w: bool = True,
) -> tuple[Optional[np.ndarray], Optional[np.ndarray], np.ndarray]:
    """
    Compute the backward pass of a 2D convolution.

    Returns
    -------
    grad_x : Optional[np.ndarray]
        Gradient w.r.t. the input, (N, C_in, H, W); None if not requested.
    grad_w : Optional[np.ndarray]
        Gradient w.r.t. the weights; None if not requested.
    grad_b : np.ndarray
        Gradient w.r.t. the bias, summed over batch and spatial axes.
    """
    s_h, s_w = stride
    p_h, p_w = padding
    _, _, H, W = x.shape
    K_h, K_w = w.shape[2], w.shape[3]
    _, _, H_out, W_out = grad_out.shape

    grad_w = None
    if need_w:
        win = _windows(x, (K_h, K_w), stride, padding)[:, :, :H_out, :W_out]
        grad_w = np.einsum("nchwij,nohw->ocij", win, grad_out, optimize=True)

    grad_x = None
    if need_x:
        grad_x_pad = np.zeros(
            (x.shape[0], x.shape[1], H + 2 * p_h, W + 2 * p_w),
            dtype=np.result_type(grad_out, w),
        )
        for i in range(K_h):
            for j in range(K_w):
                contrib = np.einsum("nohw,oc->nchw", grad_out, w[:, :, i, j])
                grad_x_pad[
                    :, :, i : i + s_h * H_out : s_h, j : j + s_w * W_out : s_w
                ] += contrib
        grad_x = grad_x_pad[:, :, p_h : p_h + H, p_w : p_w + W]

    grad_b = grad_out.sum(axis=(0, 2, 3))
    return grad_x, grad_w, grad_b


def conv2d(
    x: "Tensor",
    weight: "Tensor",
    bias: Optional["Tensor"] = None,
    stride: Pair = 1,
    padding: Pair = 0,
) -> "Tensor":
    """
    Differentiable 2D convolution (cross-correlation) in NCHW layout.

    Raises
    ------
    ShapeMismatchError
        If the operand shapes are inconsistent.
    """
    stride = _pair(stride)
    padding = _pair(padding)
    weight = as_tensor(weight)
    x = as_tensor(x, dtype=weight.dtype)
    operands = [x, weight]
    if bias is not None:
        bias = as_tensor(bias, dtype=weight.dtype)
        operands.append(bias)

    shape = conv2d_output_shape(
        x.shape, weight.shape, None if bias is None else bias.shape, stride, padding
    )
    return trace(
        OpKind.CONV2D, operands, shape, {"stride": stride, "padding": padding}
    )


@op_rule_manager(GraphNode, GraphNode.compute, OpKind.CONV2D)
def _conv2d_forward(node: GraphNode, x: np.ndarray, w: np.ndarray, *bias: np.ndarray):
    b = bias[0] if bias else None
    return conv2d_forward(x, w, b, node.meta["stride"], node.meta["padding"])


@op_rule_manager(BackwardNode, BackwardNode.vjp, OpKind.CONV2D)
def _conv2d_vjp(node: BackwardNode, grad: np.ndarray, x: np.ndarray, w: np.ndarray, *bias):
    gx, gw, gb = conv2d_backward(
        x,
        w,
        grad,
        node.meta["stride"],
        node.meta["padding"],
        need_x=node.needs_grad(0),
        need_w=node.needs_grad(1),
    )
    if bias:
        return gx, gw, (gb if node.needs_grad(2) else None)
    return gx, gw
