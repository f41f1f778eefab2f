"""
Base64 array payloads.

Leaf values are persisted as JSON-safe records carrying the raw bytes in
base64 together with the dtype string, the shape and the memory order.
"""

from __future__ import annotations

import base64
from typing import Any, Dict

import numpy as np

_REQUIRED_KEYS = ("b64", "dtype", "shape")


def bytes_to_b64_str(b: bytes) -> str:
    """
    Encode raw bytes into a base64 ASCII string (JSON-safe).
    """
    return base64.b64encode(b).decode("ascii")


def b64_str_to_bytes(s: str) -> bytes:
    """
    Decode a base64 ASCII string back into raw bytes.
    """
    return base64.b64decode(s.encode("ascii"))


def ndarray_to_payload(arr: np.ndarray) -> Dict[str, Any]:
    """
    Serialize a NumPy ndarray into a JSON-safe payload.

    Returns
    -------
    dict
        {
          "b64": "<base64>",
          "dtype": "<numpy dtype str>",
          "shape": [...],
          "order": "C"
        }
    """
    a = np.asarray(arr)
    return {
        "b64": bytes_to_b64_str(a.tobytes(order="C")),
        "dtype": a.dtype.str,
        "shape": list(a.shape),
        "order": "C",
    }


def payload_to_ndarray(payload: Dict[str, Any]) -> np.ndarray:
    """
    Deserialize a payload produced by `ndarray_to_payload`.

    Returns
    -------
    np.ndarray
        A contiguous, writable array that owns its memory.

    Raises
    ------
    KeyError
        If a required field is missing.
    ValueError
        If the byte count does not match dtype and shape, or the order is
        not "C".
    """
    for key in _REQUIRED_KEYS:
        if key not in payload:
            raise KeyError(f"array payload is missing {key!r}")
    if str(payload.get("order", "C")) != "C":
        raise ValueError(f"unsupported memory order {payload['order']!r}")

    b = b64_str_to_bytes(str(payload["b64"]))
    dtype = np.dtype(str(payload["dtype"]))
    shape = tuple(int(x) for x in payload["shape"])

    arr = np.frombuffer(b, dtype=dtype)
    arr = arr.reshape(shape)
    return np.array(arr, copy=True, order="C")
