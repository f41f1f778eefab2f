"""
Leaf-value snapshots.

Only leaf values are persisted: the graph topology is rebuilt by running the
user's code again. A snapshot maps names to base64 array payloads; a file
checkpoint wraps that mapping with a format tag:

    {
      "format": "graphgrad.json.state.v1",
      "state": {
        "w": {"b64": "...", "dtype": "<f4", "shape": [...], "order": "C"},
        ...
      }
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping

import numpy as np

from ...domain._errors import GraphError, ShapeMismatchError
from ..encoding._b64 import ndarray_to_payload, payload_to_ndarray
from ..tensor._tensor import Tensor

logger = logging.getLogger(__name__)

STATE_FORMAT = "graphgrad.json.state.v1"


def state_payload(named_leaves: Mapping[str, Tensor]) -> Dict[str, Dict[str, Any]]:
    """
    Snapshot leaf values into JSON payloads keyed by name.

    Raises
    ------
    GraphError
        If a handle is not a leaf.
    TypeError
        If a value is not a `Tensor`.
    """
    out: Dict[str, Dict[str, Any]] = {}
    for name, t in named_leaves.items():
        if not isinstance(t, Tensor):
            raise TypeError(f"'{name}' is not a Tensor: {type(t)!r}")
        if not t.is_leaf:
            raise GraphError(f"'{name}' is a computed tensor; only leaves are saved")
        out[str(name)] = ndarray_to_payload(t.to_numpy())
    return out


def load_state_payload_(
    named_leaves: Mapping[str, Tensor], payloads: Mapping[str, Mapping[str, Any]]
) -> None:
    """
    In-place load of leaf values from payloads.

    All payloads are decoded and checked before the first leaf is written,
    so a failing load leaves every leaf untouched.

    Raises
    ------
    KeyError
        If a leaf name is missing from `payloads`.
    ShapeMismatchError
        If a stored shape differs from the leaf shape.
    """
    decoded: Dict[str, np.ndarray] = {}
    for name, t in named_leaves.items():
        key = str(name)
        if key not in payloads:
            raise KeyError(f"Missing leaf in checkpoint: '{key}'")
        arr = payload_to_ndarray(dict(payloads[key]))
        if arr.shape != t.shape:
            raise ShapeMismatchError(
                f"load '{key}'", t.shape, arr.shape, detail="model vs checkpoint"
            )
        decoded[key] = arr.astype(t.dtype, copy=False)

    extra = set(map(str, payloads)) - set(decoded)
    if extra:
        logger.warning("Ignoring %d unused checkpoint entries: %s", len(extra), sorted(extra))

    for name, t in named_leaves.items():
        t.copy_from_numpy(decoded[str(name)])


def save_state(path, named_leaves: Mapping[str, Tensor]) -> None:
    """
    Save leaf values into a JSON file, creating parent directories.

    Notes
    -----
    Avoids pickle; base64 adds roughly a third to the raw size.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    payload = {"format": STATE_FORMAT, "state": state_payload(named_leaves)}
    p.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")


def load_state_(path, named_leaves: Mapping[str, Tensor]) -> None:
    """
    Load leaf values saved by `save_state` into `named_leaves` in place.

    Raises
    ------
    ValueError
        If the file format tag is not recognized.
    """
    p = Path(path)
    payload = json.loads(p.read_text(encoding="utf-8"))
    fmt = payload.get("format")
    if fmt != STATE_FORMAT:
        raise ValueError(f"Unsupported checkpoint format: {fmt!r}")
    load_state_payload_(named_leaves, payload["state"])
