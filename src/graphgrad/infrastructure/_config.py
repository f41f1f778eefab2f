"""
Library-wide configuration for graphgrad.

This module holds the small set of process-wide defaults that do not affect
graph semantics: the floating dtype used when a factory is not given one,
and the level of the library logger.

Defaults can be overridden through the environment when the package is
imported:

- ``GRAPHGRAD_DTYPE``: any NumPy floating dtype name (e.g., "float64").
- ``GRAPHGRAD_LOG_LEVEL``: a `logging` level name (e.g., "DEBUG").

Notes
-----
Gradient tracking is deliberately absent from this module: whether a
subgraph is differentiable is a per-handle capability decided when the
handle is built.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace

import numpy as np

logger = logging.getLogger(__name__)

_ENV_DTYPE = "GRAPHGRAD_DTYPE"
_ENV_LOG_LEVEL = "GRAPHGRAD_LOG_LEVEL"


@dataclass(frozen=True)
class GraphConfig:
    """
    Immutable snapshot of library defaults.

    Attributes
    ----------
    dtype : np.dtype
        Default element dtype for tensors created without an explicit dtype.
    log_level : int
        Level applied to the ``graphgrad`` logger. NOTSET (the default)
        leaves filtering to the application.
    """

    dtype: np.dtype = np.dtype(np.float32)
    log_level: int = logging.NOTSET


def _dtype_from_env(raw: str) -> np.dtype:
    """
    Parse a floating dtype from an environment value.

    Raises
    ------
    ValueError
        If `raw` does not name a NumPy floating dtype.
    """
    try:
        dt = np.dtype(raw)
    except TypeError as exc:
        raise ValueError(f"{_ENV_DTYPE}={raw!r} is not a NumPy dtype") from exc
    if not np.issubdtype(dt, np.floating):
        raise ValueError(f"{_ENV_DTYPE}={raw!r} is not a floating dtype")
    return dt


def load_config_from_env() -> GraphConfig:
    """
    Build a `GraphConfig` from the process environment.

    Invalid values are reported with a warning and replaced by the default.
    """
    config = GraphConfig()

    raw_dtype = os.environ.get(_ENV_DTYPE)
    if raw_dtype:
        try:
            config = replace(config, dtype=_dtype_from_env(raw_dtype))
        except ValueError as exc:
            logger.warning("Ignoring invalid dtype override: %s", exc)

    raw_level = os.environ.get(_ENV_LOG_LEVEL)
    if raw_level:
        level = logging.getLevelName(raw_level.strip().upper())
        if isinstance(level, int):
            config = replace(config, log_level=level)
        else:
            logger.warning("Ignoring invalid %s=%r", _ENV_LOG_LEVEL, raw_level)

    return config


_config: GraphConfig = load_config_from_env()


def get_config() -> GraphConfig:
    """Return the active configuration snapshot."""
    return _config


def set_default_dtype(dtype) -> None:
    """
    Change the dtype used by factories when none is given.

    Parameters
    ----------
    dtype : numpy dtype-like
        Must be a floating dtype.

    Raises
    ------
    ValueError
        If `dtype` is not a floating dtype.
    """
    global _config
    dt = np.dtype(dtype)
    if not np.issubdtype(dt, np.floating):
        raise ValueError(f"default dtype must be floating, got {dt}")
    _config = replace(_config, dtype=dt)


def default_dtype() -> np.dtype:
    """Return the dtype used by factories when none is given."""
    return _config.dtype
