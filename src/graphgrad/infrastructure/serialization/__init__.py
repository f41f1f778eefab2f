from ._state import (
    STATE_FORMAT,
    load_state_,
    load_state_payload_,
    save_state,
    state_payload,
)

__all__ = [
    "STATE_FORMAT",
    "state_payload",
    "load_state_payload_",
    "save_state",
    "load_state_",
]
