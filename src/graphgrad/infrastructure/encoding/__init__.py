from ._b64 import b64_str_to_bytes, bytes_to_b64_str, ndarray_to_payload, payload_to_ndarray

__all__ = [
    "bytes_to_b64_str",
    "b64_str_to_bytes",
    "ndarray_to_payload",
    "payload_to_ndarray",
]
