"""Indexed parameter decoding (one 32-byte topic word per parameter)."""

from __future__ import annotations

from logtap.core.models import DecodedValue
from logtap.decoding.types import ParameterType
from logtap.decoding.utils import WORD, read_address, read_bool, read_raw, read_uint


def decode_topic(word: bytes, type_: ParameterType) -> DecodedValue:
    """Decode one indexed parameter from its topic word.

    Dynamic values (bytes, string) are stored in topics as their keccak hash,
    so for both byte kinds the word itself is all there is to surface.
    Unsupported types come back as `RawWord` instead of failing.
    """
    if len(word) != WORD:
        raise ValueError(f"topic word must be {WORD} bytes, got {len(word)}")
    match type_:
        case ParameterType.ADDRESS:
            return read_address(word)
        case ParameterType.UINT | ParameterType.INT:
            return read_uint(word)
        case ParameterType.BOOL:
            return read_bool(word)
        case ParameterType.FIXED_BYTES | ParameterType.BYTES:
            return bytes(word)
        case ParameterType.RAW:
            return read_raw(word)
    raise RuntimeError(f"Unsupported parameter type: {type_!r}")
