"""Non-indexed parameter decoding (the ABI-encoded data payload).

Layout: one 32-byte head word per parameter, in declaration order. Static
values live in their head word; for dynamic `bytes`/`string` the head word is
a byte offset into the payload where a 32-byte length word is followed by the
value itself.
"""

from __future__ import annotations

from collections.abc import Sequence

from logtap.core.errors import MalformedPayload
from logtap.core.models import DecodedParameter, DecodedValue
from logtap.decoding.specs import ParameterDescriptor
from logtap.decoding.types import ParameterType, fixed_bytes_size
from logtap.decoding.utils import WORD, read_address, read_bool, read_raw, read_uint, word_at


def _read_dynamic(payload: bytes, head: bytes, name: str) -> bytes:
    """Follow a head-word offset to a length-prefixed byte region."""
    offset = read_uint(head)
    if offset + WORD > len(payload):
        raise MalformedPayload(f"{name}: offset {offset} outside payload of {len(payload)} bytes")
    length = read_uint(payload[offset : offset + WORD])
    start = offset + WORD
    if start + length > len(payload):
        raise MalformedPayload(
            f"{name}: length {length} at offset {offset} runs past payload of {len(payload)} bytes"
        )
    return payload[start : start + length]


def _decode_head(payload: bytes, head: bytes, param: ParameterDescriptor) -> DecodedValue:
    match param.type:
        case ParameterType.ADDRESS:
            return read_address(head)
        case ParameterType.UINT | ParameterType.INT:
            return read_uint(head)
        case ParameterType.BOOL:
            return read_bool(head)
        case ParameterType.FIXED_BYTES:
            return head[: fixed_bytes_size(param.abi_type)]
        case ParameterType.BYTES:
            return _read_dynamic(payload, head, param.name)
        case ParameterType.RAW:
            return read_raw(head)
    raise RuntimeError(f"Unsupported parameter type: {param.type!r}")


def decode_data(payload: bytes, params: Sequence[ParameterDescriptor]) -> list[DecodedParameter]:
    """Decode the ordered non-indexed parameters from `payload`.

    Raises `MalformedPayload` if the payload has fewer head words than
    parameters, or if a dynamic value points outside the payload.
    """
    need = WORD * len(params)
    if len(payload) < need:
        raise MalformedPayload(
            f"payload is {len(payload)} bytes, {len(params)} parameters need at least {need}"
        )

    out: list[DecodedParameter] = []
    for i, p in enumerate(params):
        head = word_at(payload, i)
        assert head is not None
        out.append(DecodedParameter(p.name, p.type, _decode_head(payload, head, p), indexed=False))
    return out
