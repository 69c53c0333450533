"""Decodable parameter types.

`ParameterType` is the closed set of wire types the decoders know about; every
ABI type string maps onto exactly one member, with `RAW` as the catch-all.
"""

from __future__ import annotations

import re
from enum import Enum

_UINT_RE = re.compile(r"^uint(\d{0,3})$")
_INT_RE = re.compile(r"^int(\d{0,3})$")
_FIXED_BYTES_RE = re.compile(r"^bytes(\d{1,2})$")


class ParameterType(Enum):
    ADDRESS = "address"
    UINT = "uint"
    INT = "int"
    BOOL = "bool"
    FIXED_BYTES = "fixed_bytes"
    BYTES = "bytes"
    RAW = "raw"

    @property
    def is_dynamic(self) -> bool:
        """True for types whose data-section head word is an offset into the tail."""
        return self is ParameterType.BYTES


def _valid_int_bits(bits: str) -> bool:
    if not bits:
        return True
    n = int(bits)
    return 8 <= n <= 256 and n % 8 == 0


def parameter_type_of(abi_type: str) -> ParameterType:
    """Map an ABI type string (e.g. "uint256", "bytes32", "string") to a ParameterType.

    Arrays, tuples and anything else unsupported become `RAW`.
    """
    t = abi_type.strip()
    if t == "address":
        return ParameterType.ADDRESS
    if t == "bool":
        return ParameterType.BOOL
    if t in ("bytes", "string"):
        return ParameterType.BYTES
    if (m := _UINT_RE.match(t)) and _valid_int_bits(m.group(1)):
        return ParameterType.UINT
    if (m := _INT_RE.match(t)) and _valid_int_bits(m.group(1)):
        return ParameterType.INT
    if (m := _FIXED_BYTES_RE.match(t)) and 1 <= int(m.group(1)) <= 32:
        return ParameterType.FIXED_BYTES
    return ParameterType.RAW


def fixed_bytes_size(abi_type: str) -> int:
    """Return N for "bytesN" (32 when the type carries no usable size)."""
    m = _FIXED_BYTES_RE.match(abi_type.strip())
    if m is None:
        return 32
    return min(32, max(1, int(m.group(1))))
