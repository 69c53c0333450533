"""Decoding utilities: ABI word access and the per-type word readers shared by
the topic and data decoders."""

from __future__ import annotations

from eth_utils import to_checksum_address  # type: ignore[attr-defined]

from logtap.core.models import RawWord

WORD = 32


def word_at(data: bytes, i: int) -> bytes | None:
    """Return the i-th 32-byte ABI word, or None if the payload is too short."""
    start = WORD * i
    end = start + WORD
    if end > len(data):
        return None
    return data[start:end]


def read_address(word: bytes) -> str:
    """Low-order 20 bytes as a checksummed address; the 12-byte padding is ignored."""
    return to_checksum_address("0x" + word[-20:].hex())


def read_uint(word: bytes) -> int:
    """Whole word as an unsigned big-endian magnitude.

    Also used for signed types: two's-complement negatives come out as large
    positive numbers.
    """
    return int.from_bytes(word, "big", signed=False)


def read_bool(word: bytes) -> bool:
    """True iff the last byte is non-zero; other bytes are ignored."""
    return word[-1] != 0


def read_raw(word: bytes) -> RawWord:
    return RawWord("0x" + word.hex())
