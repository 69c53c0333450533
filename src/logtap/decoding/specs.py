"""Event descriptors and the signature registry.

Defines:
- `ParameterDescriptor`: one event parameter (name, type, indexed flag, position)
- `EventDescriptor`: one event (name, signature digest, ordered parameters)
- `EventRegistry`: digest → EventDescriptor, frozen once built
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from eth_utils import keccak

from logtap.core.errors import DuplicateSignature, RegistryFrozen, TooManyIndexedParameters
from logtap.decoding.types import ParameterType, parameter_type_of

# Topic word 0 carries the digest, words 1..3 carry indexed parameters.
MAX_INDEXED_PARAMS = 3
DIGEST_SIZE = 32


@dataclass(frozen=True, slots=True)
class ParameterDescriptor:
    """Describe one event parameter; `position` is its index in the full declaration."""

    name: str
    abi_type: str  # e.g. "address", "uint256", "bytes32", "string"
    indexed: bool
    position: int

    @property
    def type(self) -> ParameterType:
        return parameter_type_of(self.abi_type)


@dataclass(frozen=True, slots=True)
class EventDescriptor:
    """One decodable event. `digest` defaults to keccak("Name(type,...)")."""

    name: str
    params: tuple[ParameterDescriptor, ...]
    digest: bytes = field(default=b"")

    def __post_init__(self) -> None:
        n_indexed = sum(1 for p in self.params if p.indexed)
        if n_indexed > MAX_INDEXED_PARAMS:
            raise TooManyIndexedParameters(
                f"{self.signature} declares {n_indexed} indexed parameters (max {MAX_INDEXED_PARAMS})"
            )
        for i, p in enumerate(self.params):
            if p.position != i:
                raise ValueError(f"{self.name}: parameter {p.name!r} has position {p.position}, expected {i}")
        if not self.digest:
            object.__setattr__(self, "digest", keccak(text=self.signature))
        elif len(self.digest) != DIGEST_SIZE:
            raise ValueError(f"{self.name}: digest must be {DIGEST_SIZE} bytes")

    @property
    def signature(self) -> str:
        """Canonical signature string, e.g. "Transfer(address,address,uint256)"."""
        return f"{self.name}({','.join(p.abi_type for p in self.params)})"

    @property
    def topic0(self) -> str:
        """Digest as lowercased 0x-hex, the form used in RPC filters."""
        return "0x" + self.digest.hex()

    @property
    def indexed_params(self) -> tuple[ParameterDescriptor, ...]:
        return tuple(p for p in self.params if p.indexed)

    @property
    def data_params(self) -> tuple[ParameterDescriptor, ...]:
        return tuple(p for p in self.params if not p.indexed)


def to_digest(value: bytes | str) -> bytes | None:
    """Normalize a digest given as raw bytes or 0x-hex; None if it cannot be one."""
    if isinstance(value, str):
        h = value[2:] if value[:2].lower() == "0x" else value
        try:
            value = bytes.fromhex(h)
        except ValueError:
            return None
    value = bytes(value)
    return value if len(value) == DIGEST_SIZE else None


class EventRegistry:
    """Mapping from signature digest to `EventDescriptor`.

    Built once at startup, then frozen. A frozen registry is never mutated, so
    any number of decoders may read it concurrently without locking.
    """

    __slots__ = ("_by_digest", "_frozen")

    def __init__(self, descriptors: Iterable[EventDescriptor] = ()) -> None:
        self._by_digest: dict[bytes, EventDescriptor] = {}
        self._frozen = False
        for d in descriptors:
            self.register(d)

    def register(self, descriptor: EventDescriptor) -> None:
        """Insert one descriptor keyed by its digest.

        Re-registering an equal descriptor is a no-op; a different event under
        the same digest raises `DuplicateSignature`.
        """
        if self._frozen:
            raise RegistryFrozen(f"cannot register {descriptor.name!r}: registry is frozen")
        existing = self._by_digest.get(descriptor.digest)
        if existing is not None:
            if existing == descriptor:
                return
            raise DuplicateSignature(descriptor.topic0, existing.signature, descriptor.signature)
        self._by_digest[descriptor.digest] = descriptor

    def freeze(self) -> EventRegistry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def match(self, digest: bytes | str) -> EventDescriptor | None:
        """Exact 32-byte lookup. None means "unrecognized event", a normal outcome."""
        key = to_digest(digest)
        if key is None:
            return None
        return self._by_digest.get(key)

    def topic0s(self) -> list[str]:
        return [d.topic0 for d in self._by_digest.values()]

    def __contains__(self, digest: object) -> bool:
        if not isinstance(digest, (bytes, str)):
            return False
        return self.match(digest) is not None

    def __iter__(self) -> Iterator[EventDescriptor]:
        return iter(self._by_digest.values())

    def __len__(self) -> int:
        return len(self._by_digest)

    def __repr__(self) -> str:
        names = ", ".join(sorted(d.name for d in self._by_digest.values()))
        return f"EventRegistry([{names}], frozen={self._frozen})"
