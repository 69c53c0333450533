"""Error taxonomy.

Scope decides propagation:
- per record / per height (`MalformedPayload`, `FetchExhausted`) → absorbed by
  the loop that hit it and turned into a placeholder or a skip count;
- per stream / request / schema (`SubscriptionBroken`, `InvalidRange`,
  `RegistryError`) → raised to the caller, halting that subsystem.

An unknown signature is not an error at all: `EventRegistry.match` returns None.
"""

from __future__ import annotations


class LogtapError(Exception):
    """Base class for all logtap errors."""


# ---- schema / registry (fatal at startup) ----


class RegistryError(LogtapError):
    """The event schema cannot be turned into a registry."""


class DuplicateSignature(RegistryError):
    """Two different events claim the same signature digest."""

    def __init__(self, digest_hex: str, existing: str, incoming: str) -> None:
        super().__init__(f"signature {digest_hex} already registered as {existing!r}, refusing {incoming!r}")
        self.digest_hex = digest_hex
        self.existing = existing
        self.incoming = incoming


class TooManyIndexedParameters(RegistryError, ValueError):
    """An event declares more indexed parameters than there are topic slots."""


class RegistryFrozen(RegistryError):
    """`register` was called after the registry was frozen."""


# ---- decoding (per record) ----


class MalformedPayload(LogtapError, ValueError):
    """The data payload does not match the declared non-indexed parameters."""


# ---- live subscription ----


class SubscriptionBroken(LogtapError):
    """The upstream log subscription reported an error."""


# ---- historical range ----


class InvalidRange(LogtapError, ValueError):
    """A fetch range whose start is above its end."""


class FetchExhausted(LogtapError):
    """All attempts for one height failed."""

    def __init__(self, height: int, attempts: int, last_error: BaseException | None) -> None:
        super().__init__(f"height {height}: failed after {attempts} attempts: {last_error!r}")
        self.height = height
        self.attempts = attempts
        self.last_error = last_error


# ---- transport ----


class RPCError(LogtapError):
    """A JSON-RPC response carried an `error` object."""

    def __init__(self, method: str, code: int | None, message: str | None) -> None:
        super().__init__(f"{method} RPC error: {code} {message}")
        self.method = method
        self.code = code
        self.message = message
