"""Registry builder utilities for creating event registries from signatures.

This module provides the core tools for building EventRegistry instances:
- `event_descriptor_from_signature()` for one human-readable Solidity signature
- `make_registry()` for one or many signatures (returns a frozen registry)
- `merge_registries()` to compose several schemas into one
"""

from __future__ import annotations

from collections.abc import Iterable

from .specs import EventDescriptor, EventRegistry, ParameterDescriptor


# ---- Helpers: build descriptors from event signature ----
def _split_params(params_str: str) -> list[str]:
    """Split the parameter list by commas while respecting nested tuple types.

    Very lightweight splitter sufficient for typical event signatures.
    """
    items: list[str] = []
    depth = 0
    buf: list[str] = []
    for ch in params_str:
        if ch == '(':
            depth += 1
            buf.append(ch)
        elif ch == ')':
            depth -= 1
            buf.append(ch)
        elif ch == ',' and depth == 0:
            items.append(''.join(buf).strip())
            buf = []
        else:
            buf.append(ch)
    if buf:
        items.append(''.join(buf).strip())
    return [i for i in items if i]


def _parse_param(p: str, fallback_name: str) -> tuple[str, str, bool]:
    """Parse one parameter fragment into (name, abi_type, indexed)."""
    tokens = p.strip().split()
    indexed = "indexed" in tokens
    tokens = [t for t in tokens if t != "indexed"]
    if not tokens:
        raise ValueError(f"Empty parameter in signature fragment: {p!r}")
    if len(tokens) == 1:
        # Unnamed parameter
        return (fallback_name, tokens[0], indexed)
    # Last token is the name, the rest is the type (can include tuple syntax)
    return (tokens[-1], ''.join(tokens[:-1]), indexed)


def event_descriptor_from_signature(signature: str) -> EventDescriptor:
    """Build an EventDescriptor from a Solidity event signature string.

    Example input:
      "Transfer(address indexed from, address indexed to, uint256 value)"

    The digest is computed from the canonical type list (names and `indexed`
    excluded), e.g. "Transfer(address,address,uint256)".
    """
    sig = signature.strip()
    if sig.startswith("event "):
        sig = sig[len("event "):].strip()
    sig = sig.rstrip(";").strip()
    open_paren = sig.find('(')
    close_paren = sig.rfind(')')
    if open_paren <= 0 or close_paren == -1 or close_paren < open_paren:
        raise ValueError(f"Invalid event signature: {signature}")
    name = sig[:open_paren].strip()
    params_str = sig[open_paren + 1 : close_paren].strip()

    params: list[ParameterDescriptor] = []
    for i, part in enumerate(_split_params(params_str)):
        p_name, abi_type, is_indexed = _parse_param(part, fallback_name=f"arg{i}")
        params.append(ParameterDescriptor(p_name, abi_type, is_indexed, i))

    return EventDescriptor(name=name, params=tuple(params))


def make_registry(signatures: str | Iterable[str]) -> EventRegistry:
    """Create a frozen registry from one or multiple event signatures.

    Raises `DuplicateSignature` / `TooManyIndexedParameters` on an invalid
    schema, before anything is decoded.
    """
    sig_list = [signatures] if isinstance(signatures, str) else list(signatures)
    reg = EventRegistry(event_descriptor_from_signature(s) for s in sig_list)
    return reg.freeze()


def merge_registries(*registries: EventRegistry) -> EventRegistry:
    """Compose several registries into a new frozen one (same conflict rules)."""
    reg = EventRegistry()
    for r in registries:
        for d in r:
            reg.register(d)
    return reg.freeze()
