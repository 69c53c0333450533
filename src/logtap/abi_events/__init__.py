"""Build event registries from contract ABI JSON.

ABI entries are validated with pydantic; only `"type": "event"` entries are
used. Anonymous events carry no signature topic and are skipped.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel

from logtap.decoding.specs import EventDescriptor, EventRegistry, ParameterDescriptor

logger = logging.getLogger(__name__)


class AbiInput(BaseModel):
    indexed: bool = False
    internalType: str | None = None
    name: str = ""
    type: str
    components: Sequence[AbiInput] | None = None


AbiInput.model_rebuild()


class AbiEvent(BaseModel):
    anonymous: bool = False
    inputs: Sequence[AbiInput]
    name: str
    type: Literal["event"]


def get_canonical_type(event_input: AbiInput) -> str:
    """Canonical ABI type; tuples expand to "(t1,t2,…)" keeping any array suffix."""
    if event_input.type.startswith("tuple"):
        inner = ",".join(get_canonical_type(c) for c in event_input.components or ())
        return f"({inner}){event_input.type[len('tuple'):]}"
    return event_input.type


def get_event_signature(event: AbiEvent) -> str:
    return f"{event.name}({','.join(get_canonical_type(event_input) for event_input in event.inputs)})"


def get_event_descriptor(event: AbiEvent) -> EventDescriptor:
    return EventDescriptor(
        name=event.name,
        params=tuple(
            ParameterDescriptor(
                event_input.name or f"arg{idx}",
                get_canonical_type(event_input),
                event_input.indexed,
                idx,
            )
            for idx, event_input in enumerate(event.inputs)
        ),
    )


AbiJson = Iterable[dict[str, Any]]
AbiSpec = AbiJson | Path | str


def _load_abi(abi: AbiSpec) -> AbiJson:
    if isinstance(abi, Path):
        return json.loads(abi.read_text())
    if isinstance(abi, str):
        return json.loads(abi)
    return abi


def get_events_from_abi(abi: AbiSpec) -> list[AbiEvent]:
    return [AbiEvent.model_validate(entry) for entry in _load_abi(abi) if entry.get("type") == "event"]


def make_registry_from_events(events: Iterable[AbiEvent]) -> EventRegistry:
    reg = EventRegistry()
    for event in events:
        if event.anonymous:
            logger.info("skipping anonymous event %s: no signature topic to match", event.name)
            continue
        reg.register(get_event_descriptor(event))
    return reg.freeze()


def make_registry_from_abi(abi: AbiSpec) -> EventRegistry:
    """Frozen registry with every non-anonymous event of a contract ABI.

    `abi` may be a Path to a JSON file, a JSON string, or already-parsed entries.
    """
    return make_registry_from_events(get_events_from_abi(abi))
