"""Generic log decoder.

This module turns one raw `LogRecord` into a decode result using an
`EventRegistry`:

- `DecodedEvent`   → topic0 matched and every parameter decoded
- `UnknownEvent`   → no topics, or topic0 not in the registry
- `MalformedEvent` → topic0 matched but topics/data do not fit the descriptor

It never raises for a bad record, so a dispatch loop can call it blindly.
Decoding is pure: same record and registry in, equal result out.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from logtap.core.errors import MalformedPayload
from logtap.core.models import (
    DecodedEvent,
    DecodedParameter,
    DecodeResult,
    LogRecord,
    MalformedEvent,
    Provenance,
    UnknownEvent,
)
from logtap.decoding.data import decode_data
from logtap.decoding.specs import EventDescriptor, EventRegistry
from logtap.decoding.topics import decode_topic

logger = logging.getLogger(__name__)


# ---------- helper functions ----------


def _decode_indexed(spec: EventDescriptor, topics: Sequence[bytes]) -> list[DecodedParameter]:
    """Decode indexed params from topics[1..]; raises MalformedPayload if topics are missing."""
    indexed = spec.indexed_params
    if len(topics) - 1 < len(indexed):
        raise MalformedPayload(
            f"{spec.name} declares {len(indexed)} indexed parameters but the log has {len(topics) - 1} topic words"
        )
    return [
        DecodedParameter(p.name, p.type, decode_topic(topics[i + 1], p.type), indexed=True)
        for i, p in enumerate(indexed)
    ]


def _in_declaration_order(
    spec: EventDescriptor,
    indexed: list[DecodedParameter],
    data: list[DecodedParameter],
) -> tuple[DecodedParameter, ...]:
    """Merge the two decoded lists back into the event's declaration order."""
    it_indexed = iter(indexed)
    it_data = iter(data)
    return tuple(next(it_indexed) if p.indexed else next(it_data) for p in spec.params)


# ---------- main decoder ----------


def decode_log(record: LogRecord, registry: EventRegistry) -> DecodeResult:
    """Decode one log into a DecodedEvent, or an Unknown/Malformed placeholder."""
    provenance = Provenance.of(record)

    topic0 = record.topic0
    if topic0 is None:
        return UnknownEvent(provenance=provenance, topic0=None)

    spec = registry.match(topic0)
    if spec is None:
        return UnknownEvent(provenance=provenance, topic0="0x" + topic0.hex())

    try:
        indexed = _decode_indexed(spec, record.topics)
        data = decode_data(record.data, spec.data_params)
    except MalformedPayload as e:
        logger.warning(
            "malformed %s at block %d tx %s log %d: %s",
            spec.name, record.block_number, record.tx_hash, record.log_index, e,
        )
        return MalformedEvent(name=spec.name, provenance=provenance, error=str(e))

    return DecodedEvent(
        name=spec.name,
        params=_in_declaration_order(spec, indexed, data),
        provenance=provenance,
    )
