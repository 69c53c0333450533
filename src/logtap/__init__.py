from __future__ import annotations

from .core.errors import (
    DuplicateSignature,
    FetchExhausted,
    InvalidRange,
    LogtapError,
    MalformedPayload,
    RegistryError,
    SubscriptionBroken,
)
from .core.models import DecodedEvent, LogRecord, MalformedEvent, UnknownEvent
from .decoding.decoder import decode_log
from .decoding.registry_builder import make_registry, merge_registries
from .decoding.specs import EventDescriptor, EventRegistry, ParameterDescriptor
from .fetching.range_fetcher import RangeFetcher, fetch_range
from .subscription.multiplexer import HeadMultiplexer, SubscriptionMultiplexer, TerminationReason
from .subscription.stream import HeadSubscription, LogSubscription

__all__ = [
    "make_registry",
    "merge_registries",
    "decode_log",
    "EventDescriptor",
    "EventRegistry",
    "ParameterDescriptor",
    "LogRecord",
    "DecodedEvent",
    "UnknownEvent",
    "MalformedEvent",
    "LogSubscription",
    "HeadSubscription",
    "SubscriptionMultiplexer",
    "HeadMultiplexer",
    "TerminationReason",
    "RangeFetcher",
    "fetch_range",
    "LogtapError",
    "RegistryError",
    "DuplicateSignature",
    "MalformedPayload",
    "SubscriptionBroken",
    "InvalidRange",
    "FetchExhausted",
]
