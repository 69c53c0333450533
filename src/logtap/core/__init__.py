"""Core data models, configuration, and errors.

This package provides:
- Data models (LogRecord, DecodedEvent, UnknownEvent, MalformedEvent,
  FetchOutcome, FetchSummary, BlockInfo)
- Configuration classes (RangeFetchConfig, SubscribeConfig)
- The error taxonomy
"""

from logtap.core.config import RangeFetchConfig, SubscribeConfig
from logtap.core.models import (
    BlockInfo,
    DecodedEvent,
    DecodedParameter,
    FetchOutcome,
    FetchSummary,
    LogRecord,
    MalformedEvent,
    Provenance,
    RawWord,
    UnknownEvent,
)

__all__ = [
    "RangeFetchConfig",
    "SubscribeConfig",
    "BlockInfo",
    "DecodedEvent",
    "DecodedParameter",
    "FetchOutcome",
    "FetchSummary",
    "LogRecord",
    "MalformedEvent",
    "Provenance",
    "RawWord",
    "UnknownEvent",
]
