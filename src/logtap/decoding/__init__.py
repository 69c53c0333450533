"""Event decoding.

This package provides:
- Parameter types (ParameterType) and event descriptors (EventDescriptor,
  ParameterDescriptor)
- The signature registry (EventRegistry) and builders from signatures
- Topic and data decoders, and `decode_log` for whole records
- Pre-built registries for common token standards
"""

from logtap.decoding.data import decode_data
from logtap.decoding.decoder import decode_log
from logtap.decoding.registry_builder import (
    event_descriptor_from_signature,
    make_registry,
    merge_registries,
)
from logtap.decoding.specs import EventDescriptor, EventRegistry, ParameterDescriptor
from logtap.decoding.topics import decode_topic
from logtap.decoding.types import ParameterType, parameter_type_of

__all__ = [
    "decode_data",
    "decode_log",
    "decode_topic",
    "event_descriptor_from_signature",
    "make_registry",
    "merge_registries",
    "EventDescriptor",
    "EventRegistry",
    "ParameterDescriptor",
    "ParameterType",
    "parameter_type_of",
]
