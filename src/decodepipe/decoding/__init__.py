"""Event handlers, definition sets and the topic registry.

This package provides:
- Event specification system (EventSpec, TopicFieldSpec, DataFieldSpec)
- `SpecEventHandler`: spec-backed implementation of the handler capability
- `TopicRegistry`: topic0 → ordered candidate handlers
- Signature-based builders and ready-made ERC-20 / ERC-721 definition sets
"""

from decodepipe.decoding.decoder import SpecEventHandler
from decodepipe.decoding.registries import make_erc20_events, make_erc721_events
from decodepipe.decoding.registry import EventDefinitionSet, RegisteredHandler, TopicRegistry
from decodepipe.decoding.registry_builder import (
    event_spec_from_signature,
    handler_from_signature,
    make_definition_set,
)
from decodepipe.decoding.specs import DataFieldSpec, EventSpec, TopicFieldSpec

__all__ = [
    "SpecEventHandler",
    "make_erc20_events",
    "make_erc721_events",
    "EventDefinitionSet",
    "RegisteredHandler",
    "TopicRegistry",
    "event_spec_from_signature",
    "handler_from_signature",
    "make_definition_set",
    "DataFieldSpec",
    "EventSpec",
    "TopicFieldSpec",
]
