from __future__ import annotations

from .constants import APPROVAL_FOR_ALL_T0, APPROVAL_T0, TRANSFER_T0
from .core.config import PipeOptions, PortalConfig
from .core.errors import PipeBusyError, PortalError, StreamSetupError
from .core.models import Block, BlockHeader, DecodedEvent, Filters, HandlerOutcome, RawLog
from .core.use_cases.decode_stream import DecodedEventStream, EventDecodingPipe, PipeStats, build_portal_query
from .clients.portal import PortalClient
from .decoding.registry import EventDefinitionSet, TopicRegistry
from .decoding.registry_builder import handler_from_signature, make_definition_set
from .decoding.registries import make_erc20_events, make_erc721_events

__all__ = [
    "EventDecodingPipe",
    "DecodedEventStream",
    "PipeStats",
    "build_portal_query",
    "TopicRegistry",
    "EventDefinitionSet",
    "handler_from_signature",
    "make_definition_set",
    "make_erc20_events",
    "make_erc721_events",
    "PortalClient",
    "PipeOptions",
    "PortalConfig",
    "Block",
    "BlockHeader",
    "DecodedEvent",
    "Filters",
    "HandlerOutcome",
    "RawLog",
    "PipeBusyError",
    "PortalError",
    "StreamSetupError",
    "TRANSFER_T0",
    "APPROVAL_T0",
    "APPROVAL_FOR_ALL_T0",
]
