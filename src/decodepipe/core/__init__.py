"""Core data models, configuration, errors and ports.

This package provides:
- Data models (RawLog, Block, Filters, DecodedEvent, HandlerOutcome)
- Configuration classes (PipeOptions, PortalConfig, StreamConfig)
- Error hierarchy (DecodePipeError, StreamSetupError, PortalError, ...)
"""

from decodepipe.core.config import PipeOptions, PortalConfig, StreamConfig
from decodepipe.core.errors import (
    DecodePipeError,
    InvalidSignatureError,
    PipeBusyError,
    PortalError,
    StreamSetupError,
)
from decodepipe.core.models import (
    Block,
    BlockHeader,
    DecodedEvent,
    Filters,
    HandlerOutcome,
    RawLog,
    Transaction,
)

__all__ = [
    "PipeOptions",
    "PortalConfig",
    "StreamConfig",
    "DecodePipeError",
    "InvalidSignatureError",
    "PipeBusyError",
    "PortalError",
    "StreamSetupError",
    "Block",
    "BlockHeader",
    "DecodedEvent",
    "Filters",
    "HandlerOutcome",
    "RawLog",
    "Transaction",
]
