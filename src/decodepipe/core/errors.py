"""Exception hierarchy for the decoding pipeline.

Only stream setup failures propagate out of `EventDecodingPipe.stream`;
per-candidate and per-batch faults are absorbed and logged.
"""

from __future__ import annotations


class DecodePipeError(Exception):
    """Base class for all decodepipe errors."""


class StreamSetupError(DecodePipeError):
    """The upstream stream could not be established (bad filters, HTTP failure...)."""


class PortalError(StreamSetupError):
    """The portal answered with an error status or an unreadable body."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PipeBusyError(DecodePipeError):
    """A pipe instance already has an active stream."""


class InvalidSignatureError(ValueError, DecodePipeError):
    """An event signature string could not be parsed."""
