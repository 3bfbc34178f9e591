from decodepipe.core.use_cases.decode_stream import (
    DecodedEventStream,
    EventDecodingPipe,
    PipeStats,
    build_portal_query,
    try_candidate,
)

__all__ = [
    "DecodedEventStream",
    "EventDecodingPipe",
    "PipeStats",
    "build_portal_query",
    "try_candidate",
]
