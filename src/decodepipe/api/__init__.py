from decodepipe.api.stream_events import build_definition_sets, open_sinks, run_stream

__all__ = ["build_definition_sets", "open_sinks", "run_stream"]
