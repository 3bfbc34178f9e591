"""Spec-driven event handler.

`SpecEventHandler` adapts an `EventSpec` to the `IEventHandler` capability
consumed by the topic registry and the decoding pipe:

- `is_applicable` is a cheap shape check (topic0, exact topic count,
  minimum data length) and never decodes.
- `decode` parses indexed topics with the typed topic parsers and the data
  section with `eth_abi`, and returns `{parameter name: value}`.
"""

from __future__ import annotations

from typing import Any

from eth_abi import decode as abi_decode

from decodepipe.core.models import RawLog
from decodepipe.decoding.specs import EventSpec
from decodepipe.decoding.utils import normalize_value, parse_topic_field


class SpecEventHandler:
    """Event handler backed by an `EventSpec`."""

    __slots__ = ("_spec",)

    def __init__(self, spec: EventSpec) -> None:
        self._spec = spec

    def __repr__(self) -> str:
        return f"SpecEventHandler({self._spec.signature!r})"

    @property
    def spec(self) -> EventSpec:
        return self._spec

    @property
    def topic(self) -> str:
        return self._spec.topic0

    @property
    def signature(self) -> str:
        return self._spec.signature

    def is_applicable(self, log: RawLog) -> bool:
        spec = self._spec
        if len(log.topics) != spec.topic_count:
            return False
        if not spec.anonymous and log.topics[0].lower() != spec.topic0:
            return False
        # hex chars after the 0x prefix
        data_len = (len(log.data) - 2) // 2 if log.data[:2].lower() == "0x" else len(log.data) // 2
        return data_len >= spec.min_data_len

    def decode(self, log: RawLog) -> dict[str, Any]:
        spec = self._spec
        out: dict[str, Any] = {}

        for tf in spec.topic_fields:
            out[tf.name] = parse_topic_field(log.topics[tf.index], tf)

        if spec.data_fields:
            values = abi_decode(spec.data_types, log.data_bytes())
            for df, value in zip(spec.data_fields, values):
                out[df.name] = normalize_value(value)

        return out
