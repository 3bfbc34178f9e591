"""Event specification primitives.

Defines lightweight dataclasses to describe how to decode events:
- `TopicFieldSpec` / `DataFieldSpec`: typed sources for indexed topics / data fields
- `EventSpec`: one event rule (topic0, canonical signature, fields)

An `EventSpec` is turned into a registrable handler by
`decodepipe.decoding.decoder.SpecEventHandler`.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TopicFieldSpec:
    """Describe one indexed topic field (by 0-based topic index and ABI type)."""

    name: str
    index: int
    type: str  # e.g., "address", "uint256", "int24", "bytes32"


@dataclass(frozen=True)
class DataFieldSpec:
    """Describe one non-indexed field of the data section (0-based position)."""

    name: str
    position: int
    type: str  # e.g., "address", "uint256", "string"


@dataclass(frozen=True)
class EventSpec:
    """One event decoding rule."""

    topic0: str
    name: str
    signature: str  # canonical, e.g. "Transfer(address,address,uint256)"
    topic_fields: tuple[TopicFieldSpec, ...]
    data_fields: tuple[DataFieldSpec, ...]
    anonymous: bool = False

    def __post_init__(self):
        first = 0 if self.anonymous else 1
        indexes = [tf.index for tf in self.topic_fields]
        if len(set(indexes)) != len(indexes):
            raise ValueError(f"{self.name}: duplicate topic index in {indexes}")
        for tf in self.topic_fields:
            if not first <= tf.index <= 3:
                raise ValueError(f"{self.name}: topic field {tf.name} has index {tf.index} out of range")
        positions = [df.position for df in self.data_fields]
        if positions != list(range(len(positions))):
            raise ValueError(f"{self.name}: data field positions must be contiguous from 0")

    @property
    def topic_count(self) -> int:
        """Exact number of topics a log of this event carries."""
        return len(self.topic_fields) + (0 if self.anonymous else 1)

    @property
    def min_data_len(self) -> int:
        """Minimum data length in bytes (one head word per data field)."""
        return 32 * len(self.data_fields)

    @property
    def data_types(self) -> list[str]:
        return [df.type for df in self.data_fields]
