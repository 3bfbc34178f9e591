"""Topic registry: topic0 → ordered candidate handlers.

The registry is built once from an ordered sequence of event definition sets
(`event-type name → handler` mappings) and never changes afterwards:

- entries are appended in registration order (set order, then insertion
  order inside each set);
- handlers sharing a topic are all kept (e.g. ERC-20 and ERC-721 `Transfer`);
- a topic with no handler never appears as a key.

Rebuilding means constructing a new registry (and a new pipe).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

from decodepipe.core.interfaces import IEventHandler

# One caller-supplied set of event definitions, keyed by event-type name.
EventDefinitionSet = Mapping[str, IEventHandler]


@dataclass(frozen=True, slots=True)
class RegisteredHandler:
    """A handler together with the event-type name it was registered under."""

    name: str
    handler: IEventHandler


class TopicRegistry:
    """Read-only index from topic fingerprint to candidate handlers."""

    def __init__(self, definition_sets: Iterable[EventDefinitionSet]) -> None:
        index: dict[str, list[RegisteredHandler]] = {}
        handlers: list[RegisteredHandler] = []

        for definitions in definition_sets:
            for name, handler in definitions.items():
                entry = RegisteredHandler(name=name, handler=handler)
                index.setdefault(handler.topic.lower(), []).append(entry)
                handlers.append(entry)

        self._index: Mapping[str, tuple[RegisteredHandler, ...]] = MappingProxyType(
            {topic: tuple(entries) for topic, entries in index.items()}
        )
        self._handlers: tuple[RegisteredHandler, ...] = tuple(handlers)

    def lookup(self, topic: str) -> tuple[RegisteredHandler, ...]:
        """Return candidates for `topic` in registration order (empty if unknown)."""
        return self._index.get(topic.lower(), ())

    @property
    def topics(self) -> frozenset[str]:
        """All distinct known topic fingerprints."""
        return frozenset(self._index)

    def topic_list(self) -> list[str]:
        """Distinct topics in first-registration order (stable for upstream queries)."""
        return list(self._index)

    def all_handlers(self) -> Sequence[RegisteredHandler]:
        """Every registered handler across every set, in registration order."""
        return self._handlers

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, topic: object) -> bool:
        return isinstance(topic, str) and topic.lower() in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)
