import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Literal

from eth_utils.abi import event_signature_to_log_topic
from pydantic import BaseModel

from decodepipe.decoding.decoder import SpecEventHandler
from decodepipe.decoding.registry import EventDefinitionSet
from decodepipe.decoding.specs import DataFieldSpec, EventSpec, TopicFieldSpec

logger = logging.getLogger(__name__)


class AbiInput(BaseModel):
    indexed: bool = False
    internalType: str | None = None
    name: str = ""
    type: str
    components: Sequence["AbiInput"] | None = None


AbiInput.model_rebuild()


class AbiEvent(BaseModel):
    anonymous: bool = False
    inputs: Sequence[AbiInput]
    name: str
    type: Literal["event"]


def get_input_canonical_type(event_input: AbiInput) -> str:
    """Canonical ABI type; tuples expand to `(t1,t2,...)` plus any array suffix."""
    if event_input.type.startswith("tuple"):
        inner = ",".join(get_input_canonical_type(c) for c in event_input.components or ())
        return f"({inner}){event_input.type[len('tuple'):]}"
    return event_input.type


def get_event_signature(event: AbiEvent):
    return f"{event.name}({','.join(get_input_canonical_type(event_input) for event_input in event.inputs)})"


def get_event_topic0(event: AbiEvent):
    return "0x" + event_signature_to_log_topic(get_event_signature(event)).hex()


def _input_name(event_input: AbiInput, idx: int) -> str:
    return event_input.name or f"arg{idx}"


def get_event_topic_field_specs(event: AbiEvent):
    first = 0 if event.anonymous else 1
    indexed = [(idx, event_input) for idx, event_input in enumerate(event.inputs) if event_input.indexed]
    return tuple(
        TopicFieldSpec(_input_name(event_input, idx), topic_idx + first, get_input_canonical_type(event_input))
        for topic_idx, (idx, event_input) in enumerate(indexed)
    )


def get_event_data_field_specs(event: AbiEvent):
    data = [(idx, event_input) for idx, event_input in enumerate(event.inputs) if not event_input.indexed]
    return tuple(
        DataFieldSpec(_input_name(event_input, idx), position, get_input_canonical_type(event_input))
        for position, (idx, event_input) in enumerate(data)
    )


def get_event_spec(event: AbiEvent):
    return EventSpec(
        topic0=get_event_topic0(event),
        name=event.name,
        signature=get_event_signature(event),
        topic_fields=get_event_topic_field_specs(event),
        data_fields=get_event_data_field_specs(event),
        anonymous=event.anonymous,
    )


AbiJson = Iterable[dict[str, Any]]
AbiSpec = AbiJson | Path


def _load_abi(abi: AbiSpec) -> AbiJson:
    if isinstance(abi, Path):
        data = json.loads(abi.read_text())
        # Hardhat / Foundry artifacts wrap the ABI list
        if isinstance(data, dict) and isinstance(data.get("abi"), list):
            return data["abi"]
        return data
    return abi


def get_events_from_abi(abi: AbiSpec) -> dict[str, AbiEvent]:
    """Events of an ABI keyed by name; overloaded names keep the first occurrence."""
    events: dict[str, AbiEvent] = {}
    for entry in _load_abi(abi):
        if entry.get("type") != "event":
            continue
        event = AbiEvent.model_validate(entry)
        if event.name in events:
            logger.warning(
                "ABI overload %s ignored; keeping %s",
                get_event_signature(event),
                get_event_signature(events[event.name]),
            )
            continue
        events[event.name] = event
    return events


def make_definition_set_from_events(events: Iterable[AbiEvent]) -> EventDefinitionSet:
    definitions: dict[str, SpecEventHandler] = {}

    for event in events:
        definitions[event.name] = SpecEventHandler(get_event_spec(event))

    return definitions


def make_definition_set_from_abi(abi: AbiSpec) -> EventDefinitionSet:
    return make_definition_set_from_events(get_events_from_abi(abi).values())
