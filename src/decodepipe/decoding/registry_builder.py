"""Build event handlers and definition sets from Solidity event signatures.

This module provides:
- Signature parsing helpers converting a human-written event signature into
  an `EventSpec` (topic0 computed with keccak over the canonical form)
- `handler_from_signature()` for a single handler
- `make_definition_set()` for a name → handler mapping ready for registration
"""

from __future__ import annotations

from collections.abc import Iterable

from eth_utils import keccak

from decodepipe.core.errors import InvalidSignatureError
from .decoder import SpecEventHandler
from .registry import EventDefinitionSet
from .specs import DataFieldSpec, EventSpec, TopicFieldSpec


# ---- Helpers: build specs from event signature ----
def _split_params(params_str: str) -> list[str]:
    """Split the parameter list by commas while respecting nested tuple types.

    Very lightweight splitter sufficient for typical event signatures.
    """
    items: list[str] = []
    depth = 0
    buf: list[str] = []
    for ch in params_str:
        if ch == '(':
            depth += 1
            buf.append(ch)
        elif ch == ')':
            depth -= 1
            buf.append(ch)
        elif ch == ',' and depth == 0:
            items.append(''.join(buf).strip())
            buf = []
        else:
            buf.append(ch)
    if depth != 0:
        raise InvalidSignatureError(f"Unbalanced parentheses in parameters: {params_str!r}")
    if buf:
        items.append(''.join(buf).strip())
    # Handle empty list for no params
    return [i for i in items if i]


def _parse_param(p: str, fallback_name: str) -> tuple[str, str, bool]:
    """Parse one parameter fragment into (name, abi_type, indexed)."""
    s = ' '.join(p.strip().split())  # normalize spaces
    indexed = False
    if ' indexed ' in f' {s} ':
        indexed = True
        s = f' {s} '.replace(' indexed ', ' ').strip()
    if s.startswith('('):
        # Tuple type: the type runs up to the matching closing paren (plus array suffix)
        depth = 0
        end = 0
        for i, ch in enumerate(s):
            depth += ch == '('
            depth -= ch == ')'
            if depth == 0:
                end = i + 1
                break
        while end < len(s) and s[end] != ' ':
            end += 1
        abi_type = s[:end]
        name = s[end:].strip() or fallback_name
        return (name, abi_type, indexed)
    tokens = s.split()
    if not tokens:
        raise InvalidSignatureError(f"Empty parameter fragment: {p!r}")
    if len(tokens) == 1:
        # Unnamed parameter
        abi_type = tokens[0]
        name = fallback_name
    else:
        name = tokens[-1]
        abi_type = ''.join(tokens[:-1])
    return (name, abi_type, indexed)


def _canonical_type(abi_type: str) -> str:
    """Expand `uint`/`int` aliases, recursing into tuple components."""
    if abi_type.startswith('('):
        close = abi_type.rfind(')')
        inner = ','.join(_canonical_type(_parse_param(c, "_")[1]) for c in _split_params(abi_type[1:close]))
        return f"({inner}){abi_type[close + 1:]}"
    for alias, full in (("uint", "uint256"), ("int", "int256")):
        if abi_type == alias or abi_type.startswith(alias + '['):
            return full + abi_type[len(alias):]
    return abi_type


def event_topic0(canonical_signature: str) -> str:
    """Return the lowercased 0x-hex keccak topic of a canonical signature."""
    return '0x' + keccak(text=canonical_signature).hex()


def event_spec_from_signature(signature: str) -> EventSpec:
    """Build an EventSpec from a Solidity event signature string.

    Example input:
      "Transfer(address indexed from, address indexed to, uint256 value)"

    A trailing `anonymous` keyword marks an anonymous event (no topic0).
    """
    sig = signature.strip()
    anonymous = False
    if sig.endswith('anonymous'):
        anonymous = True
        sig = sig[: -len('anonymous')].strip()
    # Extract name and parameters content
    open_paren = sig.find('(')
    close_paren = sig.rfind(')')
    if open_paren <= 0 or close_paren != len(sig) - 1:
        raise InvalidSignatureError(f"Invalid event signature: {signature}")
    name = sig[:open_paren].strip()
    if not name.isidentifier():
        raise InvalidSignatureError(f"Invalid event name in signature: {signature}")
    params_str = sig[open_paren + 1 : close_paren].strip()

    parsed: list[tuple[str, str, bool]] = []
    indexed_params: list[tuple[str, str]] = []  # (name, type)
    data_params: list[tuple[str, str]] = []  # (name, type)
    for i, part in enumerate(_split_params(params_str)):
        name_i, abi_type_i, is_indexed = _parse_param(part, fallback_name=f"arg{i}")
        abi_type_i = _canonical_type(abi_type_i)
        parsed.append((name_i, abi_type_i, is_indexed))
        if is_indexed:
            indexed_params.append((name_i, abi_type_i))
        else:
            data_params.append((name_i, abi_type_i))

    # topic0 hashes the canonical type list (no names, no 'indexed')
    canonical_signature = f"{name}({','.join(t for (_, t, _) in parsed)})"

    first_topic = 0 if anonymous else 1
    if len(indexed_params) > 4 - first_topic:
        raise InvalidSignatureError(f"Too many indexed parameters: {signature}")

    return EventSpec(
        topic0=event_topic0(canonical_signature),
        name=name,
        signature=canonical_signature,
        topic_fields=tuple(
            TopicFieldSpec(n, idx + first_topic, t) for idx, (n, t) in enumerate(indexed_params)
        ),
        data_fields=tuple(DataFieldSpec(n, idx, t) for idx, (n, t) in enumerate(data_params)),
        anonymous=anonymous,
    )


def handler_from_signature(signature: str) -> SpecEventHandler:
    """Build a single event handler from a signature string."""
    return SpecEventHandler(event_spec_from_signature(signature))


def make_definition_set(
    signatures: str | Iterable[str],
    *,
    names: Iterable[str] | None = None,
) -> EventDefinitionSet:
    """Create a definition set from one or multiple event signatures.

    Args:
        signatures: Single signature string or iterable of signature strings
        names: Optional event-type names (default: the event name of each signature)

    Returns:
        Ordered mapping of event-type name to handler

    Raises:
        ValueError: if two entries end up with the same event-type name
    """
    sig_list = [signatures] if isinstance(signatures, str) else list(signatures)
    handlers = [handler_from_signature(s) for s in sig_list]
    name_list = list(names) if names is not None else [h.spec.name for h in handlers]
    if len(name_list) != len(handlers):
        raise ValueError("names and signatures must have the same length")

    definitions: dict[str, SpecEventHandler] = {}
    for name, handler in zip(name_list, handlers):
        if name in definitions:
            raise ValueError(f"Duplicate event-type name in definition set: {name}")
        definitions[name] = handler
    return definitions
