"""Decoding utilities: hex handling, typed topic parsers, value normalization."""

from __future__ import annotations

from typing import Any

from eth_utils import to_checksum_address

from .specs import TopicFieldSpec


def hex_to_bytes(value: str) -> bytes:
    """Decode a 0x-prefixed (or bare) hex string; raises ValueError on bad input."""
    raw = value[2:] if value[:2].lower() == "0x" else value
    return bytes.fromhex(raw) if raw else b""


def parse_topic_field(topic_hex: str, spec: TopicFieldSpec) -> Any:
    """Parse one indexed topic according to the declared type.

    Dynamic types (string, bytes, arrays, tuples) are stored as their keccak
    hash in the topic, so they come back as the raw 0x-hex word.
    """
    t = spec.type
    word = hex_to_bytes(topic_hex)
    if len(word) != 32:
        raise ValueError(f"topic for {spec.name} is {len(word)} bytes, expected 32")
    if t in ("string", "bytes") or t.endswith("]") or t.startswith("("):
        return "0x" + word.hex()
    if t == "address":
        return to_checksum_address("0x" + word[-20:].hex())
    if t == "bool":
        return int.from_bytes(word, "big") != 0
    if t.startswith("uint"):
        return int.from_bytes(word, "big", signed=False)
    if t.startswith("int"):
        # two's complement over the declared width
        v = int.from_bytes(word, "big", signed=False)
        bits = int(t[3:]) if t != "int" else 256
        v &= (1 << bits) - 1
        if v >= 2 ** (bits - 1):
            v -= 2**bits
        return v
    if t.startswith("bytes"):
        return "0x" + word[: int(t[5:])].hex()
    return "0x" + word.hex()


def normalize_value(value: Any) -> Any:
    """Make ABI-decoded values JSON-friendly (bytes → 0x-hex, tuples → lists)."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    return value
