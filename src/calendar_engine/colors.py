"""
Deterministic color buckets derived from entity ids.
"""

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")

_MASK = 0xFFFFFFFF


def _utf16_units(text: str):
    """Yield the UTF-16 code units of text (astral characters become surrogate pairs)."""
    raw = text.encode("utf-16-le")
    for i in range(0, len(raw), 2):
        yield raw[i] | (raw[i + 1] << 8)


def string_hash(text: str) -> int:
    """32-bit signed string hash: hash = hash * 31 + unit, wrapping at 32 bits."""
    value = 0
    for unit in _utf16_units(text):
        value = ((value << 5) - value + unit) & _MASK
    if value & 0x80000000:
        value -= 1 << 32
    return value


def color_bucket(entity_id: str, palette_size: int) -> int:
    """Map an id onto [0, palette_size); same id, same bucket, no registry."""
    if palette_size < 1:
        raise ValueError(f"palette_size must be at least 1, got {palette_size}")
    return abs(string_hash(entity_id)) % palette_size


def pick_color(entity_id: str, palette: Sequence[T]) -> T:
    return palette[color_bucket(entity_id, len(palette))]
