"""
Portrait selection and layer table.

A PortraitSelection names one sprite per optional part plus the two tint
colours.  The JSON form uses the camelCase names the portrait library and
the HTTP API exchange:

    {"hair": "hair01", "brow": "hairbrow01", "facial": "", "hairBack": "",
     "head": "head01", "ears": "ear01",
     "hairColor": "#8e7355", "skinColor": "#bc8277"}

An empty part key means "omit this layer" (head/ears get defaults instead).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, fields, replace

DEFAULT_HAIR_COLOR = "#8e7355"
DEFAULT_SKIN_COLOR = "#bc8277"

HAIR = "hair_color"
SKIN = "skin_color"

_HEX_RE = re.compile(r"#([0-9a-fA-F]{6})")

# Python attribute -> JSON field
_JSON_NAMES = {
    "hair": "hair",
    "brow": "brow",
    "facial": "facial",
    "hair_back": "hairBack",
    "head": "head",
    "ears": "ears",
    "hair_color": "hairColor",
    "skin_color": "skinColor",
}


class SelectionError(ValueError):
    """Caller input rejected before any rendering work."""


@dataclass(frozen=True)
class PortraitSelection:
    hair: str = ""
    brow: str = ""
    facial: str = ""
    hair_back: str = ""
    head: str = ""
    ears: str = ""
    hair_color: str = DEFAULT_HAIR_COLOR
    skin_color: str = DEFAULT_SKIN_COLOR

    @classmethod
    def from_dict(cls, data: dict) -> "PortraitSelection":
        """Build from the camelCase JSON form.  Unknown keys (e.g. "name") are ignored."""
        if not isinstance(data, dict):
            raise SelectionError(f"Expected an object, got {type(data).__name__}")
        kwargs = {}
        for attr, json_name in _JSON_NAMES.items():
            if json_name in data and data[json_name] is not None:
                kwargs[attr] = data[json_name]
        return cls(**kwargs)

    def to_dict(self) -> dict[str, str]:
        return {json_name: getattr(self, attr) for attr, json_name in _JSON_NAMES.items()}

    def part(self, layer_key: str) -> str:
        """Part key for a layer ("hairBack" -> self.hair_back)."""
        return getattr(self, _attr_for(layer_key))

    def with_part(self, layer_key: str, part_key: str) -> "PortraitSelection":
        return replace(self, **{_attr_for(layer_key): part_key})


def _attr_for(layer_key: str) -> str:
    for attr, json_name in _JSON_NAMES.items():
        if json_name == layer_key:
            return attr
    raise KeyError(layer_key)


@dataclass(frozen=True)
class Layer:
    key: str            # Layer name, e.g. "ears"
    category: str       # Sprite category it samples from, e.g. "head"
    color_channel: str  # HAIR or SKIN

    def color(self, selection: PortraitSelection) -> str:
        return getattr(selection, self.color_channel)


# Back-to-front.  Reordering changes the output.
LAYER_ORDER: tuple[Layer, ...] = (
    Layer("hairBack", "hairBack", HAIR),
    Layer("neck", "head", SKIN),
    Layer("ears", "head", SKIN),
    Layer("head", "head", SKIN),
    Layer("facial", "facial", HAIR),
    Layer("brow", "brow", HAIR),
    Layer("hair", "hair", HAIR),
)


def parse_hex_color(value: str) -> tuple[int, int, int]:
    """'#8e7355' -> (142, 115, 85)."""
    m = _HEX_RE.fullmatch(value) if isinstance(value, str) else None
    if m is None:
        raise SelectionError(f"Invalid colour {value!r}: expected #RRGGBB")
    digits = m.group(1)
    return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))


def validate_selection(selection: PortraitSelection) -> None:
    """Reject selections the compositor cannot render.

    Part keys must be strings (unknown keys are fine, they just omit the
    layer); both colours must be #RRGGBB.
    """
    for f in fields(selection):
        value = getattr(selection, f.name)
        if not isinstance(value, str):
            raise SelectionError(
                f"{_JSON_NAMES[f.name]} must be a string, got {type(value).__name__}"
            )
    parse_hex_color(selection.hair_color)
    parse_hex_color(selection.skin_color)


def validate_size(size: int, what: str = "size") -> int:
    if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
        raise SelectionError(f"{what} must be a positive integer, got {size!r}")
    return size
