from __future__ import annotations

from typing import Any

MAX_EMBED_COLOR = 0xFFFFFF


def parse_hex_color(value: Any) -> int:
    """Accept ``#RRGGBB``, ``RRGGBB``, ``0xRRGGBB`` or an int; raise ``ValueError`` otherwise."""
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not a colour")
    if isinstance(value, int):
        color = value
    else:
        text = str(value).strip().lower().removeprefix("#").removeprefix("0x")
        color = int(text, 16)
    if not 0 <= color <= MAX_EMBED_COLOR:
        raise ValueError(f"{value!r} is outside the 24-bit RGB range")
    return color
