"""RGB colours and hex colour parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass

_HEX_COLOR = re.compile(r"[0-9a-fA-F]{3}|[0-9a-fA-F]{6}")


@dataclass(frozen=True)
class Color:
    """An 8-bit RGB colour."""

    r: int = 0
    g: int = 0
    b: int = 0


def color_from_hex(hexcolor: str) -> Color:
    """Parse ``rgb`` or ``rrggbb`` hex notation."""
    if not _HEX_COLOR.fullmatch(hexcolor):
        raise ValueError(f"Invalid hex color: {hexcolor}")

    if len(hexcolor) == 3:
        r, g, b = (int(digit, 16) * 17 for digit in hexcolor)
    else:
        r, g, b = (int(hexcolor[i:i + 2], 16) for i in (0, 2, 4))

    return Color(r, g, b)