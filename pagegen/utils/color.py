from __future__ import annotations

import re

from reportlab.lib.colors import Color, HexColor

from pagegen.errors import InvalidColorFormat

_HEX_RE = re.compile(r"^(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def hex_to_color(hex_string: str | None) -> Color | None:
    """Parse ``#RGB`` / ``#RRGGBB`` (leading ``#`` optional) into a reportlab color.

    Returns ``None`` when no color is given; an empty string counts as unset.
    Anything else that is not a 3 or 6 digit hex string raises
    ``InvalidColorFormat``.
    """
    if not hex_string:
        return None
    s = str(hex_string).strip()
    if s.startswith("#"):
        s = s[1:]
    if not _HEX_RE.match(s):
        raise InvalidColorFormat(f"INVALID_COLOR_FORMAT: {hex_string!r}")
    if len(s) == 3:
        s = "".join(ch + ch for ch in s)
    return HexColor("#" + s)


def hex_to_rgb(hex_string: str | None) -> tuple[int, int, int] | None:
    color = hex_to_color(hex_string)
    if color is None:
        return None
    # Color.bitmap_rgb() truncates; round back to the original bytes.
    r, g, b = (int(round(c * 255)) for c in color.rgb())
    return r, g, b


def hex_to_int(hex_string: str | None, default: int = 0xFFFFFF) -> int:
    rgb = hex_to_rgb(hex_string)
    if rgb is None:
        return default
    r, g, b = rgb
    return (r << 16) | (g << 8) | b
