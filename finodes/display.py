"""Terminal styling, bar glyph arithmetic and host list compression."""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable

_RESET = "\x1b[0m"
_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")
_PARTIAL_BLOCKS = ("", "▏", "▎", "▍", "▌", "▋", "▊", "▉")
_HOST_RE = re.compile(r"^(.*?)(\d+)$")


class Color(enum.Enum):
    """Foreground styles, valued by their SGR parameter."""

    BLACK = "30"
    RED = "31"
    GREEN = "32"
    YELLOW = "33"
    BLUE = "34"
    MAGENTA = "35"
    CYAN = "36"
    WHITE = "37"
    DIM = "2"


def colorize(text: str, color: Color, enabled: bool = True) -> str:
    """Wrap ``text`` in the escape codes for ``color`` when enabled."""
    if not enabled or not text:
        return text
    return f"\x1b[{color.value}m{text}{_RESET}"


def bold(text: str) -> str:
    """Wrap ``text`` in bold escape codes."""
    if not text:
        return text
    return f"\x1b[1m{text}{_RESET}"


def visible_len(text: str) -> int:
    """Length of ``text`` as shown on a terminal, ignoring escape codes."""
    return len(_ANSI_RE.sub("", text))


def count_blocks(width: int, fraction: float) -> tuple[int, int, str | None]:
    """Split a bar of ``width`` cells filled to ``fraction``.

    Returns the number of full blocks, the number of empty cells and an
    optional partial block glyph; together they always span ``width`` cells.
    """
    if width <= 0:
        return 0, 0, None
    fraction = min(max(fraction, 0.0), 1.0)
    eighths = round(width * fraction * 8)
    full, remainder = divmod(eighths, 8)
    partial = _PARTIAL_BLOCKS[remainder] or None
    empty = width - full - (1 if partial else 0)
    return full, empty, partial


def _ranges(numbers: list[int]) -> Iterable[tuple[int, int]]:
    start = prev = numbers[0]
    for number in numbers[1:]:
        if number != prev + 1:
            yield start, prev
            start = number
        prev = number
    yield start, prev


def compress_hostlist(names: Iterable[str]) -> str:
    """Compress host names into a bracketed range list such as ``node[1-3,7]``."""
    groups: dict[tuple[str, int], set[int]] = {}
    plain: list[str] = []
    for name in names:
        match = _HOST_RE.match(name)
        if match is None:
            if name not in plain:
                plain.append(name)
            continue
        prefix, digits = match.groups()
        groups.setdefault((prefix, len(digits)), set()).add(int(digits))

    parts: list[str] = list(plain)
    for (prefix, pad), numbers in sorted(groups.items()):
        ordered = sorted(numbers)
        if len(ordered) == 1:
            parts.append(f"{prefix}{ordered[0]:0{pad}d}")
            continue
        spans = [
            f"{lo:0{pad}d}" if lo == hi else f"{lo:0{pad}d}-{hi:0{pad}d}"
            for lo, hi in _ranges(ordered)
        ]
        parts.append(f"{prefix}[{','.join(spans)}]")
    return ",".join(parts)