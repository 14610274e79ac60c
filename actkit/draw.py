"""Box-and-arrow drawings for the terminal."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import IntEnum
from typing import TextIO


class Style(IntEnum):
    DOUBLE_LINE = 0
    SINGLE_LINE = 1
    DASHED_LINE = 2
    NO_LINE = 3


@dataclass(frozen=True)
class _StyleDef:
    corner_tl: str
    corner_tr: str
    corner_bl: str
    corner_br: str
    line_h: str
    line_v: str


_STYLE_DEFS = {
    Style.DOUBLE_LINE: _StyleDef("\u2554", "\u2557", "\u255a", "\u255d", "\u2550", "\u2551"),
    Style.SINGLE_LINE: _StyleDef("\u256d", "\u256e", "\u2570", "\u256f", "\u2500", "\u2502"),
    Style.DASHED_LINE: _StyleDef("\u250c", "\u2510", "\u2514", "\u2518", "\u254c", "\u254e"),
    Style.NO_LINE: _StyleDef(" ", " ", " ", " ", " ", " "),
}

_RESET = "\x1b[0m"


class Drawing:
    """Rendered text together with its nominal width."""

    def __init__(self, text: str, width: int) -> None:
        self._text = text
        self._width = width

    @property
    def width(self) -> int:
        """Nominal width of the drawing, used for centring."""
        return self._width

    def __str__(self) -> str:
        return self._text

    def draw(self, writer: TextIO, center_on_width: int) -> None:
        """Write the non-empty lines, centred on ``center_on_width``."""
        padding = " " * max((center_on_width - self._width) // 2, 0)
        for line in self._text.split("\n"):
            if line:
                writer.write(f"{padding}{line}\n")


@dataclass
class Pen:
    """Draws boxes and arrows in a given style and colour."""

    style: Style
    color: int
    bgcolor: int = 49

    @property
    def _def(self) -> _StyleDef:
        return _STYLE_DEFS[Style(self.style)]

    def _row(self, cells: list[str]) -> str:
        colour = f"\x1b[{self.color};{self.bgcolor}m"
        return "".join(f" {colour}{cell}{_RESET}" for cell in cells) + "\n"

    def draw_arrow(self) -> Drawing:
        """Draw a downward arrow between boxes."""
        return Drawing(f"\x1b[{self.color}m\u2b07{_RESET}", 1)

    def draw_boxes(self, *labels: str) -> Drawing:
        """Draw one box per label, side by side."""
        s = self._def
        width = sum(len(label) + 2 + 2 + 1 for label in labels)
        top = self._row([f"{s.corner_tl}{s.line_h * (len(l) + 2)}{s.corner_tr}" for l in labels])
        mid = self._row([f"{s.line_v} {l} {s.line_v}" for l in labels])
        bottom = self._row([f"{s.corner_bl}{s.line_h * (len(l) + 2)}{s.corner_br}" for l in labels])
        return Drawing(top + mid + bottom, width)


def new_pen(style: Style, color: int) -> Pen:
    """Create a pen; colours are disabled when CLICOLOR is "0"."""
    bgcolor = 49
    if os.environ.get("CLICOLOR") == "0":
        color = 0
        bgcolor = 0
    return Pen(style=Style(style), color=color, bgcolor=bgcolor)