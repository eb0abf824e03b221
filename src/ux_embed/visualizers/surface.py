"""Drawing surfaces consumed by the signal renderers.

Renderers only talk to the small `DrawingSurface` protocol, a subset of a 2D
canvas API expressed in pixel coordinates. Two implementations ship here:

* `CommandSurface` records every call as a `DrawCommand`. Tests assert on it,
  and the recorded frame can be serialized for remote rendering.
* `CellSurface` rasterizes into a terminal cell grid using half-block glyphs
  (two vertical pixels per cell) and exports a `rich.text.Text` frame.
"""

from __future__ import annotations

import json
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, Union

from rich.color import Color, ColorParseError
from rich.style import Style
from rich.text import Text

RGB = tuple[float, float, float]
Point = tuple[float, float]

_BLACK: RGB = (0.0, 0.0, 0.0)
_HALF_BLOCK = "▀"


@dataclass(frozen=True)
class LinearGradient:
    """Gradient along the axis from (x0, y0) to (x1, y1) with evenly spaced stops."""

    x0: float
    y0: float
    x1: float
    y1: float
    stops: tuple[tuple[float, str], ...]

    @classmethod
    def from_colors(
        cls, x0: float, y0: float, x1: float, y1: float, colors: Sequence[str]
    ) -> LinearGradient:
        palette = list(colors) or ["#000000"]
        if len(palette) == 1:
            return cls(x0, y0, x1, y1, ((0.0, palette[0]), (1.0, palette[0])))
        last = len(palette) - 1
        return cls(
            x0,
            y0,
            x1,
            y1,
            tuple((index / last, color) for index, color in enumerate(palette)),
        )

    def rgb_at(self, x: float, y: float) -> RGB:
        dx = self.x1 - self.x0
        dy = self.y1 - self.y0
        length_sq = (dx * dx) + (dy * dy)
        t = 0.0
        if length_sq > 0:
            t = (((x - self.x0) * dx) + ((y - self.y0) * dy)) / length_sq
        t = max(0.0, min(1.0, t))
        previous_offset, previous_color = self.stops[0]
        for offset, color in self.stops[1:]:
            if t <= offset:
                span = offset - previous_offset
                local = 0.0 if span <= 0 else (t - previous_offset) / span
                return mix_rgb(parse_color(previous_color), parse_color(color), local)
            previous_offset, previous_color = offset, color
        return parse_color(self.stops[-1][1])

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "linear-gradient",
            "from": [self.x0, self.y0],
            "to": [self.x1, self.y1],
            "stops": [[offset, color] for offset, color in self.stops],
        }


Paint = Union[str, LinearGradient]


class DrawingSurface(Protocol):
    """2D drawing target used by every renderer."""

    width: int
    height: int

    def clear(self) -> None: ...

    def fill_rect(
        self, x: float, y: float, w: float, h: float, paint: Paint, *, alpha: float = 1.0
    ) -> None: ...

    def fill_rounded_rect(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        radius: float,
        paint: Paint,
        *,
        alpha: float = 1.0,
    ) -> None: ...

    def stroke_line(
        self,
        x0: float,
        y0: float,
        x1: float,
        y1: float,
        paint: Paint,
        *,
        line_width: float = 1.0,
        alpha: float = 1.0,
    ) -> None: ...

    def stroke_polyline(
        self,
        points: Sequence[Point],
        paint: Paint,
        *,
        line_width: float = 1.0,
        alpha: float = 1.0,
    ) -> None: ...

    def fill_polygon(
        self, points: Sequence[Point], paint: Paint, *, alpha: float = 1.0
    ) -> None: ...

    def fill_circle(
        self, x: float, y: float, radius: float, paint: Paint, *, alpha: float = 1.0
    ) -> None: ...

    def create_linear_gradient(
        self, x0: float, y0: float, x1: float, y1: float, colors: Sequence[str]
    ) -> LinearGradient: ...


_COLOR_CACHE: dict[str, RGB] = {}


def parse_color(value: str, default: RGB = _BLACK) -> RGB:
    """Parse a CSS-like color string (``#rgb``, ``#rrggbb``, ``rgb()``, names)."""
    cached = _COLOR_CACHE.get(value)
    if cached is not None:
        return cached
    text = value.strip().lower()
    if len(text) == 4 and text.startswith("#"):
        text = "#" + "".join(char * 2 for char in text[1:])
    try:
        triplet = Color.parse(text).get_truecolor()
    except ColorParseError:
        return default
    rgb = (float(triplet.red), float(triplet.green), float(triplet.blue))
    if len(_COLOR_CACHE) < 512:
        _COLOR_CACHE[value] = rgb
    return rgb


def mix_rgb(start: RGB, end: RGB, amount: float) -> RGB:
    amount = max(0.0, min(1.0, amount))
    return (
        start[0] + (end[0] - start[0]) * amount,
        start[1] + (end[1] - start[1]) * amount,
        start[2] + (end[2] - start[2]) * amount,
    )


@dataclass(frozen=True)
class DrawCommand:
    op: str
    args: dict[str, Any]


def _paint_value(paint: Paint) -> Any:
    if isinstance(paint, LinearGradient):
        return paint.to_dict()
    return paint


class CommandSurface:
    """Surface that records draw calls instead of rasterizing them."""

    def __init__(self, width: int, height: int) -> None:
        self.width = max(0, int(width))
        self.height = max(0, int(height))
        self.commands: list[DrawCommand] = []
        self.gradients_created = 0

    def _record(self, op: str, **args: Any) -> None:
        if "paint" in args:
            args["paint"] = _paint_value(args["paint"])
        self.commands.append(DrawCommand(op, args))

    def ops(self) -> list[str]:
        return [command.op for command in self.commands]

    def take(self) -> list[DrawCommand]:
        """Return recorded commands and start a fresh frame."""
        commands = self.commands
        self.commands = []
        return commands

    def to_json(self) -> str:
        return json.dumps(
            {
                "width": self.width,
                "height": self.height,
                "commands": [
                    {"op": command.op, **command.args} for command in self.commands
                ],
            }
        )

    def clear(self) -> None:
        self._record("clear")

    def fill_rect(self, x, y, w, h, paint, *, alpha=1.0) -> None:
        self._record("fill_rect", x=x, y=y, w=w, h=h, paint=paint, alpha=alpha)

    def fill_rounded_rect(self, x, y, w, h, radius, paint, *, alpha=1.0) -> None:
        self._record(
            "fill_rounded_rect",
            x=x,
            y=y,
            w=w,
            h=h,
            radius=radius,
            paint=paint,
            alpha=alpha,
        )

    def stroke_line(self, x0, y0, x1, y1, paint, *, line_width=1.0, alpha=1.0) -> None:
        self._record(
            "stroke_line",
            x0=x0,
            y0=y0,
            x1=x1,
            y1=y1,
            paint=paint,
            line_width=line_width,
            alpha=alpha,
        )

    def stroke_polyline(self, points, paint, *, line_width=1.0, alpha=1.0) -> None:
        self._record(
            "stroke_polyline",
            points=[list(point) for point in points],
            paint=paint,
            line_width=line_width,
            alpha=alpha,
        )

    def fill_polygon(self, points, paint, *, alpha=1.0) -> None:
        self._record(
            "fill_polygon",
            points=[list(point) for point in points],
            paint=paint,
            alpha=alpha,
        )

    def fill_circle(self, x, y, radius, paint, *, alpha=1.0) -> None:
        self._record("fill_circle", x=x, y=y, radius=radius, paint=paint, alpha=alpha)

    def create_linear_gradient(self, x0, y0, x1, y1, colors) -> LinearGradient:
        self.gradients_created += 1
        return LinearGradient.from_colors(x0, y0, x1, y1, colors)


class CellSurface:
    """Half-block raster surface sized ``columns`` x ``rows * 2`` pixels."""

    def __init__(self, columns: int, rows: int) -> None:
        self.columns = max(1, int(columns))
        self.rows = max(1, int(rows))
        self.width = self.columns
        self.height = self.rows * 2
        self._pixels: list[list[RGB]] = [
            [_BLACK] * self.width for _ in range(self.height)
        ]

    def pixel(self, x: int, y: int) -> RGB:
        return self._pixels[y][x]

    def clear(self) -> None:
        for row in self._pixels:
            row[:] = [_BLACK] * self.width

    def fill_rect(self, x, y, w, h, paint, *, alpha=1.0) -> None:
        x_start, x_end = _span(x, w, self.width)
        y_start, y_end = _span(y, h, self.height)
        for py in range(y_start, y_end):
            for px in range(x_start, x_end):
                self._blend(px, py, paint, alpha)

    def fill_rounded_rect(self, x, y, w, h, radius, paint, *, alpha=1.0) -> None:
        radius = max(0.0, min(float(radius), abs(w) / 2.0, abs(h) / 2.0))
        if radius < 1.0:
            self.fill_rect(x, y, w, h, paint, alpha=alpha)
            return
        left, right = min(x, x + w), max(x, x + w)
        top, bottom = min(y, y + h), max(y, y + h)
        x_start, x_end = _span(left, right - left, self.width)
        y_start, y_end = _span(top, bottom - top, self.height)
        for py in range(y_start, y_end):
            cy = py + 0.5
            for px in range(x_start, x_end):
                cx = px + 0.5
                nearest_x = min(max(cx, left + radius), right - radius)
                nearest_y = min(max(cy, top + radius), bottom - radius)
                if math.hypot(cx - nearest_x, cy - nearest_y) <= radius:
                    self._blend(px, py, paint, alpha)

    def stroke_line(self, x0, y0, x1, y1, paint, *, line_width=1.0, alpha=1.0) -> None:
        steps = max(1, int(math.ceil(max(abs(x1 - x0), abs(y1 - y0)))))
        thick = line_width >= 3.0
        for step in range(steps + 1):
            t = step / steps
            px = int(math.floor(x0 + (x1 - x0) * t))
            py = int(math.floor(y0 + (y1 - y0) * t))
            self._plot(px, py, paint, alpha)
            if thick:
                self._plot(px, py + 1, paint, alpha * 0.5)

    def stroke_polyline(self, points, paint, *, line_width=1.0, alpha=1.0) -> None:
        for start, end in zip(points, points[1:]):
            self.stroke_line(
                start[0],
                start[1],
                end[0],
                end[1],
                paint,
                line_width=line_width,
                alpha=alpha,
            )

    def fill_polygon(self, points, paint, *, alpha=1.0) -> None:
        if len(points) < 3:
            return
        edges = list(zip(points, [*points[1:], points[0]]))
        for py in range(self.height):
            scan_y = py + 0.5
            crossings: list[float] = []
            for (ax, ay), (bx, by) in edges:
                if (ay <= scan_y < by) or (by <= scan_y < ay):
                    crossings.append(ax + (scan_y - ay) * (bx - ax) / (by - ay))
            crossings.sort()
            for left, right in zip(crossings[0::2], crossings[1::2]):
                x_start, x_end = _span(left, right - left, self.width)
                for px in range(x_start, x_end):
                    self._blend(px, py, paint, alpha)

    def fill_circle(self, x, y, radius, paint, *, alpha=1.0) -> None:
        radius = max(0.5, float(radius))
        x_start, x_end = _span(x - radius, radius * 2, self.width)
        y_start, y_end = _span(y - radius, radius * 2, self.height)
        for py in range(y_start, y_end):
            for px in range(x_start, x_end):
                if math.hypot(px + 0.5 - x, py + 0.5 - y) <= radius:
                    self._blend(px, py, paint, alpha)

    def create_linear_gradient(self, x0, y0, x1, y1, colors) -> LinearGradient:
        return LinearGradient.from_colors(x0, y0, x1, y1, colors)

    def to_text(self) -> Text:
        """Export the raster as rich text, one half-block glyph per cell."""
        text = Text(no_wrap=True, overflow="crop")
        styles: dict[tuple[int, ...], Style] = {}
        for row in range(self.rows):
            top_row = self._pixels[row * 2]
            bottom_row = self._pixels[row * 2 + 1]
            for col in range(self.columns):
                top = _to_int_rgb(top_row[col])
                bottom = _to_int_rgb(bottom_row[col])
                key = (*top, *bottom)
                style = styles.get(key)
                if style is None:
                    style = Style(
                        color=Color.from_rgb(*top), bgcolor=Color.from_rgb(*bottom)
                    )
                    styles[key] = style
                text.append(_HALF_BLOCK, style=style)
            if row < self.rows - 1:
                text.append("\n")
        return text

    def _plot(self, px: int, py: int, paint: Paint, alpha: float) -> None:
        if 0 <= px < self.width and 0 <= py < self.height:
            self._blend(px, py, paint, alpha)

    def _blend(self, px: int, py: int, paint: Paint, alpha: float) -> None:
        if alpha <= 0:
            return
        if isinstance(paint, LinearGradient):
            color = paint.rgb_at(px + 0.5, py + 0.5)
        else:
            color = parse_color(paint)
        self._pixels[py][px] = mix_rgb(self._pixels[py][px], color, alpha)


def _span(start: float, length: float, limit: int) -> tuple[int, int]:
    if length < 0:
        start, length = start + length, -length
    first = max(0, int(math.floor(start)))
    last = min(limit, int(math.ceil(start + length)))
    return first, max(first, last)


def _to_int_rgb(rgb: RGB) -> tuple[int, int, int]:
    return (
        int(max(0, min(255, round(rgb[0])))),
        int(max(0, min(255, round(rgb[1])))),
        int(max(0, min(255, round(rgb[2])))),
    )
