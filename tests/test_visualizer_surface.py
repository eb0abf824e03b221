"""Tests for drawing surfaces."""

from __future__ import annotations

import json

from rich.text import Text

from ux_embed.visualizers.surface import (
    CellSurface,
    CommandSurface,
    LinearGradient,
    parse_color,
)


def test_parse_color_accepts_short_and_long_hex() -> None:
    assert parse_color("#fff") == (255.0, 255.0, 255.0)
    assert parse_color("#38bdf8") == (56.0, 189.0, 248.0)
    assert parse_color("not-a-color", default=(1.0, 2.0, 3.0)) == (1.0, 2.0, 3.0)


def test_gradient_interpolates_along_its_axis() -> None:
    gradient = LinearGradient.from_colors(0, 10, 0, 0, ["#000000", "#ffffff"])
    assert gradient.rgb_at(0, 10) == (0.0, 0.0, 0.0)
    assert gradient.rgb_at(0, 0) == (255.0, 255.0, 255.0)
    assert gradient.rgb_at(3, 5) == (127.5, 127.5, 127.5)


def test_single_color_gradient_is_solid() -> None:
    gradient = LinearGradient.from_colors(0, 0, 10, 0, ["#ff0000"])
    assert gradient.rgb_at(7, 0) == (255.0, 0.0, 0.0)


def test_command_surface_records_and_serializes_frames() -> None:
    surface = CommandSurface(32, 16)
    gradient = surface.create_linear_gradient(0, 16, 0, 0, ["#111111", "#222222"])
    surface.fill_rect(0, 0, 32, 16, "#020617", alpha=0.5)
    surface.fill_circle(4, 4, 2, gradient)

    assert surface.ops() == ["fill_rect", "fill_circle"]
    assert surface.gradients_created == 1
    payload = json.loads(surface.to_json())
    assert payload["width"] == 32
    assert payload["commands"][0]["alpha"] == 0.5
    assert payload["commands"][1]["paint"]["type"] == "linear-gradient"

    taken = surface.take()
    assert len(taken) == 2
    assert surface.commands == []


def test_cell_surface_has_two_pixels_per_row() -> None:
    surface = CellSurface(4, 3)
    assert (surface.width, surface.height) == (4, 6)


def test_cell_surface_blends_fills_with_alpha() -> None:
    surface = CellSurface(2, 1)
    surface.fill_rect(0, 0, 2, 2, "#ffffff")
    surface.fill_rect(0, 0, 1, 1, "#000000", alpha=0.5)
    assert surface.pixel(0, 0) == (127.5, 127.5, 127.5)
    assert surface.pixel(1, 1) == (255.0, 255.0, 255.0)
    surface.clear()
    assert surface.pixel(1, 1) == (0.0, 0.0, 0.0)


def test_cell_surface_clips_shapes_outside_bounds() -> None:
    surface = CellSurface(3, 2)
    surface.fill_rect(-5, -5, 100, 6, "#ff0000")
    surface.fill_circle(50, 50, 4, "#00ff00")
    surface.stroke_line(-10, 3, 10, 3, "#0000ff")
    assert surface.pixel(2, 0) == (255.0, 0.0, 0.0)
    assert surface.pixel(1, 3) == (0.0, 0.0, 255.0)
    assert surface.pixel(2, 2) == (0.0, 0.0, 0.0)


def test_cell_surface_exports_half_block_text() -> None:
    surface = CellSurface(3, 2)
    surface.fill_rect(0, 0, 3, 1, "#ff0000")
    text = surface.to_text()
    assert isinstance(text, Text)
    assert text.plain == "▀▀▀\n▀▀▀"
    first_style = text.spans[0].style
    assert not isinstance(first_style, str)
    assert first_style.color is not None
    assert first_style.color.get_truecolor() == (255, 0, 0)


def test_cell_surface_fills_polygons_by_scanline() -> None:
    surface = CellSurface(4, 2)
    surface.fill_polygon([(0, 0), (4, 0), (4, 4), (0, 4)], "#ffffff")
    assert all(
        surface.pixel(x, y) == (255.0, 255.0, 255.0)
        for x in range(4)
        for y in range(4)
    )
