"""
Tests for text surfaces, text effect chains and animation envelopes.

Surfaces are rendered with Pillow's bundled font (see the default_font
fixture) so no .ttf files are needed.
"""

import io

import pytest
from PIL import Image

from cliplore_export.exceptions import MissingFontAsset
from cliplore_export.render.planner import plan_composition
from cliplore_export.render.text_renderer import (
    TextRenderer,
    animation_scale,
    animation_scale_expr,
    fade_envelope,
    parse_color,
    slide_offset_at,
    slide_offset_expr,
)
from cliplore_export.schemas.timeline import ExportConfig, TextAnimation, TextStyle, TextTransform
from tests.factories import make_text, make_timeline


def plan_text(settings, **kwargs):
    """Plan a single text overlay and return its TextElement."""
    plan = plan_composition(make_timeline(texts=[make_text("t", **kwargs)]), ExportConfig(), settings)
    return plan.texts[0]


def decode(surface) -> Image.Image:
    return Image.open(io.BytesIO(surface.data)).convert("RGBA")


class TestParseColor:
    def test_hex_forms(self):
        """Short, long and alpha hex colours all parse."""
        assert parse_color("#ff0000", "#ffffff") == (255, 0, 0, 255)
        assert parse_color("#abc", "#ffffff") == (170, 187, 204, 255)
        assert parse_color("#00000080", "#ffffff") == (0, 0, 0, 128)

    def test_named_colours(self):
        """white, black and transparent are recognised, case-insensitively."""
        assert parse_color("White", "#000000") == (255, 255, 255, 255)
        assert parse_color("transparent", "#ffffff") == (0, 0, 0, 0)

    def test_empty_is_transparent(self):
        """An empty or missing colour means no fill."""
        assert parse_color(None, "transparent") == (0, 0, 0, 0)
        assert parse_color("", "#ffffff") == (0, 0, 0, 0)

    def test_unparseable_uses_fallback(self):
        """Garbage resolves to the fallback colour."""
        assert parse_color("not-a-colour", "#ffffff") == (255, 255, 255, 255)

    def test_invalid_fallback_raises(self):
        """The fallback itself must be valid."""
        with pytest.raises(ValueError):
            parse_color("nope", "nope")


class TestEnvelopes:
    def test_fade_out_longer_than_overlay(self, settings):
        """A 5s fade-out on a 3s overlay starts at the overlay start."""
        element = plan_text(
            settings,
            start=0,
            end=3,
            animation=TextAnimation(kind="fade", fade_in_seconds=0, fade_out_seconds=5),
        )
        assert element.fade_out_start == 0
        assert fade_envelope(0.0, 0, 3, 0, 5) == pytest.approx(1.0)
        assert fade_envelope(1.5, 0, 3, 0, 5) == pytest.approx(0.5)
        assert fade_envelope(3.0, 0, 3, 0, 5) == pytest.approx(0.0)

    def test_fade_in_and_out(self):
        """Default 0.4s fades on a 2..4 overlay."""
        assert fade_envelope(2.0, 2, 4, 0.4, 0.4) == pytest.approx(0.0)
        assert fade_envelope(2.2, 2, 4, 0.4, 0.4) == pytest.approx(0.5)
        assert fade_envelope(3.0, 2, 4, 0.4, 0.4) == pytest.approx(1.0)
        assert fade_envelope(3.8, 2, 4, 0.4, 0.4) == pytest.approx(0.5)

    def test_no_fades(self):
        """Zero-length fades leave the overlay fully opaque."""
        assert fade_envelope(0.0, 0, 3, 0, 0) == 1.0

    def test_zoom_and_bounce_scale(self):
        """Zoom grows 0.9 -> 1 and bounce 0.8 -> 1 over the fade-in."""
        assert animation_scale("zoom", 2.0, 2.0, 0.4) == pytest.approx(0.9)
        assert animation_scale("zoom", 2.2, 2.0, 0.4) == pytest.approx(0.95)
        assert animation_scale("zoom", 9.0, 2.0, 0.4) == pytest.approx(1.0)
        assert animation_scale("bounce", 2.0, 2.0, 0.4) == pytest.approx(0.8)
        assert animation_scale("bounce", 2.4, 2.0, 0.4) == pytest.approx(1.0)
        assert animation_scale("fade", 2.0, 2.0, 0.4) == 1.0

    def test_slide_offset(self):
        """Slides start 30px low and settle at 0."""
        assert slide_offset_at("slide-up", 2.0, 2.0, 0.4, 30) == pytest.approx(30)
        assert slide_offset_at("slide-in", 2.2, 2.0, 0.4, 30) == pytest.approx(15)
        assert slide_offset_at("slide-up", 3.0, 2.0, 0.4, 30) == pytest.approx(0)
        assert slide_offset_at("zoom", 2.0, 2.0, 0.4, 30) == 0.0

    def test_expressions_match_python_curves(self):
        """Expression builders only emit for their animation kinds."""
        assert animation_scale_expr("zoom", 2, 0.4) == "0.9+0.1*min(max((t-2.000000)/0.400000,0),1)"
        assert animation_scale_expr("bounce", 2, 0.4) == "1-0.2*cos(min(max((t-2.000000)/0.400000,0),1)*PI/2)"
        assert animation_scale_expr("slide-up", 2, 0.4) is None
        assert animation_scale_expr("zoom", 2, 0) is None
        assert slide_offset_expr("slide-up", 2, 0.4, 20) == "20*(1-min(max((t-2.000000)/0.400000,0),1))"
        assert slide_offset_expr("fade", 2, 0.4, 20) is None


class TestEffectChain:
    def test_fade_filters(self, settings):
        """Default fades on a 2..4 overlay become alpha fade filters."""
        element = plan_text(settings, start=2, end=4, animation="fade")
        chain = [f.serialize() for f in TextRenderer().effect_chain(element)]
        assert chain == [
            "format=rgba",
            "colorchannelmixer=aa=1",
            "fade=t=in:st=2.000000:d=0.400000:alpha=1",
            "fade=t=out:st=3.600000:d=0.400000:alpha=1",
        ]

    def test_fade_out_spans_whole_overlay(self, settings):
        """Scenario with fade-out longer than the overlay: one fade over the full span."""
        element = plan_text(
            settings,
            start=0,
            end=3,
            animation=TextAnimation(kind="fade", fade_in_seconds=0, fade_out_seconds=5),
        )
        chain = [f.serialize() for f in TextRenderer().effect_chain(element)]
        assert chain[-1] == "fade=t=out:st=0.000000:d=3.000000:alpha=1"
        assert not any(s.startswith("fade=t=in") for s in chain)

    def test_operator_order(self, settings):
        """blur -> animation scale -> rotate -> opacity -> fade in -> fade out."""
        element = plan_text(
            settings,
            start=2,
            end=4,
            animation="zoom",
            transform=TextTransform(blur=3, rotation=10, opacity=80),
        )
        chain = TextRenderer().effect_chain(element)
        assert [f.name for f in chain] == [
            "format",
            "gblur",
            "scale",
            "rotate",
            "colorchannelmixer",
            "fade",
            "fade",
        ]
        assert chain[2].args == (
            "w='iw*(0.9+0.1*min(max((t-2.000000)/0.400000,0),1))'"
            ":h='ih*(0.9+0.1*min(max((t-2.000000)/0.400000,0),1))':eval=frame"
        )
        assert chain[4].args == "aa=0.8"


class TestRenderSurface:
    def test_surface_matches_overlay_bounds(self, settings, default_font):
        """The PNG has the overlay's output size and is named after its index."""
        element = plan_text(settings, transform=TextTransform(width=320, height=90))
        surface = TextRenderer().render_surface(element, b"")
        image = decode(surface)
        assert surface.name == "text0.png"
        assert image.size == (320, 90)
        assert (surface.width, surface.height) == (320, 90)

    def test_background_fill(self, settings, default_font):
        """The background colour fills the surface, alpha included."""
        element = plan_text(
            settings,
            text="Hi",
            transform=TextTransform(width=200, height=80),
            style=TextStyle(background_color="#ff000080"),
        )
        image = decode(TextRenderer().render_surface(element, b""))
        assert image.getpixel((199, 79)) == (255, 0, 0, 128)

    def test_transparent_background(self, settings, default_font):
        """transparent leaves untouched pixels fully transparent."""
        element = plan_text(settings, text="Hi", transform=TextTransform(width=200, height=80))
        image = decode(TextRenderer().render_surface(element, b""))
        assert image.getpixel((199, 79))[3] == 0

    def test_blank_text_paints_background_only(self, settings, default_font):
        """Whitespace-only text still produces a filled surface."""
        element = plan_text(
            settings,
            text="   ",
            transform=TextTransform(width=40, height=20),
            style=TextStyle(background_color="#00ff00"),
        )
        image = decode(TextRenderer().render_surface(element, b""))
        assert image.getcolors() == [(40 * 20, (0, 255, 0, 255))]

    @pytest.mark.parametrize(
        "align,check",
        [
            ("left", lambda box, width: box[0] <= 4),
            ("right", lambda box, width: box[2] >= width - 4),
            ("center", lambda box, width: abs((box[0] + box[2]) / 2 - width / 2) <= 4),
        ],
    )
    def test_alignment(self, settings, default_font, align, check):
        """Ink is placed at the left edge, right edge or centre of the bounds."""
        element = plan_text(
            settings,
            text="Hello",
            transform=TextTransform(width=400, height=100),
            style=TextStyle(align=align, font_size=40),
        )
        image = decode(TextRenderer().render_surface(element, b""))
        box = image.getbbox()
        assert box is not None
        assert check(box, 400)

    def test_unreadable_font_bytes(self, settings):
        """Bytes that are not a font surface as MissingFontAsset."""
        element = plan_text(settings)
        with pytest.raises(MissingFontAsset) as exc_info:
            TextRenderer().render_surface(element, b"definitely not a font")
        assert exc_info.value.family == "Inter"
