"""Text overlay rendering.

Features:
- Off-screen RGBA surface per overlay, rendered with Pillow from staged font bytes
- Background fill (``transparent`` maps to alpha 0)
- Left / center / right alignment inside the overlay bounds
- Effect chain: blur -> zoom/bounce scale -> rotate -> opacity -> fade envelope
- Slide animations as a placement-time Y offset
"""

import io
import logging
import re
from dataclasses import dataclass

from PIL import Image, ImageDraw, ImageFont

from cliplore_export.exceptions import MissingFontAsset
from cliplore_export.render.filter_graph import Filter
from cliplore_export.render.planner import TextElement
from cliplore_export.render.transform_pipeline import alpha_filter, blur_filter, rotate_filter
from cliplore_export.utils.interpolation import (
    BOUNCE_AMPLITUDE,
    ZOOM_FROM,
    bounce_scale,
    linear_progress,
    slide_offset,
    zoom_scale,
)

logger = logging.getLogger(__name__)

RGBA = tuple[int, int, int, int]

NAMED_COLORS: dict[str, RGBA] = {
    "white": (255, 255, 255, 255),
    "black": (0, 0, 0, 255),
    "transparent": (0, 0, 0, 0),
}

_HEX_RE = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")

SCALED_ANIMATIONS = ("zoom", "bounce")
SLIDE_ANIMATIONS = ("slide-in", "slide-up")


def parse_color(value: str | None, fallback: str) -> RGBA:
    """Parse ``#RGB``, ``#RRGGBB``, ``#RRGGBBAA`` or a named colour.

    Anything unparseable resolves to ``fallback`` (which must itself parse).
    """
    raw = (value or "").strip().lower()
    if raw == "":
        raw = "transparent"
    if raw in NAMED_COLORS:
        return NAMED_COLORS[raw]
    match = _HEX_RE.match(raw)
    if not match:
        if value != fallback:
            logger.debug(f"[TEXT] Unparseable colour {value!r}, using {fallback}")
            return parse_color(fallback, fallback)
        raise ValueError(f"Invalid fallback colour: {fallback!r}")
    hex_color = match.group(1)
    if len(hex_color) == 3:
        hex_color = "".join(c * 2 for c in hex_color)
    r = int(hex_color[0:2], 16)
    g = int(hex_color[2:4], 16)
    b = int(hex_color[4:6], 16)
    a = int(hex_color[6:8], 16) if len(hex_color) == 8 else 255
    return (r, g, b, a)


# =============================================================================
# Animation envelopes
# =============================================================================


def progress_expr(start: float, span: float) -> str:
    """FFmpeg expression for linear_progress(t, start, span)."""
    return f"min(max((t-{start:.6f})/{span:.6f},0),1)"


def animation_scale_expr(kind: str, start: float, fade_in: float) -> str | None:
    if kind not in SCALED_ANIMATIONS or fade_in <= 0:
        return None
    p = progress_expr(start, fade_in)
    if kind == "zoom":
        return f"{ZOOM_FROM:g}+{1 - ZOOM_FROM:g}*{p}"
    return f"1-{BOUNCE_AMPLITUDE:g}*cos({p}*PI/2)"


def slide_offset_expr(kind: str, start: float, fade_in: float, distance: float) -> str | None:
    if kind not in SLIDE_ANIMATIONS or fade_in <= 0:
        return None
    return f"{distance:g}*(1-{progress_expr(start, fade_in)})"


def animation_scale(kind: str, t: float, start: float, fade_in: float) -> float:
    """Python twin of animation_scale_expr for preview evaluation."""
    if kind not in SCALED_ANIMATIONS or fade_in <= 0:
        return 1.0
    p = linear_progress(t, start, fade_in)
    return zoom_scale(p) if kind == "zoom" else bounce_scale(p)


def slide_offset_at(kind: str, t: float, start: float, fade_in: float, distance: float) -> float:
    if kind not in SLIDE_ANIMATIONS or fade_in <= 0:
        return 0.0
    return slide_offset(linear_progress(t, start, fade_in), distance)


def fade_envelope(t: float, start: float, end: float, fade_in: float, fade_out: float) -> float:
    """Linear 0->1 over [start, start+fade_in], 1->0 over [fade_out_start, end]."""
    level = linear_progress(t, start, fade_in) if fade_in > 0 else 1.0
    if fade_out > 0:
        fade_out_start = max(start, end - fade_out)
        level = min(level, 1.0 - linear_progress(t, fade_out_start, end - fade_out_start))
    return level


# =============================================================================
# Surfaces and filter chains
# =============================================================================


@dataclass(frozen=True)
class TextSurface:
    """A rendered PNG ready to stage into backend working storage."""

    name: str
    data: bytes
    width: int
    height: int


class TextRenderer:
    """Builds text surfaces and their effect chains."""

    def load_font(self, family: str, font_bytes: bytes, size: int) -> ImageFont.FreeTypeFont:
        try:
            return ImageFont.truetype(io.BytesIO(font_bytes), size)
        except OSError as e:
            raise MissingFontAsset(family) from e

    def render_surface(self, element: TextElement, font_bytes: bytes) -> TextSurface:
        """Render background + text into an RGBA PNG sized to the overlay bounds."""
        style = element.overlay.style
        font = self.load_font(element.font_family, font_bytes, element.font_size)

        background = parse_color(style.background_color, "transparent")
        img = Image.new("RGBA", (element.width, element.height), background)

        text = element.overlay.text or ""
        if text.strip():
            # Draw on a separate layer so antialiased edges blend over the fill
            layer = Image.new("RGBA", img.size, (0, 0, 0, 0))
            draw = ImageDraw.Draw(layer)
            bbox = draw.multiline_textbbox((0, 0), text, font=font, align=style.align)
            text_width = bbox[2] - bbox[0]

            if style.align == "center":
                x = (element.width - text_width) / 2
            elif style.align == "right":
                x = element.width - text_width
            else:
                x = 0

            # Offset by the bbox origin so the ink box, not the pen origin, is aligned
            draw.multiline_text(
                (x - bbox[0], 0),
                text,
                font=font,
                fill=parse_color(style.color, "#ffffff"),
                align=style.align,
            )
            img = Image.alpha_composite(img, layer)
        else:
            logger.debug(f"[TEXT] Overlay {element.overlay.id} has no text, painting background only")

        buf = io.BytesIO()
        img.save(buf, "PNG")
        logger.info(
            f"[TEXT] Rendered {element.surface_name} ({element.width}x{element.height}, "
            f"font={element.font_family} {element.font_size}px, align={style.align})"
        )
        return TextSurface(
            name=element.surface_name,
            data=buf.getvalue(),
            width=element.width,
            height=element.height,
        )

    def effect_chain(self, element: TextElement) -> list[Filter]:
        """blur -> animation scale -> rotate -> opacity -> fade in -> fade out."""
        transform = element.overlay.transform
        animation = element.overlay.animation.kind
        filters = [Filter("format", "rgba")]

        blur = blur_filter(element.blur_sigma)
        if blur:
            filters.append(blur)

        scale_expr = animation_scale_expr(animation, element.start, element.fade_in)
        if scale_expr:
            filters.append(Filter("scale", f"w='iw*({scale_expr})':h='ih*({scale_expr})':eval=frame"))

        rotate = rotate_filter(transform.rotation)
        if rotate:
            filters.append(rotate)

        filters.append(alpha_filter(transform.opacity))

        if element.fade_in > 0:
            filters.append(Filter("fade", f"t=in:st={element.start:.6f}:d={element.fade_in:.6f}:alpha=1"))
        if element.fade_out > 0:
            fade_out_start = element.fade_out_start
            filters.append(
                Filter(
                    "fade",
                    f"t=out:st={fade_out_start:.6f}:d={element.end - fade_out_start:.6f}:alpha=1",
                )
            )
        return filters
