"""
Per-element visual operator chain for media clips.

Operators always run in the order scale -> blur -> crop -> rotate -> alpha.
Blur sees the uncropped neighbourhood, and the alpha scale is last so that no
later stage can renormalize transparency.
"""

import logging
import math
from dataclasses import dataclass

from cliplore_export.render.filter_graph import Filter
from cliplore_export.schemas.timeline import ClipTransform, Crop
from cliplore_export.utils.interpolation import clamp, safe_number

logger = logging.getLogger(__name__)

MAX_BLUR_SIGMA = 60.0


def _safe_int(value: float | None, fallback: float) -> int:
    """Round to a positive pixel count."""
    return max(1, round(safe_number(value, fallback)))


@dataclass(frozen=True)
class ElementGeometry:
    """Resolved pixel geometry of a media element at output resolution."""

    x: int
    y: int
    scale_width: int
    scale_height: int
    crop_x: int
    crop_y: int
    crop_width: int
    crop_height: int

    @property
    def bounds(self) -> tuple[int, int]:
        return self.crop_width, self.crop_height


def resolve_geometry(
    transform: ClipTransform,
    canvas_width: int,
    canvas_height: int,
    render_scale: float = 1.0,
) -> ElementGeometry:
    """Scale an element's canvas-space transform to output pixels.

    The crop window is clamped inside the scaled element bounds.
    """
    width = _safe_int(safe_number(transform.width, canvas_width) * render_scale, canvas_width)
    height = _safe_int(safe_number(transform.height, canvas_height) * render_scale, canvas_height)

    crop = transform.crop
    if crop is None:
        crop_width, crop_height, crop_x, crop_y = width, height, 0, 0
    else:
        crop_width = int(clamp(_safe_int(crop.width * render_scale, width), 1, width))
        crop_height = int(clamp(_safe_int(crop.height * render_scale, height), 1, height))
        crop_x = int(clamp(round(safe_number(crop.x, 0) * render_scale), 0, width - crop_width))
        crop_y = int(clamp(round(safe_number(crop.y, 0) * render_scale), 0, height - crop_height))
        if (crop_width, crop_height) != (round(crop.width * render_scale), round(crop.height * render_scale)):
            logger.debug(f"[CLIP] Crop {crop.width}x{crop.height} clamped to {crop_width}x{crop_height}")

    return ElementGeometry(
        x=round(safe_number(transform.x, 0) * render_scale),
        y=round(safe_number(transform.y, 0) * render_scale),
        scale_width=width,
        scale_height=height,
        crop_x=crop_x,
        crop_y=crop_y,
        crop_width=crop_width,
        crop_height=crop_height,
    )


def resize_uniform(
    transform: ClipTransform,
    rendered_width: float,
    canvas_width: int = 1920,
    canvas_height: int = 1080,
) -> ClipTransform:
    """Resize an element so its visible (cropped) width becomes ``rendered_width``.

    A single scale factor is applied to the crop window and the stored
    width/height alike, so a one-axis drag never distorts the element.
    """
    width = safe_number(transform.width, canvas_width)
    height = safe_number(transform.height, canvas_height)
    visible_width = transform.crop.width if transform.crop else width
    if rendered_width <= 0 or visible_width <= 0:
        raise ValueError("rendered_width and the current visible width must be positive")

    scale = rendered_width / visible_width
    crop = None
    if transform.crop is not None:
        crop = Crop(
            x=transform.crop.x * scale,
            y=transform.crop.y * scale,
            width=transform.crop.width * scale,
            height=transform.crop.height * scale,
        )
    return transform.model_copy(update={"width": width * scale, "height": height * scale, "crop": crop})


# =============================================================================
# Operator builders
# =============================================================================


def blur_sigma(blur: float, render_scale: float = 1.0) -> float:
    return clamp(safe_number(blur, 0) * render_scale, 0, MAX_BLUR_SIGMA)


def alpha_value(opacity: float) -> float:
    return clamp(safe_number(opacity, 100) / 100, 0.0, 1.0)


def blur_filter(sigma: float) -> Filter | None:
    if sigma <= 0:
        return None
    return Filter("gblur", f"sigma={sigma:g}:steps=2")


def rotated_size(width: float, height: float, rotation_deg: float) -> tuple[float, float]:
    """Size of a width x height frame after rotate_filter grows it to the rotated bounding box."""
    rotation_deg = safe_number(rotation_deg, 0)
    if abs(rotation_deg) < 0.01:
        return float(width), float(height)
    rad = math.radians(rotation_deg)
    cos_a, sin_a = abs(math.cos(rad)), abs(math.sin(rad))
    return width * cos_a + height * sin_a, width * sin_a + height * cos_a


def rotate_filter(rotation_deg: float) -> Filter | None:
    """Rotate with the canvas grown to the rotated bounding box, corners transparent."""
    rotation_deg = safe_number(rotation_deg, 0)
    if abs(rotation_deg) < 0.01:
        return None
    rad = f"{math.radians(rotation_deg):.6f}"
    return Filter("rotate", f"{rad}:ow=rotw({rad}):oh=roth({rad}):fillcolor=black@0")


def alpha_filter(opacity: float) -> Filter:
    return Filter("colorchannelmixer", f"aa={alpha_value(opacity):g}")


def visual_chain(
    transform: ClipTransform,
    geometry: ElementGeometry,
    render_scale: float = 1.0,
) -> list[Filter]:
    """scale -> blur -> crop -> rotate -> alpha for one media element."""
    filters = [
        Filter("scale", f"{geometry.scale_width}:{geometry.scale_height}"),
        # RGBA from here on so blur, crop and rotate keep transparency
        Filter("format", "rgba"),
    ]
    blur = blur_filter(blur_sigma(transform.blur, render_scale))
    if blur:
        filters.append(blur)
    filters.append(
        Filter(
            "crop",
            f"{geometry.crop_width}:{geometry.crop_height}:{geometry.crop_x}:{geometry.crop_y}",
        )
    )
    rotate = rotate_filter(transform.rotation)
    if rotate:
        filters.append(rotate)
    filters.append(alpha_filter(transform.opacity))
    return filters


def video_time_filters(
    source_start: float,
    source_span: float,
    timeline_start: float,
    playback_speed: float,
) -> list[Filter]:
    """Trim in source time, then shift (and retime) into timeline time."""
    if abs(playback_speed - 1.0) < 1e-9:
        pts = f"PTS-STARTPTS+{timeline_start:.6f}/TB"
    else:
        pts = f"(PTS-STARTPTS)/{playback_speed:g}+{timeline_start:.6f}/TB"
    return [
        Filter("trim", f"start={source_start:.6f}:duration={source_span:.6f}"),
        Filter("setpts", pts),
    ]


def time_shift_filter(timeline_start: float) -> Filter:
    return Filter("setpts", f"PTS-STARTPTS+{timeline_start:.6f}/TB")


def still_image_input_options(duration: float, fps: int) -> tuple[str, ...]:
    """Hold a still image for ``duration`` seconds."""
    return ("-loop", "1", "-framerate", str(fps), "-t", f"{duration:.6f}")
