"""Interpolation utilities for text animation envelopes.

Provides clamped linear progress and the animation scale curves. The text
renderer builds its ffmpeg expressions from the same constants and the preview
evaluator calls these functions directly, so exported frames and preview frames
see the same numbers.

Usage:
    from cliplore_export.utils.interpolation import linear_progress, zoom_scale

    p = linear_progress(t=2.2, start=2.0, span=0.4)  # -> 0.5
    scale = zoom_scale(p)                             # -> 0.95
"""

import math

# Scale at p=0 for the zoom animation; grows linearly to 1
ZOOM_FROM = 0.9
# Amplitude of the bounce curve 1 - A*cos(p*pi/2)
BOUNCE_AMPLITUDE = 0.2
# Vertical slide distance in canvas pixels before render scaling
SLIDE_DISTANCE = 30.0


def clamp(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)


def safe_number(value: float | None, fallback: float) -> float:
    """Return value unless it is None or non-finite."""
    if value is None or not math.isfinite(value):
        return fallback
    return value


# =============================================================================
# Animation curves
# =============================================================================


def linear_progress(t: float, start: float, span: float) -> float:
    """Clamped linear progress of t through [start, start + span].

    A non-positive span means the animation is already complete.
    """
    if span <= 0:
        return 1.0
    return clamp((t - start) / span, 0.0, 1.0)


def zoom_scale(progress: float) -> float:
    return ZOOM_FROM + (1 - ZOOM_FROM) * progress


def bounce_scale(progress: float) -> float:
    return 1 - BOUNCE_AMPLITUDE * math.cos(progress * math.pi / 2)


def slide_offset(progress: float, distance: float = SLIDE_DISTANCE) -> float:
    """Decaying vertical offset: ``distance`` at p=0, 0 at p=1."""
    return distance * (1 - progress)

