"""
Compositing planner.

Turns a frozen TimelineModel into a CompositionPlan: one typed element per
clip or text overlay, a paint-ordered overlay list for the visual elements,
and the audio-capable clips routed to the mixer. Every backend and the preview
evaluator consume the same plan.
"""

import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Literal

from cliplore_export.config import Settings, get_settings
from cliplore_export.constants.export_presets import DEFAULT_EXT_BY_KIND, MIME_TO_EXT
from cliplore_export.exceptions import InvalidTimeline
from cliplore_export.render.timing import TrimWindow, compute_trim, seconds_to_frames
from cliplore_export.render.transform_pipeline import ElementGeometry, blur_sigma, resolve_geometry
from cliplore_export.schemas.timeline import Clip, ExportConfig, TextOverlay, TimelineModel
from cliplore_export.utils.interpolation import SLIDE_DISTANCE, clamp, safe_number

logger = logging.getLogger(__name__)

# Track precedence multiplier. Element z-index is clamped to [-K/2, K/2 - 1]
# so negative values still sort below zero and the track order always dominates.
Z_TRACK_STRIDE = 1000
Z_INDEX_MIN = -(Z_TRACK_STRIDE // 2)
Z_INDEX_MAX = Z_TRACK_STRIDE // 2 - 1
MAX_FADE_SECONDS = 60.0
DEFAULT_FADE_SECONDS = 0.4

OverlayKind = Literal["media", "text"]
_KIND_RANK = {"media": 0, "text": 1}


def effective_z(track_order: int, z_index: int) -> int:
    return track_order * Z_TRACK_STRIDE + int(clamp(z_index, Z_INDEX_MIN, Z_INDEX_MAX))


def render_scale_for(canvas_width: int, canvas_height: int, output_width: int, output_height: int) -> float:
    """Uniform canvas -> output scale that fits the canvas inside the output frame."""
    return min(output_width / canvas_width, output_height / canvas_height)


def staged_source_name(clip: Clip, index: int) -> str:
    """Working-storage file name for a clip's source bytes."""
    ext = MIME_TO_EXT.get((clip.mime_type or "").lower())
    if ext is None:
        suffix = PurePosixPath(clip.source_ref.split("?", 1)[0]).suffix.lstrip(".").lower()
        ext = suffix if suffix.isalnum() and suffix else DEFAULT_EXT_BY_KIND[clip.kind]
    return f"input{index}.{ext}"


def font_file_name(family: str) -> str:
    return f"font-{family}.ttf"


# =============================================================================
# Element variants
# =============================================================================


@dataclass(frozen=True)
class VideoElement:
    """Moving picture: trimmed in source time, then shifted onto the timeline."""

    clip: Clip
    index: int
    staged_name: str
    trim: TrimWindow
    geometry: ElementGeometry

    kind = "video"


@dataclass(frozen=True)
class ImageElement:
    """Still picture held for the clip's on-timeline duration."""

    clip: Clip
    index: int
    staged_name: str
    trim: TrimWindow
    geometry: ElementGeometry

    kind = "image"


@dataclass(frozen=True)
class AudioElement:
    """Audio-capable clip routed to the mixer (video clips produce one too)."""

    clip: Clip
    index: int
    staged_name: str
    trim: TrimWindow
    label: str

    kind = "audio"


@dataclass(frozen=True)
class TextElement:
    overlay: TextOverlay
    index: int
    font_family: str
    font_size: int
    width: int
    height: int
    x: int
    y: int
    fade_in: float
    fade_out: float
    blur_sigma: float

    kind = "text"

    @property
    def surface_name(self) -> str:
        return f"text{self.index}.png"

    @property
    def start(self) -> float:
        return self.overlay.position.start

    @property
    def end(self) -> float:
        return self.overlay.position.end

    @property
    def fade_out_start(self) -> float:
        """A fade-out longer than the overlay spans the whole overlay."""
        return max(self.start, self.end - self.fade_out)


MediaElement = VideoElement | ImageElement
VisualElement = VideoElement | ImageElement | TextElement
SourceElement = VideoElement | ImageElement | AudioElement


@dataclass(frozen=True)
class PlannedOverlay:
    """One paintable element in paint order."""

    visual_label: str
    bounds_width: int
    bounds_height: int
    x: int
    y: int
    start: float
    end: float
    effective_z: int
    kind: OverlayKind
    original_order: int
    animation_kind: str
    fade_in_seconds: float
    element: VisualElement

    @property
    def sort_key(self) -> tuple[int, int, int]:
        return (self.effective_z, _KIND_RANK[self.kind], self.original_order)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "visual_label": self.visual_label,
            "bounds_width": self.bounds_width,
            "bounds_height": self.bounds_height,
            "x": self.x,
            "y": self.y,
            "start": self.start,
            "end": self.end,
            "effective_z": self.effective_z,
            "kind": self.kind,
            "original_order": self.original_order,
            "animation_kind": self.animation_kind,
            "fade_in_seconds": self.fade_in_seconds,
        }


@dataclass(frozen=True)
class CompositionPlan:
    """Everything a backend needs, already resolved and ordered."""

    project_name: str
    config: ExportConfig
    output_width: int
    output_height: int
    fps: int
    total_duration: float
    render_scale: float
    sources: tuple[SourceElement, ...]
    overlays: tuple[PlannedOverlay, ...]
    audio: tuple[AudioElement, ...]
    texts: tuple[TextElement, ...]
    fonts: tuple[str, ...]

    @property
    def total_frames(self) -> int:
        return max(1, seconds_to_frames(self.total_duration, self.fps))

    @property
    def slide_distance(self) -> float:
        return SLIDE_DISTANCE * self.render_scale

    @property
    def staged_sources(self) -> dict[str, Clip]:
        """Staged file name -> clip, one entry per distinct input file."""
        staged: dict[str, Clip] = {}
        for element in self.sources:
            staged.setdefault(element.staged_name, element.clip)
        return staged


# =============================================================================
# Planner
# =============================================================================


def resolve_font(family: str | None, settings: Settings | None = None) -> str:
    """Map a requested font family to one we can load, falling back to the default."""
    settings = settings or get_settings()
    raw = (family or "").strip()
    if raw in settings.render_supported_fonts:
        return raw
    logger.warning(f"[TEXT] Unsupported font {raw!r}, falling back to {settings.render_default_font}")
    return settings.render_default_font


class CompositingPlanner:
    """Resolves paint order and per-element geometry for one export job."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def plan(self, timeline: TimelineModel, config: ExportConfig) -> CompositionPlan:
        if timeline.is_empty:
            raise InvalidTimeline()

        total_duration = timeline.total_duration
        if total_duration <= 0:
            raise InvalidTimeline("Timeline duration must be positive")

        output_width, output_height = config.output_size
        scale = render_scale_for(timeline.canvas_width, timeline.canvas_height, output_width, output_height)
        fps = config.fps

        sources: list[SourceElement] = []
        audio: list[AudioElement] = []
        overlays: list[PlannedOverlay] = []
        texts: list[TextElement] = []

        for i, clip in enumerate(timeline.clips):
            if clip.position.is_degenerate:
                logger.warning(
                    f"[PLAN] Dropping clip {clip.id}: end {clip.position.end} <= start {clip.position.start}"
                )
                continue

            trim = compute_trim(clip, fps)
            staged_name = staged_source_name(clip, i)

            if clip.is_visual:
                geometry = resolve_geometry(clip.transform, timeline.canvas_width, timeline.canvas_height, scale)
                variant = VideoElement if clip.kind == "video" else ImageElement
                element = variant(clip=clip, index=i, staged_name=staged_name, trim=trim, geometry=geometry)
                sources.append(element)
                overlays.append(self._media_overlay(element, timeline))

            if clip.has_audio:
                audio_element = AudioElement(
                    clip=clip, index=i, staged_name=staged_name, trim=trim, label=f"audio{i}"
                )
                audio.append(audio_element)
                if not clip.is_visual:
                    sources.append(audio_element)

        for j, overlay in enumerate(timeline.texts):
            if overlay.position.is_degenerate:
                logger.warning(
                    f"[PLAN] Dropping text {overlay.id}: end {overlay.position.end} <= start {overlay.position.start}"
                )
                continue
            element = self._text_element(overlay, j, scale)
            texts.append(element)
            overlays.append(self._text_overlay(element, timeline))

        overlays.sort(key=lambda ov: ov.sort_key)

        fonts: list[str] = []
        for element in texts:
            if element.font_family not in fonts:
                fonts.append(element.font_family)

        logger.info(
            f"[PLAN] {len(overlays)} overlays, {len(audio)} audio streams, "
            f"{len(fonts)} fonts, {total_duration:.3f}s at {output_width}x{output_height}@{fps} (scale={scale:g})"
        )

        return CompositionPlan(
            project_name=timeline.project_name,
            config=config,
            output_width=output_width,
            output_height=output_height,
            fps=fps,
            total_duration=total_duration,
            render_scale=scale,
            sources=tuple(sources),
            overlays=tuple(overlays),
            audio=tuple(audio),
            texts=tuple(texts),
            fonts=tuple(fonts),
        )

    def _media_overlay(self, element: MediaElement, timeline: TimelineModel) -> PlannedOverlay:
        clip = element.clip
        start = clip.position.start
        return PlannedOverlay(
            visual_label=f"visual{element.index}",
            bounds_width=element.geometry.crop_width,
            bounds_height=element.geometry.crop_height,
            x=element.geometry.x,
            y=element.geometry.y,
            start=start,
            # Shortened by the trim when the source runs out before the slot ends
            end=start + element.trim.timeline_duration_seconds,
            effective_z=effective_z(timeline.track_order(clip.track_id), clip.z_index),
            kind="media",
            original_order=element.index,
            animation_kind="none",
            fade_in_seconds=0.0,
            element=element,
        )

    def _text_element(self, overlay: TextOverlay, index: int, scale: float) -> TextElement:
        transform = overlay.transform
        return TextElement(
            overlay=overlay,
            index=index,
            font_family=resolve_font(overlay.style.font, self.settings),
            font_size=max(1, round(safe_number(overlay.style.font_size, 24) * scale)),
            width=max(1, round(transform.width * scale)),
            height=max(1, round(transform.height * scale)),
            x=round(safe_number(transform.x, 0) * scale),
            y=round(safe_number(transform.y, 0) * scale),
            fade_in=clamp(safe_number(overlay.animation.fade_in_seconds, DEFAULT_FADE_SECONDS), 0, MAX_FADE_SECONDS),
            fade_out=clamp(safe_number(overlay.animation.fade_out_seconds, DEFAULT_FADE_SECONDS), 0, MAX_FADE_SECONDS),
            blur_sigma=blur_sigma(transform.blur, scale),
        )

    def _text_overlay(self, element: TextElement, timeline: TimelineModel) -> PlannedOverlay:
        overlay = element.overlay
        return PlannedOverlay(
            visual_label=f"textvis{element.index}",
            bounds_width=element.width,
            bounds_height=element.height,
            x=element.x,
            y=element.y,
            start=element.start,
            end=element.end,
            effective_z=effective_z(timeline.track_order(overlay.track_id), overlay.z_index),
            kind="text",
            original_order=element.index,
            animation_kind=overlay.animation.kind,
            fade_in_seconds=element.fade_in,
            element=element,
        )


def plan_composition(
    timeline: TimelineModel,
    config: ExportConfig,
    settings: Settings | None = None,
) -> CompositionPlan:
    return CompositingPlanner(settings).plan(timeline, config)
