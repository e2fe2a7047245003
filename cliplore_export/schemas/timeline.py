"""Timeline snapshot schemas.

The editing layer hands the engine one frozen snapshot per export job. Every
model here is immutable; the engine derives everything else from it and never
writes back. snake_case field names are canonical, camelCase aliases from the
editor are accepted.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cliplore_export.constants.export_presets import (
    DEFAULT_RESOLUTION,
    FORMAT_MIME_TYPES,
    QUALITY_BITRATES,
    QUALITY_CRF,
    RESOLUTION_SIZES,
    SPEED_PRESETS,
)

MediaKind = Literal["video", "image", "audio"]
AnimationKind = Literal["none", "fade", "slide-in", "slide-up", "zoom", "bounce"]
TextAlign = Literal["left", "center", "right"]

DEFAULT_CANVAS_WIDTH = 1920
DEFAULT_CANVAS_HEIGHT = 1080


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# =============================================================================
# Geometry / time ranges
# =============================================================================


class Crop(FrozenModel):
    """Crop window in the element's own pixel space (before rotation)."""

    x: float = 0
    y: float = 0
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class ClipTransform(FrozenModel):
    """Placement of a media clip on the canvas.

    width/height are the element's display size; when omitted the element
    fills the canvas.
    """

    x: float = 0
    y: float = 0
    width: float | None = Field(default=None, gt=0)
    height: float | None = Field(default=None, gt=0)
    rotation: float = 0
    opacity: float = 100
    blur: float = 0
    crop: Crop | None = None


class TextTransform(FrozenModel):
    x: float = 0
    y: float = 0
    width: float = Field(default=800, gt=0)
    height: float = Field(default=200, gt=0)
    rotation: float = 0
    opacity: float = 100
    blur: float = 0


class Trim(FrozenModel):
    """Source-time window in seconds. A missing end means "as long as the slot needs"."""

    start: float = 0
    end: float | None = None


class TimelinePosition(FrozenModel):
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def is_degenerate(self) -> bool:
        return not self.end > self.start


# =============================================================================
# Elements
# =============================================================================


class Clip(FrozenModel):
    """A placed, trimmed reference to a media source."""

    id: str
    kind: MediaKind
    source_ref: str = Field(alias="sourceRef")
    mime_type: str | None = Field(default=None, alias="mimeType")
    trim: Trim = Field(default_factory=Trim)
    source_duration: float | None = Field(default=None, alias="sourceDuration")
    position: TimelinePosition = Field(alias="timelinePosition")
    playback_speed: float = Field(default=1.0, gt=0, alias="playbackSpeed")
    transform: ClipTransform = Field(default_factory=ClipTransform)
    volume: float = Field(default=100, ge=0, le=100)
    track_id: str | None = Field(default=None, alias="trackId")
    z_index: int = Field(default=0, alias="zIndex")

    @property
    def is_visual(self) -> bool:
        return self.kind in ("video", "image")

    @property
    def has_audio(self) -> bool:
        return self.kind in ("video", "audio")


class TextStyle(FrozenModel):
    font: str = "Inter"
    font_size: float = Field(default=24, alias="fontSize")
    color: str = "#ffffff"
    background_color: str = Field(default="transparent", alias="backgroundColor")
    align: TextAlign = "left"


class TextAnimation(FrozenModel):
    kind: AnimationKind = "none"
    fade_in_seconds: float = Field(default=0.4, alias="fadeInSeconds")
    fade_out_seconds: float = Field(default=0.4, alias="fadeOutSeconds")


class TextOverlay(FrozenModel):
    id: str
    text: str = ""
    position: TimelinePosition = Field(alias="timelinePosition")
    transform: TextTransform = Field(default_factory=TextTransform)
    style: TextStyle = Field(default_factory=TextStyle)
    animation: TextAnimation = Field(default_factory=TextAnimation)
    track_id: str | None = Field(default=None, alias="trackId")
    z_index: int = Field(default=0, alias="zIndex")


class Track(FrozenModel):
    id: str
    order: int


class TimelineModel(FrozenModel):
    """Read-only project snapshot for one export job."""

    project_name: str = Field(default="", alias="projectName")
    duration_seconds: float | None = Field(default=None, alias="durationSeconds")
    canvas_width: int = Field(default=DEFAULT_CANVAS_WIDTH, gt=0, alias="canvasWidth")
    canvas_height: int = Field(default=DEFAULT_CANVAS_HEIGHT, gt=0, alias="canvasHeight")
    tracks: tuple[Track, ...] = ()
    clips: tuple[Clip, ...] = ()
    texts: tuple[TextOverlay, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.clips and not self.texts

    @property
    def total_duration(self) -> float:
        """Declared duration, or the furthest element end when none is declared."""
        if self.duration_seconds is not None and self.duration_seconds > 0:
            return self.duration_seconds
        ends = [c.position.end for c in self.clips] + [t.position.end for t in self.texts]
        return max([0.0, *ends])

    def track_order(self, track_id: str | None) -> int:
        """Precedence of a track; elements on missing or unknown tracks sit at order 0."""
        if track_id is None:
            return 0
        for track in self.tracks:
            if track.id == track_id:
                return track.order
        return 0


# =============================================================================
# Export configuration
# =============================================================================


class ExportConfig(FrozenModel):
    resolution: str = DEFAULT_RESOLUTION
    quality: Literal["low", "medium", "high", "ultra"] = "high"
    speed: Literal["fastest", "fast", "balanced", "slow", "slowest"] = "fastest"
    fps: int = Field(default=30, gt=0, le=240)
    format: Literal["mp4", "mov", "webm", "gif"] = "mp4"
    render_engine: Literal["cpu", "gpu"] = Field(default="cpu", alias="renderEngine")

    @field_validator("render_engine", mode="before")
    @classmethod
    def normalize_engine(cls, v):
        # The editor historically called the software engine "ffmpeg"
        if v == "ffmpeg":
            return "cpu"
        return v

    @property
    def output_size(self) -> tuple[int, int]:
        return RESOLUTION_SIZES.get(self.resolution, RESOLUTION_SIZES[DEFAULT_RESOLUTION])

    @property
    def crf(self) -> int:
        return QUALITY_CRF[self.quality]

    @property
    def video_bitrate(self) -> str:
        return QUALITY_BITRATES[self.quality][0]

    @property
    def audio_bitrate(self) -> str:
        return QUALITY_BITRATES[self.quality][1]

    @property
    def x264_preset(self) -> str:
        return SPEED_PRESETS[self.speed]

    @property
    def has_audio(self) -> bool:
        return self.format != "gif"

    @property
    def mime_type(self) -> str:
        return FORMAT_MIME_TYPES[self.format]
