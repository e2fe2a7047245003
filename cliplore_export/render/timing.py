"""
Timing resolution between wall-clock seconds, output frames and source time.

Every backend and the preview evaluator go through these functions; nothing
else in the package converts seconds to frames on its own.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any

from cliplore_export.schemas.timeline import Clip
from cliplore_export.utils.interpolation import clamp, safe_number

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30


def _safe_fps(fps: float | None) -> float:
    if fps is None or not math.isfinite(fps) or fps <= 0:
        return DEFAULT_FPS
    return fps


def seconds_to_frames(seconds: float | None, fps: float | None) -> int:
    """Convert seconds to a whole frame index.

    Non-finite seconds count as 0, a non-positive fps falls back to 30.
    Halves round up so results agree with the editor's Math.round.
    """
    if seconds is None or not math.isfinite(seconds):
        seconds = 0.0
    return math.floor(seconds * _safe_fps(fps) + 0.5)


def frames_to_seconds(frames: float, fps: float | None) -> float:
    return frames / _safe_fps(fps)


@dataclass(frozen=True)
class SequenceFrames:
    """A timeline slot in frames. duration_frames is always at least 1."""

    from_frame: int
    duration_frames: int

    @property
    def end_frame(self) -> int:
        return self.from_frame + self.duration_frames


def compute_sequence_frames(start: float, end: float, fps: float | None) -> SequenceFrames:
    from_frame = seconds_to_frames(start, fps)
    to_frame = seconds_to_frames(end, fps)
    return SequenceFrames(from_frame=from_frame, duration_frames=max(1, to_frame - from_frame))


@dataclass(frozen=True)
class TrimWindow:
    """Resolved source-time window for one clip, in frames."""

    from_frame: int
    trim_before: int
    trim_after: int
    source_duration_frames: int
    duration_frames: int
    playback_speed: float
    fps: float

    @property
    def start_seconds(self) -> float:
        """Timeline start, snapped to the frame grid."""
        return frames_to_seconds(self.from_frame, self.fps)

    @property
    def source_start_seconds(self) -> float:
        return frames_to_seconds(self.trim_before, self.fps)

    @property
    def source_span_seconds(self) -> float:
        """Source material consumed while the clip is on screen."""
        return frames_to_seconds(self.duration_frames * self.playback_speed, self.fps)

    @property
    def timeline_duration_seconds(self) -> float:
        return frames_to_seconds(self.duration_frames, self.fps)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "from_frame": self.from_frame,
            "trim_before": self.trim_before,
            "trim_after": self.trim_after,
            "source_duration_frames": self.source_duration_frames,
            "duration_frames": self.duration_frames,
            "playback_speed": self.playback_speed,
            "fps": self.fps,
        }


def compute_trim(clip: Clip, fps: float | None) -> TrimWindow:
    """Resolve a clip's trim window and its on-timeline duration.

    An under-reported source duration is expanded to cover the requested trim
    rather than rejected. The on-timeline duration is the shorter of the
    declared slot and the speed-adjusted amount of available source.
    """
    fps = _safe_fps(fps)
    speed = clip.playback_speed if clip.playback_speed > 0 else 1.0
    slot = compute_sequence_frames(clip.position.start, clip.position.end, fps)

    trim_start = max(0.0, safe_number(clip.trim.start, 0.0))
    if clip.trim.end is None:
        # Open-ended trim: as much source as the slot can show at this speed
        trim_end = trim_start + slot.duration_frames * speed / fps
    else:
        trim_end = max(trim_start, safe_number(clip.trim.end, trim_start))

    if clip.source_duration is not None and clip.source_duration > 0:
        source_seconds = clip.source_duration
    else:
        source_seconds = trim_end

    trim_before_raw = seconds_to_frames(trim_start, fps)
    trim_after_raw = seconds_to_frames(trim_end, fps)
    source_frames = max(trim_after_raw, seconds_to_frames(source_seconds, fps), trim_before_raw + 1)

    trim_before = int(clamp(trim_before_raw, 0, max(0, source_frames - 1)))
    trim_after = int(clamp(trim_after_raw, trim_before + 1, source_frames))

    max_frames_by_trim = max(1, math.floor((trim_after - trim_before) / speed))
    duration_frames = min(slot.duration_frames, max_frames_by_trim)

    if duration_frames < slot.duration_frames:
        logger.debug(
            f"[TRIM] Clip {clip.id} shortened to {duration_frames} frames "
            f"(slot={slot.duration_frames}, source={trim_after - trim_before}, speed={speed})"
        )

    return TrimWindow(
        from_frame=slot.from_frame,
        trim_before=trim_before,
        trim_after=trim_after,
        source_duration_frames=source_frames,
        duration_frames=duration_frames,
        playback_speed=speed,
        fps=fps,
    )
