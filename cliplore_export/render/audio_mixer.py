"""
Audio mixing for exports.

This module handles:
- Per-clip source trim (same trim window as the visual chain)
- Speed change via chained atempo
- Placement on the timeline via adelay
- Per-clip gain (volume / 100)
- Unnormalized N-way sum of every audio-capable clip
"""

import logging

from cliplore_export.render.filter_graph import Filter, FilterGraphBuilder
from cliplore_export.render.planner import AudioElement
from cliplore_export.utils.interpolation import clamp

logger = logging.getLogger(__name__)

ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0
MIX_OUTPUT_LABEL = "aout"


def atempo_chain(speed: float) -> list[Filter]:
    """Split a speed factor into atempo stages within [0.5, 2.0]."""
    if abs(speed - 1.0) < 1e-9:
        return []
    stages: list[Filter] = []
    while speed > ATEMPO_MAX:
        stages.append(Filter("atempo", f"{ATEMPO_MAX:g}"))
        speed /= ATEMPO_MAX
    while speed < ATEMPO_MIN:
        stages.append(Filter("atempo", f"{ATEMPO_MIN:g}"))
        speed /= ATEMPO_MIN
    if abs(speed - 1.0) >= 1e-9:
        stages.append(Filter("atempo", f"{speed:g}"))
    return stages


def delay_ms(timeline_start: float) -> int:
    return round(max(0.0, timeline_start) * 1000)


def gain(volume: float) -> float:
    return clamp(volume / 100, 0.0, 1.0)


class AudioMixer:
    """Builds the audio half of the filter graph."""

    def clip_filters(self, element: AudioElement) -> list[Filter]:
        """atrim -> asetpts -> atempo* -> adelay -> volume for one clip."""
        trim = element.trim
        ms = delay_ms(element.clip.position.start)
        filters = [
            Filter("atrim", f"start={trim.source_start_seconds:.6f}:duration={trim.source_span_seconds:.6f}"),
            Filter("asetpts", "PTS-STARTPTS"),
            *atempo_chain(trim.playback_speed),
            Filter("adelay", f"delays={ms}:all=1"),
            # Zero volume still contributes a (silent) stream to the mix
            Filter("volume", f"{gain(element.clip.volume):g}"),
        ]
        return filters

    def build(
        self,
        builder: FilterGraphBuilder,
        elements: tuple[AudioElement, ...],
        input_indices: dict[str, int],
    ) -> str | None:
        """Add every clip chain plus the mix node; returns the mix label, or None without audio."""
        if not elements:
            logger.info("[AUDIO MIX] No audio-capable clips, output has no audio stream")
            return None

        streams: list[str] = []
        for element in elements:
            source = builder.stream(input_indices[element.staged_name], "a")
            streams.append(builder.chain(source, self.clip_filters(element), element.label))

        logger.info(f"[AUDIO MIX] Mixing {len(streams)} streams (normalize=0)")
        return builder.mix(streams, MIX_OUTPUT_LABEL)
