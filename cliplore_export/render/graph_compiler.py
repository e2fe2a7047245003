"""
Graph compiler for the filter-graph backend.

Assembles the visual chains, the text chains and the audio mix of a
CompositionPlan into one FFmpeg program: a base canvas plus a strictly linear
chain of overlays in paint order. Inputs are referenced by their staged file
names relative to the backend's working directory, so compiling the same plan
always yields the same argument list.
"""

import logging
from dataclasses import dataclass
from typing import Any

from cliplore_export.config import Settings, get_settings
from cliplore_export.render.audio_mixer import AudioMixer
from cliplore_export.render.filter_graph import Filter, FilterGraph, FilterGraphBuilder, InputSpec
from cliplore_export.render.planner import (
    AudioElement,
    CompositionPlan,
    ImageElement,
    PlannedOverlay,
    TextElement,
    VideoElement,
)
from cliplore_export.render.text_renderer import TextRenderer, slide_offset_expr
from cliplore_export.render.transform_pipeline import (
    still_image_input_options,
    time_shift_filter,
    video_time_filters,
    visual_chain,
)
from cliplore_export.schemas.timeline import ExportConfig

logger = logging.getLogger(__name__)

BASE_LABEL = "base"
VIDEO_OUTPUT_LABEL = "vout"


# ============================================================================
# Encoder profiles
# ============================================================================


class SoftwareEncoderProfile:
    """libx264 / libvpx-vp9 / gif encoder parameters."""

    name = "cpu"

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def source_input_options(self, element: VideoElement | ImageElement | AudioElement) -> tuple[str, ...]:
        return ()

    def final_video_filters(self, config: ExportConfig) -> list[Filter]:
        if config.format == "gif":
            return []
        return [Filter("format", "yuv420p")]

    def audio_args(self, config: ExportConfig) -> list[str]:
        rate = str(self.settings.render_audio_sample_rate)
        if config.format == "webm":
            return ["-c:a", "libopus", "-b:a", config.audio_bitrate, "-ar", "48000"]
        return ["-c:a", "aac", "-b:a", config.audio_bitrate, "-ar", rate]

    def video_args(self, config: ExportConfig) -> list[str]:
        if config.format == "gif":
            return ["-c:v", "gif", "-loop", "0"]
        if config.format == "webm":
            return [
                "-c:v", "libvpx-vp9",
                "-crf", str(config.crf),
                "-b:v", "0",
                "-row-mt", "1",
                "-pix_fmt", "yuv420p",
            ]
        return [
            "-c:v", "libx264",
            "-preset", config.x264_preset,
            "-crf", str(config.crf),
            "-pix_fmt", "yuv420p",
        ]

    def container_args(self, config: ExportConfig) -> list[str]:
        if config.format in ("mp4", "mov"):
            return ["-movflags", "+faststart"]
        return []


# ============================================================================
# Compiled program
# ============================================================================


@dataclass(frozen=True)
class CompiledProgram:
    """One batch instruction for the native engine (arguments after the binary)."""

    args: tuple[str, ...]
    filter_complex: str
    output_name: str
    total_frames: int
    required_files: tuple[str, ...]
    has_audio: bool

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "args": list(self.args),
            "filter_complex": self.filter_complex,
            "output_name": self.output_name,
            "total_frames": self.total_frames,
            "required_files": list(self.required_files),
            "has_audio": self.has_audio,
        }


class GraphCompiler:
    """Compiles a CompositionPlan into a CompiledProgram."""

    def __init__(self, profile: SoftwareEncoderProfile | None = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.profile = profile or SoftwareEncoderProfile(self.settings)
        self.text_renderer = TextRenderer()
        self.audio_mixer = AudioMixer()

    def build_graph(self, plan: CompositionPlan) -> FilterGraph:
        builder = FilterGraphBuilder()

        # Inputs: staged sources in clip order, then text surfaces in text order
        input_indices: dict[str, int] = {}
        for element in plan.sources:
            options = self.profile.source_input_options(element)
            if isinstance(element, ImageElement):
                options = options + still_image_input_options(element.trim.timeline_duration_seconds, plan.fps)
            input_indices[element.staged_name] = builder.add_input(InputSpec(element.staged_name, options))
        for text in plan.texts:
            options = still_image_input_options(plan.total_duration, plan.fps)
            input_indices[text.surface_name] = builder.add_input(InputSpec(text.surface_name, options))

        builder.source(
            [
                Filter(
                    "color",
                    f"c=black:s={plan.output_width}x{plan.output_height}:r={plan.fps}:d={plan.total_duration:.6f}",
                )
            ],
            BASE_LABEL,
        )

        for overlay in plan.overlays:
            self._add_visual_chain(builder, overlay, input_indices, plan)

        current = BASE_LABEL
        for k, overlay in enumerate(plan.overlays):
            current = builder.overlay(
                current,
                overlay.visual_label,
                x=f"{overlay.x}+({overlay.bounds_width}-w)/2",
                y=self._y_expr(overlay, plan),
                enable=f"between(t,{overlay.start:.6f},{overlay.end:.6f})",
                output=f"tmp{k}",
            )
        video_out = builder.chain(current, self.profile.final_video_filters(plan.config), VIDEO_OUTPUT_LABEL)

        audio_out = None
        if plan.config.has_audio:
            audio_out = self.audio_mixer.build(builder, plan.audio, input_indices)

        return builder.build(video_out, audio_out)

    def _add_visual_chain(
        self,
        builder: FilterGraphBuilder,
        overlay: PlannedOverlay,
        input_indices: dict[str, int],
        plan: CompositionPlan,
    ) -> None:
        element = overlay.element
        if isinstance(element, TextElement):
            source = builder.stream(input_indices[element.surface_name], "v")
            builder.chain(source, self.text_renderer.effect_chain(element), overlay.visual_label)
            return

        source = builder.stream(input_indices[element.staged_name], "v")
        clip = element.clip
        chain = visual_chain(clip.transform, element.geometry, plan.render_scale)
        if isinstance(element, VideoElement):
            filters = (
                video_time_filters(
                    element.trim.source_start_seconds,
                    element.trim.source_span_seconds,
                    clip.position.start,
                    element.trim.playback_speed,
                )
                + chain
            )
        else:
            filters = chain + [time_shift_filter(clip.position.start)]
        builder.chain(source, filters, overlay.visual_label)

    def _y_expr(self, overlay: PlannedOverlay, plan: CompositionPlan) -> str:
        y = f"{overlay.y}+({overlay.bounds_height}-h)/2"
        slide = slide_offset_expr(overlay.animation_kind, overlay.start, overlay.fade_in_seconds, plan.slide_distance)
        if overlay.kind == "text" and slide:
            y = f"{y}+{slide}"
        return y

    def compile(self, plan: CompositionPlan) -> CompiledProgram:
        graph = self.build_graph(plan)
        filter_complex = graph.serialize()
        config = plan.config
        output_name = f"output.{config.format}"

        args: list[str] = [
            "-y",
            "-hide_banner",
            "-loglevel", "error",
            "-nostats",
            "-threads", str(self.settings.render_ffmpeg_threads),
            *graph.input_args(),
            "-filter_complex", filter_complex,
            "-map", f"[{graph.video_output}]",
        ]
        if graph.audio_output:
            args += ["-map", f"[{graph.audio_output}]"]
        args += self.profile.video_args(config)
        if graph.audio_output:
            args += self.profile.audio_args(config)
        args += self.profile.container_args(config)
        args += [
            "-r", str(plan.fps),
            "-max_muxing_queue_size", str(self.settings.render_ffmpeg_max_muxing_queue),
            "-t", f"{plan.total_duration:.6f}",
            "-progress", "pipe:1",
            output_name,
        ]

        graph_log = logger.info if self.settings.render_log_filter_graph else logger.debug
        graph_log(f"[GRAPH] filter_complex:\n{filter_complex}")
        logger.info(
            f"[GRAPH] Compiled {len(graph.inputs)} inputs, {len(graph.nodes)} nodes "
            f"({self.profile.name}, {config.format}, audio={'yes' if graph.audio_output else 'no'})"
        )

        required = tuple(spec.path for spec in graph.inputs)
        return CompiledProgram(
            args=tuple(args),
            filter_complex=filter_complex,
            output_name=output_name,
            total_frames=plan.total_frames,
            required_files=required,
            has_audio=graph.audio_output is not None,
        )
