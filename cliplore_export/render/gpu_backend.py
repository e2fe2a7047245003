"""
GPU backend.

Consumes the same CompositionPlan and the same compiled node graph as the CPU
backend; only the engine parameters differ (hardware decode and a hardware
H.264 encoder). Formats the hardware encoder cannot produce fall back to the
software encoders.
"""

import logging

from cliplore_export.render.backend import FFmpegBackend
from cliplore_export.render.graph_compiler import SoftwareEncoderProfile
from cliplore_export.render.planner import AudioElement, ImageElement, VideoElement
from cliplore_export.schemas.timeline import ExportConfig

logger = logging.getLogger(__name__)

HARDWARE_FORMATS = ("mp4", "mov")

# NVENC presets p1 (fastest) .. p7 (slowest)
NVENC_PRESETS: dict[str, str] = {
    "fastest": "p1",
    "fast": "p2",
    "balanced": "p4",
    "slow": "p6",
    "slowest": "p7",
}


class HardwareEncoderProfile(SoftwareEncoderProfile):
    name = "gpu"

    def source_input_options(self, element: VideoElement | ImageElement | AudioElement) -> tuple[str, ...]:
        if isinstance(element, VideoElement):
            return ("-hwaccel", self.settings.gpu_hwaccel)
        return ()

    def video_args(self, config: ExportConfig) -> list[str]:
        if config.format not in HARDWARE_FORMATS:
            logger.info(f"[BACKEND] No hardware encoder for {config.format}, using software encoder")
            return super().video_args(config)
        return [
            "-c:v", self.settings.gpu_h264_encoder,
            "-preset", NVENC_PRESETS[config.speed],
            "-b:v", config.video_bitrate,
            "-pix_fmt", "yuv420p",
        ]


class GPUBackend(FFmpegBackend):
    """Hardware-accelerated backend sharing the CPU backend's plan and graph."""

    name = "gpu"

    def _encoder_profile(self) -> SoftwareEncoderProfile:
        return HardwareEncoderProfile(self.settings)
