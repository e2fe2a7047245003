from functools import lru_cache

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"

    # Render settings
    render_audio_sample_rate: int = 48000
    # Maximum threads for FFmpeg (limits per-thread buffer memory)
    render_ffmpeg_threads: int = 2
    # Maximum muxing queue size (limits FFmpeg muxer memory)
    render_ffmpeg_max_muxing_queue: int = 1024
    render_work_dir_prefix: str = "cliplore_export_"
    # Log the full filter_complex at INFO instead of DEBUG
    render_log_filter_graph: bool = False

    # Fonts - families with a bundled .ttf; anything else falls back to the default
    render_supported_fonts_raw: str = "Arial,Inter,Lato"
    render_default_font: str = "Inter"
    render_font_dir: str = "fonts"

    @computed_field
    @property
    def render_supported_fonts(self) -> list[str]:
        """Parse supported font families from a comma-separated string."""
        return [f.strip() for f in self.render_supported_fonts_raw.split(",") if f.strip()]

    # GPU backend
    gpu_hwaccel: str = "auto"
    gpu_h264_encoder: str = "h264_nvenc"


@lru_cache
def get_settings() -> Settings:
    return Settings()
