"""
Pytest fixtures for export engine tests.

None of these tests need ffmpeg: backends run against a fake subprocess or a
fake backend, and text surfaces are rendered in memory with Pillow.

CI/CD Note:
Tests that need a real ffmpeg binary are marked @pytest.mark.requires_ffmpeg
and skipped when ffmpeg is not on PATH.
"""

import shutil

import pytest
from PIL import ImageFont

from cliplore_export.config import Settings
from cliplore_export.render.text_renderer import TextRenderer
from cliplore_export.schemas.timeline import ExportConfig, Track


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring a real ffmpeg binary (skipped when missing)",
    )


def pytest_collection_modifyitems(config, items):
    if shutil.which("ffmpeg") is not None:
        return
    skip_ffmpeg = pytest.mark.skip(reason="ffmpeg not available on PATH")
    for item in items:
        if "requires_ffmpeg" in item.keywords:
            item.add_marker(skip_ffmpeg)


@pytest.fixture
def settings() -> Settings:
    """Default settings, ignoring any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def default_font(monkeypatch):
    """Render text with Pillow's bundled font instead of staged .ttf bytes."""

    def _load_font(self, family: str, font_bytes: bytes, size: int):
        return ImageFont.load_default(size=size)

    monkeypatch.setattr(TextRenderer, "load_font", _load_font)


@pytest.fixture
def two_tracks() -> tuple[Track, Track]:
    return (Track(id="track-0", order=0), Track(id="track-1", order=1))


@pytest.fixture
def export_config() -> ExportConfig:
    return ExportConfig()
