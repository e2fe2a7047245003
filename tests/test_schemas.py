"""Tests for snapshot schemas, export naming, errors, settings and stores."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from cliplore_export.config import Settings
from cliplore_export.constants.error_codes import ERROR_CODES, is_retryable
from cliplore_export.exceptions import (
    BackendExecutionFailed,
    ExportCancelled,
    ExportError,
    MissingFontAsset,
    MissingSourceAsset,
)
from cliplore_export.schemas.export import ExportProgress, build_artifact_name, sanitize_project_name
from cliplore_export.schemas.timeline import ExportConfig, TimelineModel
from cliplore_export.services.asset_store import LocalFontStore, LocalSourceStore
from cliplore_export.utils.interpolation import linear_progress, safe_number
from tests.factories import make_clip, make_text, make_timeline


class TestTimelineModel:
    def test_editor_payload_with_camel_case(self):
        """The editor's camelCase payload validates into the snapshot."""
        timeline = TimelineModel.model_validate(
            {
                "projectName": "Demo",
                "tracks": [{"id": "t1", "order": 1}],
                "clips": [
                    {
                        "id": "c1",
                        "kind": "video",
                        "sourceRef": "media/a.mp4",
                        "timelinePosition": {"start": 0, "end": 4},
                        "playbackSpeed": 1.5,
                        "trackId": "t1",
                        "zIndex": 2,
                    }
                ],
                "texts": [{"id": "x1", "text": "Hi", "timelinePosition": {"start": 1, "end": 6}}],
            }
        )
        clip = timeline.clips[0]
        assert clip.source_ref == "media/a.mp4"
        assert clip.playback_speed == 1.5
        assert timeline.track_order(clip.track_id) == 1
        assert timeline.total_duration == 6

    def test_snapshot_is_frozen(self):
        """Snapshots cannot be modified after validation."""
        timeline = make_timeline(clips=[make_clip()])
        with pytest.raises(ValidationError):
            timeline.project_name = "changed"

    def test_declared_duration_wins(self):
        """A positive declared duration overrides the element extent."""
        timeline = make_timeline(clips=[make_clip(end=5)], duration_seconds=8)
        assert timeline.total_duration == 8

    def test_is_empty(self):
        """A timeline with neither clips nor texts is empty."""
        assert make_timeline().is_empty
        assert not make_timeline(texts=[make_text()]).is_empty

    def test_playback_speed_must_be_positive(self):
        """Zero speed is rejected at validation."""
        with pytest.raises(ValidationError):
            make_clip(playback_speed=0)


class TestExportConfig:
    def test_defaults(self):
        """Defaults: 1080p, high quality, fastest, 30 fps, mp4 on the CPU."""
        config = ExportConfig()
        assert config.output_size == (1920, 1080)
        assert config.crf == 18
        assert config.x264_preset == "ultrafast"
        assert config.fps == 30
        assert config.render_engine == "cpu"
        assert config.mime_type == "video/mp4"

    def test_unknown_resolution_falls_back(self):
        """Unrecognised resolutions render at 1080p."""
        assert ExportConfig(resolution="8K").output_size == (1920, 1080)
        assert ExportConfig(resolution="4K").output_size == (3840, 2160)

    def test_engine_alias(self):
        """The historical "ffmpeg" engine name means the CPU backend."""
        assert ExportConfig.model_validate({"renderEngine": "ffmpeg"}).render_engine == "cpu"
        with pytest.raises(ValidationError):
            ExportConfig.model_validate({"renderEngine": "quantum"})

    def test_gif_has_no_audio(self):
        """Only GIF output drops audio."""
        assert not ExportConfig(format="gif").has_audio
        assert ExportConfig(format="webm").has_audio
        assert ExportConfig(format="gif").mime_type == "image/gif"


class TestArtifactNaming:
    def test_name_has_no_colons_or_dots_in_timestamp(self):
        """<project>-<timestamp>.<ext> with a filesystem-safe timestamp."""
        now = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
        assert build_artifact_name(" My Project! ", "mp4", now) == "My-Project-2024-01-02T030405678Z.mp4"

    def test_timestamp_is_utc(self):
        """Local timestamps are converted to UTC."""
        now = datetime(2024, 1, 2, 12, 0, 0, tzinfo=timezone(timedelta(hours=9)))
        assert build_artifact_name("a", "gif", now) == "a-2024-01-02T030000000Z.gif"

    def test_empty_project_name(self):
        """Names that sanitize to nothing use the default stem."""
        assert sanitize_project_name("") == "cliplore-export"
        assert sanitize_project_name("!!!") == "cliplore-export"
        assert sanitize_project_name(None) == "cliplore-export"

    def test_progress_percent(self):
        """Progress reports expose a clamped percentage."""
        assert ExportProgress(75, 150).percent == 50.0
        assert ExportProgress(5, 0).percent == 0.0
        assert ExportProgress(150, 150).to_dict()["percent"] == 100.0


class TestErrors:
    def test_every_error_class_has_a_registered_code(self):
        """Each concrete error's code is in ERROR_CODES."""
        for cls in (MissingSourceAsset, MissingFontAsset, BackendExecutionFailed, ExportCancelled):
            assert cls.code in ERROR_CODES

    def test_retryability(self):
        """Font and cancellation failures are retryable, missing sources are not."""
        assert MissingFontAsset("Lato").retryable
        assert ExportCancelled().retryable
        assert not MissingSourceAsset("c1").retryable
        assert not is_retryable("NOT_A_CODE")
        assert not ExportError("custom", code="NOT_A_CODE").retryable

    def test_to_dict(self):
        """Errors serialize with code, message and fix hint."""
        data = MissingSourceAsset("c1", "media/a.mp4").to_dict()
        assert data["code"] == "MISSING_SOURCE_ASSET"
        assert data["message"] == "Missing source asset for clip c1 (media/a.mp4)"
        assert data["retryable"] is False
        assert data["suggested_fix"]

    def test_default_message(self):
        """Errors raised without a message use their class default."""
        assert str(ExportCancelled()) == "Export was cancelled"
        assert isinstance(ExportCancelled(), ExportError)


class TestSettings:
    def test_supported_fonts(self, settings):
        """The supported font list is parsed from a comma-separated string."""
        assert settings.render_supported_fonts == ["Arial", "Inter", "Lato"]
        assert settings.render_default_font == "Inter"

    def test_environment_override(self, monkeypatch):
        """Settings read overrides from the environment."""
        monkeypatch.setenv("RENDER_SUPPORTED_FONTS_RAW", "Inter, Roboto ,")
        monkeypatch.setenv("FFMPEG_PATH", "/opt/ffmpeg/bin/ffmpeg")
        settings = Settings(_env_file=None)
        assert settings.render_supported_fonts == ["Inter", "Roboto"]
        assert settings.ffmpeg_path == "/opt/ffmpeg/bin/ffmpeg"


class TestLocalStores:
    @pytest.mark.asyncio
    async def test_source_store_reads_relative_paths(self, tmp_path):
        """Sources are read relative to the store root; missing ones are None."""
        (tmp_path / "media").mkdir()
        (tmp_path / "media" / "a.mp4").write_bytes(b"video")
        store = LocalSourceStore(tmp_path)
        assert await store.read("media/a.mp4") == b"video"
        assert await store.read("media/missing.mp4") is None

    @pytest.mark.asyncio
    async def test_source_store_rejects_escapes(self, tmp_path):
        """References outside the root are treated as missing."""
        outside = tmp_path / "secret.mp4"
        outside.write_bytes(b"nope")
        root = tmp_path / "root"
        root.mkdir()
        assert await LocalSourceStore(root).read("../secret.mp4") is None

    @pytest.mark.asyncio
    async def test_font_store(self, tmp_path):
        """Fonts are looked up as <family>.ttf."""
        (tmp_path / "Lato.ttf").write_bytes(b"lato")
        store = LocalFontStore(tmp_path)
        assert await store.read("Lato") == b"lato"
        assert await store.read("Arial") is None


class TestLinearProgress:
    def test_clamped_to_unit_range(self):
        """Progress is 0 before the window and 1 after it."""
        assert linear_progress(2.2, 2.0, 0.4) == pytest.approx(0.5)
        assert linear_progress(1.0, 2.0, 0.4) == 0.0
        assert linear_progress(9.0, 2.0, 0.4) == 1.0

    def test_zero_span_is_complete(self):
        """An animation with no duration is already finished."""
        assert linear_progress(0.0, 5.0, 0.0) == 1.0

    def test_safe_number(self):
        """None and non-finite values use the fallback."""
        assert safe_number(None, 3.0) == 3.0
        assert safe_number(float("nan"), 3.0) == 3.0
        assert safe_number(2.5, 3.0) == 2.5
