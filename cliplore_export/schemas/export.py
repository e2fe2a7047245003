"""Export result schemas."""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from cliplore_export.schemas.timeline import ExportConfig

DEFAULT_ARTIFACT_STEM = "cliplore-export"


class ArtifactMetadata(BaseModel):
    """Record describing a finished export, handed to the caller and the registry."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    file_name: str = Field(alias="fileName")
    mime_type: str = Field(alias="mimeType")
    duration_seconds: float = Field(alias="durationSeconds")
    file_size_bytes: int = Field(alias="fileSizeBytes")
    created_at: datetime = Field(alias="createdAt")
    config: ExportConfig


@dataclass(frozen=True)
class ExportArtifact:
    """Rendered bytes plus their metadata."""

    data: bytes
    metadata: ArtifactMetadata


@dataclass(frozen=True)
class ExportProgress:
    """Progress report from a backend, in output frames."""

    processed: int
    total: int

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(100.0, self.processed / self.total * 100)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "processed": self.processed,
            "total": self.total,
            "percent": self.percent,
        }


def sanitize_project_name(name: str | None) -> str:
    """Reduce a project name to a filesystem-safe stem."""
    stem = (name or "").strip()
    stem = re.sub(r"[^\w\-]+", "-", stem)
    stem = re.sub(r"-+", "-", stem)
    stem = stem.strip("-")
    return stem or DEFAULT_ARTIFACT_STEM


def build_artifact_name(project_name: str | None, extension: str, now: datetime | None = None) -> str:
    """Build ``<project>-<UTC timestamp>.<ext>``; the timestamp has no ':' or '.'."""
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H%M%S") + f"{now.microsecond // 1000:03d}Z"
    return f"{sanitize_project_name(project_name)}-{stamp}.{extension}"
