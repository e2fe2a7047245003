"""Export registry.

Downstream persistence/upload hooks in here; the engine only appends the
metadata of finished exports and never stores bytes itself.
"""

from typing import Protocol

from cliplore_export.schemas.export import ArtifactMetadata


class ExportRegistry(Protocol):
    async def append(self, metadata: ArtifactMetadata) -> None: ...


class InMemoryExportRegistry:
    """Keeps appended metadata in insertion order."""

    def __init__(self) -> None:
        self.entries: list[ArtifactMetadata] = []

    async def append(self, metadata: ArtifactMetadata) -> None:
        self.entries.append(metadata)

    def latest(self) -> ArtifactMetadata | None:
        return self.entries[-1] if self.entries else None
