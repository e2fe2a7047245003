"""
Export orchestration.

This module drives one export job through its states:
1. Compiling  - plan the timeline, stage sources and fonts, render text
                surfaces, compile the backend program
2. Executing  - run the program once on the job's backend
3. Packaging  - wrap the bytes into an artifact record

Staging is a hard barrier: nothing executes until every referenced asset has
been written into the backend's working storage. Cancellation terminates the
active backend; a later job always gets a fresh backend instance.
"""

import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from cliplore_export.config import Settings, get_settings
from cliplore_export.exceptions import (
    BackendUnavailable,
    ExportError,
    InvalidExportConfig,
    InvalidTimeline,
    MissingFontAsset,
    MissingSourceAsset,
)
from cliplore_export.render.backend import FFmpegBackend, ProgressCallback, RenderBackend
from cliplore_export.render.gpu_backend import GPUBackend
from cliplore_export.render.planner import CompositingPlanner, CompositionPlan, font_file_name
from cliplore_export.render.text_renderer import TextRenderer
from cliplore_export.schemas.export import ArtifactMetadata, ExportArtifact, ExportProgress, build_artifact_name
from cliplore_export.schemas.timeline import ExportConfig, TimelineModel
from cliplore_export.services.asset_store import FontStore, SourceStore
from cliplore_export.services.export_registry import ExportRegistry

logger = logging.getLogger(__name__)

BackendFactory = Callable[[], RenderBackend]


class ExportState(Enum):
    """Export job state."""

    IDLE = "idle"
    COMPILING = "compiling"
    EXECUTING = "executing"
    PACKAGING = "packaging"
    DONE = "done"
    FAILED = "failed"


_RUNNING_STATES = (ExportState.COMPILING, ExportState.EXECUTING, ExportState.PACKAGING)


def default_backend_factories(settings: Settings | None = None) -> dict[str, BackendFactory]:
    settings = settings or get_settings()
    return {
        "cpu": lambda: FFmpegBackend(settings),
        "gpu": lambda: GPUBackend(settings),
    }


class ExportOrchestrator:
    """Runs export jobs one at a time, each on its own backend instance."""

    def __init__(
        self,
        source_store: SourceStore,
        font_store: FontStore,
        backend_factories: Optional[dict[str, BackendFactory]] = None,
        registry: Optional[ExportRegistry] = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.settings = settings or get_settings()
        self.clock = clock
        self.source_store = source_store
        self.font_store = font_store
        self.backend_factories = backend_factories or default_backend_factories(self.settings)
        self.registry = registry
        self.planner = CompositingPlanner(self.settings)
        self.text_renderer = TextRenderer()
        self._state = ExportState.IDLE
        self._backend: Optional[RenderBackend] = None
        self.error: Optional[ExportError] = None
        self.progress: Optional[ExportProgress] = None

    @property
    def state(self) -> ExportState:
        return self._state

    def _transition(self, state: ExportState) -> None:
        logger.info(f"[EXPORT] {self._state.value} -> {state.value}")
        self._state = state

    def cancel(self) -> None:
        """Terminate the active backend. There is no pause/resume."""
        backend = self._backend
        if backend is None:
            logger.info("[EXPORT] Cancel requested with no active backend")
            return
        logger.warning(f"[EXPORT] Cancelling export in state {self._state.value}")
        backend.terminate()

    async def export(
        self,
        timeline: TimelineModel,
        config: ExportConfig,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExportArtifact:
        """Run one export job end to end.

        Raises:
            InvalidTimeline: nothing to render
            InvalidExportConfig: no backend for the requested engine
            MissingSourceAsset / MissingFontAsset: staging failed
            BackendExecutionFailed: the native engine failed
            ExportCancelled: cancel() was called while the job ran
        """
        if self._state in _RUNNING_STATES:
            raise BackendUnavailable("An export is already running on this orchestrator")

        self.error = None
        self.progress = None
        self._state = ExportState.IDLE
        started = time.monotonic()
        backend: Optional[RenderBackend] = None
        try:
            if timeline.is_empty:
                raise InvalidTimeline()
            factory = self.backend_factories.get(config.render_engine)
            if factory is None:
                raise InvalidExportConfig(f"No backend for render engine: {config.render_engine}")

            self._transition(ExportState.COMPILING)
            backend = factory()
            self._backend = backend
            plan = self.planner.plan(timeline, config)
            await self._stage_sources(plan, backend)
            await self._stage_text(plan, backend)
            program = backend.compile(plan)

            self._transition(ExportState.EXECUTING)
            data = await backend.execute(program, self._progress_reporter(on_progress))

            self._transition(ExportState.PACKAGING)
            artifact = self._package(plan, data)
            if self.registry is not None:
                await self.registry.append(artifact.metadata)

            self._transition(ExportState.DONE)
            logger.info(
                f"[EXPORT] Done: {artifact.metadata.file_name} "
                f"({artifact.metadata.file_size_bytes} bytes, {time.monotonic() - started:.1f}s)"
            )
            return artifact
        except ExportError as e:
            self.error = e
            logger.error(f"[EXPORT] Failed in state {self._state.value}: {e.code}: {e.message}")
            self._transition(ExportState.FAILED)
            raise
        except Exception:
            logger.exception(f"[EXPORT] Unexpected failure in state {self._state.value}")
            self._transition(ExportState.FAILED)
            raise
        finally:
            self._backend = None
            if backend is not None:
                backend.close()

    def _progress_reporter(self, on_progress: Optional[ProgressCallback]) -> ProgressCallback:
        def report(processed: int, total: int) -> None:
            self.progress = ExportProgress(processed, total)
            logger.debug(f"[EXPORT] Progress {self.progress.percent:.1f}% ({processed}/{total} frames)")
            if on_progress is not None:
                on_progress(processed, total)

        return report

    async def _stage_sources(self, plan: CompositionPlan, backend: RenderBackend) -> None:
        for name, clip in plan.staged_sources.items():
            data = await self.source_store.read(clip.source_ref)
            if data is None:
                raise MissingSourceAsset(clip.id, clip.source_ref)
            backend.stage(name, data)
        logger.info(f"[EXPORT] Staged {len(plan.staged_sources)} sources")

    async def _stage_text(self, plan: CompositionPlan, backend: RenderBackend) -> None:
        # Every font must be loaded before any surface that draws with it
        fonts: dict[str, bytes] = {}
        for family in plan.fonts:
            data = await self.font_store.read(family)
            if data is None:
                raise MissingFontAsset(family)
            backend.stage(font_file_name(family), data)
            fonts[family] = data

        for element in plan.texts:
            surface = self.text_renderer.render_surface(element, fonts[element.font_family])
            backend.stage(surface.name, surface.data)
        if plan.texts:
            logger.info(f"[EXPORT] Staged {len(plan.fonts)} fonts and {len(plan.texts)} text surfaces")

    def _package(self, plan: CompositionPlan, data: bytes) -> ExportArtifact:
        config = plan.config
        now = self.clock()
        metadata = ArtifactMetadata(
            file_name=build_artifact_name(plan.project_name, config.format, now),
            mime_type=config.mime_type,
            duration_seconds=plan.total_duration,
            file_size_bytes=len(data),
            created_at=now,
            config=config,
        )
        return ExportArtifact(data=data, metadata=metadata)
