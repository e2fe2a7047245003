"""
Render backends.

A backend owns one scoped working directory and runs one compiled program in
it. Instances are single-use: once a job finished, was cancelled or failed,
the working directory is gone and the instance refuses further work.
"""

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Optional

from cliplore_export.config import Settings, get_settings
from cliplore_export.exceptions import BackendExecutionFailed, BackendUnavailable, ExportCancelled
from cliplore_export.render.graph_compiler import CompiledProgram, GraphCompiler, SoftwareEncoderProfile
from cliplore_export.render.planner import CompositionPlan

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ProgressTracker:
    """Turns raw frame counters into a non-decreasing (processed, total) sequence."""

    def __init__(self, total: int, callback: Optional[ProgressCallback] = None):
        self.total = max(1, total)
        self.callback = callback
        self.processed = 0
        self._reported = False

    def update(self, processed: int) -> None:
        processed = min(max(processed, self.processed), self.total)
        if self._reported and processed == self.processed:
            return
        self.processed = processed
        self._reported = True
        if self.callback:
            self.callback(self.processed, self.total)

    def finish(self) -> None:
        self.update(self.total)


class RenderBackend:
    """Base backend: scoped working storage plus a single-use lifecycle."""

    name = "base"

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.work_dir = Path(tempfile.mkdtemp(prefix=self.settings.render_work_dir_prefix))
        self._busy = False
        self._closed = False
        self._cancelled = False
        logger.info(f"[BACKEND] {self.name} backend ready in {self.work_dir}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        return not self._closed

    def _ensure_available(self) -> None:
        if self._cancelled:
            raise ExportCancelled()
        if self._closed:
            raise BackendUnavailable(f"{self.name} backend was already released")

    def _discard_storage(self) -> None:
        shutil.rmtree(self.work_dir, ignore_errors=True)

    def close(self) -> None:
        """Release working storage. The instance cannot be reused."""
        if self._closed:
            return
        self._closed = True
        self._discard_storage()
        logger.info(f"[BACKEND] {self.name} backend released")

    def terminate(self) -> None:
        """Cancel: stop any running work and discard all working storage."""
        if self._closed and not self._busy:
            return
        self._cancelled = True
        logger.warning(f"[BACKEND] {self.name} backend terminated")
        self.close()

    # ------------------------------------------------------------------
    # Working storage
    # ------------------------------------------------------------------

    def _path(self, name: str) -> Path:
        path = (self.work_dir / name).resolve()
        if path.parent != self.work_dir.resolve():
            raise ValueError(f"Staged names must be plain file names: {name!r}")
        return path

    def stage(self, name: str, data: bytes) -> None:
        """Write bytes into working storage; re-staging the same name overwrites."""
        self._ensure_available()
        self._path(name).write_bytes(data)
        logger.debug(f"[BACKEND] Staged {name} ({len(data)} bytes)")

    def is_staged(self, name: str) -> bool:
        return not self._closed and self._path(name).is_file()

    def read_output(self, name: str) -> bytes:
        self._ensure_available()
        path = self._path(name)
        if not path.is_file():
            raise BackendExecutionFailed(f"Output {name} was not produced")
        return path.read_bytes()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def compile(self, plan: CompositionPlan) -> CompiledProgram:
        raise NotImplementedError

    async def execute(self, program: CompiledProgram, on_progress: Optional[ProgressCallback] = None) -> bytes:
        raise NotImplementedError

    async def render(self, plan: CompositionPlan, on_progress: Optional[ProgressCallback] = None) -> bytes:
        """Compile and execute a plan whose resources are already staged."""
        return await self.execute(self.compile(plan), on_progress)


class FFmpegBackend(RenderBackend):
    """CPU backend: one ffmpeg process running the compiled filter graph."""

    name = "cpu"

    def __init__(self, settings: Settings | None = None):
        super().__init__(settings)
        self.ffmpeg_path = self.settings.ffmpeg_path
        self.compiler = GraphCompiler(self._encoder_profile(), self.settings)
        self._proc: Optional[asyncio.subprocess.Process] = None

    def _encoder_profile(self) -> SoftwareEncoderProfile:
        return SoftwareEncoderProfile(self.settings)

    def compile(self, plan: CompositionPlan) -> CompiledProgram:
        self._ensure_available()
        return self.compiler.compile(plan)

    def terminate(self) -> None:
        proc = self._proc
        if proc is not None and proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        super().terminate()

    async def execute(self, program: CompiledProgram, on_progress: Optional[ProgressCallback] = None) -> bytes:
        """Run the program once and return the output file's bytes."""
        self._ensure_available()
        if self._busy:
            raise BackendUnavailable(f"{self.name} backend is already executing a job")

        missing = [name for name in program.required_files if not self.is_staged(name)]
        if missing:
            raise BackendExecutionFailed(f"Inputs not staged: {', '.join(missing)}")

        self._busy = True
        tracker = ProgressTracker(program.total_frames, on_progress)
        stderr_task: Optional[asyncio.Future] = None
        try:
            logger.info(f"[BACKEND] Starting ffmpeg ({program.total_frames} frames -> {program.output_name})")
            try:
                self._proc = await asyncio.create_subprocess_exec(
                    self.ffmpeg_path,
                    *program.args,
                    cwd=str(self.work_dir),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                logger.error(f"[BACKEND] Could not start {self.ffmpeg_path}: {e}")
                raise BackendExecutionFailed(f"Could not start {self.ffmpeg_path}: {e}") from e
            proc = self._proc
            stderr_task = asyncio.ensure_future(proc.stderr.read())

            async for raw_line in proc.stdout:
                line = raw_line.decode("utf-8", errors="replace").strip()
                if line.startswith("frame="):
                    try:
                        tracker.update(int(line.split("=", 1)[1]))
                    except ValueError:
                        pass
                elif line == "progress=end":
                    break

            stderr_output = await stderr_task
            returncode = await proc.wait()
        finally:
            if stderr_task is not None and not stderr_task.done():
                stderr_task.cancel()
            self._busy = False
            self._proc = None

        if self._cancelled:
            raise ExportCancelled()

        if returncode != 0:
            details = stderr_output.decode("utf-8", errors="replace").strip()
            logger.error(f"[BACKEND] ffmpeg exited with {returncode}: {details}")
            raise BackendExecutionFailed(details or f"ffmpeg exited with {returncode}", returncode=returncode)

        data = self.read_output(program.output_name)
        tracker.finish()
        logger.info(f"[BACKEND] ffmpeg finished: {program.output_name} ({len(data)} bytes)")
        return data
