"""Source and font stores.

The engine only ever reads from these; persistence belongs to the caller.
A store returns ``None`` for anything it does not hold.
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from cliplore_export.config import get_settings

logger = logging.getLogger(__name__)


class SourceStore(Protocol):
    async def read(self, source_ref: str) -> bytes | None: ...


class FontStore(Protocol):
    async def read(self, family: str) -> bytes | None: ...


class InMemorySourceStore:
    """Dict-backed source store, mostly for tests and embedding callers."""

    def __init__(self, sources: dict[str, bytes] | None = None) -> None:
        self._sources = dict(sources or {})

    def put(self, source_ref: str, data: bytes) -> None:
        self._sources[source_ref] = data

    async def read(self, source_ref: str) -> bytes | None:
        return self._sources.get(source_ref)


class InMemoryFontStore:
    def __init__(self, fonts: dict[str, bytes] | None = None) -> None:
        self._fonts = dict(fonts or {})

    def put(self, family: str, data: bytes) -> None:
        self._fonts[family] = data

    async def read(self, family: str) -> bytes | None:
        return self._fonts.get(family)


class LocalSourceStore:
    """Reads sources from a directory; ``source_ref`` is a path relative to it."""

    def __init__(self, base_path: str | Path) -> None:
        self.base_path = Path(base_path).resolve()

    def _get_full_path(self, source_ref: str) -> Path | None:
        full_path = (self.base_path / source_ref).resolve()
        if not full_path.is_relative_to(self.base_path):
            logger.warning(f"[EXPORT] Source ref escapes store root: {source_ref}")
            return None
        return full_path

    async def read(self, source_ref: str) -> bytes | None:
        full_path = self._get_full_path(source_ref)
        if full_path is None or not full_path.is_file():
            return None
        return await asyncio.to_thread(full_path.read_bytes)


class LocalFontStore:
    """Reads ``<family>.ttf`` from the configured font directory."""

    def __init__(self, font_dir: str | Path | None = None) -> None:
        self.font_dir = Path(font_dir or get_settings().render_font_dir)

    async def read(self, family: str) -> bytes | None:
        path = self.font_dir / f"{family}.ttf"
        if not path.is_file():
            return None
        return await asyncio.to_thread(path.read_bytes)
