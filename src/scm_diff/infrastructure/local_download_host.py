"""Filesystem-backed download host and navigator."""

from __future__ import annotations

import asyncio
import itertools
import logging
import webbrowser
from pathlib import Path

import aiofiles  # type: ignore[import-untyped]

from scm_diff.domain.exceptions import DownloadFailureError
from scm_diff.domain.ports.download_host import (
    DownloadDelta,
    DownloadItem,
    DownloadListener,
    DownloadRequest,
)

logger = logging.getLogger(__name__)


class LocalDownloadHost:
    """Concrete DownloadHost writing payloads below a root directory."""

    def __init__(self, root: Path) -> None:
        self._root = root.resolve()
        self._ids = itertools.count(1)
        self._items: dict[int, DownloadItem] = {}
        self._listeners: list[DownloadListener] = []

    async def download(self, request: DownloadRequest) -> int | None:
        target = self._target_path(request)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiofiles.open(target, "wb") as f:
                await f.write(request.content)
        except OSError as exc:
            raise DownloadFailureError(f"Failed to write {target}: {exc}") from exc

        download_id = next(self._ids)
        self._items[download_id] = DownloadItem(
            id=download_id, filename=str(target), state="complete"
        )
        logger.debug("Download %d written to %s (%d bytes)", download_id, target, len(request.content))
        asyncio.get_running_loop().call_soon(
            self._emit, DownloadDelta(id=download_id, state="complete")
        )
        return download_id

    def add_listener(self, listener: DownloadListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: DownloadListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def search(self, download_id: int) -> list[DownloadItem]:
        item = self._items.get(download_id)
        return [item] if item else []

    async def erase(self, download_id: int) -> None:
        """Forget the download entry; the file on disk stays."""
        self._items.pop(download_id, None)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _emit(self, delta: DownloadDelta) -> None:
        for listener in list(self._listeners):
            listener(delta)

    def _target_path(self, request: DownloadRequest) -> Path:
        target = (self._root / request.filename).resolve()
        if self._root not in target.parents:
            raise DownloadFailureError(f"Refusing to write outside {self._root}: {request.filename}")
        if request.conflict_action == "uniquify":
            counter = 1
            candidate = target
            while candidate.exists():
                candidate = target.with_name(f"{target.stem} ({counter}){target.suffix}")
                counter += 1
            return candidate
        return target


class SystemNavigator:
    """Concrete Navigator: logs the URI and optionally opens it with the OS."""

    def __init__(self, launch: bool = False) -> None:
        self._launch = launch
        self.history: list[str] = []

    async def open(self, uri: str) -> None:
        logger.info("Navigating to %s", uri)
        self.history.append(uri)
        if self._launch:
            opened = await asyncio.to_thread(webbrowser.open, uri)
            if not opened:
                logger.warning("No handler registered for %s", uri)
