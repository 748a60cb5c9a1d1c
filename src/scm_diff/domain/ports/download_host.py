"""Download host and navigator ports: the file primitives of the host environment."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol


@dataclass(frozen=True, slots=True)
class DownloadRequest:
    """Bytes to persist under a relative *filename*."""

    content: bytes
    filename: str
    mime_type: str
    conflict_action: str = "overwrite"


@dataclass(frozen=True, slots=True)
class DownloadDelta:
    """A state change of a running download."""

    id: int
    state: str | None = None


@dataclass(frozen=True, slots=True)
class DownloadItem:
    """A download known to the host, with its final absolute path."""

    id: int
    filename: str
    state: str


DownloadListener = Callable[[DownloadDelta], None]


class DownloadHost(Protocol):
    """Abstract contract for the environment's download manager.

    ``download`` returns an identifier (or ``None`` if nothing was started).
    Change events are delivered to listeners asynchronously, never from inside
    ``download`` itself.
    """

    async def download(self, request: DownloadRequest) -> int | None:
        ...

    def add_listener(self, listener: DownloadListener) -> None:
        ...

    def remove_listener(self, listener: DownloadListener) -> None:
        ...

    async def search(self, download_id: int) -> list[DownloadItem]:
        ...

    async def erase(self, download_id: int) -> None:
        ...


class Navigator(Protocol):
    """Abstract contract for handing a synthetic URI to the environment."""

    async def open(self, uri: str) -> None:
        ...
