"""File materializer: download file versions and hand them to a diff tool.

Every artifact is written as ``diff/{name}/{name}.{sha[:8]}.{old|new}.{ext}``
so that diffing the same commit again overwrites the previous files.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from urllib.parse import quote, unquote, urlsplit

import httpx

from scm_diff.domain.entities import DownloadType, FileSide, ModifiedFile
from scm_diff.domain.exceptions import (
    DownloadFailureError,
    InvalidInputError,
    MalformedUpstreamResponseError,
    UpstreamHttpError,
)
from scm_diff.domain.ports.download_host import (
    DownloadDelta,
    DownloadHost,
    DownloadRequest,
    Navigator,
)
from scm_diff.domain.ports.source_provider import SourceProvider

logger = logging.getLogger(__name__)

SHORT_HASH_LENGTH = 8

# Characters encodeURI leaves untouched besides alphanumerics.
_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"


def short_hash(sha: str) -> str:
    return sha[:SHORT_HASH_LENGTH]


def split_filename(filename: str) -> tuple[str, str]:
    """Split the basename of a repository path into ``(stem, extension)``."""
    basename = filename.rsplit("/", 1)[-1]
    stem, dot, ext = basename.rpartition(".")
    if not dot or not stem:
        return basename, ""
    return stem, ext


def side_suffix(sha: str, side: FileSide) -> str:
    return f".{short_hash(sha)}.{side.value}"


def download_name(filename: str, suffix: str) -> str:
    stem, ext = split_filename(filename)
    name = f"{stem}{suffix}.{ext}" if ext else f"{stem}{suffix}"
    return f"diff/{stem}/{name}"


def mime_type_for(filename: str) -> str:
    _, ext = split_filename(filename)
    if not ext or ext == "txt":
        return "text/plain"
    return f"text/{ext}"


def diff_uri(scheme: str, old_path: str, new_path: str) -> str:
    return quote(f"{scheme}://diff?file1={old_path}&file2={new_path}&cleanup=True", safe=_URI_SAFE)


def open_uri(scheme: str, path: str) -> str:
    return quote(f"{scheme}:///{path}", safe=_URI_SAFE)


def ensure_api_url(url: str, api_url: str) -> None:
    """Reject *url* unless it lies below *api_url* (same scheme, host and port)."""
    try:
        target, base = urlsplit(url), urlsplit(api_url)
        same_origin = (
            target.scheme.lower() == base.scheme.lower()
            and target.hostname == base.hostname
            and target.port == base.port
        )
    except ValueError:
        same_origin = False
    prefix = base.path.rstrip("/") + "/" if same_origin else ""
    if (
        not same_origin
        or not target.path.startswith(prefix)
        or ".." in unquote(target.path).split("/")
    ):
        raise InvalidInputError(f"Download URL {url} is not served by {api_url}.")


class FileMaterializer:
    """Fetches file versions through a provider and persists them via the host.

    Parameters
    ----------
    client:
        HTTP client used to fetch file content.
    download_host:
        The environment's download manager.
    navigator:
        Receives the synthetic URI that opens the downloaded file(s).
    scheme:
        URI scheme of the external diff tool.
    timeout:
        Seconds to wait for a download to complete; ``None`` waits forever.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        download_host: DownloadHost,
        navigator: Navigator,
        scheme: str = "tracetronic",
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self._host = download_host
        self._navigator = navigator
        self._scheme = scheme
        self._timeout = timeout

    # ── Public entry points ─────────────────────────────────────────────

    async def download_diff(
        self, provider: SourceProvider, file: ModifiedFile, token: str
    ) -> str:
        """Materialize both sides of *file* and open them as a diff.

        A side that does not exist (old side of an added file, new side of a
        deleted one) is replaced by an empty placeholder.
        """
        old_suffix = side_suffix(file.sha_old, FileSide.OLD)
        if file.new:
            old_path = await self.download_dummy(file.filename, old_suffix)
        else:
            old_path = await self._download_side(provider, file, FileSide.OLD, token)

        new_suffix = side_suffix(file.sha_new, FileSide.NEW)
        if file.deleted:
            new_path = await self.download_dummy(file.filename, new_suffix)
        else:
            new_path = await self._download_side(provider, file, FileSide.NEW, token)

        uri = diff_uri(self._scheme, old_path, new_path)
        await self._navigator.open(uri)
        return uri

    async def download_file(
        self, provider: SourceProvider, file: ModifiedFile, side: FileSide, token: str
    ) -> str:
        """Materialize one side of *file* and open it."""
        path = await self._download_side(provider, file, side, token)
        uri = open_uri(self._scheme, path)
        await self._navigator.open(uri)
        return uri

    # ── Fetching ────────────────────────────────────────────────────────

    async def _download_side(
        self, provider: SourceProvider, file: ModifiedFile, side: FileSide, token: str
    ) -> str:
        url = file.download.url_for(side)
        if url is None:
            raise DownloadFailureError(f"No {side.value} version of {file.filename} to download.")
        sha = file.sha_for(side)
        return await self.do_download_file(
            provider,
            url,
            file.download.type,
            file.filename,
            side_suffix(sha, side),
            token,
            sha,
        )

    async def do_download_file(
        self,
        provider: SourceProvider,
        url: str,
        download_type: DownloadType,
        filename: str,
        suffix: str,
        token: str,
        sha: str,
    ) -> str:
        """Fetch one file version and persist it; returns the local path."""
        ensure_api_url(url, provider.get_api_url())
        name = download_name(filename, suffix)
        logger.debug("Download file %s from %s as %s", filename, url, name)
        try:
            resp = await self._client.get(url, headers=provider.create_headers(token))
        except httpx.HTTPError as exc:
            raise UpstreamHttpError(
                f"Failed to fetch file {filename} for commit {sha} via {url}: {exc}",
                context="file content",
            ) from exc

        if not resp.is_success:
            raise UpstreamHttpError(
                f"Failed to fetch file {filename} for commit {sha} via {url}: "
                f"{resp.reason_phrase}",
                status_code=resp.status_code,
                context="file content",
            )

        if download_type is DownloadType.JSON:
            content = _decode_json_content(resp, filename)
        else:
            content = resp.content

        request = DownloadRequest(content=content, filename=name, mime_type=mime_type_for(filename))
        return await self.do_download(request)

    async def download_dummy(self, filename: str, suffix: str) -> str:
        """Persist an empty stand-in for a side that does not exist."""
        request = DownloadRequest(
            content=b"",
            filename=download_name(filename, suffix),
            mime_type=mime_type_for(filename),
        )
        return await self.do_download(request)

    # ── Download host interaction ───────────────────────────────────────

    async def do_download(self, request: DownloadRequest) -> str:
        """Start a download and wait for it to complete; returns the final path.

        The change listener is detached and the download entry erased
        whether or not the download succeeds.
        """
        download_id = await self._host.download(request)
        if download_id is None:
            raise DownloadFailureError("Failed to start download")

        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def on_changed(delta: DownloadDelta) -> None:
            if delta.id != download_id or done.done():
                return
            if delta.state == "complete":
                done.set_result(None)
            elif delta.state == "interrupted":
                done.set_exception(
                    DownloadFailureError(f"Download of {request.filename} was interrupted")
                )

        self._host.add_listener(on_changed)
        try:
            await asyncio.wait_for(done, self._timeout)
            items = await self._host.search(download_id)
            if not items:
                raise DownloadFailureError("Failed to retrieve download item")
            return items[0].filename
        except asyncio.TimeoutError as exc:
            raise DownloadFailureError(
                f"Download of {request.filename} did not complete within {self._timeout} seconds"
            ) from exc
        finally:
            self._host.remove_listener(on_changed)
            await self._host.erase(download_id)


def _decode_json_content(resp: httpx.Response, filename: str) -> bytes:
    """Decode the base64 ``content`` field of a contents-API response."""
    try:
        return base64.b64decode(resp.json()["content"])
    except (ValueError, KeyError, TypeError, binascii.Error) as exc:
        raise MalformedUpstreamResponseError(
            f"Response for {filename} carries no base64 content."
        ) from exc
