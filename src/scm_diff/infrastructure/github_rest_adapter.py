"""GitHub REST API adapter: implements the SourceProvider port."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping
from urllib.parse import SplitResult, quote

import httpx

from scm_diff.domain.entities import (
    CommitDetails,
    CommitRef,
    CommonChange,
    DownloadType,
    HostDescriptor,
    ModifiedFile,
    PullDetails,
    PullRef,
)
from scm_diff.domain.exceptions import MalformedUpstreamResponseError
from scm_diff.domain.value_objects import normalize_host
from scm_diff.infrastructure.http_support import (
    NOT_FOUND_HINT,
    UNAUTHORIZED_HINT,
    api_get,
)
from scm_diff.services.change_mapper import (
    UrlBuilder,
    filter_supported,
    resolve_old_sha,
    to_modified_files,
)

logger = logging.getLogger(__name__)

_GITHUB_CLOUD = "github.com"
_GITHUB_API = "https://api.github.com"

# e.g. /octo/widgets/commit/fc33321adcf0ff9d697f64d32a6dfe5f5a12903a
_COMMIT_RE = re.compile(
    r"^/(?P<owner>[^/]+)/(?P<repo>[^/]+)/commit/(?P<ref>[a-z0-9]+)$", re.IGNORECASE
)
# e.g. /octo/widgets/pull/1 or /octo/widgets/pull/1/files
_PULL_RE = re.compile(
    r"^/(?P<owner>[^/]+)/(?P<repo>[^/]+)/pull/(?P<ref>\d+)(?:/.*)?$", re.IGNORECASE
)

HTTP_HINTS: dict[int, str] = {
    401: UNAUTHORIZED_HINT,
    403: (
        "Forbidden: If you use a fine-grained access token, make sure to give "
        'permissions "Content" and "Pull requests".'
    ),
    404: NOT_FOUND_HINT,
}


class GitHubRestAdapter:
    """Concrete SourceProvider backed by the GitHub v3 REST API.

    Works against github.com and GitHub Enterprise Server (``/api/v3``).
    """

    def __init__(
        self,
        host: HostDescriptor,
        client: httpx.AsyncClient,
        supported_extensions: frozenset[str],
        *,
        per_page: int = 100,
        http_hints: Mapping[int, str] | None = None,
    ) -> None:
        self.host = host
        self._client = client
        self._extensions = supported_extensions
        self._per_page = per_page
        self._hints = dict(http_hints) if http_hints is not None else HTTP_HINTS

    # ── Connection ──────────────────────────────────────────────────────

    def get_api_url(self) -> str:
        host = normalize_host(self.host.host)
        if host == _GITHUB_CLOUD:
            return _GITHUB_API
        return f"https://{host}/api/v3"

    def create_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"token {token}"}

    async def test(self, token: str) -> bool:
        """GET the API root; any non-success answer or network error is ``False``."""
        url = self.get_api_url()
        try:
            resp = await self._client.get(url, headers=self.create_headers(token))
        except httpx.HTTPError:
            logger.warning("Connection test against %s failed", url, exc_info=True)
            return False
        if not resp.is_success:
            logger.warning("Connection test against %s returned HTTP %d", url, resp.status_code)
        return resp.is_success

    # ── Page detection ──────────────────────────────────────────────────

    def test_commit(self, url: SplitResult) -> CommitRef | None:
        match = _COMMIT_RE.match(url.path)
        if not match:
            return None
        return CommitRef(owner=match["owner"], repo=match["repo"], commit_hash=match["ref"])

    def test_pull_request(self, url: SplitResult) -> PullRef | None:
        match = _PULL_RE.match(url.path)
        if not match:
            return None
        return PullRef(owner=match["owner"], repo=match["repo"], pull_number=match["ref"])

    # ── Commits ─────────────────────────────────────────────────────────

    async def handle_commit(self, ref: CommitRef, token: str) -> list[ModifiedFile]:
        details = await self._get_commit_details(ref, token)
        parent = details.parents[0] if details.parents else None
        return to_modified_files(
            details.files,
            sha_old=resolve_old_sha(parent, details.sha),
            sha_new=details.sha,
            download_type=DownloadType.JSON,
            url_for=self._contents_url_builder(ref.owner, ref.repo),
        )

    async def _get_commit_details(self, ref: CommitRef, token: str) -> CommitDetails:
        """GET /repos/{owner}/{repo}/commits/{sha} → CommitDetails."""
        resp = await api_get(
            self._client,
            f"{self._repo_url(ref.owner, ref.repo)}/commits/{ref.commit_hash}",
            headers=self.create_headers(token),
            context="commit details",
            hints=self._hints,
        )
        data = resp.json()
        files = data.get("files")
        if not isinstance(files, list):
            raise MalformedUpstreamResponseError(
                "Unable to retrieve modified files from commit data."
            )
        return CommitDetails(
            sha=data.get("sha") or ref.commit_hash,
            parents=[p["sha"] for p in data.get("parents") or [] if p.get("sha")],
            files=self._process_changes(files),
        )

    # ── Pull requests ───────────────────────────────────────────────────

    async def handle_pull_request(self, ref: PullRef, token: str) -> list[ModifiedFile]:
        details = await self._get_pull_details(ref, token)
        return to_modified_files(
            details.files,
            sha_old=resolve_old_sha(details.base_sha, details.head_sha),
            sha_new=details.head_sha,
            download_type=DownloadType.JSON,
            url_for=self._contents_url_builder(ref.owner, ref.repo),
        )

    async def _get_pull_details(self, ref: PullRef, token: str) -> PullDetails:
        """GET /pulls/{n} for the SHAs, then every page of /pulls/{n}/files."""
        pull_url = f"{self._repo_url(ref.owner, ref.repo)}/pulls/{ref.pull_number}"
        resp = await api_get(
            self._client,
            pull_url,
            headers=self.create_headers(token),
            context="pull request details",
            hints=self._hints,
        )
        info = resp.json()
        head_sha = (info.get("head") or {}).get("sha")
        if not head_sha:
            raise MalformedUpstreamResponseError(
                "Unable to retrieve the head commit from pull request data."
            )
        files = await self._fetch_paginated(f"{pull_url}/files", token)
        return PullDetails(
            base_sha=(info.get("base") or {}).get("sha"),
            head_sha=head_sha,
            files=self._process_changes(files),
        )

    async def _fetch_paginated(self, url: str, token: str) -> list[dict[str, Any]]:
        """Collect every page; a page shorter than ``per_page`` is the last one."""
        page = 1
        items: list[dict[str, Any]] = []
        while True:
            resp = await api_get(
                self._client,
                url,
                headers=self.create_headers(token),
                context=f"paginated data (page {page})",
                hints=self._hints,
                params={"per_page": self._per_page, "page": page},
            )
            batch = resp.json()
            if not isinstance(batch, list):
                raise MalformedUpstreamResponseError(
                    f"Page {page} of {url} carries no list of files."
                )
            items.extend(batch)
            if len(batch) != self._per_page:
                return items
            page += 1

    # ── Helpers ─────────────────────────────────────────────────────────

    def _process_changes(self, files: list[dict[str, Any]]) -> list[CommonChange]:
        return [
            CommonChange(
                filename=f["filename"],
                filename_old=f.get("previous_filename") or f["filename"],
                new=f.get("status") == "added",
                renamed=f.get("status") == "renamed",
                deleted=f.get("status") == "removed",
                additions=f.get("additions", 0),
                deletions=f.get("deletions", 0),
            )
            for f in filter_supported(files, lambda f: f["filename"], self._extensions)
        ]

    def _repo_url(self, owner: str, repo: str) -> str:
        return f"{self.get_api_url()}/repos/{owner}/{repo}"

    def _contents_url_builder(self, owner: str, repo: str) -> UrlBuilder:
        base = self._repo_url(owner, repo)

        def build(path: str, sha: str) -> str:
            return f"{base}/contents/{quote(path, safe='/')}?ref={sha}"

        return build
