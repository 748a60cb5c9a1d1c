"""GitLab REST API adapter: implements the SourceProvider port."""

from __future__ import annotations

import asyncio
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
    encode_path_segment,
    filter_supported,
    resolve_old_sha,
    to_modified_files,
)

logger = logging.getLogger(__name__)

# Owners may be nested groups: /group/subgroup/project/-/commit/<sha>
_COMMIT_RE = re.compile(
    r"^/(?P<owner>.+)/(?P<repo>[^/]+)/-/commit/(?P<ref>[a-z0-9]+)$", re.IGNORECASE
)
_MERGE_REQUEST_RE = re.compile(
    r"^/(?P<owner>.+)/(?P<repo>[^/]+)/-/merge_requests/(?P<ref>\d+)(?:/.*)?$",
    re.IGNORECASE,
)
_DIFF_LINE_RE = re.compile(r"\r?\n([+-])")

# Present on every GitLab API response, including 403s for missing scopes.
_GITLAB_META_HEADER = "x-gitlab-meta"

HTTP_HINTS: dict[int, str] = {
    401: UNAUTHORIZED_HINT,
    403: 'Forbidden: Insufficient scope. Make sure to give permission "read_api".',
    404: NOT_FOUND_HINT,
}


def parse_stats(diff: str) -> tuple[int, int]:
    """Count added and removed lines of a unified diff body."""
    additions = deletions = 0
    for marker in _DIFF_LINE_RE.findall(diff or ""):
        if marker == "+":
            additions += 1
        else:
            deletions += 1
    return additions, deletions


class GitLabRestAdapter:
    """Concrete SourceProvider backed by the GitLab v4 REST API."""

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
        return f"https://{normalize_host(self.host.host)}/api/v4"

    def create_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def test(self, token: str) -> bool:
        """GET /metadata; a 403 from GitLab itself still proves the token valid."""
        url = f"{self.get_api_url()}/metadata"
        try:
            resp = await self._client.get(url, headers=self.create_headers(token))
        except httpx.HTTPError:
            logger.warning("Connection test against %s failed", url, exc_info=True)
            return False
        if resp.is_success:
            return True
        if resp.status_code == 403 and _GITLAB_META_HEADER in resp.headers:
            logger.info("Token for %s is valid but lacks the read_api scope", url)
            return True
        logger.warning("Connection test against %s returned HTTP %d", url, resp.status_code)
        return False

    # ── Page detection ──────────────────────────────────────────────────

    def test_commit(self, url: SplitResult) -> CommitRef | None:
        match = _COMMIT_RE.match(url.path)
        if not match:
            return None
        return CommitRef(owner=match["owner"], repo=match["repo"], commit_hash=match["ref"])

    def test_pull_request(self, url: SplitResult) -> PullRef | None:
        match = _MERGE_REQUEST_RE.match(url.path)
        if not match:
            return None
        return PullRef(owner=match["owner"], repo=match["repo"], pull_number=match["ref"])

    # ── Commits ─────────────────────────────────────────────────────────

    async def handle_commit(self, ref: CommitRef, token: str) -> list[ModifiedFile]:
        details = await self._get_commit_details(ref, token)
        # no parent on the first commit of a repository
        parent = details.parents[0] if details.parents else None
        return to_modified_files(
            details.files,
            sha_old=resolve_old_sha(parent, details.sha),
            sha_new=details.sha,
            download_type=DownloadType.RAW,
            url_for=self._raw_url_builder(ref.owner, ref.repo),
        )

    async def _get_commit_details(self, ref: CommitRef, token: str) -> CommitDetails:
        commit_url = (
            f"{self._project_url(ref.owner, ref.repo)}/repository/commits/{ref.commit_hash}"
        )
        resp = await api_get(
            self._client,
            commit_url,
            headers=self.create_headers(token),
            context="commit details",
            hints=self._hints,
        )
        data = resp.json()
        changes = await self._fetch_paginated(f"{commit_url}/diff", token)
        return CommitDetails(
            sha=ref.commit_hash,
            parents=list(data.get("parent_ids") or []),
            files=self._process_changes(changes),
        )

    # ── Merge requests ──────────────────────────────────────────────────

    async def handle_pull_request(self, ref: PullRef, token: str) -> list[ModifiedFile]:
        details = await self._get_pull_details(ref, token)
        # base_sha is unset while the target branch has no commit yet
        return to_modified_files(
            details.files,
            sha_old=resolve_old_sha(details.base_sha, details.head_sha),
            sha_new=details.head_sha,
            download_type=DownloadType.RAW,
            url_for=self._raw_url_builder(ref.owner, ref.repo),
        )

    async def _get_pull_details(self, ref: PullRef, token: str) -> PullDetails:
        mr_url = f"{self._project_url(ref.owner, ref.repo)}/merge_requests/{ref.pull_number}"
        resp = await api_get(
            self._client,
            mr_url,
            headers=self.create_headers(token),
            context="merge request details",
            hints=self._hints,
        )
        diff_refs = resp.json().get("diff_refs") or {}
        if not diff_refs.get("head_sha"):
            raise MalformedUpstreamResponseError(
                "Unable to retrieve diff refs from merge request data."
            )
        changes = await self._fetch_paginated(f"{mr_url}/diffs", token)
        return PullDetails(
            base_sha=diff_refs.get("base_sha"),
            head_sha=diff_refs["head_sha"],
            files=self._process_changes(changes),
        )

    # ── Pagination ──────────────────────────────────────────────────────

    async def _fetch_paginated(self, url: str, token: str) -> list[dict[str, Any]]:
        """Fetch page 1, read ``x-total-pages``, then the remaining pages concurrently."""
        first = await self._fetch_page(url, token, 1)
        total_pages = _parse_total_pages(first.headers.get("x-total-pages"))
        items = _as_list(first.json())
        if total_pages > 1:
            logger.debug("Fetching %d more pages of %s", total_pages - 1, url)
            tasks = [
                asyncio.ensure_future(self._fetch_page(url, token, page))
                for page in range(2, total_pages + 1)
            ]
            try:
                rest = await asyncio.gather(*tasks)
            except BaseException:
                # the first failure aborts the pages still in flight
                for task in tasks:
                    task.cancel()
                raise
            for resp in rest:
                items.extend(_as_list(resp.json()))
        return items

    async def _fetch_page(self, url: str, token: str, page: int) -> httpx.Response:
        return await api_get(
            self._client,
            url,
            headers=self.create_headers(token),
            context=f"paginated data (page {page})",
            hints=self._hints,
            params={"per_page": self._per_page, "page": page},
        )

    # ── Helpers ─────────────────────────────────────────────────────────

    def _process_changes(self, changes: list[dict[str, Any]]) -> list[CommonChange]:
        result: list[CommonChange] = []
        for change in filter_supported(changes, lambda c: c["new_path"], self._extensions):
            additions, deletions = parse_stats(change.get("diff", ""))
            result.append(
                CommonChange(
                    filename=change["new_path"],
                    filename_old=change.get("old_path") or change["new_path"],
                    new=bool(change.get("new_file")),
                    renamed=bool(change.get("renamed_file")),
                    deleted=bool(change.get("deleted_file")),
                    additions=additions,
                    deletions=deletions,
                )
            )
        return result

    def _project_url(self, owner: str, repo: str) -> str:
        namespace = quote(f"{owner}/{repo}", safe="")
        return f"{self.get_api_url()}/projects/{namespace}"

    def _raw_url_builder(self, owner: str, repo: str) -> UrlBuilder:
        base = f"{self._project_url(owner, repo)}/repository/files"

        def build(path: str, sha: str) -> str:
            return f"{base}/{encode_path_segment(path)}/raw?ref={sha}"

        return build


def _parse_total_pages(raw: str | None) -> int:
    try:
        return max(int(raw), 1) if raw else 1
    except ValueError:
        return 1


def _as_list(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, list):
        raise MalformedUpstreamResponseError("Expected a list of changes from GitLab.")
    return payload
