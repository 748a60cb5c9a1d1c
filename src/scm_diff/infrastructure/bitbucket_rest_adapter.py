"""Bitbucket Cloud REST API adapter: implements the SourceProvider port."""

from __future__ import annotations

import base64
import logging
import re
from typing import Any, Mapping
from urllib.parse import SplitResult, quote

import httpx

from scm_diff.domain.entities import (
    AuthMode,
    CommitDetails,
    CommitRef,
    CommonChange,
    DownloadType,
    HostDescriptor,
    ModifiedFile,
    PullDetails,
    PullRef,
)
from scm_diff.domain.exceptions import ConfigurationError, MalformedUpstreamResponseError
from scm_diff.domain.value_objects import BITBUCKET_CLOUD, HostScope
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

_COMMIT_RE = re.compile(
    r"^/(?P<owner>[^/]+)/(?P<repo>[^/]+)/commits/(?P<ref>[a-z0-9]+)$", re.IGNORECASE
)
# Bitbucket serves both /pull-requests/1 and /pull-request/1
_PULL_RE = re.compile(
    r"^/(?P<owner>[^/]+)/(?P<repo>[^/]+)/pull-?requests?/(?P<ref>\d+)(?:/.*)?$",
    re.IGNORECASE,
)

HTTP_HINTS: dict[int, str] = {
    401: UNAUTHORIZED_HINT,
    403: "Forbidden: Your credentials lack one or more required privilege scopes.",
    404: NOT_FOUND_HINT,
}


class BitbucketRestAdapter:
    """Concrete SourceProvider backed by the Bitbucket Cloud 2.0 REST API.

    The host may carry a ``/workspace[/repo]`` scope, which matters for
    scoped Bearer tokens. With Basic auth the token is ``email:api_token``.
    """

    def __init__(
        self,
        host: HostDescriptor,
        client: httpx.AsyncClient,
        supported_extensions: frozenset[str],
        *,
        http_hints: Mapping[int, str] | None = None,
    ) -> None:
        self.host = host
        self.auth_mode = host.auth_mode or AuthMode.BASIC
        self._client = client
        self._extensions = supported_extensions
        self._hints = dict(http_hints) if http_hints is not None else HTTP_HINTS

    def set_auth_mode(self, mode: AuthMode) -> None:
        self.auth_mode = mode

    # ── Connection ──────────────────────────────────────────────────────

    def get_api_url(self) -> str:
        hostname = HostScope.from_host(self.host.host).hostname
        if hostname != BITBUCKET_CLOUD:
            raise ConfigurationError(
                f"Bitbucket Cloud only supports {BITBUCKET_CLOUD}, got '{hostname}'."
            )
        return f"https://api.{hostname}/2.0"

    def create_headers(self, token: str) -> dict[str, str]:
        if self.auth_mode is AuthMode.BEARER:
            return {"Authorization": f"Bearer {token}"}
        encoded = base64.b64encode(token.encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {encoded}"}

    async def test(self, token: str) -> bool:
        """Probe the endpoint matching the auth mode and host scope.

        Basic credentials are account-wide: ``/user`` answering 200, or 403
        for a missing ``read:user`` scope, proves them valid. Bearer tokens
        belong to a workspace or repository, which is probed instead.
        """
        scope = HostScope.from_host(self.host.host)
        try:
            base_url = self.get_api_url()
            if self.auth_mode is AuthMode.BASIC:
                if scope.workspace or scope.repo:
                    logger.warning("Basic auth does not support a scoped host: %s", self.host.host)
                    return False
                resp = await self._client.get(
                    f"{base_url}/user", headers=self.create_headers(token)
                )
                return resp.status_code in (200, 403)

            if not scope.workspace:
                logger.warning("Bearer auth requires a workspace in the host: %s", self.host.host)
                return False
            probe = f"{base_url}/repositories/{quote(scope.workspace, safe='')}"
            if scope.repo:
                probe = f"{probe}/{quote(scope.repo, safe='')}"
            resp = await self._client.get(probe, headers=self.create_headers(token))
            return resp.status_code == 200
        except ConfigurationError:
            logger.warning("Connection test skipped for %s", self.host.host, exc_info=True)
            return False
        except httpx.HTTPError:
            logger.warning("Connection test against %s failed", self.host.host, exc_info=True)
            return False

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
            download_type=DownloadType.RAW,
            url_for=self._src_url_builder(ref.owner, ref.repo),
        )

    async def _get_commit_details(self, ref: CommitRef, token: str) -> CommitDetails:
        repo_url = self._repo_url(ref.owner, ref.repo)
        resp = await api_get(
            self._client,
            f"{repo_url}/commit/{ref.commit_hash}",
            headers=self.create_headers(token),
            context="commit details",
            hints=self._hints,
        )
        data = resp.json()
        changes = await self._fetch_paginated(f"{repo_url}/diffstat/{ref.commit_hash}", token)
        parents = data.get("parents")
        return CommitDetails(
            sha=ref.commit_hash,
            parents=[p["hash"] for p in parents if p.get("hash")] if isinstance(parents, list) else [],
            files=self._process_changes(changes),
        )

    # ── Pull requests ───────────────────────────────────────────────────

    async def handle_pull_request(self, ref: PullRef, token: str) -> list[ModifiedFile]:
        details = await self._get_pull_details(ref, token)
        return to_modified_files(
            details.files,
            sha_old=resolve_old_sha(details.base_sha, details.head_sha),
            sha_new=details.head_sha,
            download_type=DownloadType.RAW,
            url_for=self._src_url_builder(ref.owner, ref.repo),
        )

    async def _get_pull_details(self, ref: PullRef, token: str) -> PullDetails:
        pr_url = f"{self._repo_url(ref.owner, ref.repo)}/pullrequests/{ref.pull_number}"
        resp = await api_get(
            self._client,
            pr_url,
            headers=self.create_headers(token),
            context="pull request details",
            hints=self._hints,
        )
        data = resp.json()
        try:
            head_sha = data["source"]["commit"]["hash"]
        except (KeyError, TypeError) as exc:
            raise MalformedUpstreamResponseError(
                "Unable to retrieve the source commit from pull request data."
            ) from exc
        base_sha = ((data.get("destination") or {}).get("commit") or {}).get("hash")
        changes = await self._fetch_paginated(f"{pr_url}/diffstat", token)
        return PullDetails(
            base_sha=base_sha,
            head_sha=head_sha,
            files=self._process_changes(changes),
        )

    # ── Pagination ──────────────────────────────────────────────────────

    async def _fetch_paginated(self, url: str, token: str) -> list[dict[str, Any]]:
        """Follow ``next`` links until the last page, accumulating ``values``."""
        items: list[dict[str, Any]] = []
        next_url: str | None = url
        page = 1
        while next_url:
            resp = await api_get(
                self._client,
                next_url,
                headers=self.create_headers(token),
                context=f"paginated data (page {page})",
                hints=self._hints,
            )
            data = resp.json()
            values = data.get("values")
            if not isinstance(values, list):
                raise MalformedUpstreamResponseError(
                    f"Page {page} of {url} carries no list of values."
                )
            items.extend(values)
            next_url = data.get("next") or None
            page += 1
        return items

    # ── Helpers ─────────────────────────────────────────────────────────

    def _process_changes(self, changes: list[dict[str, Any]]) -> list[CommonChange]:
        result: list[CommonChange] = []
        for change in filter_supported(changes, _change_path, self._extensions):
            status = change.get("status")
            path = _change_path(change)
            old = change.get("old") or {}
            renamed = status == "renamed"
            result.append(
                CommonChange(
                    filename=path,
                    filename_old=old["path"] if renamed and old.get("path") else path,
                    new=status == "added",
                    renamed=renamed,
                    deleted=status == "removed",
                    additions=change.get("lines_added", 0),
                    deletions=change.get("lines_removed", 0),
                )
            )
        return result

    def _repo_url(self, owner: str, repo: str) -> str:
        return f"{self.get_api_url()}/repositories/{quote(owner, safe='')}/{quote(repo, safe='')}"

    def _src_url_builder(self, owner: str, repo: str) -> UrlBuilder:
        base = self._repo_url(owner, repo)

        def build(path: str, sha: str) -> str:
            return f"{base}/src/{sha}/{encode_path_segment(path)}"

        return build


def _change_path(change: dict[str, Any]) -> str:
    """Path of a diffstat entry; removed files only have an ``old`` side."""
    side = change.get("new") or change.get("old") or {}
    return side.get("path", "")
