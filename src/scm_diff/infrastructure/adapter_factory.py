"""Adapter factory: pick the provider adapter for a host descriptor."""

from __future__ import annotations

import httpx

from scm_diff.domain.entities import AuthMode, HostDescriptor, ScmProvider
from scm_diff.domain.ports.source_provider import SourceProvider
from scm_diff.infrastructure.bitbucket_rest_adapter import BitbucketRestAdapter
from scm_diff.infrastructure.github_rest_adapter import GitHubRestAdapter
from scm_diff.infrastructure.gitlab_rest_adapter import GitLabRestAdapter


def create_adapter(
    host: HostDescriptor,
    client: httpx.AsyncClient,
    supported_extensions: frozenset[str],
    auth_mode: AuthMode | None = None,
) -> SourceProvider:
    """Build the adapter for ``host.provider``.

    *auth_mode* overrides the descriptor's own mode; only Bitbucket uses it.
    """
    match host.provider:
        case ScmProvider.GITHUB:
            return GitHubRestAdapter(host, client, supported_extensions)
        case ScmProvider.GITLAB:
            return GitLabRestAdapter(host, client, supported_extensions)
        case ScmProvider.BITBUCKET:
            adapter = BitbucketRestAdapter(host, client, supported_extensions)
            if auth_mode is not None:
                adapter.set_auth_mode(auth_mode)
            return adapter
    raise ValueError(f"Unsupported provider: {host.provider!r}")
