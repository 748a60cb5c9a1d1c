"""SCM diff use case: the operations exposed to a UI.

Resolves the configured host (and its credential) for a page, builds the
matching provider adapter and delegates to the page dispatch and the file
materializer. The interface layer injects the concrete adapter factory.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Protocol, Sequence

from scm_diff.domain.entities import (
    AuthMode,
    FileSide,
    HostDescriptor,
    ModifiedFile,
    ScmProvider,
)
from scm_diff.domain.exceptions import HostNotFoundError, InvalidHostError, TokenNotSetError
from scm_diff.domain.ports.source_provider import SourceProvider
from scm_diff.domain.value_objects import is_valid_host, normalize_host, parse_page_url
from scm_diff.services.file_materializer import FileMaterializer
from scm_diff.services.host_matcher import HostedEntry, find_host_for_url, get_host_entry
from scm_diff.services.modified_files import fetch_modified_files

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[HostDescriptor, AuthMode | None], SourceProvider]


class CredentialedEntry(HostedEntry, Protocol):
    auth_mode: AuthMode | None

    def descriptor(self) -> HostDescriptor:
        ...

    def secret(self) -> str | None:
        ...


class ScmDiffUseCase:
    """Orchestrates host lookup, adapter selection and the core operations.

    Parameters
    ----------
    hosts:
        Configured hosts with their credentials.
    adapter_factory:
        Builds a provider adapter for a host descriptor and auth mode.
    materializer:
        Downloads file versions and opens them.
    """

    def __init__(
        self,
        hosts: Sequence[CredentialedEntry],
        adapter_factory: AdapterFactory,
        materializer: FileMaterializer,
    ) -> None:
        self._hosts = hosts
        self._adapter_factory = adapter_factory
        self._materializer = materializer

    # ── Host handling ───────────────────────────────────────────────────

    def match_host(self, page_url: str) -> tuple[ScmProvider | None, str]:
        """Provider and host configured for *page_url*, or ``None`` and the page's host."""
        entry = find_host_for_url(page_url, self._hosts)
        if entry is not None:
            return entry.provider, entry.host
        return None, parse_page_url(page_url).netloc

    async def check_connection(self, host: HostDescriptor, token: str | None = None) -> bool:
        """Probe *host* with *token*, or with the token stored for the configured host."""
        host = replace(host, host=normalize_host(host.host))
        if not is_valid_host(host.provider, host.host, host.auth_mode):
            raise InvalidHostError(f"Invalid {host.provider.value} host: '{host.host}'")
        if not token:
            token = get_host_entry(host, self._hosts).secret()
            if not token:
                raise TokenNotSetError(f"No token configured for {host.host}.")
        adapter = self._adapter_factory(host, host.auth_mode)
        valid = await adapter.test(token)
        logger.info("Connection test for %s (%s): %s", host.host, host.provider.value, valid)
        return valid

    # ── Core operations ─────────────────────────────────────────────────

    async def fetch_modified_files(self, page_url: str) -> list[ModifiedFile]:
        adapter, token = self._resolve(page_url)
        files = await fetch_modified_files(adapter, page_url, token)
        logger.info("Found %d supported modified files on %s", len(files), page_url)
        return files

    async def download_diff(self, page_url: str, file: ModifiedFile) -> str:
        adapter, token = self._resolve(page_url)
        return await self._materializer.download_diff(adapter, file, token)

    async def download_file(self, page_url: str, file: ModifiedFile, side: FileSide) -> str:
        adapter, token = self._resolve(page_url)
        return await self._materializer.download_file(adapter, file, side, token)

    # ── Helpers ─────────────────────────────────────────────────────────

    def _resolve(self, page_url: str) -> tuple[SourceProvider, str]:
        entry = find_host_for_url(page_url, self._hosts)
        if entry is None:
            raise HostNotFoundError(f"No configured host serves {page_url}.")
        token = entry.secret()
        if not token:
            raise TokenNotSetError(f"No token configured for {entry.host}.")
        adapter = self._adapter_factory(entry.descriptor(), entry.auth_mode)
        return adapter, token
