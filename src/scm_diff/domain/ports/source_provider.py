"""Source provider port, defined by the domain and implemented by infrastructure."""

from __future__ import annotations

from typing import Protocol
from urllib.parse import SplitResult

from scm_diff.domain.entities import CommitRef, HostDescriptor, ModifiedFile, PullRef


class SourceProvider(Protocol):
    """Capability contract every hosted-SCM adapter fulfils."""

    host: HostDescriptor

    def get_api_url(self) -> str:
        """Return the base URL of the provider's REST API for this host."""
        ...

    def create_headers(self, token: str) -> dict[str, str]:
        """Return the ``Authorization`` header for *token*."""
        ...

    async def test(self, token: str) -> bool:
        """Probe the API with *token*; never raises."""
        ...

    def test_commit(self, url: SplitResult) -> CommitRef | None:
        """Match *url* against the provider's commit page shape."""
        ...

    def test_pull_request(self, url: SplitResult) -> PullRef | None:
        """Match *url* against the provider's pull/merge request page shape."""
        ...

    async def handle_commit(self, ref: CommitRef, token: str) -> list[ModifiedFile]:
        """Return the supported files modified by a commit."""
        ...

    async def handle_pull_request(self, ref: PullRef, token: str) -> list[ModifiedFile]:
        """Return the supported files modified by a pull/merge request."""
        ...
