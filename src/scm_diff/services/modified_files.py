"""List the modified files behind a commit or pull request page URL."""

from __future__ import annotations

import logging

from scm_diff.domain.entities import ModifiedFile
from scm_diff.domain.exceptions import UnrecognizedPageError
from scm_diff.domain.ports.source_provider import SourceProvider
from scm_diff.domain.value_objects import parse_page_url

logger = logging.getLogger(__name__)


async def fetch_modified_files(
    provider: SourceProvider, page_url: str, token: str
) -> list[ModifiedFile]:
    """Dispatch *page_url* to the provider's commit or pull request handler.

    Commit pages are tried first. Raises ``InvalidPageUrlError`` for
    something that is not a URL and ``UnrecognizedPageError`` when neither
    page shape matches.
    """
    url = parse_page_url(page_url)

    commit = provider.test_commit(url)
    logger.debug("test commit: %s", commit)
    if commit is not None:
        return await provider.handle_commit(commit, token)

    pull = provider.test_pull_request(url)
    logger.debug("test pull request: %s", pull)
    if pull is not None:
        return await provider.handle_pull_request(pull, token)

    raise UnrecognizedPageError(f"Not a commit or pull request page: {page_url}")
