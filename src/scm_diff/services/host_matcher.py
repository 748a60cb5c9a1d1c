"""Match page URLs and host descriptors against configured hosts."""

from __future__ import annotations

from typing import Protocol, Sequence, TypeVar

from scm_diff.domain.entities import HostDescriptor, ScmProvider
from scm_diff.domain.exceptions import HostNotFoundError
from scm_diff.domain.value_objects import BITBUCKET_CLOUD, normalize_host, parse_page_url


class HostedEntry(Protocol):
    provider: ScmProvider
    host: str


E = TypeVar("E", bound=HostedEntry)


def find_host_for_url(page_url: str, entries: Sequence[E]) -> E | None:
    """Return the configured entry serving *page_url*, if any.

    Bitbucket Cloud entries may be scoped to a workspace or repository; the
    most specific scope matching the page path wins.
    """
    url = parse_page_url(page_url)
    hostname = (url.hostname or "").lower()

    if hostname == BITBUCKET_CLOUD:
        parts = [p for p in url.path.strip("/").split("/") if p]
        candidates = []
        if len(parts) >= 2:
            candidates.append(f"{BITBUCKET_CLOUD}/{parts[0]}/{parts[1]}")
            candidates.append(f"{BITBUCKET_CLOUD}/{parts[0]}")
        candidates.append(BITBUCKET_CLOUD)

        bitbucket = [e for e in entries if e.provider is ScmProvider.BITBUCKET]
        for candidate in candidates:
            key = normalize_host(candidate)
            for entry in bitbucket:
                if normalize_host(entry.host) == key:
                    return entry
        return None

    key = normalize_host(hostname)
    for entry in entries:
        if normalize_host(entry.host) == key:
            return entry
    return None


def get_host_entry(descriptor: HostDescriptor, entries: Sequence[E]) -> E:
    """Return the entry with the descriptor's provider and (normalized) host."""
    key = normalize_host(descriptor.host)
    for entry in entries:
        if entry.provider is descriptor.provider and normalize_host(entry.host) == key:
            return entry
    raise HostNotFoundError(
        f"No {descriptor.provider.value} host '{descriptor.host}' is configured."
    )
