"""Value objects: host normalization, host validation and page URL parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import SplitResult, urlsplit

from scm_diff.domain.entities import AuthMode, ScmProvider
from scm_diff.domain.exceptions import InvalidPageUrlError

_LEADING_RE = re.compile(r"^(?:\s|https?://)+", re.IGNORECASE)
_TRAILING_RE = re.compile(r"[\s/]+$")

IP_RE = re.compile(
    r"^(([0-9]|[1-9][0-9]|1[0-9]{2}|2[0-4][0-9]|25[0-5])\.){3}"
    r"([0-9]|[1-9][0-9]|1[0-9]{2}|2[0-4][0-9]|25[0-5])$"
)
HOSTNAME_RE = re.compile(
    r"^(([a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])\.)*"
    r"([A-Za-z0-9]|[A-Za-z0-9][A-Za-z0-9-]*[A-Za-z0-9])$"
)
BITBUCKET_HOST_RE = re.compile(
    r"^bitbucket\.org(?:/[A-Za-z0-9._-]+(?:/[A-Za-z0-9._-]+)?)?$", re.IGNORECASE
)
BITBUCKET_SCOPED_RE = re.compile(
    r"^bitbucket\.org/[A-Za-z0-9._-]+(?:/[A-Za-z0-9._-]+)?$", re.IGNORECASE
)
BITBUCKET_CLOUD = "bitbucket.org"


def normalize_host(raw: str) -> str:
    """Trim, drop the ``http(s)://`` prefix and trailing slashes, lowercase."""
    host = _LEADING_RE.sub("", raw)
    return _TRAILING_RE.sub("", host).lower()


def is_ip_address(host: str) -> bool:
    return IP_RE.match(host) is not None


def is_hostname(host: str) -> bool:
    return HOSTNAME_RE.match(host) is not None


def is_bitbucket_host(host: str) -> bool:
    """``bitbucket.org`` with an optional ``/workspace[/repo]`` scope."""
    return BITBUCKET_HOST_RE.match(host) is not None


def is_valid_host(
    provider: ScmProvider, host: str, auth_mode: AuthMode | None = None
) -> bool:
    """Check a normalized host string against the rules of *provider*.

    Bitbucket Basic credentials are account-wide and accept only the bare
    ``bitbucket.org``; Bearer tokens are scoped and need at least a workspace.
    """
    host = normalize_host(host)
    match provider:
        case ScmProvider.GITHUB | ScmProvider.GITLAB:
            return is_ip_address(host) or is_hostname(host)
        case ScmProvider.BITBUCKET:
            if auth_mode is AuthMode.BEARER:
                return BITBUCKET_SCOPED_RE.match(host) is not None
            if auth_mode is AuthMode.BASIC:
                return host == BITBUCKET_CLOUD
            return is_bitbucket_host(host)


@dataclass(frozen=True, slots=True)
class HostScope:
    """A normalized host split into hostname and optional Bitbucket scope.

    ``bitbucket.org/acme/widgets`` yields hostname ``bitbucket.org``,
    workspace ``acme`` and repo ``widgets``.
    """

    hostname: str
    workspace: str | None = None
    repo: str | None = None

    @classmethod
    def from_host(cls, host: str) -> HostScope:
        parts = normalize_host(host).split("/")
        workspace = parts[1] if len(parts) > 1 and parts[1] else None
        repo = parts[2] if len(parts) > 2 and parts[2] else None
        return cls(hostname=parts[0], workspace=workspace, repo=repo)


def parse_page_url(url: str) -> SplitResult:
    """Parse an absolute page URL, rejecting anything without scheme and host."""
    try:
        parsed = urlsplit(url.strip())
        # accessing .port validates the netloc
        _ = parsed.port
    except ValueError as exc:
        raise InvalidPageUrlError(f"Not a valid URL: {url}") from exc
    if not parsed.scheme or not parsed.netloc:
        raise InvalidPageUrlError(f"Not a valid URL: {url}")
    return parsed
