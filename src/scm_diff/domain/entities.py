"""Domain entities: pure data structures with no external dependencies."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ScmProvider(str, Enum):
    """Hosted source-control products with a provider adapter."""

    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"


class AuthMode(str, Enum):
    """Authorization scheme for providers that support more than one."""

    BASIC = "basic"
    BEARER = "bearer"


class DownloadType(str, Enum):
    """How a download URL returns file content."""

    RAW = "raw"  # body is the file itself
    JSON = "json"  # body is a JSON document with base64 ``content``


class FileSide(str, Enum):
    """Which version of a modified file to materialize."""

    OLD = "old"
    NEW = "new"


@dataclass(frozen=True, slots=True)
class HostDescriptor:
    """A configured SCM host the adapters are parameterized with."""

    provider: ScmProvider
    host: str
    auth_mode: AuthMode | None = None


@dataclass(frozen=True, slots=True)
class CommitRef:
    """A single commit page: ``owner/repo`` plus the commit hash."""

    owner: str
    repo: str
    commit_hash: str


@dataclass(frozen=True, slots=True)
class PullRef:
    """A pull request (or merge request) page: ``owner/repo`` plus its number."""

    owner: str
    repo: str
    pull_number: str


@dataclass(frozen=True, slots=True)
class CommonChange:
    """Provider-agnostic status of one changed file, before URLs are resolved."""

    filename: str
    filename_old: str
    new: bool
    renamed: bool
    deleted: bool
    additions: int
    deletions: int


@dataclass(frozen=True, slots=True)
class DownloadSpec:
    """Authenticated-fetchable URLs of both sides of a change."""

    type: DownloadType
    old: str | None
    new: str | None

    def url_for(self, side: FileSide) -> str | None:
        return self.old if side is FileSide.OLD else self.new


@dataclass(frozen=True, slots=True)
class ModifiedFile:
    """A fully resolved change record, as handed to the caller."""

    filename: str
    filename_old: str
    new: bool
    deleted: bool
    renamed: bool
    additions: int
    deletions: int
    sha_old: str
    sha_new: str
    download: DownloadSpec

    def sha_for(self, side: FileSide) -> str:
        return self.sha_old if side is FileSide.OLD else self.sha_new


@dataclass(frozen=True, slots=True)
class CommitDetails:
    """Normalized commit metadata: its own SHA, parent SHAs, and changes."""

    sha: str
    parents: list[str]
    files: list[CommonChange]


@dataclass(frozen=True, slots=True)
class PullDetails:
    """Normalized pull request metadata: base and head SHAs, and changes."""

    base_sha: str | None
    head_sha: str
    files: list[CommonChange]
