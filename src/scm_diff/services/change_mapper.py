"""Change mapping: extension filtering and the common ``ModifiedFile`` shape."""

from __future__ import annotations

from typing import Callable, Iterable, TypeVar
from urllib.parse import quote

from scm_diff.domain.entities import (
    CommonChange,
    DownloadSpec,
    DownloadType,
    ModifiedFile,
)

T = TypeVar("T")

# (path, sha) -> URL that returns the file at that revision
UrlBuilder = Callable[[str, str], str]


def file_extension(filename: str) -> str | None:
    """Return the part of the basename after its last ``.``, if any."""
    basename = filename.rsplit("/", 1)[-1]
    _, dot, ext = basename.rpartition(".")
    if not dot or not ext:
        return None
    return ext


def is_supported_file(filename: str, extensions: frozenset[str]) -> bool:
    ext = file_extension(filename)
    return ext is not None and ext in extensions


def filter_supported(
    items: Iterable[T], path_of: Callable[[T], str], extensions: frozenset[str]
) -> list[T]:
    """Keep the provider-native items whose path has a supported extension."""
    return [item for item in items if is_supported_file(path_of(item), extensions)]


def encode_path_segment(path: str) -> str:
    """Percent-encode a repository path, ``/`` included, as a single URL path segment."""
    return quote(path, safe="")


def resolve_old_sha(candidate: str | None, sha_new: str) -> str:
    """Fall back to *sha_new* when there is no parent (or base) commit."""
    return candidate or sha_new


def to_modified_files(
    changes: Iterable[CommonChange],
    sha_old: str,
    sha_new: str,
    download_type: DownloadType,
    url_for: UrlBuilder,
) -> list[ModifiedFile]:
    """Attach bounding SHAs and download URLs to normalized changes."""
    return [
        ModifiedFile(
            filename=change.filename,
            filename_old=change.filename_old,
            new=change.new,
            deleted=change.deleted,
            renamed=change.renamed,
            additions=change.additions,
            deletions=change.deletions,
            sha_old=sha_old,
            sha_new=sha_new,
            download=DownloadSpec(
                type=download_type,
                old=url_for(change.filename_old, sha_old),
                new=url_for(change.filename, sha_new),
            ),
        )
        for change in changes
    ]
