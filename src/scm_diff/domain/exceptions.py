"""Domain exception hierarchy.

Each exception maps to a specific HTTP status code at the interface layer.
Inner layers raise these; the outermost error-handler translates them.
"""

from __future__ import annotations


class ScmDiffError(Exception):
    """Base exception for the entire application."""


# ── Input validation ────────────────────────────────────────────────────────


class InvalidInputError(ScmDiffError):
    """Caller-supplied input could not be parsed."""


class InvalidPageUrlError(InvalidInputError):
    """The page URL is not a URL at all."""


class InvalidHostError(InvalidInputError):
    """The host string is not valid for the selected provider."""


class UnrecognizedPageError(ScmDiffError):
    """The URL parses but is neither a commit nor a pull/merge request page."""


# ── Host configuration ──────────────────────────────────────────────────────


class ConfigurationError(ScmDiffError):
    """An adapter was constructed for a host it cannot serve."""


class HostNotFoundError(ScmDiffError):
    """No configured host matches the page or descriptor."""


class TokenNotSetError(ScmDiffError):
    """The matching host has no credential configured."""


# ── Upstream API errors ─────────────────────────────────────────────────────


class UpstreamHttpError(ScmDiffError):
    """The provider API answered with a non-success status (or not at all)."""

    def __init__(self, message: str, *, status_code: int = 0, context: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.context = context


class MalformedUpstreamResponseError(ScmDiffError):
    """Provider metadata lacks the expected list of changes."""


# ── Materialization ─────────────────────────────────────────────────────────


class DownloadFailureError(ScmDiffError):
    """The download host did not start or did not report a finished download."""
