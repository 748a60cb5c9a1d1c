"""HTTP helpers shared by the provider adapters."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from scm_diff.domain.exceptions import UpstreamHttpError

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_HINT = "An unknown error occurred."

UNAUTHORIZED_HINT = "Unauthorized: Invalid or missing token."
NOT_FOUND_HINT = "Not found: You may not have access to this repository."


def build_http_error(
    response: httpx.Response, context: str, hints: Mapping[int, str]
) -> UpstreamHttpError:
    """Translate a non-success *response* into an ``UpstreamHttpError``."""
    hint = hints.get(response.status_code, UNKNOWN_ERROR_HINT)
    return UpstreamHttpError(
        f"Failed to retrieve {context}. {hint}",
        status_code=response.status_code,
        context=context,
    )


async def api_get(
    client: httpx.AsyncClient,
    url: str,
    *,
    headers: Mapping[str, str],
    context: str,
    hints: Mapping[int, str],
    params: Mapping[str, Any] | None = None,
) -> httpx.Response:
    """Perform an authenticated API GET request with error translation."""
    logger.debug("GET %s (%s)", url, context)
    try:
        resp = await client.get(url, headers=dict(headers), params=params)
    except httpx.HTTPError as exc:
        raise UpstreamHttpError(
            f"Failed to retrieve {context}. Network error fetching {url}: {exc}",
            context=context,
        ) from exc

    if resp.is_success:
        return resp

    raise build_http_error(resp, context, hints)
