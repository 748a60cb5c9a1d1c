"""FastAPI dependency injection wiring."""

from __future__ import annotations

import httpx

from scm_diff.domain.entities import AuthMode, HostDescriptor
from scm_diff.domain.ports.source_provider import SourceProvider
from scm_diff.infrastructure.adapter_factory import create_adapter
from scm_diff.infrastructure.config import Settings, get_settings
from scm_diff.infrastructure.local_download_host import LocalDownloadHost, SystemNavigator
from scm_diff.services.file_materializer import FileMaterializer
from scm_diff.services.scm_diff import ScmDiffUseCase

_http_client: httpx.AsyncClient | None = None
_download_host: LocalDownloadHost | None = None
_navigator: SystemNavigator | None = None


async def startup() -> None:
    """Initialise shared resources, called from the lifespan context manager."""
    global _http_client, _download_host, _navigator  # noqa: PLW0603

    settings = get_settings()
    _http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
    )
    _download_host = LocalDownloadHost(settings.download_dir)
    _navigator = SystemNavigator(launch=settings.open_navigation_uris)


async def shutdown() -> None:
    """Release shared resources."""
    global _http_client, _download_host, _navigator  # noqa: PLW0603

    if _http_client:
        await _http_client.aclose()
        _http_client = None
    _download_host = None
    _navigator = None


def get_app_settings() -> Settings:
    return get_settings()


def get_use_case() -> ScmDiffUseCase:
    """Build the use case with injected adapters."""
    settings = get_settings()

    assert _http_client is not None, "startup() was not called"
    assert _download_host is not None, "startup() was not called"
    assert _navigator is not None, "startup() was not called"

    materializer = FileMaterializer(
        client=_http_client,
        download_host=_download_host,
        navigator=_navigator,
        scheme=settings.protocol_scheme,
        timeout=settings.download_timeout_seconds,
    )
    client = _http_client
    extensions = settings.supported_extensions

    def factory(host: HostDescriptor, auth_mode: AuthMode | None) -> SourceProvider:
        return create_adapter(host, client, extensions, auth_mode)

    return ScmDiffUseCase(
        hosts=settings.hosts,
        adapter_factory=factory,
        materializer=materializer,
    )
