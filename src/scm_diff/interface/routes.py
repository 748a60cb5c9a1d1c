"""API routes: thin controllers that delegate to the use case."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from scm_diff.infrastructure.config import Settings
from scm_diff.interface.dependencies import get_app_settings, get_use_case
from scm_diff.interface.schemas import (
    ConnectionTestRequest,
    ConnectionTestResponse,
    DownloadDiffRequest,
    DownloadFileRequest,
    ErrorResponse,
    HostInfo,
    HostMatchResponse,
    ModifiedFileModel,
    ModifiedFilesResponse,
    NavigationResponse,
    PageRequest,
)
from scm_diff.services.scm_diff import ScmDiffUseCase

router = APIRouter()

_PAGE_ERRORS = {
    401: {"model": ErrorResponse, "description": "No token configured for the host"},
    404: {"model": ErrorResponse, "description": "No configured host serves the page"},
    422: {"model": ErrorResponse, "description": "Not a commit or pull request page"},
    502: {"model": ErrorResponse, "description": "SCM provider error"},
    500: {"model": ErrorResponse, "description": "Download did not complete"},
}


@router.get("/hosts", response_model=list[HostInfo])
async def list_hosts(settings: Settings = Depends(get_app_settings)) -> list[HostInfo]:
    """List configured hosts without their credentials."""
    return [
        HostInfo(
            provider=entry.provider,
            host=entry.host,
            auth_mode=entry.auth_mode,
            has_token=entry.token is not None,
        )
        for entry in settings.hosts
    ]


@router.post("/hosts/match", response_model=HostMatchResponse)
async def match_host(
    body: PageRequest,
    use_case: ScmDiffUseCase = Depends(get_use_case),
) -> HostMatchResponse:
    """Tell which configured host, if any, serves the given page."""
    provider, host = use_case.match_host(body.page_url)
    return HostMatchResponse(provider=provider, host=host)


@router.post("/connection/test", response_model=ConnectionTestResponse)
async def test_connection(
    body: ConnectionTestRequest,
    use_case: ScmDiffUseCase = Depends(get_use_case),
) -> ConnectionTestResponse:
    """Check a host and token before saving them."""
    valid = await use_case.check_connection(body.descriptor(), body.token)
    return ConnectionTestResponse(valid=valid)


@router.post("/modified-files", response_model=ModifiedFilesResponse, responses=_PAGE_ERRORS)
async def modified_files(
    body: PageRequest,
    use_case: ScmDiffUseCase = Depends(get_use_case),
) -> ModifiedFilesResponse:
    """List the supported files changed by a commit or pull request page."""
    files = await use_case.fetch_modified_files(body.page_url)
    return ModifiedFilesResponse(files=[ModifiedFileModel.from_entity(f) for f in files])


@router.post("/downloads/diff", response_model=NavigationResponse, responses=_PAGE_ERRORS)
async def download_diff(
    body: DownloadDiffRequest,
    use_case: ScmDiffUseCase = Depends(get_use_case),
) -> NavigationResponse:
    """Download both versions of a file and open them in the diff tool."""
    uri = await use_case.download_diff(body.page_url, body.file.to_entity())
    return NavigationResponse(uri=uri)


@router.post("/downloads/file", response_model=NavigationResponse, responses=_PAGE_ERRORS)
async def download_file(
    body: DownloadFileRequest,
    use_case: ScmDiffUseCase = Depends(get_use_case),
) -> NavigationResponse:
    """Download one version of a file and open it."""
    uri = await use_case.download_file(body.page_url, body.file.to_entity(), body.side)
    return NavigationResponse(uri=uri)
