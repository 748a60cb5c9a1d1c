"""Pydantic request / response DTOs for the API boundary."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from scm_diff.domain.entities import (
    AuthMode,
    DownloadSpec,
    DownloadType,
    FileSide,
    HostDescriptor,
    ModifiedFile,
    ScmProvider,
)


class ConnectionTestRequest(BaseModel):
    """Request body for ``POST /connection/test``."""

    provider: ScmProvider
    host: str
    token: str | None = Field(
        default=None, description="Omit to test the token stored for the configured host."
    )
    auth_mode: AuthMode | None = None

    @field_validator("host")
    @classmethod
    def _must_not_be_empty(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            msg = "must not be empty."
            raise ValueError(msg)
        return stripped

    @field_validator("token")
    @classmethod
    def _blank_is_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    def descriptor(self) -> HostDescriptor:
        return HostDescriptor(provider=self.provider, host=self.host, auth_mode=self.auth_mode)


class ConnectionTestResponse(BaseModel):
    valid: bool


class PageRequest(BaseModel):
    """Request body carrying the commit / pull request page the user is on."""

    page_url: str

    @field_validator("page_url")
    @classmethod
    def _must_be_absolute(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped.lower().startswith(("http://", "https://")):
            msg = f"Invalid page URL: '{stripped}'. Expected an http(s) URL."
            raise ValueError(msg)
        return stripped


class HostMatchResponse(BaseModel):
    """The configured provider for a page, or ``null`` with the page's host."""

    provider: ScmProvider | None
    host: str


class HostInfo(BaseModel):
    provider: ScmProvider
    host: str
    auth_mode: AuthMode | None = None
    has_token: bool


class DownloadModel(BaseModel):
    type: DownloadType
    old: str | None
    new: str | None


class ModifiedFileModel(BaseModel):
    """Wire shape of a modified file (camelCase, as the UI expects)."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    filename_old: str = Field(alias="filenameOld")
    new: bool
    deleted: bool
    renamed: bool
    additions: int
    deletions: int
    sha_old: str = Field(alias="shaOld")
    sha_new: str = Field(alias="shaNew")
    download: DownloadModel

    @classmethod
    def from_entity(cls, file: ModifiedFile) -> ModifiedFileModel:
        return cls(
            filename=file.filename,
            filename_old=file.filename_old,
            new=file.new,
            deleted=file.deleted,
            renamed=file.renamed,
            additions=file.additions,
            deletions=file.deletions,
            sha_old=file.sha_old,
            sha_new=file.sha_new,
            download=DownloadModel(
                type=file.download.type, old=file.download.old, new=file.download.new
            ),
        )

    def to_entity(self) -> ModifiedFile:
        return ModifiedFile(
            filename=self.filename,
            filename_old=self.filename_old,
            new=self.new,
            deleted=self.deleted,
            renamed=self.renamed,
            additions=self.additions,
            deletions=self.deletions,
            sha_old=self.sha_old,
            sha_new=self.sha_new,
            download=DownloadSpec(
                type=self.download.type, old=self.download.old, new=self.download.new
            ),
        )


class ModifiedFilesResponse(BaseModel):
    files: list[ModifiedFileModel]


class DownloadDiffRequest(PageRequest):
    """Request body for ``POST /downloads/diff``."""

    file: ModifiedFileModel


class DownloadFileRequest(PageRequest):
    """Request body for ``POST /downloads/file``."""

    file: ModifiedFileModel
    side: FileSide


class NavigationResponse(BaseModel):
    """The synthetic URI handed to the diff tool."""

    uri: str


class ErrorResponse(BaseModel):
    """Standard error envelope returned on all failure paths."""

    status: str = "error"
    message: str
