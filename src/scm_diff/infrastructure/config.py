"""Application configuration: loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from scm_diff.domain.entities import AuthMode, HostDescriptor, ScmProvider
from scm_diff.domain.value_objects import is_valid_host, normalize_host

SUPPORTED_DIFF_EXTENSIONS: tuple[str, ...] = (
    "pkg",
    "ta",
    "prj",
    "xam",
    "ppd",
    "mask",
    "gcd",
    "tcf",
    "tbc",
)
# can be downloaded but not diffed
DOWNLOAD_ONLY_EXTENSIONS: tuple[str, ...] = ("trf",)


class ScmHostEntry(BaseModel):
    """A configured SCM host together with its credential."""

    provider: ScmProvider
    host: str
    token: SecretStr | None = None
    auth_mode: AuthMode | None = None

    @field_validator("host")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return normalize_host(v)

    @model_validator(mode="after")
    def _check_host(self) -> ScmHostEntry:
        if not is_valid_host(self.provider, self.host, self.auth_mode):
            msg = f"Invalid {self.provider.value} host: '{self.host}'"
            raise ValueError(msg)
        return self

    def descriptor(self) -> HostDescriptor:
        return HostDescriptor(provider=self.provider, host=self.host, auth_mode=self.auth_mode)

    def secret(self) -> str | None:
        return self.token.get_secret_value() if self.token else None


class Settings(BaseSettings):
    """Central configuration loaded from env vars (or ``.env`` file)."""

    model_config = SettingsConfigDict(
        env_prefix="SCM_DIFF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    hosts: list[ScmHostEntry] = []
    supported_diff_extensions: list[str] = list(SUPPORTED_DIFF_EXTENSIONS)
    download_only_extensions: list[str] = list(DOWNLOAD_ONLY_EXTENSIONS)
    download_dir: Path = Path("downloads")
    download_timeout_seconds: float | None = None
    protocol_scheme: str = "tracetronic"
    open_navigation_uris: bool = False
    http_timeout_seconds: float = 30.0
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    @property
    def supported_extensions(self) -> frozenset[str]:
        return frozenset(self.supported_diff_extensions) | frozenset(self.download_only_extensions)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton application settings (cached after first call)."""
    return Settings()
