from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from linkgiver_core.home import LinkGiverPaths

logger = logging.getLogger(__name__)


class NetworkConfig(BaseModel):
    bind_host: str = Field(default="127.0.0.1")
    port: int = Field(default=10000, ge=1, le=65535)


class CorsConfig(BaseModel):
    frontend_origin: str = Field(
        default="*",
        description="Origin of the static frontend allowed to call the API; '*' allows any.",
    )


class HttpConfig(BaseModel):
    max_body_bytes: int = Field(default=1024 * 1024, ge=1)


class ProbeConfig(BaseModel):
    timeout_seconds: float = Field(default=8.0, gt=0)
    user_agent: str = Field(default="weekly-link-giver/1.0")
    max_bytes: int = Field(default=1024 * 1024, ge=1)


class FilesystemStoreConfig(BaseModel):
    data_dir: str | None = Field(
        default=None,
        description="Directory holding the JSON documents; if relative, resolved under LINKGIVER_HOME",
    )


class GitHubStoreConfig(BaseModel):
    """GitHub contents API settings (documents live as files in a repository)."""

    repo: str = Field(default="", description="'owner/name' of the backing repository")
    token: str | None = Field(default=None)
    branch: str = Field(default="main")
    path_prefix: str = Field(default="data")
    api_url: str = Field(default="https://api.github.com")
    timeout_seconds: float = Field(default=10.0, gt=0)


class S3StoreConfig(BaseModel):
    """S3-compatible storage settings; requires conditional write support."""

    endpoint_url: str | None = Field(default=None)
    access_key: str | None = Field(default=None)
    secret_key: str | None = Field(default=None)
    bucket: str = Field(default="linkgiver")
    region: str = Field(default="us-east-1")
    prefix: str = Field(default="data")
    use_ssl: bool = Field(default=True)


class StorageConfig(BaseModel):
    backend: Literal["fs", "github", "s3"] = Field(default="fs")
    max_conflict_retries: int = Field(
        default=1,
        ge=0,
        description="How many times a read-mutate-write is replayed after a version conflict.",
    )
    fs: FilesystemStoreConfig = Field(default_factory=FilesystemStoreConfig)
    github: GitHubStoreConfig = Field(default_factory=GitHubStoreConfig)
    s3: S3StoreConfig = Field(default_factory=S3StoreConfig)


class LoggingConfig(BaseModel):
    max_size_mb: int = Field(
        default=10, ge=1, description="Max size of a log file in MB before rolling."
    )
    backup_count: int = Field(default=5, ge=1, description="Number of log archives to keep.")


class CoreConfig(BaseModel):
    version: str = Field(default="1")
    service_name: str = Field(default="weekly-link-giver")
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    cors: CorsConfig = Field(default_factory=CorsConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    probe: ProbeConfig = Field(default_factory=ProbeConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _read_json(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_core_config(paths: LinkGiverPaths) -> CoreConfig:
    """Load config from ${LINKGIVER_HOME}/config/core.json.

    - If missing: returns defaults.
    - Validation is performed by Pydantic.
    """

    config_path = paths.core_config_path
    if not config_path.exists():
        return CoreConfig()

    raw = _read_json(config_path)
    return CoreConfig.model_validate(raw)


def apply_env_overrides(config: CoreConfig, environ: Mapping[str, str]) -> CoreConfig:
    """Overlay deployment settings from the environment.

    Secrets such as the GitHub token usually arrive this way rather than via core.json.
    """

    def _env(name: str) -> str | None:
        value = (environ.get(name) or "").strip()
        return value or None

    raw = config.model_dump(mode="python")

    if (bind := _env("LINKGIVER_BIND")) is not None:
        raw["network"]["bind_host"] = bind
    if (port := _env("LINKGIVER_PORT")) is not None:
        raw["network"]["port"] = port
    if (origin := _env("LINKGIVER_FRONTEND_ORIGIN")) is not None:
        raw["cors"]["frontend_origin"] = origin
    if (backend := _env("LINKGIVER_STORAGE_BACKEND")) is not None:
        raw["storage"]["backend"] = backend
    if (repo := _env("LINKGIVER_GITHUB_REPO")) is not None:
        raw["storage"]["github"]["repo"] = repo
    if (token := _env("LINKGIVER_GITHUB_TOKEN")) is not None:
        raw["storage"]["github"]["token"] = token
    if (branch := _env("LINKGIVER_GITHUB_BRANCH")) is not None:
        raw["storage"]["github"]["branch"] = branch

    updated = CoreConfig.model_validate(raw)

    github = updated.storage.github
    if updated.storage.backend == "github" and not (github.repo and github.token):
        logger.warning(
            "GitHub storage selected without repo or token; data access will fail"
        )

    return updated


def resolve_data_dir(paths: LinkGiverPaths, config: CoreConfig) -> Path:
    """Apply the optional filesystem data_dir override and make sure it exists."""

    raw = config.storage.fs.data_dir
    if raw is None or not str(raw).strip():
        return paths.data_dir

    candidate = Path(raw).expanduser()
    if not candidate.is_absolute():
        candidate = (paths.home / candidate).resolve()
    else:
        candidate = candidate.resolve()
    candidate.mkdir(parents=True, exist_ok=True)
    return candidate
