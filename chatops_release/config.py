"""Bridge configuration, loaded once at process start."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError
from .secrets import AWS_ACCESS_KEY, AWS_SECRET_KEY, GITHUB_TOKEN, resolve_secret

logger = logging.getLogger(__name__)


class GitHubSettings(BaseModel):
    access_token: Optional[str] = Field(default=None, description=f"Falls back to ${GITHUB_TOKEN}.")
    org: str = Field(..., description="Owner of the plugin repositories.")
    api_url: str = "https://api.github.com"
    uploads_url: str = "https://uploads.github.com"
    request_timeout: float = 30.0

    model_config = ConfigDict(extra="forbid")

    def token(self) -> str:
        token = self.access_token or resolve_secret(GITHUB_TOKEN)
        if not token:
            raise ConfigurationError(f"GitHub access token is not configured (set github.access_token or {GITHUB_TOKEN}).")
        return token


class SigningSettings(BaseModel):
    host: str
    port: int = 22
    user: str
    key_path: Path
    certificate_path: Optional[Path] = Field(default=None, description="Short-lived OpenSSH user certificate.")
    host_public_key: Optional[str] = Field(
        default=None,
        description="Pinned host key, e.g. 'ssh-ed25519 AAAA...'. Required before connecting.",
    )
    remote_staging_dir: str = "/tmp"
    remote_output_dir: str = "/opt/plugin-signer/output"
    sign_command: str = "sudo -u signer /opt/plugin-signer/sign_plugin.sh {path}"
    connect_timeout: float = 30.0
    command_timeout: Optional[float] = Field(default=None, gt=0, description="Per-channel timeout for the signing command.")
    public_key_path: Path = Field(..., description="ASCII-armored OpenPGP key trusted for plugin signatures.")

    model_config = ConfigDict(extra="forbid")


class ObjectStoreSettings(BaseModel):
    bucket: str
    region: str = "us-east-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    key_prefix: str = "release/"
    public_url: Optional[str] = Field(default=None, description="Template using {bucket}, {region}, {key}.")

    model_config = ConfigDict(extra="forbid")

    def credentials(self) -> tuple[str, str]:
        access_key = self.access_key_id or resolve_secret(AWS_ACCESS_KEY)
        secret_key = self.secret_access_key or resolve_secret(AWS_SECRET_KEY)
        if not access_key or not secret_key:
            raise ConfigurationError(
                f"Object store credentials are not configured (set object_store.* or {AWS_ACCESS_KEY}/{AWS_SECRET_KEY})."
            )
        return access_key, secret_key


class PollingSettings(BaseModel):
    interval_seconds: float = Field(default=30.0, gt=0)
    timeout_seconds: float = Field(default=600.0, gt=0)

    model_config = ConfigDict(extra="forbid")


class LoggingSettings(BaseModel):
    level: str = "INFO"
    file: Optional[Path] = None

    model_config = ConfigDict(extra="forbid")


class BridgeConfig(BaseModel):
    github: GitHubSettings
    signing: SigningSettings
    object_store: ObjectStoreSettings
    polling: PollingSettings = Field(default_factory=PollingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = ConfigDict(extra="forbid")

    def redacted(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json")
        for section, key in (
            ("github", "access_token"),
            ("object_store", "access_key_id"),
            ("object_store", "secret_access_key"),
        ):
            if payload[section].get(key):
                payload[section][key] = "********"
        return payload


def find_config_file(name: str | Path) -> Path:
    """Look in ./config, then ../config, then the path as given."""

    name = Path(name)
    for candidate in (Path("config") / name, Path("..") / "config" / name, name):
        if candidate.exists():
            return candidate.resolve()
    return name


def parse_config(payload: Mapping[str, Any]) -> BridgeConfig:
    try:
        return BridgeConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid bridge configuration: {exc}") from exc


def load_config(name: str | Path) -> BridgeConfig:
    path = find_config_file(name)
    logger.info("Loading %s", path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Error opening config file={path}: {exc}") from exc
    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Error decoding config file={path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ConfigurationError(f"Config file {path} must contain a mapping at the top level.")
    return parse_config(payload)


def configure_logging(settings: LoggingSettings) -> None:
    """Install the stream handler, plus a file handler when one is configured."""

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.file:
        settings.file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.file, encoding="utf-8"))
    logging.basicConfig(
        level=settings.level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
        force=True,
    )
