"""SSH/SFTP access to the signing host."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import paramiko
from paramiko.hostkeys import HostKeyEntry, InvalidHostKey

from ..config import SigningSettings
from ..errors import ConfigurationError, SigningError

logger = logging.getLogger(__name__)

_KEY_TYPE_PREFIXES = ("ssh-", "ecdsa-", "sk-")


@dataclass(slots=True)
class CommandResult:
    exit_status: int
    stdout: str
    stderr: str


class RemoteSession(Protocol):
    def put(self, local: Path, remote: str) -> None:
        ...

    def get(self, remote: str, local: Path) -> None:
        ...

    def remove(self, remote: str) -> None:
        ...

    def run(self, command: str) -> CommandResult:
        ...

    def close(self) -> None:
        ...


def host_key_name(host: str, port: int) -> str:
    return host if port == 22 else f"[{host}]:{port}"


def parse_host_key(value: Optional[str], host: str, port: int = 22) -> paramiko.PKey:
    """Parse ``"<type> <base64>"`` (or a full known_hosts line) into a key."""

    if not value or not value.strip():
        raise ConfigurationError(f"signing.host_public_key is not set; refusing to connect to {host} unverified")
    fields = value.split()
    if fields[0].startswith(_KEY_TYPE_PREFIXES):
        # "<type> <base64> [comment]" as written by ssh-keyscan or a .pub file
        line = " ".join([host_key_name(host, port), *fields[:2]])
    else:
        line = value
    try:
        entry = HostKeyEntry.from_line(line)
    except (InvalidHostKey, paramiko.SSHException, ValueError) as exc:
        raise ConfigurationError(f"signing.host_public_key is not a valid host key: {exc}") from exc
    if entry is None or entry.key is None:
        raise ConfigurationError("signing.host_public_key is not a valid host key")
    return entry.key


def load_private_key(settings: SigningSettings) -> paramiko.PKey:
    try:
        key = paramiko.PKey.from_path(settings.key_path)
    except (OSError, paramiko.SSHException, ValueError) as exc:
        raise ConfigurationError(f"cannot load signing key {settings.key_path}: {exc}") from exc
    if settings.certificate_path:
        try:
            key.load_certificate(str(settings.certificate_path))
        except (OSError, paramiko.SSHException, ValueError) as exc:
            raise ConfigurationError(f"cannot load signing certificate {settings.certificate_path}: {exc}") from exc
    return key


class ParamikoSession:
    def __init__(self, client: paramiko.SSHClient, *, command_timeout: Optional[float] = None) -> None:
        self._client = client
        self._sftp: Optional[paramiko.SFTPClient] = None
        self._command_timeout = command_timeout

    @property
    def sftp(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            self._sftp = self._client.open_sftp()
        return self._sftp

    def put(self, local: Path, remote: str) -> None:
        self.sftp.put(str(local), remote)

    def get(self, remote: str, local: Path) -> None:
        self.sftp.get(remote, str(local))

    def remove(self, remote: str) -> None:
        self.sftp.remove(remote)

    def run(self, command: str) -> CommandResult:
        _, stdout, stderr = self._client.exec_command(command, timeout=self._command_timeout)
        out = stdout.read().decode("utf-8", errors="replace")
        err = stderr.read().decode("utf-8", errors="replace")
        return CommandResult(exit_status=stdout.channel.recv_exit_status(), stdout=out, stderr=err)

    def close(self) -> None:
        if self._sftp is not None:
            self._sftp.close()
        self._client.close()


def open_paramiko_session(settings: SigningSettings) -> ParamikoSession:
    """Connect with key (and optional certificate) auth and a pinned host key."""

    host_key = parse_host_key(settings.host_public_key, settings.host, settings.port)
    private_key = load_private_key(settings)

    client = paramiko.SSHClient()
    client.get_host_keys().add(host_key_name(settings.host, settings.port), host_key.get_name(), host_key)
    client.set_missing_host_key_policy(paramiko.RejectPolicy())
    logger.info("Connecting to signing host %s@%s:%s", settings.user, settings.host, settings.port)
    try:
        client.connect(
            settings.host,
            port=settings.port,
            username=settings.user,
            pkey=private_key,
            timeout=settings.connect_timeout,
            allow_agent=False,
            look_for_keys=False,
        )
    except (paramiko.SSHException, OSError) as exc:
        client.close()
        raise SigningError(f"failed to connect to signing host {settings.host}: {exc}") from exc
    return ParamikoSession(client, command_timeout=settings.command_timeout)
