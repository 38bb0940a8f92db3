"""Credential lookup for values that stay out of the bridge config file."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol


GITHUB_TOKEN = "GITHUB_ACCESS_TOKEN"
AWS_ACCESS_KEY = "PLUGIN_SIGNING_AWS_ACCESS_KEY"
AWS_SECRET_KEY = "PLUGIN_SIGNING_AWS_SECRET_KEY"


@dataclass(frozen=True)
class SecretSpec:
    name: str
    description: str = ""


class SecretResolver(Protocol):
    def resolve(self, spec: SecretSpec) -> Optional[str]:  # pragma: no cover - interface
        ...


@dataclass(frozen=True)
class SecretAttempt:
    resolver: str
    success: bool
    details: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class SecretResolution:
    name: str
    value: Optional[str]
    resolver: Optional[str]
    attempts: List[SecretAttempt]

    def describe(self) -> dict[str, object]:
        """Summary safe to print: never includes the value."""

        return {
            "name": self.name,
            "present": self.value is not None,
            "resolver": self.resolver,
            "attempts": [
                {"resolver": attempt.resolver, "success": attempt.success, "details": attempt.details}
                for attempt in self.attempts
            ],
        }


@dataclass
class _Registered:
    priority: int
    name: str
    resolver: SecretResolver


_specs: dict[str, SecretSpec] = {}
_resolvers: List[_Registered] = []


def register_secret(spec: SecretSpec) -> None:
    _specs.setdefault(spec.name, spec)


def register_resolver(resolver: SecretResolver, priority: int = 0, *, name: Optional[str] = None) -> None:
    _resolvers.append(_Registered(priority=priority, name=name or resolver.__class__.__name__, resolver=resolver))
    _resolvers.sort(key=lambda item: item.priority, reverse=True)


class EnvResolver:
    """Read secrets from the process environment."""

    def resolve(self, spec: SecretSpec) -> Optional[str]:
        return os.getenv(spec.name) or None

    def describe(self) -> dict[str, object]:
        return {"type": "env"}


class DotEnvResolver:
    """Read ``KEY=value`` lines from a ``.env`` file, loaded lazily once."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._values: Optional[Dict[str, str]] = None
        self.warnings: List[str] = []

    def resolve(self, spec: SecretSpec) -> Optional[str]:
        return self._load().get(spec.name) or None

    def describe(self) -> dict[str, object]:
        return {
            "type": "dotenv",
            "path": str(self.path),
            "exists": self.path.exists(),
            "warnings": list(self.warnings),
        }

    def _load(self) -> Dict[str, str]:
        if self._values is not None:
            return self._values
        self._values = {}
        if not self.path.exists():
            return self._values

        for lineno, line in enumerate(self.path.read_text(encoding="utf-8").splitlines(), start=1):
            raw = line.strip()
            if not raw or raw.startswith("#"):
                continue
            if raw.lower().startswith("export "):
                raw = raw[len("export ") :].strip()
            key, sep, rest = raw.partition("=")
            key = key.strip()
            if not sep or not key:
                self.warnings.append(f"line {lineno}: expected KEY=value")
                continue
            try:
                tokens = shlex.split(rest, posix=True, comments=True)
            except ValueError as exc:
                self.warnings.append(f"line {lineno}: {exc}")
                continue
            self._values[key] = " ".join(tokens)
        return self._values


def use_dotenv(path: str | Path, *, priority: int = -10) -> DotEnvResolver:
    resolver = DotEnvResolver(Path(path))
    register_resolver(resolver, priority=priority, name=f"dotenv:{resolver.path}")
    return resolver


def resolve_secret_info(name: str) -> SecretResolution:
    spec = _specs.get(name, SecretSpec(name=name))
    attempts: List[SecretAttempt] = []
    for entry in _resolvers:
        value = entry.resolver.resolve(spec)
        describe = getattr(entry.resolver, "describe", None)
        details = describe() if callable(describe) else {}
        attempts.append(SecretAttempt(resolver=entry.name, success=bool(value), details=details))
        if value:
            return SecretResolution(name=spec.name, value=value, resolver=entry.name, attempts=attempts)
    return SecretResolution(name=spec.name, value=None, resolver=None, attempts=attempts)


def resolve_secret(name: str) -> Optional[str]:
    return resolve_secret_info(name).value


register_resolver(EnvResolver(), priority=0, name="env")
register_secret(SecretSpec(GITHUB_TOKEN, "GitHub token used for tags, releases and assets."))
register_secret(SecretSpec(AWS_ACCESS_KEY, "Access key for the plugin release bucket."))
register_secret(SecretSpec(AWS_SECRET_KEY, "Secret key for the plugin release bucket."))
