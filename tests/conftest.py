from __future__ import annotations

import io
import json
import tarfile
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

import pytest
import yaml

from chatops_release import secrets

PLUGIN_ROOT = "com.example.plugin-x"

DEFAULT_EXECUTABLES = {
    "darwin-amd64": "server/dist/plugin-darwin-amd64",
    "linux-amd64": "server/dist/plugin-linux-amd64",
    "windows-amd64": "server/dist/plugin-windows-amd64.exe",
}


@pytest.fixture(autouse=True)
def _isolate_secret_resolvers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(secrets, "_resolvers", [])
    secrets.register_resolver(secrets.EnvResolver(), priority=0, name="env")
    for name in (secrets.GITHUB_TOKEN, secrets.AWS_ACCESS_KEY, secrets.AWS_SECRET_KEY):
        monkeypatch.delenv(name, raising=False)


def _add_file(archive: tarfile.TarFile, name: str, data: bytes, mode: int = 0o644) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = mode
    archive.addfile(info, io.BytesIO(data))


def _add_dir(archive: tarfile.TarFile, name: str) -> None:
    info = tarfile.TarInfo(name)
    info.type = tarfile.DIRTYPE
    info.mode = 0o755
    archive.addfile(info)


def write_plugin_bundle(
    path: Path,
    *,
    executables: Optional[Dict[str, str]] = None,
    binaries: Optional[Iterable[str]] = None,
    manifest: Optional[dict] = None,
    manifest_name: str = "plugin.json",
    include_manifest: bool = True,
) -> Path:
    """Write a universal plugin bundle laid out like a real plugin release."""

    executables = DEFAULT_EXECUTABLES if executables is None else executables
    if manifest is None:
        manifest = {"id": PLUGIN_ROOT, "version": "1.2.3", "server": {"executables": executables}}
    binaries = list(executables.values()) if binaries is None else list(binaries)

    with tarfile.open(path, "w:gz") as archive:
        _add_dir(archive, PLUGIN_ROOT)
        if include_manifest:
            if manifest_name.endswith(".json"):
                raw = json.dumps(manifest).encode("utf-8")
            else:
                raw = yaml.safe_dump(manifest).encode("utf-8")
            _add_file(archive, f"{PLUGIN_ROOT}/{manifest_name}", raw)
        _add_dir(archive, f"{PLUGIN_ROOT}/assets")
        _add_file(archive, f"{PLUGIN_ROOT}/assets/icon.svg", b"<svg/>")
        _add_file(archive, f"{PLUGIN_ROOT}/webapp/dist/main.js", b"console.log('plugin');")
        for binary in binaries:
            _add_file(archive, f"{PLUGIN_ROOT}/{binary}", f"binary {binary}".encode("utf-8"), mode=0o755)
    return path


@pytest.fixture()
def plugin_bundle(tmp_path: Path) -> Callable[..., Path]:
    def _factory(name: str = "com.example.plugin-x-1.2.3.tar.gz", **kwargs) -> Path:
        source = tmp_path / "source"
        source.mkdir(exist_ok=True)
        return write_plugin_bundle(source / name, **kwargs)

    return _factory
