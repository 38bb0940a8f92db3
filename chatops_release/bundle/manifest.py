"""Plugin manifest discovery inside a universal bundle."""

from __future__ import annotations

import json
import posixpath
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Set

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import BundleSplitError
from .utils import normalize_member_name

MANIFEST_NAMES = ("plugin.json", "plugin.yaml", "plugin.yml")


class ServerSection(BaseModel):
    executables: Dict[str, str] = Field(default_factory=dict, description="Platform key to executable path.")
    executable: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class PluginManifest(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    version: Optional[str] = None
    server: Optional[ServerSection] = None

    model_config = ConfigDict(extra="allow")

    @property
    def executables(self) -> Dict[str, str]:
        return dict(self.server.executables) if self.server else {}


@dataclass(slots=True)
class BundleLayout:
    """What a universal bundle declares and what it actually holds."""

    manifest: PluginManifest
    manifest_path: str
    regular_files: Set[str] = field(default_factory=set)
    executables: Dict[str, str] = field(default_factory=dict)

    @property
    def present_executables(self) -> Dict[str, str]:
        return {platform: path for platform, path in self.executables.items() if path in self.regular_files}

    @property
    def missing_executables(self) -> Dict[str, str]:
        return {platform: path for platform, path in self.executables.items() if path not in self.regular_files}


def parse_manifest(name: str, raw: bytes) -> PluginManifest:
    try:
        text = raw.decode("utf-8")
        payload: Any = json.loads(text) if name.endswith(".json") else yaml.safe_load(text)
    except (UnicodeDecodeError, ValueError, yaml.YAMLError) as exc:
        raise BundleSplitError(f"cannot parse plugin manifest {name}: {exc}") from exc
    if not isinstance(payload, dict):
        raise BundleSplitError(f"plugin manifest {name} is not a mapping")
    try:
        return PluginManifest.model_validate(payload)
    except ValidationError as exc:
        raise BundleSplitError(f"invalid plugin manifest {name}: {exc}") from exc


def inspect_bundle(bundle_path: Path) -> BundleLayout:
    """Read the shallowest manifest in the bundle and resolve its executable paths."""

    try:
        with tarfile.open(bundle_path, "r:gz") as archive:
            regular: Set[str] = set()
            manifest_member: Optional[tarfile.TarInfo] = None
            manifest_name = ""
            for member in archive:
                if not member.isreg():
                    continue
                name = normalize_member_name(member.name)
                regular.add(name)
                if posixpath.basename(name) not in MANIFEST_NAMES:
                    continue
                if manifest_member is None or name.count("/") < manifest_name.count("/"):
                    manifest_member, manifest_name = member, name

            if manifest_member is None:
                raise BundleSplitError(f"{bundle_path.name} has no plugin manifest ({', '.join(MANIFEST_NAMES)})")
            handle = archive.extractfile(manifest_member)
            raw = handle.read() if handle else b""
    except (tarfile.TarError, OSError, EOFError) as exc:
        raise BundleSplitError(f"cannot read bundle {bundle_path}: {exc}") from exc

    manifest = parse_manifest(manifest_name, raw)
    root = posixpath.dirname(manifest_name)
    executables = {
        platform: normalize_member_name(posixpath.join(root, path))
        for platform, path in manifest.executables.items()
    }
    return BundleLayout(
        manifest=manifest,
        manifest_path=manifest_name,
        regular_files=regular,
        executables=executables,
    )
