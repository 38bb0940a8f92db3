"""Split a universal plugin bundle into one bundle per server platform."""

from __future__ import annotations

import logging
import posixpath
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Collection, List

from ..errors import BundleSplitError
from .manifest import inspect_bundle
from .utils import compute_sha256, normalize_member_name

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PlatformBundle:
    platform: str
    binary_name: str
    path: Path
    sha256: str


def platform_bundle_name(repo: str, tag: str, platform: str) -> str:
    return f"{repo}-{tag}-{platform}.tar.gz"


def archive_contains(archive_path: Path, needle: str) -> List[str]:
    """Base names of the regular files in ``archive_path`` whose name contains ``needle``."""

    try:
        with tarfile.open(archive_path, "r:gz") as archive:
            return [
                posixpath.basename(normalize_member_name(member.name))
                for member in archive
                if member.isreg() and needle in posixpath.basename(member.name)
            ]
    except (tarfile.TarError, OSError, EOFError) as exc:
        raise BundleSplitError(f"failed to open archive {archive_path}: {exc}") from exc


def split_bundle(bundle_path: Path, repo: str, tag: str, work_dir: Path, *, compresslevel: int = 9) -> List[PlatformBundle]:
    """Write ``<repo>-<tag>-<platform>.tar.gz`` for every platform binary the bundle carries.

    Each output keeps every member of the universal bundle except the other
    platforms' executables, and is re-read afterwards to confirm it holds
    exactly one executable with the expected name.
    """

    layout = inspect_bundle(bundle_path)
    if not layout.executables:
        raise BundleSplitError(f"{layout.manifest_path} in {bundle_path.name} declares no server executables")

    for platform, path in sorted(layout.missing_executables.items()):
        logger.info("skipping %s: %s is not in %s", platform, path, bundle_path.name)
    present = layout.present_executables
    if not present:
        raise BundleSplitError(
            f"{bundle_path.name} contains none of the declared executables {sorted(layout.executables.values())}"
        )

    all_executables = set(layout.executables.values())
    executable_names = {posixpath.basename(path) for path in all_executables}
    bundles: List[PlatformBundle] = []
    for platform, executable in sorted(present.items()):
        target = work_dir / platform_bundle_name(repo, tag, platform)
        _write_filtered(bundle_path, target, all_executables - {executable}, compresslevel)

        expected = posixpath.basename(executable)
        found = _executables_in(target, executable_names)
        if found != [expected]:
            raise BundleSplitError(
                f"found wrong platform binary in {target.name}, expected {expected}, but found {found}"
            )
        bundles.append(PlatformBundle(platform=platform, binary_name=expected, path=target, sha256=compute_sha256(target)))
        logger.info("created %s", target.name)
    return bundles


def _write_filtered(source_path: Path, target: Path, exclude: Collection[str], compresslevel: int) -> None:
    try:
        with tarfile.open(source_path, "r:gz") as source, tarfile.open(
            target, "w:gz", compresslevel=compresslevel
        ) as output:
            for member in source:
                if normalize_member_name(member.name) in exclude:
                    continue
                if member.isreg():
                    output.addfile(member, source.extractfile(member))
                else:
                    output.addfile(member)
    except (tarfile.TarError, OSError, EOFError) as exc:
        target.unlink(missing_ok=True)
        raise BundleSplitError(f"failed to write {target.name}: {exc}") from exc


def _executables_in(archive_path: Path, executable_names: Collection[str]) -> List[str]:
    return sorted(name for name in archive_contains(archive_path, "") if name in executable_names)
