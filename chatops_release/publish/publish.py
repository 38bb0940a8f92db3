"""Publishing signed plugin artifacts."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Iterable, List, Tuple

from ..assets import BUNDLE_SUFFIX
from ..github.models import Release
from ..github.services import ReleaseService
from ..signing.verify import signature_path
from .adapters import GitHubReleaseAdapter, StorageAdapter
from .models import UploadResult


def publish_all(adapter: StorageAdapter, paths: Iterable[Path]) -> List[UploadResult]:
    """Upload every path in order; the first failure raises ``PublishError``."""

    return [adapter.publish(path) for path in paths]


def publish_to_release(
    releases: ReleaseService, owner: str, repo: str, release: Release, paths: Iterable[Path]
) -> List[UploadResult]:
    return publish_all(GitHubReleaseAdapter(releases, owner, repo, release), paths)


def publish_to_object_store(adapter: StorageAdapter, paths: Iterable[Path]) -> List[UploadResult]:
    return publish_all(adapter, paths)


def canonical_bundle_name(repo: str, tag: str) -> str:
    return f"{repo}-{tag}{BUNDLE_SUFFIX}"


def write_canonical_copies(bundle: Path, signature: Path, repo: str, tag: str) -> Tuple[Path, Path]:
    """Copy the universal bundle and its signature to ``<repo>-<tag>.tar.gz[.sig]``.

    Returns the existing files unchanged when they already carry that name.
    """

    target = bundle.with_name(canonical_bundle_name(repo, tag))
    target_signature = signature_path(target)
    if target == bundle:
        return bundle, signature
    shutil.copyfile(bundle, target)
    shutil.copyfile(signature, target_signature)
    return target, target_signature
