"""End-to-end plugin release workflow for a tag that already exists."""

from __future__ import annotations

import logging
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Sequence

from .assets import download_asset, wait_for_asset
from .bundle import split_bundle
from .config import PollingSettings
from .errors import StageError
from .github.services import ReleaseService
from .publish import StorageAdapter, UploadResult, publish_to_object_store, publish_to_release, write_canonical_copies

logger = logging.getLogger(__name__)

STAGE_CREATE_TAG = "create-tag"
STAGE_WAIT_FOR_ASSET = "wait-for-asset"
STAGE_MARK_PRERELEASE = "mark-prerelease"
STAGE_DOWNLOAD = "download"
STAGE_SPLIT = "split"
STAGE_SIGN = "sign"
STAGE_PUBLISH_RELEASE = "publish-release"
STAGE_PUBLISH_OBJECT_STORE = "publish-object-store"


class Signer(Protocol):
    def sign(self, paths: Sequence[Path], work_dir: Path) -> Dict[Path, Path]:
        ...


@dataclass
class CutPluginContext:
    owner: str
    repo: str
    tag: str
    releases: ReleaseService
    signer: Signer
    object_store: StorageAdapter
    commit_sha: Optional[str] = None
    asset_name: Optional[str] = None
    pre_release: bool = False
    polling: PollingSettings = field(default_factory=PollingSettings)
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic


@dataclass
class CutPluginResult:
    owner: str
    repo: str
    tag: str
    commit_sha: Optional[str] = None
    release_url: Optional[str] = None
    platforms: List[str] = field(default_factory=list)
    uploads: List[UploadResult] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "owner": self.owner,
            "repo": self.repo,
            "tag": self.tag,
            "commit_sha": self.commit_sha,
            "release_url": self.release_url,
            "platforms": self.platforms,
            "uploads": [
                {
                    "adapter": upload.adapter,
                    "status": upload.status,
                    "destination": upload.target.destination,
                    "key": upload.target.key,
                    "url": upload.url,
                }
                for upload in self.uploads
            ],
            "logs": self.logs,
        }


@contextmanager
def _stage(name: str, logs: List[str]) -> Iterator[None]:
    logs.append(f"[{name}] started")
    try:
        yield
    except Exception as exc:
        logger.error("plugin release failed at stage %s: %s", name, exc)
        raise StageError(name, exc) from exc
    logs.append(f"[{name}] done")


def cut_plugin(context: CutPluginContext) -> CutPluginResult:
    """Wait for the bundle, split and sign it, then publish everything.

    Stages run strictly in order and the first failure raises ``StageError``.
    Intermediate files live in a temporary directory removed on exit.
    """

    owner, repo, tag = context.owner, context.repo, context.tag
    result = CutPluginResult(owner=owner, repo=repo, tag=tag, commit_sha=context.commit_sha)
    logs = result.logs

    with _stage(STAGE_WAIT_FOR_ASSET, logs):
        release, asset = wait_for_asset(
            context.releases,
            owner,
            repo,
            tag,
            context.asset_name,
            interval=context.polling.interval_seconds,
            timeout=context.polling.timeout_seconds,
            sleep=context.sleep,
            clock=context.clock,
        )
        logs.append(f"Found asset {asset.name} on release {release.tag_name}.")

    if context.pre_release:
        with _stage(STAGE_MARK_PRERELEASE, logs):
            release = context.releases.set_prerelease(owner, repo, release.id, True)
            logs.append(f"Marked release {release.tag_name} as pre-release.")
    result.release_url = release.html_url

    with tempfile.TemporaryDirectory(prefix="chatops-release-") as tmp:
        work_dir = Path(tmp)

        with _stage(STAGE_DOWNLOAD, logs):
            bundle_path = download_asset(context.releases, owner, repo, asset, work_dir)
            logs.append(f"Downloaded {bundle_path.name}.")

        with _stage(STAGE_SPLIT, logs):
            platform_bundles = split_bundle(bundle_path, repo, tag, work_dir)
            result.platforms = [bundle.platform for bundle in platform_bundles]
            logs.extend(f"Created {bundle.path.name} ({bundle.binary_name})." for bundle in platform_bundles)

        with _stage(STAGE_SIGN, logs):
            to_sign = [bundle_path] + [bundle.path for bundle in platform_bundles]
            signatures = context.signer.sign(to_sign, work_dir)
            logs.append(f"Signed and verified {len(signatures)} files.")

        with _stage(STAGE_PUBLISH_RELEASE, logs):
            uploads = publish_to_release(context.releases, owner, repo, release, [signatures[bundle_path]])
            result.uploads.extend(uploads)

        with _stage(STAGE_PUBLISH_OBJECT_STORE, logs):
            generic, generic_signature = write_canonical_copies(bundle_path, signatures[bundle_path], repo, tag)
            objects = [generic, generic_signature]
            for bundle in platform_bundles:
                objects.extend([bundle.path, signatures[bundle.path]])
            uploads = publish_to_object_store(context.object_store, objects)
            result.uploads.extend(uploads)

    for upload in result.uploads:
        logs.extend(upload.logs)
    logger.info("plugin %s/%s@%s released", owner, repo, tag)
    return result
