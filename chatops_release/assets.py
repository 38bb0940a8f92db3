"""Waiting for, and fetching, the plugin bundle attached to a release."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Optional, Tuple

from .errors import AmbiguousAssetError, AssetDownloadError, AssetWaitTimeoutError, GitHubNotFoundError
from .github.models import Release, ReleaseAsset
from .github.services import ReleaseService

logger = logging.getLogger(__name__)

BUNDLE_SUFFIX = ".tar.gz"
DEFAULT_INTERVAL = 30.0
DEFAULT_TIMEOUT = 10 * 60.0


def find_plugin_asset(release: Release, asset_name: Optional[str] = None) -> Optional[ReleaseAsset]:
    """Pick the plugin bundle from ``release``; None means "not uploaded yet"."""

    if asset_name:
        return next((asset for asset in release.assets if asset.name == asset_name), None)

    bundles = [asset for asset in release.assets if asset.name.endswith(BUNDLE_SUFFIX)]
    if len(bundles) > 1:
        raise AmbiguousAssetError([asset.name for asset in bundles])
    return bundles[0] if bundles else None


def wait_for_asset(
    releases: ReleaseService,
    owner: str,
    repo: str,
    tag: str,
    asset_name: Optional[str] = None,
    *,
    interval: float = DEFAULT_INTERVAL,
    timeout: float = DEFAULT_TIMEOUT,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Tuple[Release, ReleaseAsset]:
    """Poll until the release for ``tag`` carries the plugin bundle."""

    logger.info("Checking if the release asset is available for %s/%s@%s", owner, repo, tag)
    deadline = clock() + timeout
    while True:
        try:
            release: Optional[Release] = releases.get_release_by_tag(owner, repo, tag)
        except GitHubNotFoundError:
            logger.info("release for tag %s was not found, trying again shortly", tag)
            release = None

        if release is not None:
            asset = find_plugin_asset(release, asset_name)
            if asset is not None:
                logger.info("found release asset %s (id=%s)", asset.name, asset.id)
                return release, asset
            logger.info("Release found but no matching asset yet. Still waiting...")

        remaining = deadline - clock()
        if remaining <= 0:
            wanted = asset_name or f"*{BUNDLE_SUFFIX}"
            raise AssetWaitTimeoutError(
                f"timed out after {timeout:.0f}s waiting for {wanted} on release {tag} of {owner}/{repo}"
            )
        sleep(min(interval, remaining))


def download_asset(releases: ReleaseService, owner: str, repo: str, asset: ReleaseAsset, folder: Path) -> Path:
    """Download ``asset`` into ``folder`` under its own name."""

    logger.info("Downloading release asset %s", asset.name)
    destination = folder / Path(asset.name).name
    with destination.open("wb") as handle:
        written = releases.download_release_asset(owner, repo, asset.id, handle)
    if written == 0:
        destination.unlink(missing_ok=True)
        raise AssetDownloadError(f"nothing was downloaded for release asset {asset.name} (id={asset.id})")
    return destination
