"""Storage adapters used during publish."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import ObjectStoreSettings
from ..errors import GitHubAPIError, PublishError
from ..github.models import Release
from ..github.services import ReleaseService
from .models import OBJECT_STORE_DESTINATION, RELEASE_DESTINATION, UploadResult, UploadTarget

logger = logging.getLogger(__name__)


class StorageAdapter(ABC):
    name: str

    @abstractmethod
    def publish(self, path: Path) -> UploadResult:
        ...


class GitHubReleaseAdapter(StorageAdapter):
    """Attach files to a release, replacing any asset with the same name."""

    name = "github"

    def __init__(self, releases: ReleaseService, owner: str, repo: str, release: Release) -> None:
        self.releases = releases
        self.owner = owner
        self.repo = repo
        self.release = release

    def publish(self, path: Path) -> UploadResult:
        target = UploadTarget(destination=RELEASE_DESTINATION, key=path.name)
        logs: List[str] = []
        try:
            existing = self.releases.list_release_assets(self.owner, self.repo, self.release.id)
            replaced = []
            for asset in existing:
                if asset.name == path.name:
                    logs.append(f"Deleting existing asset {asset.name} (id={asset.id}).")
                    self.releases.delete_release_asset(self.owner, self.repo, asset.id)
                    replaced.append(asset.id)
            logs.append(f"Uploading {path.name} to release {self.release.tag_name} of {self.owner}/{self.repo}.")
            uploaded = self.releases.upload_release_asset(self.owner, self.repo, self.release, path.name, path)
        except (GitHubAPIError, OSError) as exc:
            raise PublishError(f"failed to upload {path.name} to the {self.release.tag_name} release: {exc}") from exc

        for line in logs:
            logger.info(line)
        return UploadResult(
            adapter=self.name,
            status="succeeded",
            target=target,
            url=uploaded.browser_download_url,
            logs=logs,
            details={"asset_id": uploaded.id, "replaced": replaced},
        )


class ObjectStoreAdapter(StorageAdapter):
    """Put files at ``<key_prefix><basename>``; the store overwrites in place."""

    name = "s3"

    def __init__(
        self,
        bucket: str,
        client: Any,
        *,
        region: Optional[str] = None,
        key_prefix: str = "release/",
        public_url: Optional[str] = None,
    ) -> None:
        self.bucket = bucket
        self.client = client
        self.region = region
        self.key_prefix = key_prefix
        self.public_url_template = public_url

    @classmethod
    def from_settings(cls, settings: ObjectStoreSettings, client: Any = None) -> "ObjectStoreAdapter":
        if client is None:
            access_key, secret_key = settings.credentials()
            client = boto3.client(
                "s3",
                region_name=settings.region,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
            )
        return cls(
            settings.bucket,
            client,
            region=settings.region,
            key_prefix=settings.key_prefix,
            public_url=settings.public_url,
        )

    def key_for(self, path: Path) -> str:
        return f"{self.key_prefix}{path.name}"

    def publish(self, path: Path) -> UploadResult:
        key = self.key_for(path)
        logs = [f"Uploading {path.name} to s3://{self.bucket}/{key}"]
        try:
            with path.open("rb") as handle:
                self.client.upload_fileobj(handle, self.bucket, key)
        except (BotoCoreError, ClientError, OSError) as exc:
            raise PublishError(f"failed to upload {path.name} to s3://{self.bucket}/{key}: {exc}") from exc

        url = self._build_public_url(key)
        logger.info("uploaded %s to %s", path.name, url)
        return UploadResult(
            adapter=self.name,
            status="succeeded",
            target=UploadTarget(destination=OBJECT_STORE_DESTINATION, key=key),
            url=url,
            logs=logs,
            details={"bucket": self.bucket, "key": key},
        )

    def _build_public_url(self, key: str) -> str:
        region = self.region or "us-east-1"
        if self.public_url_template:
            return self.public_url_template.format(bucket=self.bucket, region=region, key=key)
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{key}"
