"""Publishing helpers for signed plugin artifacts."""

from .adapters import GitHubReleaseAdapter, ObjectStoreAdapter, StorageAdapter
from .models import OBJECT_STORE_DESTINATION, RELEASE_DESTINATION, UploadResult, UploadTarget
from .publish import (
    canonical_bundle_name,
    publish_all,
    publish_to_object_store,
    publish_to_release,
    write_canonical_copies,
)

__all__ = [
    "GitHubReleaseAdapter",
    "OBJECT_STORE_DESTINATION",
    "ObjectStoreAdapter",
    "RELEASE_DESTINATION",
    "StorageAdapter",
    "UploadResult",
    "UploadTarget",
    "canonical_bundle_name",
    "publish_all",
    "publish_to_object_store",
    "publish_to_release",
    "write_canonical_copies",
]
