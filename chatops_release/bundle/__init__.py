"""Bundle helpers for plugin release artifacts."""

from .manifest import BundleLayout, PluginManifest, inspect_bundle
from .splitter import PlatformBundle, archive_contains, platform_bundle_name, split_bundle

__all__ = [
    "BundleLayout",
    "PlatformBundle",
    "PluginManifest",
    "archive_contains",
    "inspect_bundle",
    "platform_bundle_name",
    "split_bundle",
]
