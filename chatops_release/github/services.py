"""Capability interfaces over the source host.

The workflow only ever talks to these protocols; ``GitHubClient`` fulfils all
of them and tests substitute an in-memory fake.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, List, Protocol

from .models import Commit, GitReference, GitTag, Release, ReleaseAsset, Repository, RepositorySearchResult


class TagService(Protocol):
    def get_matching_refs(self, owner: str, repo: str, ref: str) -> List[GitReference]:
        ...

    def get_ref(self, owner: str, repo: str, ref: str) -> GitReference:
        ...

    def create_tag(self, owner: str, repo: str, tag: str, message: str, sha: str) -> GitTag:
        ...

    def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> GitReference:
        ...


class RepositoryService(Protocol):
    def get_repository(self, owner: str, repo: str) -> Repository:
        ...

    def get_commit(self, owner: str, repo: str, sha: str) -> Commit:
        ...


class ReleaseService(Protocol):
    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> Release:
        ...

    def set_prerelease(self, owner: str, repo: str, release_id: int, prerelease: bool) -> Release:
        ...

    def list_release_assets(self, owner: str, repo: str, release_id: int) -> List[ReleaseAsset]:
        ...

    def delete_release_asset(self, owner: str, repo: str, asset_id: int) -> None:
        ...

    def upload_release_asset(self, owner: str, repo: str, release: Release, name: str, path: Path) -> ReleaseAsset:
        ...

    def download_release_asset(self, owner: str, repo: str, asset_id: int, destination: BinaryIO) -> int:
        """Write the asset bytes to ``destination`` and return how many were written."""
        ...


class SearchService(Protocol):
    def search_repositories(self, query: str) -> RepositorySearchResult:
        ...


class SourceHost(TagService, RepositoryService, ReleaseService, SearchService, Protocol):
    """Everything the release command needs from the source host."""
