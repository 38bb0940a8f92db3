"""Subset of the GitHub REST payloads the release workflow reads."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GitObject(_Payload):
    sha: str
    type: str = "commit"


class GitReference(_Payload):
    ref: str
    object: GitObject

    @property
    def short_ref(self) -> str:
        """``tags/v1.0.0`` for ``refs/tags/v1.0.0``."""

        return self.ref[len("refs/") :] if self.ref.startswith("refs/") else self.ref


class GitTag(_Payload):
    sha: str
    tag: str
    message: str = ""
    object: GitObject


class Repository(_Payload):
    name: str
    full_name: str
    default_branch: Optional[str] = None
    html_url: Optional[str] = None


class Commit(_Payload):
    sha: str
    html_url: Optional[str] = None


class ReleaseAsset(_Payload):
    id: int
    name: str
    size: int = 0
    browser_download_url: Optional[str] = None


class Release(_Payload):
    id: int
    tag_name: str
    html_url: Optional[str] = None
    upload_url: Optional[str] = None
    prerelease: bool = False
    assets: List[ReleaseAsset] = Field(default_factory=list)


class RepositorySearchResult(_Payload):
    total_count: int = 0
    items: List[Repository] = Field(default_factory=list)
