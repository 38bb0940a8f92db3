"""Source-host access for the release workflow."""

from .client import GitHubClient
from .models import Commit, GitObject, GitReference, GitTag, Release, ReleaseAsset, Repository, RepositorySearchResult
from .services import ReleaseService, RepositoryService, SearchService, SourceHost, TagService

__all__ = [
    "Commit",
    "GitHubClient",
    "GitObject",
    "GitReference",
    "GitTag",
    "Release",
    "ReleaseAsset",
    "ReleaseService",
    "Repository",
    "RepositorySearchResult",
    "RepositoryService",
    "SearchService",
    "SourceHost",
    "TagService",
]
