"""Release tag creation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import GitHubAPIError, GitHubNotFoundError, TagExistsError
from .github.services import RepositoryService, TagService

logger = logging.getLogger(__name__)

FALLBACK_BRANCH = "master"


@dataclass(slots=True, frozen=True)
class ReleaseTag:
    owner: str
    repo: str
    tag: str
    commit_sha: Optional[str] = None

    @property
    def ref(self) -> str:
        return f"tags/{self.tag}"


@dataclass(slots=True)
class TagResult:
    release_tag: ReleaseTag
    commit_sha: str
    tag_object_sha: str


def tag_exists(tags: TagService, release_tag: ReleaseTag) -> bool:
    """True when ``tags/<tag>`` matches exactly; prefix matches do not count."""

    try:
        refs = tags.get_matching_refs(release_tag.owner, release_tag.repo, release_tag.ref)
    except GitHubNotFoundError:
        logger.info("tag %s was not found, moving on to creating tag", release_tag.tag)
        return False
    return any(ref.short_ref == release_tag.ref for ref in refs)


def resolve_default_branch_tip(tags: TagService, repos: RepositoryService, owner: str, repo: str) -> str:
    branch = FALLBACK_BRANCH
    try:
        branch = repos.get_repository(owner, repo).default_branch or FALLBACK_BRANCH
    except GitHubAPIError as exc:
        logger.warning("could not read default branch of %s/%s, using %s: %s", owner, repo, branch, exc)
    return tags.get_ref(owner, repo, f"heads/{branch}").object.sha


def create_tag(
    tags: TagService,
    repos: RepositoryService,
    owner: str,
    repo: str,
    tag: str,
    commit_sha: Optional[str] = None,
) -> TagResult:
    """Create an annotated tag and its ref at ``commit_sha`` or the default branch tip.

    Raises ``TagExistsError`` without mutating anything when the ref already
    exists. Tag object and ref are created in sequence with no rollback; a
    failed ref creation leaves the tag object orphaned.
    """

    release_tag = ReleaseTag(owner=owner, repo=repo, tag=tag, commit_sha=commit_sha or None)
    if tag_exists(tags, release_tag):
        raise TagExistsError(owner, repo, tag)

    if release_tag.commit_sha:
        # Raises for an unknown SHA so no dangling tag gets created.
        sha = repos.get_commit(owner, repo, release_tag.commit_sha).sha or release_tag.commit_sha
    else:
        sha = resolve_default_branch_tip(tags, repos, owner, repo)

    tag_object = tags.create_tag(owner, repo, tag, tag, sha)
    tags.create_ref(owner, repo, f"refs/{release_tag.ref}", sha)
    logger.info("created tag %s at %s in %s/%s", tag, sha, owner, repo)
    return TagResult(release_tag=release_tag, commit_sha=sha, tag_object_sha=tag_object.sha)
