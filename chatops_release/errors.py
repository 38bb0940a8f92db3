"""Exception hierarchy shared by the plugin release workflow."""

from __future__ import annotations

from typing import Optional, Sequence


class ReleaseError(RuntimeError):
    """Base class for every failure raised by chatops_release."""


class ConfigurationError(ReleaseError):
    """Raised when a required setting is missing or unusable at first use."""


class InvalidRequestError(ReleaseError):
    """Raised when a release request is missing a required field."""


class InvalidTagError(InvalidRequestError):
    """Raised when a release tag is empty or not a ``v``-prefixed semver."""


class RepositoryNotFoundError(ReleaseError):
    """Raised when the target repository is not visible to the bridge."""


class WorkflowInProgressError(ReleaseError):
    """Raised when a release for the same repository and tag is already running."""


class GitHubAPIError(ReleaseError):
    """Raised when the source host answers with an unexpected status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubNotFoundError(GitHubAPIError):
    """Raised for 404 responses; callers that poll treat it as "not yet"."""


class TagExistsError(ReleaseError):
    """Raised when ``tags/<tag>`` already exists; nothing was mutated."""

    def __init__(self, owner: str, repo: str, tag: str) -> None:
        super().__init__(f"Tag {tag} already exists in {owner}/{repo}.")
        self.owner = owner
        self.repo = repo
        self.tag = tag


class AmbiguousAssetError(ReleaseError):
    """Raised when more than one release asset could be the plugin bundle."""

    def __init__(self, names: Sequence[str]) -> None:
        joined = ", ".join(names)
        super().__init__(f"found more than one plugin bundle on the release: {joined}")
        self.names = list(names)


class AssetWaitTimeoutError(ReleaseError):
    """Raised when no usable release asset shows up before the deadline."""


class AssetDownloadError(ReleaseError):
    """Raised when a release asset cannot be fetched into the working directory."""


class BundleSplitError(ReleaseError):
    """Raised when a universal bundle cannot be split into platform bundles."""


class SigningError(ReleaseError):
    """Raised when a file cannot be staged, signed or fetched from the signing host.

    ``remote_paths`` lists the files left on the signing host; cleanup is manual.
    """

    def __init__(self, message: str, *, remote_paths: Sequence[str] = ()) -> None:
        if remote_paths:
            message = f"{message} (staged remote files left in place: {', '.join(remote_paths)})"
        super().__init__(message)
        self.remote_paths = list(remote_paths)


class SignatureVerificationError(ReleaseError):
    """Raised when a detached signature is missing or does not verify."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"signature verification failed for {path}: {reason}")
        self.path = path
        self.reason = reason


class PublishError(ReleaseError):
    """Raised when a signed artifact cannot be uploaded."""


class NotificationError(ReleaseError):
    """Raised when a follow-up message cannot be delivered to the chat response URL."""


class StageError(ReleaseError):
    """Wraps the failure of one orchestrator stage."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"failed at stage {stage}: {cause}")
        self.stage = stage
        self.cause = cause


__all__ = [
    "AmbiguousAssetError",
    "AssetDownloadError",
    "AssetWaitTimeoutError",
    "BundleSplitError",
    "ConfigurationError",
    "GitHubAPIError",
    "GitHubNotFoundError",
    "InvalidRequestError",
    "InvalidTagError",
    "NotificationError",
    "PublishError",
    "ReleaseError",
    "RepositoryNotFoundError",
    "SignatureVerificationError",
    "SigningError",
    "StageError",
    "TagExistsError",
    "WorkflowInProgressError",
]
