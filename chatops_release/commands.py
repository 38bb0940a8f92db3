"""The ``cutplugin`` command: validation, tagging and the background release worker."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict

from .config import BridgeConfig, PollingSettings
from .errors import (
    GitHubAPIError,
    InvalidRequestError,
    NotificationError,
    ReleaseError,
    RepositoryNotFoundError,
    StageError,
    TagExistsError,
    WorkflowInProgressError,
)
from .github import GitHubClient, SourceHost
from .pipeline import STAGE_CREATE_TAG, CutPluginContext, CutPluginResult, Signer, cut_plugin
from .publish import ObjectStoreAdapter, StorageAdapter
from .responses import (
    COLOR_ERROR,
    COLOR_INFO,
    RESPONSE_EPHEMERAL,
    SlashResponse,
    enriched_response,
    post_extra_message,
    standard_response,
)
from .signing import SignatureVerifier, SigningClient
from .tags import TagResult, create_tag
from .versioning import validate_release_tag

logger = logging.getLogger(__name__)

PLUGIN_RELEASE_TITLE = "Plugin Release Process"

STATUS_ACCEPTED = "accepted"
STATUS_EXISTS = "exists"
STATUS_FAILED = "failed"


class PluginReleaseRequest(BaseModel):
    """What the chat front end hands over for one ``cutplugin`` invocation."""

    repository: str = ""
    tag: str = ""
    commit_sha: Optional[str] = None
    asset_name: Optional[str] = None
    force: bool = False
    pre_release: bool = False
    user_name: str = ""
    command: str = ""
    response_url: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


@dataclass(slots=True)
class CommandAck:
    status: str
    response: SlashResponse
    future: Optional["Future[CutPluginResult]"] = None
    tag_result: Optional[TagResult] = None

    @property
    def message(self) -> str:
        if self.response.attachments:
            return self.response.attachments[0].text
        return self.response.text


Notifier = Callable[[PluginReleaseRequest, SlashResponse], None]


def success_message(tag: str, repo: str, commit_sha: Optional[str], release_url: Optional[str], user_name: str) -> str:
    lines = [
        f"@{user_name} A Plugin was successfully signed and uploaded to Github and S3.",
        f"Tag: **{tag}**",
        f"Repo: **{repo}**",
    ]
    if commit_sha:
        lines.append(f"CommitSHA: **{commit_sha}**")
    if release_url:
        lines.append(f"[Release Link]({release_url})")
    return "\n".join(lines)


def failure_message(error: BaseException) -> str:
    return f"Error while signing plugin\nError: {error}"


def post_to_response_url(request: PluginReleaseRequest, response: SlashResponse) -> None:
    if not request.response_url:
        logger.info("no response URL for %s@%s; follow-up: %s", request.repository, request.tag, response.model_dump_json())
        return
    post_extra_message(request.response_url, response)


class PluginReleaseCommand:
    """Validate a request, create its tag and hand the rest to a worker thread.

    At most one workflow runs per (repository, tag); a second trigger while the
    first is running raises ``WorkflowInProgressError``.
    """

    def __init__(
        self,
        github: SourceHost,
        signer: Signer,
        object_store: StorageAdapter,
        *,
        org: str,
        polling: Optional[PollingSettings] = None,
        executor: Optional[Executor] = None,
        notifier: Notifier = post_to_response_url,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.github = github
        self.signer = signer
        self.object_store = object_store
        self.org = org
        self.polling = polling or PollingSettings()
        self.executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="plugin-release")
        self.notifier = notifier
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.Lock()
        self._in_flight: Set[Tuple[str, str]] = set()

    @classmethod
    def from_config(
        cls,
        config: BridgeConfig,
        *,
        executor: Optional[Executor] = None,
        notifier: Notifier = post_to_response_url,
    ) -> "PluginReleaseCommand":
        github = GitHubClient.from_settings(config.github)
        verifier = SignatureVerifier.from_path(config.signing.public_key_path)
        return cls(
            github,
            SigningClient(config.signing, verifier),
            ObjectStoreAdapter.from_settings(config.object_store),
            org=config.github.org,
            polling=config.polling,
            executor=executor,
            notifier=notifier,
        )

    def validate(self, request: PluginReleaseRequest) -> None:
        validate_release_tag(request.tag)
        if not request.repository:
            raise InvalidRequestError("Plugin Repository should not be empty")

    def check_repository(self, repo: str) -> None:
        message = f"Looks like this Repository is not part of the org or does not exist. Repo: {repo}"
        try:
            found = self.github.search_repositories(f"repo:{self.org}/{repo}")
        except GitHubAPIError as exc:
            logger.error("repository search failed for %s/%s: %s", self.org, repo, exc)
            raise RepositoryNotFoundError(message) from exc
        if not any(item.name == repo for item in found.items):
            raise RepositoryNotFoundError(message)

    def handle(self, request: PluginReleaseRequest) -> CommandAck:
        """Like ``trigger`` but turns request errors into an ephemeral reply."""

        try:
            return self.trigger(request)
        except StageError as exc:
            response = enriched_response(PLUGIN_RELEASE_TITLE, failure_message(exc), COLOR_ERROR, RESPONSE_EPHEMERAL)
            return CommandAck(status=STATUS_FAILED, response=response)
        except ReleaseError as exc:
            logger.info("rejected plugin release %s@%s: %s", request.repository, request.tag, exc)
            return CommandAck(status="rejected", response=standard_response(str(exc), RESPONSE_EPHEMERAL))

    def trigger(self, request: PluginReleaseRequest) -> CommandAck:
        self.validate(request)
        self.check_repository(request.repository)

        key = (request.repository, request.tag)
        with self._lock:
            if key in self._in_flight:
                raise WorkflowInProgressError(
                    f"A plugin release for {request.repository} {request.tag} is already running."
                )
            self._in_flight.add(key)

        try:
            return self._start(request, key)
        except BaseException:
            self._release(key)
            raise

    def _start(self, request: PluginReleaseRequest, key: Tuple[str, str]) -> CommandAck:
        prefix = "pre-" if request.pre_release else ""
        message = (
            f"@{request.user_name} triggered a plugin {prefix}release process using `{request.command}`.\n"
            f"Tag {request.tag} created in `{request.repository}`. Waiting for the artifacts to sign and publish.\n"
            "Will report back when the process completes.\nGrab :coffee: and a :doughnut: "
        )
        tag_result: Optional[TagResult] = None
        try:
            tag_result = create_tag(self.github, self.github, self.org, request.repository, request.tag, request.commit_sha)
        except TagExistsError:
            if not request.force:
                self._release(key)
                text = (
                    f"@{request.user_name} Tag {request.tag} already exists in {request.repository}. "
                    "Not generating any artifacts. Use --force to regenerate artifacts."
                )
                return CommandAck(status=STATUS_EXISTS, response=standard_response(text, RESPONSE_EPHEMERAL))
            message = (
                f"@{request.user_name} Tag {request.tag} already exists in {request.repository}. "
                "Waiting for the artifacts to sign and publish.\n"
                "Will report back when the process completes.\nGrab :coffee: and a :doughnut: "
            )
        except ReleaseError as exc:
            logger.error("failed to create tag %s in %s/%s: %s", request.tag, self.org, request.repository, exc)
            raise StageError(STAGE_CREATE_TAG, exc) from exc

        commit_sha = request.commit_sha or (tag_result.commit_sha if tag_result else None)
        future = self.executor.submit(self._run, request, key, commit_sha)
        return CommandAck(
            status=STATUS_ACCEPTED,
            response=enriched_response(PLUGIN_RELEASE_TITLE, message, COLOR_INFO),
            future=future,
            tag_result=tag_result,
        )

    def _run(self, request: PluginReleaseRequest, key: Tuple[str, str], commit_sha: Optional[str]) -> CutPluginResult:
        context = CutPluginContext(
            owner=self.org,
            repo=request.repository,
            tag=request.tag,
            releases=self.github,
            signer=self.signer,
            object_store=self.object_store,
            commit_sha=commit_sha,
            asset_name=request.asset_name,
            pre_release=request.pre_release,
            polling=self.polling,
            sleep=self._sleep,
            clock=self._clock,
        )
        try:
            try:
                result = cut_plugin(context)
            except Exception as exc:
                logger.error("failed to cut plugin %s@%s: %s", request.repository, request.tag, exc)
                self._notify(request, enriched_response(PLUGIN_RELEASE_TITLE, failure_message(exc), COLOR_ERROR))
                raise
            text = success_message(request.tag, request.repository, commit_sha, result.release_url, request.user_name)
            self._notify(request, enriched_response(PLUGIN_RELEASE_TITLE, text, COLOR_INFO))
            return result
        finally:
            self._release(key)

    def _notify(self, request: PluginReleaseRequest, response: SlashResponse) -> None:
        try:
            self.notifier(request, response)
        except NotificationError as exc:
            logger.error("failed to post follow-up message for %s@%s: %s", request.repository, request.tag, exc)

    def _release(self, key: Tuple[str, str]) -> None:
        with self._lock:
            self._in_flight.discard(key)

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
