from __future__ import annotations

from concurrent.futures import Future
from typing import Callable, List, Optional, Tuple

import pytest

from chatops_release.commands import (
    STATUS_ACCEPTED,
    STATUS_EXISTS,
    PluginReleaseCommand,
    PluginReleaseRequest,
    failure_message,
    success_message,
)
from chatops_release.config import PollingSettings
from chatops_release.errors import (
    InvalidTagError,
    NotificationError,
    RepositoryNotFoundError,
    SigningError,
    StageError,
    WorkflowInProgressError,
)
from chatops_release.publish import ObjectStoreAdapter
from chatops_release.responses import COLOR_ERROR, COLOR_INFO, RESPONSE_EPHEMERAL, RESPONSE_IN_CHANNEL, SlashResponse

from .fakes import FakeGitHub, FakeS3Client, FakeSigner

BUNDLE_NAME = "com.example.plugin-x-1.2.3.tar.gz"


class _InlineExecutor:
    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait: bool = True) -> None:
        pass


class _DeferredExecutor(_InlineExecutor):
    """Holds submitted work until ``run_pending`` is called."""

    def __init__(self) -> None:
        self.pending: List[Tuple[Future, Callable, tuple]] = []

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        future: Future = Future()
        self.pending.append((future, fn, args))
        return future

    def run_pending(self) -> None:
        while self.pending:
            future, fn, args = self.pending.pop(0)
            try:
                future.set_result(fn(*args))
            except Exception as exc:
                future.set_exception(exc)


class _Recorder:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.messages: List[Tuple[PluginReleaseRequest, SlashResponse]] = []
        self.error = error

    def __call__(self, request: PluginReleaseRequest, response: SlashResponse) -> None:
        self.messages.append((request, response))
        if self.error is not None:
            raise self.error


def _request(**overrides) -> PluginReleaseRequest:
    values = dict(
        repository="plugin-x",
        tag="v1.2.3",
        user_name="alice",
        command="/matterbuild cutplugin --tag v1.2.3 --repo plugin-x",
        response_url="https://chat.example/hooks/response",
    )
    values.update(overrides)
    return PluginReleaseRequest(**values)


def _command(github: FakeGitHub, *, signer=None, executor=None, notifier=None, s3=None) -> PluginReleaseCommand:
    return PluginReleaseCommand(
        github,
        signer or FakeSigner(),
        ObjectStoreAdapter("plugins-bucket", s3 or FakeS3Client()),
        org="acme",
        polling=PollingSettings(interval_seconds=30, timeout_seconds=600),
        executor=executor or _InlineExecutor(),
        notifier=notifier or _Recorder(),
        sleep=lambda seconds: None,
    )


def test_new_tag_is_created_and_release_runs(plugin_bundle) -> None:
    github = FakeGitHub()
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: plugin_bundle().read_bytes()})
    notifier = _Recorder()

    ack = _command(github, notifier=notifier).trigger(_request())

    assert ack.status == STATUS_ACCEPTED
    assert ack.response.response_type == RESPONSE_IN_CHANNEL
    assert ack.message.startswith("@alice triggered a plugin release process using `/matterbuild cutplugin")
    assert "Tag v1.2.3 created in `plugin-x`." in ack.message
    assert ack.tag_result is not None
    assert ack.tag_result.commit_sha == github.head_sha
    assert ("create_ref", "plugin-x", "refs/tags/v1.2.3", github.head_sha) in github.mutations

    result = ack.future.result()
    assert result.platforms == ["darwin-amd64", "linux-amd64", "windows-amd64"]
    assert len(notifier.messages) == 1
    attachment = notifier.messages[0][1].attachments[0]
    assert attachment.color == COLOR_INFO
    assert attachment.text.splitlines() == [
        "@alice A Plugin was successfully signed and uploaded to Github and S3.",
        "Tag: **v1.2.3**",
        "Repo: **plugin-x**",
        f"CommitSHA: **{github.head_sha}**",
        "[Release Link](https://github.example/acme/plugin-x/releases/tag/v1.2.3)",
    ]


def test_pre_release_ack_wording(plugin_bundle) -> None:
    github = FakeGitHub()
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: plugin_bundle().read_bytes()})

    ack = _command(github).trigger(_request(pre_release=True))

    assert "triggered a plugin pre-release process" in ack.message
    ack.future.result()
    assert github.releases[("plugin-x", "v1.2.3")].prerelease is True


def test_existing_tag_without_force_does_nothing() -> None:
    github = FakeGitHub()
    github.add_tag("plugin-x", "v1.2.3")
    signer, notifier = FakeSigner(), _Recorder()

    ack = _command(github, signer=signer, notifier=notifier).trigger(_request())

    assert ack.status == STATUS_EXISTS
    assert ack.future is None
    assert ack.response.response_type == RESPONSE_EPHEMERAL
    assert ack.message == (
        "@alice Tag v1.2.3 already exists in plugin-x. Not generating any artifacts. "
        "Use --force to regenerate artifacts."
    )
    assert github.mutations == []
    assert signer.signed == []
    assert notifier.messages == []


def test_existing_tag_with_force_regenerates(plugin_bundle) -> None:
    github = FakeGitHub()
    github.add_tag("plugin-x", "v1.2.3")
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: plugin_bundle().read_bytes()})
    signer = FakeSigner()

    ack = _command(github, signer=signer).trigger(_request(force=True, commit_sha="abc123"))

    assert ack.status == STATUS_ACCEPTED
    assert ack.tag_result is None
    assert "already exists in plugin-x. Waiting for the artifacts" in ack.message
    assert ack.future.result().commit_sha == "abc123"
    assert signer.signed
    assert not any(mutation[0] in ("create_tag", "create_ref") for mutation in github.mutations)


def test_invalid_tag_is_rejected_before_any_call() -> None:
    github = FakeGitHub()

    with pytest.raises(InvalidTagError, match="leading 'v'"):
        _command(github).trigger(_request(tag="1.2.3"))
    assert github.mutations == []


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"tag": ""}, "Tag should not be empty"),
        ({"repository": ""}, "Plugin Repository should not be empty"),
        ({"repository": "unknown"}, "not part of the org or does not exist. Repo: unknown"),
    ],
)
def test_handle_turns_request_errors_into_ephemeral_replies(overrides, message) -> None:
    ack = _command(FakeGitHub()).handle(_request(**overrides))

    assert ack.status == "rejected"
    assert ack.future is None
    assert ack.response.response_type == RESPONSE_EPHEMERAL
    assert message in ack.message


def test_unknown_commit_fails_at_create_tag_stage() -> None:
    github = FakeGitHub()

    with pytest.raises(StageError) as excinfo:
        _command(github, executor=_DeferredExecutor()).trigger(_request(commit_sha="deadbeef"))

    assert excinfo.value.stage == "create-tag"
    assert "No commit found for SHA: deadbeef" in str(excinfo.value.cause)
    assert github.mutations == []


def test_handle_reports_the_failed_tag_stage() -> None:
    github = FakeGitHub()
    executor = _DeferredExecutor()
    command = _command(github, executor=executor)

    ack = command.handle(_request(commit_sha="deadbeef"))

    assert ack.status == "failed"
    assert ack.future is None
    assert ack.response.response_type == RESPONSE_EPHEMERAL
    assert ack.response.attachments[0].color == COLOR_ERROR
    assert ack.message == (
        "Error while signing plugin\nError: failed at stage create-tag: No commit found for SHA: deadbeef"
    )
    assert executor.pending == []
    assert command.trigger(_request()).status == STATUS_ACCEPTED


def test_unknown_repository_is_reported() -> None:
    github = FakeGitHub(repos=("other",))

    with pytest.raises(RepositoryNotFoundError, match="Repo: plugin-x"):
        _command(github).trigger(_request())
    assert github.mutations == []


def test_second_trigger_while_running_is_refused(plugin_bundle) -> None:
    github = FakeGitHub()
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: plugin_bundle().read_bytes()})
    executor = _DeferredExecutor()
    command = _command(github, executor=executor)

    first = command.trigger(_request())
    with pytest.raises(WorkflowInProgressError, match="already running"):
        command.trigger(_request(force=True))

    executor.run_pending()
    first.future.result()
    again = command.trigger(_request(force=True))
    assert again.status == STATUS_ACCEPTED


def test_exists_reply_does_not_hold_the_guard() -> None:
    github = FakeGitHub()
    github.add_tag("plugin-x", "v1.2.3")
    command = _command(github, executor=_DeferredExecutor())

    assert command.trigger(_request()).status == STATUS_EXISTS
    assert command.trigger(_request(force=True)).status == STATUS_ACCEPTED


def test_failed_release_notifies_and_releases_guard(plugin_bundle) -> None:
    github = FakeGitHub()
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: plugin_bundle().read_bytes()})
    notifier = _Recorder()
    command = _command(github, signer=FakeSigner(error=SigningError("ssh: handshake failed")), notifier=notifier)

    ack = command.trigger(_request())

    with pytest.raises(StageError) as excinfo:
        ack.future.result()
    assert excinfo.value.stage == "sign"
    attachment = notifier.messages[0][1].attachments[0]
    assert attachment.color == COLOR_ERROR
    assert attachment.text.startswith("Error while signing plugin\nError: ")
    assert "ssh: handshake failed" in attachment.text
    assert command.trigger(_request(force=True)).status == STATUS_ACCEPTED


def test_notification_failure_does_not_fail_the_release(plugin_bundle) -> None:
    github = FakeGitHub()
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: plugin_bundle().read_bytes()})
    notifier = _Recorder(error=NotificationError("failed to post follow-up message: 502 Bad Gateway"))

    ack = _command(github, notifier=notifier).trigger(_request())

    assert ack.future.result().tag == "v1.2.3"
    assert len(notifier.messages) == 1


def test_success_message_omits_missing_fields() -> None:
    assert success_message("v1.0.0", "plugin-x", None, None, "bob") == (
        "@bob A Plugin was successfully signed and uploaded to Github and S3.\n"
        "Tag: **v1.0.0**\n"
        "Repo: **plugin-x**"
    )
    assert failure_message(RuntimeError("boom")) == "Error while signing plugin\nError: boom"
