from __future__ import annotations

import pytest

from chatops_release.config import PollingSettings
from chatops_release.errors import AmbiguousAssetError, BundleSplitError, SigningError, StageError
from chatops_release.pipeline import CutPluginContext, cut_plugin
from chatops_release.publish import ObjectStoreAdapter

from .conftest import DEFAULT_EXECUTABLES
from .fakes import FakeGitHub, FakeS3Client, FakeSigner

BUNDLE_NAME = "com.example.plugin-x-1.2.3.tar.gz"


def _context(github: FakeGitHub, signer: FakeSigner, s3: FakeS3Client, **overrides) -> CutPluginContext:
    values = dict(
        owner="acme",
        repo="plugin-x",
        tag="v1.2.3",
        releases=github,
        signer=signer,
        object_store=ObjectStoreAdapter("plugins-bucket", s3),
        polling=PollingSettings(interval_seconds=30, timeout_seconds=600),
        sleep=lambda seconds: None,
    )
    values.update(overrides)
    return CutPluginContext(**values)


def test_end_to_end_publishes_everything(plugin_bundle) -> None:
    github = FakeGitHub()
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: plugin_bundle().read_bytes()}, pending=2)
    signer, s3 = FakeSigner(), FakeS3Client()

    result = cut_plugin(_context(github, signer, s3, commit_sha="abc123"))

    assert result.platforms == ["darwin-amd64", "linux-amd64", "windows-amd64"]
    assert [path.name for path in signer.signed] == [
        BUNDLE_NAME,
        "plugin-x-v1.2.3-darwin-amd64.tar.gz",
        "plugin-x-v1.2.3-linux-amd64.tar.gz",
        "plugin-x-v1.2.3-windows-amd64.tar.gz",
    ]
    assert github.asset_names("plugin-x", "v1.2.3") == [BUNDLE_NAME, f"{BUNDLE_NAME}.sig"]
    assert s3.keys("plugins-bucket") == [
        "release/plugin-x-v1.2.3-darwin-amd64.tar.gz",
        "release/plugin-x-v1.2.3-darwin-amd64.tar.gz.sig",
        "release/plugin-x-v1.2.3-linux-amd64.tar.gz",
        "release/plugin-x-v1.2.3-linux-amd64.tar.gz.sig",
        "release/plugin-x-v1.2.3-windows-amd64.tar.gz",
        "release/plugin-x-v1.2.3-windows-amd64.tar.gz.sig",
        "release/plugin-x-v1.2.3.tar.gz",
        "release/plugin-x-v1.2.3.tar.gz.sig",
    ]
    assert result.commit_sha == "abc123"
    assert result.release_url == "https://github.example/acme/plugin-x/releases/tag/v1.2.3"
    assert len(result.uploads) == 9
    payload = result.to_dict()
    assert payload["uploads"][0]["destination"] == "github-release"
    assert "[sign] done" in payload["logs"]


def test_working_directory_is_removed(plugin_bundle) -> None:
    github = FakeGitHub()
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: plugin_bundle().read_bytes()})
    signer = FakeSigner()

    cut_plugin(_context(github, signer, FakeS3Client()))

    assert signer.signed
    assert not signer.signed[0].parent.exists()


def test_pre_release_flag_is_set(plugin_bundle) -> None:
    github = FakeGitHub()
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: plugin_bundle().read_bytes()})

    cut_plugin(_context(github, FakeSigner(), FakeS3Client(), pre_release=True))

    assert github.releases[("plugin-x", "v1.2.3")].prerelease is True
    assert ("set_prerelease", "plugin-x", github.releases[("plugin-x", "v1.2.3")].id, True) in github.mutations


def test_named_asset_is_used(plugin_bundle) -> None:
    github = FakeGitHub()
    data = plugin_bundle().read_bytes()
    github.add_release("plugin-x", "v1.2.3", {"a.tar.gz": data, "b.tar.gz": data})

    result = cut_plugin(_context(github, FakeSigner(), FakeS3Client(), asset_name="b.tar.gz"))

    assert "b.tar.gz.sig" in github.asset_names("plugin-x", "v1.2.3")
    assert len(result.platforms) == 3


def test_ambiguous_assets_fail_at_wait_stage(plugin_bundle) -> None:
    github = FakeGitHub()
    data = plugin_bundle().read_bytes()
    github.add_release("plugin-x", "v1.2.3", {"a.tar.gz": data, "b.tar.gz": data})
    signer = FakeSigner()

    with pytest.raises(StageError) as excinfo:
        cut_plugin(_context(github, signer, FakeS3Client()))

    assert excinfo.value.stage == "wait-for-asset"
    assert isinstance(excinfo.value.cause, AmbiguousAssetError)
    assert excinfo.value.__cause__ is excinfo.value.cause
    assert signer.signed == []


def test_split_failure_stops_before_signing(plugin_bundle) -> None:
    github = FakeGitHub()
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: plugin_bundle(include_manifest=False).read_bytes()})
    signer, s3 = FakeSigner(), FakeS3Client()

    with pytest.raises(StageError) as excinfo:
        cut_plugin(_context(github, signer, s3))

    assert excinfo.value.stage == "split"
    assert isinstance(excinfo.value.cause, BundleSplitError)
    assert signer.signed == []
    assert s3.objects == {}


def test_signing_failure_publishes_nothing(plugin_bundle) -> None:
    github = FakeGitHub()
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: plugin_bundle().read_bytes()})
    s3 = FakeS3Client()

    with pytest.raises(StageError, match="failed at stage sign") as excinfo:
        cut_plugin(_context(github, FakeSigner(error=SigningError("ssh: handshake failed")), s3))

    assert isinstance(excinfo.value.cause, SigningError)
    assert github.asset_names("plugin-x", "v1.2.3") == [BUNDLE_NAME]
    assert s3.objects == {}


def test_object_store_failure_is_reported(plugin_bundle) -> None:
    github = FakeGitHub()
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: plugin_bundle().read_bytes()})

    with pytest.raises(StageError) as excinfo:
        cut_plugin(_context(github, FakeSigner(), FakeS3Client(error=OSError("disk full"))))

    assert excinfo.value.stage == "publish-object-store"


def test_single_platform_release(plugin_bundle) -> None:
    github = FakeGitHub()
    bundle = plugin_bundle(binaries=[DEFAULT_EXECUTABLES["linux-amd64"]])
    github.add_release("plugin-x", "v1.2.3", {BUNDLE_NAME: bundle.read_bytes()})
    s3 = FakeS3Client()

    result = cut_plugin(_context(github, FakeSigner(), s3))

    assert result.platforms == ["linux-amd64"]
    assert len(s3.keys("plugins-bucket")) == 4


def test_wait_timeout_surfaces_as_stage_error() -> None:
    github = FakeGitHub()
    ticks = iter(range(0, 10_000, 100))

    with pytest.raises(StageError) as excinfo:
        cut_plugin(_context(github, FakeSigner(), FakeS3Client(), clock=lambda: float(next(ticks))))

    assert excinfo.value.stage == "wait-for-asset"
    assert "timed out" in str(excinfo.value)
