"""Command-line helpers for plugin releases."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from chatops_release.bundle import split_bundle
from chatops_release.commands import STATUS_ACCEPTED, PluginReleaseCommand, PluginReleaseRequest
from chatops_release.config import LoggingSettings, configure_logging, load_config
from chatops_release.errors import ReleaseError, StageError
from chatops_release.secrets import AWS_ACCESS_KEY, AWS_SECRET_KEY, GITHUB_TOKEN, resolve_secret_info, use_dotenv
from chatops_release.signing import SignatureVerifier


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.env_file:
        use_dotenv(Path(args.env_file))

    if args.command == "cut-plugin":
        return _handle_cut_plugin(args)
    if args.command == "split":
        return _handle_split(args)
    if args.command == "verify":
        return _handle_verify(args)
    if args.command == "config":
        if args.config_command == "validate":
            return _handle_config_validate(args)
        parser.error("config command requires a subcommand")

    parser.error(f"Unknown command '{args.command}'")
    return 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chatops-release", description="Plugin release helpers.")
    parser.add_argument("--env-file", help="Dotenv file consulted for credentials.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    cut = subparsers.add_parser("cut-plugin", help="Tag, sign and publish a plugin release.")
    cut.add_argument("--config", default="config.yaml")
    cut.add_argument("--repo", required=True)
    cut.add_argument("--tag", required=True)
    cut.add_argument("--commit-sha")
    cut.add_argument("--asset-name")
    cut.add_argument("--force", action="store_true")
    cut.add_argument("--pre-release", action="store_true")
    cut.add_argument("--user", default="cli")

    split = subparsers.add_parser("split", help="Split a universal bundle into platform bundles.")
    split.add_argument("--bundle", required=True)
    split.add_argument("--repo", required=True)
    split.add_argument("--tag", required=True)
    split.add_argument("--output-dir")

    verify = subparsers.add_parser("verify", help="Verify detached <file>.sig signatures.")
    verify.add_argument("--public-key", required=True, help="ASCII-armored OpenPGP public key.")
    verify.add_argument("files", nargs="+")

    config = subparsers.add_parser("config", help="Configuration utilities.")
    config_sub = config.add_subparsers(dest="config_command", required=True)
    config_validate = config_sub.add_parser("validate", help="Load and validate a bridge config file.")
    config_validate.add_argument("--config", default="config.yaml")
    return parser


def _handle_cut_plugin(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except ReleaseError as exc:
        _print_json({"status": "error", "error": str(exc)})
        return 1
    configure_logging(config.logging)

    command_line = f"cut-plugin --repo {args.repo} --tag {args.tag}"
    request = PluginReleaseRequest(
        repository=args.repo,
        tag=args.tag,
        commit_sha=args.commit_sha,
        asset_name=args.asset_name,
        force=args.force,
        pre_release=args.pre_release,
        user_name=args.user,
        command=command_line,
    )
    try:
        command = PluginReleaseCommand.from_config(config)
    except ReleaseError as exc:
        _print_json({"status": "error", "error": str(exc)})
        return 1

    try:
        ack = command.trigger(request)
        if ack.status != STATUS_ACCEPTED or ack.future is None:
            _print_json({"status": ack.status, "message": ack.message})
            return 1
        result = ack.future.result()
    except StageError as exc:
        _print_json({"status": "error", "stage": exc.stage, "error": str(exc.cause)})
        return 1
    except ReleaseError as exc:
        _print_json({"status": "error", "error": str(exc)})
        return 1
    finally:
        command.shutdown()

    payload = {"status": "succeeded", **result.to_dict()}
    _print_json(payload)
    return 0


def _handle_split(args: argparse.Namespace) -> int:
    configure_logging(LoggingSettings())
    bundle = Path(args.bundle).expanduser().resolve()
    output_dir = Path(args.output_dir).expanduser().resolve() if args.output_dir else bundle.parent
    output_dir.mkdir(parents=True, exist_ok=True)
    try:
        bundles = split_bundle(bundle, args.repo, args.tag, output_dir)
    except ReleaseError as exc:
        _print_json({"status": "error", "error": str(exc)})
        return 1

    _print_json(
        {
            "status": "ok",
            "bundles": [
                {
                    "platform": item.platform,
                    "binary": item.binary_name,
                    "path": str(item.path),
                    "sha256": item.sha256,
                }
                for item in bundles
            ],
        }
    )
    return 0


def _handle_verify(args: argparse.Namespace) -> int:
    files: List[Path] = [Path(value).expanduser().resolve() for value in args.files]
    try:
        verifier = SignatureVerifier.from_path(Path(args.public_key).expanduser())
        verifier.verify(files)
    except ReleaseError as exc:
        _print_json({"status": "failed", "error": str(exc)})
        return 1
    _print_json({"status": "ok", "files": [str(path) for path in files]})
    return 0


def _handle_config_validate(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except ReleaseError as exc:
        _print_json({"status": "invalid", "errors": [str(exc)]})
        return 1

    secrets = {
        name: resolve_secret_info(name).describe() for name in (GITHUB_TOKEN, AWS_ACCESS_KEY, AWS_SECRET_KEY)
    }
    _print_json({"status": "valid", "config": config.redacted(), "secrets": secrets})
    return 0


def _print_json(payload: Mapping[str, object]) -> None:
    print(json.dumps(payload, indent=2, default=str))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
