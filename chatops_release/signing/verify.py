"""Detached OpenPGP signature checks against the trusted plugin key."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Iterable, Mapping, Optional

import gnupg

from ..errors import ConfigurationError, SignatureVerificationError

logger = logging.getLogger(__name__)

SIGNATURE_SUFFIX = ".sig"


def signature_path(path: Path) -> Path:
    return path.with_name(path.name + SIGNATURE_SUFFIX)


class SignatureVerifier:
    """Verifies ``<file>.sig`` against one ASCII-armored public key.

    Every call imports the key into a throw-away keyring, so nothing from the
    host's own GnuPG home can vouch for a signature.
    """

    def __init__(self, public_key: str, *, gpg_binary: str = "gpg") -> None:
        if not public_key.strip():
            raise ConfigurationError("trusted public key is empty")
        self._public_key = public_key
        self._gpg_binary = gpg_binary

    @classmethod
    def from_path(cls, path: Path, **kwargs: str) -> "SignatureVerifier":
        try:
            return cls(path.read_text(encoding="utf-8"), **kwargs)
        except OSError as exc:
            raise ConfigurationError(f"cannot read trusted public key {path}: {exc}") from exc

    def verify(self, paths: Iterable[Path], signatures: Optional[Mapping[Path, Path]] = None) -> None:
        """Fail on the first file whose signature is missing or does not verify."""

        signatures = signatures or {}
        paths = list(paths)
        with tempfile.TemporaryDirectory(prefix="chatops-release-gpg-") as home:
            gpg = self._keyring(home)
            imported = gpg.import_keys(self._public_key)
            trusted = set(imported.fingerprints)
            if not trusted:
                raise ConfigurationError("trusted public key could not be imported")

            for path in paths:
                sig = signatures.get(path) or signature_path(path)
                if not path.is_file():
                    raise SignatureVerificationError(str(path), "cannot read signed file")
                try:
                    handle = sig.open("rb")
                except OSError as exc:
                    raise SignatureVerificationError(str(path), f"cannot read signature file {sig}: {exc}") from exc
                with handle:
                    result = gpg.verify_file(handle, data_filename=str(path))
                if not result.valid:
                    raise SignatureVerificationError(str(path), result.status or "invalid signature")
                signer = result.pubkey_fingerprint or result.fingerprint
                if signer not in trusted:
                    raise SignatureVerificationError(str(path), f"signed by untrusted key {signer}")

        logger.info("Signatures verified for %s", [path.name for path in paths])

    def _keyring(self, home: str) -> gnupg.GPG:
        try:
            return gnupg.GPG(gnupghome=home, gpgbinary=self._gpg_binary)
        except (OSError, ValueError, RuntimeError) as exc:
            raise ConfigurationError(f"cannot start {self._gpg_binary}: {exc}") from exc
