"""Remote signing of release files on the signing host."""

from __future__ import annotations

import logging
import posixpath
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Sequence

from ..config import SigningSettings
from ..errors import SigningError
from .transport import RemoteSession, open_paramiko_session
from .verify import SIGNATURE_SUFFIX, SignatureVerifier

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RemoteFileHandle:
    local_path: Path
    remote_path: str


@dataclass(slots=True, frozen=True)
class SignatureArtifact:
    source: Path
    signature: Path


class SigningClient:
    """Stage, sign, fetch, verify, then clean up, in that order.

    Remote copies are removed only after every signature verified. Any earlier
    failure leaves the staged files on the signing host for an operator.
    """

    def __init__(
        self,
        settings: SigningSettings,
        verifier: SignatureVerifier,
        *,
        session_factory: Callable[[SigningSettings], RemoteSession] = open_paramiko_session,
    ) -> None:
        self.settings = settings
        self.verifier = verifier
        self._session_factory = session_factory

    def sign(self, paths: Sequence[Path], work_dir: Path) -> Dict[Path, Path]:
        """Return ``{file: signature}`` for every file, signatures living in ``work_dir``."""

        paths = [Path(path) for path in paths]
        names = [path.name for path in paths]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise SigningError(f"files share a name on the signing host staging dir: {duplicates}")

        session = self._session_factory(self.settings)
        try:
            staged = self._upload(session, paths)
            remote_paths = [handle.remote_path for handle in staged]
            artifacts = self._sign_and_fetch(session, staged, work_dir)
            signatures = {artifact.source: artifact.signature for artifact in artifacts}

            try:
                self.verifier.verify(paths, signatures)
            except Exception:
                logger.warning("verification failed; staged files left on signing host: %s", remote_paths)
                raise

            self._remove(session, staged)
        finally:
            session.close()
        return signatures

    def _upload(self, session: RemoteSession, paths: Sequence[Path]) -> List[RemoteFileHandle]:
        logger.info("Copying files to the signing server")
        staged: List[RemoteFileHandle] = []
        for path in paths:
            remote = posixpath.join(self.settings.remote_staging_dir, path.name)
            logger.info("%s -> %s", path, remote)
            try:
                session.put(path, remote)
            except Exception as exc:
                raise SigningError(
                    f"error while copying {path.name} to the signing host: {exc}",
                    remote_paths=[handle.remote_path for handle in staged],
                ) from exc
            staged.append(RemoteFileHandle(local_path=path, remote_path=remote))
        return staged

    def _sign_and_fetch(
        self, session: RemoteSession, staged: Sequence[RemoteFileHandle], work_dir: Path
    ) -> List[SignatureArtifact]:
        remote_paths = [handle.remote_path for handle in staged]
        remote_signatures: List[str] = []
        for handle in staged:
            command = self.settings.sign_command.format(path=shlex.quote(handle.remote_path))
            logger.info("Signing %s", handle.remote_path)
            try:
                result = session.run(command)
            except Exception as exc:
                raise SigningError(f"error while signing {handle.remote_path}: {exc}", remote_paths=remote_paths) from exc
            if result.stdout:
                logger.info(result.stdout.strip())
            if result.stderr:
                logger.info(result.stderr.strip())
            if result.exit_status != 0:
                raise SigningError(
                    f"signing command exited with {result.exit_status} for {handle.remote_path}: {result.stderr.strip()}",
                    remote_paths=remote_paths,
                )
            name = posixpath.basename(handle.remote_path) + SIGNATURE_SUFFIX
            remote_signatures.append(posixpath.join(self.settings.remote_output_dir, name))

        logger.info("Copying signatures from the signing server")
        artifacts: List[SignatureArtifact] = []
        for handle, remote_signature in zip(staged, remote_signatures):
            local = work_dir / posixpath.basename(remote_signature)
            logger.info("%s -> %s", remote_signature, local)
            try:
                session.get(remote_signature, local)
            except Exception as exc:
                raise SigningError(
                    f"error while copying {remote_signature} from the signing host: {exc}",
                    remote_paths=remote_paths,
                ) from exc
            artifacts.append(SignatureArtifact(source=handle.local_path, signature=local))
        return artifacts

    def _remove(self, session: RemoteSession, staged: Sequence[RemoteFileHandle]) -> None:
        logger.info("Removing staged files from the signing server")
        for index, handle in enumerate(staged):
            try:
                session.remove(handle.remote_path)
            except Exception as exc:
                raise SigningError(
                    f"failed to remove {handle.remote_path} from the signing host: {exc}",
                    remote_paths=[item.remote_path for item in staged[index:]],
                ) from exc
