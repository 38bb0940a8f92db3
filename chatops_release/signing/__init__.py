"""Remote signing and signature verification."""

from .client import SigningClient
from .transport import CommandResult, ParamikoSession, RemoteSession, open_paramiko_session
from .verify import SIGNATURE_SUFFIX, SignatureVerifier, signature_path

__all__ = [
    "CommandResult",
    "ParamikoSession",
    "RemoteSession",
    "SIGNATURE_SUFFIX",
    "SignatureVerifier",
    "SigningClient",
    "open_paramiko_session",
    "signature_path",
]
