"""Archive helpers shared by the manifest reader and the splitter."""

from __future__ import annotations

import hashlib
import posixpath
from pathlib import Path


def compute_sha256(path: Path) -> str:
    """Hex SHA-256 of a file, read in 1 MiB chunks."""

    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def normalize_member_name(name: str) -> str:
    """Canonical archive path without a leading ``./`` or ``/``."""

    normalized = posixpath.normpath(name.lstrip("/"))
    return "" if normalized == "." else normalized
