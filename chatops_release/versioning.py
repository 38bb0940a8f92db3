from __future__ import annotations

import re

from .errors import InvalidTagError

# https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string
_SEMVER_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


def validate_release_tag(tag: str) -> str:
    """Return ``tag`` if it is ``v`` followed by a semver version."""

    if not tag:
        raise InvalidTagError("Tag should not be empty")
    if not tag.startswith("v"):
        raise InvalidTagError("Tag must start with leading 'v'")
    if not _SEMVER_RE.match(tag[1:]):
        raise InvalidTagError(f"Tag must adhere to semver after leading 'v': {tag[1:]!r} is not a valid version")
    return tag
