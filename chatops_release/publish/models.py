"""Data models used while publishing signed artifacts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

RELEASE_DESTINATION = "github-release"
OBJECT_STORE_DESTINATION = "object-store"


@dataclass(slots=True, frozen=True)
class UploadTarget:
    destination: str
    key: str


@dataclass(slots=True)
class UploadResult:
    adapter: str
    status: str
    target: UploadTarget
    url: Optional[str] = None
    details: Dict[str, object] = field(default_factory=dict)
    logs: List[str] = field(default_factory=list)
