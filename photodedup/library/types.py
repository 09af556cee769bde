from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from photodedup.core.paths import split_relative_path


@dataclass(frozen=True, slots=True)
class RootDirectory:
    id: int
    path: str
    name: str
    access_token: bytes | None = field(default=None, repr=False)
    is_active: bool = True
    last_scanned_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class FileRecord:
    id: int
    root_id: int
    relative_path: str
    content_hash: str
    size_bytes: int
    captured_at: datetime | None = None

    @property
    def file_name(self) -> str:
        return split_relative_path(self.relative_path)[1]

    @property
    def directory_relative_path(self) -> str:
        return split_relative_path(self.relative_path)[0]


@dataclass(frozen=True, slots=True)
class FileRecordInput:
    """A scan result as handed over by the scanning collaborator."""

    root_id: int
    relative_path: str
    content_hash: str
    size_bytes: int
    captured_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class UpsertResult:
    inserted: int
    updated: int
    unchanged: int
    version: int
