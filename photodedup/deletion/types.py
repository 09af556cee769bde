from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class DeletionFailure:
    record_id: int
    path: str | None
    reason: str


@dataclass(frozen=True, slots=True)
class DeletionReport:
    audit_tag: str | None
    requested: int
    succeeded: tuple[int, ...]
    failures: tuple[DeletionFailure, ...]
    removed_from_library: int
    version: int
    dry_run: bool
    # set when files were trashed but the library could not be updated
    library_error: str | None = None

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failures)
