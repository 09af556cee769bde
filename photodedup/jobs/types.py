from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class JobKind(str, Enum):
    HASH_INDEX = "hash_index"
    ROLLUP = "rollup"
    DIGEST = "digest"
    PAIRWISE = "pairwise"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


@dataclass(slots=True)
class JobSnapshot:
    id: str
    kind: JobKind
    context: str | None
    status: JobStatus
    error_message: str | None
    created_at: datetime
    started_at: datetime | None
    finished_at: datetime | None


@dataclass(frozen=True, slots=True)
class JobOutcome:
    """Terminal view of a job. ``result`` is only set when ``status`` is COMPLETED."""

    job_id: str
    status: JobStatus
    result: Any = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == JobStatus.COMPLETED

    @property
    def timed_out(self) -> bool:
        return self.status == JobStatus.TIMED_OUT

    @property
    def cancelled(self) -> bool:
        return self.status == JobStatus.CANCELLED
