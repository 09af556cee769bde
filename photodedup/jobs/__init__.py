from photodedup.jobs.cancellation import AnalysisCancelled, AnalysisTimeout, CancellationToken
from photodedup.jobs.service import AnalysisJobService, InvalidJobStateError, JobHandle, JobNotFoundError
from photodedup.jobs.types import JobKind, JobOutcome, JobSnapshot, JobStatus

__all__ = [
    "AnalysisCancelled",
    "AnalysisTimeout",
    "CancellationToken",
    "AnalysisJobService",
    "InvalidJobStateError",
    "JobHandle",
    "JobNotFoundError",
    "JobKind",
    "JobOutcome",
    "JobSnapshot",
    "JobStatus",
]
