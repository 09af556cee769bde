from __future__ import annotations

import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

from photodedup.core.config import Settings
from photodedup.jobs.cancellation import AnalysisCancelled, AnalysisTimeout, CancellationToken
from photodedup.jobs.types import JobKind, JobOutcome, JobSnapshot, JobStatus

logger = logging.getLogger(__name__)


class JobNotFoundError(RuntimeError):
    pass


class InvalidJobStateError(RuntimeError):
    pass


ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.CANCELLED},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED, JobStatus.TIMED_OUT},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
    JobStatus.CANCELLED: set(),
    JobStatus.TIMED_OUT: set(),
}

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED, JobStatus.TIMED_OUT})


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


class JobHandle:
    def __init__(self, kind: JobKind, context: str | None, token: CancellationToken):
        self.id = str(uuid4())
        self.kind = kind
        self.context = context
        self.token = token
        self.future: Future[Any] = Future()
        self._inner: Future[Any] | None = None
        self._lock = threading.Lock()
        self._status = JobStatus.PENDING
        self._error_message: str | None = None
        self._created_at = _now()
        self._started_at: datetime | None = None
        self._finished_at: datetime | None = None

    @property
    def status(self) -> JobStatus:
        return self._status

    def transition(self, to_status: JobStatus, error_message: str | None = None) -> None:
        with self._lock:
            if to_status not in ALLOWED_TRANSITIONS[self._status]:
                raise InvalidJobStateError(f"Illegal transition: {self._status.value} -> {to_status.value}")
            now = _now()
            self._status = to_status
            if to_status == JobStatus.RUNNING:
                self._started_at = now
            if to_status in TERMINAL_STATUSES:
                self._finished_at = now
                self._error_message = error_message

    def attach(self, inner: Future[Any]) -> None:
        self._inner = inner

    def cancel(self) -> None:
        self.token.cancel()
        inner = self._inner
        if inner is not None and inner.cancel():
            # never started; the worker callable will not run
            self.transition(JobStatus.CANCELLED, "Cancelled before start")
            if not self.future.done():
                self.future.set_exception(AnalysisCancelled("Cancelled before start"))

    def done(self) -> bool:
        return self.future.done()

    def snapshot(self) -> JobSnapshot:
        with self._lock:
            return JobSnapshot(
                id=self.id,
                kind=self.kind,
                context=self.context,
                status=self._status,
                error_message=self._error_message,
                created_at=self._created_at,
                started_at=self._started_at,
                finished_at=self._finished_at,
            )


class AnalysisJobService:
    """Runs analyses off the caller's thread on a shared worker pool.

    Jobs submitted with a ``context`` are authoritative per context: a newer
    submission cancels the previous job for that context, and the superseded
    job's result is discarded.
    """

    def __init__(self, settings: Settings, executor: ThreadPoolExecutor | None = None):
        self._settings = settings
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=int(settings.analysis_workers),
            thread_name_prefix="photodedup-analysis",
        )
        self._lock = threading.Lock()
        self._jobs: dict[str, JobHandle] = {}
        self._authoritative: dict[str, JobHandle] = {}

    def submit(
        self,
        kind: JobKind,
        fn: Callable[[CancellationToken], Any],
        *,
        context: str | None = None,
        timeout_seconds: float | None = None,
    ) -> JobHandle:
        handle = JobHandle(kind=kind, context=context, token=CancellationToken(timeout_seconds))
        previous: JobHandle | None = None
        with self._lock:
            self._jobs[handle.id] = handle
            if context is not None:
                previous = self._authoritative.get(context)
                self._authoritative[context] = handle
        if previous is not None and not previous.done():
            logger.debug("Superseding %s job %s in context %s", previous.kind.value, previous.id, context)
            previous.cancel()

        inner = self._executor.submit(self._run, handle, fn)
        handle.attach(inner)
        inner.add_done_callback(lambda finished: self._relay(handle, finished))
        return handle

    def _run(self, handle: JobHandle, fn: Callable[[CancellationToken], Any]) -> Any:
        if handle.token.cancelled:
            handle.transition(JobStatus.CANCELLED, "Cancelled before start")
            raise AnalysisCancelled("Cancelled before start")
        handle.transition(JobStatus.RUNNING)
        handle.token.start()
        try:
            result = fn(handle.token)
            if handle.token.cancelled:
                raise AnalysisCancelled("Result discarded after cancellation")
        except AnalysisCancelled as exc:
            handle.transition(JobStatus.CANCELLED, str(exc))
            logger.debug("%s job %s cancelled", handle.kind.value, handle.id)
            raise
        except AnalysisTimeout as exc:
            handle.transition(JobStatus.TIMED_OUT, str(exc))
            logger.warning("%s job %s timed out: %s", handle.kind.value, handle.id, exc)
            raise
        except Exception as exc:
            handle.transition(JobStatus.FAILED, str(exc))
            logger.exception("%s job %s failed", handle.kind.value, handle.id)
            raise
        handle.transition(JobStatus.COMPLETED)
        return result

    def _relay(self, handle: JobHandle, finished: Future[Any]) -> None:
        # a cancelled inner future was already resolved by JobHandle.cancel
        if finished.cancelled() or handle.future.done():
            return
        exc = finished.exception()
        if exc is not None:
            handle.future.set_exception(exc)
        else:
            handle.future.set_result(finished.result())

    def get_job(self, job_id: str) -> JobSnapshot:
        with self._lock:
            handle = self._jobs.get(job_id)
        if handle is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return handle.snapshot()

    def list_jobs(self) -> list[JobSnapshot]:
        with self._lock:
            handles = list(self._jobs.values())
        return sorted((handle.snapshot() for handle in handles), key=lambda item: (item.created_at, item.id))

    def authoritative(self, context: str) -> JobHandle | None:
        with self._lock:
            return self._authoritative.get(context)

    def is_authoritative(self, handle: JobHandle) -> bool:
        if handle.context is None:
            return True
        return self.authoritative(handle.context) is handle

    def wait(self, handle: JobHandle, timeout: float | None = None) -> JobOutcome:
        """Block until ``handle`` finishes and map its result onto a :class:`JobOutcome`."""
        try:
            result = handle.future.result(timeout=timeout)
        except (AnalysisCancelled, CancelledError) as exc:
            return JobOutcome(job_id=handle.id, status=JobStatus.CANCELLED, error_message=str(exc) or None)
        except AnalysisTimeout as exc:
            return JobOutcome(job_id=handle.id, status=JobStatus.TIMED_OUT, error_message=str(exc))
        except FutureTimeoutError:
            raise
        except Exception as exc:  # noqa: BLE001
            return JobOutcome(job_id=handle.id, status=JobStatus.FAILED, error_message=str(exc))
        if not self.is_authoritative(handle):
            return JobOutcome(job_id=handle.id, status=JobStatus.CANCELLED, error_message="Superseded")
        return JobOutcome(job_id=handle.id, status=JobStatus.COMPLETED, result=result)

    def latest_result(self, context: str) -> JobOutcome | None:
        """Outcome of the authoritative job for ``context``, or None while it is still running."""
        handle = self.authoritative(context)
        if handle is None or not handle.done():
            return None
        return self.wait(handle)

    def cancel_all(self) -> None:
        with self._lock:
            handles = list(self._jobs.values())
        for handle in handles:
            if not handle.done():
                handle.cancel()

    def shutdown(self, wait: bool = True) -> None:
        self.cancel_all()
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
