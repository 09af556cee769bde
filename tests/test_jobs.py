from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from photodedup.core.config import Settings
from photodedup.jobs.cancellation import AnalysisCancelled, CancellationToken
from photodedup.jobs.service import AnalysisJobService, InvalidJobStateError, JobHandle, JobNotFoundError
from photodedup.jobs.types import JobKind, JobStatus


def make_job_service(tmp_path: Path, executor: ThreadPoolExecutor | None = None) -> AnalysisJobService:
    return AnalysisJobService(Settings(state_root=tmp_path / "state"), executor=executor)


def _spin_until_stopped(token: CancellationToken) -> None:
    while True:
        token.check()
        time.sleep(0.005)


def test_completed_job_returns_result(tmp_path: Path) -> None:
    service = make_job_service(tmp_path)
    try:
        handle = service.submit(JobKind.HASH_INDEX, lambda _token: 42)
        outcome = service.wait(handle, timeout=5)

        assert outcome.ok
        assert outcome.result == 42
        assert service.get_job(handle.id).status == JobStatus.COMPLETED
        assert service.get_job(handle.id).finished_at is not None
    finally:
        service.shutdown()


def test_newer_request_supersedes_previous_in_same_context(tmp_path: Path) -> None:
    service = make_job_service(tmp_path)
    started = threading.Event()

    def slow(token: CancellationToken) -> str:
        started.set()
        _spin_until_stopped(token)
        return "never"

    try:
        first = service.submit(JobKind.PAIRWISE, slow, context="view")
        assert started.wait(5)
        second = service.submit(JobKind.PAIRWISE, lambda _token: "fresh", context="view")

        first_outcome = service.wait(first, timeout=5)
        second_outcome = service.wait(second, timeout=5)

        assert first_outcome.cancelled
        assert first_outcome.result is None
        assert service.get_job(first.id).status == JobStatus.CANCELLED
        assert second_outcome.ok
        assert second_outcome.result == "fresh"

        latest = service.latest_result("view")
        assert latest is not None
        assert latest.job_id == second.id
        assert not service.is_authoritative(first)
    finally:
        service.shutdown()


def test_other_contexts_are_not_superseded(tmp_path: Path) -> None:
    service = make_job_service(tmp_path)
    try:
        left = service.submit(JobKind.PAIRWISE, lambda _token: "left", context="left")
        right = service.submit(JobKind.PAIRWISE, lambda _token: "right", context="right")

        assert service.wait(left, timeout=5).result == "left"
        assert service.wait(right, timeout=5).result == "right"
    finally:
        service.shutdown()


def test_job_exceeding_budget_times_out(tmp_path: Path) -> None:
    service = make_job_service(tmp_path)
    try:
        handle = service.submit(JobKind.PAIRWISE, _spin_until_stopped, context="view", timeout_seconds=0.05)
        outcome = service.wait(handle, timeout=5)

        assert outcome.timed_out
        assert outcome.result is None
        assert "budget" in (outcome.error_message or "")
        assert service.get_job(handle.id).status == JobStatus.TIMED_OUT
    finally:
        service.shutdown()


def test_pending_job_can_be_cancelled_before_start(tmp_path: Path) -> None:
    executor = ThreadPoolExecutor(max_workers=1)
    service = make_job_service(tmp_path, executor=executor)
    release = threading.Event()
    ran: list[str] = []

    try:
        blocker = service.submit(JobKind.ROLLUP, lambda _token: release.wait(5))
        queued = service.submit(JobKind.DIGEST, lambda _token: ran.append("queued"))
        queued.cancel()
        release.set()

        outcome = service.wait(queued, timeout=5)
        assert outcome.cancelled
        assert service.get_job(queued.id).status == JobStatus.CANCELLED
        assert service.wait(blocker, timeout=5).ok
        assert ran == []
    finally:
        release.set()
        service.shutdown()
        executor.shutdown(wait=True)


def test_failing_job_reports_error(tmp_path: Path) -> None:
    service = make_job_service(tmp_path)

    def broken(_token: CancellationToken) -> None:
        raise ValueError("bad input")

    try:
        handle = service.submit(JobKind.ROLLUP, broken)
        outcome = service.wait(handle, timeout=5)

        assert outcome.status == JobStatus.FAILED
        assert outcome.error_message == "bad input"
    finally:
        service.shutdown()


def test_illegal_transition_is_rejected() -> None:
    handle = JobHandle(kind=JobKind.PAIRWISE, context=None, token=CancellationToken())
    with pytest.raises(InvalidJobStateError):
        handle.transition(JobStatus.COMPLETED)

    handle.transition(JobStatus.RUNNING)
    handle.transition(JobStatus.COMPLETED)
    with pytest.raises(InvalidJobStateError):
        handle.transition(JobStatus.RUNNING)


def test_unknown_job_id_raises(tmp_path: Path) -> None:
    service = make_job_service(tmp_path)
    try:
        with pytest.raises(JobNotFoundError):
            service.get_job("missing")
    finally:
        service.shutdown()


def test_token_check_prefers_cancellation_over_timeout() -> None:
    token = CancellationToken(timeout_seconds=0.001)
    time.sleep(0.01)
    token.cancel()
    with pytest.raises(AnalysisCancelled):
        token.check()
