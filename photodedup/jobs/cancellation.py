from __future__ import annotations

import threading
import time


class AnalysisCancelled(RuntimeError):
    pass


class AnalysisTimeout(RuntimeError):
    pass


class CancellationToken:
    """Cooperative stop signal with an optional wall-clock deadline.

    Long-running loops call :meth:`check` at their iteration boundaries; the
    token never interrupts work on its own.
    """

    def __init__(self, timeout_seconds: float | None = None):
        self._event = threading.Event()
        self._timeout_seconds = timeout_seconds
        self.start()

    @property
    def timeout_seconds(self) -> float | None:
        return self._timeout_seconds

    def start(self) -> None:
        """(Re)start the deadline clock, e.g. when a queued job begins running."""
        self._started_at = time.monotonic()
        self._deadline = None if self._timeout_seconds is None else self._started_at + self._timeout_seconds

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self._started_at

    def cancel(self) -> None:
        self._event.set()

    def check(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("Analysis was superseded by a newer request")
        if self.expired:
            raise AnalysisTimeout(f"Analysis exceeded its {self._timeout_seconds:g}s budget")
