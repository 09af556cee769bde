from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Iterable

from photodedup.core.config import Settings
from photodedup.core.paths import Unresolved
from photodedup.deletion.trash import DryRunRemover, FileRemover, Send2TrashRemover
from photodedup.deletion.types import DeletionFailure, DeletionReport
from photodedup.library.service import LibraryService

logger = logging.getLogger(__name__)


class DeletionPolicyError(RuntimeError):
    pass


class DeletionCoordinator:
    """Moves selected duplicate files to the trash and drops them from the library.

    Batches run one at a time on a dedicated worker. A failure on one file is
    recorded in the report and the rest of the batch continues.
    """

    def __init__(
        self,
        settings: Settings,
        library: LibraryService,
        remover: FileRemover | None = None,
    ):
        self._settings = settings
        self._library = library
        self._remover = remover or (DryRunRemover() if settings.dry_run else Send2TrashRemover())
        self._enforce_policy(self._remover)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="photodedup-delete")
        self._lock = threading.Lock()

    def _enforce_policy(self, remover: FileRemover) -> None:
        if getattr(remover, "dry_run", False):
            return
        if self._settings.dry_run:
            raise DeletionPolicyError("Global dry-run mode forbids real deletes")
        if not self._settings.allow_real_delete:
            raise DeletionPolicyError("Real delete is disabled by configuration")

    @property
    def dry_run(self) -> bool:
        return bool(getattr(self._remover, "dry_run", False))

    def delete(self, record_ids: Iterable[int], *, audit_tag: str | None = None) -> DeletionReport:
        # serialize direct calls with queued batches
        with self._lock:
            return self._delete(list(record_ids), audit_tag)

    def _delete(self, record_ids: list[int], audit_tag: str | None) -> DeletionReport:
        snapshot = self._library.snapshot()
        succeeded: list[int] = []
        failures: list[DeletionFailure] = []
        seen: set[int] = set()

        for record_id in record_ids:
            if record_id in seen:
                continue
            seen.add(record_id)
            record = snapshot.by_id.get(record_id)
            if record is None:
                failures.append(DeletionFailure(record_id=record_id, path=None, reason="not_found"))
                continue
            resolution = snapshot.full_path(record)
            if isinstance(resolution, Unresolved):
                failures.append(
                    DeletionFailure(record_id=record_id, path=record.relative_path, reason="unresolved_root")
                )
                continue
            try:
                self._remover.move_to_trash(resolution.path, snapshot.roots[record.root_id])
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to trash %s: %s", resolution.path, exc)
                failures.append(DeletionFailure(record_id=record_id, path=resolution.path, reason=str(exc)))
                continue
            succeeded.append(record_id)

        removed = 0
        library_error: str | None = None
        # a dry run changes nothing, on disk or in the library
        if succeeded and not self.dry_run:
            try:
                removed = self._library.remove_files(succeeded)
            except Exception as exc:  # noqa: BLE001
                library_error = str(exc)
                logger.error("Trashed %d file(s) but could not update the library: %s", len(succeeded), exc)
        report = DeletionReport(
            audit_tag=audit_tag,
            requested=len(seen),
            succeeded=tuple(succeeded),
            failures=tuple(failures),
            removed_from_library=removed,
            version=self._library.version,
            dry_run=self.dry_run,
            library_error=library_error,
        )
        logger.info(
            "Deletion batch%s: requested=%d succeeded=%d failed=%d dry_run=%s",
            f" [{audit_tag}]" if audit_tag else "",
            report.requested,
            report.succeeded_count,
            report.failed_count,
            report.dry_run,
        )
        return report

    def submit(
        self,
        record_ids: Iterable[int],
        *,
        audit_tag: str | None = None,
        on_complete: Callable[[DeletionReport], None] | None = None,
    ) -> Future[DeletionReport]:
        ids = list(record_ids)
        future = self._executor.submit(self.delete, ids, audit_tag=audit_tag)
        if on_complete is not None:
            future.add_done_callback(lambda finished: self._notify(finished, on_complete))
        return future

    def _notify(self, finished: Future[DeletionReport], on_complete: Callable[[DeletionReport], None]) -> None:
        if finished.cancelled():
            logger.warning("Deletion batch was cancelled before it ran")
            return
        exc = finished.exception()
        if exc is not None:
            logger.error("Deletion batch failed: %s", exc)
            return
        on_complete(finished.result())

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
