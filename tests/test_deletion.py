from __future__ import annotations

import threading
from pathlib import Path

import pytest

from conftest import RecordingRemover, configure_env, content_hash, open_database, open_library
from photodedup.core.config import get_settings
from photodedup.deletion.service import DeletionCoordinator, DeletionPolicyError
from photodedup.deletion.trash import DryRunRemover, Send2TrashRemover
from photodedup.deletion.types import DeletionReport
from photodedup.duplicates.service import DuplicateService
from photodedup.library.service import LibraryService
from photodedup.library.types import FileRecordInput


def _seed(library: LibraryService) -> dict[str, int]:
    root = library.add_root("/photos")
    library.upsert_files(
        [
            FileRecordInput(root_id=root.id, relative_path="a/x.jpg", content_hash=content_hash(1), size_bytes=10),
            FileRecordInput(root_id=root.id, relative_path="b/x.jpg", content_hash=content_hash(1), size_bytes=10),
            FileRecordInput(root_id=root.id, relative_path="b/y.jpg", content_hash=content_hash(2), size_bytes=20),
        ]
    )
    return {item.relative_path: item.id for item in library.list_files()}


def test_default_remover_follows_dry_run_setting(tmp_path: Path) -> None:
    library = open_library(tmp_path)
    coordinator = DeletionCoordinator(get_settings(), library)
    try:
        assert coordinator.dry_run
        assert isinstance(coordinator._remover, DryRunRemover)
    finally:
        coordinator.shutdown()


def test_real_remover_requires_explicit_opt_in(tmp_path: Path) -> None:
    library = open_library(tmp_path)
    with pytest.raises(DeletionPolicyError):
        DeletionCoordinator(get_settings(), library, remover=Send2TrashRemover())

    library = open_library(tmp_path, dry_run="false", allow_real_delete="false")
    with pytest.raises(DeletionPolicyError):
        DeletionCoordinator(get_settings(), library)

    library = open_library(tmp_path, dry_run="false", allow_real_delete="true")
    coordinator = DeletionCoordinator(get_settings(), library)
    try:
        assert isinstance(coordinator._remover, Send2TrashRemover)
        assert not coordinator.dry_run
    finally:
        coordinator.shutdown()


def test_partial_failure_does_not_abort_batch(tmp_path: Path) -> None:
    library = open_library(tmp_path, dry_run="false", allow_real_delete="true")
    ids = _seed(library)
    remover = RecordingRemover(failing={"/photos/b/x.jpg"})
    coordinator = DeletionCoordinator(get_settings(), library, remover=remover)
    try:
        report = coordinator.delete([ids["b/x.jpg"], ids["b/y.jpg"], 999], audit_tag="cleanup")
    finally:
        coordinator.shutdown()

    assert report.audit_tag == "cleanup"
    assert report.requested == 3
    assert report.succeeded == (ids["b/y.jpg"],)
    reasons = {failure.record_id: failure.reason for failure in report.failures}
    assert reasons[999] == "not_found"
    assert "Permission denied" in reasons[ids["b/x.jpg"]]
    assert report.removed_from_library == 1
    assert {item.relative_path for item in library.list_files()} == {"a/x.jpg", "b/x.jpg"}


def test_unresolved_root_fails_without_touching_disk(tmp_path: Path) -> None:
    library = open_library(tmp_path, dry_run="false", allow_real_delete="true")
    ids = _seed(library)
    library.set_root_active(library.list_roots()[0].id, False)
    remover = RecordingRemover()
    coordinator = DeletionCoordinator(get_settings(), library, remover=remover)
    try:
        report = coordinator.delete([ids["a/x.jpg"]])
    finally:
        coordinator.shutdown()

    assert report.failures[0].reason == "unresolved_root"
    assert remover.calls == []
    assert len(library.list_files()) == 3


def test_deleting_last_member_dissolves_group_and_rebuilds(tmp_path: Path) -> None:
    library = open_library(tmp_path, dry_run="false", allow_real_delete="true")
    ids = _seed(library)
    duplicates = DuplicateService(get_settings(), library)
    assert len(duplicates.hash_index().groups) == 1

    coordinator = DeletionCoordinator(get_settings(), library, remover=RecordingRemover())
    try:
        report = coordinator.delete([ids["a/x.jpg"], ids["b/x.jpg"]])
    finally:
        coordinator.shutdown()

    assert not report.dry_run
    assert report.succeeded_count == 2
    assert report.removed_from_library == 2
    assert len(duplicates.hash_index().groups) == 0
    assert duplicates.rollup().items == []


def test_dry_run_leaves_disk_and_library_untouched(tmp_path: Path) -> None:
    library = open_library(tmp_path)
    photos = tmp_path / "photos"
    photos.mkdir()
    (photos / "x.jpg").write_bytes(b"same")
    (photos / "x-copy.jpg").write_bytes(b"same")
    root = library.add_root(photos.as_posix())
    library.upsert_files(
        [
            FileRecordInput(root_id=root.id, relative_path="x.jpg", content_hash=content_hash(1), size_bytes=4),
            FileRecordInput(root_id=root.id, relative_path="x-copy.jpg", content_hash=content_hash(1), size_bytes=4),
        ]
    )
    version = library.version
    target = library.list_files()[0]

    coordinator = DeletionCoordinator(get_settings(), library)
    try:
        report = coordinator.delete([target.id])
    finally:
        coordinator.shutdown()

    assert report.dry_run
    assert report.succeeded == (target.id,)
    assert report.removed_from_library == 0
    assert report.version == version
    assert library.version == version
    assert len(library.list_files()) == 2
    assert (photos / target.relative_path).exists()


class LockedLibrary(LibraryService):
    def remove_files(self, record_ids) -> int:  # type: ignore[no-untyped-def]
        raise RuntimeError("database is locked")


def test_library_failure_after_trashing_still_reports(tmp_path: Path) -> None:
    settings = configure_env(tmp_path, dry_run="false", allow_real_delete="true")
    library = LockedLibrary(settings, open_database(settings).session_factory)
    ids = _seed(library)
    remover = RecordingRemover()
    coordinator = DeletionCoordinator(settings, library, remover=remover)
    reports: list[DeletionReport] = []
    done = threading.Event()

    def on_complete(report: DeletionReport) -> None:
        reports.append(report)
        done.set()

    try:
        direct = coordinator.delete([ids["a/x.jpg"]])
        queued = coordinator.submit([ids["b/x.jpg"]], on_complete=on_complete).result(timeout=5)
        assert done.wait(5)
    finally:
        coordinator.shutdown()

    assert direct.succeeded == (ids["a/x.jpg"],)
    assert direct.removed_from_library == 0
    assert direct.library_error == "database is locked"
    assert reports == [queued]
    assert queued.library_error == "database is locked"
    assert [path for path, _root in remover.calls] == ["/photos/a/x.jpg", "/photos/b/x.jpg"]


def test_submit_reports_once_with_aggregate(tmp_path: Path) -> None:
    library = open_library(tmp_path)
    ids = _seed(library)
    coordinator = DeletionCoordinator(get_settings(), library)
    reports: list[DeletionReport] = []
    done = threading.Event()

    def on_complete(report: DeletionReport) -> None:
        reports.append(report)
        done.set()

    try:
        future = coordinator.submit([ids["a/x.jpg"], ids["b/y.jpg"]], on_complete=on_complete)
        report = future.result(timeout=5)
        assert done.wait(5)
    finally:
        coordinator.shutdown()

    assert reports == [report]
    assert report.succeeded_count == 2
    assert report.version == library.version
