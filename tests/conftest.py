from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import pytest

from photodedup.core.config import Settings, get_settings
from photodedup.db.engine import LibraryDatabase
from photodedup.library.service import LibraryService
from photodedup.library.snapshot import LibrarySnapshot
from photodedup.library.types import FileRecord, RootDirectory


class RecordingRemover:
    """Stands in for the trash: records every call and fails for the listed paths."""

    dry_run = False

    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.calls: list[tuple[str, int]] = []

    def move_to_trash(self, path: str, root: RootDirectory) -> None:
        self.calls.append((path, root.id))
        if path in self.failing:
            raise PermissionError(f"Permission denied: {path}")


def content_hash(seed: int) -> str:
    return format(seed, "064x")


def make_snapshot(roots: dict[int, str], rows: list[tuple[int, int, str, int, int]], *, inactive: tuple[int, ...] = ()) -> LibrarySnapshot:
    """Build a snapshot from ``(id, root_id, relative_path, hash_seed, size)`` rows."""
    root_items = [
        RootDirectory(id=root_id, path=path, name=f"root-{root_id}", is_active=root_id not in inactive)
        for root_id, path in roots.items()
    ]
    records = [
        FileRecord(
            id=record_id,
            root_id=root_id,
            relative_path=relative_path,
            content_hash=content_hash(seed),
            size_bytes=size,
        )
        for record_id, root_id, relative_path, seed, size in rows
    ]
    return LibrarySnapshot.build(records, root_items)


def configure_env(tmp_path: Path, **overrides: str) -> Settings:
    state_root = tmp_path / "state"
    state_root.mkdir(parents=True, exist_ok=True)

    os.environ["PHOTODEDUP_STATE_ROOT"] = state_root.as_posix()
    os.environ["PHOTODEDUP_DRY_RUN"] = "true"
    os.environ["PHOTODEDUP_ALLOW_REAL_DELETE"] = "false"
    for key, value in overrides.items():
        os.environ[f"PHOTODEDUP_{key.upper()}"] = value

    get_settings.cache_clear()
    return get_settings()


_open_databases: list[LibraryDatabase] = []


def open_database(settings: Settings) -> LibraryDatabase:
    database = LibraryDatabase.open(settings)
    _open_databases.append(database)
    return database


def open_library(tmp_path: Path, **overrides: str) -> LibraryService:
    settings = configure_env(tmp_path, **overrides)
    return LibraryService(settings, open_database(settings).session_factory)


@pytest.fixture(autouse=True)
def _restore_env() -> Iterator[None]:
    saved = {key: value for key, value in os.environ.items() if key.startswith("PHOTODEDUP_")}
    yield
    for key in [key for key in os.environ if key.startswith("PHOTODEDUP_")]:
        del os.environ[key]
    os.environ.update(saved)
    get_settings.cache_clear()
    while _open_databases:
        _open_databases.pop().close()


@pytest.fixture
def library(tmp_path: Path) -> LibraryService:
    return open_library(tmp_path)
