from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from photodedup.core.config import Settings
from photodedup.core.paths import validate_relative_path, validate_root_path
from photodedup.db.models import FileRecordRow, RootDirectoryRow
from photodedup.library.snapshot import LibrarySnapshot
from photodedup.library.types import FileRecord, FileRecordInput, RootDirectory, UpsertResult

logger = logging.getLogger(__name__)


class RootNotFoundError(RuntimeError):
    pass


class RootConflictError(RuntimeError):
    pass


class LibraryService:
    """Sole writer of the authoritative file record set.

    Scans and deletions mutate the set through this service only. Each
    mutation bumps ``version`` and drops the cached snapshot, so readers pick
    up a freshly indexed snapshot on their next call to :meth:`snapshot`.
    """

    def __init__(self, settings: Settings, session_factory: sessionmaker[Session]):
        self._settings = settings
        self._session_factory = session_factory
        self._lock = threading.Lock()
        self._version = 0
        self._snapshot: LibrarySnapshot | None = None

    @property
    def version(self) -> int:
        return self._version

    def _now(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    def _bump_version(self) -> int:
        with self._lock:
            self._version += 1
            self._snapshot = None
            return self._version

    def _normalize_hash(self, raw_hash: str) -> str:
        token = raw_hash.strip().lower()
        expected = int(self._settings.hash_hex_length)
        if len(token) != expected:
            raise ValueError(f"content_hash must be {expected} hex characters")
        try:
            bytes.fromhex(token)
        except ValueError as exc:
            raise ValueError("content_hash is not valid hex") from exc
        return token

    def _to_root(self, row: RootDirectoryRow) -> RootDirectory:
        return RootDirectory(
            id=row.id,
            path=row.path,
            name=row.name,
            access_token=row.access_token,
            is_active=row.is_active,
            last_scanned_at=row.last_scanned_at,
        )

    def _to_record(self, row: FileRecordRow) -> FileRecord:
        return FileRecord(
            id=row.id,
            root_id=row.root_id,
            relative_path=row.relative_path,
            content_hash=row.content_hash,
            size_bytes=row.size_bytes,
            captured_at=row.captured_at,
        )

    def add_root(self, path: str, name: str | None = None, *, access_token: bytes | None = None) -> RootDirectory:
        normalized_path = validate_root_path(path)
        display_name = (name or "").strip() or normalized_path.rsplit("/", 1)[-1] or normalized_path
        with self._session_factory() as session:
            row = RootDirectoryRow(name=display_name, path=normalized_path, access_token=access_token)
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise RootConflictError(f"Root directory already tracked: {normalized_path}") from exc
            session.refresh(row)
            root = self._to_root(row)
        self._bump_version()
        logger.info("Added root directory %s (%s)", root.path, root.id)
        return root

    def get_root(self, root_id: int) -> RootDirectory:
        with self._session_factory() as session:
            row = session.get(RootDirectoryRow, root_id)
            if row is None:
                raise RootNotFoundError(f"Root directory not found: {root_id}")
            return self._to_root(row)

    def list_roots(self) -> list[RootDirectory]:
        with self._session_factory() as session:
            rows = session.scalars(select(RootDirectoryRow).order_by(RootDirectoryRow.id.asc())).all()
            return [self._to_root(row) for row in rows]

    def set_root_active(self, root_id: int, is_active: bool) -> RootDirectory:
        with self._session_factory() as session:
            row = session.get(RootDirectoryRow, root_id)
            if row is None:
                raise RootNotFoundError(f"Root directory not found: {root_id}")
            row.is_active = is_active
            session.commit()
            session.refresh(row)
            root = self._to_root(row)
        self._bump_version()
        return root

    def mark_scanned(self, root_id: int, scanned_at: datetime | None = None) -> RootDirectory:
        with self._session_factory() as session:
            row = session.get(RootDirectoryRow, root_id)
            if row is None:
                raise RootNotFoundError(f"Root directory not found: {root_id}")
            row.last_scanned_at = scanned_at or self._now()
            session.commit()
            session.refresh(row)
            return self._to_root(row)

    def remove_root(self, root_id: int) -> int:
        with self._session_factory() as session:
            row = session.get(RootDirectoryRow, root_id)
            if row is None:
                raise RootNotFoundError(f"Root directory not found: {root_id}")
            result = session.execute(delete(FileRecordRow).where(FileRecordRow.root_id == root_id))
            session.delete(row)
            session.commit()
            removed = int(result.rowcount or 0)
        self._bump_version()
        logger.info("Removed root directory %s and %d file record(s)", root_id, removed)
        return removed

    def upsert_files(self, items: Iterable[FileRecordInput]) -> UpsertResult:
        inserted = 0
        updated = 0
        unchanged = 0
        with self._session_factory() as session:
            known_roots = set(session.scalars(select(RootDirectoryRow.id)).all())
            for item in items:
                if item.root_id not in known_roots:
                    raise RootNotFoundError(f"Root directory not found: {item.root_id}")
                relative_path = validate_relative_path(item.relative_path).as_posix()
                content_hash = self._normalize_hash(item.content_hash)
                if item.size_bytes < 0:
                    raise ValueError("size_bytes must be >= 0")

                existing = session.scalar(
                    select(FileRecordRow).where(
                        FileRecordRow.root_id == item.root_id,
                        FileRecordRow.relative_path == relative_path,
                    )
                )
                if existing is not None and existing.content_hash != content_hash:
                    # a record's hash never changes; new content is a new record
                    session.delete(existing)
                    session.flush()
                    existing = None

                if existing is None:
                    session.add(
                        FileRecordRow(
                            root_id=item.root_id,
                            relative_path=relative_path,
                            content_hash=content_hash,
                            size_bytes=item.size_bytes,
                            captured_at=item.captured_at,
                        )
                    )
                    inserted += 1
                elif existing.size_bytes != item.size_bytes or existing.captured_at != item.captured_at:
                    existing.size_bytes = item.size_bytes
                    existing.captured_at = item.captured_at
                    updated += 1
                else:
                    unchanged += 1
            session.commit()

        version = self._bump_version() if inserted or updated else self._version
        logger.info("Applied scan results: inserted=%d updated=%d unchanged=%d", inserted, updated, unchanged)
        return UpsertResult(inserted=inserted, updated=updated, unchanged=unchanged, version=version)

    def remove_files(self, record_ids: Iterable[int]) -> int:
        ids = sorted(set(record_ids))
        if not ids:
            return 0
        with self._session_factory() as session:
            result = session.execute(delete(FileRecordRow).where(FileRecordRow.id.in_(ids)))
            session.commit()
            removed = int(result.rowcount or 0)
        if removed:
            self._bump_version()
        return removed

    def list_files(self) -> list[FileRecord]:
        with self._session_factory() as session:
            rows = session.scalars(select(FileRecordRow).order_by(FileRecordRow.id.asc())).all()
            return [self._to_record(row) for row in rows]

    def snapshot(self) -> LibrarySnapshot:
        with self._lock:
            cached = self._snapshot
            version = self._version
        if cached is not None and cached.version == version:
            return cached

        # built outside the lock; a concurrent mutation just makes this one stale
        with self._session_factory() as session:
            roots = [self._to_root(row) for row in session.scalars(select(RootDirectoryRow)).all()]
            records = [self._to_record(row) for row in session.scalars(select(FileRecordRow)).all()]
        snapshot = LibrarySnapshot.build(records, roots, version=version)
        with self._lock:
            if self._version == version:
                self._snapshot = snapshot
        return snapshot
