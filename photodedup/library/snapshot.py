from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from photodedup.core.paths import Resolved, RootResolution, RootResolver, Unresolved
from photodedup.library.types import FileRecord, RootDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LibrarySnapshot:
    """Immutable view of the file record set at one library version.

    The lookup tables are built once when the snapshot is taken, so every
    analysis reading the same snapshot shares them instead of rescanning the
    records.
    """

    version: int
    records: tuple[FileRecord, ...]
    roots: Mapping[int, RootDirectory]
    resolver: RootResolver
    by_id: Mapping[int, FileRecord]
    by_hash: Mapping[str, tuple[FileRecord, ...]]
    by_directory: Mapping[str, tuple[FileRecord, ...]]
    directory_of: Mapping[int, str]
    directory_root: Mapping[str, int]
    unresolved: Mapping[int, Unresolved]

    @classmethod
    def build(
        cls,
        records: Iterable[FileRecord],
        roots: Iterable[RootDirectory],
        *,
        version: int = 0,
    ) -> "LibrarySnapshot":
        root_map = {root.id: root for root in roots}
        resolver = RootResolver(
            {root.id: root.path for root in root_map.values()},
            inactive=[root.id for root in root_map.values() if not root.is_active],
        )
        ordered = tuple(sorted(records, key=lambda item: item.id))

        by_id: dict[int, FileRecord] = {}
        by_hash: dict[str, list[FileRecord]] = defaultdict(list)
        by_directory: dict[str, list[FileRecord]] = defaultdict(list)
        directory_of: dict[int, str] = {}
        directory_root: dict[str, int] = {}
        unresolved: dict[int, Unresolved] = {}

        for record in ordered:
            if record.id in by_id:
                raise ValueError(f"Duplicate file record id: {record.id}")
            by_id[record.id] = record
            by_hash[record.content_hash].append(record)

            resolution = resolver.directory_of(record.root_id, record.relative_path)
            if isinstance(resolution, Unresolved):
                unresolved[record.id] = resolution
                continue
            by_directory[resolution.path].append(record)
            directory_of[record.id] = resolution.path
            directory_root.setdefault(resolution.path, record.root_id)

        if unresolved:
            logger.warning(
                "Excluded %d file record(s) with unresolvable root directories from path-keyed indices",
                len(unresolved),
            )

        return cls(
            version=version,
            records=ordered,
            roots=MappingProxyType(root_map),
            resolver=resolver,
            by_id=MappingProxyType(by_id),
            by_hash=MappingProxyType({key: tuple(items) for key, items in by_hash.items()}),
            by_directory=MappingProxyType(
                {
                    path: tuple(sorted(items, key=lambda item: (item.file_name, item.id)))
                    for path, items in by_directory.items()
                }
            ),
            directory_of=MappingProxyType(directory_of),
            directory_root=MappingProxyType(directory_root),
            unresolved=MappingProxyType(unresolved),
        )

    @property
    def unresolved_count(self) -> int:
        return len(self.unresolved)

    def resolve_directory(self, record: FileRecord) -> RootResolution:
        path = self.directory_of.get(record.id)
        if path is not None:
            return Resolved(path=path)
        return self.unresolved.get(record.id) or self.resolver.directory_of(record.root_id, record.relative_path)

    def full_path(self, record: FileRecord) -> RootResolution:
        return self.resolver.full_path_of(record.root_id, record.relative_path)
