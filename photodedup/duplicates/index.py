from __future__ import annotations

import logging
from types import MappingProxyType

from photodedup.duplicates.types import DataIntegrityWarning, DuplicateGroup, HashIndex
from photodedup.library.snapshot import LibrarySnapshot
from photodedup.library.types import FileRecord

logger = logging.getLogger(__name__)


def _member_sort_key(record: FileRecord, snapshot: LibrarySnapshot) -> tuple[int, str, str, int]:
    directory = snapshot.directory_of.get(record.id)
    if directory is not None:
        return (0, directory, record.file_name, record.id)
    # unresolved members keep their group membership but sort last
    return (1, f"{record.root_id}:{record.directory_relative_path}", record.file_name, record.id)


def _build_group(content_hash: str, members: list[FileRecord]) -> tuple[DuplicateGroup, DataIntegrityWarning | None]:
    sizes = [member.size_bytes for member in members]
    largest = max(sizes)
    total = sum(sizes)
    consistent = min(sizes) == largest
    # equals largest * (n - 1) when all sizes agree
    wasted = total - largest

    warning = None
    if not consistent:
        warning = DataIntegrityWarning(
            content_hash=content_hash,
            sizes=tuple(sizes),
            message=(
                f"Duplicate group {content_hash} has members with differing sizes "
                f"({min(sizes)}..{largest} bytes); wasted bytes computed as sum minus max"
            ),
        )

    group = DuplicateGroup(
        content_hash=content_hash,
        members=tuple(members),
        size_bytes=largest,
        total_size_bytes=total,
        wasted_bytes=wasted,
        sizes_consistent=consistent,
    )
    return group, warning


def build_hash_index(snapshot: LibrarySnapshot) -> HashIndex:
    """Duplicate groups from the snapshot's hash buckets; hashes with a single record are skipped."""
    groups: dict[str, DuplicateGroup] = {}
    warnings: list[DataIntegrityWarning] = []
    for content_hash in sorted(snapshot.by_hash):
        bucket = snapshot.by_hash[content_hash]
        if len(bucket) < 2:
            continue
        members = sorted(bucket, key=lambda item: _member_sort_key(item, snapshot))
        group, warning = _build_group(content_hash, members)
        groups[content_hash] = group
        if warning is not None:
            warnings.append(warning)
            logger.warning(warning.message)

    logger.debug("Indexed %d record(s) into %d duplicate group(s)", len(snapshot.records), len(groups))
    return HashIndex(groups=MappingProxyType(groups), warnings=tuple(warnings), record_count=len(snapshot.records))
