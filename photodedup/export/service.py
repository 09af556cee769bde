from __future__ import annotations

import csv
from typing import Any, Iterable, TextIO

from pydantic import BaseModel

from photodedup.core.paths import Resolved
from photodedup.duplicates.types import (
    CompleteDuplicateDirectory,
    DirectoryDuplicateInfo,
    DirectoryPair,
    DuplicateGroup,
)
from photodedup.export.schemas import (
    CompleteDuplicateRow,
    DirectoryPairRow,
    DirectoryRollupRow,
    DuplicateFileRow,
)
from photodedup.library.snapshot import LibrarySnapshot


def pair_rows(pairs: Iterable[DirectoryPair]) -> list[DirectoryPairRow]:
    return [
        DirectoryPairRow(
            path1=pair.directory_a,
            path2=pair.directory_b,
            shared_duplicate_count=pair.shared_duplicate_count,
            wasted_bytes=pair.wasted_bytes,
        )
        for pair in pairs
    ]


def group_rows(snapshot: LibrarySnapshot, groups: Iterable[DuplicateGroup]) -> list[DuplicateFileRow]:
    """One row per member file; members on unresolved roots export with ``path=None``."""
    rows: list[DuplicateFileRow] = []
    for group in groups:
        for member in group.members:
            resolution = snapshot.full_path(member)
            rows.append(
                DuplicateFileRow(
                    content_hash=group.content_hash,
                    record_id=member.id,
                    path=resolution.path if isinstance(resolution, Resolved) else None,
                    size_bytes=member.size_bytes,
                    captured_at=member.captured_at,
                )
            )
    return rows


def rollup_rows(items: Iterable[DirectoryDuplicateInfo]) -> list[DirectoryRollupRow]:
    return [
        DirectoryRollupRow(
            directory_path=item.directory_path,
            root_id=item.root_id,
            file_count=item.file_count,
            duplicate_file_count=item.duplicate_file_count,
            duplicate_percentage=round(item.duplicate_percentage, 2),
            total_size_bytes=item.total_size_bytes,
            wasted_bytes=item.wasted_bytes,
        )
        for item in items
    ]


def complete_rows(items: Iterable[CompleteDuplicateDirectory]) -> list[CompleteDuplicateRow]:
    return [
        CompleteDuplicateRow(
            digest=item.digest,
            primary_path=item.primary.directory_path,
            duplicate_paths=[duplicate.directory_path for duplicate in item.duplicates],
            file_count=item.file_count,
            total_size_bytes=item.total_size_bytes,
            wasted_bytes=item.wasted_bytes,
        )
        for item in items
    ]


def to_dicts(rows: Iterable[BaseModel]) -> list[dict[str, Any]]:
    return [row.model_dump(mode="json") for row in rows]


def write_csv(stream: TextIO, rows: Iterable[BaseModel], model: type[BaseModel]) -> int:
    """Write ``rows`` with a header taken from ``model``'s fields; returns the data row count."""
    fieldnames = list(model.model_fields)
    writer = csv.DictWriter(stream, fieldnames=fieldnames, lineterminator="\n")
    writer.writeheader()
    count = 0
    for row in rows:
        record = row.model_dump(mode="json")
        for key, value in record.items():
            if isinstance(value, list):
                record[key] = ";".join(str(item) for item in value)
            elif value is None:
                record[key] = ""
        writer.writerow(record)
        count += 1
    return count


def write_pairs_csv(stream: TextIO, pairs: Iterable[DirectoryPair]) -> int:
    return write_csv(stream, pair_rows(pairs), DirectoryPairRow)


def write_groups_csv(stream: TextIO, snapshot: LibrarySnapshot, groups: Iterable[DuplicateGroup]) -> int:
    return write_csv(stream, group_rows(snapshot, groups), DuplicateFileRow)


def write_rollup_csv(stream: TextIO, items: Iterable[DirectoryDuplicateInfo]) -> int:
    return write_csv(stream, rollup_rows(items), DirectoryRollupRow)


def write_complete_csv(stream: TextIO, items: Iterable[CompleteDuplicateDirectory]) -> int:
    return write_csv(stream, complete_rows(items), CompleteDuplicateRow)
