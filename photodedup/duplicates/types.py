from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from photodedup.library.types import FileRecord


@dataclass(frozen=True, slots=True)
class DataIntegrityWarning:
    content_hash: str
    sizes: tuple[int, ...]
    message: str


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    content_hash: str
    members: tuple[FileRecord, ...]
    size_bytes: int
    total_size_bytes: int
    wasted_bytes: int
    sizes_consistent: bool = True

    @property
    def file_count(self) -> int:
        return len(self.members)

    @property
    def member_ids(self) -> tuple[int, ...]:
        return tuple(member.id for member in self.members)


@dataclass(frozen=True)
class HashIndex:
    groups: Mapping[str, DuplicateGroup]
    warnings: tuple[DataIntegrityWarning, ...] = ()
    record_count: int = 0

    @property
    def duplicate_hashes(self) -> frozenset[str]:
        return frozenset(self.groups)

    @property
    def total_wasted_bytes(self) -> int:
        return sum(group.wasted_bytes for group in self.groups.values())

    @property
    def duplicate_file_count(self) -> int:
        return sum(group.file_count for group in self.groups.values())

    def group_for(self, content_hash: str) -> DuplicateGroup | None:
        return self.groups.get(content_hash)

    def ordered_groups(self) -> list[DuplicateGroup]:
        """Largest groups first, then by wasted bytes, then by hash."""
        return sorted(
            self.groups.values(),
            key=lambda group: (-group.file_count, -group.wasted_bytes, group.content_hash),
        )


@dataclass(frozen=True, slots=True)
class DirectoryDuplicateInfo:
    directory_path: str
    root_id: int
    file_count: int
    duplicate_file_count: int
    total_size_bytes: int
    wasted_bytes: int

    @property
    def duplicate_percentage(self) -> float:
        if self.file_count <= 0:
            return 0.0
        return self.duplicate_file_count / self.file_count * 100


@dataclass(frozen=True, slots=True)
class DirectoryRollupResult:
    items: list[DirectoryDuplicateInfo]
    unresolved_count: int = 0

    def get(self, directory_path: str) -> DirectoryDuplicateInfo | None:
        for item in self.items:
            if item.directory_path == directory_path:
                return item
        return None


@dataclass(frozen=True, slots=True)
class DirectoryInfo:
    directory_path: str
    root_id: int
    relative_path: str
    files: tuple[FileRecord, ...]

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def total_size_bytes(self) -> int:
        return sum(item.size_bytes for item in self.files)


@dataclass(frozen=True, slots=True)
class CompleteDuplicateDirectory:
    primary: DirectoryInfo
    duplicates: tuple[DirectoryInfo, ...]
    digest: str
    file_count: int
    total_size_bytes: int

    @property
    def all_directories(self) -> tuple[DirectoryInfo, ...]:
        return (self.primary, *self.duplicates)

    @property
    def wasted_bytes(self) -> int:
        return self.total_size_bytes * len(self.duplicates)


@dataclass(frozen=True, slots=True)
class DirectoryPair:
    directory_a: str
    directory_b: str
    shared_duplicate_count: int
    wasted_bytes: int
    shared_hash_count: int

    def __post_init__(self) -> None:
        if self.directory_a >= self.directory_b:
            raise ValueError("DirectoryPair requires directory_a < directory_b")

    @property
    def key(self) -> tuple[str, str]:
        return (self.directory_a, self.directory_b)


@dataclass(frozen=True, slots=True)
class PairwiseOverlapResult:
    pairs: tuple[DirectoryPair, ...]
    groups_total: int
    groups_scanned: int
    directories_considered: int
    excluded_complete_pairs: int = 0
    excluded_nested_pairs: int = 0
    unresolved_count: int = 0
    elapsed_seconds: float = 0.0

    @property
    def truncated(self) -> bool:
        return self.groups_scanned < self.groups_total

    @property
    def groups_skipped(self) -> int:
        return self.groups_total - self.groups_scanned

    def get(self, directory_a: str, directory_b: str) -> DirectoryPair | None:
        key = tuple(sorted((directory_a, directory_b)))
        for pair in self.pairs:
            if pair.key == key:
                return pair
        return None


@dataclass(frozen=True, slots=True)
class DirectoryFileMatch:
    content_hash: str
    file_a: FileRecord
    file_b: FileRecord

    @property
    def size_bytes(self) -> int:
        return self.file_a.size_bytes


@dataclass(frozen=True, slots=True)
class RelatedDirectories:
    directory_path: str
    shared_counts: dict[str, int] = field(default_factory=dict)
    same_directory_only_count: int = 0

    def ordered(self) -> list[tuple[str, int]]:
        return sorted(self.shared_counts.items(), key=lambda entry: (-entry[1], entry[0]))
