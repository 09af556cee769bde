from __future__ import annotations

import hashlib
from collections import Counter, defaultdict
from typing import Iterable

from photodedup.duplicates.types import CompleteDuplicateDirectory, DirectoryInfo
from photodedup.library.snapshot import LibrarySnapshot
from photodedup.library.types import FileRecord

MATCH_SET = "set"
MATCH_MULTISET = "multiset"

_DigestKey = tuple[tuple[str, int], ...]


def directory_key(files: Iterable[FileRecord], mode: str = MATCH_SET) -> _DigestKey:
    """Sorted content signature of one directory.

    ``set`` mode ignores how many copies of a hash the directory holds, so
    internal duplicates do not break equality; ``multiset`` mode keeps counts.
    """
    counts = Counter(item.content_hash for item in files)
    if mode == MATCH_SET:
        return tuple((content_hash, 1) for content_hash in sorted(counts))
    if mode == MATCH_MULTISET:
        return tuple(sorted(counts.items()))
    raise ValueError(f"Unsupported match mode: {mode}")


def digest_key(key: _DigestKey) -> str:
    hasher = hashlib.sha256()
    for content_hash, count in key:
        hasher.update(f"{content_hash}:{count}\n".encode("ascii"))
    return hasher.hexdigest()


def _directory_info(snapshot: LibrarySnapshot, directory_path: str) -> DirectoryInfo:
    files = snapshot.by_directory[directory_path]
    return DirectoryInfo(
        directory_path=directory_path,
        root_id=snapshot.directory_root[directory_path],
        relative_path=files[0].directory_relative_path,
        files=files,
    )


def find_complete_duplicate_directories(
    snapshot: LibrarySnapshot,
    *,
    mode: str = MATCH_SET,
) -> list[CompleteDuplicateDirectory]:
    clusters: dict[_DigestKey, list[str]] = defaultdict(list)
    for directory_path, files in snapshot.by_directory.items():
        if len(files) < 2:
            continue
        key = directory_key(files, mode)
        if len(key) < 2:
            continue
        clusters[key].append(directory_path)

    results: list[CompleteDuplicateDirectory] = []
    for key, paths in clusters.items():
        if len(paths) < 2:
            continue
        ordered = sorted(paths)
        primary = _directory_info(snapshot, ordered[0])
        results.append(
            CompleteDuplicateDirectory(
                primary=primary,
                duplicates=tuple(_directory_info(snapshot, path) for path in ordered[1:]),
                digest=digest_key(key),
                file_count=primary.file_count,
                total_size_bytes=primary.total_size_bytes,
            )
        )

    results.sort(key=lambda item: (-item.file_count, item.primary.directory_path))
    return results


def cluster_membership(complete: Iterable[CompleteDuplicateDirectory]) -> dict[str, str]:
    """Map each directory in a complete-duplicate cluster to its cluster digest."""
    membership: dict[str, str] = {}
    for cluster in complete:
        for info in cluster.all_directories:
            membership[info.directory_path] = cluster.digest
    return membership
