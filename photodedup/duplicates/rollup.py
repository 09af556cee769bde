from __future__ import annotations

from collections import defaultdict

from photodedup.duplicates.types import DirectoryDuplicateInfo, DirectoryRollupResult, HashIndex
from photodedup.library.snapshot import LibrarySnapshot


def attribute_wasted_bytes(snapshot: LibrarySnapshot, index: HashIndex) -> dict[str, int]:
    """Charge every copy after a group's first resolved member to the directory that holds it."""
    wasted: dict[str, int] = defaultdict(int)
    for group in index.groups.values():
        kept = False
        for member in group.members:
            directory = snapshot.directory_of.get(member.id)
            if directory is None:
                continue
            if not kept:
                kept = True
                continue
            wasted[directory] += member.size_bytes
    return dict(wasted)


def rollup_directories(
    snapshot: LibrarySnapshot,
    index: HashIndex,
    *,
    include_clean: bool = False,
) -> DirectoryRollupResult:
    duplicate_hashes = index.duplicate_hashes
    wasted = attribute_wasted_bytes(snapshot, index)

    items: list[DirectoryDuplicateInfo] = []
    for directory_path, files in snapshot.by_directory.items():
        duplicate_count = sum(1 for item in files if item.content_hash in duplicate_hashes)
        if duplicate_count == 0 and not include_clean:
            continue
        items.append(
            DirectoryDuplicateInfo(
                directory_path=directory_path,
                root_id=snapshot.directory_root[directory_path],
                file_count=len(files),
                duplicate_file_count=duplicate_count,
                total_size_bytes=sum(item.size_bytes for item in files),
                wasted_bytes=wasted.get(directory_path, 0),
            )
        )

    items.sort(key=lambda item: (-item.duplicate_file_count, item.directory_path))
    return DirectoryRollupResult(items=items, unresolved_count=snapshot.unresolved_count)
