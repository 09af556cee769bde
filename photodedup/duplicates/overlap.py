from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Mapping

from photodedup.core.paths import is_nested
from photodedup.duplicates.digest import cluster_membership
from photodedup.duplicates.types import (
    CompleteDuplicateDirectory,
    DirectoryFileMatch,
    DirectoryPair,
    HashIndex,
    PairwiseOverlapResult,
    RelatedDirectories,
)
from photodedup.jobs.cancellation import CancellationToken
from photodedup.library.snapshot import LibrarySnapshot
from photodedup.library.types import FileRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_GROUPS = 10000


def _directory_hash_counts(
    snapshot: LibrarySnapshot,
    index: HashIndex,
    max_groups: int,
    token: CancellationToken,
) -> tuple[dict[str, dict[str, int]], dict[str, int], int, int]:
    groups = index.ordered_groups()
    scanned = groups[:max_groups]
    if len(groups) > len(scanned):
        logger.warning(
            "Pairwise overlap limited to %d of %d duplicate groups",
            len(scanned),
            len(groups),
        )

    counts: dict[str, dict[str, int]] = defaultdict(dict)
    sizes: dict[str, int] = {}
    skipped_members = 0
    for group in scanned:
        token.check()
        sizes[group.content_hash] = group.size_bytes
        for member in group.members:
            directory = snapshot.directory_of.get(member.id)
            if directory is None:
                skipped_members += 1
                continue
            bucket = counts[directory]
            bucket[group.content_hash] = bucket.get(group.content_hash, 0) + 1

    if skipped_members:
        logger.warning("Skipped %d duplicate member(s) with unresolvable root directories", skipped_members)
    return counts, sizes, len(scanned), skipped_members


def analyze_pairwise_overlap(
    snapshot: LibrarySnapshot,
    index: HashIndex,
    *,
    max_groups: int = DEFAULT_MAX_GROUPS,
    token: CancellationToken | None = None,
    complete: Iterable[CompleteDuplicateDirectory] = (),
    include_nested: bool = False,
) -> PairwiseOverlapResult:
    """Shared-duplicate statistics for every directory pair with a common duplicate hash.

    Only directories holding at least one duplicate take part. For each pair
    the shared count is the sum over common hashes of both directories'
    copies, and the wasted bytes are ``size * (count_a + count_b - 1)`` per
    common hash. Pairs inside one complete-duplicate cluster and, unless
    ``include_nested`` is set, pairs where one directory contains the other
    are left out.

    Raises ``AnalysisCancelled`` or ``AnalysisTimeout`` from ``token``; a
    partial result is never returned.
    """
    if max_groups < 1:
        raise ValueError("max_groups must be >= 1")
    token = token or CancellationToken()

    counts, sizes, groups_scanned, skipped = _directory_hash_counts(snapshot, index, max_groups, token)

    holders: dict[str, list[str]] = defaultdict(list)
    for directory in sorted(counts):
        for content_hash in counts[directory]:
            holders[content_hash].append(directory)

    # [shared_count, wasted_bytes, shared_hashes] per (directory_a, directory_b)
    stats: dict[tuple[str, str], list[int]] = {}
    for content_hash in sorted(holders):
        token.check()
        directories = holders[content_hash]
        size = sizes[content_hash]
        for i, directory_a in enumerate(directories):
            if i % 256 == 0:
                token.check()
            count_a = counts[directory_a][content_hash]
            for directory_b in directories[i + 1 :]:
                count_b = counts[directory_b][content_hash]
                entry = stats.get((directory_a, directory_b))
                if entry is None:
                    entry = stats[(directory_a, directory_b)] = [0, 0, 0]
                entry[0] += count_a + count_b
                entry[1] += size * (count_a + count_b - 1)
                entry[2] += 1

    membership = cluster_membership(complete)
    excluded_complete = 0
    excluded_nested = 0
    pairs: list[DirectoryPair] = []
    for (directory_a, directory_b), (shared, wasted, shared_hashes) in stats.items():
        cluster_a = membership.get(directory_a)
        if cluster_a is not None and cluster_a == membership.get(directory_b):
            excluded_complete += 1
            continue
        if not include_nested and is_nested(directory_a, directory_b):
            excluded_nested += 1
            continue
        pairs.append(
            DirectoryPair(
                directory_a=directory_a,
                directory_b=directory_b,
                shared_duplicate_count=shared,
                wasted_bytes=wasted,
                shared_hash_count=shared_hashes,
            )
        )
    token.check()

    pairs.sort(key=lambda pair: (-pair.shared_duplicate_count, -pair.wasted_bytes, pair.directory_a, pair.directory_b))
    logger.info(
        "Pairwise overlap: %d pair(s) across %d directories from %d/%d groups in %.3fs",
        len(pairs),
        len(counts),
        groups_scanned,
        len(index.groups),
        token.elapsed_seconds,
    )
    return PairwiseOverlapResult(
        pairs=tuple(pairs),
        groups_total=len(index.groups),
        groups_scanned=groups_scanned,
        directories_considered=len(counts),
        excluded_complete_pairs=excluded_complete,
        excluded_nested_pairs=excluded_nested,
        unresolved_count=skipped,
        elapsed_seconds=token.elapsed_seconds,
    )


def _first_by_hash(files: Iterable[FileRecord], duplicate_hashes: frozenset[str]) -> Mapping[str, FileRecord]:
    first: dict[str, FileRecord] = {}
    for item in files:
        if item.content_hash in duplicate_hashes:
            first.setdefault(item.content_hash, item)
    return first


def match_directory_files(
    snapshot: LibrarySnapshot,
    index: HashIndex,
    directory_a: str,
    directory_b: str,
) -> list[DirectoryFileMatch]:
    """One file pair per hash present in both directories, ordered by the file name in ``directory_a``."""
    duplicate_hashes = index.duplicate_hashes
    side_a = _first_by_hash(snapshot.by_directory.get(directory_a, ()), duplicate_hashes)
    side_b = _first_by_hash(snapshot.by_directory.get(directory_b, ()), duplicate_hashes)

    matches = [
        DirectoryFileMatch(content_hash=content_hash, file_a=file_a, file_b=side_b[content_hash])
        for content_hash, file_a in side_a.items()
        if content_hash in side_b
    ]
    matches.sort(key=lambda match: (match.file_a.file_name, match.file_a.id))
    return matches


def find_related_directories(
    snapshot: LibrarySnapshot,
    index: HashIndex,
    directory_path: str,
) -> RelatedDirectories:
    shared_counts: dict[str, int] = defaultdict(int)
    same_directory_only = 0
    for item in snapshot.by_directory.get(directory_path, ()):
        group = index.group_for(item.content_hash)
        if group is None:
            continue
        found_elsewhere = False
        for other in group.members:
            other_directory = snapshot.directory_of.get(other.id)
            if other_directory is None or other_directory == directory_path:
                continue
            shared_counts[other_directory] += 1
            found_elsewhere = True
        if not found_elsewhere:
            same_directory_only += 1

    return RelatedDirectories(
        directory_path=directory_path,
        shared_counts=dict(shared_counts),
        same_directory_only_count=same_directory_only,
    )
