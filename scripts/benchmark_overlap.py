from __future__ import annotations

import argparse
import os
import random
import time
from pathlib import Path

from photodedup.core.config import get_settings
from photodedup.core.logging import configure_logging
from photodedup.db.engine import LibraryDatabase
from photodedup.duplicates.service import DuplicateService
from photodedup.jobs.cancellation import AnalysisTimeout, CancellationToken
from photodedup.library.service import LibraryService
from photodedup.library.types import FileRecordInput


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Benchmark duplicate analyses on a synthetic photo library")
    parser.add_argument("--state-root", required=True, help="State root directory")
    parser.add_argument("--directories", type=int, default=500, help="Number of photo directories")
    parser.add_argument("--files-per-directory", type=int, default=40, help="Files per directory")
    parser.add_argument("--distinct-hashes", type=int, default=8000, help="Size of the hash pool")
    parser.add_argument("--max-groups", type=int, default=None, help="Override the pairwise group cap")
    parser.add_argument("--timeout", type=float, default=None, help="Override the pairwise timeout in seconds")
    parser.add_argument("--seed", type=int, default=7, help="Random seed")
    return parser.parse_args()


def configure_env(state_root: Path) -> None:
    state_root.mkdir(parents=True, exist_ok=True)
    os.environ["PHOTODEDUP_STATE_ROOT"] = state_root.as_posix()
    os.environ["PHOTODEDUP_DRY_RUN"] = "true"
    os.environ["PHOTODEDUP_ALLOW_REAL_DELETE"] = "false"

    get_settings.cache_clear()


def seed_fixture(library: LibraryService, directories: int, files_per_directory: int, distinct_hashes: int, seed: int) -> int:
    rng = random.Random(seed)
    root = library.add_root("/photos/bench", name="bench")
    batch: list[FileRecordInput] = []
    total = 0
    for dir_idx in range(directories):
        for file_idx in range(files_per_directory):
            hash_idx = rng.randrange(distinct_hashes)
            batch.append(
                FileRecordInput(
                    root_id=root.id,
                    relative_path=f"album{dir_idx:05d}/IMG_{file_idx:05d}.jpg",
                    content_hash=hash_idx.to_bytes(32, "big").hex(),
                    size_bytes=1_000_000 + hash_idx,
                )
            )
        if len(batch) >= 5000:
            total += library.upsert_files(batch).inserted
            batch.clear()
    if batch:
        total += library.upsert_files(batch).inserted
    return total


def timed(label: str, fn) -> object:  # type: ignore[no-untyped-def]
    start = time.perf_counter()
    result = fn()
    print(f"{label}: elapsed_seconds={time.perf_counter() - start:.3f}")
    return result


def main() -> None:
    args = parse_args()
    configure_env(Path(args.state_root))
    settings = get_settings()
    configure_logging(settings.log_level)
    database = LibraryDatabase.open(settings)
    try:
        run(args, LibraryService(settings, database.session_factory))
    finally:
        database.close()


def run(args: argparse.Namespace, library: LibraryService) -> None:
    settings = get_settings()
    inserted = seed_fixture(library, args.directories, args.files_per_directory, args.distinct_hashes, args.seed)
    print(f"records={inserted}")

    service = DuplicateService(settings, library)
    index = timed("hash_index", service.hash_index)
    print(f"groups={len(index.groups)} wasted_bytes={index.total_wasted_bytes}")
    timed("rollup", service.rollup)
    timed("complete_duplicates", service.complete_duplicates)

    timeout = args.timeout or settings.pairwise_timeout_seconds
    try:
        result = timed(
            "pairwise",
            lambda: service.pairwise(token=CancellationToken(timeout), max_groups=args.max_groups),
        )
    except AnalysisTimeout as exc:
        print(f"pairwise: timed out ({exc})")
        return
    print(
        f"pairs={len(result.pairs)} groups_scanned={result.groups_scanned}/{result.groups_total} "
        f"truncated={result.truncated}"
    )


if __name__ == "__main__":
    main()
