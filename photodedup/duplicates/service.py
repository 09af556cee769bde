from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from photodedup.core.config import Settings
from photodedup.duplicates.digest import find_complete_duplicate_directories
from photodedup.duplicates.index import build_hash_index
from photodedup.duplicates.overlap import (
    analyze_pairwise_overlap,
    find_related_directories,
    match_directory_files,
)
from photodedup.duplicates.rollup import rollup_directories
from photodedup.duplicates.types import (
    CompleteDuplicateDirectory,
    DirectoryFileMatch,
    DirectoryRollupResult,
    DuplicateGroup,
    HashIndex,
    PairwiseOverlapResult,
    RelatedDirectories,
)
from photodedup.jobs.cancellation import CancellationToken
from photodedup.jobs.service import AnalysisJobService, JobHandle
from photodedup.jobs.types import JobKind, JobOutcome
from photodedup.library.service import LibraryService
from photodedup.library.snapshot import LibrarySnapshot

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT = "default"


class DuplicateQueryError(RuntimeError):
    pass


@dataclass
class _DerivedState:
    snapshot: LibrarySnapshot
    index: HashIndex | None = None
    rollup: DirectoryRollupResult | None = None
    complete: list[CompleteDuplicateDirectory] | None = None
    pairwise: dict[bool, PairwiseOverlapResult] = field(default_factory=dict)


class DuplicateService:
    """Read side of the library: duplicate groups, directory rollups, complete
    duplicate directories and pairwise overlap.

    Derived results are cached per library version and thrown away as a whole
    when the version changes; nothing is patched incrementally.
    """

    def __init__(
        self,
        settings: Settings,
        library: LibraryService,
        jobs: AnalysisJobService | None = None,
    ):
        self._settings = settings
        self._library = library
        self._jobs = jobs
        self._lock = threading.Lock()
        self._state: _DerivedState | None = None

    def _normalize_limit(self, limit: int | None) -> int:
        if limit is None:
            return int(self._settings.default_page_size)
        return max(1, min(int(limit), int(self._settings.max_page_size)))

    def _state_for(self, snapshot: LibrarySnapshot | None) -> _DerivedState:
        snapshot = snapshot or self._library.snapshot()
        with self._lock:
            state = self._state
            if state is not None and state.snapshot.version == snapshot.version:
                return state
            if state is not None and state.snapshot.version > snapshot.version:
                # stale snapshot from an in-flight job; compute without caching
                return _DerivedState(snapshot=snapshot)
            if state is not None:
                logger.debug("Discarding derived state for version %d", state.snapshot.version)
            state = _DerivedState(snapshot=snapshot)
            self._state = state
        return state

    def _index(self, state: _DerivedState) -> HashIndex:
        if state.index is None:
            state.index = build_hash_index(state.snapshot)
        return state.index

    def _complete(self, state: _DerivedState) -> list[CompleteDuplicateDirectory]:
        if state.complete is None:
            state.complete = find_complete_duplicate_directories(
                state.snapshot,
                mode=self._settings.complete_duplicate_match,
            )
        return state.complete

    def snapshot(self) -> LibrarySnapshot:
        return self._library.snapshot()

    def hash_index(self, snapshot: LibrarySnapshot | None = None) -> HashIndex:
        return self._index(self._state_for(snapshot))

    def list_groups(self, *, limit: int | None = None, offset: int = 0) -> list[DuplicateGroup]:
        if offset < 0:
            raise ValueError("offset must be >= 0")
        bounded_limit = self._normalize_limit(limit)
        groups = self.hash_index().ordered_groups()
        return groups[offset : offset + bounded_limit]

    def get_group(self, content_hash: str) -> DuplicateGroup:
        token = content_hash.strip().lower()
        group = self.hash_index().group_for(token)
        if group is None:
            raise DuplicateQueryError(f"No duplicate group for hash {token}")
        return group

    def rollup(self, snapshot: LibrarySnapshot | None = None) -> DirectoryRollupResult:
        state = self._state_for(snapshot)
        if state.rollup is None:
            state.rollup = rollup_directories(state.snapshot, self._index(state))
        return state.rollup

    def complete_duplicates(self, snapshot: LibrarySnapshot | None = None) -> list[CompleteDuplicateDirectory]:
        return self._complete(self._state_for(snapshot))

    def pairwise(
        self,
        *,
        token: CancellationToken | None = None,
        snapshot: LibrarySnapshot | None = None,
        max_groups: int | None = None,
        include_nested: bool | None = None,
    ) -> PairwiseOverlapResult:
        """Synchronous pairwise overlap; raises AnalysisTimeout or AnalysisCancelled from ``token``."""
        state = self._state_for(snapshot)
        nested = self._settings.pairwise_include_nested if include_nested is None else include_nested
        groups_cap = int(max_groups or self._settings.pairwise_max_groups)
        cached = state.pairwise.get(nested)
        if cached is not None and max_groups is None:
            return cached

        if token is None:
            token = CancellationToken(float(self._settings.pairwise_timeout_seconds))
        result = analyze_pairwise_overlap(
            state.snapshot,
            self._index(state),
            max_groups=groups_cap,
            token=token,
            complete=self._complete(state),
            include_nested=nested,
        )
        if max_groups is None:
            state.pairwise[nested] = result
        return result

    def _require_jobs(self) -> AnalysisJobService:
        if self._jobs is None:
            raise DuplicateQueryError("Background analysis requires an AnalysisJobService")
        return self._jobs

    def request_pairwise(
        self,
        *,
        context: str = DEFAULT_CONTEXT,
        timeout_seconds: float | None = None,
        max_groups: int | None = None,
    ) -> JobHandle:
        """Start pairwise overlap in the background, superseding the previous request for ``context``.

        The snapshot is taken here, on the caller's thread, so later mutations
        cannot race with the computation.
        """
        jobs = self._require_jobs()
        snapshot = self._library.snapshot()
        budget = float(timeout_seconds or self._settings.pairwise_timeout_seconds)

        def run(token: CancellationToken) -> PairwiseOverlapResult:
            return self.pairwise(token=token, snapshot=snapshot, max_groups=max_groups)

        handle = jobs.submit(JobKind.PAIRWISE, run, context=context, timeout_seconds=budget)
        logger.info("Requested pairwise overlap job %s for version %d", handle.id, snapshot.version)
        return handle

    def request_analysis(self, kind: JobKind) -> JobHandle:
        """Run one of the bounded analyses (index, rollup, digest) off the caller's thread."""
        jobs = self._require_jobs()
        snapshot = self._library.snapshot()
        runners: dict[JobKind, Any] = {
            JobKind.HASH_INDEX: lambda _token: self.hash_index(snapshot),
            JobKind.ROLLUP: lambda _token: self.rollup(snapshot),
            JobKind.DIGEST: lambda _token: self.complete_duplicates(snapshot),
        }
        runner = runners.get(kind)
        if runner is None:
            raise ValueError(f"Unsupported analysis kind: {kind.value}")
        return jobs.submit(kind, runner)

    def wait(self, handle: JobHandle, timeout: float | None = None) -> JobOutcome:
        return self._require_jobs().wait(handle, timeout=timeout)

    def latest_pairwise(self, context: str = DEFAULT_CONTEXT) -> JobOutcome | None:
        return self._require_jobs().latest_result(context)

    def match_directory_files(self, directory_a: str, directory_b: str) -> list[DirectoryFileMatch]:
        state = self._state_for(None)
        return match_directory_files(state.snapshot, self._index(state), directory_a, directory_b)

    def related_directories(self, directory_path: str) -> RelatedDirectories:
        state = self._state_for(None)
        return find_related_directories(state.snapshot, self._index(state), directory_path)
