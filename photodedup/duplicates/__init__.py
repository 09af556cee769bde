from photodedup.duplicates.service import DEFAULT_CONTEXT, DuplicateQueryError, DuplicateService
from photodedup.duplicates.types import (
    CompleteDuplicateDirectory,
    DataIntegrityWarning,
    DirectoryDuplicateInfo,
    DirectoryFileMatch,
    DirectoryInfo,
    DirectoryPair,
    DirectoryRollupResult,
    DuplicateGroup,
    HashIndex,
    PairwiseOverlapResult,
    RelatedDirectories,
)

__all__ = [
    "DEFAULT_CONTEXT",
    "DuplicateQueryError",
    "DuplicateService",
    "CompleteDuplicateDirectory",
    "DataIntegrityWarning",
    "DirectoryDuplicateInfo",
    "DirectoryFileMatch",
    "DirectoryInfo",
    "DirectoryPair",
    "DirectoryRollupResult",
    "DuplicateGroup",
    "HashIndex",
    "PairwiseOverlapResult",
    "RelatedDirectories",
]
