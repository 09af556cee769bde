from photodedup.library.service import LibraryService, RootConflictError, RootNotFoundError
from photodedup.library.snapshot import LibrarySnapshot
from photodedup.library.types import FileRecord, FileRecordInput, RootDirectory, UpsertResult

__all__ = [
    "LibraryService",
    "LibrarySnapshot",
    "RootConflictError",
    "RootNotFoundError",
    "FileRecord",
    "FileRecordInput",
    "RootDirectory",
    "UpsertResult",
]
