from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class DirectoryPairRow(BaseModel):
    path1: str
    path2: str
    shared_duplicate_count: int
    wasted_bytes: int


class DuplicateFileRow(BaseModel):
    content_hash: str
    record_id: int
    path: str | None
    size_bytes: int
    captured_at: datetime | None


class DirectoryRollupRow(BaseModel):
    directory_path: str
    root_id: int
    file_count: int
    duplicate_file_count: int
    duplicate_percentage: float
    total_size_bytes: int
    wasted_bytes: int


class CompleteDuplicateRow(BaseModel):
    digest: str
    primary_path: str
    duplicate_paths: list[str]
    file_count: int
    total_size_bytes: int
    wasted_bytes: int
