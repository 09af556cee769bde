from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable, Mapping, Union


class PathSafetyError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class Resolved:
    path: str


@dataclass(frozen=True, slots=True)
class Unresolved:
    root_id: int
    reason: str


RootResolution = Union[Resolved, Unresolved]


def validate_relative_path(raw_path: str) -> PurePosixPath:
    if not raw_path or not raw_path.strip():
        raise PathSafetyError("Path cannot be blank")
    if "\\" in raw_path:
        raise PathSafetyError("Path must use forward slashes")
    if raw_path.startswith("/"):
        raise PathSafetyError("Path must be relative to its root directory")
    path = PurePosixPath(raw_path)
    if ".." in path.parts:
        raise PathSafetyError("Path traversal is not allowed")
    if "~" in raw_path:
        raise PathSafetyError("Home expansion is not allowed")
    if "$" in raw_path:
        raise PathSafetyError("Environment variable expansion is not allowed")
    return path


def validate_root_path(raw_path: str) -> str:
    if not raw_path.startswith("/"):
        raise PathSafetyError("Root directory path must be absolute")
    if ".." in PurePosixPath(raw_path).parts:
        raise PathSafetyError("Path traversal is not allowed")
    return normalize_directory(raw_path)


def normalize_directory(raw_path: str) -> str:
    normalized = posixpath.normpath(raw_path)
    # normpath keeps a leading "//" as-is
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def split_relative_path(relative_path: str) -> tuple[str, str]:
    """Return ``(directory, file_name)`` for a root-relative path; the root itself is ``""``."""
    directory, _, file_name = relative_path.rpartition("/")
    return directory, file_name


def join_directory(root_path: str, relative_directory: str) -> str:
    if not relative_directory:
        return normalize_directory(root_path)
    return normalize_directory(posixpath.join(root_path, relative_directory))


def is_nested(path_a: str, path_b: str) -> bool:
    """True when one directory is an ancestor of the other."""
    if path_a == path_b:
        return False
    shorter, longer = (path_a, path_b) if len(path_a) < len(path_b) else (path_b, path_a)
    prefix = shorter if shorter.endswith("/") else shorter + "/"
    return longer.startswith(prefix)


class RootResolver:
    """Maps root ids to absolute root paths, returning an explicit result instead of a fallback path."""

    def __init__(self, roots: Mapping[int, str], inactive: Iterable[int] = ()):
        self._roots = dict(roots)
        self._inactive = frozenset(inactive)

    def resolve(self, root_id: int) -> RootResolution:
        root_path = self._roots.get(root_id)
        if root_path is None:
            return Unresolved(root_id=root_id, reason="root_not_found")
        if root_id in self._inactive:
            return Unresolved(root_id=root_id, reason="root_inactive")
        if not root_path.startswith("/"):
            return Unresolved(root_id=root_id, reason="root_not_absolute")
        return Resolved(path=normalize_directory(root_path))

    def directory_of(self, root_id: int, relative_path: str) -> RootResolution:
        resolution = self.resolve(root_id)
        if isinstance(resolution, Unresolved):
            return resolution
        directory, _file_name = split_relative_path(relative_path)
        return Resolved(path=join_directory(resolution.path, directory))

    def full_path_of(self, root_id: int, relative_path: str) -> RootResolution:
        resolution = self.resolve(root_id)
        if isinstance(resolution, Unresolved):
            return resolution
        return Resolved(path=normalize_directory(posixpath.join(resolution.path, relative_path)))
