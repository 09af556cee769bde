from __future__ import annotations

import pytest

from photodedup.core.paths import (
    PathSafetyError,
    Resolved,
    RootResolver,
    Unresolved,
    is_nested,
    split_relative_path,
    validate_relative_path,
    validate_root_path,
)


@pytest.mark.parametrize(
    "raw_path",
    [
        "../evil.jpg",
        "nested/../../escape.jpg",
        "~/private.jpg",
        "$HOME/private.jpg",
        "/absolute/path.jpg",
        "windows\\style.jpg",
        "   ",
    ],
)
def test_validate_relative_path_rejects_unsafe_input(raw_path: str) -> None:
    with pytest.raises(PathSafetyError):
        validate_relative_path(raw_path)


def test_validate_relative_path_accepts_normal_relative_path() -> None:
    assert validate_relative_path("2023/trip/IMG_0001.jpg").as_posix() == "2023/trip/IMG_0001.jpg"


def test_validate_root_path_normalizes_and_requires_absolute() -> None:
    assert validate_root_path("/photos//library/") == "/photos/library"
    with pytest.raises(PathSafetyError):
        validate_root_path("photos")


def test_split_relative_path_uses_empty_directory_for_root_files() -> None:
    assert split_relative_path("x.jpg") == ("", "x.jpg")
    assert split_relative_path("a/b/x.jpg") == ("a/b", "x.jpg")


def test_is_nested_requires_component_boundary() -> None:
    assert is_nested("/root1", "/root1/sub")
    assert is_nested("/root1/sub/deeper", "/root1")
    assert not is_nested("/root1", "/root10")
    assert not is_nested("/root1", "/root1")


def test_root_resolver_returns_explicit_results() -> None:
    resolver = RootResolver({1: "/photos", 2: "relative", 3: "/archive"}, inactive=[3])

    assert resolver.resolve(1) == Resolved(path="/photos")
    assert resolver.directory_of(1, "x.jpg") == Resolved(path="/photos")
    assert resolver.directory_of(1, "a/b/x.jpg") == Resolved(path="/photos/a/b")
    assert resolver.full_path_of(1, "a/x.jpg") == Resolved(path="/photos/a/x.jpg")
    assert resolver.resolve(99) == Unresolved(root_id=99, reason="root_not_found")
    assert resolver.resolve(2) == Unresolved(root_id=2, reason="root_not_absolute")
    assert resolver.directory_of(3, "x.jpg") == Unresolved(root_id=3, reason="root_inactive")
