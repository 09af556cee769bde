from __future__ import annotations

from conftest import make_snapshot
from photodedup.duplicates.digest import (
    MATCH_MULTISET,
    cluster_membership,
    directory_key,
    find_complete_duplicate_directories,
)


def _mirrored():
    return make_snapshot(
        {1: "/a", 2: "/b", 3: "/c"},
        [
            (1, 1, "one.jpg", 1, 10),
            (2, 1, "two.jpg", 2, 20),
            (3, 2, "uno.jpg", 1, 10),
            (4, 2, "dos.jpg", 2, 20),
            (5, 2, "dos-copy.jpg", 2, 20),
            (6, 3, "one.jpg", 1, 10),
            (7, 3, "other.jpg", 3, 30),
        ],
    )


def test_set_mode_groups_directories_with_equal_hash_sets() -> None:
    snapshot = _mirrored()
    results = find_complete_duplicate_directories(snapshot)

    assert len(results) == 1
    cluster = results[0]
    assert cluster.primary.directory_path == "/a"
    assert [info.directory_path for info in cluster.duplicates] == ["/b"]
    assert cluster.file_count == 2
    assert cluster.total_size_bytes == 30
    assert cluster.wasted_bytes == 30
    assert cluster_membership(results) == {"/a": cluster.digest, "/b": cluster.digest}


def test_multiset_mode_respects_copy_counts() -> None:
    assert find_complete_duplicate_directories(_mirrored(), mode=MATCH_MULTISET) == []


def test_single_hash_and_single_file_directories_never_match() -> None:
    snapshot = make_snapshot(
        {1: "/a", 2: "/b", 3: "/c", 4: "/d"},
        [
            (1, 1, "x.jpg", 1, 10),
            (2, 2, "x.jpg", 1, 10),
            (3, 3, "x.jpg", 1, 10),
            (4, 3, "x-copy.jpg", 1, 10),
            (5, 4, "x.jpg", 1, 10),
            (6, 4, "x-copy.jpg", 1, 10),
        ],
    )
    assert find_complete_duplicate_directories(snapshot) == []


def test_directory_key_is_order_independent() -> None:
    snapshot = _mirrored()
    forward = directory_key(snapshot.by_directory["/b"])
    backward = directory_key(reversed(snapshot.by_directory["/b"]))

    assert forward == backward
    assert directory_key(snapshot.by_directory["/b"], MATCH_MULTISET) != forward


def test_equivalent_directories_form_one_cluster_each() -> None:
    snapshot = make_snapshot(
        {1: "/p"},
        [
            (1, 1, "d/x.jpg", 1, 10),
            (2, 1, "e/z.jpg", 4, 40),
            (3, 1, "a/y.jpg", 2, 20),
            (4, 1, "c/x.jpg", 1, 10),
            (5, 1, "b/w.jpg", 3, 30),
            (6, 1, "d/y.jpg", 2, 20),
            (7, 1, "a/x.jpg", 1, 10),
            (8, 1, "e/w.jpg", 3, 30),
            (9, 1, "c/y.jpg", 2, 20),
            (10, 1, "b/z.jpg", 4, 40),
            (11, 1, "e/w-copy.jpg", 3, 30),
        ],
    )
    results = find_complete_duplicate_directories(snapshot)

    assert len(results) == 2
    first, second = results
    assert first.primary.directory_path == "/p/a"
    assert [info.directory_path for info in first.duplicates] == ["/p/c", "/p/d"]
    assert second.primary.directory_path == "/p/b"
    assert [info.directory_path for info in second.duplicates] == ["/p/e"]
    assert first.digest != second.digest

    membership = cluster_membership(results)
    assert len(membership) == 5
    for cluster in results:
        keys = {directory_key(info.files) for info in cluster.all_directories}
        assert len(keys) == 1
