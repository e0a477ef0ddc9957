"""Tests for filterpush.tree module."""

import pytest

from filterpush.tree import (
    GIT_FILEMODE_BLOB_EXECUTABLE,
    _normalize_path,
    exists_at_path,
    rebuild_tree,
    walk_tree,
)

from conftest import flatten_tree


class TestNormalizePath:
    def test_simple(self):
        assert _normalize_path("foo/bar") == "foo/bar"

    def test_strips_slashes(self):
        assert _normalize_path("/foo/bar/") == "foo/bar"

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            _normalize_path("")

    def test_rejects_dot(self):
        with pytest.raises(ValueError):
            _normalize_path("foo/./bar")

    def test_rejects_dotdot(self):
        with pytest.raises(ValueError):
            _normalize_path("foo/../bar")

    def test_rejects_empty_segment(self):
        with pytest.raises(ValueError):
            _normalize_path("foo//bar")


class TestRebuildTree:
    def test_nested_path(self, bare_repo):
        oid = rebuild_tree(bare_repo, None, {"a/b/c.txt": b"deep"}, set())
        blob_oid, _mode = flatten_tree(bare_repo, oid)["a/b/c.txt"]
        assert bare_repo[blob_oid].data == b"deep"

    def test_structural_sharing(self, bare_repo):
        """Removing under one directory keeps sibling subtree OIDs."""
        oid1 = rebuild_tree(
            bare_repo, None,
            {"a/x.txt": b"x", "a/y.txt": b"y", "b/z.txt": b"z"},
            set(),
        )
        oid2 = rebuild_tree(bare_repo, oid1, {}, {"a/x.txt"})
        tree1 = bare_repo[oid1]
        tree2 = bare_repo[oid2]
        assert tree1["b"].id == tree2["b"].id
        assert tree1["a"].id != tree2["a"].id

    def test_remove_directory(self, bare_repo):
        oid = rebuild_tree(
            bare_repo, None, {"keep.txt": b"k", "d/one": b"1", "d/sub/two": b"2"}, set()
        )
        oid2 = rebuild_tree(bare_repo, oid, {}, {"d"})
        assert not exists_at_path(bare_repo, oid2, "d")
        assert exists_at_path(bare_repo, oid2, "keep.txt")

    def test_prunes_emptied_directory(self, bare_repo):
        oid = rebuild_tree(bare_repo, None, {"keep.txt": b"k", "d/only": b"1"}, set())
        oid2 = rebuild_tree(bare_repo, oid, {}, {"d/only"})
        assert not exists_at_path(bare_repo, oid2, "d")

    def test_remove_missing_is_silent(self, bare_repo):
        oid = rebuild_tree(bare_repo, None, {"a.txt": b"a"}, set())
        assert rebuild_tree(bare_repo, oid, {}, {"nope", "x/y/z", "a.txt/child"}) == oid

    def test_remove_is_deterministic(self, bare_repo):
        oid = rebuild_tree(bare_repo, None, {"a.txt": b"a", "b/c": b"c"}, set())
        assert rebuild_tree(bare_repo, oid, {}, {"b/c"}) == rebuild_tree(bare_repo, oid, {}, {"b/c"})

    def test_keeps_filemode(self, bare_repo):
        oid = rebuild_tree(
            bare_repo, None,
            {"run.sh": (b"#!/bin/sh\n", GIT_FILEMODE_BLOB_EXECUTABLE), "x": b"x"},
            set(),
        )
        oid2 = rebuild_tree(bare_repo, oid, {}, {"x"})
        assert flatten_tree(bare_repo, oid2)["run.sh"][1] == GIT_FILEMODE_BLOB_EXECUTABLE


class TestWalk:
    def test_walk_tree(self, bare_repo):
        oid = rebuild_tree(bare_repo, None, {"a.txt": b"a", "d/b.txt": b"b"}, set())
        walked = {dirpath: (dirs, [f.name for f in files])
                  for dirpath, dirs, files in walk_tree(bare_repo, oid)}
        assert walked[""] == (["d"], ["a.txt"])
        assert walked["d"] == ([], ["b.txt"])

    def test_exists_at_path(self, bare_repo):
        oid = rebuild_tree(bare_repo, None, {"d/b.txt": b"b"}, set())
        assert exists_at_path(bare_repo, oid, "d")
        assert exists_at_path(bare_repo, oid, "/d/b.txt")
        assert not exists_at_path(bare_repo, oid, "d/nope")
        assert not exists_at_path(bare_repo, oid, "d/b.txt/x")
