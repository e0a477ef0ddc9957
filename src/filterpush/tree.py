"""Low-level tree manipulation for filterpush.

Recursive tree rebuild, path normalization and tree walks, all working
against the object store only.
"""

from __future__ import annotations

import os
from collections import defaultdict
from typing import Iterator, NamedTuple

from . import _compat as git


class WalkEntry(NamedTuple):
    """A non-directory entry yielded by :func:`walk_tree`."""

    name: str
    oid: git.Oid
    filemode: int


GIT_FILEMODE_TREE = 0o040000
GIT_FILEMODE_BLOB = 0o100644
GIT_FILEMODE_BLOB_EXECUTABLE = 0o100755
GIT_OBJECT_TREE = git.GIT_OBJECT_TREE


def _normalize_path(path: str | os.PathLike[str]) -> str:
    """Normalize a path: strip leading/trailing slashes, reject bad segments."""
    path = os.fspath(path)
    if os.name == "nt":
        path = path.replace("\\", "/")
    path = path.strip("/")
    if not path:
        raise ValueError("Path must not be empty")
    segments = path.split("/")
    for seg in segments:
        if not seg:
            raise ValueError(f"Empty segment in path: {path!r}")
        if seg in (".", ".."):
            raise ValueError(f"Invalid path segment: {seg!r}")
    return "/".join(segments)


def rebuild_tree(
    repo: git.Repository,
    base_tree_oid: git.Oid | None,
    writes: dict[str, bytes | tuple[bytes, int] | git.Oid | tuple[git.Oid, int]],
    removes: set[str],
) -> git.Oid:
    """Rebuild a tree with writes and removes applied.

    Only the ancestor chain from changed leaves to root is rebuilt.
    Sibling subtrees are shared by hash reference.  A removed path takes
    its whole subtree with it; directories left empty are pruned.

    Args:
        repo: The repository.
        base_tree_oid: OID of the existing tree (or None for empty).
        writes: Mapping of normalized path → blob data or (data, filemode).
        removes: Set of normalized paths to remove.  Must not contain
            both a path and one of its descendants.

    Returns:
        OID of the new root tree.
    """
    # Group changes by first path segment
    sub_writes: dict[str, dict[str, bytes | tuple[bytes, int] | git.Oid | tuple[git.Oid, int]]] = defaultdict(dict)
    leaf_writes: dict[str, bytes | tuple[bytes, int] | git.Oid | tuple[git.Oid, int]] = {}
    sub_removes: dict[str, set[str]] = defaultdict(set)
    leaf_removes: set[str] = set()

    for path, data in writes.items():
        parts = path.split("/", 1)
        if len(parts) == 1:
            leaf_writes[parts[0]] = data
        else:
            sub_writes[parts[0]][parts[1]] = data

    for path in removes:
        parts = path.split("/", 1)
        if len(parts) == 1:
            leaf_removes.add(parts[0])
        else:
            sub_removes[parts[0]].add(parts[1])

    tree = repo[base_tree_oid] if base_tree_oid is not None else None
    tb = repo.TreeBuilder(tree)

    existing_subtrees: dict[str, git.Oid] = {}
    if tree is not None:
        for entry in tree:
            if entry.filemode == GIT_FILEMODE_TREE:
                existing_subtrees[entry.name] = entry.id

    for name, value in leaf_writes.items():
        if isinstance(value, tuple):
            data_or_oid, mode = value
        else:
            data_or_oid, mode = value, GIT_FILEMODE_BLOB
        if isinstance(data_or_oid, git.Oid):
            blob_oid = data_or_oid
        else:
            blob_oid = repo.create_blob(data_or_oid)
        tb.insert(name, blob_oid, mode)

    # Missing entries are fine; exclusions are best-effort
    for name in leaf_removes:
        try:
            tb.remove(name)
        except git.GitError:
            pass

    all_subdirs = set(sub_writes.keys()) | set(sub_removes.keys())
    for subdir in all_subdirs:
        if subdir in leaf_removes and subdir not in sub_writes:
            continue
        existing_oid = None if subdir in leaf_removes else existing_subtrees.get(subdir)
        if existing_oid is None and subdir in sub_removes and subdir not in sub_writes:
            # Nothing to remove beneath a blob or a missing entry
            continue
        if existing_oid is None and tree is not None:
            try:
                entry = tree[subdir]
                if entry.filemode != GIT_FILEMODE_TREE:
                    tb.remove(subdir)
            except KeyError:
                pass

        new_subtree_oid = rebuild_tree(
            repo,
            existing_oid,
            sub_writes.get(subdir, {}),
            sub_removes.get(subdir, set()),
        )

        if len(repo[new_subtree_oid]) == 0:
            try:
                tb.remove(subdir)
            except git.GitError:
                pass
        else:
            tb.insert(subdir, new_subtree_oid, GIT_FILEMODE_TREE)

    return tb.write()


def _entry_at_path(
    repo: git.Repository, tree_oid: git.Oid, path: str
) -> tuple[git.Oid, int] | None:
    """Return (oid, filemode) of the entry at *path*, or None if missing."""
    segments = path.split("/")
    tree = repo[tree_oid]
    for i, seg in enumerate(segments):
        if tree.type != GIT_OBJECT_TREE:
            return None
        try:
            entry = tree[seg]
        except KeyError:
            return None
        if i < len(segments) - 1:
            if entry.filemode != GIT_FILEMODE_TREE:
                return None
            tree = repo[entry.id]
        else:
            return (entry.id, entry.filemode)
    return None


def exists_at_path(
    repo: git.Repository, tree_oid: git.Oid, path: str | os.PathLike[str]
) -> bool:
    """Check if a path exists in the tree."""
    return _entry_at_path(repo, tree_oid, _normalize_path(path)) is not None


def walk_tree(
    repo: git.Repository,
    tree_oid: git.Oid,
    prefix: str = "",
) -> Iterator[tuple[str, list[str], list[WalkEntry]]]:
    """Walk the tree recursively, yielding (dirpath, dirnames, file_entries).

    Submodule links and symlinks are reported as file entries.
    """
    tree = repo[tree_oid]
    dirs: list[str] = []
    files: list[WalkEntry] = []
    dir_oids: list[tuple[str, git.Oid]] = []

    for entry in tree:
        if entry.filemode == GIT_FILEMODE_TREE:
            dirs.append(entry.name)
            dir_oids.append((entry.name, entry.id))
        else:
            files.append(WalkEntry(entry.name, entry.id, entry.filemode))

    yield (prefix, dirs, files)

    for name, oid in dir_oids:
        child_prefix = f"{prefix}/{name}" if prefix else name
        yield from walk_tree(repo, oid, child_prefix)

