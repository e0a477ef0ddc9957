"""Filtered tree construction.

A branch's tree is loaded into a :class:`StagingTree`, exclusions are
applied to it, and the result is written back as a new tree object.
Everything happens in the object store; the working directory and the
real index are never read or written.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from . import _compat as git
from ._glob import expand
from .config import FilterSpec
from .tree import _normalize_path, exists_at_path, rebuild_tree, walk_tree


class StagingTree:
    """Ephemeral, in-memory list of removals over a base tree.

    Discard it after :meth:`write`; nothing is persisted until then and
    only tree objects are written at that point.
    """

    def __init__(self, repo: git.Repository, tree_oid: git.Oid):
        self._repo = repo
        self._base = tree_oid
        self._removed: set[str] = set()
        self._paths: set[str] | None = None

    @property
    def base(self) -> git.Oid:
        return self._base

    def _all_paths(self) -> set[str]:
        if self._paths is None:
            paths: set[str] = set()
            for dirpath, dirs, files in walk_tree(self._repo, self._base):
                for name in dirs:
                    paths.add(f"{dirpath}/{name}" if dirpath else name)
                for f in files:
                    paths.add(f"{dirpath}/{f.name}" if dirpath else f.name)
            self._paths = paths
        return self._paths

    def _is_removed(self, path: str) -> bool:
        parts = path.split("/")
        return any("/".join(parts[:i]) in self._removed for i in range(1, len(parts) + 1))

    def paths(self) -> list[str]:
        """Sorted files and directories still present."""
        return sorted(p for p in self._all_paths() if not self._is_removed(p))

    def contains(self, path: str) -> bool:
        path = _normalize_path(path)
        if self._is_removed(path):
            return False
        return exists_at_path(self._repo, self._base, path)

    def remove(self, path: str) -> bool:
        """Remove *path* (recursively for directories).  Return False if absent."""
        path = _normalize_path(path)
        if not self.contains(path):
            return False
        prefix = path + "/"
        self._removed = {p for p in self._removed if not p.startswith(prefix)}
        self._removed.add(path)
        return True

    def remove_glob(self, pattern: str) -> list[str]:
        """Remove every present path matching *pattern*; return what was removed."""
        removed: list[str] = []
        for path in expand(pattern, self.paths()):
            if self.remove(path):
                removed.append(path)
        return removed

    def removed(self) -> list[str]:
        return sorted(self._removed)

    def write(self) -> git.Oid:
        if not self._removed:
            return self._base
        return rebuild_tree(self._repo, self._base, {}, set(self._removed))


@dataclass
class FilteredTree:
    """Outcome of filtering one source tree."""
    tree: git.Oid
    source: git.Oid
    excluded: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.tree != self.source


def build_filtered_tree(
    repo: git.Repository, tree_oid: git.Oid, spec: FilterSpec,
) -> FilteredTree:
    """Apply *spec* to *tree_oid* and write the filtered tree.

    Literal exclusions run first, in order, then glob exclusions against
    whatever is left.  Missing paths and empty glob matches are ignored.
    The same input always produces the same tree id.
    """
    staging = StagingTree(repo, tree_oid)
    for path in spec.excludes:
        staging.remove(path)
    for pattern in spec.exclude_globs:
        staging.remove_glob(pattern)
    return FilteredTree(staging.write(), tree_oid, staging.removed())
