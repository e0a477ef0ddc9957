"""Glob matching against repository paths (no filesystem access)."""

from __future__ import annotations

from fnmatch import fnmatchcase as _fnmatchcase
from typing import Iterable


def _glob_match(pattern: str, name: str) -> bool:
    """Match a single path segment against a glob *pattern* segment.

    ``*`` and ``?`` match leading dots too: a redaction pattern such as
    ``*.env`` must catch ``.env``.
    """
    return _fnmatchcase(name, pattern)


def _match_segments(segments: list[str], parts: list[str]) -> bool:
    if not segments:
        return not parts
    seg = segments[0]
    if seg == "**":
        rest = segments[1:]
        # Zero or more whole segments
        for i in range(len(parts) + 1):
            if _match_segments(rest, parts[i:]):
                return True
        return False
    if not parts:
        return False
    if not _glob_match(seg, parts[0]):
        return False
    return _match_segments(segments[1:], parts[1:])


def glob_match_path(pattern: str, path: str) -> bool:
    """Return True if repo *path* matches *pattern*.

    A pattern without ``/`` matches the last segment of a path at any
    depth.  A pattern containing ``/`` is anchored at the root, with
    ``**`` standing for zero or more segments.
    """
    pattern = pattern.strip("/")
    if not pattern:
        return False
    if "/" not in pattern:
        if pattern == "**":
            return True
        return _glob_match(pattern, path.rsplit("/", 1)[-1])
    return _match_segments(pattern.split("/"), path.split("/"))


def expand(pattern: str, paths: Iterable[str]) -> list[str]:
    """Return the sorted subset of *paths* matching *pattern*."""
    return sorted(p for p in paths if glob_match_path(pattern, p))
