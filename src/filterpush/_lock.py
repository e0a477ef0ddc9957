"""Advisory publish lock: one pipeline run per repository at a time."""

from __future__ import annotations

import os
from contextlib import contextmanager

from .exceptions import LockedError

LOCK_NAME = "filterpush.lock"


def _lock_path(controldir: str) -> str:
    return os.path.join(controldir, LOCK_NAME)


try:
    import fcntl

    @contextmanager
    def publish_lock(controldir: str):
        """Hold an exclusive, non-blocking lock on *controldir* for the block.

        Raises :class:`~filterpush.exceptions.LockedError` immediately if
        another process (or another open handle in this one) holds it.
        """
        lock_path = _lock_path(controldir)
        fd = os.open(lock_path, os.O_CREAT | os.O_RDWR | getattr(os, "O_CLOEXEC", 0))
        try:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                raise LockedError(
                    f"Another publish is already running ({lock_path})"
                ) from None
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

except ImportError:
    import msvcrt

    @contextmanager
    def publish_lock(controldir: str):
        lock_path = _lock_path(controldir)
        fd = os.open(lock_path, os.O_CREAT | os.O_RDWR)
        os.set_inheritable(fd, False)
        try:
            try:
                msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
            except OSError:
                raise LockedError(
                    f"Another publish is already running ({lock_path})"
                ) from None
            try:
                yield
            finally:
                msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
        finally:
            os.close(fd)
