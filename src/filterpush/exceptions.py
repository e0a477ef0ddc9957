"""Exceptions for filterpush."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .divergence import Divergence


class FilterPushError(Exception):
    """Base class for every error raised by the publish pipeline."""


class PreconditionError(FilterPushError):
    """Raised when the repository is not in a publishable state.

    Always raised before any remote I/O: uncommitted changes, wrong or
    unknown branch, unconfigured remotes.
    """


class ConfigError(PreconditionError):
    """Raised for a missing or malformed ``.push-filter.conf``."""


class LockedError(PreconditionError):
    """Raised when another publish holds the repository lock."""


class DivergedError(FilterPushError):
    """Raised when local and private remote histories have split.

    The :class:`~filterpush.divergence.Divergence` is available as
    ``.divergence`` so callers can show the commits unique to each side.
    Never resolved automatically; rebase onto the private remote and retry.
    """

    def __init__(self, message: str, divergence: Divergence):
        super().__init__(message)
        self.divergence = divergence


class BehindError(DivergedError):
    """Raised when the private remote has commits the local branch lacks."""


class TransportError(FilterPushError):
    """Raised when a fetch or push fails for network, auth or protocol reasons."""


class PushRejectedError(FilterPushError):
    """Raised when a remote refuses a ref update or its ref moved under us."""
