"""Remote endpoints.

Two roles with deliberately different surfaces:

* :class:`PrivateRemote` can be fetched from and pushed to.
* :class:`PublicRemote` can only be pushed to.  It has no fetch, pull or
  ref-listing method, so nothing in the pipeline can read public state
  back into the repository.

Both pushes are single-ref compare-and-swap updates: the remote ref must
still hold the value we last saw, or the push is rejected before any
objects are sent.
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from urllib.parse import quote, urlparse, urlunparse

from dulwich.errors import GitProtocolError, HangupException, NotGitRepository

from . import _compat as git
from .exceptions import PreconditionError, PushRejectedError, TransportError

_TRANSPORT_ERRORS = (GitProtocolError, HangupException, NotGitRepository, OSError)


def tracking_ref(remote: str, branch: str) -> str:
    return f"refs/remotes/{remote}/{branch}"


def branch_ref(branch: str) -> str:
    return f"refs/heads/{branch}"


class Remote:
    """A named remote resolved from the repository's git config."""

    role = "remote"

    def __init__(self, name: str, url: str, *, progress: Callable | None = None):
        self.name = name
        self.url = url
        self._progress = progress

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.url!r})"

    @classmethod
    def from_config(
        cls, repo: git.Repository, name: str, *, progress: Callable | None = None,
    ):
        url = repo.remote_url(name)
        if not url:
            raise PreconditionError(
                f"Remote {name!r} not configured. Run: git remote add {name} <url>"
            )
        return cls(name, url, progress=progress)

    def push(
        self,
        repo: git.Repository,
        branch: str,
        new: git.Oid,
        *,
        expected: git.Oid | None,
    ) -> None:
        """Point ``refs/heads/<branch>`` on this remote at *new*.

        *expected* is the tip we believe the remote has (None: no branch).
        """
        ref = branch_ref(branch)
        try:
            repo.push_ref(
                resolve_credentials(self.url), ref, new,
                expected=expected, progress=self._progress,
            )
        except git.RefConflict as exc:
            raise PushRejectedError(
                f"Push to {self.name} rejected: {exc}. "
                f"The remote branch moved since it was last seen."
            ) from exc
        except git.GitError as exc:
            raise PushRejectedError(f"Push to {self.name} rejected: {exc}") from exc
        except _TRANSPORT_ERRORS as exc:
            raise TransportError(f"Push to {self.name} ({self.url}) failed: {exc}") from exc


class PrivateRemote(Remote):
    """Full-content remote: fetchable and pushable."""

    role = "private"

    def fetch(self, repo: git.Repository, branch: str) -> git.Oid | None:
        """Fetch objects and return the remote's tip for *branch* (None if absent).

        Moves the local tracking ref ``refs/remotes/<name>/<branch>``; the
        local branch and working tree are never touched.
        """
        try:
            refs = repo.fetch_refs(resolve_credentials(self.url), progress=self._progress)
        except _TRANSPORT_ERRORS as exc:
            raise TransportError(f"Fetch from {self.name} ({self.url}) failed: {exc}") from exc
        sha = refs.get(branch_ref(branch).encode())
        if sha is None:
            return None
        tip = git.Oid(sha)
        repo.set_ref(tracking_ref(self.name, branch), tip)
        return tip


class PublicRemote(Remote):
    """Redacted mirror: write-only from this engine's point of view."""

    role = "public"


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

def resolve_credentials(url: str) -> str:
    """Inject credentials into an HTTPS URL if available.

    Tries ``git credential fill`` first (works with any configured helper),
    then ``gh auth token`` for GitHub hosts.  Non-HTTPS URLs and URLs that
    already contain credentials are returned unchanged.
    """
    if not url.startswith("https://"):
        return url

    parsed = urlparse(url)
    if parsed.username:
        return url

    try:
        stdin = f"protocol={parsed.scheme}\nhost={parsed.hostname}\n\n"
        proc = subprocess.run(
            ["git", "credential", "fill"],
            input=stdin, capture_output=True, text=True, timeout=5,
        )
        if proc.returncode == 0:
            creds = {}
            for line in proc.stdout.strip().splitlines():
                if "=" in line:
                    k, _, v = line.partition("=")
                    creds[k] = v
            username = creds.get("username")
            password = creds.get("password")
            if username and password:
                netloc = f"{quote(username, safe='')}:{quote(password, safe='')}@{parsed.hostname}"
                if parsed.port:
                    netloc += f":{parsed.port}"
                return urlunparse(parsed._replace(netloc=netloc))
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass

    try:
        proc = subprocess.run(
            ["gh", "auth", "token", "--hostname", parsed.hostname],
            capture_output=True, text=True, timeout=5,
        )
        token = proc.stdout.strip()
        if proc.returncode == 0 and token:
            netloc = f"x-access-token:{token}@{parsed.hostname}"
            if parsed.port:
                netloc += f":{parsed.port}"
            return urlunparse(parsed._replace(netloc=netloc))
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass

    return url
