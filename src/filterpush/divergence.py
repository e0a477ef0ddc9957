"""Local vs. private-remote divergence classification."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from . import _compat as git
from .remote import PrivateRemote


class SyncStatus(enum.Enum):
    UP_TO_DATE = "up-to-date"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"

    @property
    def can_push(self) -> bool:
        return self in (SyncStatus.UP_TO_DATE, SyncStatus.AHEAD)


@dataclass
class CommitSummary:
    sha: str
    subject: str

    def __str__(self) -> str:
        return f"{self.sha[:7]} {self.subject}"


@dataclass
class Divergence:
    """How the local branch relates to the private remote's branch."""
    status: SyncStatus
    local_sha: str
    remote_sha: str | None = None   # None when the remote lacks the branch
    base_sha: str | None = None
    ahead: list[CommitSummary] = field(default_factory=list)
    behind: list[CommitSummary] = field(default_factory=list)

    def describe(self, remote: str, branch: str) -> str:
        target = f"{remote}/{branch}"
        if self.status is SyncStatus.UP_TO_DATE:
            return f"Up to date with {target}."
        if self.status is SyncStatus.AHEAD:
            if self.remote_sha is None:
                return f"{target} does not exist yet; will create it."
            return f"Local is ahead of {target} by {len(self.ahead)} commit(s); will push."
        if self.status is SyncStatus.BEHIND:
            return f"Local is behind {target} by {len(self.behind)} commit(s)."
        return (
            f"Local and {target} have diverged: "
            f"{len(self.ahead)} ahead, {len(self.behind)} behind."
        )


def _summaries(commits) -> list[CommitSummary]:
    return [CommitSummary(str(c.id), c.subject) for c in commits]


def classify(repo: git.Repository, local: git.Oid, remote: git.Oid | None) -> Divergence:
    """Classify *local* against *remote* using their merge base.

    Pure: reads only the object store.  Both commits must be present.
    """
    if remote is None:
        return Divergence(
            SyncStatus.AHEAD, str(local),
            ahead=_summaries(repo.commits_between(local, None)),
        )
    if local == remote:
        return Divergence(SyncStatus.UP_TO_DATE, str(local), str(remote), str(local))

    base = repo.merge_base(local, remote)
    ahead = _summaries(repo.commits_between(local, remote))
    behind = _summaries(repo.commits_between(remote, local))
    base_sha = str(base) if base is not None else None

    if base == remote:
        status = SyncStatus.AHEAD
    elif base == local:
        status = SyncStatus.BEHIND
    else:
        status = SyncStatus.DIVERGED
    return Divergence(status, str(local), str(remote), base_sha, ahead, behind)


def check_divergence(
    repo: git.Repository, remote: PrivateRemote, branch: str, local: git.Oid,
) -> Divergence:
    """Fetch *remote* (read-only for the remote) and classify *local* against it."""
    remote_tip = remote.fetch(repo, branch)
    return classify(repo, local, remote_tip)
