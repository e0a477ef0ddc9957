"""The dual-remote publish pipeline.

One run, four stages::

    checking-divergence -> pushing-private -> building-filtered-tree
        -> comparing-trees -> [synthesizing-commit -> pushing-public]

Full content goes to the private remote.  The public remote gets a single
synthesized commit whose tree is the branch tree minus the configured
exclusions and whose parent is the public branch's last known tip.  The
public remote is never fetched from: its tip comes from the local
tracking ref ``refs/remotes/<public>/<branch>``, which only this pipeline
moves after a successful public push.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from dulwich.errors import NotGitRepository

from . import _compat as git
from ._lock import publish_lock
from .config import CONFIG_NAME, PushConfig
from .divergence import Divergence, SyncStatus, check_divergence
from .exceptions import BehindError, DivergedError, PreconditionError, PushRejectedError, TransportError
from .filtered import FilteredTree, build_filtered_tree
from .remote import PrivateRemote, PublicRemote, branch_ref, tracking_ref

_MAX_DIRTY_SHOWN = 10


class PublishState(enum.Enum):
    START = "start"
    CHECKING_DIVERGENCE = "checking-divergence"
    ABORTED_DIVERGED = "aborted-diverged"
    PUSHING_PRIVATE = "pushing-private"
    ABORTED_PUSH_FAILED = "aborted-push-failed"
    BUILDING_FILTERED_TREE = "building-filtered-tree"
    COMPARING_TREES = "comparing-trees"
    NO_OP_DONE = "no-op-done"
    SYNTHESIZING_COMMIT = "synthesizing-commit"
    PUSHING_PUBLIC = "pushing-public"
    DONE = "done"


@dataclass
class PublishReport:
    """Everything a publish run decided, in the order it decided it."""
    branch: str
    dry_run: bool = False
    states: list[PublishState] = field(default_factory=lambda: [PublishState.START])
    local_sha: str | None = None
    divergence: Divergence | None = None
    private_pushed: bool = False
    filtered: FilteredTree | None = None
    public_tip: str | None = None
    public_commit: str | None = None
    public_pushed: bool = False

    @property
    def state(self) -> PublishState:
        return self.states[-1]

    @property
    def ok(self) -> bool:
        return self.state in (PublishState.DONE, PublishState.NO_OP_DONE)

    @property
    def no_op(self) -> bool:
        return self.state is PublishState.NO_OP_DONE


def render_message(
    template: str | None, head: git.Oid, message: str, branch: str,
) -> str:
    """Return the public commit message.

    Without a template the local head's message is reused verbatim.
    """
    if template is None:
        return message
    lines = message.splitlines()
    return template.format(
        message=message.rstrip("\n"),
        subject=lines[0] if lines else "",
        sha=str(head),
        short_sha=head.short,
        branch=branch,
    )


def synthesize_public_commit(
    repo: git.Repository,
    filtered: FilteredTree,
    head: git.Oid,
    public_tip: git.Oid | None,
    *,
    branch: str,
    template: str | None = None,
) -> git.Oid:
    """Wrap *filtered* in a commit chained onto *public_tip*.

    Identities and timestamps come from *head*, so the same inputs always
    give the same commit id.  No ref is moved.
    """
    head_commit = repo[head]
    message = render_message(template, head, head_commit.message, branch)
    parents = [public_tip] if public_tip is not None else []
    return repo.create_commit_like(head, filtered.tree, parents, message)


def open_repository(path: str | Path | None = None) -> git.Repository:
    """Open the repository at *path*, or the one containing the cwd."""
    try:
        if path is None:
            return git.Repository.discover(".")
        return git.Repository.discover(str(path))
    except NotGitRepository:
        raise PreconditionError(
            f"Not inside a git repository: {path or Path.cwd()}"
        ) from None


class Publisher:
    """Runs the publish pipeline for one repository and config.

    *private* and *public* default to remotes resolved by name from git
    config.  *status* receives one human-readable line per stage.
    """

    def __init__(
        self,
        repo: git.Repository,
        config: PushConfig,
        *,
        private: PrivateRemote | None = None,
        public: PublicRemote | None = None,
        status: Callable[[str], None] | None = None,
        progress: Callable | None = None,
    ):
        self.repo = repo
        self.config = config
        self._private = private
        self._public = public
        self._status = status
        self._progress = progress
        self.report: PublishReport | None = None

    @classmethod
    def from_path(
        cls, path: str | Path | None = None, *, config_path: str | Path | None = None, **kwargs,
    ) -> Publisher:
        repo = open_repository(path)
        config = PushConfig.load(config_path or Path(repo.path) / CONFIG_NAME)
        return cls(repo, config, **kwargs)

    # -- helpers ------------------------------------------------------------

    def _say(self, msg: str) -> None:
        if self._status is not None:
            self._status(msg)

    def _enter(self, state: PublishState) -> None:
        self.report.states.append(state)

    @property
    def branch(self) -> str:
        return self.config.branch

    def _resolve_remotes(self) -> tuple[PrivateRemote, PublicRemote]:
        if self._private is None:
            self._private = PrivateRemote.from_config(
                self.repo, self.config.private_remote, progress=self._progress)
        if self._public is None:
            self._public = PublicRemote.from_config(
                self.repo, self.config.public_remote, progress=self._progress)
        return self._private, self._public

    def _branch_head(self) -> git.Oid:
        current = self.repo.get_head_branch()
        if current != self.branch:
            raise PreconditionError(
                f"Expected to be on branch {self.branch!r}, but on {current or '(detached HEAD)'!r}"
            )
        head = self.repo.get_ref(branch_ref(self.branch))
        if head is None:
            raise PreconditionError(f"Unknown branch: {self.branch!r} has no commits")
        return head

    def _require_clean(self) -> None:
        dirty = self.repo.has_uncommitted_changes()
        if dirty:
            shown = "\n".join(f"  {p}" for p in dirty[:_MAX_DIRTY_SHOWN])
            more = len(dirty) - _MAX_DIRTY_SHOWN
            if more > 0:
                shown += f"\n  ... and {more} more"
            raise PreconditionError(
                f"Uncommitted changes. Commit or stash first.\n{shown}"
            )

    def _public_tip(self) -> git.Oid | None:
        tip = self.repo.get_ref(tracking_ref(self.config.public_remote, self.branch))
        if tip is not None and tip not in self.repo:
            raise PreconditionError(
                f"{tracking_ref(self.config.public_remote, self.branch)} points at "
                f"missing commit {tip.short}"
            )
        return tip

    # -- operations ---------------------------------------------------------

    def check(self) -> Divergence:
        """Fetch the private remote and classify the local branch; push nothing."""
        private, _public = self._resolve_remotes()
        head = self._branch_head()
        return check_divergence(self.repo, private, self.branch, head)

    def preview(self) -> FilteredTree:
        """Build the filtered tree for the branch head without any remote I/O."""
        head = self.repo.get_ref(branch_ref(self.branch))
        if head is None:
            raise PreconditionError(f"Unknown branch: {self.branch!r} has no commits")
        return build_filtered_tree(self.repo, self.repo[head].tree_id, self.config.filter)

    def publish(self, *, dry_run: bool = False) -> PublishReport:
        """Run the full pipeline under the repository's publish lock.

        Raises a :class:`~filterpush.exceptions.FilterPushError` subclass on
        any abort; :attr:`report` still describes how far the run got.
        """
        self.report = PublishReport(branch=self.branch, dry_run=dry_run)
        with publish_lock(self.repo.controldir):
            private, public = self._resolve_remotes()
            head = self._branch_head()
            self._require_clean()
            public_tip = self._public_tip()
            self.report.local_sha = str(head)
            self._say(f"Private: {private.name} ({self.branch}, full content)")
            self._say(f"Public:  {public.name} ({self.branch}, filtered)")
            self._say(f"Excluding: {self.config.filter.describe()}")
            self._push_private(private, head, dry_run)
            self._push_public(public, head, public_tip, dry_run)
        return self.report

    def _push_private(self, private: PrivateRemote, head: git.Oid, dry_run: bool) -> None:
        self._enter(PublishState.CHECKING_DIVERGENCE)
        self._say(f"Syncing with {private.name}...")
        divergence = check_divergence(self.repo, private, self.branch, head)
        self.report.divergence = divergence
        self._say(divergence.describe(private.name, self.branch))

        if divergence.status is SyncStatus.BEHIND:
            self._enter(PublishState.ABORTED_DIVERGED)
            raise BehindError(
                f"Local {self.branch} is behind {private.name}/{self.branch}. "
                f"Fast-forward with 'git merge --ff-only {private.name}/{self.branch}', then retry.",
                divergence,
            )
        if divergence.status is SyncStatus.DIVERGED:
            self._enter(PublishState.ABORTED_DIVERGED)
            raise DivergedError(
                f"Local and {private.name}/{self.branch} have diverged!\n"
                f"  Local:  {divergence.local_sha}\n"
                f"  Remote: {divergence.remote_sha}\n"
                f"  Base:   {divergence.base_sha or 'none'}\n"
                f"Run 'git pull --rebase {private.name} {self.branch}' to resolve, then retry.",
                divergence,
            )

        self._enter(PublishState.PUSHING_PRIVATE)
        if divergence.status is SyncStatus.UP_TO_DATE:
            self._say(f"{private.name}/{self.branch} already at {head.short}; nothing to push.")
            return
        if dry_run:
            self._say(f"[dry-run] Would push {self.branch} ({head.short}) to {private.name}")
            return
        expected = git.Oid.from_hex(divergence.remote_sha) if divergence.remote_sha else None
        try:
            private.push(self.repo, self.branch, head, expected=expected)
        except (TransportError, PushRejectedError):
            self._enter(PublishState.ABORTED_PUSH_FAILED)
            raise
        self.repo.set_ref(tracking_ref(private.name, self.branch), head)
        self.report.private_pushed = True
        self._say(f"Pushed {self.branch} ({head.short}) to {private.name}.")

    def _push_public(
        self, public: PublicRemote, head: git.Oid, public_tip: git.Oid | None, dry_run: bool,
    ) -> None:
        self._enter(PublishState.BUILDING_FILTERED_TREE)
        filtered = build_filtered_tree(self.repo, self.repo[head].tree_id, self.config.filter)
        self.report.filtered = filtered
        if filtered.excluded:
            self._say(f"Filtered tree {filtered.tree.short} excludes {len(filtered.excluded)} path(s).")
        else:
            self._say(f"Filtered tree {filtered.tree.short} (nothing matched the filter).")

        self._enter(PublishState.COMPARING_TREES)
        self.report.public_tip = str(public_tip) if public_tip is not None else None
        if public_tip is not None and self.repo[public_tip].tree_id == filtered.tree:
            self._enter(PublishState.NO_OP_DONE)
            self._say(f"{public.name} already up to date.")
            return
        if public_tip is None:
            self._say(f"No known {public.name}/{self.branch}; the public commit will have no parent.")
        else:
            self._say(f"Filtered tree differs from {public.name}/{self.branch} ({public_tip.short}).")

        self._enter(PublishState.SYNTHESIZING_COMMIT)
        commit = synthesize_public_commit(
            self.repo, filtered, head, public_tip,
            branch=self.branch, template=self.config.message_template,
        )
        self.report.public_commit = str(commit)

        self._enter(PublishState.PUSHING_PUBLIC)
        if dry_run:
            self._say(f"[dry-run] Would push filtered commit {commit.short} to {public.name}/{self.branch}")
            self._enter(PublishState.DONE)
            return
        try:
            public.push(self.repo, self.branch, commit, expected=public_tip)
        except (TransportError, PushRejectedError):
            self._enter(PublishState.ABORTED_PUSH_FAILED)
            raise
        self.repo.set_ref(tracking_ref(public.name, self.branch), commit)
        self.report.public_pushed = True
        self._enter(PublishState.DONE)
        self._say(f"Pushed filtered commit {commit.short} to {public.name}/{self.branch}.")


def publish(
    path: str | Path | None = None,
    *,
    config_path: str | Path | None = None,
    dry_run: bool = False,
    status: Callable[[str], None] | None = None,
) -> PublishReport:
    """Publish the repository at *path* using its ``.push-filter.conf``."""
    publisher = Publisher.from_path(path, config_path=config_path, status=status)
    return publisher.publish(dry_run=dry_run)
