"""publish, check and excluded commands."""

from __future__ import annotations

import os

import click

from ..divergence import SyncStatus
from ..exceptions import FilterPushError
from ._helpers import (
    main,
    _dry_run_option,
    _fail,
    _open_publisher,
    _print_divergence,
    _say,
    _status,
)

# Exit codes for ``check``
_CHECK_EXIT = {
    SyncStatus.UP_TO_DATE: 0,
    SyncStatus.AHEAD: 0,
    SyncStatus.BEHIND: 1,
    SyncStatus.DIVERGED: 2,
}


# ---------------------------------------------------------------------------
# publish
# ---------------------------------------------------------------------------

@main.command()
@_dry_run_option
@click.pass_context
def publish(ctx, dry_run):
    """Push full content to the private remote and a filtered commit to the public one.

    Refuses to run with uncommitted changes, on the wrong branch, or when
    the local branch is behind or diverged from the private remote.
    """
    publisher = _open_publisher(ctx, status=_say)
    repo_name = os.path.basename(os.path.normpath(publisher.repo.path))
    prefix = "[dry-run] " if dry_run else ""
    _say(f"=== {prefix}Dual-remote push: {repo_name} ===")
    try:
        report = publisher.publish(dry_run=dry_run)
    except FilterPushError as exc:
        if publisher.report is not None:
            _status(ctx, f"Stopped in state {publisher.report.state.value}")
        _fail(exc)

    _status(ctx, " -> ".join(s.value for s in report.states))
    cfg = publisher.config
    if report.no_op:
        _say(f"Done. {cfg.public_remote}: no changes to publish.")
    elif dry_run:
        _say("Dry run complete; nothing was pushed.")
    else:
        _say(f"Done. {cfg.private_remote}: full push. {cfg.public_remote}: filtered.")


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------

@main.command()
@click.pass_context
def check(ctx):
    """Fetch the private remote and report whether the branch can be published.

    Exit status: 0 up to date or ahead, 1 behind, 2 diverged.
    """
    publisher = _open_publisher(ctx)
    cfg = publisher.config
    _say(f"Dual-remote project: syncing with {cfg.private_remote!r} only.")
    try:
        div = publisher.check()
    except FilterPushError as exc:
        _fail(exc)
    _say(div.describe(cfg.private_remote, cfg.branch))
    _print_divergence(div)
    ctx.exit(_CHECK_EXIT[div.status])


# ---------------------------------------------------------------------------
# excluded
# ---------------------------------------------------------------------------

@main.command()
@click.pass_context
def excluded(ctx):
    """List the paths the filter removes from the branch tree (no remote I/O)."""
    publisher = _open_publisher(ctx)
    try:
        filtered = publisher.preview()
    except FilterPushError as exc:
        _fail(exc)
    for path in filtered.excluded:
        click.echo(path)
    click.echo(f"Filtered tree: {filtered.tree} ({len(filtered.excluded)} path(s) excluded)", err=True)
