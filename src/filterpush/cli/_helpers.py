"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import click

from ..config import CONFIG_NAME
from ..divergence import Divergence
from ..exceptions import DivergedError, FilterPushError
from ..publish import Publisher


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _say(msg):
    """Per-stage status line on stdout."""
    click.echo(msg)


def _progress_cb(ctx):
    """Return a transport progress callback if verbose mode is on, else None."""
    if not ctx.obj.get("verbose"):
        return None
    def _on_progress(msg):
        text = msg.decode() if isinstance(msg, bytes) else msg
        text = text.replace("\r", "\r\033[K")
        click.echo(text, nl=False, err=True)
    return _on_progress


def _dry_run_option(f):
    """Shared --dry-run/-n flag."""
    return click.option(
        "--dry-run", "-n", "dry_run", is_flag=True, default=False,
        help="Report what would be pushed without pushing anything.",
    )(f)


def _open_publisher(ctx, *, status=None) -> Publisher:
    """Build a Publisher from --repo/--config, echoing config warnings."""
    try:
        publisher = Publisher.from_path(
            ctx.obj.get("repo_path"),
            config_path=ctx.obj.get("config_path"),
            status=status,
            progress=_progress_cb(ctx),
        )
    except FilterPushError as exc:
        raise click.ClickException(str(exc))
    for warning in publisher.config.warnings:
        click.echo(f"WARNING: {warning}", err=True)
    return publisher


def _print_commits(title, commits):
    click.echo(title, err=True)
    for c in commits:
        click.echo(f"  {c}", err=True)


def _print_divergence(div: Divergence) -> None:
    """Show the commits unique to each side on stderr."""
    if div.ahead:
        _print_commits("Local commits not on remote:", div.ahead)
    if div.behind:
        _print_commits("Remote commits not local:", div.behind)


def _fail(exc: FilterPushError):
    """Convert a pipeline error into a ClickException (exit 1)."""
    if isinstance(exc, DivergedError):
        _print_divergence(exc.divergence)
    raise click.ClickException(str(exc))


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--repo", "-C", "repo_path", type=click.Path(file_okay=False),
              envvar="FILTERPUSH_REPO",
              help="Repository to publish (default: the one containing the cwd).")
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help=f"Config file (default: <repo>/{CONFIG_NAME}).")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, repo_path, config_path, verbose):
    """filterpush — publish one branch to two remotes.

    The private remote gets the branch verbatim.  The public remote gets a
    synthesized commit whose tree has the configured paths removed.  The
    public remote is never fetched from or merged.

    \b
    Quick start:
      cat .push-filter.conf
        private_remote=private
        public_remote=origin
        branch=main
        exclude=secrets
        exclude_glob=*.pem
      filterpush check
      filterpush excluded
      filterpush publish --dry-run
      filterpush publish
    """
    ctx.ensure_object(dict)
    ctx.obj["repo_path"] = repo_path
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
