"""Per-repository ``.push-filter.conf`` loading.

The file is plain ``key=value`` text::

    # full content goes here
    private_remote=private
    # redacted mirror
    public_remote=origin
    branch=main
    exclude=secrets
    exclude=notes/private.md
    exclude_glob=*.pem
    exclude_glob=config/**/*.local

``#`` comment lines and blank lines are ignored.  ``exclude`` and
``exclude_glob`` may repeat; order is preserved.
"""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from pathlib import Path

from .exceptions import ConfigError
from .tree import _normalize_path

CONFIG_NAME = ".push-filter.conf"

DEFAULT_BRANCH = "main"

TEMPLATE_FIELDS = frozenset({"message", "subject", "sha", "short_sha", "branch"})

_KNOWN_KEYS = frozenset({
    "private_remote", "public_remote", "branch",
    "exclude", "exclude_glob", "message_template",
})


@dataclass
class FilterSpec:
    """Paths and glob patterns to drop from the public tree."""
    excludes: list[str] = field(default_factory=list)
    exclude_globs: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.excludes and not self.exclude_globs

    def describe(self) -> str:
        parts = self.excludes + self.exclude_globs
        return " ".join(parts) if parts else "none"


@dataclass
class PushConfig:
    """Remote names, branch, filter and optional public message template."""
    private_remote: str
    public_remote: str
    branch: str = DEFAULT_BRANCH
    filter: FilterSpec = field(default_factory=FilterSpec)
    message_template: str | None = None
    path: Path | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def load(cls, path: str | Path) -> PushConfig:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigError(
                f"No {CONFIG_NAME} found at {path}\n"
                "Create one with:\n"
                "  private_remote=<name>    # remote for full content\n"
                "  public_remote=<name>     # remote for filtered content\n"
                "  branch=<name>            # branch to push (default: main)\n"
                "  exclude=<path>           # one per line, paths to exclude from public\n"
                "  exclude_glob=<pattern>   # one per line, glob patterns to exclude"
            ) from None
        return cls.parse(text, path=path)

    @classmethod
    def parse(cls, text: str, *, path: Path | None = None) -> PushConfig:
        where = str(path) if path is not None else CONFIG_NAME
        values: dict[str, str] = {}
        filt = FilterSpec()
        warnings: list[str] = []

        for lineno, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                raise ConfigError(f"{where}:{lineno}: expected key=value, got {raw!r}")
            key = key.strip()
            value = value.strip()
            if key not in _KNOWN_KEYS:
                warnings.append(f"{where}:{lineno}: unknown config key {key!r}")
                continue
            if key == "exclude":
                try:
                    filt.excludes.append(_normalize_path(value))
                except ValueError as exc:
                    raise ConfigError(f"{where}:{lineno}: bad exclude path: {exc}") from None
            elif key == "exclude_glob":
                if not value.strip("/"):
                    raise ConfigError(f"{where}:{lineno}: empty exclude_glob")
                filt.exclude_globs.append(value)
            else:
                values[key] = value

        for required in ("private_remote", "public_remote"):
            if not values.get(required):
                raise ConfigError(f"{required} not set in {where}")
        if values["private_remote"] == values["public_remote"]:
            raise ConfigError(
                f"private_remote and public_remote are both {values['private_remote']!r}"
            )

        template = values.get("message_template") or None
        if template is not None:
            template = template.replace("\\n", "\n")
            _check_template(template, where)

        return cls(
            private_remote=values["private_remote"],
            public_remote=values["public_remote"],
            branch=values.get("branch") or DEFAULT_BRANCH,
            filter=filt,
            message_template=template,
            path=path,
            warnings=warnings,
        )


def _check_template(template: str, where: str) -> None:
    try:
        names = {
            name for _, name, _, _ in string.Formatter().parse(template)
            if name is not None
        }
    except ValueError as exc:
        raise ConfigError(f"{where}: bad message_template: {exc}") from None
    unknown = names - TEMPLATE_FIELDS
    if unknown:
        raise ConfigError(
            f"{where}: unknown message_template field(s): {', '.join(sorted(unknown))}"
        )
