"""Shared fixtures for filterpush tests."""

import os

import pytest
from click.testing import CliRunner
from dulwich.index import build_index_from_tree
from dulwich.objects import Commit
from dulwich.repo import Repo as DulwichRepo

from filterpush import _compat as git
from filterpush.config import CONFIG_NAME
from filterpush.tree import rebuild_tree, walk_tree

DEFAULT_CONFIG = """\
# test config
private_remote=private
public_remote=origin
branch=main
exclude=secrets
"""


def make_commit(repo, tree, parents, message, when):
    """Write a commit object with a fixed identity; no ref is touched."""
    c = Commit()
    c.tree = tree.raw
    c.parents = [p.raw for p in parents]
    c.author = c.committer = b"Test User <test@example.com>"
    c.author_time = c.commit_time = when
    c.author_timezone = c.commit_timezone = 0
    c.encoding = b"UTF-8"
    c.message = message.encode() + b"\n"
    repo.object_store.add_object(c)
    return git.Oid(c.id)


def flatten_tree(repo, tree_oid):
    """Return ``{path: (oid, filemode)}`` for every non-directory entry."""
    result = {}
    for dirpath, _dirs, files in walk_tree(repo, tree_oid):
        for f in files:
            path = f"{dirpath}/{f.name}" if dirpath else f.name
            result[path] = (f.oid, f.filemode)
    return result


def remote_ref(path, branch="main"):
    """Return the hex sha of refs/heads/<branch> in a bare repo, or None."""
    repo = DulwichRepo(path)
    try:
        return repo.refs[f"refs/heads/{branch}".encode()].decode()
    except KeyError:
        return None
    finally:
        repo.close()


class Workspace:
    """A non-bare repository on 'main' with 'private' and 'origin' bare remotes."""

    def __init__(self, tmp_path):
        self.root = tmp_path / "work"
        self.repo = git.init_repository(str(self.root))
        self.repo.set_head_branch("main")
        self.private_path = str(tmp_path / "private.git")
        self.public_path = str(tmp_path / "public.git")
        DulwichRepo.init_bare(self.private_path, mkdir=True)
        DulwichRepo.init_bare(self.public_path, mkdir=True)
        config = self.repo._repo.get_config()
        config.set((b"remote", b"private"), b"url", self.private_path.encode())
        config.set((b"remote", b"origin"), b"url", self.public_path.encode())
        config.write_to_path()
        self._clock = 1_700_000_000
        self.write_config(DEFAULT_CONFIG)

    @property
    def config_path(self):
        return self.root / CONFIG_NAME

    def write_config(self, text):
        self.config_path.write_text(text)

    @property
    def head(self):
        return self.repo.get_ref("refs/heads/main")

    def tree_of(self, commit_oid):
        return self.repo[commit_oid].tree_id

    def new_commit(self, writes, message, *, removes=(), parent="head"):
        """Create a commit on top of *parent* (default: main) without moving refs."""
        if parent == "head":
            parent = self.head
        base = self.tree_of(parent) if parent is not None else None
        tree = rebuild_tree(self.repo, base, writes, set(removes))
        self._clock += 60
        parents = [parent] if parent is not None else []
        return make_commit(self.repo, tree, parents, message, self._clock)

    def commit(self, writes, message, *, removes=()):
        """Commit on main and check the result out into the working tree."""
        oid = self.new_commit(writes, message, removes=removes)
        self.repo.set_ref("refs/heads/main", oid)
        self.checkout(oid, removes)
        return oid

    def checkout(self, commit_oid, removes=()):
        for path in removes:
            target = self.root / path
            if target.is_file():
                target.unlink()
        index_path = self.repo._repo.index_path()
        if os.path.exists(index_path):
            os.remove(index_path)
        build_index_from_tree(
            str(self.root), index_path, self.repo.object_store,
            self.tree_of(commit_oid).raw,
        )

    def push_private(self, oid, expected=None):
        """Point the private remote's main at *oid* behind the pipeline's back."""
        self.repo.push_ref(self.private_path, "refs/heads/main", oid, expected=expected)

    def push_public(self, oid, expected=None):
        self.repo.push_ref(self.public_path, "refs/heads/main", oid, expected=expected)


@pytest.fixture
def workspace(tmp_path):
    return Workspace(tmp_path)


@pytest.fixture
def seeded(workspace):
    """Workspace with one commit containing public files and a secrets/ dir."""
    workspace.commit(
        {
            "README.md": b"# project\n",
            "src/app.py": b"print('hi')\n",
            "secrets/token.txt": b"s3cret\n",
            "secrets/keys/id_rsa": b"-----BEGIN-----\n",
        },
        "Initial commit",
    )
    return workspace


@pytest.fixture
def bare_repo(tmp_path):
    """A bare repository for object-level tests."""
    return git.init_repository(str(tmp_path / "objects.git"), bare=True)


@pytest.fixture
def runner():
    return CliRunner()
