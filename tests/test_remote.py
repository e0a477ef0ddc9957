"""Tests for remote endpoints, the repository wrapper and the publish lock."""

import os

import pytest

from filterpush import LockedError, PreconditionError, PrivateRemote, PublicRemote
from filterpush import _compat as git
from filterpush._lock import publish_lock
from filterpush.remote import resolve_credentials, tracking_ref

from conftest import remote_ref


class TestRemoteConfig:
    def test_from_config(self, workspace):
        ws = workspace
        remote = PrivateRemote.from_config(ws.repo, "private")
        assert remote.name == "private"
        assert remote.url == ws.private_path
        assert remote.role == "private"
        assert PublicRemote.from_config(ws.repo, "origin").role == "public"

    def test_missing(self, workspace):
        with pytest.raises(PreconditionError, match="git remote add ghost"):
            PublicRemote.from_config(workspace.repo, "ghost")

    def test_tracking_ref(self):
        assert tracking_ref("origin", "main") == "refs/remotes/origin/main"


class TestPushRef:
    def test_create_then_update(self, seeded):
        ws = seeded
        first = ws.head
        ws.push_private(first)
        second = ws.commit({"x.txt": b"x"}, "second")
        ws.push_private(second, expected=first)
        assert remote_ref(ws.private_path) == str(second)

    def test_expected_mismatch_sends_nothing(self, seeded):
        ws = seeded
        first = ws.head
        ws.push_private(first)
        second = ws.commit({"x.txt": b"x"}, "second")
        with pytest.raises(git.RefConflict):
            ws.push_private(second, expected=None)
        assert remote_ref(ws.private_path) == str(first)

    def test_fetch_refs(self, seeded):
        ws = seeded
        ws.push_private(ws.head)
        refs = ws.repo.fetch_refs(ws.private_path)
        assert refs[b"refs/heads/main"] == ws.head.raw
        assert b"HEAD" not in refs


class TestRepository:
    def test_head_branch(self, workspace):
        assert workspace.repo.get_head_branch() == "main"

    def test_detached_head(self, seeded):
        ws = seeded
        with open(os.path.join(ws.repo.controldir, "HEAD"), "w") as f:
            f.write(str(ws.head) + "\n")
        assert ws.repo.get_head_branch() is None

    def test_remote_url(self, workspace):
        assert workspace.repo.remote_url("origin") == workspace.public_path
        assert workspace.repo.remote_url("nope") is None

    def test_clean_after_checkout(self, seeded):
        assert seeded.repo.has_uncommitted_changes() == []

    def test_dirty_file_reported(self, seeded):
        (seeded.root / "src" / "app.py").write_bytes(b"changed\n")
        assert seeded.repo.has_uncommitted_changes() == ["src/app.py"]

    def test_create_commit_like_is_deterministic(self, seeded):
        ws = seeded
        tree = ws.tree_of(ws.head)
        one = ws.repo.create_commit_like(ws.head, tree, [ws.head], "msg")
        two = ws.repo.create_commit_like(ws.head, tree, [ws.head], "msg")
        assert one == two
        assert ws.repo[one].author == ws.repo[ws.head].author

    def test_discover_from_subdirectory(self, seeded):
        repo = git.Repository.discover(str(seeded.root / "src"))
        assert repo.get_ref("refs/heads/main") == seeded.head


class TestCredentials:
    def test_non_https_unchanged(self):
        assert resolve_credentials("/srv/git/repo.git") == "/srv/git/repo.git"
        assert resolve_credentials("git@github.com:me/repo.git") == "git@github.com:me/repo.git"

    def test_existing_credentials_unchanged(self):
        url = "https://user:pw@example.com/repo.git"
        assert resolve_credentials(url) == url


class TestLock:
    def test_second_holder_fails_fast(self, workspace):
        controldir = workspace.repo.controldir
        with publish_lock(controldir):
            with pytest.raises(LockedError, match="already running"):
                with publish_lock(controldir):
                    pass

    def test_released_after_block(self, workspace):
        controldir = workspace.repo.controldir
        with publish_lock(controldir):
            pass
        with publish_lock(controldir):
            pass

    def test_released_after_error(self, workspace):
        controldir = workspace.repo.controldir
        with pytest.raises(RuntimeError):
            with publish_lock(controldir):
                raise RuntimeError("boom")
        with publish_lock(controldir):
            pass
