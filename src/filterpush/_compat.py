"""Thin object-model wrappers around dulwich.

The rest of filterpush talks to git through this module only: wrapped
tree/commit objects keyed by :class:`Oid`, a ``TreeBuilder`` for writing
trees, commit creation with explicit identities, ref access, merge-base
and history walks, and the two transport primitives (fetch, single-ref
push).  Nothing here reads or writes the working directory except
:meth:`Repository.has_uncommitted_changes`, which only inspects it.
"""

from __future__ import annotations

from dulwich.client import get_transport_and_path as _get_transport_and_path
from dulwich.graph import find_merge_base as _find_merge_base
from dulwich.objects import Blob as _DBlob
from dulwich.objects import Commit as _DCommit
from dulwich.objects import Tree as _DTree
from dulwich.porcelain import status as _porcelain_status
from dulwich.protocol import ZERO_SHA as _ZERO_SHA
from dulwich.repo import Repo as _DRepo

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

GIT_OBJECT_TREE = 2      # dulwich Tree.type_num
GIT_OBJECT_COMMIT = 1    # dulwich Commit.type_num

SYMREF_PREFIX = b"ref: "

# ---------------------------------------------------------------------------
# Oid
# ---------------------------------------------------------------------------

class Oid:
    """Hashable wrapper around dulwich hex SHA bytes."""

    __slots__ = ("_sha",)

    def __init__(self, sha: bytes):
        # dulwich SHAs are 40-char hex bytes (e.g. b"abc123...")
        self._sha = sha

    @classmethod
    def from_hex(cls, hexsha: str) -> Oid:
        return cls(hexsha.encode())

    def __str__(self) -> str:
        return self._sha.decode()

    def __repr__(self) -> str:
        return f"Oid({self._sha.decode()[:7]})"

    def __eq__(self, other):
        if isinstance(other, Oid):
            return self._sha == other._sha
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._sha)

    @property
    def raw(self) -> bytes:
        """The raw 40-char hex bytes (dulwich native format)."""
        return self._sha

    @property
    def short(self) -> str:
        return self._sha.decode()[:7]

# ---------------------------------------------------------------------------
# GitError
# ---------------------------------------------------------------------------

class GitError(Exception):
    """Low-level object or ref failure."""


class RefConflict(GitError):
    """A remote ref did not hold the value a push expected."""

    def __init__(self, ref: bytes, expected: bytes | None, actual: bytes | None):
        self.ref = ref
        self.expected = expected
        self.actual = actual
        exp = expected.decode()[:7] if expected else "(none)"
        act = actual.decode()[:7] if actual else "(none)"
        super().__init__(
            f"{ref.decode()} is at {act} on the remote, expected {exp}"
        )

# ---------------------------------------------------------------------------
# Wrapped objects
# ---------------------------------------------------------------------------

class _TreeEntry:
    """A tree entry: .name, .id, .filemode."""

    __slots__ = ("name", "id", "filemode")

    def __init__(self, name: str, oid: Oid, filemode: int):
        self.name = name
        self.id = oid
        self.filemode = filemode


class _WrappedObject:
    """Base wrapper for dulwich objects."""

    def __init__(self, dulwich_obj, repo: Repository):
        self._obj = dulwich_obj
        self._repo = repo

    @property
    def id(self) -> Oid:
        return Oid(self._obj.id)

    @property
    def type(self) -> int:
        return self._obj.type_num


class _WrappedBlob(_WrappedObject):
    @property
    def data(self) -> bytes:
        return self._obj.data


class _WrappedTree(_WrappedObject):
    def __getitem__(self, name: str) -> _TreeEntry:
        name_bytes = name.encode() if isinstance(name, str) else name
        mode, sha = self._obj[name_bytes]
        return _TreeEntry(name if isinstance(name, str) else name.decode(), Oid(sha), mode)

    def __iter__(self):
        for entry in self._obj.iteritems():
            yield _TreeEntry(entry.path.decode(), Oid(entry.sha), entry.mode)

    def __len__(self) -> int:
        return len(self._obj)


class _WrappedCommit(_WrappedObject):
    @property
    def tree_id(self) -> Oid:
        return Oid(self._obj.tree)

    @property
    def message(self) -> str:
        return self._obj.message.decode("utf-8", errors="replace")

    @property
    def subject(self) -> str:
        lines = self.message.splitlines()
        return lines[0] if lines else ""

    @property
    def author(self) -> str:
        return self._obj.author.decode("utf-8", errors="replace")

    @property
    def commit_time(self) -> int:
        return self._obj.commit_time

    @property
    def parent_ids(self) -> list[Oid]:
        return [Oid(p) for p in self._obj.parents]


def _wrap(dulwich_obj, repo: Repository) -> _WrappedObject:
    if isinstance(dulwich_obj, _DBlob):
        return _WrappedBlob(dulwich_obj, repo)
    elif isinstance(dulwich_obj, _DTree):
        return _WrappedTree(dulwich_obj, repo)
    elif isinstance(dulwich_obj, _DCommit):
        return _WrappedCommit(dulwich_obj, repo)
    return _WrappedObject(dulwich_obj, repo)

# ---------------------------------------------------------------------------
# TreeBuilder
# ---------------------------------------------------------------------------

class TreeBuilder:
    """Accumulates entries and writes a single dulwich Tree."""

    def __init__(self, repo: _DRepo, base_tree=None):
        self._repo = repo
        self._entries: dict[bytes, tuple[int, bytes]] = {}
        if base_tree is not None:
            obj = base_tree._obj if isinstance(base_tree, _WrappedTree) else base_tree
            for entry in obj.iteritems():
                self._entries[entry.path] = (entry.mode, entry.sha)

    def insert(self, name: str, oid: Oid, mode: int):
        self._entries[name.encode()] = (mode, oid.raw)

    def remove(self, name: str):
        key = name.encode()
        if key not in self._entries:
            raise GitError(f"Entry not found: {name}")
        del self._entries[key]

    def write(self) -> Oid:
        tree = _DTree()
        for name_bytes, (mode, sha) in self._entries.items():
            tree.add(name_bytes, mode, sha)
        self._repo.object_store.add_object(tree)
        return Oid(tree.id)

# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class Repository:
    """A dulwich ``Repo`` with the handful of operations filterpush needs."""

    def __init__(self, path_or_repo):
        if isinstance(path_or_repo, _DRepo):
            self._repo = path_or_repo
        else:
            self._repo = _DRepo(str(path_or_repo))

    @classmethod
    def discover(cls, start: str = ".") -> Repository:
        """Open the repository containing *start* (walking up to find ``.git``)."""
        return cls(_DRepo.discover(start))

    def __repr__(self) -> str:
        return f"Repository({self.path!r})"

    @property
    def path(self) -> str:
        """Working tree root (or the repo dir itself for bare repos)."""
        return self._repo.path

    @property
    def controldir(self) -> str:
        return self._repo.controldir()

    @property
    def object_store(self):
        return self._repo.object_store

    def __getitem__(self, oid: Oid) -> _WrappedObject:
        obj = self._repo.object_store[oid.raw]
        return _wrap(obj, self)

    def __contains__(self, oid: Oid) -> bool:
        return oid.raw in self._repo.object_store

    def create_blob(self, data: bytes) -> Oid:
        blob = _DBlob.from_string(data)
        self._repo.object_store.add_object(blob)
        return Oid(blob.id)

    def TreeBuilder(self, tree=None) -> TreeBuilder:
        return TreeBuilder(self._repo, tree)

    def create_commit_like(
        self,
        template: Oid,
        tree_oid: Oid,
        parent_oids: list[Oid],
        message: str,
    ) -> Oid:
        """Write a commit reusing the identities and timestamps of *template*.

        Identical (template, tree, parents, message) always yields the same
        commit id.  No ref is touched.
        """
        src = self._repo.object_store[template.raw]
        c = _DCommit()
        c.tree = tree_oid.raw
        c.parents = [p.raw for p in parent_oids]
        c.author = src.author
        c.committer = src.committer
        c.author_time = src.author_time
        c.commit_time = src.commit_time
        c.author_timezone = src.author_timezone
        c.commit_timezone = src.commit_timezone
        if src.encoding is not None:
            c.encoding = src.encoding
        msg = message.encode() if isinstance(message, str) else message
        if not msg.endswith(b"\n"):
            msg += b"\n"
        c.message = msg
        self._repo.object_store.add_object(c)
        return Oid(c.id)

    # -- refs ---------------------------------------------------------------

    def get_ref(self, name: str) -> Oid | None:
        """Resolve *name* to a commit id, or None if the ref does not exist."""
        try:
            return Oid(self._repo.refs[name.encode()])
        except KeyError:
            return None

    def set_ref(self, name: str, oid: Oid) -> None:
        self._repo.refs[name.encode()] = oid.raw

    def get_head_branch(self) -> str | None:
        """Return the branch HEAD points at, or None when detached."""
        raw = self._repo.refs.read_ref(b"HEAD")
        if raw is None or not raw.startswith(SYMREF_PREFIX):
            return None
        target = raw[len(SYMREF_PREFIX):].strip()
        if not target.startswith(b"refs/heads/"):
            return None
        return target[len(b"refs/heads/"):].decode()

    def set_head_branch(self, branch: str) -> None:
        self._repo.refs.set_symbolic_ref(b"HEAD", f"refs/heads/{branch}".encode())

    def remote_url(self, name: str) -> str | None:
        """Return ``remote.<name>.url`` from git config, or None if unset."""
        try:
            url = self._repo.get_config().get((b"remote", name.encode()), b"url")
        except KeyError:
            return None
        return url.decode() if isinstance(url, bytes) else url

    # -- history ------------------------------------------------------------

    def merge_base(self, a: Oid, b: Oid) -> Oid | None:
        bases = _find_merge_base(self._repo, [a.raw, b.raw])
        return Oid(bases[0]) if bases else None

    def commits_between(self, include: Oid, exclude: Oid | None) -> list[_WrappedCommit]:
        """Commits reachable from *include* but not from *exclude*, newest first."""
        walker = self._repo.get_walker(
            include=[include.raw],
            exclude=[exclude.raw] if exclude is not None else None,
        )
        return [_WrappedCommit(entry.commit, self) for entry in walker]

    # -- working tree -------------------------------------------------------

    def has_uncommitted_changes(self) -> list[str]:
        """Return tracked paths with staged or unstaged changes (untracked ignored)."""
        st = _porcelain_status(self._repo, untracked_files="no")
        changed: set[str] = set()
        for paths in st.staged.values():
            changed.update(_decode_path(p) for p in paths)
        changed.update(_decode_path(p) for p in st.unstaged)
        return sorted(changed)

    # -- transport ----------------------------------------------------------

    def fetch_refs(self, url: str, *, progress=None) -> dict[bytes, bytes]:
        """Fetch objects from *url* and return its advertised refs.

        Local refs are not modified; callers decide which tracking refs
        to move.
        """
        client, path = _get_transport_and_path(url)
        result = client.fetch(path, self._repo, progress=progress)
        refs = result.refs if hasattr(result, "refs") else result
        return {
            ref: sha
            for ref, sha in refs.items()
            if sha is not None and ref != b"HEAD" and not ref.endswith(b"^{}")
        }

    def push_ref(
        self,
        url: str,
        ref: str,
        new: Oid,
        *,
        expected: Oid | None,
        progress=None,
    ) -> None:
        """Set *ref* on *url* to *new*, only if it currently equals *expected*.

        *expected* of None means the ref must not exist yet.  Raises
        :class:`RefConflict` before any objects are sent when the remote
        ref holds anything else, and :class:`GitError` when the remote
        reports a failed update.
        """
        ref_bytes = ref.encode()
        want_old = expected.raw if expected is not None else None
        client, path = _get_transport_and_path(url)

        def update_refs(remote_refs):
            current = remote_refs.get(ref_bytes)
            if current == _ZERO_SHA:
                current = None
            if current != want_old:
                raise RefConflict(ref_bytes, want_old, current)
            return {ref_bytes: new.raw}

        result = client.send_pack(
            path, update_refs, self._repo.generate_pack_data, progress=progress,
        )
        ref_status = getattr(result, "ref_status", None) or {}
        error = ref_status.get(ref_bytes)
        if error:
            msg = error.decode() if isinstance(error, bytes) else str(error)
            raise GitError(f"remote rejected {ref}: {msg}")


def _decode_path(p) -> str:
    return p.decode("utf-8", errors="replace") if isinstance(p, bytes) else str(p)


def init_repository(path: str, bare: bool = False) -> Repository:
    """Create a new git repository."""
    if bare:
        return Repository(_DRepo.init_bare(path, mkdir=True))
    return Repository(_DRepo.init(path, mkdir=True))
