from __future__ import annotations

import hashlib
import json
import re
import subprocess
from pathlib import Path

import pytest

from git_cmp.core.errors import StoreOperationError
from git_cmp.core.models import CommitRef, ConflictEntry, IndexEntry, MergeResult


def _run(cmd: list[str], cwd: Path) -> str:
    out = subprocess.check_output(
        cmd,
        cwd=str(cwd),
        stderr=subprocess.STDOUT,
        text=True,
        encoding="utf-8",
        errors="replace",
    )
    return out.strip()


def git_version() -> tuple[int, ...]:
    out = subprocess.check_output(["git", "--version"], text=True)
    m = re.search(r"(\d+)\.(\d+)", out)
    return (int(m.group(1)), int(m.group(2))) if m else (0, 0)


# hunk-level content merges go through `git merge-file --object-id`
requires_merge_file_object_id = pytest.mark.skipif(
    git_version() < (2, 43), reason="git merge-file --object-id needs git >= 2.43"
)


@pytest.fixture()
def tmp_git_repo(tmp_path: Path) -> Path:
    """
    Creates a small deterministic git repo on branch `main`:
      - 1 initial commit
      - known author identity
      - a couple of files + subdir
    """
    repo = tmp_path / "repo"
    repo.mkdir()

    _run(["git", "init", "-q"], repo)
    _run(["git", "config", "user.email", "ci@example.com"], repo)
    _run(["git", "config", "user.name", "CI"], repo)
    _run(["git", "config", "commit.gpgsign", "false"], repo)

    (repo / "README.md").write_text("# dummy\n", encoding="utf-8")
    (repo / "src").mkdir()
    (repo / "src" / "app.py").write_text("print('hi')\n", encoding="utf-8")

    _run(["git", "add", "-A"], repo)
    _run(["git", "commit", "-q", "-m", "initial"], repo)
    _run(["git", "checkout", "-q", "-B", "main"], repo)

    return repo


@pytest.fixture()
def git(tmp_git_repo: Path):
    """Run a git command in the fixture repo and return its stripped output."""
    def _git(*args: str) -> str:
        return _run(["git", *args], tmp_git_repo)
    return _git


@pytest.fixture()
def commit_files(tmp_git_repo: Path, git):
    """
    Helper: write (or delete, with content None) files and commit them.
    Returns the new commit id.
    """
    def _commit(files: dict[str, str | None], message: str = "change") -> str:
        for relpath, text in files.items():
            p = tmp_git_repo / relpath
            if text is None:
                p.unlink()
                continue
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(text, encoding="utf-8")
        git("add", "-A")
        git("commit", "-q", "-m", message)
        return git("rev-parse", "HEAD")
    return _commit


def _digest(payload: object) -> str:
    return hashlib.sha1(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()


class MemoryStore:
    """
    In-memory Store: trees are {path: content} maps, blob ids are the
    contents themselves. Merges are per-path only (no hunk merging).
    Every call is recorded in `calls` as (operation, *args).
    """

    def __init__(self) -> None:
        self.commits: dict[str, CommitRef] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.refs: dict[str, str] = {}
        self.calls: list[tuple] = []

    # --- fixture building -------------------------------------------------

    def tree(self, files: dict[str, str]) -> str:
        tree_id = "tree-" + _digest(files)[:12]
        self.trees[tree_id] = dict(files)
        return tree_id

    def commit(
        self,
        files: dict[str, str],
        parents: tuple[CommitRef, ...] | list[CommitRef] = (),
        message: str = "",
        oid: str | None = None,
        ref: str | None = None,
    ) -> CommitRef:
        parent_ids = tuple(p.id for p in parents)
        oid = oid or _digest([files, parent_ids, message, len(self.commits)])
        c = CommitRef(id=oid, tree_id=self.tree(files), parent_ids=parent_ids, message=message)
        self.commits[oid] = c
        if ref:
            self.refs[ref] = oid
        return c

    def files(self, tree_id: str) -> dict[str, str]:
        return self.trees[tree_id]

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)

    # --- Store protocol ---------------------------------------------------

    def resolve(self, name: str) -> CommitRef | None:
        self.calls.append(("resolve", name))
        oid = self.refs.get(name, name)
        if oid in self.commits:
            return self.commits[oid]
        matches = [c for cid, c in self.commits.items() if len(oid) >= 4 and cid.startswith(oid)]
        return matches[0] if len(matches) == 1 else None

    def find_commit(self, oid: str) -> CommitRef:
        commit = self.resolve(oid)
        if commit is None:
            raise StoreOperationError(f"find_commit({oid}) failed: no such commit")
        return commit

    def _ancestry(self, oid: str) -> list[str]:
        order, queue = [], [oid]
        while queue:
            cur = queue.pop(0)
            if cur in order:
                continue
            order.append(cur)
            queue.extend(self.commits[cur].parent_ids)
        return order

    def merge_base(self, a: str, b: str) -> str:
        self.calls.append(("merge_base", a, b))
        theirs = set(self._ancestry(b))
        for oid in self._ancestry(a):
            if oid in theirs:
                return oid
        raise StoreOperationError(f"merge-base({a}, {b}) failed: no common ancestor")

    def merge_trees(self, base: str, ours: str, theirs: str) -> MergeResult:
        self.calls.append(("merge_trees", base, ours, theirs))
        b, o, t = self.trees[base], self.trees[ours], self.trees[theirs]
        merged: dict[str, str] = {}
        conflicts: list[ConflictEntry] = []
        for path in sorted(set(b) | set(o) | set(t)):
            bv, ov, tv = b.get(path), o.get(path), t.get(path)
            if ov == tv:
                value = ov
            elif ov == bv:
                value = tv
            elif tv == bv:
                value = ov
            else:
                conflicts.append(ConflictEntry(
                    ancestor=IndexEntry(path, "100644", bv) if bv is not None else None,
                    ours=IndexEntry(path, "100644", ov) if ov is not None else None,
                    theirs=IndexEntry(path, "100644", tv) if tv is not None else None,
                ))
                continue
            if value is not None:
                merged[path] = value
        return MergeResult(index=merged, conflicts=conflicts)

    def write_tree(self, result: MergeResult) -> str:
        self.calls.append(("write_tree",))
        if result.has_conflicts:
            raise StoreOperationError("write_tree refused: unresolved conflicts")
        files = dict(result.index)
        for path, entry in result.resolutions.items():
            if entry is None:
                files.pop(path, None)
            else:
                files[path] = entry.oid
        return self.tree(files)


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()
