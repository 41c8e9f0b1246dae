from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Protocol

from .errors import StoreOperationError
from .git_runner import GitRunnerConfig, SafeGitRunner, require_ok
from .models import CommitRef, ConflictEntry, IndexEntry, MergeResult
from .parsers import parse_commit_object, parse_raw_renames, parse_stage_entries

logger = logging.getLogger(__name__)

_REGULAR_MODES = {"100644", "100755"}
_HEX_SIZES = {"sha1": 40, "sha256": 64}


def pick_mode(ancestor: IndexEntry | None, ours: IndexEntry, theirs: IndexEntry) -> str:
    """Three-way file mode: a side that kept the ancestor's mode yields to the other side."""
    if ancestor is not None and theirs.mode == ancestor.mode:
        return ours.mode
    return theirs.mode


class Store(Protocol):
    """Object store operations the comparison engine relies on."""

    def resolve(self, name: str) -> CommitRef | None: ...

    def find_commit(self, oid: str) -> CommitRef: ...

    def merge_base(self, a: str, b: str) -> str: ...

    def merge_trees(self, base: str, ours: str, theirs: str) -> MergeResult: ...

    def write_tree(self, result: MergeResult) -> str: ...


class GitStore:
    """
    Store backed by git plumbing.

    Merges run in a scratch index (GIT_INDEX_FILE in a temporary directory):
      read-tree -m base ours theirs   trivial per-path merge, stages the rest
      diff -M base ours|theirs        rejoin renames split into modify/delete
      merge-file --object-id          content merge of both-modified files
      update-index --index-info       stage merged blobs / resolutions
      write-tree                      finalize
    Only unreferenced objects are written; refs and the real index are never touched.
    """

    def __init__(self, runner: SafeGitRunner, *, file_favor: str | None = "theirs") -> None:
        self.runner = runner
        self.file_favor = file_favor
        self._hexsz: int | None = None

    @classmethod
    def open(cls, root: str | Path = ".", config: GitRunnerConfig | None = None) -> "GitStore":
        return cls(SafeGitRunner(root, config=config))

    @property
    def root(self) -> Path:
        return self.runner.root

    def _git(
        self,
        args: list[str],
        *,
        context: str,
        read_only: bool = True,
        env: dict[str, str] | None = None,
        input: str | None = None,
    ) -> str:
        res = self.runner.run(args, read_only=read_only, env=env, input=input)
        if res.timed_out:
            raise StoreOperationError(f"{context} timed out after {self.runner.config.timeout_s}s")
        require_ok(res, context=context)
        if res.output_truncated:
            raise StoreOperationError(f"{context} output exceeded {self.runner.config.max_output_chars} chars")
        return res.stdout

    def resolve(self, name: str) -> CommitRef | None:
        if not name or name.startswith("-"):
            return None
        res = self.runner.run(["rev-parse", "--verify", "--quiet", f"{name}^{{commit}}"])
        if res.timed_out:
            raise StoreOperationError(f"rev-parse({name}) timed out after {self.runner.config.timeout_s}s")
        oid = res.stdout.strip()
        if res.exit_code != 0 or not oid:
            return None
        raw = self._git(["cat-file", "commit", oid], context=f"cat-file({oid})")
        return parse_commit_object(oid, raw)

    def find_commit(self, oid: str) -> CommitRef:
        commit = self.resolve(oid)
        if commit is None:
            raise StoreOperationError(f"find_commit({oid}) failed: no such commit")
        return commit

    def merge_base(self, a: str, b: str) -> str:
        res = self.runner.run(["merge-base", a, b])
        if res.exit_code == 1 and not res.stderr.strip():
            raise StoreOperationError(f"merge-base({a}, {b}) failed: no common ancestor")
        require_ok(res, context=f"merge-base({a}, {b})")
        return res.stdout.strip()

    def merge_trees(self, base: str, ours: str, theirs: str) -> MergeResult:
        scratch = tempfile.mkdtemp(prefix="git-cmp-")
        index_file = str(Path(scratch) / "index")
        env = {"GIT_INDEX_FILE": index_file}
        result = MergeResult(index=index_file, release=lambda: shutil.rmtree(scratch, ignore_errors=True))
        try:
            self._git(
                ["read-tree", "-i", "-m", "--aggressive", base, ours, theirs],
                read_only=False,
                env=env,
                context="merge_trees(read-tree)",
            )
            out = self._git(["ls-files", "-u", "-z"], env=env, context="merge_trees(ls-files)")
            conflicts = parse_stage_entries(out.split("\0"))
            conflicts = self._pair_renames(base, ours, theirs, conflicts, env)
            result.conflicts = self._merge_contents(conflicts, env)
        except BaseException:
            result.close()
            raise
        return result

    def _renames(self, base: str, tree: str) -> list[tuple[str, IndexEntry]]:
        out = self._git(
            ["diff", "--raw", "-z", "-M", "--no-abbrev", "--diff-filter=R", base, tree],
            context=f"merge_trees(renames {tree})",
        )
        return parse_raw_renames(out)

    def _pair_renames(
        self,
        base: str,
        ours: str,
        theirs: str,
        conflicts: list[ConflictEntry],
        env: dict[str, str],
    ) -> list[ConflictEntry]:
        """
        read-tree merges path by path, so a rename on one side shows up as a
        modify/delete conflict on the old path next to a clean add of the new
        one. Rejoin them: the conflict moves to the new path and the old path
        leaves the index.
        """
        candidates = {
            c.path: c for c in conflicts
            if c.ancestor is not None and (c.ours is None) != (c.theirs is None)
        }
        if not candidates:
            return conflicts

        moved: list[str] = []
        paired: list[ConflictEntry] = []
        for side, tree in (("theirs", theirs), ("ours", ours)):
            for old, new in self._renames(base, tree):
                conflict = candidates.get(old)
                if conflict is None or getattr(conflict, side) is not None:
                    continue
                ancestor = replace(conflict.ancestor, path=new.path)
                if side == "theirs":
                    entry = ConflictEntry(ancestor=ancestor, ours=replace(conflict.ours, path=new.path), theirs=new)
                else:
                    entry = ConflictEntry(ancestor=ancestor, ours=new, theirs=replace(conflict.theirs, path=new.path))
                logger.debug("%s side renamed %s -> %s", side, old, new.path)
                del candidates[old]
                moved.append(old)
                paired.append(entry)

        if not moved:
            return conflicts

        null_oid = "0" * self._hex_size()
        self._git(
            ["update-index", "-z", "--index-info"],
            read_only=False,
            env=env,
            input="".join(f"0 {null_oid}\t{path}\0" for path in moved),
            context="merge_trees(renames)",
        )
        return [c for c in conflicts if c.path not in moved] + paired

    def _merge_contents(self, conflicts: list[ConflictEntry], env: dict[str, str]) -> list[ConflictEntry]:
        remaining: list[ConflictEntry] = []
        records: list[str] = []
        for conflict in conflicts:
            merged = self._merge_entry(conflict)
            if merged is None:
                remaining.append(conflict)
                continue
            mode, oid = merged
            logger.debug("merged %s -> %s %s", conflict.path, mode, oid)
            records.append(f"{mode} {oid} 0\t{conflict.path}\0")

        if records:
            self._git(
                ["update-index", "-z", "--index-info"],
                read_only=False,
                env=env,
                input="".join(records),
                context="merge_trees(update-index)",
            )
        return remaining

    def _merge_entry(self, conflict: ConflictEntry) -> tuple[str, str] | None:
        """(mode, blob id) of a clean or favoured merge, or None when it stays a conflict."""
        ours, theirs, ancestor = conflict.ours, conflict.theirs, conflict.ancestor
        if ours is None or theirs is None:
            return None
        if ours.mode not in _REGULAR_MODES or theirs.mode not in _REGULAR_MODES:
            return None
        if ancestor is not None and ancestor.mode not in _REGULAR_MODES:
            return None

        mode = pick_mode(ancestor, ours, theirs)
        if ours.oid == theirs.oid:
            return mode, ours.oid
        if ancestor is not None and ours.oid == ancestor.oid:
            return mode, theirs.oid
        if ancestor is not None and theirs.oid == ancestor.oid:
            return mode, ours.oid
        if self.file_favor is None:
            return None

        oid = self._merge_file(ours, ancestor, theirs)
        return (mode, oid) if oid is not None else None

    def _merge_file(self, ours: IndexEntry, ancestor: IndexEntry | None, theirs: IndexEntry) -> str | None:
        """Blob id of a favoured content merge, or None when git could not produce one."""
        base_oid = ancestor.oid if ancestor is not None else self._empty_blob()
        res = self.runner.run(
            ["merge-file", "--object-id", f"--{self.file_favor}", ours.oid, base_oid, theirs.oid],
            read_only=False,
        )
        oid = res.stdout.strip()
        if res.exit_code != 0 or res.timed_out or not oid:
            logger.debug("merge-file left %s unmerged: %s", theirs.path, res.stderr.strip())
            return None
        return oid

    def _empty_blob(self) -> str:
        out = self._git(
            ["hash-object", "-w", "--stdin"],
            read_only=False,
            input="",
            context="hash-object(empty)",
        )
        return out.strip()

    def _hex_size(self) -> int:
        if self._hexsz is None:
            res = self.runner.run(["rev-parse", "--show-object-format"])
            self._hexsz = _HEX_SIZES.get(res.stdout.strip(), 40)
        return self._hexsz

    def write_tree(self, result: MergeResult) -> str:
        if result.has_conflicts:
            paths = ", ".join(c.path for c in result.conflicts)
            raise StoreOperationError(f"write_tree refused: unresolved conflicts ({paths})")

        env = {"GIT_INDEX_FILE": str(result.index)}
        if result.resolutions:
            null_oid = "0" * self._hex_size()
            records = []
            for path, entry in result.resolutions.items():
                if entry is None:
                    records.append(f"0 {null_oid}\t{path}\0")
                else:
                    records.append(f"{entry.mode} {entry.oid} 0\t{path}\0")
            self._git(
                ["update-index", "-z", "--index-info"],
                read_only=False,
                env=env,
                input="".join(records),
                context="write_tree(update-index)",
            )
            result.resolutions.clear()

        return self._git(["write-tree"], read_only=False, env=env, context="write_tree").strip()
