from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator


@dataclass(frozen=True)
class GitRunResult:
    argv: list[str]
    root: str
    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int
    timed_out: bool
    output_truncated: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "argv": self.argv,
            "root": self.root,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
            "timed_out": self.timed_out,
            "output_truncated": self.output_truncated,
        }


@dataclass(frozen=True)
class CommitRef:
    id: str
    tree_id: str
    parent_ids: tuple[str, ...] = ()
    message: str = ""

    @property
    def first_parent_id(self) -> str | None:
        return self.parent_ids[0] if self.parent_ids else None


@dataclass(frozen=True)
class IndexEntry:
    path: str
    mode: str
    oid: str


@dataclass(frozen=True)
class ConflictEntry:
    ancestor: IndexEntry | None = None
    ours: IndexEntry | None = None
    theirs: IndexEntry | None = None

    @property
    def path(self) -> str:
        entry = self.ancestor or self.ours or self.theirs
        if entry is None:
            raise ValueError("Conflict entry without any stage.")
        return entry.path


@dataclass
class MergeResult:
    """
    Working index of a single three-way merge.

    `index` is owned by the store that produced it (a temporary index file
    for git, a plain mapping for in-memory stores). Pending resolutions map a
    path to the entry that replaces its stages, or to None to drop the path.
    """
    index: Any
    conflicts: list[ConflictEntry] = field(default_factory=list)
    resolutions: dict[str, IndexEntry | None] = field(default_factory=dict)
    release: Callable[[], None] | None = None

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def stage(self, entry: IndexEntry) -> None:
        self.resolutions[entry.path] = entry

    def clear_conflict(self, conflict: ConflictEntry) -> None:
        path = conflict.path
        self.conflicts = [c for c in self.conflicts if c.path != path]
        # nothing staged means the path leaves the tree with its stages
        self.resolutions.setdefault(path, None)

    def close(self) -> None:
        if self.release is not None:
            release, self.release = self.release, None
            release()

    def __enter__(self) -> "MergeResult":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


@dataclass(frozen=True)
class ComparisonResult:
    base: str
    target: str

    def __iter__(self) -> Iterator[str]:
        return iter((self.base, self.target))

    def to_dict(self) -> dict[str, str]:
        return {"base": self.base, "target": self.target}
