from __future__ import annotations

import re
from typing import Iterable

from .models import CommitRef, ConflictEntry, IndexEntry

_OBJECT_ID = re.compile(r"[0-9a-fA-F]{4,64}")


def is_object_id(text: str) -> bool:
    """Full or abbreviated hex object id (SHA-1 or SHA-256)."""
    return bool(_OBJECT_ID.fullmatch(text or ""))


def parse_commit_object(oid: str, raw: str) -> CommitRef:
    """
    Parses `git cat-file commit <oid>` output:
      tree <tree>
      parent <p1>
      parent <p2>
      author ...
      committer ...
      <other headers, possibly continued by lines starting with a space>

      <message>
    """
    header, sep, message = raw.partition("\n\n")
    tree_id = ""
    parents: list[str] = []
    for line in header.splitlines():
        if line.startswith(" "):
            continue
        key, _, value = line.partition(" ")
        if key == "tree":
            tree_id = value.strip()
        elif key == "parent":
            parents.append(value.strip())
    if not tree_id:
        raise ValueError(f"Commit {oid} has no tree header.")
    return CommitRef(id=oid, tree_id=tree_id, parent_ids=tuple(parents), message=message if sep else "")


def parse_stage_entries(records: Iterable[str]) -> list[ConflictEntry]:
    """
    Parses `git ls-files -u -z` records into per-path conflicts:
      <mode> SP <oid> SP <stage> TAB <path>
    Stages 1/2/3 are ancestor/ours/theirs. Order follows first appearance.
    """
    grouped: dict[str, dict[int, IndexEntry]] = {}
    for raw in records:
        if not raw:
            continue
        meta, _, path = raw.partition("\t")
        mode, oid, stage = meta.split()
        grouped.setdefault(path, {})[int(stage)] = IndexEntry(path=path, mode=mode, oid=oid)

    return [
        ConflictEntry(ancestor=stages.get(1), ours=stages.get(2), theirs=stages.get(3))
        for stages in grouped.values()
    ]


def parse_raw_renames(raw: str) -> list[tuple[str, IndexEntry]]:
    """
    Parses `git diff --raw -z -M --no-abbrev` output into (old path, new entry):
      :<old mode> SP <new mode> SP <old oid> SP <new oid> SP R<score> NUL <old> NUL <new> NUL
    Non-rename records are skipped.
    """
    fields = raw.split("\0")
    renames: list[tuple[str, IndexEntry]] = []
    i = 0
    while i < len(fields):
        meta = fields[i]
        if not meta.startswith(":"):
            i += 1
            continue
        _, new_mode, _, new_oid, status = meta[1:].split()
        if status[:1] in ("R", "C"):
            old, new = fields[i + 1], fields[i + 2]
            if status.startswith("R"):
                renames.append((old, IndexEntry(path=new, mode=new_mode, oid=new_oid)))
            i += 3
        else:
            i += 2
    return renames


def line_to_upstream(line: str) -> str | None:
    """
    Candidate upstream hash from one commit message line:
      commit <sha1>
      (cherry picked from commit <sha1>)
    """
    words = line.split()
    if not words:
        return None
    if words[0] == "commit":
        return words[1] if len(words) > 1 else None
    if words[:2] == ["(cherry", "picked"] and len(words) > 4:
        return words[4][:-1]
    return None
