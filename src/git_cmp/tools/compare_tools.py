from __future__ import annotations

from typing import Any

from .common import DEFAULT_CONFIG, make_store
from ..core.compare import cmp_branches, cmp_commits
from ..core.models import ComparisonResult
from ..resources.diff_objects import diff_objects


def _payload(
    mode: str,
    root: str,
    revisions: list[str],
    result: ComparisonResult,
    with_diff: bool,
) -> dict[str, Any]:
    out: dict[str, Any] = {
        "mode": mode,
        "root": root,
        "revisions": revisions,
        **result.to_dict(),
    }
    if with_diff:
        rendered = diff_objects(root=root, base=result.base, target=result.target, config=DEFAULT_CONFIG)
        out["diff"] = rendered["diff"]
        out["truncated"] = rendered["truncated"]
    return out


def compare_commits(
    revisions: list[str],
    root: str = ".",
    autofetch: bool = False,
    with_diff: bool = True,
) -> dict[str, Any]:
    """
    Compare a rewritten commit with its counterpart(s).
    revisions = [<other>, <our>...]; <our> defaults to HEAD unless autofetch
    discovers upstream commits from <other>'s message.
    """
    store = make_store(root)
    result = cmp_commits(store, revisions, autofetch=autofetch)
    return _payload("commit", str(store.root), list(revisions), result, with_diff)


def compare_branches(
    revisions: list[str],
    root: str = ".",
    with_diff: bool = True,
) -> dict[str, Any]:
    """
    Compare an old branch with the current one across a rebase.
    revisions = [<old branch>, <common upstream>=main, <current branch>=HEAD].
    """
    store = make_store(root)
    result = cmp_branches(store, revisions)
    return _payload("branch", str(store.root), list(revisions), result, with_diff)
