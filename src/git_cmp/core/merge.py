from __future__ import annotations

import logging
from typing import Sequence, Union

from .models import CommitRef, MergeResult
from .resolver import first_parent
from .store import Store

logger = logging.getLogger(__name__)

TreeIsh = Union[CommitRef, str]


def _tree_id(obj: TreeIsh) -> str:
    return obj.tree_id if isinstance(obj, CommitRef) else obj


def resolve_conflicts_theirs(result: MergeResult) -> None:
    """
    Conflict policy: the "their" entry wins every conflicting path.
    Without a "their" entry (deleted on their side) the path is dropped.
    """
    for conflict in list(result.conflicts):
        if conflict.theirs is not None:
            result.stage(conflict.theirs)
            logger.info("conflict on %s resolved to theirs (%s)", conflict.path, conflict.theirs.oid)
        else:
            logger.info("conflict on %s resolved by deletion", conflict.path)
        result.clear_conflict(conflict)


def merge(store: Store, base: TreeIsh, ours: TreeIsh, theirs: TreeIsh) -> str:
    """Three-way merge of tree-ish inputs into a new tree id, never stopping on conflicts."""
    base_tree, our_tree, their_tree = _tree_id(base), _tree_id(ours), _tree_id(theirs)
    logger.debug("merge base=%s ours=%s theirs=%s", base_tree, our_tree, their_tree)

    with store.merge_trees(base_tree, our_tree, their_tree) as result:
        if result.has_conflicts:
            resolve_conflicts_theirs(result)
        return store.write_tree(result)


def squash(store: Store, commits: Sequence[CommitRef]) -> str:
    """
    Fold commits into one synthetic tree: starting from the first commit's
    tree, each following commit's own change (against its first parent) is
    merged on top of the running result.
    """
    if not commits:
        raise ValueError("squash needs at least one commit")

    acc = commits[0].tree_id
    for commit in commits[1:]:
        acc = merge(store, first_parent(store, commit), acc, commit)
    return acc
