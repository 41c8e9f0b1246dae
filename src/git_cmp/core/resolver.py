from __future__ import annotations

import logging
from typing import Sequence

from .errors import MalformedHistoryError, UnresolvedReferenceError
from .models import CommitRef
from .store import Store

logger = logging.getLogger(__name__)


def _resolve_each(store: Store, names: Sequence[str]) -> list[tuple[str, CommitRef | None]]:
    pairs = []
    for name in names:
        commit = store.resolve(name)
        if commit is None:
            logger.debug("revision %r did not resolve to a commit", name)
        pairs.append((name, commit))
    return pairs


def resolve_revisions(store: Store, names: Sequence[str]) -> list[CommitRef]:
    """
    Peel each name to a commit. Names that do not resolve are dropped,
    so callers must compare lengths (see require_revisions).
    """
    return [c for _, c in _resolve_each(store, names) if c is not None]


def require_revisions(store: Store, names: Sequence[str]) -> list[CommitRef]:
    pairs = _resolve_each(store, names)
    commits = [c for _, c in pairs if c is not None]
    if len(commits) != len(names):
        raise UnresolvedReferenceError([name for name, c in pairs if c is None])
    return commits


def first_parent(store: Store, commit: CommitRef) -> CommitRef:
    parent_id = commit.first_parent_id
    if parent_id is None:
        raise MalformedHistoryError(commit.id)
    return store.find_commit(parent_id)
