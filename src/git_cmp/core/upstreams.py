from __future__ import annotations

import logging

from .errors import StoreOperationError
from .models import CommitRef
from .parsers import is_object_id, line_to_upstream
from .store import Store

logger = logging.getLogger(__name__)


def extract_upstreams(store: Store, commit: CommitRef) -> list[CommitRef]:
    """
    Commits referenced from `commit`'s message by "commit <sha>" lines or
    "(cherry picked from commit <sha>)" trailers, in message order.

    Best effort: candidates that are not object ids or not commits in the
    store are skipped. Duplicates are kept.
    """
    upstreams: list[CommitRef] = []
    for line in commit.message.splitlines():
        candidate = line_to_upstream(line)
        if candidate is None:
            continue
        if not is_object_id(candidate):
            logger.debug("skipping %r in %s: not an object id", candidate, commit.id)
            continue
        try:
            upstreams.append(store.find_commit(candidate))
        except StoreOperationError as e:
            logger.debug("skipping %r in %s: %s", candidate, commit.id, e)
    return upstreams
