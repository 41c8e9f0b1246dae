from __future__ import annotations

import logging
from typing import Sequence

from .errors import UnresolvedReferenceError
from .merge import merge, squash
from .models import ComparisonResult
from .resolver import first_parent, require_revisions
from .store import Store
from .upstreams import extract_upstreams

logger = logging.getLogger(__name__)

DEFAULT_OUR = "HEAD"
DEFAULT_UPSTREAM = "main"
DEFAULT_BRANCH = "HEAD"


def cmp_commits(store: Store, names: Sequence[str], autofetch: bool = False) -> ComparisonResult:
    """
    Commit-range mode: names are <other> [<our>...].

    base   = <other> replayed onto <our>'s parent
    target = all <our> commits (plus autofetched upstreams) squashed
    """
    names = list(names)
    if not names:
        raise ValueError("commit mode needs at least the <other> revision")
    if not autofetch and len(names) < 2:
        names.append(DEFAULT_OUR)

    commits = require_revisions(store, names)

    if autofetch:
        upstreams = extract_upstreams(store, commits[0])
        logger.info("autofetch found %d upstream commit(s) in %s", len(upstreams), commits[0].id)
        commits.extend(upstreams)

    if len(commits) < 2:
        raise UnresolvedReferenceError(
            [], message=f"No commit to compare {commits[0].id} against: none given and none autofetched."
        )

    other, our = commits[0], commits[1]
    our_parent = first_parent(store, our)
    base = first_parent(store, other)

    merged = merge(store, base, our_parent, other)
    squashed = squash(store, commits[1:])
    logger.info("compare commits: %s..%s", merged, squashed)
    return ComparisonResult(base=merged, target=squashed)


def cmp_branches(store: Store, names: Sequence[str]) -> ComparisonResult:
    """
    Branch mode: names are <other> [<upstream> [<branch>]].

    base   = <other>'s own work merged onto the fork point of <branch> and <upstream>
    target = <branch> itself (a commit id)
    """
    names = list(names)
    if not 1 <= len(names) <= 3:
        raise ValueError(f"branch mode takes 1 to 3 revisions, got {len(names)}")
    if len(names) < 2:
        names.append(DEFAULT_UPSTREAM)
    if len(names) < 3:
        names.append(DEFAULT_BRANCH)

    other, upstream, our = require_revisions(store, names)

    our_base = store.find_commit(store.merge_base(our.id, upstream.id))
    their_base = store.find_commit(store.merge_base(other.id, our_base.id))
    logger.debug("branch mode: our_base=%s their_base=%s", our_base.id, their_base.id)

    merged = merge(store, their_base, our_base, other)
    logger.info("compare branches: %s..%s", merged, our.id)
    # the live branch tip is the target, not <upstream>
    return ComparisonResult(base=merged, target=our.id)
