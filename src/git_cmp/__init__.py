"""Diff rewritten git history against a synthetic comparison basis."""

from .core.compare import cmp_branches, cmp_commits
from .core.models import ComparisonResult
from .core.store import GitStore

__version__ = "0.1.0"

__all__ = ["cmp_commits", "cmp_branches", "ComparisonResult", "GitStore", "__version__"]
