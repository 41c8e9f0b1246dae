from .compare_tools import compare_branches, compare_commits

__all__ = [
    "compare_commits",
    "compare_branches",
]
