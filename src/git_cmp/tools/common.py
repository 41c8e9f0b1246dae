from __future__ import annotations

from ..core.git_runner import GitRunnerConfig
from ..core.store import GitStore


# merges and full diffs need more headroom than single inspection calls
DEFAULT_CONFIG = GitRunnerConfig(timeout_s=60.0, max_output_chars=4_000_000)


def make_store(root: str = ".", config: GitRunnerConfig | None = None) -> GitStore:
    return GitStore.open(root, config=config or DEFAULT_CONFIG)
