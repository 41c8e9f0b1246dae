from __future__ import annotations

from ..core.git_runner import GitRunnerConfig, SafeGitRunner, require_ok
from ..core.limits import MAX_LINES_TEXT
from ..core.security import normalize_relpath


def diff_objects(
    root: str = ".",
    base: str = "HEAD~1",
    target: str = "HEAD",
    *,
    stat: bool = False,
    pathspec: list[str] | None = None,
    config: GitRunnerConfig | None = None,
) -> dict:
    """
    Render the diff between two tree-ish object ids (trees or commits),
    e.g. the pair produced by a comparison.
    """
    runner = SafeGitRunner(root, config=config)

    args = ["diff", "--no-color"]
    args.append("--stat" if stat else "--patch")
    args += [base, target]
    if pathspec:
        # pathspec entries must be clean strings
        cleaned = [normalize_relpath(p) for p in pathspec if (p or "").strip()]
        if cleaned:
            args += ["--", *cleaned]

    res = require_ok(
        runner.run(args),
        context="diff_objects(diff)",
    )
    lines = res.stdout.splitlines()
    truncated = res.output_truncated
    if len(lines) > MAX_LINES_TEXT:
        lines = lines[:MAX_LINES_TEXT]
        truncated = True

    return {
        "root": str(runner.root),
        "base": base,
        "target": target,
        "stat": stat,
        "pathspec": pathspec or [],
        "truncated": truncated,
        "diff": "\n".join(lines),
        "git": res.to_dict(),
    }
