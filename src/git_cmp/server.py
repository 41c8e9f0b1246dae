from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from git_cmp.resources import diff_objects
from git_cmp.tools import compare_branches, compare_commits
from git_cmp.tools.common import DEFAULT_CONFIG

mcp = FastMCP("git-cmp")


@mcp.tool()
def compare_commits_tool(
    revisions: list[str],
    root: str = ".",
    autofetch: bool = False,
    with_diff: bool = True,
) -> dict:
    return compare_commits(revisions=revisions, root=root, autofetch=autofetch, with_diff=with_diff)


@mcp.tool()
def compare_branches_tool(revisions: list[str], root: str = ".", with_diff: bool = True) -> dict:
    return compare_branches(revisions=revisions, root=root, with_diff=with_diff)


@mcp.tool()
def diff_objects_tool(
    base: str,
    target: str,
    root: str = ".",
    stat: bool = False,
    pathspec: list[str] | None = None,
) -> dict:
    return diff_objects(root=root, base=base, target=target, stat=stat, pathspec=pathspec, config=DEFAULT_CONFIG)


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
