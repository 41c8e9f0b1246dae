"""Command line entry point: `git-cmp commit ...` and `git-cmp branch ...`."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from git_cmp import __version__
from git_cmp.core.compare import cmp_branches, cmp_commits
from git_cmp.core.errors import GitCmpError
from git_cmp.core.models import ComparisonResult
from git_cmp.tools.common import make_store

app = typer.Typer(
    help="Diff rewritten history (rebases, amends, cherry-picks) against a synthetic comparison basis.",
    no_args_is_help=True,
    add_completion=False,
)
console = Console(stderr=True)

logger = logging.getLogger(__name__)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    pass


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _fail(error: Exception) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    raise typer.Exit(1)


def _show(root: Path, result: ComparisonResult, ids: bool, stat: bool) -> None:
    if ids:
        typer.echo(f"{result.base} {result.target}")
        return

    argv = ["git", "diff"]
    if stat:
        argv.append("--stat")
    argv += [result.base, result.target]
    logger.debug("launching %s", " ".join(argv))
    try:
        completed = subprocess.run(argv, cwd=str(root))
    except OSError as e:
        _fail(e)
    if completed.returncode != 0:
        raise typer.Exit(completed.returncode)


@app.command()
def commit(
    commits: List[str] = typer.Argument(
        ...,
        help="<other commit> [<our commit>...]. Default <our commit>: HEAD. "
        "Several <our commit>s are squashed before comparison with <other commit>.",
    ),
    autofetch: bool = typer.Option(False, "--autofetch", help="Autofetch commit IDs from the commit message"),
    root: Path = typer.Option(Path("."), "--root", "-C", help="Repository root"),
    ids: bool = typer.Option(False, "--ids", help="Print the two object ids instead of running git diff"),
    stat: bool = typer.Option(False, "--stat", help="Show a diffstat instead of the patch"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
) -> None:
    """Compare a rewritten commit with the commit(s) it was derived from."""
    _configure_logging(verbose)
    try:
        store = make_store(str(root))
        result = cmp_commits(store, commits, autofetch=autofetch)
    except GitCmpError as e:
        _fail(e)
    _show(store.root, result, ids, stat)


@app.command()
def branch(
    branches: List[str] = typer.Argument(
        ...,
        help="<old branch> [<common upstream> [<current branch>]]. Default: main, HEAD.",
    ),
    root: Path = typer.Option(Path("."), "--root", "-C", help="Repository root"),
    ids: bool = typer.Option(False, "--ids", help="Print the two object ids instead of running git diff"),
    stat: bool = typer.Option(False, "--stat", help="Show a diffstat instead of the patch"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
) -> None:
    """Compare an old branch with the current one across a rebase."""
    if len(branches) > 3:
        raise typer.BadParameter("at most three branches", param_hint="BRANCHES")

    _configure_logging(verbose)
    try:
        store = make_store(str(root))
        result = cmp_branches(store, branches)
    except GitCmpError as e:
        _fail(e)
    _show(store.root, result, ids, stat)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
