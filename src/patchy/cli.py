"""CLI entry point for applying patch sets to a target repository."""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict, Optional

import typer

from .apply.orchestrator import ApplyOrchestrator
from .config import AUTO_COMMIT_MODES, AutoCommitMode, resolve_settings
from .errors import PatchyError, UsageError
from .tools.console import Console
from .tools.prompts import default_confirm
from .tools.vcs import GitRepository, is_git_repo

APP_HELP = "Maintain customizations on top of an upstream repository as ordered patch sets."
LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

LOGGER = logging.getLogger(__name__)
_LOG_HANDLER: Optional[logging.Handler] = None

app = typer.Typer(help=APP_HELP)


@app.callback()
def main() -> None:
    """Patchy command group."""


def configure_logging(verbose: bool) -> None:
    """Route ``patchy`` log records to stderr; DEBUG when verbose, WARNING otherwise."""
    global _LOG_HANDLER
    logger = logging.getLogger("patchy")
    if _LOG_HANDLER is not None:
        logger.removeHandler(_LOG_HANDLER)
    _LOG_HANDLER = logging.StreamHandler(sys.stderr)
    _LOG_HANDLER.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(_LOG_HANDLER)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _parse_auto_commit(value: Optional[str]) -> Optional[AutoCommitMode]:
    if value is None:
        return None
    normalised = value.strip().lower()
    if normalised not in AUTO_COMMIT_MODES:
        choices = ", ".join(AUTO_COMMIT_MODES)
        raise UsageError(f"Invalid --auto-commit value: {value} (expected one of: {choices})")
    return normalised  # type: ignore[return-value]


@app.command()
def apply(
    target_repo: Optional[str] = typer.Option(
        None,
        "--target-repo",
        "--repo-dir",
        help="Repository the patch sets are applied to.",
    ),
    repo_base_dir: Optional[str] = typer.Option(
        None,
        "--repo-base-dir",
        help="Directory a relative --target-repo is resolved against.",
    ),
    patches_dir: Optional[str] = typer.Option(
        None,
        "--patches-dir",
        help="Directory holding the patch set folders.",
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the patchy configuration file (default: patchy.yaml).",
    ),
    only: Optional[str] = typer.Option(
        None,
        "--only",
        help="Apply a single patch set.",
    ),
    until: Optional[str] = typer.Option(
        None,
        "--until",
        help="Apply patch sets up to and including this one.",
    ),
    dry_run: Optional[bool] = typer.Option(
        None,
        "--dry-run/--no-dry-run",
        help="Show what would be applied without touching the target repository.",
    ),
    verbose: Optional[bool] = typer.Option(
        None,
        "--verbose/--no-verbose",
        help="Print every file and hook output line.",
    ),
    fuzz_factor: Optional[int] = typer.Option(
        None,
        "--fuzz-factor",
        help="Context lines allowed to mismatch per hunk (0 = exact).",
    ),
    all_sets: bool = typer.Option(
        False,
        "--all",
        help="Commit every patch set, including the last one.",
    ),
    edit: bool = typer.Option(
        False,
        "--edit",
        help="Commit every patch set except the last one.",
    ),
    auto_commit: Optional[str] = typer.Option(
        None,
        "--auto-commit",
        help="Commit mode: all, off, skip-last or interactive.",
    ),
    hook_prefix: Optional[str] = typer.Option(
        None,
        "--hook-prefix",
        help="Filename prefix of pre/post-apply hook scripts.",
    ),
    base_revision: Optional[str] = typer.Option(
        None,
        "--base-revision",
        help="Upstream revision exported to hooks as PATCHY_BASE_REVISION.",
    ),
) -> None:
    """Apply patch sets from the patches directory to the target repository."""
    try:
        flags: Dict[str, Any] = {
            "config": config,
            "target_repo": target_repo,
            "repo_base_dir": repo_base_dir,
            "patches_dir": patches_dir,
            "dry_run": dry_run,
            "verbose": verbose,
            "fuzz_factor": fuzz_factor,
            "hook_prefix": hook_prefix,
            "base_revision": base_revision,
        }
        mode = _parse_auto_commit(auto_commit)
        settings = resolve_settings(flags)
        configure_logging(settings.verbose)

        git = GitRepository(settings.target_repo) if is_git_repo(settings.target_repo) else None
        if git is None:
            LOGGER.debug("%s is not a git repository; commits are disabled", settings.target_repo)

        orchestrator = ApplyOrchestrator(
            settings,
            git=git,
            confirm=default_confirm(),
            console=Console(),
            only=only,
            until=until,
            all_sets=all_sets,
            edit=edit,
            auto_commit=mode,
        )
        result = orchestrator.run()
    except PatchyError as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=1) from error

    if result.exit_code:
        raise typer.Exit(code=result.exit_code)


if __name__ == "__main__":
    app()
