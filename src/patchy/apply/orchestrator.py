"""Top-level ``apply`` flow: resolve sets, apply them in order, commit, summarise."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from ..config import ApplySettings, AutoCommitMode
from ..errors import UsageError
from ..tools.console import CROSS_MARK, Console
from ..tools.prompts import Confirm
from ..tools.telemetry import emit_event
from .commit import CommitController, GitClient
from .patch_set import PatchSetApplier, PatchSetStats
from .resolver import resolve_patch_sets

LOGGER = logging.getLogger(__name__)

DRY_RUN_PREFIX = "[DRY RUN] "


def resolve_auto_commit_mode(
    *,
    all_sets: bool = False,
    edit: bool = False,
    auto_commit: AutoCommitMode | None = None,
    default: AutoCommitMode = "interactive",
) -> AutoCommitMode:
    """Fold the ``--all`` / ``--edit`` shortcuts into an auto-commit mode."""

    if all_sets and edit:
        raise UsageError("Cannot use both --all and --edit flags together")
    if (all_sets or edit) and auto_commit is not None:
        raise UsageError("Cannot combine --auto-commit with --all or --edit")
    if all_sets:
        return "all"
    if edit:
        return "skip-last"
    return auto_commit or default


def display_path(path: Path) -> str:
    """Show ``path`` relative to the working directory when it lives below it."""
    try:
        relative = path.resolve().relative_to(Path.cwd().resolve())
    except ValueError:
        return str(path)
    text = relative.as_posix()
    return "." if text == "." else f"./{text}"


@dataclass(slots=True)
class ApplyRunResult:
    """Aggregate of one ``apply`` invocation."""

    dry_run: bool = False
    patch_sets: List[PatchSetStats] = field(default_factory=list)

    @property
    def file_count(self) -> int:
        return sum(stats.file_count for stats in self.patch_sets)

    @property
    def patch_set_count(self) -> int:
        return len(self.patch_sets)

    @property
    def errors(self) -> List[Tuple[str, str]]:
        return [(f"{stats.name}/{file}", message) for stats in self.patch_sets for file, message in stats.errors]

    @property
    def conflicts(self) -> List[Tuple[str, int]]:
        return [item for stats in self.patch_sets for item in stats.conflicts]

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


class ApplyOrchestrator:
    """Drive the applier and the commit controller over the resolved patch sets."""

    def __init__(
        self,
        settings: ApplySettings,
        *,
        git: GitClient | None = None,
        confirm: Confirm | None = None,
        console: Console | None = None,
        only: str | None = None,
        until: str | None = None,
        all_sets: bool = False,
        edit: bool = False,
        auto_commit: AutoCommitMode | None = None,
    ) -> None:
        self.settings = settings
        self.git = git
        self.confirm = confirm
        self.console = console or Console()
        self.only = only
        self.until = until
        self.all_sets = all_sets
        self.edit = edit
        self.auto_commit = auto_commit

    def run(self) -> ApplyRunResult:
        settings = self.settings
        mode = resolve_auto_commit_mode(
            all_sets=self.all_sets,
            edit=self.edit,
            auto_commit=self.auto_commit,
            default=settings.auto_commit,
        )
        patch_sets = resolve_patch_sets(settings.patches_dir, only=self.only, until=self.until)
        result = ApplyRunResult(dry_run=settings.dry_run)
        if not patch_sets:
            self.console.out("No patch sets found.")
            return result

        commits = CommitController(
            self.git,
            self.console,
            mode=mode,
            confirm=self.confirm,
            dry_run=settings.dry_run,
        )
        commits.ensure_clean_working_tree()

        prefix = DRY_RUN_PREFIX if settings.dry_run else ""
        self.console.out(
            f"{prefix}Applying patches from {display_path(settings.patches_dir)} "
            f"to {display_path(settings.target_repo)}..."
        )
        self.console.out()
        LOGGER.debug("Applying %d patch set(s) with auto-commit mode %s", len(patch_sets), mode)

        applier = PatchSetApplier(settings, self.console)
        last_position = len(patch_sets) - 1
        for patch_set in patch_sets:
            stats = applier.apply(patch_set)
            result.patch_sets.append(stats)
            commits.commit_if_needed(stats, is_last=patch_set.position == last_position)
            self.console.out()

        self._summarise(result)
        emit_event(
            "apply_finished",
            patch_sets=result.patch_set_count,
            files=result.file_count,
            errors=len(result.errors),
            conflicts=len(result.conflicts),
            dry_run=result.dry_run,
        )
        return result

    def _summarise(self, result: ApplyRunResult) -> None:
        if result.conflicts:
            self.console.out("Files with conflict markers (resolve manually):")
            for file, count in result.conflicts:
                self.console.out(f"  {file} ({count} conflict(s))")
            self.console.out()

        if result.errors:
            self.console.err("Errors occurred while applying patches:")
            for file, message in result.errors:
                self.console.err(f"  {file}: {message}")
            self.console.err()
            self.console.err(f"{CROSS_MARK} Failed to apply patches to {display_path(self.settings.target_repo)}")
            return

        counts = f"{result.file_count} patch file(s) across {result.patch_set_count} patch set(s)."
        if result.dry_run:
            self.console.out(f"{DRY_RUN_PREFIX}Would apply {counts}")
        else:
            self.console.out(f"Successfully applied {counts}")


__all__ = [
    "ApplyOrchestrator",
    "ApplyRunResult",
    "DRY_RUN_PREFIX",
    "display_path",
    "resolve_auto_commit_mode",
]
