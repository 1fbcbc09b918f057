"""Apply the files of one patch set to the target repository."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal, Tuple

from ..config import ApplySettings
from ..errors import FileApplyError, HookExecutionError
from ..tools.conflicts import ConflictMode, resolve_diff
from ..tools.console import BULLET, CHECK_MARK, CROSS_MARK, TREE_BRANCH, TREE_CORNER, Console
from ..tools.diff import PatchError
from ..tools.hooks import HookInfo, HookType, ensure_executable, find_hook, hook_environment, hook_filenames, run_hook
from ..tools.telemetry import emit_event
from .collector import PatchFile, collect_patch_files
from .resolver import PatchSet

LOGGER = logging.getLogger(__name__)

ApplyStatus = Literal["success", "error", "conflicted"]


@dataclass(slots=True, frozen=True)
class ApplyOutcome:
    """Result of applying a single patch file."""

    status: ApplyStatus
    message: str | None = None
    conflicts: int = 0


@dataclass(slots=True)
class PatchSetStats:
    """Per patch set tally consumed by the commit controller and the summary."""

    name: str
    file_count: int = 0
    errors: List[Tuple[str, str]] = field(default_factory=list)
    conflicts: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def applied_count(self) -> int:
        return self.file_count - len(self.errors)


def _read_text(path: Path) -> str:
    # bytes round trip keeps CRLF endings intact
    return path.read_bytes().decode("utf-8")


def apply_patch_file(
    patch_file: PatchFile,
    *,
    fuzz_factor: int,
    conflict_mode: ConflictMode = "error",
) -> ApplyOutcome:
    """Copy or patch ``patch_file`` into the target repository.

    Raises :class:`FileApplyError` when the file cannot be applied.
    """

    target = patch_file.target_path
    try:
        if patch_file.kind == "copy":
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy(patch_file.source_path, target)
            return ApplyOutcome(status="success")

        if not target.is_file():
            raise FileApplyError(patch_file.relative_path, f"Target file does not exist: {target}")

        resolution = resolve_diff(
            _read_text(target),
            _read_text(patch_file.source_path),
            fuzz_factor,
            conflict_mode,
        )
        target.write_bytes(resolution.content.encode("utf-8"))
    except PatchError as error:
        raise FileApplyError(patch_file.relative_path, str(error), details=error.details) from error
    except (OSError, UnicodeDecodeError) as error:
        raise FileApplyError(patch_file.relative_path, str(error)) from error

    if resolution.conflicted:
        return ApplyOutcome(status="conflicted", conflicts=resolution.conflicts)
    return ApplyOutcome(status="success")


class PatchSetApplier:
    """Run hooks and apply every file of a patch set, collecting per-file errors."""

    def __init__(self, settings: ApplySettings, console: Console) -> None:
        self.settings = settings
        self.console = console

    # ------------------------------------------------------------------ public
    def apply(self, patch_set: PatchSet) -> PatchSetStats:
        settings = self.settings
        pre_hook = self._resolve_hook(patch_set, "pre-apply")
        post_hook = self._resolve_hook(patch_set, "post-apply")

        files = collect_patch_files(
            patch_set.directory,
            settings.target_repo,
            exclude=hook_filenames(settings.hook_prefix),
        )
        stats = PatchSetStats(name=patch_set.name, file_count=len(files))

        self.console.out(f"{BULLET} {patch_set.name} ({len(files)} file(s))")
        emit_event(
            "patch_set_started",
            patch_set=patch_set.name,
            position=patch_set.position,
            files=len(files),
            dry_run=settings.dry_run,
        )

        if pre_hook is not None and not settings.dry_run:
            self._run_hook(pre_hook, patch_set)

        for patch_file in files:
            if settings.dry_run:
                if settings.verbose:
                    verb = "Copy" if patch_file.kind == "copy" else "Apply diff"
                    self.console.out(f"  {TREE_BRANCH} {verb}: {patch_file.relative_path}")
                continue
            self._apply_file(patch_set, patch_file, stats)

        self._report_tally(stats)

        if post_hook is not None and not settings.dry_run:
            self._run_hook(post_hook, patch_set)

        return stats

    # ------------------------------------------------------------------- files
    def _apply_file(self, patch_set: PatchSet, patch_file: PatchFile, stats: PatchSetStats) -> ApplyOutcome:
        settings = self.settings
        try:
            outcome = apply_patch_file(
                patch_file,
                fuzz_factor=settings.fuzz_factor,
                conflict_mode=settings.on_conflict,
            )
        except FileApplyError as error:
            outcome = ApplyOutcome(status="error", message=str(error))

        if outcome.status == "error":
            message = outcome.message or "unknown error"
            stats.errors.append((patch_file.relative_path, message))
            LOGGER.debug("Failed to apply %s/%s: %s", patch_set.name, patch_file.relative_path, message)
            emit_event(
                "file_failed",
                patch_set=patch_set.name,
                file=patch_file.relative_path,
                error=message,
            )
            if settings.verbose:
                self.console.out(f"  {TREE_BRANCH} {CROSS_MARK} {patch_file.relative_path}: {message}")
            return outcome

        if outcome.status == "conflicted":
            stats.conflicts.append((patch_file.target_relative_path, outcome.conflicts))

        emit_event(
            "file_applied",
            patch_set=patch_set.name,
            file=patch_file.relative_path,
            kind=patch_file.kind,
            conflicts=outcome.conflicts,
        )
        if settings.verbose:
            verb = "Copied" if patch_file.kind == "copy" else "Applied diff"
            self.console.out(f"  {TREE_BRANCH} {verb}: {patch_file.relative_path}")
        return outcome

    def _report_tally(self, stats: PatchSetStats) -> None:
        if self.settings.dry_run:
            self.console.out(f"  {TREE_CORNER} Would apply {stats.file_count} file(s)")
            return
        line = f"  {TREE_CORNER} {CHECK_MARK} {stats.applied_count} file(s) applied"
        if stats.errors:
            line += f", {CROSS_MARK} {len(stats.errors)} file(s) failed"
        if stats.conflicts:
            line += f", {len(stats.conflicts)} with conflict markers"
        self.console.out(line)

    # ------------------------------------------------------------------- hooks
    def _resolve_hook(self, patch_set: PatchSet, hook_type: HookType) -> HookInfo | None:
        hook = find_hook(patch_set.directory, self.settings.hook_prefix, hook_type)
        if hook is not None:
            ensure_executable(hook, patch_set.name)
        return hook

    def _run_hook(self, hook: HookInfo, patch_set: PatchSet) -> None:
        settings = self.settings
        writer = self.console.collapsible(
            f"Running {hook.name}...",
            prefix=f"  {TREE_BRANCH} ",
            verbose=settings.verbose,
        )
        env = hook_environment(
            target_repo=settings.target_repo,
            patch_set=patch_set.name,
            patches_dir=settings.patches_dir,
            patch_set_dir=patch_set.directory,
            base_revision=settings.base_revision,
        )
        result = run_hook(hook, cwd=settings.target_repo, env=env, output=writer.write)
        emit_event(
            "hook_finished",
            patch_set=patch_set.name,
            hook=hook.name,
            status=result.status,
            exit_code=result.exit_code,
            signal=result.signal,
        )

        if result.ok:
            writer.succeed(f"Ran {hook.name}")
            return

        writer.fail(f"{hook.name} failed")
        raise HookExecutionError(
            result.describe(hook.name),
            details={
                "hook": hook.name,
                "patch_set": patch_set.name,
                "exit_code": result.exit_code,
                "signal": result.signal,
            },
        )


__all__ = ["ApplyOutcome", "ApplyStatus", "PatchSetApplier", "PatchSetStats", "apply_patch_file"]
