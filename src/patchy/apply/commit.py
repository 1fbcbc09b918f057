"""Decide whether each applied patch set becomes a git commit."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional, Protocol, Sequence

from ..config import AutoCommitMode
from ..errors import CommitError, PreconditionError
from ..tools.console import TREE_CORNER, Console
from ..tools.prompts import Confirm, ConfirmAnswer
from ..tools.telemetry import emit_event
from ..tools.vcs import GitError
from .patch_set import PatchSetStats

LOGGER = logging.getLogger(__name__)

CommitDecision = Literal["commit", "skip", "prompt"]

DIRTY_TREE_MESSAGE = "Working tree is dirty. Please commit or stash changes before applying patches."


class GitClient(Protocol):
    """The subset of :class:`~patchy.tools.vcs.GitRepository` used for commits."""

    def status(self) -> Sequence[object]:
        ...

    def add(self, path: str = ".") -> None:
        ...

    def commit(self, message: str) -> Optional[str]:
        ...


def decide(mode: AutoCommitMode, is_last: bool, *, can_prompt: bool = True) -> CommitDecision:
    """Map an auto-commit mode onto a decision for one patch set.

    Only the last patch set of a run is ever left uncommitted or prompted for.
    When ``interactive`` cannot prompt, it commits.
    """

    if mode == "all":
        return "commit"
    if mode == "off":
        return "skip"
    if mode == "skip-last":
        return "skip" if is_last else "commit"
    if mode == "interactive":
        if not is_last:
            return "commit"
        return "prompt" if can_prompt else "commit"
    raise ValueError(f"Unknown auto-commit mode: {mode}")


def commit_message(patch_set_name: str) -> str:
    return f"Apply patch set: {patch_set_name}"


@dataclass(slots=True, frozen=True)
class CommitResult:
    committed: bool
    decision: CommitDecision | None = None
    answer: ConfirmAnswer | None = None
    sha: str | None = None


class CommitController:
    """Guard the working tree before a run and commit patch sets after each one.

    ``git`` is ``None`` when the target is not a git repository: the tree is
    then treated as clean and nothing is committed.
    """

    def __init__(
        self,
        git: GitClient | None,
        console: Console,
        *,
        mode: AutoCommitMode,
        confirm: Confirm | None = None,
        dry_run: bool = False,
    ) -> None:
        self.git = git
        self.console = console
        self.mode = mode
        self.confirm = confirm
        self.dry_run = dry_run
        self.suspended_by: str | None = None

    def ensure_clean_working_tree(self) -> None:
        if self.dry_run or self.git is None:
            return
        try:
            entries = self.git.status()
        except GitError as error:
            raise PreconditionError(f"Failed to check working tree status: {error}") from error
        if entries:
            raise PreconditionError(
                DIRTY_TREE_MESSAGE,
                details={"paths": [str(getattr(entry, "path", entry)) for entry in entries]},
            )

    def commit_if_needed(self, stats: PatchSetStats, *, is_last: bool) -> CommitResult:
        """Commit ``stats.name`` according to the configured mode.

        Sets with file errors and dry runs are never committed.  Once a set has
        file errors, commits stay suspended for the rest of the run: its
        partially applied files are still in the working tree and would land in
        the next set's commit.  A declined or cancelled prompt leaves the
        changes in the working tree.
        """

        if self.dry_run:
            return CommitResult(committed=False)
        git = self.git
        if git is None:
            LOGGER.debug("Target is not a git repository; skipping commit for %s", stats.name)
            return CommitResult(committed=False)
        if stats.has_errors:
            if self.suspended_by is None:
                self.suspended_by = stats.name
                emit_event("commits_suspended", patch_set=stats.name)
            return CommitResult(committed=False)
        if self.suspended_by is not None:
            self.console.out(
                f"  {TREE_CORNER} Commits suspended after errors in patch set "
                f"{self.suspended_by}; left uncommitted: {stats.name}"
            )
            return CommitResult(committed=False)

        decision = decide(self.mode, is_last, can_prompt=self.confirm is not None)
        answer: ConfirmAnswer | None = None
        if decision == "prompt" and self.confirm is not None:
            answer = self.confirm(f'Commit changes from patch set "{stats.name}"?')
            LOGGER.debug("Commit prompt for %s answered %s", stats.name, answer)

        if decision == "skip" or (decision == "prompt" and answer != "yes"):
            self.console.out(f"  {TREE_CORNER} Left patch set uncommitted: {stats.name}")
            return CommitResult(committed=False, decision=decision, answer=answer)

        sha = self._commit(git, stats.name)
        return CommitResult(committed=sha is not None, decision=decision, answer=answer, sha=sha)

    def _commit(self, git: GitClient, patch_set_name: str) -> str | None:
        try:
            git.add(".")
            sha = git.commit(commit_message(patch_set_name))
        except GitError as error:
            raise CommitError(
                f"Could not commit patch set: {error}",
                details={"patch_set": patch_set_name},
            ) from error

        if sha is None:
            self.console.out(f"  {TREE_CORNER} Nothing to commit for patch set: {patch_set_name}")
        else:
            self.console.out(f"  {TREE_CORNER} Committed patch set: {patch_set_name}")
        emit_event("patch_set_committed", patch_set=patch_set_name, sha=sha)
        return sha


__all__ = [
    "CommitController",
    "CommitDecision",
    "CommitResult",
    "DIRTY_TREE_MESSAGE",
    "GitClient",
    "commit_message",
    "decide",
]
