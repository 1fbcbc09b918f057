from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import pytest

from patchy.apply.commit import CommitController, decide
from patchy.apply.patch_set import PatchSetStats
from patchy.errors import CommitError, PreconditionError
from patchy.tools.console import Console
from patchy.tools.vcs import GitError, GitRepository


@dataclass
class FakeGit:
    dirty: List[str] = field(default_factory=list)
    fail_status: bool = False
    fail_commit: bool = False
    commits: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)

    def status(self) -> List[str]:
        if self.fail_status:
            raise GitError("git status --porcelain failed: not a repository")
        return list(self.dirty)

    def add(self, path: str = ".") -> None:
        self.added.append(path)

    def commit(self, message: str) -> Optional[str]:
        if self.fail_commit:
            raise GitError("git commit failed: hooks rejected the commit")
        self.commits.append(message)
        return "abc1234"


@pytest.mark.parametrize(
    ("mode", "is_last", "expected"),
    [
        ("all", False, "commit"),
        ("all", True, "commit"),
        ("off", False, "skip"),
        ("off", True, "skip"),
        ("skip-last", False, "commit"),
        ("skip-last", True, "skip"),
        ("interactive", False, "commit"),
        ("interactive", True, "prompt"),
    ],
)
def test_decision_table(mode: str, is_last: bool, expected: str) -> None:
    assert decide(mode, is_last) == expected  # type: ignore[arg-type]


def test_interactive_commits_without_a_terminal() -> None:
    assert decide("interactive", True, can_prompt=False) == "commit"


def test_unknown_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        decide("sometimes", True)  # type: ignore[arg-type]


def test_dirty_tree_is_a_precondition_error() -> None:
    controller = CommitController(FakeGit(dirty=["M src/app.ts"]), Console(), mode="all")

    with pytest.raises(PreconditionError, match="Working tree is dirty. Please commit or stash changes"):
        controller.ensure_clean_working_tree()


def test_failed_status_is_reported() -> None:
    controller = CommitController(FakeGit(fail_status=True), Console(), mode="all")

    with pytest.raises(PreconditionError, match="Failed to check working tree status: "):
        controller.ensure_clean_working_tree()


def test_dry_run_skips_clean_check_and_commits() -> None:
    git = FakeGit(dirty=["M src/app.ts"])
    controller = CommitController(git, Console(), mode="all", dry_run=True)

    controller.ensure_clean_working_tree()
    result = controller.commit_if_needed(PatchSetStats(name="001-first", file_count=1), is_last=True)

    assert not result.committed
    assert git.commits == []


def test_missing_repository_is_treated_as_clean() -> None:
    controller = CommitController(None, Console(), mode="all")

    controller.ensure_clean_working_tree()
    assert not controller.commit_if_needed(PatchSetStats(name="001-first"), is_last=True).committed


def test_commit_uses_patch_set_message(capsys: pytest.CaptureFixture[str]) -> None:
    git = FakeGit()
    controller = CommitController(git, Console(), mode="all")

    result = controller.commit_if_needed(PatchSetStats(name="001-first", file_count=2), is_last=False)

    assert result.committed
    assert result.sha == "abc1234"
    assert git.added == ["."]
    assert git.commits == ["Apply patch set: 001-first"]
    assert "Committed patch set: 001-first" in capsys.readouterr().out


def test_sets_with_errors_are_never_committed() -> None:
    git = FakeGit()
    controller = CommitController(git, Console(), mode="all")
    stats = PatchSetStats(name="001-first", file_count=1, errors=[("a.diff", "boom")])

    assert not controller.commit_if_needed(stats, is_last=False).committed
    assert git.commits == []


def test_commits_stay_suspended_after_a_failed_set(capsys: pytest.CaptureFixture[str]) -> None:
    git = FakeGit()
    controller = CommitController(git, Console(), mode="all")
    failed = PatchSetStats(name="001-first", file_count=2, errors=[("a.diff", "boom")])

    controller.commit_if_needed(failed, is_last=False)
    result = controller.commit_if_needed(PatchSetStats(name="002-second", file_count=1), is_last=True)

    assert not result.committed
    assert git.added == [] and git.commits == []
    assert controller.suspended_by == "001-first"
    out = capsys.readouterr().out
    assert "Commits suspended after errors in patch set 001-first; left uncommitted: 002-second" in out


def test_commit_failure_is_a_commit_error() -> None:
    controller = CommitController(FakeGit(fail_commit=True), Console(), mode="all")

    with pytest.raises(CommitError, match="Could not commit patch set: git commit failed"):
        controller.commit_if_needed(PatchSetStats(name="001-first", file_count=1), is_last=True)


@pytest.mark.parametrize(("answer", "committed"), [("yes", True), ("no", False), ("cancelled", False)])
def test_prompt_answers(
    answer: str,
    committed: bool,
    scripted_confirm,
    capsys: pytest.CaptureFixture[str],
) -> None:
    git = FakeGit()
    confirm = scripted_confirm(answer)
    controller = CommitController(git, Console(), mode="interactive", confirm=confirm)

    result = controller.commit_if_needed(PatchSetStats(name="002-second", file_count=1), is_last=True)

    assert confirm.prompts == ['Commit changes from patch set "002-second"?']
    assert result.committed is committed
    assert result.answer == answer
    out = capsys.readouterr().out
    if committed:
        assert git.commits == ["Apply patch set: 002-second"]
    else:
        assert git.commits == []
        assert "Left patch set uncommitted: 002-second" in out


def test_skip_last_leaves_final_set_uncommitted(capsys: pytest.CaptureFixture[str]) -> None:
    git = FakeGit()
    controller = CommitController(git, Console(), mode="skip-last")

    controller.commit_if_needed(PatchSetStats(name="001-first", file_count=1), is_last=False)
    controller.commit_if_needed(PatchSetStats(name="002-second", file_count=1), is_last=True)

    assert git.commits == ["Apply patch set: 001-first"]
    assert "Left patch set uncommitted: 002-second" in capsys.readouterr().out


def test_real_repository_commit_and_nothing_to_commit(tmp_path: Path) -> None:
    repo = GitRepository.initialise(tmp_path / "repo")
    (repo.root / "file.txt").write_text("hello\n", encoding="utf-8")
    controller = CommitController(repo, Console(), mode="all")

    first = controller.commit_if_needed(PatchSetStats(name="001-first", file_count=1), is_last=False)
    second = controller.commit_if_needed(PatchSetStats(name="002-second", file_count=1), is_last=True)

    assert first.committed and first.sha
    assert not second.committed and second.sha is None
    assert repo.git("log", "-1", "--format=%s").stdout.strip() == "Apply patch set: 001-first"
    assert repo.is_clean()
