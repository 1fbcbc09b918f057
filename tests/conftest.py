from __future__ import annotations

import logging
import os
import stat
import sys
import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from patchy.tools.vcs import GitRepository  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_patchy_logging():
    yield
    logger = logging.getLogger("patchy")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@dataclass(slots=True)
class PatchWorkspace:
    """A target git repository next to a patches directory."""

    root: Path
    repo: GitRepository
    patches_dir: Path

    @property
    def target(self) -> Path:
        return self.repo.root

    def write_target(self, relative: str, content: str, *, commit: bool = True) -> Path:
        path = self.target / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        if commit:
            self.repo.git("add", relative)
            self.repo.git("commit", "-m", f"Add {relative}")
        return path

    def add_file(self, patch_set: str, relative: str, content: str) -> Path:
        path = self.patches_dir / patch_set / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def add_diff(self, patch_set: str, relative: str, diff: str) -> Path:
        return self.add_file(patch_set, f"{relative}.diff", textwrap.dedent(diff).lstrip("\n"))

    def add_hook(self, patch_set: str, name: str, script: str, *, executable: bool = True) -> Path:
        path = self.add_file(patch_set, name, "#!/bin/sh\n" + textwrap.dedent(script).lstrip("\n"))
        if executable:
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    def log_subjects(self) -> List[str]:
        return self.repo.git("log", "--format=%s").stdout.splitlines()

    def status_paths(self) -> List[str]:
        return [entry.path.as_posix() for entry in self.repo.status()]


@pytest.fixture()
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> PatchWorkspace:
    """Create a committed target repository plus an empty patches directory."""

    for key in list(os.environ):
        if key.startswith("PATCHY_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)

    repo = GitRepository.initialise(tmp_path / "target")
    repo.git("config", "commit.gpgsign", "false")
    patches_dir = tmp_path / "patches"
    patches_dir.mkdir()
    return PatchWorkspace(root=tmp_path, repo=repo, patches_dir=patches_dir)


@dataclass(slots=True)
class ScriptedConfirm:
    """Confirm capability that replays canned answers and records prompts."""

    answers: List[str]
    prompts: List[str] = field(default_factory=list)

    def __call__(self, message: str) -> str:
        self.prompts.append(message)
        return self.answers.pop(0)


@pytest.fixture()
def scripted_confirm() -> Callable[..., ScriptedConfirm]:
    def _factory(*answers: str) -> ScriptedConfirm:
        return ScriptedConfirm(answers=list(answers))

    return _factory

