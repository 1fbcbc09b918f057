"""Minimal git helpers.

The helpers below provide just enough structure to check that a target
repository is clean, stage its working tree and commit a patch set.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

import os
import subprocess


class GitError(RuntimeError):
    """Raised when a git command fails or the repository cannot be used."""


@dataclass(slots=True, frozen=True)
class StatusEntry:
    """One ``git status --porcelain`` record."""

    status: str
    path: Path


def is_git_repo(path: Path | str) -> bool:
    """Return ``True`` when ``path`` is the root of a git working tree."""

    return (Path(path) / ".git").exists()


def _clean_git_env() -> Dict[str, str]:
    """Return the process environment without inherited ``GIT_*`` variables."""

    return {key: value for key, value in os.environ.items() if not key.startswith("GIT_")}


class GitRepository:
    """Lightweight wrapper around ``git`` commands."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        if not is_git_repo(self.root):
            raise GitError(f"Not a git repository: {self.root}")

    @classmethod
    def initialise(cls, root: Path | str) -> "GitRepository":
        """Initialise a new git repository at ``root`` with an initial commit."""

        path = Path(root).resolve()
        path.mkdir(parents=True, exist_ok=True)

        def _run(args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
            return _run_git_command(args, cwd=path, check=check)

        _run(["init"])

        def _ensure_config(key: str, value: str) -> None:
            probe = _run(["config", "--get", key], check=False)
            if probe.returncode != 0 or not probe.stdout.strip():
                _run(["config", key, value])

        _ensure_config("user.email", "patchy@example.com")
        _ensure_config("user.name", "Patchy")

        _run(["add", "."])
        _run(["commit", "--allow-empty", "-m", "Initial commit"])

        return cls(path)

    # ------------------------------------------------------------------ git IO
    def git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Execute ``git`` with ``args`` relative to the repository root."""

        return _run_git_command(list(args), cwd=self.root, check=check)

    # ------------------------------------------------------------- repo status
    def status(self) -> List[StatusEntry]:
        """Return porcelain status entries for the working tree."""

        result = self.git("status", "--porcelain")
        entries: List[StatusEntry] = []
        for line in result.stdout.splitlines():
            if not line:
                continue
            status = line[:2]
            raw_path = line[3:]
            if status[0] in {"R", "C"} and " -> " in raw_path:
                raw_path = raw_path.split(" -> ", 1)[1]
            status_clean = status.strip() or status
            entries.append(StatusEntry(status=status_clean, path=Path(raw_path.strip().strip('"'))))
        return entries

    def is_clean(self) -> bool:
        """Return ``True`` when the working tree has no pending changes."""

        return not self.status()

    # ----------------------------------------------------------------- commits
    def add(self, path: str = ".") -> None:
        """Stage ``path`` (the whole tree by default)."""

        self.git("add", path)

    def commit(self, message: str) -> str | None:
        """Create a commit from the index.

        Returns the new commit SHA, or ``None`` when there was nothing to commit.
        """

        commit = self.git("commit", "-m", message, check=False)
        if commit.returncode != 0:
            output = commit.stderr.strip() or commit.stdout.strip() or ""
            if "nothing to commit" in f"{commit.stdout}\n{commit.stderr}".lower():
                return None
            raise GitError(f"git commit failed: {output or 'unknown git error'}")

        rev = self.git("rev-parse", "HEAD")
        return rev.stdout.strip()


def _run_git_command(
    args: Sequence[str],
    *,
    cwd: Path,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run a git command and optionally raise :class:`GitError` on failure."""
    command = ["git", *args]
    process = subprocess.run(
        command,
        cwd=cwd,
        env=_clean_git_env(),
        capture_output=True,
        text=False,
        check=False,
    )
    stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
    stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
    result = subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)
    if check and result.returncode != 0:
        message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
        raise GitError(f"git {' '.join(args)} failed: {message}")
    return result


__all__ = ["GitError", "GitRepository", "StatusEntry", "is_git_repo"]
