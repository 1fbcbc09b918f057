"""Discovery and execution of per-patch-set pre/post-apply hooks."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Literal, Mapping

import logging
import os
import signal
import subprocess

from ..errors import PreconditionError

LOGGER = logging.getLogger(__name__)

HookType = Literal["pre-apply", "post-apply"]
HookStatus = Literal["ok", "failed", "spawn-error"]

HOOK_TYPES: tuple[HookType, ...] = ("pre-apply", "post-apply")
DEFAULT_HOOK_PREFIX = "patchy-"


@dataclass(slots=True, frozen=True)
class HookInfo:
    """A hook script found directly under a patch set directory."""

    path: Path
    name: str
    type: HookType


@dataclass(slots=True, frozen=True)
class HookResult:
    """Outcome of a single hook run."""

    status: HookStatus
    exit_code: int | None = None
    signal: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def describe(self, hook_name: str) -> str:
        if self.status == "spawn-error":
            return f"Hook '{hook_name}' failed to execute: {self.error}"
        if self.signal is not None:
            return f"Hook '{hook_name}' was killed by signal {self.signal}."
        if self.status == "failed":
            return f"Hook '{hook_name}' failed with exit code {self.exit_code}."
        return f"Hook '{hook_name}' succeeded."


def hook_filename(prefix: str, hook_type: HookType) -> str:
    return f"{prefix}{hook_type}"


def hook_filenames(prefix: str) -> tuple[str, ...]:
    """Return every hook filename for ``prefix``; these are never patch files."""
    return tuple(hook_filename(prefix, hook_type) for hook_type in HOOK_TYPES)


def find_hook(directory: Path, prefix: str, hook_type: HookType) -> HookInfo | None:
    name = hook_filename(prefix, hook_type)
    path = directory / name
    if not path.is_file():
        return None
    return HookInfo(path=path, name=name, type=hook_type)


def is_executable(path: Path) -> bool:
    return os.access(path, os.X_OK)


def ensure_executable(hook: HookInfo, patch_set_name: str) -> None:
    """Raise :class:`PreconditionError` with a ``chmod`` hint for non-executable hooks."""
    if is_executable(hook.path):
        return
    raise PreconditionError(
        f"Hook '{hook.name}' in patch set '{patch_set_name}' is not executable.\n"
        f"Run: chmod +x {hook.path}",
        details={"hook": hook.path.as_posix()},
    )


def hook_environment(
    *,
    target_repo: Path,
    patch_set: str,
    patches_dir: Path,
    patch_set_dir: Path,
    base_revision: str | None = None,
) -> Dict[str, str]:
    """Build the ``PATCHY_*`` variables exported to hook processes."""
    env = {
        "PATCHY_TARGET_REPO": str(target_repo),
        "PATCHY_PATCH_SET": patch_set,
        "PATCHY_PATCHES_DIR": str(patches_dir),
        "PATCHY_PATCH_SET_DIR": str(patch_set_dir),
    }
    if base_revision:
        env["PATCHY_BASE_REVISION"] = base_revision
    return env


def _merge_env(extra: Mapping[str, str] | None) -> Dict[str, str]:
    """Merge provided environment overrides with the current process state."""
    env: Dict[str, str] = os.environ.copy()
    if extra:
        env.update({str(key): str(value) for key, value in extra.items()})
    return env


def _signal_name(returncode: int) -> str:
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return str(-returncode)


def run_hook(
    hook: HookInfo,
    *,
    cwd: Path,
    env: Mapping[str, str] | None = None,
    output: Callable[[str], None],
) -> HookResult:
    """Run ``hook`` to completion, streaming its output line by line.

    stdin is inherited so hooks may prompt; stdout and stderr are merged into
    ``output``.  No timeout is applied.
    """

    LOGGER.debug("Running hook %s in %s", hook.path, cwd)
    try:
        process = subprocess.Popen(  # noqa: S603 - hook path comes from the patches directory
            [str(hook.path)],
            cwd=cwd,
            env=_merge_env(env),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as error:
        return HookResult(status="spawn-error", error=str(error))

    if process.stdout is not None:
        with process.stdout:
            for line in process.stdout:
                output(line.rstrip("\n"))

    returncode = process.wait()
    if returncode == 0:
        return HookResult(status="ok", exit_code=0)
    if returncode < 0:
        return HookResult(status="failed", signal=_signal_name(returncode))
    return HookResult(status="failed", exit_code=returncode)


__all__ = [
    "DEFAULT_HOOK_PREFIX",
    "HOOK_TYPES",
    "HookInfo",
    "HookResult",
    "HookType",
    "ensure_executable",
    "find_hook",
    "hook_environment",
    "hook_filename",
    "hook_filenames",
    "is_executable",
    "run_hook",
]
