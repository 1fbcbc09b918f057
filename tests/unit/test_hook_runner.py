from __future__ import annotations

import stat
from pathlib import Path
from typing import List

import pytest

from patchy.errors import PreconditionError
from patchy.tools.hooks import (
    HookInfo,
    HookResult,
    ensure_executable,
    find_hook,
    hook_environment,
    hook_filename,
    run_hook,
)


def _write_hook(directory: Path, name: str, body: str, *, executable: bool = True) -> Path:
    path = directory / name
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    if executable:
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


def test_hook_filename_is_prefix_plus_type() -> None:
    assert hook_filename("patchy-", "pre-apply") == "patchy-pre-apply"
    assert hook_filename("custom_", "post-apply") == "custom_post-apply"


def test_find_hook_returns_none_when_absent(tmp_path: Path) -> None:
    assert find_hook(tmp_path, "patchy-", "pre-apply") is None


def test_non_executable_hook_is_a_precondition_error(tmp_path: Path) -> None:
    _write_hook(tmp_path, "patchy-pre-apply", "exit 0\n", executable=False)
    hook = find_hook(tmp_path, "patchy-", "pre-apply")
    assert hook is not None

    with pytest.raises(PreconditionError) as excinfo:
        ensure_executable(hook, "001-first")

    message = str(excinfo.value)
    assert "Hook 'patchy-pre-apply' in patch set '001-first' is not executable." in message
    assert f"Run: chmod +x {hook.path}" in message


def test_run_hook_streams_output_and_sees_environment(tmp_path: Path) -> None:
    _write_hook(tmp_path, "patchy-post-apply", 'echo "set=$PATCHY_PATCH_SET"\necho oops >&2\n')
    hook = find_hook(tmp_path, "patchy-", "post-apply")
    assert hook is not None
    lines: List[str] = []
    env = hook_environment(
        target_repo=tmp_path,
        patch_set="001-first",
        patches_dir=tmp_path.parent,
        patch_set_dir=tmp_path,
        base_revision="v1.2.3",
    )

    result = run_hook(hook, cwd=tmp_path, env=env, output=lines.append)

    assert result.ok
    assert result.exit_code == 0
    assert lines == ["set=001-first", "oops"]
    assert env["PATCHY_BASE_REVISION"] == "v1.2.3"


def test_run_hook_reports_exit_code(tmp_path: Path) -> None:
    _write_hook(tmp_path, "patchy-pre-apply", "exit 3\n")
    hook = find_hook(tmp_path, "patchy-", "pre-apply")
    assert hook is not None

    result = run_hook(hook, cwd=tmp_path, output=lambda line: None)

    assert result == HookResult(status="failed", exit_code=3)
    assert result.describe(hook.name) == "Hook 'patchy-pre-apply' failed with exit code 3."


def test_run_hook_reports_signal(tmp_path: Path) -> None:
    _write_hook(tmp_path, "patchy-pre-apply", "kill -TERM $$\n")
    hook = find_hook(tmp_path, "patchy-", "pre-apply")
    assert hook is not None

    result = run_hook(hook, cwd=tmp_path, output=lambda line: None)

    assert result.status == "failed"
    assert result.signal == "SIGTERM"
    assert result.describe(hook.name) == "Hook 'patchy-pre-apply' was killed by signal SIGTERM."


def test_run_hook_reports_spawn_error(tmp_path: Path) -> None:
    hook = HookInfo(path=tmp_path / "missing-hook", name="patchy-pre-apply", type="pre-apply")

    result = run_hook(hook, cwd=tmp_path, output=lambda line: None)

    assert result.status == "spawn-error"
    assert result.describe(hook.name).startswith("Hook 'patchy-pre-apply' failed to execute: ")


def test_hook_environment_omits_unknown_base_revision(tmp_path: Path) -> None:
    env = hook_environment(
        target_repo=tmp_path / "target",
        patch_set="002-second",
        patches_dir=tmp_path / "patches",
        patch_set_dir=tmp_path / "patches" / "002-second",
    )

    assert env == {
        "PATCHY_TARGET_REPO": str(tmp_path / "target"),
        "PATCHY_PATCH_SET": "002-second",
        "PATCHY_PATCHES_DIR": str(tmp_path / "patches"),
        "PATCHY_PATCH_SET_DIR": str(tmp_path / "patches" / "002-second"),
    }
