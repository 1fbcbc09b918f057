"""Tool integrations used by the apply pipeline."""

from .conflicts import CONFLICT_MODES, ConflictMode, Resolution, resolve_diff
from .console import Console
from .diff import DiffApplyError, DiffParseError, Hunk, PatchError, apply_hunks, parse_unified_diff, place_hunks
from .hooks import DEFAULT_HOOK_PREFIX, HookInfo, HookResult, find_hook, run_hook
from .prompts import Confirm, ConfirmAnswer, default_confirm
from .telemetry import emit_event
from .vcs import GitError, GitRepository, is_git_repo

__all__ = [
    "CONFLICT_MODES",
    "Confirm",
    "ConfirmAnswer",
    "ConflictMode",
    "Console",
    "DEFAULT_HOOK_PREFIX",
    "DiffApplyError",
    "DiffParseError",
    "GitError",
    "GitRepository",
    "Hunk",
    "HookInfo",
    "HookResult",
    "PatchError",
    "Resolution",
    "apply_hunks",
    "default_confirm",
    "emit_event",
    "find_hook",
    "is_git_repo",
    "parse_unified_diff",
    "place_hunks",
    "resolve_diff",
    "run_hook",
]
