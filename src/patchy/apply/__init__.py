"""Patch set resolution, application and commit orchestration."""

from .collector import PatchFile, collect_patch_files
from .commit import CommitController, CommitDecision, decide
from .orchestrator import ApplyOrchestrator, ApplyRunResult, resolve_auto_commit_mode
from .patch_set import ApplyOutcome, PatchSetApplier, PatchSetStats, apply_patch_file
from .resolver import PatchSet, resolve_patch_sets

__all__ = [
    "ApplyOrchestrator",
    "ApplyOutcome",
    "ApplyRunResult",
    "CommitController",
    "CommitDecision",
    "PatchFile",
    "PatchSet",
    "PatchSetApplier",
    "PatchSetStats",
    "apply_patch_file",
    "collect_patch_files",
    "decide",
    "resolve_auto_commit_mode",
    "resolve_patch_sets",
]
