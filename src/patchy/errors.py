"""Exception taxonomy shared by the patch engine and the apply command."""

from __future__ import annotations

from typing import Any, Mapping


class PatchyError(RuntimeError):
    """Base class for every error raised by patchy."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class UsageError(PatchyError):
    """Conflicting flags, unknown patch set names or invalid configuration."""


class PreconditionError(PatchyError):
    """The environment is not safe to apply patches (dirty tree, bad hook)."""


class HookExecutionError(PatchyError):
    """A pre/post-apply hook exited non-zero, was killed, or could not start."""


class FileApplyError(PatchyError):
    """A single patch file could not be applied.

    These are contained: the applier records them and moves on to sibling
    files, and the run fails only once every patch set has been processed.
    """

    def __init__(self, file: str, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message, details=details)
        self.file = file


class CommitError(PatchyError):
    """``git add`` or ``git commit`` failed for a patch set."""


__all__ = [
    "CommitError",
    "FileApplyError",
    "HookExecutionError",
    "PatchyError",
    "PreconditionError",
    "UsageError",
]
