"""Strict or conflict-marker handling for diffs that do not apply cleanly."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

from .diff import DiffApplyError, Hunk, apply_hunks, parse_unified_diff, place_hunks

ConflictMode = Literal["error", "conflict-marker"]
CONFLICT_MODES: tuple[ConflictMode, ...] = ("error", "conflict-marker")

CURRENT_MARKER = "<<<<<<< current"
SEPARATOR_MARKER = "======="
PATCH_MARKER = ">>>>>>> patch"


@dataclass(slots=True)
class Resolution:
    """Patched content plus the number of embedded conflict blocks."""

    content: str
    conflicts: int = 0

    @property
    def conflicted(self) -> bool:
        return self.conflicts > 0


def _conflict_block(buffer: Sequence[str], anchor: int, hunk: Hunk) -> tuple[list[str], int]:
    """Render a failed hunk as ours/theirs markers over the span it was meant to replace."""
    span = min(len(hunk.old_lines), len(buffer) - anchor)
    current = list(buffer[anchor : anchor + span])
    block = [CURRENT_MARKER, *current, SEPARATOR_MARKER, *hunk.new_lines, PATCH_MARKER]
    return block, span


def resolve_diff(
    content: str,
    diff_text: str,
    fuzz_factor: int,
    mode: ConflictMode = "error",
) -> Resolution:
    """Apply ``diff_text`` to ``content`` according to ``mode``.

    ``"error"`` raises :class:`DiffApplyError` on the first unresolved file.
    ``"conflict-marker"`` applies what it can and embeds each failing hunk
    between conflict markers so the file can be fixed by hand.
    """

    if mode not in CONFLICT_MODES:
        raise ValueError(f"Unknown conflict mode: {mode}")

    hunks = parse_unified_diff(diff_text)
    if mode == "error":
        return Resolution(content=apply_hunks(content, hunks, fuzz_factor))

    application = place_hunks(content, hunks, fuzz_factor, on_failure=_conflict_block)
    return Resolution(content=application.content, conflicts=len(application.failed))


__all__ = [
    "CONFLICT_MODES",
    "ConflictMode",
    "CURRENT_MARKER",
    "DiffApplyError",
    "PATCH_MARKER",
    "Resolution",
    "SEPARATOR_MARKER",
    "resolve_diff",
]
