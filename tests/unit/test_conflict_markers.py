from __future__ import annotations

import pytest

from patchy.tools.conflicts import (
    CURRENT_MARKER,
    PATCH_MARKER,
    SEPARATOR_MARKER,
    resolve_diff,
)
from patchy.tools.diff import DiffApplyError

DIFF = "@@ -1,3 +1,3 @@\n alpha\n-beta\n+BETA\n gamma\n"


def test_error_mode_raises_for_unresolvable_hunk() -> None:
    with pytest.raises(DiffApplyError, match="Patch failed to apply"):
        resolve_diff("alpha\nbeta changed\ngamma\n", DIFF, 2, "error")


def test_error_mode_returns_patched_content() -> None:
    resolution = resolve_diff("alpha\nbeta\ngamma\n", DIFF, 0)

    assert resolution.content == "alpha\nBETA\ngamma\n"
    assert not resolution.conflicted


def test_conflict_marker_mode_embeds_failed_hunk() -> None:
    resolution = resolve_diff("alpha\nbeta changed\ngamma\nomega\n", DIFF, 0, "conflict-marker")

    assert resolution.conflicts == 1
    assert resolution.content.splitlines() == [
        CURRENT_MARKER,
        "alpha",
        "beta changed",
        "gamma",
        SEPARATOR_MARKER,
        "alpha",
        "BETA",
        "gamma",
        PATCH_MARKER,
        "omega",
    ]


def test_conflict_marker_mode_still_applies_matching_hunks() -> None:
    diff = (
        "@@ -1,2 +1,2 @@\n-one\n+ONE\n two\n"
        "@@ -4,2 +4,2 @@\n-missing\n+present\n five\n"
    )

    resolution = resolve_diff("one\ntwo\nthree\nfour\nfive\n", diff, 0, "conflict-marker")

    assert resolution.conflicts == 1
    lines = resolution.content.splitlines()
    assert lines[:3] == ["ONE", "two", "three"]
    assert lines[3:] == [CURRENT_MARKER, "four", "five", SEPARATOR_MARKER, "present", "five", PATCH_MARKER]


def test_unknown_conflict_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        resolve_diff("a\n", DIFF, 0, "merge")  # type: ignore[arg-type]
