"""Select which patch sets an ``apply`` run processes, and in what order."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from ..errors import UsageError


@dataclass(slots=True, frozen=True)
class PatchSet:
    """A patch set directory scheduled for application."""

    name: str
    position: int
    directory: Path


def list_patch_set_names(patches_dir: Path) -> List[str]:
    """Return the lexically sorted names of the subdirectories of ``patches_dir``."""

    if not patches_dir.is_dir():
        return []
    return sorted(entry.name for entry in patches_dir.iterdir() if entry.is_dir())


def filter_patch_sets(names: Sequence[str], only: str | None, until: str | None) -> List[str]:
    if only and until:
        raise UsageError("Cannot use both --only and --until flags together")

    if only:
        if only not in names:
            raise UsageError(f"Patch set not found: {only}")
        return [only]

    if until:
        if until not in names:
            raise UsageError(f"Patch set not found: {until}")
        return list(names[: names.index(until) + 1])

    return list(names)


def resolve_patch_sets(
    patches_dir: Path | str,
    *,
    only: str | None = None,
    until: str | None = None,
) -> List[PatchSet]:
    """Resolve the ordered patch sets to apply.

    ``only`` and ``until`` are mutually exclusive; naming a set that does not
    exist is a :class:`UsageError`, even when the directory is empty.  An
    empty or missing directory otherwise yields an empty list.
    """

    root = Path(patches_dir)
    selected = filter_patch_sets(list_patch_set_names(root), only, until)
    return [PatchSet(name=name, position=index, directory=root / name) for index, name in enumerate(selected)]


__all__ = ["PatchSet", "filter_patch_sets", "list_patch_set_names", "resolve_patch_sets"]
