"""Enumerate the files of a patch set into copy and diff payloads."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Literal

PatchKind = Literal["copy", "diff"]
DIFF_SUFFIX = ".diff"


@dataclass(slots=True, frozen=True)
class PatchFile:
    """One file inside a patch set and where it lands in the target repo."""

    relative_path: str
    kind: PatchKind
    source_path: Path
    target_relative_path: str
    target_path: Path


def _iter_files(root: Path) -> List[str]:
    return sorted(path.relative_to(root).as_posix() for path in root.rglob("*") if path.is_file())


def collect_patch_files(
    patch_set_dir: Path,
    target_repo: Path,
    *,
    exclude: Iterable[str] = (),
) -> List[PatchFile]:
    """Return the patch files of ``patch_set_dir`` in lexical order.

    Files whose basename is in ``exclude`` (the hook scripts) are skipped.
    ``*.diff`` files patch the same relative path without the suffix; every
    other file is copied verbatim.
    """

    if not patch_set_dir.is_dir():
        return []

    excluded = set(exclude)
    files: List[PatchFile] = []
    for relative in _iter_files(patch_set_dir):
        if Path(relative).name in excluded:
            continue
        is_diff = relative.endswith(DIFF_SUFFIX)
        target_relative = relative[: -len(DIFF_SUFFIX)] if is_diff else relative
        files.append(
            PatchFile(
                relative_path=relative,
                kind="diff" if is_diff else "copy",
                source_path=patch_set_dir / relative,
                target_relative_path=target_relative,
                target_path=target_repo / target_relative,
            )
        )
    return files


__all__ = ["DIFF_SUFFIX", "PatchFile", "PatchKind", "collect_patch_files"]
