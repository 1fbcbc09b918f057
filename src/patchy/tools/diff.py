"""Unified diff parsing and fuzzy hunk application.

The engine works on plain text: it never touches the filesystem, so callers
decide what to do with the result (write it, embed conflict markers, report
an error).  Placement is deterministic.  Each hunk is first tried at its
anchor, the header's ``old_start`` shifted by the net line delta of the hunks
already placed plus the drift at which the previous hunk actually landed.
When that fails and ``fuzz_factor > 0`` the remaining, unconsumed part of the
buffer is scanned outward from the anchor (offset 0, -1, +1, -2, +2, ...) once
for each error budget ``0, 1, ..., fuzz_factor``.  The first pass that finds a
position wins, so an exact match a few lines away beats a fuzzy one at the
anchor; within a pass the closest position wins and, at equal distance, the
earlier line.  A position qualifies for budget ``n`` when every deleted line
matches exactly and at most ``n`` context lines had to be substituted by the
file's own text or dropped because the file no longer has them.  Raising the
fuzz factor therefore only ever adds qualifying positions.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterator, Literal, Sequence, Tuple

from ..errors import PatchyError

LOGGER = logging.getLogger(__name__)

HunkLineKind = Literal["context", "delete", "insert"]
AlignStep = Literal["match", "substitute", "drop"]

_HUNK_HEADER = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@"
)
_SECTION_HEADERS = ("--- ", "+++ ", "diff ", "index ", "Index: ", "===")


class PatchError(PatchyError):
    """Raised when a diff cannot be parsed or applied."""


class DiffParseError(PatchError):
    """Raised when diff text is not a well-formed unified diff."""


class DiffApplyError(PatchError):
    """Raised when one or more hunks cannot be placed in the target content."""


@dataclass(slots=True, frozen=True)
class HunkLine:
    """Single body line of a hunk."""

    kind: HunkLineKind
    text: str


@dataclass(slots=True)
class Hunk:
    """One ``@@`` block of a unified diff."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    header: str = ""
    lines: list[HunkLine] = field(default_factory=list)
    old_no_newline: bool = False
    new_no_newline: bool = False

    @property
    def old_lines(self) -> list[HunkLine]:
        return [line for line in self.lines if line.kind != "insert"]

    @property
    def new_lines(self) -> list[str]:
        return [line.text for line in self.lines if line.kind != "delete"]

    @property
    def inserted(self) -> int:
        return sum(1 for line in self.lines if line.kind == "insert")

    @property
    def deleted(self) -> int:
        return sum(1 for line in self.lines if line.kind == "delete")

    @property
    def net_delta(self) -> int:
        return self.inserted - self.deleted

    def is_complete(self) -> bool:
        """Return True once the body holds as many lines as the header declares."""
        return len(self.old_lines) >= self.old_count and len(self.new_lines) >= self.new_count


@dataclass(slots=True)
class HunkPlacement:
    """Where (and whether) a hunk landed in the target buffer."""

    number: int
    hunk: Hunk
    anchor: int
    position: int | None = None
    fuzz: int = 0

    @property
    def applied(self) -> bool:
        return self.position is not None

    @property
    def offset(self) -> int:
        return 0 if self.position is None else self.position - self.anchor


@dataclass(slots=True)
class DiffApplication:
    """Result of placing every hunk of a diff."""

    content: str
    placements: Tuple[HunkPlacement, ...] = ()

    @property
    def failed(self) -> Tuple[HunkPlacement, ...]:
        return tuple(placement for placement in self.placements if not placement.applied)

    @property
    def ok(self) -> bool:
        return not self.failed


# A fallback receives the buffer, the anchor and the hunk that could not be
# placed, and returns the lines to splice in plus how many buffer lines they
# replace.
FailedHunkHandler = Callable[[Sequence[str], int, Hunk], Tuple[list[str], int]]


def _split_diff_lines(text: str) -> list[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _default_count(value: str | None) -> int:
    """Return the number of lines represented in a hunk header."""
    return int(value) if value is not None else 1


def _trim_trailing_blank_context(hunk: Hunk) -> None:
    """Drop blank context lines that only exist because of trailing newlines."""
    while (
        hunk.lines
        and hunk.lines[-1].kind == "context"
        and hunk.lines[-1].text == ""
        and len(hunk.old_lines) > hunk.old_count
    ):
        hunk.lines.pop()


def parse_unified_diff(text: str) -> list[Hunk]:
    """Parse unified diff ``text`` into hunks.

    File headers (``---``/``+++``) and any preamble before the first hunk are
    skipped.  A blank line inside a hunk is treated as an empty context line.
    """

    hunks: list[Hunk] = []
    current: Hunk | None = None

    for line in _split_diff_lines(text):
        if line.startswith("@@"):
            match = _HUNK_HEADER.match(line)
            if not match:
                raise DiffParseError(f"Malformed hunk header: {line}")
            if current is not None:
                _trim_trailing_blank_context(current)
            current = Hunk(
                old_start=int(match.group("old_start")),
                old_count=_default_count(match.group("old_count")),
                new_start=int(match.group("new_start")),
                new_count=_default_count(match.group("new_count")),
                header=line,
            )
            hunks.append(current)
            continue

        if current is None:
            continue

        if current.is_complete() and line.startswith(_SECTION_HEADERS):
            _trim_trailing_blank_context(current)
            current = None
            continue

        if line == "":
            current.lines.append(HunkLine("context", ""))
            continue

        prefix, body = line[:1], line[1:]
        if prefix == " ":
            current.lines.append(HunkLine("context", body))
        elif prefix == "-":
            current.lines.append(HunkLine("delete", body))
        elif prefix == "+":
            current.lines.append(HunkLine("insert", body))
        elif prefix == "\\":
            last = current.lines[-1].kind if current.lines else "context"
            if last != "insert":
                current.old_no_newline = True
            if last != "delete":
                current.new_no_newline = True
        elif current.is_complete():
            current = None
        else:
            raise DiffParseError(f"Unexpected line in hunk {current.header!r}: {line!r}")

    if current is not None:
        _trim_trailing_blank_context(current)
    return hunks


def _split_content(content: str) -> tuple[list[str], bool]:
    if not content:
        return [], True
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
        return lines, True
    return lines, False


def _align(buffer: Sequence[str], position: int, hunk: Hunk, limit: int) -> tuple[list[AlignStep], int] | None:
    """Align the hunk's old side with ``buffer`` starting at ``position``.

    Returns one step per old-side line and the total cost, or None when the
    cheapest alignment costs more than ``limit``.  Deleted lines must match.
    A context line may match (free), be substituted by the file's line or be
    dropped because the file no longer has it (one unit each).  Ties prefer
    match, then substitute, then drop.
    """

    old = hunk.old_lines
    size = len(old)
    unreachable = limit + 1
    # cost[i][j]: cheapest alignment of old[i:] against buffer[position + j:].
    cost = [[0] * (size + 1) for _ in range(size + 1)]
    step: list[list[AlignStep | None]] = [[None] * (size + 1) for _ in range(size + 1)]

    for i in range(size - 1, -1, -1):
        entry = old[i]
        for j in range(i + 1):
            index = position + j
            available = index < len(buffer)
            matches = available and buffer[index] == entry.text
            best: tuple[int, AlignStep | None] = (unreachable, None)
            if matches:
                best = (cost[i + 1][j + 1], "match")
            if entry.kind == "context":
                if available and not matches and 1 + cost[i + 1][j + 1] < best[0]:
                    best = (1 + cost[i + 1][j + 1], "substitute")
                if 1 + cost[i + 1][j] < best[0]:
                    best = (1 + cost[i + 1][j], "drop")
            cost[i][j] = min(best[0], unreachable)
            step[i][j] = best[1]

    if cost[0][0] > limit:
        return None

    steps: list[AlignStep] = []
    j = 0
    for i in range(size):
        chosen = step[i][j]
        if chosen is None:
            return None
        steps.append(chosen)
        if chosen != "drop":
            j += 1
    return steps, cost[0][0]


def _candidate_positions(anchor: int, low: int, high: int) -> Iterator[int]:
    """Yield ``low..high`` ordered by distance from ``anchor``, earlier line first."""
    yield anchor
    for distance in range(1, max(anchor - low, high - anchor) + 1):
        if anchor - distance >= low:
            yield anchor - distance
        if anchor + distance <= high:
            yield anchor + distance


def _locate(
    buffer: Sequence[str],
    hunk: Hunk,
    anchor: int,
    cursor: int,
    fuzz_factor: int,
) -> tuple[int, list[AlignStep], int] | None:
    exact = _align(buffer, anchor, hunk, 0)
    if exact is not None:
        return anchor, exact[0], 0
    if fuzz_factor <= 0:
        return None
    # One outward scan per error budget; the lowest budget with a hit wins.
    for limit in range(fuzz_factor + 1):
        for position in _candidate_positions(anchor, cursor, len(buffer)):
            aligned = _align(buffer, position, hunk, limit)
            if aligned is not None:
                return position, aligned[0], aligned[1]
    return None


def _render(buffer: Sequence[str], position: int, hunk: Hunk, steps: Sequence[AlignStep]) -> tuple[list[str], int]:
    """Return replacement lines for a placed hunk and how many buffer lines it consumes."""
    replacement: list[str] = []
    index = position
    pending = iter(steps)
    for entry in hunk.lines:
        if entry.kind == "insert":
            replacement.append(entry.text)
            continue
        chosen = next(pending)
        if chosen == "drop":
            continue
        if entry.kind == "context":
            # Keep the file's own text so drifted context survives.
            replacement.append(buffer[index])
        index += 1
    return replacement, index - position


def _anchor_for(hunk: Hunk, delta: int, drift: int, cursor: int, size: int) -> int:
    expected = hunk.old_start if hunk.old_count == 0 else hunk.old_start - 1
    return min(max(expected + delta + drift, cursor), size)


def _describe_failures(failed: Sequence[HunkPlacement]) -> str:
    parts = [f"hunk #{placement.number} ({placement.hunk.header or '@@'})" for placement in failed]
    return "Patch failed to apply - context does not match at " + ", ".join(parts)


def place_hunks(
    content: str,
    hunks: Sequence[Hunk],
    fuzz_factor: int,
    *,
    on_failure: FailedHunkHandler | None = None,
) -> DiffApplication:
    """Place ``hunks`` into ``content``.

    Failed hunks are recorded in the returned placements.  When ``on_failure``
    is given its replacement is spliced in at the failed hunk's anchor;
    otherwise the buffer is left untouched there.
    """

    if fuzz_factor < 0:
        raise ValueError("fuzz_factor must be >= 0")

    buffer, trailing_newline = _split_content(content)
    original_empty = not content
    placements: list[HunkPlacement] = []
    cursor = 0
    delta = 0
    drift = 0
    eof_hunk: Hunk | None = None

    ordered = sorted(enumerate(hunks, start=1), key=lambda item: item[1].old_start)
    for number, hunk in ordered:
        anchor = _anchor_for(hunk, delta, drift, cursor, len(buffer))
        placement = HunkPlacement(number=number, hunk=hunk, anchor=anchor)
        placements.append(placement)

        located = _locate(buffer, hunk, anchor, cursor, fuzz_factor)
        if located is None:
            LOGGER.debug("Hunk #%d %s does not match near line %d", number, hunk.header, anchor + 1)
            if on_failure is None:
                continue
            replacement, consumed = on_failure(buffer, anchor, hunk)
            buffer[anchor : anchor + consumed] = replacement
            cursor = anchor + len(replacement)
            delta += len(replacement) - consumed
            eof_hunk = None
            continue

        position, steps, fuzz = located
        placement.position = position
        placement.fuzz = fuzz
        if position != anchor or fuzz:
            LOGGER.debug(
                "Hunk #%d applied at offset %+d with fuzz %d",
                number,
                position - anchor,
                fuzz,
            )

        replacement, consumed = _render(buffer, position, hunk, steps)
        buffer[position : position + consumed] = replacement
        drift += position - anchor
        cursor = position + len(replacement)
        delta += len(replacement) - consumed
        eof_hunk = hunk if cursor >= len(buffer) else None

    if eof_hunk is not None and eof_hunk.new_no_newline:
        trailing_newline = False
    elif eof_hunk is not None and eof_hunk.old_no_newline:
        trailing_newline = True
    elif original_empty:
        trailing_newline = bool(buffer)

    text = "\n".join(buffer)
    if buffer and trailing_newline:
        text += "\n"
    return DiffApplication(content=text, placements=tuple(placements))


def apply_hunks(content: str, diff: str | Sequence[Hunk], fuzz_factor: int = 0) -> str:
    """Apply a unified diff to ``content`` and return the patched text.

    Raises :class:`DiffApplyError` when any hunk cannot be placed; the caller's
    content is never partially patched.
    """

    hunks = parse_unified_diff(diff) if isinstance(diff, str) else list(diff)
    application = place_hunks(content, hunks, fuzz_factor)
    if not application.ok:
        raise DiffApplyError(
            _describe_failures(application.failed),
            details={"failed_hunks": [placement.number for placement in application.failed]},
        )
    return application.content


__all__ = [
    "DiffApplication",
    "DiffApplyError",
    "DiffParseError",
    "FailedHunkHandler",
    "Hunk",
    "HunkLine",
    "HunkPlacement",
    "PatchError",
    "apply_hunks",
    "parse_unified_diff",
    "place_hunks",
]
