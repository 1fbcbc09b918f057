"""Console output helpers: status symbols and the collapsible hook writer."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Callable, List, TextIO

import typer

BULLET = "\u25CF"  # ●
TREE_BRANCH = "\u251C"  # ├
TREE_CORNER = "\u2514"  # └
CHECK_MARK = "\u2714"  # ✔
CROSS_MARK = "\u2716"  # ✖

ANSI_CLEAR_LINE = "\x1b[2K"


def _stream_is_tty(stream: TextIO | None) -> bool:
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty()) if callable(isatty) else False
    except ValueError:
        return False


class Console:
    """Thin wrapper over :func:`typer.echo` shared by the apply pipeline."""

    def __init__(self, *, interactive: bool | None = None) -> None:
        self._interactive = interactive

    @property
    def interactive(self) -> bool:
        if self._interactive is None:
            return _stream_is_tty(sys.stdout)
        return self._interactive

    def out(self, message: str = "", *, nl: bool = True) -> None:
        typer.echo(message, nl=nl)

    def err(self, message: str = "", *, nl: bool = True) -> None:
        typer.echo(message, err=True, nl=nl)

    def collapsible(self, label: str, *, prefix: str = "", verbose: bool = False) -> "CollapsibleWriter":
        writer = CollapsibleWriter(
            label=label,
            prefix=prefix,
            verbose=verbose,
            interactive=self.interactive,
            emit=self.out,
        )
        writer.start()
        return writer


@dataclass(slots=True)
class CollapsibleWriter:
    """Buffer process output under a single status line.

    On a terminal only the label is shown while the process runs; its output
    is replayed if it fails.  Without a terminal the label is printed up
    front and, in verbose mode, output lines are streamed as they arrive.
    """

    label: str
    emit: Callable[..., None]
    prefix: str = ""
    indent: str = "    "
    verbose: bool = False
    interactive: bool = False
    lines: List[str] = field(default_factory=list)

    def start(self) -> None:
        if self.interactive:
            self.emit(f"{self.prefix}{self.label}", nl=False)
        else:
            self.emit(f"{self.prefix}{self.label}")

    def write(self, text: str) -> None:
        for line in text.splitlines():
            if not line:
                continue
            formatted = f"{self.indent}{line}"
            self.lines.append(formatted)
            if self.verbose and not self.interactive:
                self.emit(formatted)

    def _clear(self) -> None:
        if self.interactive:
            self.emit(f"\r{ANSI_CLEAR_LINE}", nl=False)

    def succeed(self, message: str | None = None) -> None:
        self._clear()
        self.emit(f"{self.prefix}{message or self.label} {CHECK_MARK}")

    def fail(self, message: str | None = None) -> None:
        self._clear()
        for line in self.lines:
            self.emit(line)
        self.emit(f"{self.prefix}{message or self.label} {CROSS_MARK}")


__all__ = [
    "BULLET",
    "CHECK_MARK",
    "CROSS_MARK",
    "CollapsibleWriter",
    "Console",
    "TREE_BRANCH",
    "TREE_CORNER",
]
