"""Interactive confirmation capability used by the commit controller."""

from __future__ import annotations

import sys
from typing import Callable, Literal

import typer

ConfirmAnswer = Literal["yes", "no", "cancelled"]
Confirm = Callable[[str], ConfirmAnswer]


def can_prompt() -> bool:
    """Return ``True`` when both stdin and stdout are attached to a terminal."""
    try:
        return sys.stdin.isatty() and sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


def terminal_confirm(message: str) -> ConfirmAnswer:
    """Ask a yes/no question on the terminal; Ctrl-C or EOF count as cancelled."""
    try:
        return "yes" if typer.confirm(message, default=True) else "no"
    except typer.Abort:
        return "cancelled"


def default_confirm() -> Confirm | None:
    """Return the terminal prompt when one is available, else ``None``."""
    return terminal_confirm if can_prompt() else None


__all__ = ["Confirm", "ConfirmAnswer", "can_prompt", "default_confirm", "terminal_confirm"]
