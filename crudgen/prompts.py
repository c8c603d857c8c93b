# File: crudgen/prompts.py
"""
crudgen - Interactive Prompts
==============================
The orchestration layer asks four kinds of question: pick one of several
choices, yes/no, pick any number of choices, and free text.  ``Prompter``
is that interface.

``RichPrompter`` asks on the terminal through ``rich.prompt``.
``StaticPrompter`` answers from a script, for ``--yes`` runs and tests.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.prompt import Confirm, Prompt

logger: logging.Logger = logging.getLogger("crudgen.prompts")


class Prompter:
    """Question interface used by the CLI."""

    def select(self, message: str, choices: Sequence[str], default: Optional[str] = None) -> str:
        raise NotImplementedError

    def confirm(self, message: str, default: bool = True) -> bool:
        raise NotImplementedError

    def checkbox(
        self,
        message: str,
        choices: Sequence[str],
        defaults: Sequence[str] = (),
    ) -> List[str]:
        """Return a non-empty subset of *choices*, in *choices* order."""
        raise NotImplementedError

    def text(self, message: str, default: str = "") -> str:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Terminal implementation
# ---------------------------------------------------------------------------


class RichPrompter(Prompter):
    def __init__(self, console: Optional[Console] = None) -> None:
        self.console: Console = console or Console()

    def select(self, message: str, choices: Sequence[str], default: Optional[str] = None) -> str:
        return Prompt.ask(
            message,
            choices=list(choices),
            default=default if default is not None else choices[0],
            console=self.console,
        )

    def confirm(self, message: str, default: bool = True) -> bool:
        return Confirm.ask(message, default=default, console=self.console)

    def checkbox(
        self,
        message: str,
        choices: Sequence[str],
        defaults: Sequence[str] = (),
    ) -> List[str]:
        for index, choice in enumerate(choices, start=1):
            marker: str = "*" if choice in defaults else " "
            self.console.print(f"  [{marker}] {index}. {choice}")
        while True:
            answer: str = Prompt.ask(
                f"{message} (comma-separated names or numbers)",
                default=",".join(defaults) if defaults else None,
                console=self.console,
            ) or ""
            picked: Optional[List[str]] = parse_selection(answer, choices)
            if picked:
                return picked
            self.console.print("[red]Select at least one valid entry.[/red]")

    def text(self, message: str, default: str = "") -> str:
        return Prompt.ask(message, default=default, console=self.console)


def parse_selection(answer: str, choices: Sequence[str]) -> Optional[List[str]]:
    """
    Resolve ``"1, Post"``-style input against *choices*.

    Returns ``None`` if any token matches nothing; otherwise the matched
    choices in *choices* order.
    """
    by_name: Dict[str, str] = {c.lower(): c for c in choices}
    chosen: set = set()
    for token in (t.strip() for t in answer.split(",")):
        if not token:
            continue
        if token.isdigit() and 1 <= int(token) <= len(choices):
            chosen.add(choices[int(token) - 1])
        elif token.lower() in by_name:
            chosen.add(by_name[token.lower()])
        else:
            return None
    return [c for c in choices if c in chosen]


# ---------------------------------------------------------------------------
# Scripted implementation
# ---------------------------------------------------------------------------


class StaticPrompter(Prompter):
    """
    Answers from a fixed mapping keyed by question message.

    Unanswered questions fall back to the default (``checkbox`` falls back
    to *defaults*, or every choice when none are given).  Every question
    asked is recorded in ``asked``.
    """

    def __init__(self, answers: Optional[Dict[str, Any]] = None) -> None:
        self.answers: Dict[str, Any] = dict(answers or {})
        self.asked: List[str] = []

    def _answer(self, message: str, fallback: Any) -> Any:
        self.asked.append(message)
        value: Any = self.answers.get(message, fallback)
        logger.debug("Scripted answer for %r: %r", message, value)
        return value

    def select(self, message: str, choices: Sequence[str], default: Optional[str] = None) -> str:
        value: str = self._answer(message, default if default is not None else choices[0])
        if value not in choices:
            raise ValueError(f"Scripted answer {value!r} is not one of {list(choices)}.")
        return value

    def confirm(self, message: str, default: bool = True) -> bool:
        return bool(self._answer(message, default))

    def checkbox(
        self,
        message: str,
        choices: Sequence[str],
        defaults: Sequence[str] = (),
    ) -> List[str]:
        value: Sequence[str] = self._answer(message, list(defaults) or list(choices))
        picked: List[str] = [c for c in choices if c in set(value)]
        if not picked:
            raise ValueError(f"Scripted answer for {message!r} selects nothing.")
        return picked

    def text(self, message: str, default: str = "") -> str:
        return str(self._answer(message, default))


__all__: List[str] = [
    "Prompter",
    "RichPrompter",
    "StaticPrompter",
    "parse_selection",
]

logger.debug("crudgen.prompts loaded.")
