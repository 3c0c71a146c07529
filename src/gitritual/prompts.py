"""Interactive prompts used by workflows.

Workflows never call ``input()`` directly; they receive a ``UserInteraction``
so runs can be driven headlessly (see ``gitritual.testing``).
"""

from __future__ import annotations

from typing import Callable, List, Optional, Protocol, Sequence, runtime_checkable

from .errors import UserCancelled
from .recovery import RecoveryDecision


@runtime_checkable
class UserInteraction(Protocol):
    """Protocol for the three prompts a run may need."""

    def multi_select(self, message: str, options: Sequence[str]) -> List[str]:
        """Let the user narrow ``options``; every option is selected by default.

        Returns:
            The chosen subset, in the order of ``options``.

        Raises:
            UserCancelled: If the user cancels the prompt.
        """
        ...

    def confirm(self, message: str, default: bool = True) -> bool:
        """Ask a yes/no question.

        Raises:
            UserCancelled: If the user cancels the prompt.
        """
        ...

    def choose_recovery(
        self, options: Sequence[RecoveryDecision], hint: Optional[str] = None
    ) -> RecoveryDecision:
        """Ask how to recover from a failed cherry-pick.

        Args:
            options: Decisions allowed for this failure, in display order.
            hint: Extra guidance shown above the choices.

        Raises:
            UserCancelled: If the user cancels the prompt.
        """
        ...


class TerminalInteraction:
    """``UserInteraction`` on stdin/stdout.

    With ``assume_yes`` selections keep every option and confirmations take
    their default without asking. Recovery decisions are always asked.
    """

    def __init__(self, assume_yes: bool = False, input_func: Callable[[str], str] = input):
        self.assume_yes = assume_yes
        self._input = input_func

    def _ask(self, prompt: str) -> str:
        try:
            return self._input(prompt).strip()
        except (EOFError, KeyboardInterrupt) as e:
            raise UserCancelled("Prompt cancelled by user") from e

    def multi_select(self, message: str, options: Sequence[str]) -> List[str]:
        options = list(options)
        if self.assume_yes or not options:
            return options
        print(message)
        for index, option in enumerate(options, start=1):
            print(f"  {index}. {option}")
        while True:
            answer = self._ask("Select by number (e.g. 1,3-4), empty for all: ")
            if not answer:
                return options
            chosen = _parse_selection(answer, len(options))
            if chosen is not None:
                return [options[i] for i in sorted(chosen)]
            print("Invalid selection.")

    def confirm(self, message: str, default: bool = True) -> bool:
        if self.assume_yes:
            return default
        suffix = "[Y/n]" if default else "[y/N]"
        while True:
            answer = self._ask(f"{message} {suffix} ").lower()
            if not answer:
                return default
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False

    def choose_recovery(
        self, options: Sequence[RecoveryDecision], hint: Optional[str] = None
    ) -> RecoveryDecision:
        if hint:
            print(hint)
        labels = ", ".join(f"[{d.value[0]}]{d.value[1:]}" for d in options)
        while True:
            answer = self._ask(f"How do you want to proceed? {labels}: ").lower()
            for decision in options:
                if answer in (decision.value, decision.value[0]):
                    return decision


def _parse_selection(answer: str, count: int) -> Optional[set[int]]:
    """Parse ``1,3-4`` into zero-based indexes; None when invalid."""
    chosen: set[int] = set()
    for part in answer.replace(" ", "").split(","):
        if not part:
            continue
        start, sep, end = part.partition("-")
        try:
            first = int(start)
            last = int(end) if sep else first
        except ValueError:
            return None
        if not (1 <= first <= last <= count):
            return None
        chosen.update(range(first - 1, last))
    return chosen
