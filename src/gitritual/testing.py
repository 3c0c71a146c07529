"""Testing utilities.

Provides a scripted ``UserInteraction`` so workflows can run headlessly, and
an environment override helper for configuration tests.

Usage:
    from gitritual.testing import ScriptedInteraction
    from gitritual.recovery import RecoveryDecision

    interaction = ScriptedInteraction(decisions=[RecoveryDecision.SKIP])
    engine = ReplicationEngine(session, interaction)

    with mock_env_vars(GITRITUAL_REMOTE="upstream"):
        config = load_config(path)
"""

from __future__ import annotations

import os
from collections import deque
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .errors import UserCancelled
from .recovery import RecoveryDecision

DecisionScript = Union[
    RecoveryDecision,
    str,
    Callable[[Sequence[RecoveryDecision], Optional[str]], Union[RecoveryDecision, str]],
]
SelectionScript = Union[None, Sequence[str], Callable[[str, Sequence[str]], Sequence[str]]]


class ScriptedInteraction:
    """``UserInteraction`` answering from pre-recorded scripts.

    Args:
        decisions: Answers for ``choose_recovery`` in order. A callable entry is
            called with ``(options, hint)``, which lets a test edit the working
            tree at the moment the decision is asked for.
        confirms: Answers for ``confirm``; once exhausted the default is used.
        selections: Answers for ``multi_select``; ``None`` (or exhaustion)
            keeps every option.

    Every prompt is appended to ``calls`` as ``(prompt_kind, payload)``.
    Running out of recovery decisions behaves like the user cancelling.
    """

    def __init__(
        self,
        decisions: Iterable[DecisionScript] = (),
        confirms: Iterable[bool] = (),
        selections: Iterable[SelectionScript] = (),
    ):
        self.decisions = deque(decisions)
        self.confirms = deque(confirms)
        self.selections = deque(selections)
        self.calls: List[Tuple[str, Any]] = []

    def multi_select(self, message: str, options: Sequence[str]) -> List[str]:
        self.calls.append(("multi_select", (message, list(options))))
        script = self.selections.popleft() if self.selections else None
        if script is None:
            return list(options)
        chosen = script(message, options) if callable(script) else script
        return [option for option in options if option in chosen]

    def confirm(self, message: str, default: bool = True) -> bool:
        self.calls.append(("confirm", message))
        if not self.confirms:
            return default
        return self.confirms.popleft()

    def choose_recovery(
        self, options: Sequence[RecoveryDecision], hint: Optional[str] = None
    ) -> RecoveryDecision:
        self.calls.append(("choose_recovery", (list(options), hint)))
        if not self.decisions:
            raise UserCancelled("No scripted recovery decision left")
        script = self.decisions.popleft()
        answer = script(options, hint) if callable(script) else script
        return RecoveryDecision(answer)

    def prompts(self, kind: str) -> List[Any]:
        """Payloads of every prompt of ``kind``."""
        return [payload for prompt_kind, payload in self.calls if prompt_kind == kind]


@contextmanager
def mock_env_vars(**env_vars: Optional[str]):
    """Temporarily set environment variables; a None value deletes the var."""
    old_env: Dict[str, Optional[str]] = {}

    try:
        for key, value in env_vars.items():
            old_env[key] = os.environ.get(key)
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = str(value)

        yield

    finally:
        for key, old_value in old_env.items():
            if old_value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = old_value
