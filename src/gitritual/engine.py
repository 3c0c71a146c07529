"""Apply an ordered list of commits to the checked-out branch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from .observability import log_debug
from .recovery import CherryPickRecovery
from .workspace import WorkspaceSession

if TYPE_CHECKING:
    from .prompts import UserInteraction


@dataclass(frozen=True)
class ReplicationResult:
    """Aggregate of a replication run on one branch."""

    has_changes: bool
    note: Optional[str] = None


class ReplicationEngine:
    """Cherry-picks commits one at a time through ``CherryPickRecovery``.

    ``OperationAborted`` and ``ContinueFailed`` propagate immediately; the
    remaining commits are not attempted.
    """

    def __init__(self, session: WorkspaceSession, interaction: "UserInteraction"):
        self.session = session
        self.recovery = CherryPickRecovery(session, interaction)

    def apply(self, commits: Iterable[str]) -> ReplicationResult:
        has_changes = False
        note: Optional[str] = None
        for commit in commits:
            outcome = self.recovery.run(commit)
            has_changes = has_changes or outcome.has_changes
            if outcome.note:
                note = outcome.note
        log_debug("[ENGINE] Replication finished", has_changes=has_changes, note=note)
        return ReplicationResult(has_changes=has_changes, note=note)
