"""Cherry-pick recovery state machine.

Drives one commit through ``git cherry-pick`` to a terminal outcome::

    IDLE -> ATTEMPTING -> SUCCESS | NO_OP | NEEDS_DECISION
    NEEDS_DECISION -> RESOLVED | SKIPPED | ABORTED | ATTEMPTING (retry)

An empty pick (the change is already present) is skipped without asking.
Any other failure asks the user for a ``RecoveryDecision``; ``continue`` is
only offered for conflicts. ``abort`` raises ``OperationAborted`` so the
whole replication chain unwinds, not just the current commit.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from git.exc import GitCommandError

from .errors import ContinueFailed, OperationAborted
from .observability import log_action, log_debug, log_error, log_info, log_success, log_warning
from .workspace import WorkspaceSession, git_error_text, short

if TYPE_CHECKING:
    from .prompts import UserInteraction


class RecoveryState(str, Enum):
    """States of a single commit's apply attempt."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCESS = "success"  # Applied, HEAD moved
    NO_OP = "no_op"  # Applied, HEAD unchanged
    NEEDS_DECISION = "needs_decision"  # Waiting on the user
    RESOLVED = "resolved"  # Conflict resolved and committed
    SKIPPED = "skipped"  # Not applied, handled
    ABORTED = "aborted"  # User ended the chain


TERMINAL_STATES = frozenset(
    {
        RecoveryState.SUCCESS,
        RecoveryState.NO_OP,
        RecoveryState.RESOLVED,
        RecoveryState.SKIPPED,
        RecoveryState.ABORTED,
    }
)


class RecoveryDecision(str, Enum):
    """Choices offered when a cherry-pick fails."""

    CONTINUE = "continue"
    RETRY = "retry"
    SKIP = "skip"
    ABORT = "abort"


class FailureKind(str, Enum):
    CONFLICT = "conflict"
    EMPTY = "empty"
    OTHER = "other"


@dataclass(frozen=True)
class CommitOutcome:
    """Terminal result for one commit."""

    handled: bool
    has_changes: bool
    note: Optional[str] = None


EMPTY_PICK_MESSAGE = "the previous cherry-pick is now empty"
NOTE_EMPTY = "empty submission"
NOTE_USER_SKIP = "user selected skip"

CONFLICT_HINT = "Resolve the conflicts and stage the files, then choose continue."
UNMERGED_HINT = "There are still unmerged files. Resolve and stage them before continuing."


def classify_failure(message: str) -> FailureKind:
    """Classify a ``git cherry-pick`` failure message."""
    text = message.lower()
    if EMPTY_PICK_MESSAGE in text:
        return FailureKind.EMPTY
    if "conflict" in text or "could not apply" in text:
        return FailureKind.CONFLICT
    return FailureKind.OTHER


def decision_options(kind: FailureKind) -> List[RecoveryDecision]:
    """Decisions offered for a failure; ``continue`` only for conflicts."""
    options = [RecoveryDecision.RETRY, RecoveryDecision.SKIP, RecoveryDecision.ABORT]
    if kind is FailureKind.CONFLICT:
        options.insert(0, RecoveryDecision.CONTINUE)
    return options


class CherryPickRecovery:
    """Apply one commit at a time, asking the user how to recover from failures.

    Attributes:
        state: Current state of the last commit processed
        history: States visited while processing the last commit
    """

    def __init__(self, session: WorkspaceSession, interaction: "UserInteraction"):
        self.session = session
        self.interaction = interaction
        self.state = RecoveryState.IDLE
        self.history: List[RecoveryState] = [RecoveryState.IDLE]

    def _enter(self, state: RecoveryState) -> None:
        self.state = state
        self.history.append(state)

    def _finish(self, commit: str, state: RecoveryState, outcome: CommitOutcome) -> CommitOutcome:
        self._enter(state)
        log_action(
            "cherry_pick",
            outcome=state.value,
            commit=commit,
            has_changes=outcome.has_changes,
            note=outcome.note,
        )
        return outcome

    def _abort_in_progress(self) -> None:
        """Best-effort ``git cherry-pick --abort``."""
        if not self.session.cherry_pick_in_progress():
            return
        try:
            self.session.cherry_pick_abort()
        except GitCommandError as e:
            log_warning(f"Failed to abort cherry-pick: {git_error_text(e)}")

    def run(self, commit: str) -> CommitOutcome:
        """Drive ``commit`` to a terminal outcome.

        Raises:
            OperationAborted: The user chose abort
            ContinueFailed: ``git cherry-pick --continue`` failed unrecoverably
            UserCancelled: The user cancelled the decision prompt
        """
        self.state = RecoveryState.IDLE
        self.history = [RecoveryState.IDLE]
        while True:
            self._enter(RecoveryState.ATTEMPTING)
            before = self.session.head_sha()
            log_info(f"Cherry-picking {short(commit)}...")
            try:
                self.session.cherry_pick(commit)
            except GitCommandError as e:
                message = git_error_text(e)
                kind = classify_failure(message)
                log_debug(f"[RECOVERY] {short(commit)} failed", kind=kind.value, error=message)
                if kind is FailureKind.EMPTY:
                    return self._skip_empty(commit)
                outcome = self._decide(commit, kind, message)
                if outcome is None:
                    continue
                return outcome

            if self.session.head_sha() != before:
                log_success(f"Cherry-picked {short(commit)}")
                return self._finish(commit, RecoveryState.SUCCESS, CommitOutcome(True, True))
            log_info(f"Cherry-pick of {short(commit)} made no changes")
            return self._finish(commit, RecoveryState.NO_OP, CommitOutcome(True, False))

    def _skip_empty(self, commit: str) -> CommitOutcome:
        log_warning(f"Cherry-pick of {short(commit)} is empty, skipping")
        try:
            self.session.cherry_pick_skip()
        except GitCommandError as e:
            log_warning(f"git cherry-pick --skip failed: {git_error_text(e)}")
            self._abort_in_progress()
        return self._finish(commit, RecoveryState.SKIPPED, CommitOutcome(True, False, NOTE_EMPTY))

    def _decide(self, commit: str, kind: FailureKind, message: str) -> Optional[CommitOutcome]:
        """Ask until a decision reaches a terminal state; None means retry."""
        log_error(f"Cherry-pick of {short(commit)} failed ({kind.value}):\n{message}")
        options = decision_options(kind)
        hint = CONFLICT_HINT if kind is FailureKind.CONFLICT else None
        while True:
            self._enter(RecoveryState.NEEDS_DECISION)
            decision = self.interaction.choose_recovery(options, hint)
            if decision not in options:
                raise ValueError(f"Decision {decision!r} is not one of the offered options")
            log_debug(f"[RECOVERY] {short(commit)} decision", decision=decision.value)

            if decision is RecoveryDecision.CONTINUE:
                outcome = self._continue(commit)
                if outcome is None:
                    hint = UNMERGED_HINT
                    continue
                return outcome

            if decision is RecoveryDecision.RETRY:
                self._abort_in_progress()
                return None

            if decision is RecoveryDecision.SKIP:
                self._abort_in_progress()
                log_warning(f"Skipped {short(commit)}")
                return self._finish(commit, RecoveryState.SKIPPED, CommitOutcome(True, False, NOTE_USER_SKIP))

            self._abort_in_progress()
            self._finish(commit, RecoveryState.ABORTED, CommitOutcome(False, False, "aborted by user"))
            raise OperationAborted(f"Cherry-pick of {short(commit)} aborted by user")

    def _continue(self, commit: str) -> Optional[CommitOutcome]:
        """Finish a conflicted pick; None means the user must resolve more files."""
        if not self.session.cherry_pick_in_progress():
            # Committed or reset by hand outside the tool
            log_info(f"No cherry-pick in progress; treating {short(commit)} as resolved")
            return self._finish(commit, RecoveryState.RESOLVED, CommitOutcome(True, True))
        try:
            self.session.cherry_pick_continue()
        except GitCommandError as e:
            message = git_error_text(e)
            text = message.lower()
            # Checked first: unmerged paths may themselves contain "empty"
            if "unmerged files" in text:
                log_warning(f"Unmerged files remain for {short(commit)}")
                return None
            if EMPTY_PICK_MESSAGE in text:
                return self._skip_empty(commit)
            self._abort_in_progress()
            self._finish(commit, RecoveryState.ABORTED, CommitOutcome(False, False, message))
            raise ContinueFailed(f"git cherry-pick --continue failed for {short(commit)}: {message}") from e
        log_success(f"Resolved and committed {short(commit)}")
        return self._finish(commit, RecoveryState.RESOLVED, CommitOutcome(True, True))
