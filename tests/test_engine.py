"""Tests for the replication engine."""

from __future__ import annotations

import pytest

from gitritual.engine import ReplicationEngine, ReplicationResult
from gitritual.errors import OperationAborted
from gitritual.recovery import NOTE_USER_SKIP, RecoveryDecision
from gitritual.testing import ScriptedInteraction
from gitritual.workspace import WorkspaceSession


@pytest.fixture
def session(work_repo, scenario):
    work_repo.git.checkout("release-c")
    return WorkspaceSession(work_repo.working_dir)


def subjects(repo, count):
    return [c.summary for c in repo.iter_commits("HEAD", max_count=count)]


def test_commits_are_applied_in_given_order(work_repo, session, scenario):
    engine = ReplicationEngine(session, ScriptedInteraction())

    result = engine.apply([scenario["c2"], scenario["c1"]])

    assert result == ReplicationResult(has_changes=True, note=None)
    # Newest first
    assert subjects(work_repo, 3) == ["Add a", "Add b", "Release edit"]


def test_nothing_to_apply_has_no_changes(session):
    result = ReplicationEngine(session, ScriptedInteraction()).apply([])
    assert result == ReplicationResult(has_changes=False, note=None)


def test_skip_note_is_reported_and_changes_are_kept(work_repo, session, scenario):
    interaction = ScriptedInteraction(decisions=[RecoveryDecision.SKIP])
    engine = ReplicationEngine(session, interaction)

    result = engine.apply([scenario["c1"], scenario["cx"]])

    assert result.has_changes is True
    assert result.note == NOTE_USER_SKIP
    assert subjects(work_repo, 2) == ["Add a", "Release edit"]


def test_abort_stops_remaining_commits(work_repo, session, scenario):
    interaction = ScriptedInteraction(decisions=[RecoveryDecision.ABORT])
    engine = ReplicationEngine(session, interaction)
    head = work_repo.head.commit.hexsha

    with pytest.raises(OperationAborted):
        engine.apply([scenario["cx"], scenario["c1"], scenario["c2"]])

    assert work_repo.head.commit.hexsha == head
    assert not session.cherry_pick_in_progress()
