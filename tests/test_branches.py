"""Tests for branch target resolution."""

from __future__ import annotations

import pytest

from gitritual.branches import BranchPattern, match_branches, resolve_branches
from gitritual.errors import PatternError
from gitritual.workspace import WorkspaceSession


class StubSession:
    """Stands in for a WorkspaceSession when only branch names matter."""

    def __init__(self, names):
        self.names = names
        self.listed = 0

    def list_branch_names(self):
        self.listed += 1
        return list(self.names)


# ============================================================================
# Literal specifications
# ============================================================================


def test_single_name_resolves_to_one_element_list():
    assert resolve_branches("release-a", StubSession([])) == ["release-a"]


def test_literal_list_keeps_order_and_drops_duplicates():
    spec = ["release-b", "release-a", "release-b"]
    assert resolve_branches(spec, StubSession([])) == ["release-b", "release-a"]


def test_non_regex_pattern_is_treated_as_literal_names():
    session = StubSession(["release-a"])
    spec = BranchPattern(patterns=["^release-", "main"], is_regex=False)
    assert resolve_branches(spec, session) == ["^release-", "main"]
    assert session.listed == 0


# ============================================================================
# Regex specifications
# ============================================================================


def test_regex_pattern_matches_known_branches():
    session = StubSession(["release-a", "release-b", "hotfix-a"])
    spec = BranchPattern(patterns=["^release-"], is_regex=True)
    assert resolve_branches(spec, session) == ["release-a", "release-b"]


def test_regex_patterns_are_unioned():
    session = StubSession(["release-a", "release-b", "hotfix-a", "main"])
    spec = BranchPattern(patterns=["^release-b$", "^hotfix-"], is_regex=True)
    assert resolve_branches(spec, session) == ["hotfix-a", "release-b"]


def test_regex_uses_search_semantics():
    assert match_branches(["fix"], ["hotfix-a", "bugfix/x", "main"]) == ["bugfix/x", "hotfix-a"]


def test_regex_without_match_returns_empty_list():
    session = StubSession(["main"])
    spec = BranchPattern(patterns=["^release-"], is_regex=True)
    assert resolve_branches(spec, session) == []


def test_invalid_regex_names_pattern():
    session = StubSession(["main"])
    spec = BranchPattern(patterns=["^release-", "feat/(unclosed"], is_regex=True)
    with pytest.raises(PatternError) as excinfo:
        resolve_branches(spec, session)
    assert excinfo.value.pattern == "feat/(unclosed"
    assert "feat/(unclosed" in str(excinfo.value)


def test_branch_pattern_accepts_camel_case_keys():
    spec = BranchPattern.model_validate({"branches": "^release-", "isRegex": True})
    assert spec.patterns == ["^release-"]
    assert spec.is_regex is True


# ============================================================================
# Against a real repository
# ============================================================================


def test_known_branches_merge_local_and_remote(work_repo, scenario):
    session = WorkspaceSession(work_repo.working_dir)
    names = session.list_branch_names()
    assert "HEAD" not in names
    assert len(names) == len(set(names))
    for expected in ("main", "feature", "release-a", "release-b", "hotfix-a", "release-c"):
        assert expected in names


def test_regex_resolution_in_repository(work_repo, scenario):
    session = WorkspaceSession(work_repo.working_dir)
    spec = BranchPattern(patterns=["^release-"], is_regex=True)
    assert resolve_branches(spec, session) == ["release-a", "release-b", "release-c"]


def test_remote_only_branches_are_known(work_repo, other_clone):
    other = other_clone()
    other.git.checkout("-b", "remote-only")
    other.git.push("origin", "remote-only")
    work_repo.git.fetch("origin")

    session = WorkspaceSession(work_repo.working_dir)
    assert "remote-only" in session.list_branch_names()
    assert session.branch_name_in_use("remote-only")
    assert not session.branch_name_in_use("never-created")
