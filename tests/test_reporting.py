"""Tests for step reports."""

from gitritual.reporting import ItemResult, ItemStatus, StepReport


def test_warnings_do_not_fail_a_step():
    report = StepReport("Push")
    report.succeed("release-a", "(1 commit(s) pushed)")
    report.warn("release-b", "(up-to-date)")
    assert report.succeeded
    assert [r.item for r in report.by_status(ItemStatus.WARNED)] == ["release-b"]


def test_one_failure_fails_the_step():
    report = StepReport("Cherry-Pick")
    report.succeed("release-a")
    report.fail("release-b", "aborted")
    assert not report.succeeded
    assert report.result_for("release-b") == ItemResult("release-b", ItemStatus.FAILED, "aborted")
    assert report.result_for("release-z") is None


def test_empty_report_succeeds():
    report = StepReport("Has-Commit")
    assert report.succeeded
    assert report.items == []
    assert report.warnings == []


def test_describe():
    assert ItemResult("main", ItemStatus.SUCCEEDED).describe() == "main"
    assert ItemResult("main", ItemStatus.WARNED, "(up-to-date)").describe() == "main (up-to-date)"
