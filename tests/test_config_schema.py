"""Tests for config_schema module."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from gitritual.branches import BranchPattern
from gitritual.config_schema import (
    DEFAULT_PATCH_ID_DEPTH,
    CherryPickStep,
    CommitMessageCheck,
    CreateWithPickStep,
    CustomStep,
    GitRitualConfig,
    GlobalsConfig,
    HasCommitStep,
    LoggingConfig,
    PushStep,
    ReplicationTask,
    normalize_uses,
    step_label,
)


class TestGlobalsConfig:
    """Tests for GlobalsConfig model."""

    def test_defaults(self, tmp_path):
        """Only cwd is required."""
        config = GlobalsConfig(cwd=str(tmp_path))
        assert config.remote == "origin"
        assert config.push is False
        assert config.patch_id_depth == DEFAULT_PATCH_ID_DEPTH
        assert config.skip_selection is False

    def test_camel_case_keys(self, tmp_path):
        """Keys of the JavaScript config format are accepted."""
        config = GlobalsConfig.model_validate(
            {"cwd": str(tmp_path), "patchIdCheckDepth": 5, "skipSelection": True}
        )
        assert config.patch_id_depth == 5
        assert config.skip_selection is True

    def test_cwd_required(self):
        with pytest.raises(ValidationError, match="cwd"):
            GlobalsConfig(cwd="  ")

    def test_missing_cwd_warns(self, tmp_path):
        with pytest.warns(UserWarning, match="does not exist"):
            GlobalsConfig(cwd=str(tmp_path / "nope"))

    def test_depth_must_be_positive(self, tmp_path):
        with pytest.raises(ValidationError):
            GlobalsConfig(cwd=str(tmp_path), patch_id_depth=0)

    def test_unknown_key_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            GlobalsConfig.model_validate({"cwd": str(tmp_path), "pushh": True})


class TestLoggingConfig:
    """Tests for LoggingConfig model."""

    def test_defaults(self):
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.console_level == "INFO"
        assert config.dir == ""
        assert config.disable_file is False

    def test_level_is_case_insensitive(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")

    def test_log_dir_pointing_at_file_warns(self, tmp_path):
        path = tmp_path / "file.txt"
        path.write_text("x")
        with pytest.warns(UserWarning, match="not a directory"):
            LoggingConfig(dir=str(path))


class TestCommitMessageCheck:
    def test_single_values_become_lists(self):
        check = CommitMessageCheck.model_validate({"message": "^fix", "author": "alice"})
        assert check.message == ["^fix"]
        assert check.author == ["alice"]
        assert check.date is None

    def test_date_range_needs_two_values(self):
        with pytest.raises(ValidationError, match="pair"):
            CommitMessageCheck(date=["2024-01-01"])


class TestReplicationTask:
    def test_label_and_aliases(self):
        task = ReplicationTask.model_validate(
            {"baseBranch": "main", "newBranch": "backport/1", "commitHashes": "abc123"}
        )
        assert task.commit_hashes == ["abc123"]
        assert task.label == "main -> backport/1"

    def test_commits_required(self):
        with pytest.raises(ValidationError):
            ReplicationTask(base_branch="main", new_branch="x", commit_hashes=[])


# ============================================================================
# Steps
# ============================================================================


class TestSteps:
    def test_uses_tag_variants(self):
        assert normalize_uses("gitritual/cherry-pick@v1") == "cherry-pick"
        assert normalize_uses("push") == "push"

    def test_each_step_kind_is_discriminated(self, tmp_path):
        config = GitRitualConfig.model_validate(
            {
                "globals": {"cwd": str(tmp_path)},
                "steps": [
                    {
                        "uses": "gitritual/cherry-pick@v1",
                        "with": {"targetBranches": "release-a", "commitHashes": ["abc"]},
                    },
                    {
                        "uses": "create-with-pick",
                        "with": {"tasks": {"base_branch": "main", "new_branch": "b", "commit_hashes": "abc"}},
                    },
                    {
                        "uses": "has-commit",
                        "with": {"target_branches": ["a", "b"], "commit_messages": "^Add"},
                    },
                    {
                        "uses": "push",
                        "with": {"target_branches": {"branches": "^release-", "isRegex": True}},
                    },
                    {"name": "Build", "run": "make build"},
                ],
            }
        )

        kinds = [type(step) for step in config.steps]
        assert kinds == [CherryPickStep, CreateWithPickStep, HasCommitStep, PushStep, CustomStep]

        cherry, create, audit, push, custom = config.steps
        assert cherry.with_.target_branches == "release-a"
        assert create.with_.tasks[0].commit_hashes == ["abc"]
        assert audit.with_.commit_messages == [CommitMessageCheck(message=["^Add"])]
        assert push.with_.target_branches == BranchPattern(patterns=["^release-"], is_regex=True)
        assert custom.run == ["make build"]

    def test_unknown_step_rejected(self, tmp_path):
        with pytest.raises(ValidationError, match="Unknown step"):
            GitRitualConfig.model_validate(
                {"globals": {"cwd": str(tmp_path)}, "steps": [{"uses": "create-pr", "with": {}}]}
            )

    def test_has_commit_needs_a_check(self, tmp_path):
        with pytest.raises(ValidationError, match="at least one"):
            GitRitualConfig.model_validate(
                {
                    "globals": {"cwd": str(tmp_path)},
                    "steps": [{"uses": "has-commit", "with": {"target_branches": "main"}}],
                }
            )

    def test_cherry_pick_needs_commits(self, tmp_path):
        with pytest.raises(ValidationError):
            GitRitualConfig.model_validate(
                {
                    "globals": {"cwd": str(tmp_path)},
                    "steps": [{"uses": "cherry-pick", "with": {"target_branches": "main", "commit_hashes": []}}],
                }
            )

    def test_step_labels(self):
        named = CustomStep(name="Build", run=["make"])
        unnamed = CustomStep(run=["make test", "make lint"])
        push = PushStep.model_validate({"uses": "gitritual/push@v1", "with": {"target_branches": "main"}})
        assert step_label(named, 0) == "Build"
        assert step_label(unnamed, 1) == "step 2: run make test"
        assert step_label(push, 2) == "step 3: push"

    def test_logging_section_defaults(self, tmp_path):
        config = GitRitualConfig.model_validate({"globals": {"cwd": str(tmp_path)}})
        assert config.logging == LoggingConfig()
        assert config.steps == []
