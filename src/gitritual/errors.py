"""Exception types for gitritual runs."""

from __future__ import annotations


class GitRitualError(Exception):
    """Base exception for gitritual operations."""
    pass


class ConfigError(GitRitualError):
    """Configuration loading or validation error."""
    pass


class SafetyViolation(GitRitualError):
    """Workspace is dirty or in the middle of another git operation."""
    pass


class PatternError(GitRitualError):
    """A branch pattern is not a valid regular expression."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f'Invalid regular expression provided: "{pattern}".\n{reason}')


class NetworkOperationError(GitRitualError):
    """Fetch, pull or push failed and the user declined to retry."""
    pass


class OperationAborted(GitRitualError):
    """User chose to abort the replication chain."""
    pass


class ContinueFailed(GitRitualError):
    """``git cherry-pick --continue`` failed in an unrecoverable way."""
    pass


class CustomCommandError(GitRitualError):
    """A custom ``run`` command exited with a non-zero status."""

    def __init__(self, command: str, returncode: int):
        self.command = command
        self.returncode = returncode
        super().__init__(f"Command failed with exit code {returncode}: {command}")


class UserCancelled(Exception):
    """User cancelled an interactive prompt (Ctrl-C or EOF).

    Not a GitRitualError. Per-item error boundaries re-raise it and the run
    ends without further mutation.
    """
    pass
