"""Workspace session: the single handle to the repository being operated on.

Every git operation of a run goes through one ``WorkspaceSession``. The
session is passed explicitly to resolvers, indexes, engines and workflows;
nothing reads the process working directory.
"""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from .errors import GitRitualError
from .observability import log_debug

# Marker files/directories left in the git dir by an unfinished operation
IN_PROGRESS_MARKERS = (
    "CHERRY_PICK_HEAD",
    "MERGE_HEAD",
    "REBASE_HEAD",
    "REVERT_HEAD",
    "rebase-merge",
    "rebase-apply",
)

# Field separator for formatted git log output
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"

# Suppress the commit message editor for --continue
_NO_EDITOR_ENV = {"GIT_EDITOR": "true"}

# GitPython wraps captured output as "\n  stderr: '...'"
_STREAM_WRAPPER = re.compile(r"^\s*(?:stderr|stdout): '(.*)'\s*$", re.DOTALL)


def _unwrap_stream(text: str) -> str:
    match = _STREAM_WRAPPER.match(text)
    return (match.group(1) if match else text).strip()


def git_error_text(error: Exception) -> str:
    """Return the stderr/stdout text of a git failure without the command line."""
    if isinstance(error, GitCommandError):
        parts = [_unwrap_stream(str(s)) for s in (error.stderr, error.stdout) if s]
        text = "\n".join(p for p in parts if p)
        if text:
            return text
    return str(error)


def short(sha: str) -> str:
    return sha[:7]


@dataclass(frozen=True)
class UpstreamStatus:
    """Commits ahead/behind the upstream tracking branch."""

    ahead: int
    behind: int
    tracking: Optional[str]


@dataclass(frozen=True)
class LogEntry:
    """One commit of a history search."""

    hash: str
    message: str
    author: str
    date: str


class WorkspaceSession:
    """GitPython-backed handle to one working tree.

    Attributes:
        cwd: Working directory of the repository
        remote: Default remote name for network operations
        repo: GitPython Repo object

    Thread Safety:
        Not thread-safe. All operations are strictly sequential.
    """

    def __init__(self, cwd: Path | str, remote: str = "origin"):
        self.cwd = Path(cwd).expanduser()
        self.remote = remote
        try:
            self.repo = Repo(self.cwd)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise GitRitualError(f"Not a git repository: {self.cwd}") from e

    @property
    def git_dir(self) -> Path:
        return Path(self.repo.git_dir)

    # ------------------------------------------------------------------
    # State queries
    # ------------------------------------------------------------------

    def current_branch(self) -> Optional[str]:
        """Get active branch name, or None if detached HEAD."""
        try:
            if self.repo.head.is_detached:
                return None
            return self.repo.active_branch.name
        except TypeError:
            return None

    def current_ref(self) -> str:
        """Branch name, or the HEAD sha when detached."""
        return self.current_branch() or self.head_sha()

    def head_sha(self) -> str:
        return self.repo.git.rev_parse("HEAD").strip()

    def is_clean(self) -> bool:
        """True when there are no staged, unstaged or untracked changes."""
        return not self.repo.is_dirty(index=True, working_tree=True, untracked_files=True)

    def in_progress_markers(self) -> List[str]:
        """Markers of unfinished cherry-pick/merge/rebase/revert operations."""
        return [name for name in IN_PROGRESS_MARKERS if (self.git_dir / name).exists()]

    def cherry_pick_in_progress(self) -> bool:
        return (self.git_dir / "CHERRY_PICK_HEAD").exists()

    def upstream_of(self, branch: str) -> Optional[Tuple[str, str]]:
        """``(remote, remote branch)`` that ``branch`` tracks, or None."""
        try:
            head = self.repo.heads[branch]
        except IndexError:
            return None
        ref = head.tracking_branch()
        if ref is None or not ref.is_valid():
            return None
        return ref.remote_name, ref.remote_head

    def is_tracked(self, branch: str) -> bool:
        """True when ``branch`` has an upstream tracking branch."""
        return self.upstream_of(branch) is not None

    def upstream_status(self) -> UpstreamStatus:
        """Ahead/behind counts of HEAD against its upstream."""
        try:
            tracking = self.repo.git.rev_parse("--abbrev-ref", "HEAD@{u}").strip()
        except GitCommandError:
            return UpstreamStatus(ahead=0, behind=0, tracking=None)
        counts = self.repo.git.rev_list("--left-right", "--count", "HEAD...@{u}").split()
        ahead, behind = (int(counts[0]), int(counts[1])) if len(counts) == 2 else (0, 0)
        return UpstreamStatus(ahead=ahead, behind=behind, tracking=tracking)

    def list_branch_names(self) -> List[str]:
        """All local and remote branch names, remote prefixes stripped.

        ``<remote>/HEAD`` pointers are excluded and duplicates removed.
        """
        names: Dict[str, None] = {}
        for head in self.repo.heads:
            names[head.name] = None
        for remote in self.repo.remotes:
            for ref in remote.refs:
                remote_head = ref.remote_head
                if remote_head == "HEAD":
                    continue
                names[remote_head] = None
        return list(names)

    def local_branch_exists(self, branch: str) -> bool:
        return branch in [h.name for h in self.repo.heads]

    def branch_name_in_use(self, branch: str) -> bool:
        """True when ``branch`` exists locally or on any remote."""
        if self.local_branch_exists(branch):
            return True
        for remote in self.repo.remotes:
            if any(ref.remote_head == branch for ref in remote.refs):
                return True
        return False

    # ------------------------------------------------------------------
    # Branch operations
    # ------------------------------------------------------------------

    def checkout(self, ref: str) -> None:
        log_debug(f"[GIT] checkout {ref}")
        self.repo.git.checkout(ref)

    def create_branch_from(self, new_branch: str, base_branch: str) -> None:
        log_debug(f"[GIT] checkout -b {new_branch} {base_branch}")
        self.repo.git.checkout("-b", new_branch, base_branch)

    def reset_hard(self) -> None:
        self.repo.git.reset("--hard")

    # ------------------------------------------------------------------
    # Network operations
    # ------------------------------------------------------------------

    def fetch_all(self) -> None:
        self.repo.git.fetch("--all", "--prune")

    def fetch(self, remote: str, branch: str) -> None:
        self.repo.git.fetch(remote, branch)

    def pull_ff_only(self, remote: str, branch: str) -> None:
        # Note: --ff-only must come before remote/branch for git pull
        self.repo.git.pull("--ff-only", remote, branch)

    def push(self, remote: str, branch: str, set_upstream: bool = True) -> None:
        if set_upstream:
            self.repo.git.push("--set-upstream", remote, branch)
        else:
            self.repo.git.push(remote, branch)

    # ------------------------------------------------------------------
    # Cherry-pick primitives
    # ------------------------------------------------------------------

    def cherry_pick(self, commit: str) -> None:
        self.repo.git.cherry_pick(commit)

    def cherry_pick_continue(self) -> None:
        self.repo.git.cherry_pick("--continue", env=_NO_EDITOR_ENV)

    def cherry_pick_skip(self) -> None:
        self.repo.git.cherry_pick("--skip")

    def cherry_pick_abort(self) -> None:
        self.repo.git.cherry_pick("--abort")

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def _patch_ids(self, diff_cmd: List[str]) -> Optional[Dict[str, str]]:
        """Pipe ``diff_cmd`` output into ``git patch-id --stable``.

        Returns a mapping of commit sha -> patch id, or None when the diff
        cannot be produced. Commits without a diff (merges, empty commits)
        produce no entry.
        """
        shown = subprocess.run(
            ["git", *diff_cmd],
            cwd=str(self.cwd),
            capture_output=True,
        )
        if shown.returncode != 0:
            log_debug(
                "[GIT] diff for patch-id failed",
                cmd=diff_cmd,
                stderr=shown.stderr.decode("utf-8", "replace").strip(),
            )
            return None
        if not shown.stdout.strip():
            return {}
        result = subprocess.run(
            ["git", "patch-id", "--stable"],
            cwd=str(self.cwd),
            input=shown.stdout,
            capture_output=True,
        )
        if result.returncode != 0:
            log_debug("[GIT] patch-id failed", stderr=result.stderr.decode("utf-8", "replace").strip())
            return None
        ids: Dict[str, str] = {}
        for line in result.stdout.decode("utf-8", "replace").splitlines():
            parts = line.split()
            if len(parts) >= 2:
                ids[parts[1]] = parts[0]
        return ids

    def patch_id(self, commit: str) -> Optional[str]:
        """Content fingerprint of one commit, or None when undeterminable."""
        ids = self._patch_ids(["show", "--no-color", "--no-ext-diff", commit])
        if not ids:
            return None
        # git show emits exactly one commit
        return next(iter(ids.values()))

    def recent_patch_ids(self, branch: str, count: int) -> Optional[Dict[str, str]]:
        """Patch ids of the latest ``count`` commits of ``branch``, None if unreadable."""
        return self._patch_ids(
            ["log", "-p", "--no-color", "--no-ext-diff", f"--max-count={count}", branch, "--"]
        )

    def search_log(self, branch: str, filters: List[str]) -> List[LogEntry]:
        """Run ``git log <branch> <filters>`` and parse the commits."""
        fmt = _FIELD_SEP.join(["%H", "%s", "%an <%ae>", "%aI"]) + _RECORD_SEP
        output = self.repo.git.log(branch, f"--format={fmt}", *filters)
        entries = []
        for record in output.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            fields = record.split(_FIELD_SEP)
            if len(fields) < 4:
                continue
            entries.append(LogEntry(hash=fields[0], message=fields[1], author=fields[2], date=fields[3]))
        return entries
