"""Content fingerprints for "already applied" detection.

A fingerprint is the ``git patch-id --stable`` of a commit's diff. It ignores
the commit hash, author, date and message, so a cherry-picked copy shares
the fingerprint of its source.

Only the latest ``depth`` commits of a branch are scanned. A change that
landed further back is treated as not applied and will be attempted again;
raise the depth to widen the window.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set

from .config_schema import DEFAULT_PATCH_ID_DEPTH
from .observability import log_debug, log_warning
from .workspace import WorkspaceSession, short


class ChangeFingerprintIndex:
    """Answers "is this change already on that branch" by fingerprint."""

    def __init__(self, session: WorkspaceSession, depth: int = DEFAULT_PATCH_ID_DEPTH):
        if depth < 1:
            raise ValueError(f"depth must be at least 1, got {depth}")
        self.session = session
        self.depth = depth
        self._commit_cache: Dict[str, Optional[str]] = {}

    def fingerprint_of(self, commit: str) -> Optional[str]:
        """Fingerprint of ``commit``, or None for merges, empty commits and unknown refs."""
        if commit not in self._commit_cache:
            fingerprint = self.session.patch_id(commit)
            if fingerprint is None:
                log_warning(f"Could not compute patch-id for {short(commit)}; it will be treated as not applied")
            self._commit_cache[commit] = fingerprint
        return self._commit_cache[commit]

    def recent_fingerprints(self, branch: str, depth: Optional[int] = None) -> Set[str]:
        """Fingerprints of the latest ``depth`` commits of ``branch``."""
        depth = depth or self.depth
        by_commit = self.session.recent_patch_ids(branch, depth)
        if by_commit is None:
            log_warning(f"Could not read history of {branch}; no commit will be considered applied")
            return set()
        log_debug(f"[FINGERPRINT] {len(by_commit)} fingerprints on {branch}", depth=depth)
        return set(by_commit.values())

    def is_applied(self, commit: str, branch: str, depth: Optional[int] = None) -> bool:
        fingerprint = self.fingerprint_of(commit)
        if fingerprint is None:
            return False
        return fingerprint in self.recent_fingerprints(branch, depth)

    def _partition(
        self, commits: Iterable[str], branch: str, depth: Optional[int]
    ) -> tuple[List[str], List[str]]:
        present = self.recent_fingerprints(branch, depth)
        applied: List[str] = []
        unapplied: List[str] = []
        for commit in commits:
            fingerprint = self.fingerprint_of(commit)
            if fingerprint is not None and fingerprint in present:
                applied.append(commit)
            else:
                unapplied.append(commit)
        log_debug(
            f"[FINGERPRINT] {branch}",
            applied=[short(c) for c in applied],
            unapplied=[short(c) for c in unapplied],
        )
        return applied, unapplied

    def filter_unapplied(self, commits: Iterable[str], branch: str, depth: Optional[int] = None) -> List[str]:
        """Commits whose change is not yet on ``branch``, in input order."""
        return self._partition(commits, branch, depth)[1]

    def find_applied(self, commits: Iterable[str], branch: str, depth: Optional[int] = None) -> List[str]:
        """Commits whose change is already on ``branch``, in input order."""
        return self._partition(commits, branch, depth)[0]
