"""Pre-mutation safety gate.

A workflow may only start changing the working tree when it is clean and no
other git operation (cherry-pick, merge, rebase, revert) is half finished.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .errors import SafetyViolation
from .observability import log_debug, log_error
from .workspace import WorkspaceSession


@dataclass
class SafetyReport:
    """Result of a workspace safety check."""

    clean: bool
    markers: List[str] = field(default_factory=list)

    @property
    def safe(self) -> bool:
        return self.clean and not self.markers

    @property
    def reasons(self) -> List[str]:
        reasons = []
        if not self.clean:
            reasons.append("working tree has uncommitted changes")
        for marker in self.markers:
            reasons.append(f"operation in progress ({marker})")
        return reasons


def inspect_workspace(session: WorkspaceSession) -> SafetyReport:
    """Read-only inspection of the workspace state."""
    report = SafetyReport(clean=session.is_clean(), markers=session.in_progress_markers())
    log_debug("[SAFETY] Inspect", clean=report.clean, markers=report.markers)
    return report


def check_safe(session: WorkspaceSession) -> bool:
    """Return True when mutation may begin; log every reason when it may not."""
    report = inspect_workspace(session)
    for reason in report.reasons:
        log_error(f"Workspace is not safe: {reason}")
    return report.safe


def ensure_safe(session: WorkspaceSession) -> None:
    """Raise SafetyViolation unless ``check_safe`` passes."""
    report = inspect_workspace(session)
    if not report.safe:
        raise SafetyViolation(
            "Please make sure the working directory is clean and no git operation "
            "is in progress: " + "; ".join(report.reasons)
        )
