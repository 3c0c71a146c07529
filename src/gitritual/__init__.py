"""gitritual: content-aware batch cherry-picking across branches."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("gitritual")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"  # Fallback for editable installs without metadata

from .branches import BranchPattern, resolve_branches  # noqa: F401
from .engine import ReplicationEngine, ReplicationResult  # noqa: F401
from .errors import GitRitualError, UserCancelled  # noqa: F401
from .fingerprints import ChangeFingerprintIndex  # noqa: F401
from .orchestrator import OrchestratorSettings, StepOrchestrator  # noqa: F401
from .recovery import CherryPickRecovery, RecoveryDecision  # noqa: F401
from .reporting import ItemStatus, StepReport  # noqa: F401
from .workspace import WorkspaceSession  # noqa: F401

__all__ = [
    "BranchPattern",
    "ChangeFingerprintIndex",
    "CherryPickRecovery",
    "GitRitualError",
    "ItemStatus",
    "OrchestratorSettings",
    "RecoveryDecision",
    "ReplicationEngine",
    "ReplicationResult",
    "StepOrchestrator",
    "StepReport",
    "UserCancelled",
    "WorkspaceSession",
    "resolve_branches",
    "__version__",
]
