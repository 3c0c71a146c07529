"""Configuration schema for gitritual.

Defines all configuration options with types, defaults, and validation.
Uses Pydantic for schema enforcement and clear error messages.

Both snake_case keys and their camelCase spellings
(``targetBranches``, ``commitHashes``, ``isRegex``...)
are accepted.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
    model_validator,
)

from .branches import BranchSpec

DEFAULT_REMOTE = "origin"
DEFAULT_PATCH_ID_DEPTH = 30

# Prefix/suffix of fully qualified step identifiers
USES_PREFIX = "gitritual/"
USES_VERSION = "@v1"


def _to_list(value: Any) -> Any:
    """Normalise a one-or-many value to a list."""
    if value is None:
        return value
    if isinstance(value, (str, dict)):
        return [value]
    return value


def normalize_uses(uses: str) -> str:
    """Map ``gitritual/cherry-pick@v1`` and ``cherry-pick`` to ``cherry-pick``."""
    kind = uses.strip()
    if kind.startswith(USES_PREFIX):
        kind = kind[len(USES_PREFIX):]
    if kind.endswith(USES_VERSION):
        kind = kind[: -len(USES_VERSION)]
    return kind


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class GlobalsConfig(_Model):
    """Run-wide settings."""

    cwd: str = Field(description="Working directory of the repository to operate on")
    remote: str = Field(default=DEFAULT_REMOTE, description="Default remote name")
    push: bool = Field(default=False, description="Push branches after new commits were applied")
    patch_id_depth: int = Field(
        default=DEFAULT_PATCH_ID_DEPTH,
        ge=1,
        validation_alias=AliasChoices("patch_id_depth", "patchIdCheckDepth"),
        description="How many recent commits of a branch are fingerprinted",
    )
    skip_selection: bool = Field(
        default=False,
        validation_alias=AliasChoices("skip_selection", "skipSelection"),
        description="Skip interactive step/branch/task selection prompts",
    )

    @field_validator("cwd")
    @classmethod
    def validate_cwd(cls, v: str) -> str:
        """Reject an empty working directory; warn if it doesn't exist."""
        if not v or not v.strip():
            raise ValueError('Global config "cwd" (current working directory) is required.')
        path = Path(v).expanduser()
        if not path.exists():
            warnings.warn(f"Working directory does not exist: {v}", UserWarning)
        return v


class LoggingConfig(_Model):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log file level",
    )
    console_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Console (stderr) level",
    )
    dir: str = Field(
        default="",
        description="Log directory (empty = ~/.gitritual/logs)",
    )
    max_bytes: int = Field(
        default=10485760,  # 10MB
        ge=0,
        description="Maximum log file size in bytes",
    )
    backup_count: int = Field(
        default=5,
        ge=0,
        description="Number of backup log files to keep",
    )
    disable_file: bool = Field(
        default=False,
        description="Disable file logging (stderr only)",
    )

    @field_validator("level", "console_level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("dir")
    @classmethod
    def validate_log_dir(cls, v: str) -> str:
        """Warn if log directory path exists but isn't a directory."""
        if v:
            path = Path(v).expanduser()
            if path.exists() and not path.is_dir():
                warnings.warn(
                    f"Log path exists but is not a directory: {v}",
                    UserWarning,
                )
        return v


class CommitMessageCheck(_Model):
    """One message/author/date criterion, all parts combined with AND."""

    message: List[str] = Field(default_factory=list, description="Extended regex patterns, any may match")
    author: List[str] = Field(default_factory=list, description="Author patterns, any may match")
    date: Optional[Union[str, List[str]]] = Field(
        default=None,
        description="A 'YYYY-MM-DD' day or a [since, until] pair",
    )

    @field_validator("message", "author", mode="before")
    @classmethod
    def one_or_many(cls, v: Any) -> Any:
        return [] if v is None else _to_list(v)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: Optional[Union[str, List[str]]]) -> Optional[Union[str, List[str]]]:
        if isinstance(v, list) and len(v) != 2:
            raise ValueError("date range must be a [since, until] pair")
        return v


class ReplicationTask(_Model):
    """Create ``new_branch`` from ``base_branch`` and replicate commits onto it."""

    base_branch: str = Field(validation_alias=AliasChoices("base_branch", "baseBranch"))
    new_branch: str = Field(validation_alias=AliasChoices("new_branch", "newBranch"))
    commit_hashes: List[str] = Field(
        min_length=1,
        validation_alias=AliasChoices("commit_hashes", "commitHashes"),
    )

    @field_validator("commit_hashes", mode="before")
    @classmethod
    def one_or_many(cls, v: Any) -> Any:
        return _to_list(v)

    @property
    def label(self) -> str:
        return f"{self.base_branch} -> {self.new_branch}"


class CherryPickWith(_Model):
    target_branches: BranchSpec = Field(validation_alias=AliasChoices("target_branches", "targetBranches"))
    commit_hashes: List[str] = Field(
        min_length=1,
        validation_alias=AliasChoices("commit_hashes", "commitHashes"),
    )
    push: Optional[bool] = None
    remote: Optional[str] = None
    skip_branch_selection: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("skip_branch_selection", "skipBranchSelection"),
    )

    @field_validator("commit_hashes", mode="before")
    @classmethod
    def one_or_many(cls, v: Any) -> Any:
        return _to_list(v)


class CreateWithPickWith(_Model):
    tasks: List[ReplicationTask] = Field(min_length=1)
    push: Optional[bool] = None
    remote: Optional[str] = None
    skip_task_selection: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("skip_task_selection", "skipTaskSelection"),
    )

    @field_validator("tasks", mode="before")
    @classmethod
    def one_or_many(cls, v: Any) -> Any:
        return _to_list(v)


class HasCommitWith(_Model):
    target_branches: BranchSpec = Field(validation_alias=AliasChoices("target_branches", "targetBranches"))
    commit_hashes: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("commit_hashes", "commitHashes"),
    )
    commit_messages: List[CommitMessageCheck] = Field(
        default_factory=list,
        validation_alias=AliasChoices("commit_messages", "commitMessages"),
    )
    skip_branch_selection: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("skip_branch_selection", "skipBranchSelection"),
    )

    @field_validator("commit_hashes", mode="before")
    @classmethod
    def hashes_one_or_many(cls, v: Any) -> Any:
        return [] if v is None else _to_list(v)

    @field_validator("commit_messages", mode="before")
    @classmethod
    def messages_one_or_many(cls, v: Any) -> Any:
        items = [] if v is None else _to_list(v)
        # A bare string is shorthand for a message-only check
        return [{"message": item} if isinstance(item, str) else item for item in items]

    @model_validator(mode="after")
    def require_a_check(self) -> "HasCommitWith":
        if not self.commit_hashes and not self.commit_messages:
            raise ValueError("has-commit requires at least one of commit_hashes or commit_messages")
        return self


class PushWith(_Model):
    target_branches: BranchSpec = Field(validation_alias=AliasChoices("target_branches", "targetBranches"))
    remote: Optional[str] = None
    skip_branch_selection: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("skip_branch_selection", "skipBranchSelection"),
    )


class CherryPickStep(_Model):
    name: Optional[str] = None
    uses: str
    with_: CherryPickWith = Field(alias="with")


class CreateWithPickStep(_Model):
    name: Optional[str] = None
    uses: str
    with_: CreateWithPickWith = Field(alias="with")


class HasCommitStep(_Model):
    name: Optional[str] = None
    uses: str
    with_: HasCommitWith = Field(alias="with")


class PushStep(_Model):
    name: Optional[str] = None
    uses: str
    with_: PushWith = Field(alias="with")


class CustomStep(_Model):
    name: Optional[str] = None
    run: List[str] = Field(min_length=1)

    @field_validator("run", mode="before")
    @classmethod
    def one_or_many(cls, v: Any) -> Any:
        return _to_list(v)


STEP_KINDS = ("cherry-pick", "create-with-pick", "has-commit", "push")


def _step_kind(value: Any) -> Optional[str]:
    """Discriminator: the normalised ``uses`` tag, or ``custom`` for ``run`` steps."""
    if isinstance(value, dict):
        uses = value.get("uses")
        if uses is None:
            return "custom" if "run" in value else None
    else:
        uses = getattr(value, "uses", None)
        if uses is None:
            return "custom" if isinstance(value, CustomStep) else None
    kind = normalize_uses(str(uses))
    return kind if kind in STEP_KINDS else None


Step = Annotated[
    Union[
        Annotated[CherryPickStep, Tag("cherry-pick")],
        Annotated[CreateWithPickStep, Tag("create-with-pick")],
        Annotated[HasCommitStep, Tag("has-commit")],
        Annotated[PushStep, Tag("push")],
        Annotated[CustomStep, Tag("custom")],
    ],
    Discriminator(
        _step_kind,
        custom_error_type="unknown_step",
        custom_error_message=(
            "Unknown step: expected 'uses' of cherry-pick, create-with-pick, "
            "has-commit or push, or a 'run' command"
        ),
    ),
]


def step_label(step: Any, index: int) -> str:
    """Human-readable label used in selection prompts and logs."""
    if step.name:
        return step.name
    if isinstance(step, CustomStep):
        return f"step {index + 1}: run {step.run[0]}"
    return f"step {index + 1}: {normalize_uses(step.uses)}"


class GitRitualConfig(_Model):
    """Root configuration model."""

    globals: GlobalsConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    steps: List[Step] = Field(default_factory=list)
