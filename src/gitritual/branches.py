"""Branch target resolution.

Expands a declarative branch specification (a name, a list of names, or a
pattern object) into the concrete branch names a step should process.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, List, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .errors import PatternError
from .observability import log_debug, log_warning

if TYPE_CHECKING:
    from .workspace import WorkspaceSession


class BranchPattern(BaseModel):
    """Pattern object: literal names, or regular expressions when ``is_regex``."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    patterns: List[str] = Field(validation_alias=AliasChoices("patterns", "branches"))
    is_regex: bool = Field(default=False, validation_alias=AliasChoices("is_regex", "isRegex"))

    @field_validator("patterns", mode="before")
    @classmethod
    def one_or_many(cls, v: Any) -> Any:
        return [v] if isinstance(v, str) else v


BranchSpec = Union[str, List[str], BranchPattern]


def compile_patterns(patterns: List[str]) -> List[re.Pattern[str]]:
    """Compile every pattern, failing fast on the first invalid one."""
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise PatternError(pattern, str(e)) from e
    return compiled


def match_branches(patterns: List[str], known_branches: List[str]) -> List[str]:
    """Return the sorted union of branches matched by any pattern.

    Patterns use search semantics: anchor with ``^``/``$`` for full matches.
    """
    matched: set[str] = set()
    for regex in compile_patterns(patterns):
        for branch in known_branches:
            if regex.search(branch):
                matched.add(branch)
    return sorted(matched)


def _dedupe(names: List[str]) -> List[str]:
    return list(dict.fromkeys(names))


def resolve_branches(spec: BranchSpec, session: "WorkspaceSession") -> List[str]:
    """Resolve a branch specification to concrete branch names.

    Args:
        spec: A branch name, a list of names, or a BranchPattern
        session: Workspace used to enumerate known branches for regex patterns

    Returns:
        Branch names without duplicates. Literal lists keep their order
        (first occurrence wins); regex matches are sorted.

    Raises:
        PatternError: If a regex pattern does not compile
    """
    if isinstance(spec, str):
        return [spec]
    if isinstance(spec, BranchPattern):
        if not spec.is_regex:
            return _dedupe(spec.patterns)
        known = session.list_branch_names()
        resolved = match_branches(spec.patterns, known)
        log_debug(
            "[BRANCHES] Resolved regex patterns",
            patterns=spec.patterns,
            known=len(known),
            matched=resolved,
        )
        if not resolved:
            log_warning(f"No branches matched patterns: {', '.join(spec.patterns)}")
        return resolved
    return _dedupe(spec)
