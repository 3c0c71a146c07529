"""Per-item results and step reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .observability import log_error, log_info, log_success, log_warning


class ItemStatus(str, Enum):
    SUCCEEDED = "succeeded"
    WARNED = "warned"  # Handled, counts as success
    FAILED = "failed"


@dataclass
class ItemResult:
    """Outcome for one branch or task."""

    item: str
    status: ItemStatus
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not ItemStatus.FAILED

    def describe(self) -> str:
        return f"{self.item} {self.detail}" if self.detail else self.item


@dataclass
class StepReport:
    """Aggregated results of one workflow invocation."""

    step_name: str
    items: List[ItemResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def succeed(self, item: str, detail: Optional[str] = None) -> ItemResult:
        return self._add(ItemResult(item, ItemStatus.SUCCEEDED, detail))

    def warn(self, item: str, detail: Optional[str] = None) -> ItemResult:
        return self._add(ItemResult(item, ItemStatus.WARNED, detail))

    def fail(self, item: str, detail: Optional[str] = None) -> ItemResult:
        return self._add(ItemResult(item, ItemStatus.FAILED, detail))

    def _add(self, result: ItemResult) -> ItemResult:
        self.items.append(result)
        return result

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def by_status(self, status: ItemStatus) -> List[ItemResult]:
        return [r for r in self.items if r.status is status]

    @property
    def succeeded(self) -> bool:
        """True when no item failed."""
        return all(r.ok for r in self.items)

    def result_for(self, item: str) -> Optional[ItemResult]:
        for result in self.items:
            if result.item == item:
                return result
        return None

    def log_summary(self) -> None:
        """Write the human-readable summary through the gitritual logger."""
        log_info(f"\nSummary for {self.step_name}:")
        succeeded = self.by_status(ItemStatus.SUCCEEDED)
        warned = self.by_status(ItemStatus.WARNED)
        failed = self.by_status(ItemStatus.FAILED)
        if succeeded:
            log_success("Successful: " + ", ".join(r.describe() for r in succeeded))
        if warned:
            log_warning("Warnings: " + ", ".join(r.describe() for r in warned))
        if failed:
            log_error("Failed:")
            for result in failed:
                log_error(f"  {result.item}: {result.detail or 'unknown error'}")
        for warning in self.warnings:
            log_warning(warning)
        if not self.items:
            log_info("No items processed.")
