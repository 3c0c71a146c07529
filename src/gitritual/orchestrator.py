"""Workflows composed from branch resolution, fingerprints and replication.

Each workflow follows the same shape:

1. Resolve the branch (or task) set, optionally narrowed by the user
2. Pass the safety gate
3. Remember the branch checked out at the start
4. Process every item behind its own error boundary
5. Switch back to the remembered branch, whatever happened
6. Return a ``StepReport``

A failed item never stops its siblings. ``UserCancelled`` is not an item
failure: it unwinds the workflow once the original branch is restored.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, TypeVar

from git.exc import GitCommandError

from .branches import BranchSpec, resolve_branches
from .config_schema import (
    DEFAULT_PATCH_ID_DEPTH,
    DEFAULT_REMOTE,
    CommitMessageCheck,
    GlobalsConfig,
    ReplicationTask,
)
from .engine import ReplicationEngine
from .errors import GitRitualError, NetworkOperationError
from .fingerprints import ChangeFingerprintIndex
from .observability import log_action, log_error, log_info, log_success, log_warning
from .prompts import UserInteraction
from .reporting import StepReport
from .safety import ensure_safe
from .workspace import LogEntry, WorkspaceSession, git_error_text, short

T = TypeVar("T")


@dataclass
class OrchestratorSettings:
    """Run-wide defaults a step may override."""

    remote: str = DEFAULT_REMOTE
    push: bool = False
    patch_id_depth: int = DEFAULT_PATCH_ID_DEPTH
    skip_selection: bool = False

    @classmethod
    def from_globals(cls, globals_config: GlobalsConfig) -> "OrchestratorSettings":
        return cls(
            remote=globals_config.remote,
            push=globals_config.push,
            patch_id_depth=globals_config.patch_id_depth,
            skip_selection=globals_config.skip_selection,
        )


def with_retry(interaction: UserInteraction, description: str, operation: Callable[[], T]) -> T:
    """Run a network operation, asking to retry after each failure.

    Raises:
        NetworkOperationError: The operation failed and the user declined to retry
    """
    while True:
        try:
            return operation()
        except GitCommandError as e:
            reason = git_error_text(e)
            log_error(f"{description} failed: {reason}")
            if not interaction.confirm(f"{description} failed. Retry?", default=True):
                raise NetworkOperationError(f"{description} failed: {reason}") from e
            log_info(f"Retrying: {description}")


def build_log_filters(check: CommitMessageCheck) -> List[str]:
    """``git log`` arguments for one message/author/date check."""
    filters: List[str] = []
    if check.message:
        filters.append("--extended-regexp")
        filters.extend(f"--grep={pattern}" for pattern in check.message)
    filters.extend(f"--author={author}" for author in check.author)
    if isinstance(check.date, str):
        filters.append(f"--since={check.date} 00:00:00")
        filters.append(f"--until={check.date} 23:59:59")
    elif check.date:
        since, until = check.date
        filters.append(f"--since={since}")
        filters.append(f"--until={until}")
    return filters


class StepOrchestrator:
    """Runs the four workflows against one ``WorkspaceSession``.

    Attributes:
        session: Workspace every git operation goes through
        interaction: Prompts for selection, confirmation and recovery
        settings: Defaults for remote, push, scan depth and selection
    """

    def __init__(
        self,
        session: WorkspaceSession,
        interaction: UserInteraction,
        settings: Optional[OrchestratorSettings] = None,
    ):
        self.session = session
        self.interaction = interaction
        self.settings = settings or OrchestratorSettings(remote=session.remote)
        self.index = ChangeFingerprintIndex(session, self.settings.patch_id_depth)
        self.engine = ReplicationEngine(session, interaction)

    # ------------------------------------------------------------------
    # Shared lifecycle
    # ------------------------------------------------------------------

    def _select(self, message: str, options: Sequence[str], skip: Optional[bool]) -> List[str]:
        skip = self.settings.skip_selection if skip is None else skip
        if skip:
            log_info("Selection prompt skipped as per configuration.")
            return list(options)
        return self.interaction.multi_select(message, options)

    def _resolve_and_select(
        self, targets: BranchSpec, message: str, skip: Optional[bool]
    ) -> List[str]:
        branches = resolve_branches(targets, self.session)
        if not branches:
            log_warning("No target branches found matching the provided configuration.")
            return []
        selected = self._select(message, branches, skip)
        if not selected:
            log_warning("No branches selected.")
        return selected

    @contextmanager
    def restore_original_branch(self, report: StepReport) -> Iterator[str]:
        """Switch back to the branch active on entry, on every exit path.

        A failed switch is recorded in ``report.warnings`` and never replaces
        the exception (or result) of the block.
        """
        original = self.session.current_ref()
        try:
            yield original
        finally:
            try:
                if self.session.current_ref() != original:
                    log_info(f"\nSwitching back to original branch \"{original}\".")
                    self.session.checkout(original)
            except GitCommandError as e:
                warning = (
                    f"Failed to switch back to the original branch \"{original}\". "
                    f"Please switch manually. Reason: {git_error_text(e)}"
                )
                log_warning(warning)
                report.add_warning(warning)

    def _run_item(
        self,
        report: StepReport,
        item: str,
        process: Callable[..., None],
        *args,
        reset_on_failure: bool = True,
    ) -> None:
        """Per-item error boundary: failures are recorded, siblings continue."""
        try:
            process(report, item, *args)
        except (GitRitualError, GitCommandError) as e:
            reason = git_error_text(e)
            log_error(f"{item}: {reason}")
            report.fail(item, reason)
            if reset_on_failure:
                self._reset_after_failure()
        result = report.result_for(item)
        log_action(
            "item",
            outcome=result.status.value if result else "unknown",
            step=report.step_name,
            item=item,
        )

    def _reset_after_failure(self) -> None:
        """Best-effort cleanup so the next item starts from a clean tree."""
        try:
            if self.session.cherry_pick_in_progress():
                self.session.cherry_pick_abort()
            self.session.reset_hard()
        except GitCommandError as e:
            log_warning(f"Failed to reset working tree: {git_error_text(e)}")

    def _prepare_branch(self, branch: str) -> None:
        """Check out ``branch``; bring it up to date from the upstream it tracks."""
        self.session.checkout(branch)
        upstream = self.session.upstream_of(branch)
        if upstream is None:
            return
        up_remote, up_branch = upstream
        with_retry(
            self.interaction,
            f"Fetch {up_remote}/{up_branch}",
            lambda: self.session.fetch(up_remote, up_branch),
        )
        with_retry(
            self.interaction,
            f"Pull {up_remote}/{up_branch}",
            lambda: self.session.pull_ff_only(up_remote, up_branch),
        )

    def _push_current(self, branch: str, remote: str) -> str:
        """Push ``branch`` to its upstream, or to ``remote`` setting one up.

        Returns the ``remote/branch`` pushed to.
        """
        upstream = self.session.upstream_of(branch)
        if upstream is None:
            push_remote, refspec, set_upstream = remote, branch, True
            target = f"{remote}/{branch}"
        else:
            push_remote, up_branch = upstream
            refspec, set_upstream = f"{branch}:{up_branch}", False
            target = f"{push_remote}/{up_branch}"
        with_retry(
            self.interaction,
            f"Push {branch} to {target}",
            lambda: self.session.push(push_remote, refspec, set_upstream=set_upstream),
        )
        return target

    def _replicate_onto(
        self,
        report: StepReport,
        item: str,
        branch: str,
        commits: Sequence[str],
        push: bool,
        remote: str,
    ) -> None:
        """Replicate the commits still missing from the checked-out ``branch``."""
        pending = self.index.filter_unapplied(commits, branch)
        if not pending:
            log_success(f"All changes already exist on \"{branch}\". Nothing to do.")
            report.succeed(item, "(no new changes)")
            return
        already = len(commits) - len(pending)
        if already:
            log_info(f"{already} commit(s) already on \"{branch}\"; applying {len(pending)}")

        result = self.engine.apply(pending)

        details = ["changes applied" if result.has_changes else "no new changes"]
        if push and result.has_changes:
            target = self._push_current(branch, remote)
            log_success(f"Pushed {branch} to {target}")
            details.append("pushed")
        if result.note:
            details.append(result.note)
            report.warn(item, f"({', '.join(details)})")
        else:
            report.succeed(item, f"({', '.join(details)})")

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def replicate_to_branches(
        self,
        targets: BranchSpec,
        commits: Sequence[str],
        push: Optional[bool] = None,
        remote: Optional[str] = None,
        skip_selection: Optional[bool] = None,
        step_name: str = "Cherry-Pick",
    ) -> StepReport:
        """Cherry-pick ``commits`` onto every target branch that lacks them."""
        report = StepReport(step_name)
        branches = self._resolve_and_select(
            targets, "Which branches to process for cherry-pick?", skip_selection
        )
        if not branches:
            return report
        log_info(f"Will process cherry-pick on: {', '.join(branches)}")

        ensure_safe(self.session)
        push = self.settings.push if push is None else push
        remote = remote or self.settings.remote
        commits = list(commits)

        with self.restore_original_branch(report):
            for position, branch in enumerate(branches, start=1):
                log_info(f"\nProcessing branch: {branch} ({position}/{len(branches)})")
                self._run_item(report, branch, self._replicate_branch, commits, push, remote)
        return report

    def _replicate_branch(
        self, report: StepReport, branch: str, commits: List[str], push: bool, remote: str
    ) -> None:
        self._prepare_branch(branch)
        self._replicate_onto(report, branch, branch, commits, push, remote)

    def create_then_replicate(
        self,
        tasks: Sequence[ReplicationTask],
        push: Optional[bool] = None,
        remote: Optional[str] = None,
        skip_selection: Optional[bool] = None,
        step_name: str = "Create-With-Pick",
    ) -> StepReport:
        """Create each task's new branch from its base and replicate onto it."""
        report = StepReport(step_name)
        tasks = list(tasks)
        if not tasks:
            log_warning("No tasks configured.")
            return report
        labels = self._select("Which tasks to run?", [t.label for t in tasks], skip_selection)
        selected = [t for t in tasks if t.label in labels]
        if not selected:
            log_warning("No tasks selected.")
            return report

        ensure_safe(self.session)
        push = self.settings.push if push is None else push
        remote = remote or self.settings.remote

        with self.restore_original_branch(report):
            for position, task in enumerate(selected, start=1):
                log_info(f"\nProcessing task: {task.label} ({position}/{len(selected)})")
                self._run_item(report, task.label, self._create_and_replicate, task, push, remote)
        return report

    def _create_and_replicate(
        self, report: StepReport, item: str, task: ReplicationTask, push: bool, remote: str
    ) -> None:
        log_info(f"Preparing base branch \"{task.base_branch}\"...")
        self._prepare_branch(task.base_branch)

        if self.session.branch_name_in_use(task.new_branch):
            reuse = self.interaction.confirm(
                f"Branch \"{task.new_branch}\" already exists. Use it and continue?",
                default=True,
            )
            if not reuse:
                log_warning(f"Skipping task as user chose not to reuse \"{task.new_branch}\".")
                report.warn(item, "skipped by user")
                return
            self._prepare_branch(task.new_branch)
        else:
            self.session.create_branch_from(task.new_branch, task.base_branch)
            log_success(f"Created branch \"{task.new_branch}\" from \"{task.base_branch}\"")

        self._replicate_onto(report, item, task.new_branch, task.commit_hashes, push, remote)

    def audit_presence(
        self,
        targets: BranchSpec,
        commit_hashes: Optional[Sequence[str]] = None,
        commit_messages: Optional[Sequence[CommitMessageCheck]] = None,
        skip_selection: Optional[bool] = None,
        step_name: str = "Has-Commit",
    ) -> StepReport:
        """Report which commits (by content or by message search) each branch has.

        Read-only apart from the checkouts.
        """
        report = StepReport(step_name)
        branches = self._resolve_and_select(
            targets, "Which branches to check for commits?", skip_selection
        )
        if not branches:
            return report

        ensure_safe(self.session)
        hashes = list(commit_hashes or [])
        checks = list(commit_messages or [])

        with self.restore_original_branch(report):
            for branch in branches:
                log_info(f"\nChecking branch: {branch}")
                self._run_item(
                    report, branch, self._audit_branch, hashes, checks, reset_on_failure=False
                )
        return report

    def _audit_branch(
        self,
        report: StepReport,
        branch: str,
        hashes: List[str],
        checks: List[CommitMessageCheck],
    ) -> None:
        self.session.checkout(branch)
        details: List[str] = []
        complete = True

        if hashes:
            found = self.index.find_applied(hashes, branch)
            missing = [h for h in hashes if h not in found]
            for commit in found:
                log_success(f"  found {short(commit)}")
            for commit in missing:
                log_warning(f"  missing {short(commit)}")
            details.append(f"{len(found)}/{len(hashes)} commits found")
            if missing:
                complete = False
                details.append("missing: " + ", ".join(short(c) for c in missing))

        if checks:
            matches: dict[str, LogEntry] = {}
            matched_checks = 0
            for check in checks:
                entries = self.session.search_log(branch, build_log_filters(check))
                if entries:
                    matched_checks += 1
                for entry in entries:
                    matches.setdefault(entry.hash, entry)
            for entry in matches.values():
                log_success(f"  {short(entry.hash)} {entry.message} ({entry.author}, {entry.date})")
            details.append(
                f"{matched_checks}/{len(checks)} message checks matched, {len(matches)} commit(s)"
            )
            if matched_checks < len(checks):
                complete = False

        detail = f"({'; '.join(details)})"
        if complete:
            report.succeed(branch, detail)
        else:
            report.warn(branch, detail)

    def push_many(
        self,
        targets: BranchSpec,
        remote: Optional[str] = None,
        skip_selection: Optional[bool] = None,
        step_name: str = "Push",
    ) -> StepReport:
        """Push every target branch that is ahead of (and not behind) its upstream."""
        report = StepReport(step_name)
        branches = self._resolve_and_select(targets, "Which branches to push?", skip_selection)
        if not branches:
            return report

        ensure_safe(self.session)
        remote = remote or self.settings.remote

        with self.restore_original_branch(report):
            for branch in branches:
                log_info(f"\nPushing branch: {branch}")
                self._run_item(report, branch, self._push_branch, remote, reset_on_failure=False)
        return report

    def _push_branch(self, report: StepReport, branch: str, remote: str) -> None:
        self.session.checkout(branch)
        upstream = self.session.upstream_of(branch)
        if upstream is None:
            target = self._push_current(branch, remote)
            log_success(f"Pushed {branch} and set upstream to {target}")
            report.succeed(branch, "(upstream set)")
            return

        up_remote, up_branch = upstream
        with_retry(
            self.interaction,
            f"Fetch {up_remote}/{up_branch}",
            lambda: self.session.fetch(up_remote, up_branch),
        )
        status = self.session.upstream_status()
        if status.behind > 0:
            reason = (
                f"Branch is {status.behind} commit(s) behind remote. "
                "Please pull/rebase first."
            )
            log_error(f"{branch}: {reason}")
            report.fail(branch, reason)
            return
        if status.ahead == 0:
            log_warning(f"Branch \"{branch}\" is already up-to-date. Nothing to push.")
            report.warn(branch, "(up-to-date)")
            return

        target = self._push_current(branch, remote)
        log_success(f"Pushed {status.ahead} commit(s) of {branch} to {target}")
        report.succeed(branch, f"({status.ahead} commit(s) pushed)")
