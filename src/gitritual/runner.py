"""Run the configured steps in order."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .config_schema import (
    CherryPickStep,
    CreateWithPickStep,
    CustomStep,
    GitRitualConfig,
    HasCommitStep,
    PushStep,
    Step,
    step_label,
)
from .errors import CustomCommandError
from .observability import log_info, log_success, log_warning, timeit
from .orchestrator import OrchestratorSettings, StepOrchestrator, with_retry
from .prompts import UserInteraction
from .reporting import StepReport
from .workspace import WorkspaceSession


def select_steps(
    steps: Sequence[Step], interaction: UserInteraction, skip_selection: bool
) -> List[Tuple[str, Step]]:
    """Label the steps and let the user choose which ones to run."""
    labelled = [(step_label(step, i), step) for i, step in enumerate(steps)]
    if skip_selection or len(labelled) <= 1:
        return labelled
    chosen = interaction.multi_select("Which steps to run?", [label for label, _ in labelled])
    return [(label, step) for label, step in labelled if label in chosen]


def run_custom_step(step: CustomStep, cwd: Path) -> None:
    """Run each shell command of a ``run`` step in ``cwd``.

    Raises:
        CustomCommandError: On the first command exiting non-zero
    """
    for command in step.run:
        log_info(f"$ {command}")
        completed = subprocess.run(command, shell=True, cwd=str(cwd))
        if completed.returncode != 0:
            raise CustomCommandError(command, completed.returncode)


def dispatch_step(
    orchestrator: StepOrchestrator, step: Step, label: str
) -> Optional[StepReport]:
    """Run one step; custom steps produce no report."""
    if isinstance(step, CherryPickStep):
        w = step.with_
        return orchestrator.replicate_to_branches(
            w.target_branches,
            w.commit_hashes,
            push=w.push,
            remote=w.remote,
            skip_selection=w.skip_branch_selection,
            step_name=label,
        )
    if isinstance(step, CreateWithPickStep):
        w = step.with_
        return orchestrator.create_then_replicate(
            w.tasks,
            push=w.push,
            remote=w.remote,
            skip_selection=w.skip_task_selection,
            step_name=label,
        )
    if isinstance(step, HasCommitStep):
        w = step.with_
        return orchestrator.audit_presence(
            w.target_branches,
            commit_hashes=w.commit_hashes,
            commit_messages=w.commit_messages,
            skip_selection=w.skip_branch_selection,
            step_name=label,
        )
    if isinstance(step, PushStep):
        w = step.with_
        return orchestrator.push_many(
            w.target_branches,
            remote=w.remote,
            skip_selection=w.skip_branch_selection,
            step_name=label,
        )
    if isinstance(step, CustomStep):
        run_custom_step(step, orchestrator.session.cwd)
        return None
    raise TypeError(f"Unsupported step type: {type(step).__name__}")


def run_steps(
    config: GitRitualConfig,
    interaction: UserInteraction,
    session: Optional[WorkspaceSession] = None,
    fetch: bool = True,
) -> List[StepReport]:
    """Fetch, then run the selected steps in order.

    Fatal errors (safety, pattern, custom command, abort outside an item)
    propagate; item failures are in the returned reports.
    """
    settings = OrchestratorSettings.from_globals(config.globals)
    if session is None:
        session = WorkspaceSession(config.globals.cwd, remote=settings.remote)
    orchestrator = StepOrchestrator(session, interaction, settings)

    if fetch:
        log_info("Fetching all remotes...")
        with timeit("fetch_all"):
            with_retry(interaction, "Fetch all remotes", session.fetch_all)

    selected = select_steps(config.steps, interaction, settings.skip_selection)
    if not selected:
        log_warning("No steps selected.")
        return []

    reports: List[StepReport] = []
    for position, (label, step) in enumerate(selected, start=1):
        log_info(f"\n=== {label} ({position}/{len(selected)}) ===")
        with timeit("step", step=label) as info:
            report = dispatch_step(orchestrator, step, label)
            if report is not None:
                info["succeeded"] = report.succeeded
                info["items"] = len(report.items)
        if report is None:
            log_success(f"{label} completed.")
            continue
        report.log_summary()
        reports.append(report)
    return reports
