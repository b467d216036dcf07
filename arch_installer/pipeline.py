from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Type

from .errors import CatalogueError, ExternalCommandFailed, InstallerError
from .installer_config import InstallerConfig
from .lib.command import CommandRunner
from .prompt import Prompter
from .retry import retry_or_abort
from .state_store import ProvisioningState, clear_state, save_state

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepContext:
    prompter: Prompter
    runner: CommandRunner
    cfg: InstallerConfig

    @property
    def dry_run(self) -> bool:
        return self.runner.dry_run

    @property
    def target_root(self) -> str:
        return self.cfg.target_root

    def target_path(self, rel: str) -> str:
        """Path of `rel` inside the installed system, as seen from the live system."""

        return self.target_root.rstrip("/") + "/" + rel.lstrip("/")


@dataclass(frozen=True)
class RetryPolicy:
    question: str
    retry_on: Tuple[Type[BaseException], ...] = (ExternalCommandFailed,)


class Step(Protocol):
    """One persisted unit of installation progress."""

    step_id: str
    title: str
    retry: Optional[RetryPolicy]

    def applies(self, state: ProvisioningState) -> bool:
        ...

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        ...


class BaseStep:
    step_id = ""
    title = ""
    retry: Optional[RetryPolicy] = None

    def applies(self, state: ProvisioningState) -> bool:
        return True

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        raise NotImplementedError


@dataclass(frozen=True)
class PipelineResult:
    state: ProvisioningState
    ran_steps: List[str] = field(default_factory=list)
    skipped_steps: List[str] = field(default_factory=list)
    aborted: bool = False
    reason: Optional[str] = None
    failed_step: Optional[str] = None

    @property
    def success(self) -> bool:
        return not self.aborted


def build_catalogue(steps: Sequence[Step]) -> Dict[int, Step]:
    return {index: step for index, step in enumerate(steps, start=1)}


def _lookup(catalogue: Dict[int, Step], index: int) -> Step:
    step = catalogue.get(index)
    if step is None:
        raise CatalogueError(f"Undefined step {index}, catalogue covers [1, {len(catalogue)}]")
    return step


def _execute(ctx: StepContext, step: Step, state: ProvisioningState) -> ProvisioningState:
    if step.retry is None:
        return step.run(ctx, state)
    # Each attempt starts from the state as it was before the step.
    return retry_or_abort(
        ctx.prompter,
        lambda: step.run(ctx, state),
        question=step.retry.question,
        retry_on=step.retry.retry_on,
    )


def run_pipeline(
    *,
    ctx: StepContext,
    state: ProvisioningState,
    steps: Sequence[Step],
    state_path: str,
) -> PipelineResult:
    """Run steps from state.current_step to the end, persisting after each one.

    A failing step stops the run with the state file still pointing at that
    step, so the next invocation resumes there. After the last step the
    state file is removed.
    """

    catalogue = build_catalogue(steps)
    ran: List[str] = []
    skipped: List[str] = []

    while not state.finished:
        step = _lookup(catalogue, state.current_step)
        ctx.prompter.report_progress(state.current_step, state.total_steps, step.title)

        try:
            if step.applies(state):
                logger.info("Running step %d/%d %s", state.current_step, state.total_steps, step.step_id)
                state = _execute(ctx, step, state)
                ran.append(step.step_id)
                ctx.prompter.report_done()
            else:
                logger.info("Skipping step %s (not applicable)", step.step_id)
                skipped.append(step.step_id)

            advanced = replace(state, current_step=state.current_step + 1)
            save_state(state_path, advanced)
            state = advanced
        except InstallerError as e:
            logger.error("Step %s failed: %s", step.step_id, e)
            return PipelineResult(
                state=state,
                ran_steps=ran,
                skipped_steps=skipped,
                aborted=True,
                reason=str(e),
                failed_step=step.step_id,
            )

    clear_state(state_path)
    logger.info("All %d steps completed", state.total_steps)
    return PipelineResult(state=state, ran_steps=ran, skipped_steps=skipped)
