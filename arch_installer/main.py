from __future__ import annotations

import argparse
import logging
import time
from typing import Callable, Optional, Sequence

from .errors import InstallerError, PersistedStateCorrupt
from .installer_config import InstallerConfig, load_installer_config
from .lib.command import CommandRunner
from .logging_utils import configure_logging
from .pipeline import Step, StepContext, run_pipeline
from .prompt import ConsolePrompter, Prompter
from .state_store import (
    ProvisioningState,
    check_progress,
    clear_state,
    load_state,
    new_state,
    reset_state,
)
from .steps import CreateUserStep, PartitionNamesStep, build_steps, step_number

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1


def resolve_start_state(
    prompter: Prompter,
    *,
    state_path: str,
    steps: Sequence[Step],
) -> ProvisioningState:
    """Load a previous run's state and ask whether to resume it.

    A corrupt or incompatible record raises PersistedStateCorrupt; it is
    never silently discarded.
    """

    total_steps = len(steps)
    state = load_state(state_path)
    if state is None:
        return new_state(total_steps)

    if state.total_steps != total_steps:
        raise PersistedStateCorrupt(
            f"{state_path} was written for {state.total_steps} steps, this installer has {total_steps}"
        )
    check_progress(
        state,
        partitions_named_at=step_number(steps, PartitionNamesStep),
        user_created_at=step_number(steps, CreateUserStep),
    )

    prompter.banner("Aborted installation was detected", style="yellow")
    if prompter.ask_yes_no(
        f"Do you want to continue installation from step ({state.current_step}/{state.total_steps})?"
    ):
        logger.info("Resuming at step %d/%d", state.current_step, state.total_steps)
        return state

    logger.info("Operator declined to resume; starting over")
    clear_state(state_path)
    return reset_state(state)


def countdown(prompter: Prompter, seconds: int, sleep: Callable[[float], None] = time.sleep) -> None:
    for remaining in range(seconds, 0, -1):
        prompter.banner(f"System will restart in {remaining}...", style="green")
        sleep(1)


def run(
    *,
    cfg: InstallerConfig,
    prompter: Prompter,
    runner: CommandRunner,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Run the installer, resuming a previous run when the operator agrees."""

    steps = build_steps()

    prompter.banner("Arch Linux install script", style="red")
    prompter.banner(f"Total installation steps: {len(steps)}", style="magenta")
    if not prompter.ask_yes_no("Do you want to continue?"):
        return EXIT_OK

    try:
        state = resolve_start_state(prompter, state_path=cfg.state_path, steps=steps)
    except InstallerError as e:
        logger.error("Cannot start: %s", e)
        prompter.report_error(str(e))
        prompter.banner("Installation failed.", style="red")
        return EXIT_FAILED

    ctx = StepContext(prompter=prompter, runner=runner, cfg=cfg)
    try:
        result = run_pipeline(ctx=ctx, state=state, steps=steps, state_path=cfg.state_path)
    except InstallerError as e:
        logger.error("Installer failed after the last step: %s", e)
        prompter.report_error(str(e))
        prompter.banner("Installation failed.", style="red")
        return EXIT_FAILED

    if result.aborted:
        prompter.report_error(f"{result.failed_step}: {result.reason}")
        prompter.banner("Installation failed.", style="red")
        return EXIT_FAILED

    prompter.banner("Installation finished successfully.", style="green")
    if cfg.reboot:
        countdown(prompter, cfg.reboot_countdown_s, sleep)
        try:
            runner.run(["reboot"])
        except InstallerError as e:
            logger.error("Reboot failed: %s", e)
            prompter.report_error(str(e))
            return EXIT_FAILED
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="arch-installer")
    p.add_argument("--config", default=None, help="Path to installer config (yaml)")
    p.add_argument("--state", default=None, help="Path to resumable installer state (json|yaml)")
    p.add_argument("--log", default=None, help="Path to installer log")
    p.add_argument("--dry-run", action="store_true", help="Log commands and file edits without running them")
    p.add_argument("--no-reboot", action="store_true", help="Do not reboot after a successful install")

    args = p.parse_args(argv)

    cfg = load_installer_config(args.config).with_overrides(
        state_path=args.state,
        log_path=args.log,
        dry_run=True if args.dry_run else None,
        reboot=False if args.no_reboot else None,
    )

    configure_logging(log_path=cfg.log_path)

    return run(
        cfg=cfg,
        prompter=ConsolePrompter(),
        runner=CommandRunner(dry_run=cfg.dry_run),
    )


if __name__ == "__main__":
    raise SystemExit(main())
