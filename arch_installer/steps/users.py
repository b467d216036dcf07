from __future__ import annotations

import logging
from dataclasses import replace

from ..errors import ExternalCommandFailed, InvalidOperatorInput, PersistedStateCorrupt
from ..lib.chroot import chroot_cmd
from ..lib.files import patch_file
from ..pipeline import BaseStep, RetryPolicy, StepContext
from ..state_store import ProvisioningState

logger = logging.getLogger(__name__)

SUDOERS_WHEEL = "%wheel ALL=(ALL:ALL) ALL"


def require_username(state: ProvisioningState) -> str:
    if not state.username:
        raise PersistedStateCorrupt("No username recorded; the create-user step has not completed")
    return state.username


class RootPasswordStep(BaseStep):
    step_id = "20_root_password"
    title = "Setting root password"
    retry = RetryPolicy(question="Do you want to enter the root password again?")

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        # passwd reads the password from the terminal itself.
        chroot_cmd(ctx.runner, ctx.target_root, ["passwd"])
        return state


class CreateUserStep(BaseStep):
    step_id = "21_create_user"
    title = "Creating user"
    retry = RetryPolicy(
        question="Do you want to enter the username again?",
        retry_on=(ExternalCommandFailed, InvalidOperatorInput),
    )

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        username = ctx.prompter.ask_text("Enter your username")
        if not username:
            raise InvalidOperatorInput("The username must not be empty.")
        chroot_cmd(ctx.runner, ctx.target_root, ["useradd", "-m", username])
        logger.info("Created user %s", username)
        return replace(state, username=username)


class UserPasswordStep(BaseStep):
    step_id = "22_user_password"
    title = "Setting your user password"
    retry = RetryPolicy(question="Do you want to enter the user password again?")

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        chroot_cmd(ctx.runner, ctx.target_root, ["passwd", require_username(state)])
        return state


class WheelGroupStep(BaseStep):
    step_id = "23_wheel_group"
    title = "Adding user to wheel group"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        chroot_cmd(ctx.runner, ctx.target_root, ["usermod", "-aG", "wheel", require_username(state)])
        return state


class SudoersStep(BaseStep):
    step_id = "24_sudoers"
    title = "Updating sudoers file"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        patch_file(
            ctx.target_path("/etc/sudoers"),
            [(f"# {SUDOERS_WHEEL}", SUDOERS_WHEEL)],
            dry_run=ctx.dry_run,
        )
        return state
