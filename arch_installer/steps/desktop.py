from __future__ import annotations

import logging

from ..lib.chroot import chroot_cmd
from ..lib.files import write_file
from ..lib.pkg import enable_service, pacman_install
from ..pipeline import BaseStep, StepContext
from ..state_store import ProvisioningState
from .users import require_username

logger = logging.getLogger(__name__)


def render_build_script(home: str, clone_dir: str) -> str:
    return f"#!/bin/bash\ncd {home}/{clone_dir}\nmakepkg -si\n"


class NetworkManagerStep(BaseStep):
    step_id = "30_network_manager"
    title = "Enabling network manager service"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        enable_service(ctx.runner, ctx.target_root, "NetworkManager")
        return state


class DesktopStep(BaseStep):
    step_id = "31_desktop"
    title = "Installing KDE desktop and applications"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        # Interactive on purpose: pacman shows provider choices for the KDE set.
        pacman_install(ctx.runner, ctx.target_root, ctx.cfg.desktop_packages, noconfirm=False)
        return state


class DisplayManagerStep(BaseStep):
    step_id = "32_display_manager"
    title = "Enabling SDDM service"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        enable_service(ctx.runner, ctx.target_root, "sddm")
        return state


class AurHelperStep(BaseStep):
    step_id = "33_aur_helper"
    title = "Installing AUR helper"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        user = require_username(state)
        repo = ctx.cfg.aur_helper_repo
        clone_dir = repo.rstrip("/").rsplit("/", 1)[-1].removesuffix(".git")
        home = f"/home/{user}"
        script = f"{home}/makepkg.sh"
        runner = ctx.runner
        root = ctx.target_root

        chroot_cmd(runner, root, ["git", "clone", repo, f"{home}/{clone_dir}"], user=user)
        write_file(ctx.target_path(script), render_build_script(home, clone_dir), dry_run=ctx.dry_run)
        chroot_cmd(runner, root, ["sudo", "chmod", "+x", script], user=user)
        # makepkg refuses to run as root, and asks for the sudo password to install.
        chroot_cmd(runner, root, [script], user=user)
        chroot_cmd(runner, root, ["rm", script])
        chroot_cmd(runner, root, ["rm", "-r", f"{home}/{clone_dir}"])

        logger.info("Installed AUR helper from %s for %s", repo, user)
        return state
