from __future__ import annotations

import logging

from ..lib.files import patch_file, read_file, write_file
from ..lib.fstab import SWAP_MAPPER, find_swap_spec
from ..lib.pkg import PACMAN_TWEAKS, pacstrap, rank_mirrors
from ..lib.storage import prepare_encrypted_swap
from ..pipeline import BaseStep, StepContext
from ..state_store import ProvisioningState

logger = logging.getLogger(__name__)

CPU_VENDORS = ["amd", "intel"]


class MirrorsStep(BaseStep):
    step_id = "09_mirrors"
    title = "Updating mirrors"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        country = ctx.prompter.ask_text(
            "Enter the name of your preferred country for mirrors. (For example: France,Germany,...)"
        )
        rank_mirrors(
            ctx.runner,
            country,
            latest=ctx.cfg.mirror_count,
            protocols=ctx.cfg.mirror_protocols,
        )
        return state


class LivePacmanConfigStep(BaseStep):
    step_id = "10_live_pacman_config"
    title = "Configuring pacman"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        patch_file(ctx.cfg.live_pacman_conf, PACMAN_TWEAKS, dry_run=ctx.dry_run)
        return state


class BaseSystemStep(BaseStep):
    step_id = "11_base_system"
    title = "Installing base system"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        idx = ctx.prompter.ask_choice("What is your system's CPU brand?", ["AMD", "Intel"])
        ucode = f"{CPU_VENDORS[idx]}-ucode"
        pacstrap(ctx.runner, ctx.target_root, [*ctx.cfg.base_packages, ucode])
        return state


class FstabStep(BaseStep):
    step_id = "12_fstab"
    title = "Generating file system table"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        r = ctx.runner.run(["genfstab", "-U", ctx.target_root], capture=True)
        write_file(ctx.target_path("/etc/fstab"), r.stdout, dry_run=ctx.dry_run)
        return state


class EncryptedSwapStep(BaseStep):
    step_id = "13_encrypted_swap"
    title = "Configuring swap for encryption"

    def applies(self, state: ProvisioningState) -> bool:
        return state.encrypt_volumes and state.partitions.swap is not None

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        swap = state.partitions.swap or ""
        prepare_encrypted_swap(ctx.runner, swap)

        fstab = ctx.target_path("/etc/fstab")
        if ctx.dry_run:
            logger.info("Would point swap entry in %s at %s", fstab, SWAP_MAPPER)
            return state

        spec = find_swap_spec(read_file(fstab))
        patch_file(fstab, [(spec, SWAP_MAPPER)])
        logger.info("Swap entry %s now uses %s", spec, SWAP_MAPPER)
        return state


class TargetPacmanConfigStep(BaseStep):
    step_id = "14_target_pacman_config"
    title = "Configuring pacman for installed system"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        patch_file(ctx.target_path("/etc/pacman.conf"), PACMAN_TWEAKS, dry_run=ctx.dry_run)
        return state
