from __future__ import annotations

import logging
from typing import List, Tuple

from ..lib.blkid import lookup_uuid
from ..lib.bootloader import (
    CMDLINE_QUIET,
    CMDLINE_VERBOSE,
    DEFAULT_HOOKS,
    ENCRYPT_HOOKS,
    GRUB_DEFAULTS,
    MKINITCPIO_CONF,
    cryptdevice_cmdline,
    gpu_modules,
    install_grub_bios,
    install_grub_efi,
    make_grub_config,
    rebuild_initramfs,
)
from ..lib.env import PATHS
from ..lib.files import append_line, patch_file
from ..lib.pkg import pacman_install
from ..pipeline import BaseStep, StepContext
from ..retry import continue_or_abort
from ..state_store import ProvisioningState

logger = logging.getLogger(__name__)

# The stock crypttab ships a commented swap example for /dev/sdx4.
CRYPTTAB_SWAP = [
    ("# swap", "swap"),
    ("/dev/sdx4", "LABEL=cryptswap"),
    ("size=256\n", "size=256,offset=2048\n"),
]


class GrubInstallStep(BaseStep):
    step_id = "25_grub_install"
    title = "Installing grub"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        if state.uefi:
            pacman_install(ctx.runner, ctx.target_root, ["efibootmgr"])
            install_grub_efi(
                ctx.runner,
                target_root=ctx.target_root,
                efi_directory=PATHS.efi_mount,
                bootloader_id=ctx.cfg.efi_bootloader_id,
            )
        else:
            disk = ctx.prompter.ask_text(
                "Enter the name of the disk Arch Linux has been installed to. (sda, sdb, ...)"
            )
            install_grub_bios(ctx.runner, target_root=ctx.target_root, disk=disk)
        return state


class GrubConfigStep(BaseStep):
    step_id = "26_grub_config"
    title = "Configuring grub"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        grub_defaults = ctx.target_path(GRUB_DEFAULTS)
        edits: List[Tuple[str, str]] = [(CMDLINE_QUIET, CMDLINE_VERBOSE)]

        dual_boot = ctx.prompter.ask_yes_no("Are you installing Arch Linux alongside Windows?")
        if dual_boot:
            pacman_install(ctx.runner, ctx.target_root, ["os-prober"])
            edits.append(("#GRUB_DISABLE_OS_PROBER=false", "GRUB_DISABLE_OS_PROBER=false"))

        # Encrypted installs always skip the menu delay, dual-boot or not.
        if not dual_boot or state.encrypt_volumes:
            edits.append(("GRUB_TIMEOUT=5", "GRUB_TIMEOUT=0"))

        if state.encrypt_volumes:
            # The raw partition carries the LUKS header; cryptroot carries the filesystem.
            root_uuid = lookup_uuid(ctx.runner, ctx.target_root, state.partitions.root)
            cryptroot_uuid = lookup_uuid(ctx.runner, ctx.target_root, PATHS.cryptroot)
            edits.append((CMDLINE_VERBOSE, cryptdevice_cmdline(root_uuid, cryptroot_uuid)))

        patch_file(grub_defaults, edits, dry_run=ctx.dry_run)
        return state


class InitramfsStep(BaseStep):
    step_id = "27_initramfs"
    title = "Configuring and running mkinitcpio"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        nvidia = ctx.prompter.ask_yes_no("Do you have Nvidia GPU?")
        intel = ctx.prompter.ask_yes_no("Do you have Intel GPU?")

        if nvidia:
            pacman_install(ctx.runner, ctx.target_root, ["nvidia"])

        edits: List[Tuple[str, str]] = []
        modules = gpu_modules(nvidia, intel)
        if modules:
            edits.append(("MODULES=()", f"MODULES=({' '.join(modules)})"))
        if state.encrypt_volumes:
            edits.append((DEFAULT_HOOKS, ENCRYPT_HOOKS))

        if not edits:
            logger.info("mkinitcpio.conf unchanged; initramfs not rebuilt")
            return state

        patch_file(ctx.target_path(MKINITCPIO_CONF), edits, dry_run=ctx.dry_run)
        continue_or_abort(
            ctx.prompter,
            lambda: rebuild_initramfs(ctx.runner, ctx.target_root),
            question=(
                "This error occurred in 'mkinitcpio -p linux' which can be expected "
                "(e.g. missing firmware warnings). Do you want to continue?"
            ),
        )
        return state


class GrubMkconfigStep(BaseStep):
    step_id = "28_grub_mkconfig"
    title = "Making grub config"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        make_grub_config(ctx.runner, ctx.target_root)
        return state


class CrypttabStep(BaseStep):
    step_id = "29_crypttab"
    title = "Configuring crypttab"

    def applies(self, state: ProvisioningState) -> bool:
        return state.encrypt_volumes

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        crypttab = ctx.target_path("/etc/crypttab")

        if state.partitions.swap:
            patch_file(crypttab, CRYPTTAB_SWAP, dry_run=ctx.dry_run)

        if state.partitions.home:
            home_uuid = lookup_uuid(ctx.runner, ctx.target_root, state.partitions.home)
            append_line(crypttab, f"home UUID={home_uuid} none", dry_run=ctx.dry_run)

        return state
