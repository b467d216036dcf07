from __future__ import annotations

import logging
from dataclasses import replace

from ..errors import InvalidOperatorInput
from ..lib.env import PATHS
from ..lib.firmware import detect_firmware
from ..lib.storage import (
    dev,
    enable_swap,
    format_volume,
    luks_open,
    mapper,
    mkfs_btrfs,
    mkfs_fat32,
    mount,
)
from ..pipeline import BaseStep, RetryPolicy, StepContext
from ..state_store import BIOS, UEFI, ProvisioningState

logger = logging.getLogger(__name__)

FIRMWARE_CHOICES = [BIOS, UEFI]


class FirmwareModeStep(BaseStep):
    step_id = "01_firmware_mode"
    title = "BIOS / UEFI installation mode"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        logger.info("Live system firmware looks like %s", detect_firmware())

        idx = ctx.prompter.ask_choice("Which installation mode do you want?", ["BIOS", "UEFI"])
        mode = FIRMWARE_CHOICES[idx]
        state = replace(state, firmware_mode=mode)
        if mode == BIOS:
            state = state.with_partitions(uefi=None)

        logger.info("Installation mode: %s", mode)
        return state


class EncryptionStep(BaseStep):
    step_id = "02_encryption"
    title = "Encrypted partitions"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        encrypt = ctx.prompter.ask_yes_no("Do you want to encrypt your root and home partitions?")
        logger.info("Encrypt root/home: %s", encrypt)
        return replace(state, encrypt_volumes=encrypt)


class TimeSyncStep(BaseStep):
    step_id = "03_time_sync"
    title = "Configuring timedatectl"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        ctx.runner.run(["timedatectl", "set-ntp", "true"])
        ctx.runner.run(["timedatectl", "status"])
        return state


class PartitionDiskStep(BaseStep):
    step_id = "04_partition_disk"
    title = "Configuring partitions"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        ctx.runner.run(["fdisk", "-l"])
        disk = ctx.prompter.ask_text("Enter the disk you want to partition. (sda, sdb, ...)")
        # fdisk is interactive; the operator lays out partitions by hand.
        ctx.runner.run(["fdisk", dev(disk)])
        ctx.runner.run(["lsblk"])
        return state


class PartitionNamesStep(BaseStep):
    step_id = "05_partition_names"
    title = "Getting partition names"
    retry = RetryPolicy(
        question="Do you want to enter the partition names again?",
        retry_on=(InvalidOperatorInput,),
    )

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        ask = ctx.prompter

        root = ask.ask_text("Enter the name of your root partition")
        if not root:
            raise InvalidOperatorInput("The root partition name must not be empty.")

        boot = None
        if ask.ask_yes_no("Do you have a separate boot partition?"):
            boot = ask.ask_text("Enter the name of your boot partition")

        uefi = None
        if state.uefi:
            uefi = ask.ask_text("Enter the name of your uefi partition")
            if not uefi:
                raise InvalidOperatorInput("UEFI installs need a uefi partition.")

        home = None
        if ask.ask_yes_no("Do you have a separate home partition?"):
            home = ask.ask_text("Enter the name of your home partition")

        logger.info("Partitions: root=%s boot=%s uefi=%s home=%s", root, boot, uefi, home)
        return state.with_partitions(root=root, boot=boot or None, uefi=uefi, home=home or None)


class FormatPartitionsStep(BaseStep):
    step_id = "06_format_partitions"
    title = "Formatting partitions"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        ask = ctx.prompter
        runner = ctx.runner
        parts = state.partitions
        encrypt = state.encrypt_volumes

        if ask.ask_yes_no("Do you want to format your root partition?"):
            format_volume(runner, parts.root, encrypt=encrypt, mapper_name=PATHS.cryptroot)
        elif encrypt:
            # Existing LUKS container: it still has to be opened for mounting.
            luks_open(runner, dev(parts.root), PATHS.cryptroot)

        if parts.boot and ask.ask_yes_no("Do you want to format your boot partition?"):
            mkfs_btrfs(runner, dev(parts.boot))

        if parts.uefi and ask.ask_yes_no("Do you want to format your uefi partition?"):
            mkfs_fat32(runner, dev(parts.uefi))

        if parts.home:
            if ask.ask_yes_no("Do you want to format your home partition?"):
                format_volume(runner, parts.home, encrypt=encrypt, mapper_name=PATHS.crypthome)
            elif encrypt:
                luks_open(runner, dev(parts.home), PATHS.crypthome)

        return state


class SwapStep(BaseStep):
    step_id = "07_swap"
    title = "Enabling swap"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        if not ctx.prompter.ask_yes_no("Do you want to enable swap?"):
            return state.with_partitions(swap=None)

        swap = ctx.prompter.ask_text("Enter the name of the swap partition")
        enable_swap(ctx.runner, swap)
        return state.with_partitions(swap=swap)


class MountPartitionsStep(BaseStep):
    step_id = "08_mount_partitions"
    title = "Mounting partitions"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        runner = ctx.runner
        parts = state.partitions
        encrypt = state.encrypt_volumes

        root_dev = mapper(PATHS.cryptroot) if encrypt else dev(parts.root)
        mount(runner, root_dev, ctx.target_root)

        if parts.boot:
            mount(runner, dev(parts.boot), ctx.target_path("/boot"), create=True)

        if parts.uefi:
            mount(runner, dev(parts.uefi), ctx.target_path(PATHS.efi_mount), create=True)

        if parts.home:
            home_dev = mapper(PATHS.crypthome) if encrypt else dev(parts.home)
            mount(runner, home_dev, ctx.target_path("/home"), create=True)

        logger.info("Mounted target at %s", ctx.target_root)
        return state
