from __future__ import annotations

import logging
from typing import List

from .chroot import chroot_cmd
from .command import CommandRunner
from .storage import dev

logger = logging.getLogger(__name__)

GRUB_DEFAULTS = "/etc/default/grub"
GRUB_CFG = "/boot/grub/grub.cfg"
MKINITCPIO_CONF = "/etc/mkinitcpio.conf"

CMDLINE_QUIET = 'GRUB_CMDLINE_LINUX_DEFAULT="loglevel=3 quiet"'
CMDLINE_VERBOSE = 'GRUB_CMDLINE_LINUX_DEFAULT="loglevel=3"'

DEFAULT_HOOKS = (
    "HOOKS=(base udev autodetect modconf kms keyboard keymap consolefont block filesystems fsck)"
)
ENCRYPT_HOOKS = (
    "HOOKS=(base udev autodetect modconf kms keyboard keymap consolefont block encrypt filesystems fsck)"
)


def install_grub_efi(
    runner: CommandRunner,
    *,
    target_root: str,
    efi_directory: str,
    bootloader_id: str,
) -> None:
    """Install GRUB for x86_64 EFI targets."""

    # Assumes the ESP is mounted at efi_directory in target.
    chroot_cmd(
        runner,
        target_root,
        [
            "grub-install",
            "--target=x86_64-efi",
            f"--efi-directory={efi_directory}",
            f"--bootloader-id={bootloader_id}",
            "--recheck",
        ],
    )
    logger.info("GRUB EFI installed")


def install_grub_bios(runner: CommandRunner, *, target_root: str, disk: str) -> None:
    chroot_cmd(runner, target_root, ["grub-install", "--target=i386-pc", dev(disk)])
    logger.info("GRUB BIOS installed on %s", disk)


def make_grub_config(runner: CommandRunner, target_root: str) -> None:
    chroot_cmd(runner, target_root, ["grub-mkconfig", "-o", GRUB_CFG])


def cryptdevice_cmdline(root_luks_uuid: str, cryptroot_uuid: str) -> str:
    return (
        'GRUB_CMDLINE_LINUX_DEFAULT="loglevel=3 '
        f'cryptdevice=UUID={root_luks_uuid}:cryptroot root=UUID={cryptroot_uuid}"'
    )


def gpu_modules(nvidia: bool, intel: bool) -> List[str]:
    """Kernel modules to load early for the GPUs present (Nvidia first)."""

    modules: List[str] = []
    if nvidia:
        modules.append("nvidia")
    if intel:
        modules.append("i915")
    return modules


def rebuild_initramfs(runner: CommandRunner, target_root: str, preset: str = "linux") -> None:
    chroot_cmd(runner, target_root, ["mkinitcpio", "-p", preset])
