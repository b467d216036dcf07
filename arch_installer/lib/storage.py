from __future__ import annotations

import logging

from .command import CommandRunner

logger = logging.getLogger(__name__)


def dev(name: str) -> str:
    return f"/dev/{name}"


def mapper(name: str) -> str:
    return f"/dev/mapper/{name}"


def luks_format(runner: CommandRunner, device: str) -> None:
    # cryptsetup asks the operator for confirmation and passphrase itself
    runner.run(["cryptsetup", "luksFormat", device])


def luks_open(runner: CommandRunner, device: str, name: str) -> str:
    runner.run(["cryptsetup", "open", device, name])
    return mapper(name)


def luks_close(runner: CommandRunner, name: str) -> None:
    runner.run(["cryptsetup", "close", mapper(name)])


def mkfs_btrfs(runner: CommandRunner, device: str) -> None:
    runner.run(["mkfs.btrfs", "-f", device])


def mkfs_fat32(runner: CommandRunner, device: str) -> None:
    runner.run(["mkfs.fat", "-F32", device])


def format_volume(runner: CommandRunner, partition: str, *, encrypt: bool, mapper_name: str) -> str:
    """Create a btrfs filesystem on a partition, inside LUKS when encrypting.

    Returns the device that now carries the filesystem.
    """

    device = dev(partition)
    if encrypt:
        luks_format(runner, device)
        device = luks_open(runner, device, mapper_name)
    mkfs_btrfs(runner, device)
    logger.info("Formatted %s (encrypted=%s)", partition, encrypt)
    return device


def enable_swap(runner: CommandRunner, partition: str) -> None:
    runner.run(["mkswap", dev(partition)])
    runner.run(["swapon", dev(partition)])


def prepare_encrypted_swap(runner: CommandRunner, partition: str, *, label: str = "cryptswap") -> None:
    """Turn the swap partition into a tiny labelled ext2 stub so crypttab can find it by label."""

    runner.run(["swapoff", dev(partition)])
    runner.run(["mkfs.ext2", "-L", label, dev(partition), "1M"])


def mount(runner: CommandRunner, device: str, mountpoint: str, *, create: bool = False) -> None:
    if create:
        runner.run(["mkdir", "-p", mountpoint])
    runner.run(["mount", device, mountpoint])


def umount(runner: CommandRunner, device: str) -> None:
    runner.run(["umount", device])
