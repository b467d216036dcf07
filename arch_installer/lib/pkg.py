from __future__ import annotations

import logging
from typing import Sequence

from .chroot import chroot_cmd
from .command import CommandRunner

logger = logging.getLogger(__name__)

MIRRORLIST = "/etc/pacman.d/mirrorlist"

# `#ParallelDownloads = 5` is replaced rather than just uncommented so the
# candy line lands right below it.
PACMAN_TWEAKS = [
    ("#Color", "Color"),
    ("#VerbosePkgLists", "VerbosePkgLists"),
    ("#ParallelDownloads = 5", "ParallelDownloads = 5\nILoveCandy"),
]


def rank_mirrors(
    runner: CommandRunner,
    country: str,
    *,
    latest: int = 10,
    protocols: str = "http,https",
) -> None:
    runner.run(
        [
            "reflector",
            "--latest",
            str(latest),
            "--country",
            country,
            "--protocol",
            protocols,
            "--sort",
            "rate",
            "--save",
            MIRRORLIST,
        ]
    )


def pacstrap(runner: CommandRunner, target_root: str, packages: Sequence[str]) -> None:
    runner.run(["pacstrap", target_root, *packages])
    logger.info("Bootstrapped %d packages into %s", len(packages), target_root)


def pacman_install(
    runner: CommandRunner,
    target_root: str,
    packages: Sequence[str],
    *,
    noconfirm: bool = True,
) -> None:
    if not packages:
        return
    argv = ["pacman", "-Sy", *packages]
    if noconfirm:
        argv.append("--noconfirm")
    chroot_cmd(runner, target_root, argv)


def enable_service(runner: CommandRunner, target_root: str, unit: str) -> None:
    chroot_cmd(runner, target_root, ["systemctl", "enable", unit])
