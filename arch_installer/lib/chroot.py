from __future__ import annotations

from typing import Optional, Sequence

from .command import CmdResult, CommandRunner


def chroot_argv(target_root: str, argv: Sequence[str], *, user: Optional[str] = None) -> list[str]:
    if user:
        return ["arch-chroot", "-u", user, target_root, *argv]
    return ["arch-chroot", target_root, *argv]


def chroot_cmd(
    runner: CommandRunner,
    target_root: str,
    argv: Sequence[str],
    *,
    user: Optional[str] = None,
    check: bool = True,
    capture: bool = False,
) -> CmdResult:
    """Run a command inside target root."""

    return runner.run(chroot_argv(target_root, argv, user=user), check=check, capture=capture)
