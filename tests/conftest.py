from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

from arch_installer.errors import ExternalCommandFailed
from arch_installer.installer_config import InstallerConfig
from arch_installer.lib.bootloader import DEFAULT_HOOKS
from arch_installer.lib.command import CmdResult
from arch_installer.pipeline import StepContext

PACMAN_CONF = "[options]\n#Color\n#VerbosePkgLists\n#ParallelDownloads = 5\n"
LOCALE_GEN = "#de_DE.UTF-8 UTF-8\n#en_US.UTF-8 UTF-8\n"
SUDOERS = "root ALL=(ALL:ALL) ALL\n# %wheel ALL=(ALL:ALL) ALL\n"
GRUB_DEFAULTS = (
    "GRUB_DEFAULT=0\n"
    "GRUB_TIMEOUT=5\n"
    'GRUB_CMDLINE_LINUX_DEFAULT="loglevel=3 quiet"\n'
    "#GRUB_DISABLE_OS_PROBER=false\n"
)
MKINITCPIO = f"MODULES=()\nBINARIES=()\n{DEFAULT_HOOKS}\n"
CRYPTTAB = "# swap      /dev/sdx4    /dev/urandom  swap,cipher=aes-cbc-essiv:sha256,size=256\n"
FSTAB = (
    "# /dev/sda2\n"
    "UUID=root-fs-uuid\t/\tbtrfs\trw,relatime\t0 0\n"
    "UUID=swap-uuid\tnone\tswap\tdefaults\t0 0\n"
)
BLKID = (
    '/dev/sda1: UUID="ABCD-1234" TYPE="vfat" PARTUUID="p1"\n'
    '/dev/sda2: UUID="luks-root-uuid" TYPE="crypto_LUKS" PARTUUID="p2"\n'
    '/dev/mapper/cryptroot: UUID="fs-root-uuid" TYPE="btrfs"\n'
    '/dev/sda3: UUID="luks-home-uuid" TYPE="crypto_LUKS" PARTUUID="p3"\n'
)


class FakeRunner:
    """Records argv lists; fails or returns canned stdout by substring match."""

    def __init__(
        self,
        *,
        outputs: Optional[Dict[str, str]] = None,
        failures: Optional[Dict[str, int]] = None,
        dry_run: bool = False,
    ) -> None:
        self.dry_run = dry_run
        self.outputs = dict(outputs or {})
        self.failures = dict(failures or {})
        self.calls: List[List[str]] = []

    def run(self, argv: Sequence[str], *, check: bool = True, capture: bool = False) -> CmdResult:
        argv = list(argv)
        self.calls.append(argv)
        line = " ".join(argv)

        for pattern, remaining in self.failures.items():
            if pattern in line and remaining > 0:
                self.failures[pattern] = remaining - 1
                if check:
                    raise ExternalCommandFailed(argv, 1)
                return CmdResult(argv=argv, returncode=1, stdout="")

        stdout = ""
        if capture:
            for pattern, out in self.outputs.items():
                if pattern in line:
                    stdout = out
                    break
        return CmdResult(argv=argv, returncode=0, stdout=stdout)

    def lines(self) -> List[str]:
        return [" ".join(c) for c in self.calls]

    def ran(self, fragment: str) -> bool:
        return any(fragment in line for line in self.lines())


class ScriptedPrompter:
    """Answers by the first key that is a substring of the prompt.

    A list value is consumed one answer per question.
    """

    def __init__(self, answers: Optional[Dict[str, Any]] = None) -> None:
        self.answers: Dict[str, Any] = {
            k: (list(v) if isinstance(v, list) else v) for k, v in (answers or {}).items()
        }
        self.asked: List[str] = []
        self.progress: List[tuple] = []
        self.errors: List[str] = []
        self.banners: List[str] = []
        self.done = 0

    def _answer(self, prompt: str) -> Any:
        self.asked.append(prompt)
        for key, value in self.answers.items():
            if key in prompt:
                if isinstance(value, list):
                    if not value:
                        raise AssertionError(f"No answers left for {prompt!r}")
                    return value.pop(0)
                return value
        raise AssertionError(f"Unexpected prompt: {prompt!r}")

    def ask_text(self, prompt: str) -> str:
        return str(self._answer(prompt))

    def ask_yes_no(self, prompt: str) -> bool:
        return bool(self._answer(prompt))

    def ask_choice(self, prompt: str, options: Sequence[str]) -> int:
        answer = self._answer(prompt)
        if isinstance(answer, int):
            return answer
        return list(options).index(answer)

    def report_progress(self, current: int, total: int, title: str) -> None:
        self.progress.append((current, total, title))

    def report_done(self) -> None:
        self.done += 1

    def report_error(self, message: str) -> None:
        self.errors.append(message)

    def banner(self, text: str, *, style: str = "cyan") -> None:
        self.banners.append(text)

    def was_asked(self, fragment: str) -> bool:
        return any(fragment in p for p in self.asked)


def seed_target(target: Path) -> None:
    """Lay down the stock config files pacstrap would have installed."""

    files = {
        "etc/pacman.conf": PACMAN_CONF,
        "etc/locale.gen": LOCALE_GEN,
        "etc/sudoers": SUDOERS,
        "etc/default/grub": GRUB_DEFAULTS,
        "etc/mkinitcpio.conf": MKINITCPIO,
        "etc/crypttab": CRYPTTAB,
    }
    for rel, contents in files.items():
        p = target / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(contents, encoding="utf-8")


def make_ctx(tmp_path: Path, prompter, runner, **raw: Any) -> StepContext:
    target = tmp_path / "mnt"
    live_conf = tmp_path / "live-pacman.conf"
    if not live_conf.exists():
        live_conf.write_text(PACMAN_CONF, encoding="utf-8")
    cfg_raw = {
        "target_root": str(target),
        "live_pacman_conf": str(live_conf),
        "state_path": str(tmp_path / "state.json"),
        "reboot_countdown_s": 0,
    }
    cfg_raw.update(raw)
    return StepContext(prompter=prompter, runner=runner, cfg=InstallerConfig(raw=cfg_raw))


@pytest.fixture
def target(tmp_path) -> Path:
    t = tmp_path / "mnt"
    seed_target(t)
    return t


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner(outputs={"blkid": BLKID, "genfstab": FSTAB})
