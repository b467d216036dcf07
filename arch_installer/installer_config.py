from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .lib.env import PATHS

DEFAULT_BASE_PACKAGES = [
    "base",
    "linux",
    "linux-firmware",
    "sudo",
    "helix",
    "grub",
    "dosfstools",
    "mtools",
    "networkmanager",
    "git",
    "base-devel",
]

DEFAULT_DESKTOP_PACKAGES = [
    "sddm",
    "bluedevil",
    "breeze",
    "breeze-gtk",
    "kactivitymanagerd",
    "kde-gtk-config",
    "kgamma5",
    "kpipewire",
    "kscreen",
    "kscreenlocker",
    "ksystemstats",
    "kwayland-integration",
    "kwin",
    "libkscreen",
    "libksysguard",
    "plasma-desktop",
    "plasma-disks",
    "plasma-firewall",
    "plasma-nm",
    "plasma-pa",
    "plasma-systemmonitor",
    "plasma-workspace",
    "plasma-workspace-wallpapers",
    "powerdevil",
    "sddm-kcm",
    "systemsettings",
    "ark",
    "dolphin",
    "elisa",
    "gwenview",
    "kalarm",
    "kcalc",
    "kdeconnect",
    "kdialog",
    "konsole",
    "ktimer",
    "okular",
    "partitionmanager",
    "print-manager",
    "spectacle",
    "firefox",
]


@dataclass(frozen=True)
class InstallerConfig:
    raw: Dict[str, Any]

    def with_overrides(self, **overrides: Any) -> "InstallerConfig":
        """Return a copy with non-None overrides applied (command line wins over file)."""

        merged = dict(self.raw)
        merged.update({k: v for k, v in overrides.items() if v is not None})
        return InstallerConfig(raw=merged)

    @property
    def target_root(self) -> str:
        return str(self.raw.get("target_root") or PATHS.target_root)

    @property
    def state_path(self) -> str:
        return str(self.raw.get("state_path") or PATHS.state_default)

    @property
    def log_path(self) -> str:
        return str(self.raw.get("log_path") or PATHS.log_default)

    @property
    def live_pacman_conf(self) -> str:
        return str(self.raw.get("live_pacman_conf") or PATHS.live_pacman_conf)

    @property
    def base_packages(self) -> List[str]:
        return list(self.raw.get("base_packages") or DEFAULT_BASE_PACKAGES)

    @property
    def desktop_packages(self) -> List[str]:
        return list(self.raw.get("desktop_packages") or DEFAULT_DESKTOP_PACKAGES)

    @property
    def mirror_count(self) -> int:
        return int(self.raw.get("mirror_count") or 10)

    @property
    def mirror_protocols(self) -> str:
        return str(self.raw.get("mirror_protocols") or "http,https")

    @property
    def locale(self) -> str:
        return str(self.raw.get("locale") or "en_US.UTF-8")

    @property
    def efi_bootloader_id(self) -> str:
        return str(self.raw.get("efi_bootloader_id") or "grub_uefi")

    @property
    def aur_helper_repo(self) -> str:
        return str(self.raw.get("aur_helper_repo") or "https://aur.archlinux.org/paru-bin.git")

    @property
    def reboot(self) -> bool:
        return bool(self.raw.get("reboot", True))

    @property
    def reboot_countdown_s(self) -> int:
        return int(self.raw.get("reboot_countdown_s", 5))

    @property
    def dry_run(self) -> bool:
        return bool(self.raw.get("dry_run", False))


def load_installer_config(path: Optional[str]) -> InstallerConfig:
    """Load the YAML config at `path`; no path means built-in defaults."""

    if not path:
        return InstallerConfig(raw={})

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("installer config must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError("installer config must contain a mapping/object")

    return InstallerConfig(raw=raw)
