from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    target_root: str = "/mnt"
    state_default: str = "./arch-installer-state.json"
    log_default: str = "/var/log/arch-installer.log"
    live_pacman_conf: str = "/etc/pacman.conf"
    efi_mount: str = "/boot/EFI"
    cryptroot: str = "cryptroot"
    crypthome: str = "crypthome"


PATHS = Paths()
