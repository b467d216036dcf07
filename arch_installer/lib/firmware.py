from __future__ import annotations

from pathlib import Path

from ..state_store import BIOS, UEFI


def detect_firmware(efi_dir: str = "/sys/firmware/efi") -> str:
    """Guess how the live ISO was booted: `uefi` or `bios`.

    Only logged as a hint; the installation-mode answer is what steps act on.
    """

    return UEFI if Path(efi_dir).exists() else BIOS
