from __future__ import annotations

from ..errors import IdentifierNotFound

SWAP_MAPPER = "/dev/mapper/swap"


def find_swap_spec(fstab_text: str) -> str:
    """Return the device spec (first field) of the first fstab line mentioning swap."""

    for line in fstab_text.splitlines():
        if "swap" not in line:
            continue
        fields = line.split()
        if fields:
            return fields[0]
    raise IdentifierNotFound("swap")
