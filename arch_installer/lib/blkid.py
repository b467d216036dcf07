from __future__ import annotations

import logging
import re

from ..errors import IdentifierNotFound
from .chroot import chroot_cmd
from .command import CommandRunner

logger = logging.getLogger(__name__)

_UUID_TOKEN = re.compile(r'(?:^|\s)UUID="([^"]*)"')


def find_identifier(listing: str, name: str) -> str:
    """Return the UUID on the first `blkid` line that mentions `name`.

    blkid prints one device per line:

        /dev/sda2: UUID="0f3c..." TYPE="crypto_LUKS" PARTUUID="7a1e..."

    Only the bare `UUID=` key counts (PARTUUID/UUID_SUB are ignored).
    """

    for line in listing.splitlines():
        if name not in line:
            continue
        m = _UUID_TOKEN.search(line)
        if m is None:
            logger.debug("Line for %s has no UUID: %s", name, line)
            raise IdentifierNotFound(name)
        return m.group(1)
    raise IdentifierNotFound(name)


def lookup_uuid(runner: CommandRunner, target_root: str, name: str) -> str:
    """Resolve the UUID of `name` (a partition or mapper name) as seen from the target."""

    r = chroot_cmd(runner, target_root, ["blkid"], check=False, capture=True)
    if runner.dry_run:
        return ""
    uuid = find_identifier(r.stdout, name)
    logger.info("UUID of %s is %s", name, uuid)
    return uuid
