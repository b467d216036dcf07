from __future__ import annotations

import logging

from ..lib.env import PATHS
from ..lib.storage import dev, luks_close, mapper, umount
from ..pipeline import BaseStep, StepContext
from ..state_store import ProvisioningState

logger = logging.getLogger(__name__)


class UnmountStep(BaseStep):
    step_id = "34_unmount"
    title = "Unmounting partitions"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        runner = ctx.runner
        parts = state.partitions
        encrypt = state.encrypt_volumes

        # Innermost mounts first.
        if parts.uefi:
            umount(runner, dev(parts.uefi))
            logger.info("UEFI (%s): unmounted", dev(parts.uefi))

        if parts.boot:
            umount(runner, dev(parts.boot))
            logger.info("Boot (%s): unmounted", dev(parts.boot))

        if parts.home:
            if encrypt:
                umount(runner, mapper(PATHS.crypthome))
                luks_close(runner, PATHS.crypthome)
                logger.info("Home (%s): unmounted and closed", mapper(PATHS.crypthome))
            else:
                umount(runner, dev(parts.home))
                logger.info("Home (%s): unmounted", dev(parts.home))

        if encrypt:
            umount(runner, mapper(PATHS.cryptroot))
            luks_close(runner, PATHS.cryptroot)
            logger.info("Root (%s): unmounted and closed", mapper(PATHS.cryptroot))
        else:
            umount(runner, dev(parts.root))
            logger.info("Root (%s): unmounted", dev(parts.root))

        return state
