from __future__ import annotations

import logging

from ..errors import InvalidOperatorInput
from ..lib.chroot import chroot_cmd
from ..lib.files import patch_file, read_file, write_file
from ..pipeline import BaseStep, RetryPolicy, StepContext
from ..state_store import ProvisioningState

logger = logging.getLogger(__name__)

ZONEINFO = "/usr/share/zoneinfo"


def validate_time_zone(tz: str) -> str:
    tz = tz.strip()
    if "/" not in tz:
        raise InvalidOperatorInput(
            "Please enter a forward slash (/) between the continent and city name."
        )
    return tz


def render_hosts(hostname: str) -> str:
    return (
        "127.0.0.1\tlocalhost\n"
        "::1\t\tlocalhost\n"
        f"127.0.1.1\t{hostname}.localdomain\t{hostname}\n"
    )


class TimeZoneStep(BaseStep):
    step_id = "15_time_zone"
    title = "Setting time zone"
    retry = RetryPolicy(
        question="Do you want to enter the time zone again?",
        retry_on=(InvalidOperatorInput,),
    )

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        tz = validate_time_zone(ctx.prompter.ask_text("Enter your time zone. (For example: Europe/London)"))
        chroot_cmd(ctx.runner, ctx.target_root, ["ln", "-sf", f"{ZONEINFO}/{tz}", "/etc/localtime"])
        logger.info("Time zone: %s", tz)
        return state


class HardwareClockStep(BaseStep):
    step_id = "16_hardware_clock"
    title = "Setting hardware clock"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        chroot_cmd(ctx.runner, ctx.target_root, ["hwclock", "--systohc"])
        return state


class LocaleStep(BaseStep):
    step_id = "17_locale"
    title = "Setting locale"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        locale = ctx.cfg.locale
        entry = f"{locale} UTF-8"
        patch_file(ctx.target_path("/etc/locale.gen"), [(f"#{entry}", entry)], dry_run=ctx.dry_run)
        chroot_cmd(ctx.runner, ctx.target_root, ["locale-gen"])
        write_file(ctx.target_path("/etc/locale.conf"), f"LANG={locale}\n", dry_run=ctx.dry_run)
        return state


class HostnameStep(BaseStep):
    step_id = "18_hostname"
    title = "Setting host name"
    retry = RetryPolicy(
        question="Do you want to enter the host name again?",
        retry_on=(InvalidOperatorInput,),
    )

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        hostname = ctx.prompter.ask_text("Enter your host name")
        if not hostname or any(c.isspace() for c in hostname):
            raise InvalidOperatorInput("The host name must be a single word.")
        write_file(ctx.target_path("/etc/hostname"), hostname + "\n", dry_run=ctx.dry_run)
        return state


class HostsStep(BaseStep):
    step_id = "19_hosts"
    title = "Setting hosts configuration"

    def run(self, ctx: StepContext, state: ProvisioningState) -> ProvisioningState:
        # Read back rather than remember: this step may run in a resumed process.
        if ctx.dry_run:
            hostname = "archlinux"
        else:
            hostname = read_file(ctx.target_path("/etc/hostname")).strip()
        write_file(ctx.target_path("/etc/hosts"), render_hosts(hostname), dry_run=ctx.dry_run)
        return state
