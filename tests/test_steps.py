from __future__ import annotations

from dataclasses import replace

import pytest

from arch_installer.errors import ExternalCommandFailed, PersistedStateCorrupt
from arch_installer.lib.bootloader import DEFAULT_HOOKS, ENCRYPT_HOOKS
from arch_installer.lib.firmware import detect_firmware
from arch_installer.pipeline import run_pipeline
from arch_installer.state_store import BIOS, UEFI, Partitions, new_state
from arch_installer.steps import build_steps
from arch_installer.steps.base_system import BaseSystemStep, EncryptedSwapStep, FstabStep, MirrorsStep
from arch_installer.steps.bootloader import (
    CrypttabStep,
    GrubConfigStep,
    GrubInstallStep,
    InitramfsStep,
)
from arch_installer.steps.desktop import AurHelperStep, DesktopStep
from arch_installer.steps.finalize import UnmountStep
from arch_installer.steps.localization import HostsStep, LocaleStep, TimeZoneStep, render_hosts
from arch_installer.steps.partitioning import (
    FirmwareModeStep,
    FormatPartitionsStep,
    MountPartitionsStep,
    PartitionNamesStep,
    SwapStep,
)
from arch_installer.steps.users import SudoersStep, UserPasswordStep

from conftest import FSTAB, FakeRunner, ScriptedPrompter, make_ctx


def _encrypted_uefi():
    return replace(
        new_state(34),
        firmware_mode=UEFI,
        encrypt_volumes=True,
        partitions=Partitions(root="sda2", uefi="sda1", home="sda3", swap="sda4"),
        username="alice",
    )


def _run_single(ctx, step, state):
    """Run one step through the sequencer so its retry policy applies."""

    result = run_pipeline(
        ctx=ctx,
        state=replace(state, current_step=1, total_steps=1),
        steps=[step],
        state_path=ctx.cfg.state_path,
    )
    return result


def test_catalogue_has_34_uniquely_numbered_steps():
    steps = build_steps()
    assert len(steps) == 34
    ids = [s.step_id for s in steps]
    assert len(set(ids)) == 34
    for n, step_id in enumerate(ids, start=1):
        assert step_id.startswith(f"{n:02d}_")
    assert ids[0] == "01_firmware_mode"
    assert ids[-1] == "34_unmount"


@pytest.mark.parametrize("answer, mode", [("BIOS", BIOS), ("UEFI", UEFI)])
def test_firmware_mode(tmp_path, answer, mode):
    ctx = make_ctx(tmp_path, ScriptedPrompter({"installation mode": answer}), FakeRunner())
    state = new_state(34).with_partitions(uefi="sda1")
    out = FirmwareModeStep().run(ctx, state)
    assert out.firmware_mode == mode
    assert (out.partitions.uefi is None) == (mode == BIOS)


def test_detect_firmware_hint(tmp_path):
    assert detect_firmware(str(tmp_path / "absent")) == BIOS
    (tmp_path / "efi").mkdir()
    assert detect_firmware(str(tmp_path / "efi")) == UEFI


def test_partition_names_retry_on_empty_root(tmp_path):
    prompter = ScriptedPrompter(
        {
            "name of your root": ["", "sda2"],
            "partition names again?": True,
            "separate boot": False,
            "name of your uefi": "sda1",
            "separate home": True,
            "name of your home": "sda3",
        }
    )
    ctx = make_ctx(tmp_path, prompter, FakeRunner())
    result = _run_single(ctx, PartitionNamesStep(), replace(new_state(34), firmware_mode=UEFI))

    assert result.success
    assert result.state.partitions == Partitions(root="sda2", uefi="sda1", home="sda3")
    assert prompter.errors == ["The root partition name must not be empty."]


def test_partition_names_bios_never_asks_for_uefi(tmp_path):
    prompter = ScriptedPrompter(
        {"name of your root": "sda1", "separate boot": True, "name of your boot": "sda2", "separate home": False}
    )
    ctx = make_ctx(tmp_path, prompter, FakeRunner())
    out = PartitionNamesStep().run(ctx, new_state(34))
    assert out.partitions == Partitions(root="sda1", boot="sda2")
    assert not prompter.was_asked("uefi")


def test_format_encrypted_volumes(tmp_path):
    prompter = ScriptedPrompter({"format your root": True, "format your uefi": True, "format your home": True})
    runner = FakeRunner()
    FormatPartitionsStep().run(make_ctx(tmp_path, prompter, runner), _encrypted_uefi())
    assert runner.lines() == [
        "cryptsetup luksFormat /dev/sda2",
        "cryptsetup open /dev/sda2 cryptroot",
        "mkfs.btrfs -f /dev/mapper/cryptroot",
        "mkfs.fat -F32 /dev/sda1",
        "cryptsetup luksFormat /dev/sda3",
        "cryptsetup open /dev/sda3 crypthome",
        "mkfs.btrfs -f /dev/mapper/crypthome",
    ]


def test_keeping_encrypted_volumes_still_opens_them(tmp_path):
    prompter = ScriptedPrompter({"format your": False})
    runner = FakeRunner()
    FormatPartitionsStep().run(make_ctx(tmp_path, prompter, runner), _encrypted_uefi())
    assert runner.lines() == [
        "cryptsetup open /dev/sda2 cryptroot",
        "cryptsetup open /dev/sda3 crypthome",
    ]


def test_swap_declined_clears_partition(tmp_path):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter({"enable swap": False}), runner)
    out = SwapStep().run(ctx, _encrypted_uefi())
    assert out.partitions.swap is None
    assert runner.calls == []


def test_swap_enabled(tmp_path):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter({"enable swap": True, "name of the swap": "sda4"}), runner)
    out = SwapStep().run(ctx, new_state(34))
    assert out.partitions.swap == "sda4"
    assert runner.lines() == ["mkswap /dev/sda4", "swapon /dev/sda4"]


def test_mount_encrypted_uefi_layout(tmp_path):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter(), runner)
    MountPartitionsStep().run(ctx, _encrypted_uefi())
    t = ctx.target_root
    assert runner.lines() == [
        f"mount /dev/mapper/cryptroot {t}",
        f"mkdir -p {t}/boot/EFI",
        f"mount /dev/sda1 {t}/boot/EFI",
        f"mkdir -p {t}/home",
        f"mount /dev/mapper/crypthome {t}/home",
    ]


def test_mirrors_use_configured_count(tmp_path):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter({"country for mirrors": "France"}), runner, mirror_count=5)
    MirrorsStep().run(ctx, new_state(34))
    assert runner.calls == [
        [
            "reflector",
            "--latest",
            "5",
            "--country",
            "France",
            "--protocol",
            "http,https",
            "--sort",
            "rate",
            "--save",
            "/etc/pacman.d/mirrorlist",
        ]
    ]


def test_base_system_adds_microcode(tmp_path):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter({"CPU brand": "AMD"}), runner, base_packages=["base", "linux"])
    BaseSystemStep().run(ctx, new_state(34))
    assert runner.calls == [["pacstrap", ctx.target_root, "base", "linux", "amd-ucode"]]


def test_fstab_is_written_from_genfstab(tmp_path, target, runner):
    ctx = make_ctx(tmp_path, ScriptedPrompter(), runner)
    FstabStep().run(ctx, new_state(34))
    assert (target / "etc" / "fstab").read_text(encoding="utf-8") == FSTAB


def test_encrypted_swap_only_applies_with_swap():
    step = EncryptedSwapStep()
    assert step.applies(_encrypted_uefi())
    assert not step.applies(_encrypted_uefi().with_partitions(swap=None))
    assert not step.applies(replace(_encrypted_uefi(), encrypt_volumes=False))


def test_encrypted_swap_rewrites_fstab(tmp_path, target, runner):
    (target / "etc" / "fstab").write_text(FSTAB, encoding="utf-8")
    ctx = make_ctx(tmp_path, ScriptedPrompter(), runner)
    EncryptedSwapStep().run(ctx, _encrypted_uefi())
    assert runner.lines() == ["swapoff /dev/sda4", "mkfs.ext2 -L cryptswap /dev/sda4 1M"]
    fstab = (target / "etc" / "fstab").read_text(encoding="utf-8")
    assert "/dev/mapper/swap\tnone\tswap" in fstab
    assert "swap-uuid" not in fstab


def test_time_zone_reprompts_without_slash(tmp_path, target):
    prompter = ScriptedPrompter({"Enter your time zone": ["Berlin", "Europe/Berlin"], "time zone again?": True})
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, prompter, runner)
    result = _run_single(ctx, TimeZoneStep(), new_state(34))
    assert result.success
    assert runner.calls == [
        ["arch-chroot", ctx.target_root, "ln", "-sf", "/usr/share/zoneinfo/Europe/Berlin", "/etc/localtime"]
    ]
    assert "forward slash" in prompter.errors[0]


def test_locale(tmp_path, target):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter(), runner)
    LocaleStep().run(ctx, new_state(34))
    assert "\nen_US.UTF-8 UTF-8\n" in (target / "etc" / "locale.gen").read_text(encoding="utf-8")
    assert "#de_DE.UTF-8 UTF-8" in (target / "etc" / "locale.gen").read_text(encoding="utf-8")
    assert (target / "etc" / "locale.conf").read_text(encoding="utf-8") == "LANG=en_US.UTF-8\n"
    assert runner.calls == [["arch-chroot", ctx.target_root, "locale-gen"]]


def test_hosts_uses_written_hostname(tmp_path, target):
    (target / "etc" / "hostname").write_text("archbox\n", encoding="utf-8")
    ctx = make_ctx(tmp_path, ScriptedPrompter(), FakeRunner())
    HostsStep().run(ctx, new_state(34))
    assert (target / "etc" / "hosts").read_text(encoding="utf-8") == render_hosts("archbox")
    assert "127.0.1.1\tarchbox.localdomain\tarchbox" in render_hosts("archbox")


def test_sudoers_enables_wheel(tmp_path, target):
    ctx = make_ctx(tmp_path, ScriptedPrompter(), FakeRunner())
    SudoersStep().run(ctx, new_state(34))
    assert "\n%wheel ALL=(ALL:ALL) ALL\n" in (target / "etc" / "sudoers").read_text(encoding="utf-8")


def test_user_steps_need_a_recorded_username(tmp_path):
    ctx = make_ctx(tmp_path, ScriptedPrompter(), FakeRunner())
    with pytest.raises(PersistedStateCorrupt):
        UserPasswordStep().run(ctx, new_state(34))


def test_grub_install_uefi(tmp_path):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter(), runner)
    GrubInstallStep().run(ctx, _encrypted_uefi())
    t = ctx.target_root
    assert runner.lines() == [
        f"arch-chroot {t} pacman -Sy efibootmgr --noconfirm",
        f"arch-chroot {t} grub-install --target=x86_64-efi --efi-directory=/boot/EFI "
        "--bootloader-id=grub_uefi --recheck",
    ]


def test_grub_install_bios_asks_for_disk(tmp_path):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter({"installed to": "sdb"}), runner)
    GrubInstallStep().run(ctx, new_state(34))
    assert runner.lines() == [f"arch-chroot {ctx.target_root} grub-install --target=i386-pc /dev/sdb"]


def test_grub_config_encrypted(tmp_path, target, runner):
    ctx = make_ctx(tmp_path, ScriptedPrompter({"alongside Windows": False}), runner)
    GrubConfigStep().run(ctx, _encrypted_uefi())
    text = (target / "etc" / "default" / "grub").read_text(encoding="utf-8")
    assert (
        'GRUB_CMDLINE_LINUX_DEFAULT="loglevel=3 cryptdevice=UUID=luks-root-uuid:cryptroot root=UUID=fs-root-uuid"'
        in text
    )
    assert "GRUB_TIMEOUT=0" in text
    assert "quiet" not in text


def test_grub_config_dual_boot(tmp_path, target, runner):
    ctx = make_ctx(tmp_path, ScriptedPrompter({"alongside Windows": True}), runner)
    GrubConfigStep().run(ctx, new_state(34))
    text = (target / "etc" / "default" / "grub").read_text(encoding="utf-8")
    assert "\nGRUB_DISABLE_OS_PROBER=false\n" in text
    assert "GRUB_TIMEOUT=5" in text
    assert 'GRUB_CMDLINE_LINUX_DEFAULT="loglevel=3"' in text
    assert runner.lines() == [f"arch-chroot {ctx.target_root} pacman -Sy os-prober --noconfirm"]


def test_grub_config_encrypted_dual_boot_drops_timeout(tmp_path, target, runner):
    ctx = make_ctx(tmp_path, ScriptedPrompter({"alongside Windows": True}), runner)
    GrubConfigStep().run(ctx, _encrypted_uefi())
    text = (target / "etc" / "default" / "grub").read_text(encoding="utf-8")
    assert "\nGRUB_DISABLE_OS_PROBER=false\n" in text
    assert "GRUB_TIMEOUT=0" in text
    assert "cryptdevice=UUID=luks-root-uuid:cryptroot" in text


@pytest.mark.parametrize(
    "nvidia, intel, modules",
    [
        (True, True, "MODULES=(nvidia i915)"),
        (True, False, "MODULES=(nvidia)"),
        (False, True, "MODULES=(i915)"),
        (False, False, "MODULES=()"),
    ],
)
def test_initramfs_gpu_modules(tmp_path, target, nvidia, intel, modules):
    runner = FakeRunner()
    prompter = ScriptedPrompter({"Nvidia GPU": nvidia, "Intel GPU": intel})
    ctx = make_ctx(tmp_path, prompter, runner)
    InitramfsStep().run(ctx, new_state(34))

    text = (target / "etc" / "mkinitcpio.conf").read_text(encoding="utf-8")
    assert modules in text
    assert DEFAULT_HOOKS in text
    rebuilt = ["arch-chroot", ctx.target_root, "mkinitcpio", "-p", "linux"] in runner.calls
    assert rebuilt == (nvidia or intel)
    installed = ["arch-chroot", ctx.target_root, "pacman", "-Sy", "nvidia", "--noconfirm"] in runner.calls
    assert installed == nvidia


def test_initramfs_encrypt_hook_without_gpu(tmp_path, target):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter({"GPU": False}), runner)
    InitramfsStep().run(ctx, _encrypted_uefi())
    text = (target / "etc" / "mkinitcpio.conf").read_text(encoding="utf-8")
    assert ENCRYPT_HOOKS in text
    assert runner.lines() == [f"arch-chroot {ctx.target_root} mkinitcpio -p linux"]


def test_initramfs_failure_can_be_accepted(tmp_path, target):
    runner = FakeRunner(failures={"mkinitcpio": 1})
    prompter = ScriptedPrompter({"Nvidia GPU": False, "Intel GPU": True, "mkinitcpio -p linux": True})
    ctx = make_ctx(tmp_path, prompter, runner)
    InitramfsStep().run(ctx, new_state(34))
    assert prompter.asked[-1].startswith("Command failed (1): arch-chroot")


def test_initramfs_failure_declined(tmp_path, target):
    runner = FakeRunner(failures={"mkinitcpio": 1})
    prompter = ScriptedPrompter({"Nvidia GPU": False, "Intel GPU": True, "mkinitcpio -p linux": False})
    ctx = make_ctx(tmp_path, prompter, runner)
    with pytest.raises(ExternalCommandFailed):
        InitramfsStep().run(ctx, new_state(34))


def test_crypttab_swap_and_home(tmp_path, target, runner):
    ctx = make_ctx(tmp_path, ScriptedPrompter(), runner)
    step = CrypttabStep()
    assert step.applies(_encrypted_uefi())
    assert not step.applies(new_state(34))

    step.run(ctx, _encrypted_uefi())
    lines = (target / "etc" / "crypttab").read_text(encoding="utf-8").splitlines()
    assert lines[0].split() == [
        "swap",
        "LABEL=cryptswap",
        "/dev/urandom",
        "swap,cipher=aes-cbc-essiv:sha256,size=256,offset=2048",
    ]
    assert lines[1] == "home UUID=luks-home-uuid none"


def test_desktop_install_is_interactive(tmp_path):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter(), runner, desktop_packages=["sddm", "plasma-desktop"])
    DesktopStep().run(ctx, new_state(34))
    assert runner.calls == [["arch-chroot", ctx.target_root, "pacman", "-Sy", "sddm", "plasma-desktop"]]


def test_aur_helper_builds_as_user(tmp_path, target):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter(), runner)
    AurHelperStep().run(ctx, _encrypted_uefi())
    t = ctx.target_root
    assert runner.lines() == [
        f"arch-chroot -u alice {t} git clone https://aur.archlinux.org/paru-bin.git /home/alice/paru-bin",
        f"arch-chroot -u alice {t} sudo chmod +x /home/alice/makepkg.sh",
        f"arch-chroot -u alice {t} /home/alice/makepkg.sh",
        f"arch-chroot {t} rm /home/alice/makepkg.sh",
        f"arch-chroot {t} rm -r /home/alice/paru-bin",
    ]
    script = (target / "home" / "alice" / "makepkg.sh").read_text(encoding="utf-8")
    assert script == "#!/bin/bash\ncd /home/alice/paru-bin\nmakepkg -si\n"


def test_unmount_encrypted_innermost_first(tmp_path):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter(), runner)
    UnmountStep().run(ctx, _encrypted_uefi())
    assert runner.lines() == [
        "umount /dev/sda1",
        "umount /dev/mapper/crypthome",
        "cryptsetup close /dev/mapper/crypthome",
        "umount /dev/mapper/cryptroot",
        "cryptsetup close /dev/mapper/cryptroot",
    ]


def test_unmount_plain_root(tmp_path):
    runner = FakeRunner()
    ctx = make_ctx(tmp_path, ScriptedPrompter(), runner)
    UnmountStep().run(ctx, new_state(34).with_partitions(root="sda1"))
    assert runner.lines() == ["umount /dev/sda1"]


def test_dry_run_touches_no_files(tmp_path):
    runner = FakeRunner(dry_run=True)
    ctx = make_ctx(tmp_path, ScriptedPrompter({"alongside Windows": False}), runner)
    GrubConfigStep().run(ctx, _encrypted_uefi())
    HostsStep().run(ctx, new_state(34))
    assert not (tmp_path / "mnt").exists()
