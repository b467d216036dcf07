from .base_system import (
    BaseSystemStep,
    EncryptedSwapStep,
    FstabStep,
    LivePacmanConfigStep,
    MirrorsStep,
    TargetPacmanConfigStep,
)
from .bootloader import (
    CrypttabStep,
    GrubConfigStep,
    GrubInstallStep,
    GrubMkconfigStep,
    InitramfsStep,
)
from .desktop import AurHelperStep, DesktopStep, DisplayManagerStep, NetworkManagerStep
from .finalize import UnmountStep
from .localization import HardwareClockStep, HostnameStep, HostsStep, LocaleStep, TimeZoneStep
from .partitioning import (
    EncryptionStep,
    FirmwareModeStep,
    FormatPartitionsStep,
    MountPartitionsStep,
    PartitionDiskStep,
    PartitionNamesStep,
    SwapStep,
    TimeSyncStep,
)
from .users import CreateUserStep, RootPasswordStep, SudoersStep, UserPasswordStep, WheelGroupStep


def build_steps():
    """The installation sequence. Position in this list is the persisted step number."""

    return [
        FirmwareModeStep(),
        EncryptionStep(),
        TimeSyncStep(),
        PartitionDiskStep(),
        PartitionNamesStep(),
        FormatPartitionsStep(),
        SwapStep(),
        MountPartitionsStep(),
        MirrorsStep(),
        LivePacmanConfigStep(),
        BaseSystemStep(),
        FstabStep(),
        EncryptedSwapStep(),
        TargetPacmanConfigStep(),
        TimeZoneStep(),
        HardwareClockStep(),
        LocaleStep(),
        HostnameStep(),
        HostsStep(),
        RootPasswordStep(),
        CreateUserStep(),
        UserPasswordStep(),
        WheelGroupStep(),
        SudoersStep(),
        GrubInstallStep(),
        GrubConfigStep(),
        InitramfsStep(),
        GrubMkconfigStep(),
        CrypttabStep(),
        NetworkManagerStep(),
        DesktopStep(),
        DisplayManagerStep(),
        AurHelperStep(),
        UnmountStep(),
    ]


def step_number(steps, step_cls):
    """1-based position of the first `step_cls` in `steps`, or None."""

    for index, step in enumerate(steps, start=1):
        if isinstance(step, step_cls):
            return index
    return None


__all__ = ["build_steps", "step_number", "PartitionNamesStep", "CreateUserStep"]
