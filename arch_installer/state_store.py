from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import FileIOError, PersistedStateCorrupt

logger = logging.getLogger(__name__)

BIOS = "bios"
UEFI = "uefi"
FIRMWARE_MODES = (BIOS, UEFI)

PARTITION_ROLES = ("uefi", "boot", "root", "home", "swap")

# Persisted key order. The record always carries every key.
STATE_KEYS = (
    "firmware_mode",
    "partitions",
    "username",
    "encrypt_volumes",
    "current_step",
    "total_steps",
)


@dataclass(frozen=True)
class Partitions:
    """Partition names (e.g. `sda1`) by role. Only root is mandatory."""

    root: str = ""
    uefi: Optional[str] = None
    boot: Optional[str] = None
    home: Optional[str] = None
    swap: Optional[str] = None


@dataclass(frozen=True)
class ProvisioningState:
    total_steps: int
    firmware_mode: str = BIOS
    encrypt_volumes: bool = False
    partitions: Partitions = field(default_factory=Partitions)
    username: str = ""
    current_step: int = 1

    @property
    def uefi(self) -> bool:
        return self.firmware_mode == UEFI

    @property
    def finished(self) -> bool:
        return self.current_step > self.total_steps

    def with_partitions(self, **roles: Optional[str]) -> "ProvisioningState":
        return replace(self, partitions=replace(self.partitions, **roles))


def new_state(total_steps: int) -> ProvisioningState:
    return ProvisioningState(total_steps=total_steps)


def reset_state(state: ProvisioningState) -> ProvisioningState:
    """Discard all answers and progress, keeping the catalogue size."""

    return new_state(state.total_steps)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def state_to_dict(state: ProvisioningState) -> Dict[str, Any]:
    p = state.partitions
    return {
        "firmware_mode": state.firmware_mode,
        "partitions": {
            "uefi": p.uefi,
            "boot": p.boot,
            "root": p.root,
            "home": p.home,
            "swap": p.swap,
        },
        "username": state.username,
        "encrypt_volumes": state.encrypt_volumes,
        "current_step": state.current_step,
        "total_steps": state.total_steps,
    }


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise PersistedStateCorrupt(msg)


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def state_from_dict(data: Any) -> ProvisioningState:
    """Validate a decoded record. Anything unexpected is corruption, never guessed at."""

    _require(isinstance(data, dict), f"State must be an object/dict, got {type(data).__name__}")
    _require(
        set(data) == set(STATE_KEYS),
        f"State keys mismatch: expected {sorted(STATE_KEYS)}, got {sorted(map(str, data))}",
    )

    mode = data["firmware_mode"]
    _require(mode in FIRMWARE_MODES, f"Unknown firmware_mode: {mode!r}")

    parts = data["partitions"]
    _require(isinstance(parts, dict), "partitions must be an object/dict")
    _require(
        set(parts) == set(PARTITION_ROLES),
        f"Partition roles mismatch: expected {sorted(PARTITION_ROLES)}, got {sorted(map(str, parts))}",
    )
    _require(isinstance(parts["root"], str), "partitions.root must be a string")
    for role in PARTITION_ROLES:
        if role == "root":
            continue
        value = parts[role]
        _require(value is None or isinstance(value, str), f"partitions.{role} must be a string or null")

    _require(isinstance(data["username"], str), "username must be a string")
    _require(isinstance(data["encrypt_volumes"], bool), "encrypt_volumes must be a boolean")
    _require(_is_int(data["total_steps"]) and data["total_steps"] >= 1, "total_steps must be an integer >= 1")
    # total_steps + 1 is a finished run whose file was not yet removed.
    _require(
        _is_int(data["current_step"]) and 1 <= data["current_step"] <= data["total_steps"] + 1,
        f"current_step must be an integer in [1, {data['total_steps'] + 1}]",
    )

    return ProvisioningState(
        total_steps=data["total_steps"],
        firmware_mode=mode,
        encrypt_volumes=data["encrypt_volumes"],
        partitions=Partitions(**{role: parts[role] for role in PARTITION_ROLES}),
        username=data["username"],
        current_step=data["current_step"],
    )


def check_progress(
    state: ProvisioningState,
    *,
    partitions_named_at: Optional[int] = None,
    user_created_at: Optional[int] = None,
) -> None:
    """Check the answers a resumed run relies on against how far it got.

    `partitions_named_at` / `user_created_at` are the catalogue positions of
    the steps that record them; None skips that check.
    """

    if partitions_named_at is not None and state.current_step > partitions_named_at:
        parts = state.partitions
        _require(bool(parts.root), f"No root partition recorded at step {state.current_step}")
        _require(
            (parts.uefi is not None) == state.uefi,
            f"uefi partition {parts.uefi!r} does not match firmware_mode {state.firmware_mode!r}",
        )

    if user_created_at is not None and state.current_step > user_created_at:
        _require(bool(state.username), f"No username recorded at step {state.current_step}")


def load_state(path: str) -> Optional[ProvisioningState]:
    """Return the persisted state, or None when no prior run left one behind."""

    p = Path(path)
    if not p.exists():
        return None

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise FileIOError(path, e) from e
    except UnicodeDecodeError as e:
        raise PersistedStateCorrupt(f"{path}: {e}") from e

    fmt = _detect_format(p)
    if fmt in {"yaml", "yml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise PersistedStateCorrupt(f"{path}: {e}") from e
    else:
        try:
            data = json.loads(text)
        except ValueError as e:
            raise PersistedStateCorrupt(f"{path}: {e}") from e

    state = state_from_dict(data)
    logger.info("Loaded state from %s (step %d/%d)", path, state.current_step, state.total_steps)
    return state


def save_state(path: str, state: ProvisioningState) -> None:
    """Write the full record to a sibling temp file and rename it into place."""

    p = Path(path)
    data = state_to_dict(state)

    if _detect_format(p) in {"yaml", "yml"}:
        text = yaml.safe_dump(data, sort_keys=False)
    else:
        text = json.dumps(data, indent=2) + "\n"

    tmp = p.with_name(p.name + ".tmp")
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, p)
    except OSError as e:
        raise FileIOError(path, e) from e
    logger.debug("Saved state to %s (next step %d)", path, state.current_step)


def clear_state(path: str) -> None:
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return
    except OSError as e:
        raise FileIOError(path, e) from e
    logger.info("Removed state file %s", path)
