from __future__ import annotations

import shlex
from typing import Optional, Sequence


class InstallerError(RuntimeError):
    """Base class for failures that abort the run and keep state for resume."""


class ExternalCommandFailed(InstallerError):
    def __init__(self, argv: Sequence[str], exit_code: Optional[int], reason: str = "") -> None:
        self.argv = list(argv)
        self.exit_code = exit_code
        self.reason = reason
        cmd = " ".join(shlex.quote(a) for a in self.argv)
        if exit_code is None:
            msg = f"Command could not be started: {cmd} ({reason})"
        else:
            msg = f"Command failed ({exit_code}): {cmd}"
        super().__init__(msg)

    @property
    def command(self) -> str:
        return self.argv[0] if self.argv else ""


class InvalidOperatorInput(InstallerError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class PersistedStateCorrupt(InstallerError):
    pass


class FileIOError(InstallerError):
    def __init__(self, path: str, error: BaseException) -> None:
        self.path = path
        super().__init__(f"{path}: {error}")


class IdentifierNotFound(InstallerError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No device listing entry matches {name!r}")


class CatalogueError(RuntimeError):
    """A step index outside the catalogue. This is a bug, never retried."""
