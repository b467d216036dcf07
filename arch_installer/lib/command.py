from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Sequence

from ..errors import ExternalCommandFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


class CommandRunner:
    """Run external tools one at a time, blocking until they exit.

    - Always logs the command.
    - stdin/stdout/stderr are inherited so interactive tools (fdisk, passwd,
      cryptsetup) talk to the operator directly.
    - capture=True pipes stdout back for tools whose output a step parses.
    - dry_run logs but does not execute.
    """

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    def run(self, argv: Sequence[str], *, check: bool = True, capture: bool = False) -> CmdResult:
        argv_list = list(argv)
        logger.info("CMD %s", _fmt_argv(argv_list))

        if self.dry_run:
            return CmdResult(argv=argv_list, returncode=0, stdout="")

        try:
            p = subprocess.run(
                argv_list,
                text=True,
                stdout=subprocess.PIPE if capture else None,
            )
        except OSError as e:
            logger.error("Unable to start %s: %s", argv_list[0], e)
            raise ExternalCommandFailed(argv_list, None, str(e)) from e

        stdout = p.stdout or ""
        if stdout:
            logger.debug("STDOUT %s", stdout.strip())

        if check and p.returncode != 0:
            raise ExternalCommandFailed(argv_list, p.returncode)

        return CmdResult(argv=argv_list, returncode=p.returncode, stdout=stdout)
