from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default
FALLBACK_LOG_NAME = "arch-installer.log"

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"


def _open_file_handler(log_path: str) -> logging.Handler:
    Path(log_path).parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(log_path)


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    console_level: Optional[int] = logging.WARNING,
) -> str:
    """Configure root logging for an installer run.

    Every command and decision goes to the log file. The live ISO may not let
    us write to /var/log, in which case the log lands in the working
    directory instead.

    The console handler only shows warnings and errors; everything else the
    operator sees comes from the prompter. Pass console_level=None to turn it
    off entirely.

    Returns the log file path actually in use.
    """

    root = logging.getLogger()
    root.setLevel(level)

    # Repeated calls keep the first configuration.
    if getattr(root, "_arch_installer_log_path", None):
        return getattr(root, "_arch_installer_log_path")

    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
    handlers: List[logging.Handler] = []

    chosen_path = log_path
    try:
        file_handler = _open_file_handler(log_path)
    except OSError:
        chosen_path = str(Path.cwd() / FALLBACK_LOG_NAME)
        file_handler = _open_file_handler(chosen_path)
    file_handler.setFormatter(fmt)
    handlers.append(file_handler)

    if console_level is not None:
        console = logging.StreamHandler()
        console.setLevel(console_level)
        console.setFormatter(fmt)
        handlers.append(console)

    for h in handlers:
        root.addHandler(h)

    setattr(root, "_arch_installer_log_path", chosen_path)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
