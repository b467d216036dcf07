from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Tuple

from ..errors import FileIOError

logger = logging.getLogger(__name__)

Replacement = Tuple[str, str]


def read_file(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FileIOError(path, e) from e


def write_file(path: str, contents: str, *, dry_run: bool = False) -> None:
    if dry_run:
        logger.info("Would write %s", path)
        return
    p = Path(path)
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(contents, encoding="utf-8")
    except OSError as e:
        raise FileIOError(path, e) from e
    logger.info("Wrote %s", path)


def append_line(path: str, line: str, *, dry_run: bool = False) -> None:
    if dry_run:
        logger.info("Would append to %s: %s", path, line)
        return
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError as e:
        raise FileIOError(path, e) from e
    logger.info("Appended to %s: %s", path, line)


def apply_replacements(text: str, replacements: Iterable[Replacement]) -> str:
    """Apply literal (non-regex) substitutions in order.

    Every occurrence of each `old` is replaced. Once an `old` string is gone
    a repeated call leaves the text unchanged, so re-running an edit after an
    interrupted step is harmless.
    """

    for old, new in replacements:
        text = text.replace(old, new)
    return text


def patch_file(path: str, replacements: Iterable[Replacement], *, dry_run: bool = False) -> str:
    """Read `path`, apply `replacements`, write it back. Returns the new text."""

    replacements = list(replacements)
    if dry_run:
        logger.info("Would patch %s (%d replacements)", path, len(replacements))
        return ""

    original = read_file(path)
    patched = apply_replacements(original, replacements)
    for old, _ in replacements:
        if old not in original:
            logger.debug("Pattern not present in %s: %r", path, old)
    write_file(path, patched)
    return patched
