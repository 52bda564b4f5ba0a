# SPDX-License-Identifier: Apache-2.0

"""Utility functions for inventory synchronization."""

import os
import re
import stat
import sys
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Union

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<level>{message}</level>"
)
REDACTED = "***"

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, "d": 86400}


def setup_logging(level: str = "INFO", secrets: Iterable[str] = ()) -> None:
    """Configure logging settings.

    Logs go to stderr so that stdout stays reserved for inventory output.

    Args:
        level: Minimum log level
        secrets: Values that must never appear in log messages
    """
    secrets = [secret for secret in secrets if secret]

    def redact(record) -> bool:
        for secret in secrets:
            if secret in record["message"]:
                record["message"] = record["message"].replace(secret, REDACTED)
        return True

    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level, colorize=True, filter=redact)


def parse_duration(value: Union[None, int, float, str]) -> Optional[float]:
    """Parse a duration into seconds.

    Accepts plain numbers (seconds) and strings such as ``"30s"``, ``"5m"``,
    ``"1.5h"`` or ``"250ms"``.

    Args:
        value: Duration to parse, or None

    Returns:
        Duration in seconds, or None if value is None or empty

    Raises:
        ValueError: If the value is negative or not a duration
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION_PATTERN.match(str(value))
        if not match:
            raise ValueError(f"Invalid duration: {value!r}")
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2) or "s"]
    if seconds < 0:
        raise ValueError(f"Duration must not be negative: {value!r}")
    return seconds


def _file_mode(path: Path) -> int:
    """Mode for a replaced file: the existing file's, else 0666 minus the umask."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_atomic(path: Path, content: str) -> None:
    """Write content to path so that readers never see a partial file.

    The file keeps the mode of the file it replaces; a new file gets the mode
    a plain ``open()`` would give it.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fp:
            fp.write(content)
        os.chmod(tmp_name, _file_mode(path))
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
