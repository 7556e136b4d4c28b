"""Utility functions for extends - command execution, procfs/sysfs reads, numeric helpers"""
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import SourceError

logger = logging.getLogger("extends.utils")


def is_command_available(command: str) -> bool:
    """Check if an executable is on PATH"""
    return shutil.which(command) is not None


def run_command(
    cmd: List[str],
    timeout: int = 30,
    check: bool = True,
    cwd: Optional[Union[str, Path]] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Run a command and capture its text output.

    Raises:
        SourceError: command missing, timed out, or (with check) exited non-zero
    """
    logger.debug(f"running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            env=env,
        )
    except FileNotFoundError as e:
        raise SourceError(f"{cmd[0]} not found") from e
    except subprocess.TimeoutExpired as e:
        raise SourceError(f"{' '.join(cmd)} timed out after {timeout}s") from e

    if check and result.returncode != 0:
        raise SourceError(
            f"{' '.join(cmd)} exited {result.returncode}: {result.stderr.strip()}"
        )
    return result


def read_text(path: Union[str, Path], default: Optional[str] = None) -> Optional[str]:
    """Read a small procfs/sysfs file, stripped. Returns default when unreadable."""
    try:
        return Path(path).read_text().strip()
    except OSError:
        return default


def to_number(value: Any, default: Union[int, float] = 0) -> Union[int, float]:
    """Coerce to int, then float, else default ('-' and None count as missing)"""
    if value is None or value == "-" or value == "":
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return float(value)
        except (TypeError, ValueError):
            return default


def percent(part: Union[int, float], whole: Union[int, float], digits: int = 2) -> float:
    """part/whole as a percentage, 0 when whole is 0"""
    if not whole:
        return 0
    return round(part / whole * 100, digits)
