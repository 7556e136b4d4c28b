import os
import time
from pathlib import Path
from typing import Iterator, Optional, Union

from ..collectors.base import Extend
from ..errors import SourceError


def read_backwards(path: Union[str, Path], block_size: int = 65536) -> Iterator[str]:
    """
    Yield lines of a file from last to first without loading it whole.

    Trailing newlines are stripped. Bytes that are not UTF-8 are replaced.
    """
    with open(path, "rb") as f:
        f.seek(0, os.SEEK_END)
        position = f.tell()
        remainder = b""
        at_end = True

        while position > 0:
            read_size = min(block_size, position)
            position -= read_size
            f.seek(position)
            chunk = f.read(read_size) + remainder
            lines = chunk.split(b"\n")
            # first piece may be a partial line, keep it for the next block
            remainder = lines.pop(0)

            if at_end:
                at_end = False
                if lines and lines[-1] == b"":
                    lines.pop()

            for line in reversed(lines):
                yield line.rstrip(b"\r").decode("utf-8", errors="replace")

        if remainder or not at_end:
            yield remainder.rstrip(b"\r").decode("utf-8", errors="replace")


class LogExtend(Extend):
    """Base class for extends that summarize the tail end of a log file"""

    # Only lines newer than now - window seconds are counted
    default_window = 300

    def __init__(self, config=None, logger=None):
        super().__init__(config, logger)
        self.window = getattr(self.config, "window", self.default_window)

    def cutoff(self, now: Optional[float] = None) -> float:
        """Oldest timestamp still inside the window"""
        return (now if now is not None else time.time()) - self.window

    def check_log(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        if not path.is_file():
            raise SourceError(f"Log file not found: {path}")
        if not os.access(path, os.R_OK):
            raise SourceError(f"Log file not readable: {path}")
        return path
