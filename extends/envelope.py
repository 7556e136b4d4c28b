"""
Envelope rendering for LibreNMS extends.

Every extend prints the same wrapper:

    {"data": {...}, "version": 1, "error": 0, "errorString": ""}

The wrapper may be gzip+base64 compressed so it fits through SNMP, and may be
cached to a pair of files (<prefix>.json and <prefix>.snmp) for cron driven
setups where snmpd just cats the cached file.
"""

import base64
import datetime
import decimal
import gzip
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger("extends.envelope")


def _json_default(value: Any) -> Any:
    """Serialize the odd types database drivers and parsers hand back"""
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    if isinstance(value, decimal.Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def compress_output(raw: str) -> str:
    """
    Gzip+base64 a compact JSON string for SNMP transport.

    The base64 text carries no embedded newlines and ends with exactly one.
    If compressing makes it longer, the raw JSON is returned instead.
    """
    compressed = base64.b64encode(gzip.compress(raw.encode("utf-8"))).decode("ascii")
    if len(compressed) > len(raw):
        return raw + "\n"
    return compressed + "\n"


@dataclass
class Envelope:
    """Result of a single extend run"""
    data: Dict[str, Any] = field(default_factory=dict)
    version: int = 1
    error: int = 0
    errorString: str = ""

    @property
    def ok(self) -> bool:
        return self.error == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.data,
            "version": self.version,
            "error": self.error,
            "errorString": self.errorString,
        }

    def to_json(self, pretty: bool = False) -> str:
        if pretty:
            return json.dumps(self.to_dict(), indent=4, sort_keys=True, default=_json_default)
        return json.dumps(self.to_dict(), separators=(",", ":"), default=_json_default)

    def render(self, pretty: bool = False, compress: bool = False) -> str:
        """Text as printed to stdout. Pretty printing is ignored when compressing."""
        if compress:
            return compress_output(self.to_json())
        return self.to_json(pretty=pretty) + "\n"

    def write_cache(self, prefix: Path) -> None:
        """Write <prefix>.json (raw) and <prefix>.snmp (SNMP ready) next to each other"""
        prefix = Path(prefix)
        raw = self.to_json()
        _atomic_write(prefix.with_name(prefix.name + ".json"), raw + "\n")
        _atomic_write(prefix.with_name(prefix.name + ".snmp"), compress_output(raw))
        logger.debug(f"wrote cache files for prefix {prefix}")


def _atomic_write(path: Path, content: str) -> None:
    """Replace path in one step so snmpd never reads a half written file"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
