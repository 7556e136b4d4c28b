"""HTTP access log extend (Combined Log Format).

Config JSON, default /usr/local/etc/http_access_log_combined_extend.json:

    {
        "access": {"www": "/var/log/apache2/www-access.log"},
        "error": {"www": "/var/log/apache2/www-error.log"},
        "auto": true,
        "auto_dirs": ["/var/log/apache2", "/var/log/httpd", "/var/log/nginx"],
        "window": 300
    }

Logs named under "access" are always read. With "auto" on, every
*access*.log under auto_dirs is added too, named after the file, and an
error log sitting next to it (access -> error in the file name) is picked up.
"""

import argparse
import re
import statistics
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import ExtendConfig
from ..errors import ConfigError, SourceError
from .base import LogExtend, read_backwards

# live logs only: "*access*.log", "access_log", "ssl_access_log"; rotated copies are skipped
LIVE_ACCESS_LOG = re.compile(r"(?:access.*\.log|access_log)$")

COMBINED_LINE = re.compile(
    r'^(?P<host>\S+) (?P<ident>\S+) (?P<user>\S+) \[(?P<time>[^\]]+)\] '
    r'"(?P<request>(?:[^"\\]|\\.)*)" (?P<status>\d{3}) (?P<bytes>\d+|-)'
    r'(?: "(?P<refer>(?:[^"\\]|\\.)*)" "(?P<agent>(?:[^"\\]|\\.)*)")?'
)

METHODS = ("GET", "HEAD", "POST", "PUT", "DELETE", "OPTIONS", "CONNECT", "PATCH", "TRACE")
PROTOCOLS = {"HTTP/1.0": "http1_0", "HTTP/1.1": "http1_1", "HTTP/2": "http2", "HTTP/2.0": "http2", "HTTP/3": "http3"}
STATUS_CODES = (
    100, 101, 102, 103,
    200, 201, 202, 203, 204, 205, 206, 207, 208, 226,
    300, 301, 302, 303, 304, 305, 307, 308,
    400, 401, 402, 403, 404, 405, 406, 407, 408, 409, 410, 411, 412, 413, 414, 415,
    416, 417, 418, 421, 422, 423, 424, 425, 426, 428, 429, 431, 444, 451, 499,
    500, 501, 502, 503, 504, 505, 506, 507, 508, 510, 511,
)
COUNTERS = (
    ("requests", "refer", "no_refer", "user", "no_user", "other_method", "other_protocol", "unparsed")
    + tuple(f"{n}xx" for n in range(1, 6))
    + METHODS
    + tuple(sorted(set(PROTOCOLS.values())))
)


class HttpAccessLogConfig(ExtendConfig):
    access: Dict[str, str] = {}
    error: Dict[str, str] = {}
    auto: bool = True
    auto_dirs: List[str] = ["/var/log/apache2", "/var/log/httpd", "/var/log/nginx"]
    window: int = 300


@dataclass
class AccessLogEntry:
    """One parsed access log line"""
    host: str
    user: str
    timestamp: float
    method: str
    path: str
    protocol: str
    status: int
    size: int
    refer: str = "-"
    agent: str = "-"


def parse_line(line: str) -> Optional[AccessLogEntry]:
    """Parse a Combined (or Common) Log Format line, None if it does not match"""
    match = COMBINED_LINE.match(line)
    if not match:
        return None

    try:
        timestamp = datetime.strptime(match.group("time"), "%d/%b/%Y:%H:%M:%S %z").timestamp()
    except ValueError:
        return None

    parts = match.group("request").split()
    if len(parts) == 3:
        method, path, protocol = parts
    elif len(parts) == 2:
        # HTTP/0.9 style "GET /"
        method, path, protocol = parts[0], parts[1], ""
    else:
        method, path, protocol = "", match.group("request"), ""

    size = match.group("bytes")
    return AccessLogEntry(
        host=match.group("host"),
        user=match.group("user"),
        timestamp=timestamp,
        method=method,
        path=path,
        protocol=protocol,
        status=int(match.group("status")),
        size=0 if size == "-" else int(size),
        refer=match.group("refer") or "-",
        agent=match.group("agent") or "-",
    )


def byte_stats(sizes: List[int]) -> Dict[str, Any]:
    """Distribution of response sizes. All zero when no requests were seen."""
    if not sizes:
        return {"bytes": 0, "bytes_min": 0, "bytes_max": 0, "bytes_mean": 0,
                "bytes_median": 0, "bytes_mode": 0, "bytes_range": 0}
    low, high = min(sizes), max(sizes)
    return {
        "bytes": sum(sizes),
        "bytes_min": low,
        "bytes_max": high,
        "bytes_mean": round(statistics.fmean(sizes), 2),
        "bytes_median": statistics.median(sizes),
        "bytes_mode": min(statistics.multimode(sizes)),
        "bytes_range": high - low,
    }


@dataclass
class AccessLogStats:
    """Running counters for one access log"""
    counters: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(COUNTERS, 0))
    codes: Dict[int, int] = field(default_factory=lambda: dict.fromkeys(STATUS_CODES, 0))
    sizes: List[int] = field(default_factory=list)
    size: int = 0
    error_size: int = 0

    def add(self, entry: AccessLogEntry) -> None:
        c = self.counters
        c["requests"] += 1
        self.sizes.append(entry.size)

        bucket = entry.status // 100
        if 1 <= bucket <= 5:
            c[f"{bucket}xx"] += 1
        if entry.status in self.codes:
            self.codes[entry.status] += 1

        if entry.method in METHODS:
            c[entry.method] += 1
        else:
            c["other_method"] += 1

        protocol = PROTOCOLS.get(entry.protocol.upper())
        if protocol:
            c[protocol] += 1
        else:
            c["other_protocol"] += 1

        c["refer" if entry.refer not in ("", "-") else "no_refer"] += 1
        c["user" if entry.user not in ("", "-") else "no_user"] += 1

    def merge(self, other: "AccessLogStats") -> None:
        for key, value in other.counters.items():
            self.counters[key] += value
        for code, value in other.codes.items():
            self.codes[code] += value
        self.sizes.extend(other.sizes)
        self.size += other.size
        self.error_size += other.error_size

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = dict(self.counters)
        result.update({str(code): count for code, count in self.codes.items()})
        result.update(byte_stats(self.sizes))
        result["size"] = self.size
        result["error_size"] = self.error_size
        return result


def log_name(path: Path) -> str:
    """'/var/log/apache2/www.example.com-access.log' -> 'www.example.com'"""
    stem = path.name
    if stem.endswith(".log"):
        stem = stem[:-4]
    name = re.sub(r"[-_.]?access(?:[-_.]?log)?", "", stem).strip("-_.")
    return name or path.parent.name


class HttpAccessLogExtend(LogExtend):
    """
    HTTP access log extend
    Emits per log and totals:
      - request counts by status bucket, status code, method and protocol
      - response size distribution (sum, min, max, mean, median, mode, range)
      - referer/user presence counts
      - access and error log file sizes
    """

    name = "http_access_log_combined"
    description = "HTTP access log combined"
    config_model = HttpAccessLogConfig
    default_config = "/usr/local/etc/http_access_log_combined_extend.json"
    default_cache = "/var/cache/http_access_log_combined"

    @classmethod
    def add_arguments(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--window", type=int, help="seconds of log to summarize (default: 300)")
        parser.add_argument("--no-auto", action="store_true", help="do not discover logs under auto_dirs")

    def apply_args(self, args: argparse.Namespace) -> None:
        if getattr(args, "window", None):
            self.config.window = args.window
            self.window = args.window
        if getattr(args, "no_auto", False):
            self.config.auto = False

    def discover(self) -> Dict[str, Dict[str, Any]]:
        """name -> {"access": path, "error": path or None, "auto": discovered or configured}"""
        logs: Dict[str, Dict[str, Any]] = {}

        if self.config.auto:
            for directory in self.config.auto_dirs:
                directory = Path(directory)
                if not directory.is_dir():
                    continue
                for path in sorted(directory.glob("*access*")):
                    if not path.is_file() or not LIVE_ACCESS_LOG.search(path.name):
                        continue
                    error_path = path.with_name(path.name.replace("access", "error"))
                    logs[log_name(path)] = {
                        "access": path,
                        "error": error_path if error_path.is_file() else None,
                        "auto": True,
                    }

        for name, access in self.config.access.items():
            error = self.config.error.get(name)
            logs[name] = {"access": Path(access), "error": Path(error) if error else None, "auto": False}

        return logs

    def read_log(self, path: Path, cutoff: float) -> AccessLogStats:
        stats = AccessLogStats()
        for line in read_backwards(path):
            if not line.strip():
                continue
            entry = parse_line(line)
            if entry is None:
                stats.counters["unparsed"] += 1
                continue
            if entry.timestamp < cutoff:
                break
            stats.add(entry)
        return stats

    def collect(self, now: Optional[float] = None) -> Dict[str, Any]:
        logs = self.discover()
        if not logs:
            raise ConfigError("No access logs configured or discovered")

        cutoff = self.cutoff(now)
        totals = AccessLogStats()
        per_log: Dict[str, Any] = {}

        for name, paths in sorted(logs.items()):
            try:
                access_path = self.check_log(paths["access"])
            except SourceError as e:
                if not paths["auto"]:
                    raise
                # e.g. nginx logs owned by www-data:adm 0640
                self.logger.warning(f"{name}: skipping discovered log: {e}")
                continue
            stats = self.read_log(access_path, cutoff)
            stats.size = access_path.stat().st_size

            error_path = paths.get("error")
            if error_path is not None:
                try:
                    stats.error_size = error_path.stat().st_size
                except OSError as e:
                    self.logger.warning(f"{name}: cannot stat error log {error_path}: {e}")

            self.logger.debug(f"{name}: {stats.counters['requests']} requests in window from {access_path}")
            per_log[name] = stats.to_dict()
            totals.merge(stats)

        return {"logs": per_log, "totals": totals.to_dict()}


def main():
    from ..cli import run_extend
    raise SystemExit(run_extend(HttpAccessLogExtend))
