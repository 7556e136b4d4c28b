"""Privoxy log extend.

Summarizes the last few minutes of the Privoxy logfile. Two line shapes are
understood:

    2023-01-14 19:16:51.471 7f6d4f7fe700 Crunch: Blocked: ads.example.com:443
    127.0.0.1 - - [14/Jan/2023:19:16:51 +0100] "GET http://example.com/ HTTP/1.1" 200 1234

The first is the regular debug output, the second the common log format
written with "debug 512".
"""

import argparse
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Set

from ..config import ExtendConfig
from ..utils import percent
from .base import LogExtend, read_backwards

DEBUG_LINE = re.compile(
    r"^(?P<ts>\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})(?:\.\d+)?\s+(?P<thread>\S+)\s+(?P<tag>[A-Za-z-]+):\s(?P<msg>.*)$"
)
CLF_LINE = re.compile(
    r'^(?P<client>\S+) \S+ \S+ \[(?P<ts>[^\]]+)\] "(?P<method>\S+) (?P<url>\S+) (?P<proto>[^"]+)" (?P<status>\d{3}) (?P<bytes>\d+|-)'
)
TOTAL_REQUESTS = re.compile(r"Total requests: (\d+)")

METHODS = ("get", "head", "post", "put", "delete", "connect", "options", "trace", "patch")
VERSIONS = {"HTTP/1.0": "ver_1", "HTTP/1.1": "ver_1_1", "HTTP/2": "ver_2", "HTTP/2.0": "ver_2", "HTTP/3": "ver_3"}
TRACKED_STATUS = {
    "2": (200,),
    "3": (301, 302, 303),
    "4": (403, 404, 451),
    "5": (500, 502, 503, 504),
}


class PrivoxyConfig(ExtendConfig):
    logfile: str = "/var/log/privoxy/logfile"
    window: int = 300


def empty_stats() -> Dict[str, Any]:
    stats = {
        "client_requests": 0,
        "client_cons": 0,
        "crunches": 0,
        "blocks": 0,
        "block_percent": 0,
        "fast_redirs": 0,
        "con_timeouts": 0,
        "con_failures": 0,
        "empty_resps": 0,
        "empty_resps_new": 0,
        "empty_resps_reuse": 0,
        "imp_accounted": 0,
        "nog_conns": 0,
        "reused_server_cons": 0,
        "ska_offers": 0,
        "max_reqs": 0,
        "bytes_to_client": 0,
        "unique_domains": 0,
        "unique_domains_np": 0,
        "unique_bdomains": 0,
        "unique_bdomains_np": 0,
        "ubd_per": 0,
        "ubd_np_per": 0,
        "resp_1xx": 0,
    }
    for method in METHODS:
        stats[f"req_{method}"] = 0
    for version in set(VERSIONS.values()):
        stats[version] = 0
    for bucket, codes in TRACKED_STATUS.items():
        stats[f"resp_{bucket}xx"] = 0
        stats[f"resp_{bucket}xx_other"] = 0
        for code in codes:
            stats[f"resp_{code}"] = 0
    return stats


def domain_of(target: str) -> str:
    """'www.example.com:443/path' or 'http://x.org/' -> host[:port]"""
    target = target.strip()
    if "://" in target:
        target = target.split("://", 1)[1]
    return target.split("/", 1)[0].lower()


def strip_port(domain: str) -> str:
    if domain.startswith("["):
        # [::1]:8080
        return domain.split("]", 1)[0] + "]"
    return domain.rsplit(":", 1)[0] if ":" in domain else domain


class PrivoxyLogParser:
    """Running aggregation over privoxy log lines"""

    def __init__(self):
        self.stats = empty_stats()
        self.domains: Set[str] = set()
        self.blocked_domains: Set[str] = set()

    @staticmethod
    def line_time(line: str) -> Optional[float]:
        """Epoch seconds of a log line, None if the line carries no timestamp"""
        match = DEBUG_LINE.match(line)
        if match:
            return time.mktime(time.strptime(match.group("ts"), "%Y-%m-%d %H:%M:%S"))
        match = CLF_LINE.match(line)
        if match:
            try:
                return datetime.strptime(match.group("ts"), "%d/%b/%Y:%H:%M:%S %z").timestamp()
            except ValueError:
                return None
        return None

    def add(self, line: str) -> None:
        match = CLF_LINE.match(line)
        if match:
            self._add_request(match)
            return
        match = DEBUG_LINE.match(line)
        if match:
            self._add_debug(match.group("tag"), match.group("msg"))

    def _add_request(self, match: re.Match) -> None:
        stats = self.stats
        method = match.group("method").lower()
        if method in METHODS:
            stats[f"req_{method}"] += 1

        version = VERSIONS.get(match.group("proto").strip().upper())
        if version:
            stats[version] += 1

        status = int(match.group("status"))
        bucket = str(status)[0]
        if bucket == "1":
            stats["resp_1xx"] += 1
        elif bucket in TRACKED_STATUS:
            stats[f"resp_{bucket}xx"] += 1
            if status in TRACKED_STATUS[bucket]:
                stats[f"resp_{status}"] += 1
            else:
                stats[f"resp_{bucket}xx_other"] += 1

        if match.group("bytes") != "-":
            stats["bytes_to_client"] += int(match.group("bytes"))

    def _add_debug(self, tag: str, msg: str) -> None:
        stats = self.stats
        lowered = msg.lower()

        if tag == "Request":
            stats["client_requests"] += 1
            self.domains.add(domain_of(msg))

        elif tag == "Crunch":
            stats["crunches"] += 1
            kind, _, target = msg.partition(": ")
            if kind == "Blocked":
                stats["blocks"] += 1
                self.blocked_domains.add(domain_of(target))
            elif kind == "Redirected":
                stats["fast_redirs"] += 1
            elif kind == "Connection failure":
                stats["con_failures"] += 1
            elif kind == "Connection timeout":
                stats["con_timeouts"] += 1

        elif tag == "Connect":
            if lowered.startswith("accepted connection from"):
                stats["client_cons"] += 1
            elif lowered.startswith("reusing server socket"):
                stats["reused_server_cons"] += 1
                total = TOTAL_REQUESTS.search(msg)
                if total:
                    stats["max_reqs"] = max(stats["max_reqs"], int(total.group(1)))
            elif "server or forwarder" in lowered and ("no " in lowered or "empty" in lowered):
                stats["empty_resps"] += 1
                if "reus" in lowered:
                    stats["empty_resps_reuse"] += 1
                else:
                    stats["empty_resps_new"] += 1
            elif "keep-alive" in lowered and "offer" in lowered:
                stats["ska_offers"] += 1
            elif "not going to" in lowered or "will not be kept alive" in lowered:
                stats["nog_conns"] += 1

            if "improperly accounted" in lowered:
                stats["imp_accounted"] += 1

        elif tag == "Error":
            if "timed out" in lowered or "timeout" in lowered:
                stats["con_timeouts"] += 1
            elif "connect" in lowered and "fail" in lowered:
                stats["con_failures"] += 1

    def finish(self) -> Dict[str, Any]:
        stats = self.stats
        stats["unique_domains"] = len(self.domains)
        stats["unique_domains_np"] = len({strip_port(d) for d in self.domains})
        stats["unique_bdomains"] = len(self.blocked_domains)
        stats["unique_bdomains_np"] = len({strip_port(d) for d in self.blocked_domains})

        stats["block_percent"] = percent(stats["blocks"], stats["client_requests"])
        stats["ubd_per"] = percent(stats["unique_bdomains"], stats["unique_domains"])
        stats["ubd_np_per"] = percent(stats["unique_bdomains_np"], stats["unique_domains_np"])
        return stats


class PrivoxyExtend(LogExtend):
    """
    Privoxy extend
    Emits request/crunch/connection counters for the last `window` seconds
    """

    name = "privoxy"
    description = "Privoxy log stats"
    config_model = PrivoxyConfig

    @classmethod
    def add_arguments(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("-f", "--file", dest="logfile", help="privoxy logfile (default: /var/log/privoxy/logfile)")
        parser.add_argument("--window", type=int, help="seconds of log to summarize (default: 300)")

    def apply_args(self, args: argparse.Namespace) -> None:
        if getattr(args, "logfile", None):
            self.config.logfile = args.logfile
        if getattr(args, "window", None):
            self.config.window = args.window
            self.window = args.window

    def is_available(self) -> bool:
        return Path(self.config.logfile).is_file()

    def collect(self, now: Optional[float] = None) -> Dict[str, Any]:
        path = self.check_log(self.config.logfile)
        cutoff = self.cutoff(now)
        parser = PrivoxyLogParser()

        lines = 0
        for line in read_backwards(path):
            line_time = parser.line_time(line)
            if line_time is None:
                continue
            if line_time < cutoff:
                break
            parser.add(line)
            lines += 1

        self.logger.debug(f"{self.name}: parsed {lines} lines from {path}")
        return parser.finish()


def main():
    from ..cli import run_extend
    raise SystemExit(run_extend(PrivoxyExtend))
