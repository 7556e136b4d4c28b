"""Samba stats extend.

Needs Samba 4.16+ for `smbstatus --json`. Profile counters come from
`smbstatus --profile` and are only present when smbd runs with profiling on
("smbd profiling level = on"), so they are optional.
"""

import argparse
import json
from collections import Counter
from typing import Any, Dict

from ..config import ExtendConfig
from ..errors import ExtendError, ParseError
from ..utils import is_command_available, run_command
from .base import Extend


class SambaConfig(ExtendConfig):
    smbstatus: str = "smbstatus"
    profile: bool = True
    timeout: int = 30


def parse_profile(text: str) -> Dict[str, int]:
    """'syscall_opendir_count:   1234' lines -> {name: value}; section banners are skipped"""
    profile = {}
    for line in text.splitlines():
        if ":" not in line or line.startswith("*"):
            continue
        key, value = line.split(":", 1)
        value = value.strip()
        if value.isdigit():
            profile[key.strip()] = int(value)
    return profile


def _degree(entry: Dict[str, Any], kind: str) -> str:
    return ((entry.get(kind) or {}).get("degree") or "none").lower()


class SambaExtend(Extend):
    """
    Samba extend
    Emits:
      - version
      - sessions, shares (tree connects), locked_files
      - encrypted_sessions, signed_sessions
      - session_dialects, shares_by_service
      - profile counters (when profiling is on)
    """

    name = "samba"
    description = "Samba stats"
    config_model = SambaConfig

    @classmethod
    def add_arguments(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--no-profile", action="store_true", help="skip smbstatus --profile")

    def apply_args(self, args: argparse.Namespace) -> None:
        if getattr(args, "no_profile", False):
            self.config.profile = False

    def is_available(self) -> bool:
        return is_command_available(self.config.smbstatus)

    def collect(self) -> Dict[str, Any]:
        result = run_command([self.config.smbstatus, "--json"], timeout=self.config.timeout)
        try:
            status = json.loads(result.stdout)
        except ValueError as e:
            raise ParseError(f"Bad JSON from smbstatus: {e}") from e

        sessions = (status.get("sessions") or {}).values()
        tcons = (status.get("tcons") or {}).values()
        open_files = status.get("open_files") or {}

        data: Dict[str, Any] = {
            "version": status.get("version", ""),
            "sessions": len(sessions),
            "shares": len(tcons),
            "locked_files": len(open_files),
            "encrypted_sessions": sum(1 for s in sessions if _degree(s, "encryption") != "none"),
            "signed_sessions": sum(1 for s in sessions if _degree(s, "signing") != "none"),
            "session_dialects": dict(Counter(s.get("session_dialect", "unknown") for s in sessions)),
            "shares_by_service": dict(Counter(t.get("service", "unknown") for t in tcons)),
            "profile": {},
        }

        if self.config.profile:
            try:
                profile = run_command([self.config.smbstatus, "--profile"], timeout=self.config.timeout)
                data["profile"] = parse_profile(profile.stdout)
            except ExtendError as e:
                self.logger.warning(f"smbstatus --profile failed: {e}")

        return data


def main():
    from ..cli import run_extend
    raise SystemExit(run_extend(SambaExtend))
