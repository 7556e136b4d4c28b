"""Nextcloud stats extend.

Scrapes `php occ` output from a Nextcloud install directory. Usually has to
run as the web server user, either directly from that user's cron with -w/-q
or through `run_as` (sudo -u).
"""

import argparse
import json
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import ExtendConfig
from ..errors import ParseError, SourceError
from ..utils import percent, run_command, to_number
from .base import Extend

# name -> seconds; users seen within each window are counted
LAST_SEEN_WINDOWS = {
    "5m": 300,
    "1h": 3600,
    "1d": 86400,
    "7d": 604800,
    "30d": 2592000,
}


class NextcloudConfig(ExtendConfig):
    install_dir: str = "/var/www/nextcloud"
    php: str = "php"
    run_as: Optional[str] = None
    calendars: bool = False
    timeout: int = 60


def parse_last_seen(value: Any) -> int:
    """occ user:info last_seen ('2023-10-26T09:56:12+00:00') -> epoch, 0 for never"""
    if not value:
        return 0
    try:
        seen = int(datetime.fromisoformat(str(value)).timestamp())
    except ValueError:
        return 0
    return max(seen, 0)


def count_table_rows(output: str) -> int:
    """Rows of an occ ascii table, header excluded"""
    rows = [line for line in output.splitlines() if line.startswith("|")]
    return max(len(rows) - 1, 0)


class NextcloudExtend(Extend):
    """
    Nextcloud extend
    Emits:
      - version, maintenance, installed
      - users, disabled_users, enabled_apps, disabled_apps, encryption_enabled
      - quota/used/free/total/relative storage sums over all users
      - user_last_seen counts per window
      - calendars (with --calendars)
      - user_data per user id
    """

    name = "nextcloud"
    description = "Nextcloud stats"
    config_model = NextcloudConfig
    default_cache = "/var/cache/nextcloud_extend/snmp"

    @classmethod
    def add_arguments(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("-i", "--install-dir", dest="install_dir",
                            help="Nextcloud install dir (default: /var/www/nextcloud)")
        parser.add_argument("--php", help="PHP binary (default: php)")
        parser.add_argument("--run-as", dest="run_as", help="run occ through sudo -u USER")
        parser.add_argument("--calendars", action="store_true", help="count calendars per user")

    def apply_args(self, args: argparse.Namespace) -> None:
        for key in ("install_dir", "php", "run_as"):
            if getattr(args, key, None):
                setattr(self.config, key, getattr(args, key))
        if getattr(args, "calendars", False):
            self.config.calendars = True

    def is_available(self) -> bool:
        return (Path(self.config.install_dir) / "occ").is_file()

    def occ(self, *occ_args: str, json_output: bool = True) -> Any:
        """Run an occ command from the install dir, decoding JSON output"""
        cmd: List[str] = []
        if self.config.run_as:
            cmd += ["sudo", "-u", self.config.run_as]
        cmd += [self.config.php, "occ", "--no-interaction"]
        cmd += list(occ_args)
        if json_output:
            cmd.append("--output=json")

        result = run_command(cmd, timeout=self.config.timeout, cwd=self.config.install_dir)
        if not json_output:
            return result.stdout
        try:
            return json.loads(result.stdout)
        except ValueError as e:
            raise ParseError(f"Bad JSON from occ {' '.join(occ_args)}: {e}") from e

    def _encryption_enabled(self) -> int:
        try:
            value = self.occ("config:app:get", "core", "encryption_enabled", json_output=False)
        except SourceError:
            # exits non-zero when the key was never set
            return 0
        return 1 if value.strip() == "yes" else 0

    def _user_data(self, uid: str) -> Dict[str, Any]:
        info = self.occ("user:info", uid)
        storage = info.get("storage") or {}
        quota = to_number(storage.get("quota"))
        data = {
            "enabled": 1 if info.get("enabled") else 0,
            "last_seen": parse_last_seen(info.get("last_seen")),
            "quota": quota if quota > 0 else 0,
            "used": to_number(storage.get("used")),
            "free": to_number(storage.get("free")),
            "total": to_number(storage.get("total")),
            "relative": to_number(storage.get("relative")),
            "calendars": 0,
        }
        if self.config.calendars:
            try:
                output = self.occ("dav:list-calendars", uid, json_output=False)
                data["calendars"] = count_table_rows(output)
            except SourceError as e:
                self.logger.warning(f"Could not list calendars for {uid}: {e}")
        return data

    def collect(self, now: Optional[float] = None) -> Dict[str, Any]:
        if not (Path(self.config.install_dir) / "occ").is_file():
            raise SourceError(f"occ not found in {self.config.install_dir}")
        now = now if now is not None else time.time()

        status = self.occ("status")
        users = self.occ("user:list")
        apps = self.occ("app:list")

        user_data = {uid: self._user_data(uid) for uid in sorted(users)}

        data: Dict[str, Any] = {
            "version": status.get("versionstring", status.get("version", "")),
            "installed": 1 if status.get("installed") else 0,
            "maintenance": 1 if status.get("maintenance") else 0,
            "users": len(user_data),
            "disabled_users": sum(1 for u in user_data.values() if not u["enabled"]),
            "enabled_apps": len(apps.get("enabled", {})),
            "disabled_apps": len(apps.get("disabled", {})),
            "encryption_enabled": self._encryption_enabled(),
            "calendars": sum(u["calendars"] for u in user_data.values()),
            "user_data": user_data,
        }

        for key in ("quota", "used", "free", "total"):
            data[key] = sum(u[key] for u in user_data.values())
        data["relative"] = percent(data["used"], data["total"])

        data["user_last_seen"] = {
            window: sum(1 for u in user_data.values() if u["last_seen"] and now - u["last_seen"] <= seconds)
            for window, seconds in LAST_SEEN_WINDOWS.items()
        }
        return data


def main():
    from ..cli import run_extend
    raise SystemExit(run_extend(NextcloudExtend))
