"""Text blob extend.

Runs arbitrary shell commands and ships their output as text blobs. Config
JSON, default /usr/local/etc/text_blob_extend.json:

    {
        "blobs": {"dmesg": "dmesg | tail -n 50", "zpool_status": "zpool status"},
        "global_envs": {"LANG": "C"},
        "blob_envs": {"zpool_status": {"ZPOOL_SCRIPTS_AS_ROOT": "1"}},
        "output_dir": "/var/cache/text_blob_extend"
    }

Output is gzip+base64 by default since blobs get large; --no-compress turns
that off.
"""

import argparse
import os
import signal
import subprocess
from pathlib import Path
from typing import Any, Dict

from ..config import ExtendConfig
from ..errors import ConfigError
from .base import Extend

# signals whose default action dumps core
CORE_SIGNALS = {
    signal.SIGQUIT, signal.SIGILL, signal.SIGTRAP, signal.SIGABRT, signal.SIGBUS,
    signal.SIGFPE, signal.SIGSEGV, signal.SIGSYS, signal.SIGXCPU, signal.SIGXFSZ,
}


class TextBlobConfig(ExtendConfig):
    blobs: Dict[str, str] = {}
    global_envs: Dict[str, str] = {}
    blob_envs: Dict[str, Dict[str, str]] = {}
    output_dir: str = "/var/cache/text_blob_extend"
    timeout: int = 60


def exit_details(returncode: int) -> Dict[str, int]:
    """
    Split a returncode into exit value, signal and core dump flag.

    Negative codes are signals delivered to the shell itself; a shell reports
    a child killed by signal N as 128+N.
    """
    if returncode < 0:
        sig = -returncode
    elif returncode > 128:
        sig = returncode - 128
    else:
        return {"exit_val": returncode, "signal": 0, "coredump": 0}
    return {"exit_val": returncode, "signal": sig, "coredump": 1 if sig in CORE_SIGNALS else 0}


class TextBlobExtend(Extend):
    """
    Text blob extend
    Emits:
      - blobs: name -> command output (stdout then stderr)
      - blob_exit_val, blob_exit_signal, blob_has_coredump: name -> int
      - warns: problems hit while running blobs
    """

    name = "text_blob"
    description = "Text blob"
    config_model = TextBlobConfig
    default_config = "/usr/local/etc/text_blob_extend.json"
    compress_by_default = True

    @classmethod
    def add_arguments(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--no-compress", action="store_true", help="print plain JSON instead of gzip+base64")

    def cache_prefix(self) -> Path:
        return Path(self.config.output_dir) / "extend"

    def run_blob(self, name: str, command: str) -> Dict[str, Any]:
        env = dict(os.environ)
        env.update(self.config.global_envs)
        env.update(self.config.blob_envs.get(name, {}))

        try:
            result = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.config.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            output = e.stdout.decode(errors="replace") if isinstance(e.stdout, bytes) else (e.stdout or "")
            return {"output": output, "exit_val": -1, "signal": 0, "coredump": 0,
                    "warn": f"{name}: timed out after {self.config.timeout}s"}

        details = exit_details(result.returncode)
        details["output"] = result.stdout + result.stderr
        if details["signal"]:
            details["warn"] = f"{name}: killed by signal {details['signal']}"
        elif result.returncode != 0:
            details["warn"] = f"{name}: exited {result.returncode}"
        return details

    def collect(self) -> Dict[str, Any]:
        if not self.config.blobs:
            raise ConfigError("No blobs configured")

        data: Dict[str, Any] = {
            "blobs": {},
            "blob_exit_val": {},
            "blob_exit_signal": {},
            "blob_has_coredump": {},
            "warns": [],
        }
        for name, command in sorted(self.config.blobs.items()):
            self.logger.debug(f"running blob {name}: {command}")
            result = self.run_blob(name, command)
            data["blobs"][name] = result["output"]
            data["blob_exit_val"][name] = result["exit_val"]
            data["blob_exit_signal"][name] = result["signal"]
            data["blob_has_coredump"][name] = result["coredump"]
            if "warn" in result:
                self.logger.warning(result["warn"])
                data["warns"].append(result["warn"])
        return data


def main():
    from ..cli import run_extend
    raise SystemExit(run_extend(TextBlobExtend))
