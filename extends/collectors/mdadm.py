"""Linux software RAID (mdadm) extend.

/proc/mdstat gives the array list, personality and member devices; the
per-array sysfs directory gives state, sync progress and size.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import ExtendConfig
from ..utils import read_text, to_number
from .base import Extend

ARRAY_LINE = re.compile(r"^(?P<name>md\S*)\s*:\s*(?P<rest>.*)$")
MEMBER = re.compile(r"^(?P<dev>[^\[\s]+)\[(?P<slot>\d+)\](?P<flags>(?:\([A-Z]\))*)$")
DISK_STATUS = re.compile(r"\[(?P<total>\d+)/(?P<active>\d+)\]\s+\[(?P<map>[U_]+)\]")
PERSONALITY = re.compile(r"^(raid\d+|linear|multipath|faulty)$")


class MdadmConfig(ExtendConfig):
    mdstat: str = "/proc/mdstat"
    sysfs: str = "/sys/block"


def parse_mdstat(text: str) -> List[Dict[str, Any]]:
    """
    Parse /proc/mdstat into one dict per array:
        name, active, level, devices [(dev, slot, flags)], raid_disks, missing
    """
    arrays: List[Dict[str, Any]] = []
    current: Optional[Dict[str, Any]] = None

    for line in text.splitlines():
        match = ARRAY_LINE.match(line)
        if match:
            tokens = match.group("rest").split()
            current = {
                "name": match.group("name"),
                "active": bool(tokens) and tokens[0] == "active",
                "level": "",
                "devices": [],
                "raid_disks": 0,
                "missing": 0,
            }
            for token in tokens[1:]:
                if token.startswith("("):
                    # (read-only), (auto-read-only)
                    continue
                if not current["level"] and not current["devices"] and PERSONALITY.match(token):
                    current["level"] = token
                    continue
                member = MEMBER.match(token)
                if member:
                    current["devices"].append({
                        "dev": member.group("dev"),
                        "slot": int(member.group("slot")),
                        "flags": re.findall(r"\(([A-Z])\)", member.group("flags")),
                    })
            arrays.append(current)
            continue

        if current is None:
            continue
        status = DISK_STATUS.search(line)
        if status:
            current["raid_disks"] = int(status.group("total"))
            current["missing"] = status.group("map").count("_")
        elif not line.strip():
            current = None

    return arrays


def sync_percent(sync_completed: Optional[str]) -> float:
    """'123/456' sectors -> percent; 'none'/'done' -> 100"""
    if not sync_completed or "/" not in sync_completed:
        return 100
    done, total = (to_number(part.strip().split()[0]) for part in sync_completed.split("/", 1))
    return round(done / total * 100, 2) if total else 100


class MdadmExtend(Extend):
    """
    mdadm extend
    Emits data.arrays, one entry per md device:
      - name, level, size (bytes), disc_count, hotspare_count
      - device_list, missing_device_list (faulty members), missing_count
      - state, action, degraded, sync_speed (K/sec), sync_completed (percent)
    """

    name = "mdadm"
    description = "mdadm RAID stats"
    config_model = MdadmConfig

    def is_available(self) -> bool:
        return Path(self.config.mdstat).exists()

    def _array_stats(self, array: Dict[str, Any]) -> Dict[str, Any]:
        md_dir = Path(self.config.sysfs) / array["name"]

        def sysfs(name: str) -> Optional[str]:
            return read_text(md_dir / "md" / name)

        devices = array["devices"]
        active = [d["dev"] for d in devices if not {"S", "F"} & set(d["flags"])]
        spares = [d["dev"] for d in devices if "S" in d["flags"]]
        faulty = [d["dev"] for d in devices if "F" in d["flags"]]

        sync_speed = sysfs("sync_speed")
        return {
            "name": array["name"],
            "level": array["level"] or sysfs("level") or "",
            "size": to_number(read_text(md_dir / "size")) * 512,
            "disc_count": to_number(sysfs("raid_disks"), array["raid_disks"]) or len(devices),
            "hotspare_count": len(spares),
            "device_list": sorted(active),
            "missing_device_list": sorted(faulty),
            "missing_count": array["missing"],
            "state": sysfs("array_state") or ("active" if array["active"] else "inactive"),
            "action": sysfs("sync_action") or "idle",
            "degraded": to_number(sysfs("degraded")),
            "sync_speed": to_number(sync_speed) if sync_speed != "none" else 0,
            "sync_completed": sync_percent(sysfs("sync_completed")),
        }

    def collect(self) -> Dict[str, Any]:
        mdstat = read_text(self.config.mdstat)
        if mdstat is None:
            # no md driver loaded means no arrays, not an error
            self.logger.debug(f"{self.config.mdstat} not readable, reporting no arrays")
            return {"arrays": []}

        arrays = [self._array_stats(array) for array in parse_mdstat(mdstat)]
        return {"arrays": arrays}


def main():
    from ..cli import run_extend
    raise SystemExit(run_extend(MdadmExtend))
