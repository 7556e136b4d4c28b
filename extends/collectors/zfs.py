"""ZFS ARC and pool stats extend.

ARC counters come from /proc/spl/kstat/zfs/arcstats on Linux and from
`sysctl kstat.zfs.misc.arcstats` on FreeBSD. Pools come from `zpool list`.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List

from ..config import ExtendConfig
from ..errors import ParseError, SourceError
from ..utils import is_command_available, percent, run_command, to_number
from .base import Extend

LINUX_ARCSTATS = "/proc/spl/kstat/zfs/arcstats"

POOL_FIELDS = ("name", "size", "alloc", "free", "ckpoint", "expandsz", "frag", "cap", "dedup", "health", "altroot")

HEALTH_CODES = {
    "ONLINE": 0,
    "DEGRADED": 1,
    "OFFLINE": 2,
    "UNAVAIL": 3,
    "FAULTED": 4,
    "REMOVED": 5,
}

# output key -> arcstats key
ARC_COUNTERS = {
    "arc_hits": "hits",
    "arc_misses": "misses",
    "demand_data_hits": "demand_data_hits",
    "demand_data_misses": "demand_data_misses",
    "demand_meta_hits": "demand_metadata_hits",
    "demand_meta_misses": "demand_metadata_misses",
    "pre_data_hits": "prefetch_data_hits",
    "pre_data_misses": "prefetch_data_misses",
    "pre_meta_hits": "prefetch_metadata_hits",
    "pre_meta_misses": "prefetch_metadata_misses",
    "mfu_hits": "mfu_hits",
    "mru_hits": "mru_hits",
    "mfu_ghost_hits": "mfu_ghost_hits",
    "mru_ghost_hits": "mru_ghost_hits",
    "deleted": "deleted",
    "evict_skip": "evict_skip",
    "mutex_skip": "mutex_miss",
    "recycle_miss": "recycle_miss",
    "l2_hits": "l2_hits",
    "l2_misses": "l2_misses",
    "l2_size": "l2_size",
    "l2_asize": "l2_asize",
    "l2_hdr_size": "l2_hdr_size",
}


class ZfsConfig(ExtendConfig):
    arcstats: str = LINUX_ARCSTATS
    zpool: str = "zpool"


def parse_arcstats(text: str) -> Dict[str, int]:
    """
    Parse the kstat table:

        13 1 0x01 123 33456 5678 91011
        name                            type data
        hits                            4    1234
    """
    stats = {}
    for line in text.splitlines():
        fields = line.split()
        if len(fields) != 3 or fields[0] == "name":
            continue
        try:
            stats[fields[0]] = int(fields[2])
        except ValueError:
            continue
    return stats


def parse_sysctl_arcstats(text: str) -> Dict[str, int]:
    """'kstat.zfs.misc.arcstats.hits: 1234' lines"""
    stats = {}
    for line in text.splitlines():
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        try:
            stats[key.strip().rsplit(".", 1)[-1]] = int(value.strip())
        except ValueError:
            continue
    return stats


def parse_zpool_list(text: str) -> List[Dict[str, Any]]:
    """Parse `zpool list -pH -o <POOL_FIELDS>` (tab separated, raw numbers)"""
    pools = []
    for line in text.splitlines():
        if not line.strip():
            continue
        values = line.split("\t")
        if len(values) != len(POOL_FIELDS):
            raise ParseError(f"Unexpected zpool list line: {line!r}")
        pool: Dict[str, Any] = dict(zip(POOL_FIELDS, values))
        for key in ("size", "alloc", "free", "ckpoint", "expandsz", "frag", "cap", "dedup"):
            pool[key] = to_number(pool[key].rstrip("%x"))
        pool["health"] = HEALTH_CODES.get(pool["health"].upper(), 6)
        pools.append(pool)
    return pools


def arc_summary(arc: Dict[str, int]) -> Dict[str, Any]:
    """Derive sizes, ratios and hit percentages from raw arcstats"""
    data: Dict[str, Any] = {key: arc.get(source, 0) for key, source in ARC_COUNTERS.items()}

    arc_size = arc.get("size", 0)
    target_size = arc.get("c", 0)
    max_size = arc.get("c_max", 0)
    min_size = arc.get("c_min", 0)
    # OpenZFS 2.2 dropped "p" in favour of explicit mru/mfu sizes
    p = arc.get("p", arc.get("mru_size", 0))

    if "mfu_size" in arc:
        mfu_size = arc["mfu_size"]
    elif arc_size >= target_size:
        mfu_size = arc_size - p
    else:
        mfu_size = target_size - p
    used = arc_size if arc_size >= target_size else target_size

    data.update({
        "arc_size": arc_size,
        "target_size": target_size,
        "target_size_max": max_size,
        "target_size_min": min_size,
        "p": p,
        "mfu_size": mfu_size,
        "mru_size": arc.get("mru_size", p),
        "target_size_per": percent(target_size, max_size),
        "arc_size_per": percent(arc_size, max_size),
        "target_size_arat": round(max_size / min_size, 2) if min_size else 0,
        "min_size_per": percent(min_size, max_size),
        "rec_used_per": percent(p, used),
        "freq_used_per": percent(mfu_size, used),
    })

    hits, misses = data["arc_hits"], data["arc_misses"]
    accesses = hits + misses
    data["anon_hits"] = max(hits - (data["mfu_hits"] + data["mru_hits"] + data["mfu_ghost_hits"] + data["mru_ghost_hits"]), 0)
    data["arc_accesses_total"] = accesses
    data["arc_hits_per"] = percent(hits, accesses)
    data["arc_miss_per"] = percent(misses, accesses)

    for key in ("anon_hits", "mru_hits", "mfu_hits", "mru_ghost_hits", "mfu_ghost_hits",
                "demand_data_hits", "demand_meta_hits", "pre_data_hits", "pre_meta_hits"):
        data[f"{key}_per"] = percent(data[key], hits)
    for key in ("demand_data_misses", "demand_meta_misses", "pre_data_misses", "pre_meta_misses"):
        data[f"{key}_per"] = percent(data[key], misses)

    l2_accesses = data["l2_hits"] + data["l2_misses"]
    data["l2_errors"] = arc.get("l2_io_error", 0) + arc.get("l2_cksum_bad", 0)
    data["l2_access_total"] = l2_accesses
    data["l2_hits_per"] = percent(data["l2_hits"], l2_accesses)
    data["l2_miss_per"] = percent(data["l2_misses"], l2_accesses)
    return data


class ZfsExtend(Extend):
    """
    ZFS extend
    Emits:
      - ARC sizes, ratios and hit/miss counters and percentages
      - L2ARC counters
      - pools: zpool list rows, health as a number
      - status_errors: pools not ONLINE
    """

    name = "zfs"
    description = "ZFS stats"
    config_model = ZfsConfig

    def is_available(self) -> bool:
        if sys.platform.startswith("freebsd"):
            return is_command_available("sysctl")
        return Path(self.config.arcstats).exists()

    def read_arcstats(self) -> Dict[str, int]:
        if sys.platform.startswith("freebsd"):
            result = run_command(["sysctl", "-q", "kstat.zfs.misc.arcstats"])
            stats = parse_sysctl_arcstats(result.stdout)
        else:
            path = Path(self.config.arcstats)
            try:
                stats = parse_arcstats(path.read_text())
            except OSError as e:
                raise SourceError(f"Unable to read {path}: {e}") from e
        if not stats:
            raise ParseError("No ARC stats found")
        return stats

    def read_pools(self) -> List[Dict[str, Any]]:
        result = run_command([self.config.zpool, "list", "-pH", "-o", ",".join(POOL_FIELDS)])
        return parse_zpool_list(result.stdout)

    def collect(self) -> Dict[str, Any]:
        data = arc_summary(self.read_arcstats())
        pools = self.read_pools()
        data["pools"] = pools
        data["status_errors"] = sum(1 for pool in pools if pool["health"] != 0)
        return data


def main():
    from ..cli import run_extend
    raise SystemExit(run_extend(ZfsExtend))
