"""Linux softnet_stat extend.

/proc/net/softnet_stat has one row of hex columns per CPU:

    0 processed   1 dropped   2 time_squeeze   3-7 unused
    8 cpu_collision   9 received_rps   10 flow_limit_count
    11 backlog_len (5.10+)   12 cpu index (5.10+)
"""

from pathlib import Path
from typing import Any, Dict, List

from ..config import ExtendConfig
from ..errors import ParseError, SourceError
from ..utils import read_text, to_number
from .base import Extend

# output key -> column
COLUMNS = {
    "packets": 0,
    "packet_drops": 1,
    "time_squeeze": 2,
    "cpu_collision": 8,
    "received_rps": 9,
    "flow_limit": 10,
    "backlog_length": 11,
}


class SoftnetConfig(ExtendConfig):
    softnet_stat: str = "/proc/net/softnet_stat"
    sysctl_dir: str = "/proc/sys/net/core"


def parse_softnet_stat(text: str) -> List[Dict[str, int]]:
    cpus = []
    for index, line in enumerate(text.splitlines()):
        fields = line.split()
        if not fields:
            continue
        try:
            values = [int(value, 16) for value in fields]
        except ValueError as e:
            raise ParseError(f"Bad softnet_stat line {line!r}: {e}") from e

        cpu = {key: values[column] if column < len(values) else 0 for key, column in COLUMNS.items()}
        cpu["cpu"] = values[12] if len(values) > 12 else index
        cpus.append(cpu)
    return cpus


class SoftnetExtend(Extend):
    """
    Linux softnet extend
    Emits:
      - packets, packet_drops, time_squeeze, cpu_collision, received_rps, flow_limit, backlog_length (all CPUs)
      - budget, budget_usecs (net.core.netdev_budget*)
      - cpus: per CPU values
    """

    name = "linux_softnet_stat"
    description = "Linux softnet stats"
    config_model = SoftnetConfig

    def is_available(self) -> bool:
        return Path(self.config.softnet_stat).exists()

    def collect(self) -> Dict[str, Any]:
        text = read_text(self.config.softnet_stat)
        if text is None:
            raise SourceError(f"Unable to read {self.config.softnet_stat}")

        cpus = parse_softnet_stat(text)
        data: Dict[str, Any] = {key: sum(cpu[key] for cpu in cpus) for key in COLUMNS}

        sysctl_dir = Path(self.config.sysctl_dir)
        data["budget"] = to_number(read_text(sysctl_dir / "netdev_budget"))
        data["budget_usecs"] = to_number(read_text(sysctl_dir / "netdev_budget_usecs"))
        data["cpus"] = cpus
        return data


def main():
    from ..cli import run_extend
    raise SystemExit(run_extend(SoftnetExtend))
