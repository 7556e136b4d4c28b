"""Unit tests for the Linux softnet_stat extend"""
import pytest

from extends.collectors.softnet import SoftnetConfig, SoftnetExtend, parse_softnet_stat
from extends.errors import ParseError

# kernel 5.10+: 13 columns, last one the cpu index
MOCK_SOFTNET = (
    "0000ff00 00000001 00000002 00000000 00000000 00000000 00000000 00000000 00000003 00000004 00000005 00000006 00000000\n"
    "00000100 00000000 00000010 00000000 00000000 00000000 00000000 00000000 00000000 00000001 00000000 00000000 00000002\n"
)

# older kernels: 11 columns
MOCK_SOFTNET_OLD = "0000000a 00000000 00000001 00000000 00000000 00000000 00000000 00000000 00000000 00000000 00000000\n"


class TestParseSoftnetStat:
    """Test softnet_stat parsing"""

    def test_new_format(self):
        cpu0, cpu2 = parse_softnet_stat(MOCK_SOFTNET)

        assert cpu0 == {
            "packets": 0xff00,
            "packet_drops": 1,
            "time_squeeze": 2,
            "cpu_collision": 3,
            "received_rps": 4,
            "flow_limit": 5,
            "backlog_length": 6,
            "cpu": 0,
        }
        assert cpu2["cpu"] == 2
        assert cpu2["packets"] == 256

    def test_old_format(self):
        cpu, = parse_softnet_stat(MOCK_SOFTNET_OLD)
        assert cpu["packets"] == 10
        assert cpu["backlog_length"] == 0
        assert cpu["cpu"] == 0

    def test_bad_line(self):
        with pytest.raises(ParseError):
            parse_softnet_stat("zzzz 0000\n")


class TestSoftnetExtend:
    """Test SoftnetExtend.collect"""

    def test_collect(self, write_file, tmp_path):
        stat = write_file("softnet_stat", MOCK_SOFTNET)
        write_file("core/netdev_budget", "300\n")
        write_file("core/netdev_budget_usecs", "2000\n")

        data = SoftnetExtend(SoftnetConfig(softnet_stat=str(stat), sysctl_dir=str(tmp_path / "core"))).collect()

        assert data["packets"] == 0xff00 + 0x100
        assert data["time_squeeze"] == 0x12
        assert data["received_rps"] == 5
        assert data["budget"] == 300
        assert data["budget_usecs"] == 2000
        assert len(data["cpus"]) == 2

    def test_missing_sysctls_are_zero(self, write_file, tmp_path):
        stat = write_file("softnet_stat", MOCK_SOFTNET_OLD)
        data = SoftnetExtend(SoftnetConfig(softnet_stat=str(stat), sysctl_dir=str(tmp_path / "nope"))).collect()
        assert data["budget"] == 0

    def test_missing_softnet_stat_is_error_2(self, tmp_path):
        extend = SoftnetExtend(SoftnetConfig(softnet_stat=str(tmp_path / "softnet_stat")))
        assert not extend.is_available()
        assert extend.run().error == 2
