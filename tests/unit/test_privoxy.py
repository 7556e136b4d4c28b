"""Unit tests for the Privoxy extend

Tests log summarizing including:
- Debug line counters (requests, crunches, connections)
- Common log format request lines
- Window cutoff while reading backwards
- Unique and blocked domain percentages
"""
import time

import pytest

from extends.collectors.base import Extend
from extends.logs.privoxy import (
    PrivoxyConfig,
    PrivoxyExtend,
    PrivoxyLogParser,
    domain_of,
    empty_stats,
    strip_port,
)


def debug_line(ts, tag, msg):
    stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(ts))
    return f"{stamp}.123 7f6d4f7fe700 {tag}: {msg}"


def clf_line(stamp, method="GET", url="http://example.com/", proto="HTTP/1.1", status=200, size=1234):
    return f'127.0.0.1 - - [{stamp}] "{method} {url} {proto}" {status} {size}'


class TestHelpers:
    """Test domain helpers"""

    @pytest.mark.parametrize("target,expected", [
        ("www.example.com:443", "www.example.com:443"),
        ("http://Example.org/path?q=1", "example.org"),
        ("ads.example.com:443/", "ads.example.com:443"),
    ])
    def test_domain_of(self, target, expected):
        assert domain_of(target) == expected

    @pytest.mark.parametrize("domain,expected", [
        ("example.com:443", "example.com"),
        ("example.com", "example.com"),
        ("[::1]:8080", "[::1]"),
    ])
    def test_strip_port(self, domain, expected):
        assert strip_port(domain) == expected

    def test_empty_stats_has_status_buckets(self):
        stats = empty_stats()
        for key in ("resp_200", "resp_404", "resp_4xx_other", "resp_503", "req_get", "ver_1_1", "ver_2"):
            assert stats[key] == 0


class TestParser:
    """Test PrivoxyLogParser on individual lines"""

    def test_request_and_block(self, now):
        parser = PrivoxyLogParser()
        parser.add(debug_line(now, "Request", "www.example.com:443/"))
        parser.add(debug_line(now, "Request", "www.example.com:80/"))
        parser.add(debug_line(now, "Request", "ads.example.com:443/"))
        parser.add(debug_line(now, "Crunch", "Blocked: ads.example.com:443"))
        parser.add(debug_line(now, "Crunch", "Redirected: http://tracker.example/"))
        stats = parser.finish()

        assert stats["client_requests"] == 3
        assert stats["crunches"] == 2
        assert stats["blocks"] == 1
        assert stats["fast_redirs"] == 1
        assert stats["block_percent"] == 33.33
        assert stats["unique_domains"] == 3
        assert stats["unique_domains_np"] == 2
        assert stats["unique_bdomains"] == 1
        assert stats["ubd_per"] == 33.33
        assert stats["ubd_np_per"] == 50.0

    def test_connect_lines(self, now):
        parser = PrivoxyLogParser()
        parser.add(debug_line(now, "Connect", "Accepted connection from 10.0.0.2 on socket 12"))
        parser.add(debug_line(now, "Connect", "Reusing server socket 13 connected to example.com:443. Total requests: 7."))
        parser.add(debug_line(now, "Connect", "Reusing server socket 13 connected to example.com:443. Total requests: 4."))
        stats = parser.finish()

        assert stats["client_cons"] == 1
        assert stats["reused_server_cons"] == 2
        assert stats["max_reqs"] == 7

    def test_clf_request(self, clf_time, now):
        parser = PrivoxyLogParser()
        stamp = clf_time(now)
        parser.add(clf_line(stamp))
        parser.add(clf_line(stamp, method="CONNECT", url="example.com:443", status=404, size="-"))
        parser.add(clf_line(stamp, status=418, proto="HTTP/2"))
        parser.add(clf_line(stamp, status=101, size=0))
        stats = parser.finish()

        assert stats["req_get"] == 3
        assert stats["req_connect"] == 1
        assert stats["ver_1_1"] == 3
        assert stats["ver_2"] == 1
        assert stats["resp_200"] == 1
        assert stats["resp_2xx"] == 1
        assert stats["resp_404"] == 1
        assert stats["resp_4xx"] == 2
        assert stats["resp_4xx_other"] == 1
        assert stats["resp_1xx"] == 1
        assert stats["bytes_to_client"] == 1234 * 2

    def test_line_time(self, clf_time, now):
        assert PrivoxyLogParser.line_time(debug_line(now, "Request", "x")) == now
        assert PrivoxyLogParser.line_time(clf_line(clf_time(now))) == now
        assert PrivoxyLogParser.line_time("garbage") is None

    def test_percent_without_requests(self):
        stats = PrivoxyLogParser().finish()
        assert stats["block_percent"] == 0
        assert stats["ubd_per"] == 0


class TestPrivoxyExtend:
    """Test reading a logfile"""

    def test_window(self, write_file, now):
        lines = [
            debug_line(now - 900, "Request", "old.example.com:443/"),
            debug_line(now - 60, "Request", "new.example.com:443/"),
            "    continuation line without a timestamp",
            debug_line(now - 10, "Crunch", "Blocked: ads.example.com:443"),
            debug_line(now - 5, "Request", "ads.example.com:443/"),
        ]
        path = write_file("logfile", "\n".join(lines) + "\n")
        extend = PrivoxyExtend(PrivoxyConfig(logfile=str(path)))

        stats = extend.collect(now=now)

        assert stats["client_requests"] == 2
        assert stats["blocks"] == 1
        assert stats["unique_domains"] == 2

    def test_custom_window(self, write_file, now):
        path = write_file("logfile", debug_line(now - 900, "Request", "old.example.com:443/") + "\n")
        extend = PrivoxyExtend(PrivoxyConfig(logfile=str(path), window=3600))

        assert extend.collect(now=now)["client_requests"] == 1

    def test_missing_logfile_is_error_2(self, tmp_path):
        extend = PrivoxyExtend(PrivoxyConfig(logfile=str(tmp_path / "missing")))
        envelope = extend.run()

        assert envelope.error == 2
        assert "not found" in envelope.errorString

    def test_is_log_extend(self):
        assert issubclass(PrivoxyExtend, Extend)
        assert not PrivoxyExtend(PrivoxyConfig(logfile="/nonexistent/privoxy")).is_available()
