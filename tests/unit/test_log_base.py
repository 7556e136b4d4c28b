"""Unit tests for log reading helpers"""
import pytest

from extends.errors import SourceError
from extends.logs.base import LogExtend, read_backwards


class TestReadBackwards:
    """Test reading a file from the end"""

    @pytest.mark.parametrize("block_size", [1, 3, 7, 65536])
    def test_lines_in_reverse(self, write_file, block_size):
        path = write_file("log", "first\nsecond line\nthird\n")
        assert list(read_backwards(path, block_size=block_size)) == ["third", "second line", "first"]

    def test_no_trailing_newline(self, write_file):
        path = write_file("log", "a\nb")
        assert list(read_backwards(path, block_size=2)) == ["b", "a"]

    def test_empty_lines_kept(self, write_file):
        path = write_file("log", "a\n\nb\n")
        assert list(read_backwards(path)) == ["b", "", "a"]

    def test_empty_file(self, write_file):
        path = write_file("log", "")
        assert list(read_backwards(path)) == []

    def test_crlf_and_bad_bytes(self, tmp_path):
        path = tmp_path / "log"
        path.write_bytes(b"ok\r\nbad \xff byte\r\n")
        assert list(read_backwards(path)) == ["bad � byte", "ok"]

    def test_stops_early(self, write_file):
        path = write_file("log", "".join(f"line {i}\n" for i in range(1000)))
        lines = read_backwards(path, block_size=16)
        assert next(lines) == "line 999"
        assert next(lines) == "line 998"


class SampleLogExtend(LogExtend):
    name = "sample_log"

    def collect(self):
        return {}


class TestLogExtend:
    """Test the window and log checks shared by log extends"""

    def test_cutoff_uses_window(self):
        extend = SampleLogExtend()
        assert extend.window == 300
        assert extend.cutoff(now=1000.0) == 700.0

    def test_missing_log(self, tmp_path):
        with pytest.raises(SourceError):
            SampleLogExtend().check_log(tmp_path / "missing.log")

    def test_directory_is_not_a_log(self, tmp_path):
        with pytest.raises(SourceError):
            SampleLogExtend().check_log(tmp_path)
