"""Unit tests for the text blob extend

Runs real shell commands to check:
- Output capture (stdout then stderr)
- Exit values, signals and core dump detection
- Global and per blob environment variables
- Timeouts
"""
import signal

import pytest

from extends.collectors.text_blob import TextBlobConfig, TextBlobExtend, exit_details
from extends.errors import ConfigError


class TestExitDetails:
    """Test returncode interpretation"""

    @pytest.mark.parametrize("returncode,expected", [
        (0, {"exit_val": 0, "signal": 0, "coredump": 0}),
        (3, {"exit_val": 3, "signal": 0, "coredump": 0}),
        (-int(signal.SIGSEGV), {"exit_val": -int(signal.SIGSEGV), "signal": int(signal.SIGSEGV), "coredump": 1}),
        (128 + int(signal.SIGTERM), {"exit_val": 128 + int(signal.SIGTERM), "signal": int(signal.SIGTERM), "coredump": 0}),
        (128 + int(signal.SIGABRT), {"exit_val": 128 + int(signal.SIGABRT), "signal": int(signal.SIGABRT), "coredump": 1}),
    ])
    def test_exit_details(self, returncode, expected):
        assert exit_details(returncode) == expected


class TestTextBlobExtend:
    """Test running blobs"""

    def test_collect(self):
        config = TextBlobConfig(
            blobs={
                "hello": "echo hello",
                "both": "echo out; echo err >&2",
                "fails": "echo partial; exit 3",
            },
        )

        data = TextBlobExtend(config).collect()

        assert data["blobs"] == {"both": "out\nerr\n", "fails": "partial\n", "hello": "hello\n"}
        assert data["blob_exit_val"] == {"both": 0, "fails": 3, "hello": 0}
        assert data["blob_exit_signal"]["fails"] == 0
        assert data["warns"] == ["fails: exited 3"]

    def test_signal(self):
        config = TextBlobConfig(blobs={"crash": "kill -SEGV $$"})

        data = TextBlobExtend(config).collect()

        assert data["blob_exit_signal"]["crash"] == int(signal.SIGSEGV)
        assert data["blob_has_coredump"]["crash"] == 1
        assert data["warns"] == [f"crash: killed by signal {int(signal.SIGSEGV)}"]

    def test_environment(self):
        config = TextBlobConfig(
            blobs={"a": "echo $GREETING $TARGET", "b": "echo $GREETING $TARGET"},
            global_envs={"GREETING": "hello", "TARGET": "world"},
            blob_envs={"b": {"TARGET": "there"}},
        )

        data = TextBlobExtend(config).collect()

        assert data["blobs"]["a"] == "hello world\n"
        assert data["blobs"]["b"] == "hello there\n"

    def test_timeout(self):
        config = TextBlobConfig(blobs={"slow": "sleep 5"}, timeout=1)

        data = TextBlobExtend(config).collect()

        assert data["blob_exit_val"]["slow"] == -1
        assert "timed out" in data["warns"][0]

    def test_no_blobs_is_error_1(self):
        with pytest.raises(ConfigError):
            TextBlobExtend(TextBlobConfig()).collect()
        assert TextBlobExtend(TextBlobConfig()).run().error == 1

    def test_cache_prefix_in_output_dir(self, tmp_path):
        extend = TextBlobExtend(TextBlobConfig(output_dir=str(tmp_path)))
        assert extend.cache_prefix() == tmp_path / "extend"
