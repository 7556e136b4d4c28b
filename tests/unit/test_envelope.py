"""Unit tests for the Envelope

Tests envelope rendering including:
- Compact and pretty JSON
- gzip+base64 compression and its raw fallback
- Cache file writing
- Serialization of driver types (Decimal, datetime)
"""
import base64
import datetime
import decimal
import gzip
import json

import pytest

from extends.envelope import Envelope, compress_output


class TestRender:
    """Test stdout rendering"""

    def test_compact_json_ends_with_newline(self):
        envelope = Envelope(data={"a": 1}, version=2)
        text = envelope.render()

        assert text.endswith("\n")
        assert text.count("\n") == 1
        assert json.loads(text) == {"data": {"a": 1}, "version": 2, "error": 0, "errorString": ""}

    def test_pretty_is_sorted_and_indented(self):
        text = Envelope(data={"b": 1, "a": 2}).render(pretty=True)

        assert "\n    " in text
        assert text.index('"a"') < text.index('"b"')

    def test_pretty_ignored_when_compressing(self):
        envelope = Envelope(data={"key": "value " * 200})
        assert envelope.render(pretty=True, compress=True) == envelope.render(compress=True)

    def test_default_data_is_empty_dict(self):
        first, second = Envelope(), Envelope()
        first.data["x"] = 1

        assert second.data == {}
        assert Envelope().to_dict()["data"] == {}

    def test_error_envelope(self):
        envelope = Envelope(version=1, error=2, errorString="boom")
        assert not envelope.ok
        assert json.loads(envelope.render())["errorString"] == "boom"


class TestCompression:
    """Test gzip+base64 output"""

    def test_compressed_round_trips(self):
        raw = json.dumps({"data": {"blob": "x" * 5000}})
        out = compress_output(raw)

        assert out.endswith("\n")
        assert "\n" not in out[:-1]
        assert gzip.decompress(base64.b64decode(out)).decode() == raw

    def test_falls_back_to_raw_when_longer(self):
        raw = '{"a":1}'
        assert compress_output(raw) == raw + "\n"


class TestSerialization:
    """Test values handed back by database drivers"""

    def test_decimal_and_datetime(self):
        envelope = Envelope(data={
            "int_decimal": decimal.Decimal("12"),
            "float_decimal": decimal.Decimal("1.5"),
            "when": datetime.datetime(2024, 1, 2, 3, 4, 5),
            "interval": datetime.timedelta(seconds=90),
        })
        data = json.loads(envelope.to_json())["data"]

        assert data["int_decimal"] == 12
        assert data["float_decimal"] == 1.5
        assert data["when"] == "2024-01-02T03:04:05"
        assert data["interval"] == 90.0

    def test_unknown_type_raises(self):
        with pytest.raises(TypeError):
            Envelope(data={"x": object()}).to_json()


class TestCache:
    """Test <prefix>.json / <prefix>.snmp cache files"""

    def test_write_cache_creates_both_files(self, tmp_path):
        envelope = Envelope(data={"blob": "y" * 2000})
        prefix = tmp_path / "cache" / "extend"

        envelope.write_cache(prefix)

        raw = (tmp_path / "cache" / "extend.json").read_text()
        snmp = (tmp_path / "cache" / "extend.snmp").read_text()
        assert json.loads(raw)["data"]["blob"] == "y" * 2000
        assert snmp == compress_output(envelope.to_json())
        # no temp files left behind
        assert sorted(p.name for p in (tmp_path / "cache").iterdir()) == ["extend.json", "extend.snmp"]

    def test_write_cache_replaces_existing(self, tmp_path):
        prefix = tmp_path / "extend"
        Envelope(data={"run": 1}).write_cache(prefix)
        Envelope(data={"run": 2}).write_cache(prefix)

        assert json.loads((tmp_path / "extend.json").read_text())["data"]["run"] == 2
