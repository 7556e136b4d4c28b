"""Unit tests for shared helpers: commands, file reads, numbers, HTTP"""
import io
from unittest.mock import MagicMock, patch
from urllib.error import HTTPError, URLError

import pytest

from extends.errors import ParseError, SourceError
from extends.http import JsonHttpClient
from extends.utils import percent, read_text, run_command, to_number


class TestRunCommand:
    """Test run_command"""

    def test_output(self):
        result = run_command(["echo", "hello"])
        assert result.stdout == "hello\n"

    def test_missing_command(self):
        with pytest.raises(SourceError, match="not found"):
            run_command(["definitely-not-a-command-xyz"])

    def test_nonzero_exit(self):
        with pytest.raises(SourceError, match="exited 1"):
            run_command(["sh", "-c", "echo bad >&2; exit 1"])

    def test_nonzero_exit_unchecked(self):
        assert run_command(["sh", "-c", "exit 4"], check=False).returncode == 4

    def test_timeout(self):
        with pytest.raises(SourceError, match="timed out"):
            run_command(["sleep", "5"], timeout=1)


class TestHelpers:
    """Test read_text, to_number and percent"""

    def test_read_text(self, write_file, tmp_path):
        assert read_text(write_file("value", " 42\n")) == "42"
        assert read_text(tmp_path / "missing") is None
        assert read_text(tmp_path / "missing", default="0") == "0"

    @pytest.mark.parametrize("value,expected", [
        ("12", 12),
        ("1.5", 1.5),
        (7.5, 7.5),
        (3, 3),
        (True, 1),
        ("-", 0),
        (None, 0),
        ("", 0),
        ("n/a", 0),
    ])
    def test_to_number(self, value, expected):
        assert to_number(value) == expected

    def test_to_number_default(self):
        assert to_number(None, default=5) == 5

    def test_percent(self):
        assert percent(1, 3) == 33.33
        assert percent(1, 0) == 0


def fake_response(body):
    response = MagicMock()
    response.read.return_value = body
    response.__enter__.return_value = response
    return response


class TestJsonHttpClient:
    """Test JsonHttpClient with a mocked urlopen"""

    @patch("extends.http.urlopen")
    def test_get_json(self, mock_urlopen):
        mock_urlopen.return_value = fake_response(b'{"ok": true}')
        client = JsonHttpClient("http://localhost:9200/")

        assert client.get_json("/_cluster/health") == {"ok": True}
        request = mock_urlopen.call_args.args[0]
        assert request.full_url == "http://localhost:9200/_cluster/health"
        assert mock_urlopen.call_args.kwargs["context"] is None

    @patch("extends.http.urlopen")
    def test_bad_json(self, mock_urlopen):
        mock_urlopen.return_value = fake_response(b"<html>")
        with pytest.raises(ParseError):
            JsonHttpClient("http://localhost").get_json("/")

    @patch("extends.http.urlopen")
    def test_http_error(self, mock_urlopen):
        mock_urlopen.side_effect = HTTPError("http://localhost/", 401, "Unauthorized", {}, io.BytesIO(b""))
        with pytest.raises(SourceError, match="HTTP 401"):
            JsonHttpClient("http://localhost").get_json("/")

    @patch("extends.http.urlopen")
    def test_connection_error_hides_auth(self, mock_urlopen):
        mock_urlopen.side_effect = URLError("connection refused")
        with pytest.raises(SourceError) as exc:
            JsonHttpClient("http://localhost/admin/api.php").get_json("?summaryRaw&auth=SECRET")

        assert "SECRET" not in str(exc.value)
        assert "connection refused" in str(exc.value)

    def test_query(self):
        assert JsonHttpClient.query({"summaryRaw": None, "auth": "k"}) == "?summaryRaw&auth=k"

    def test_query_encodes_values(self):
        query = JsonHttpClient.query({"getQueryTypes": None, "auth": "a&b#c+d e/f"})
        assert query == "?getQueryTypes&auth=a%26b%23c%2Bd%20e%2Ff"

    def test_https_context(self):
        assert JsonHttpClient("https://localhost", insecure=True)._ssl_context.check_hostname is False
        assert JsonHttpClient("https://localhost")._ssl_context.check_hostname is True
