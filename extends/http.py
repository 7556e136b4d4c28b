"""
HTTP helpers for API polling extends.

Thin wrapper over urllib with JSON decoding, optional basic auth and an
optional permissive SSL context for self signed endpoints.
"""

import base64
import json
import ssl
from typing import Any, Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from .errors import ParseError, SourceError


class JsonHttpClient:
    """GETs JSON documents from a base URL"""

    def __init__(self, base_url: str, timeout: int = 10, insecure: bool = False,
                 username: Optional[str] = None, password: Optional[str] = None):
        """
        Args:
            base_url: scheme://host[:port] prefix for all requests
            timeout: request timeout in seconds
            insecure: skip certificate and hostname verification for HTTPS
            username, password: HTTP basic auth credentials
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"Accept": "application/json"}
        if username is not None:
            token = base64.b64encode(f"{username}:{password or ''}".encode("utf-8")).decode("ascii")
            self.headers["Authorization"] = f"Basic {token}"
        self._ssl_context = self._create_ssl_context(insecure) if self.base_url.startswith("https://") else None

    @staticmethod
    def _create_ssl_context(insecure: bool) -> ssl.SSLContext:
        ssl_context = ssl.create_default_context()
        if insecure:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
        return ssl_context

    def get_json(self, endpoint: str) -> Any:
        """
        GET base_url + endpoint and decode the body as JSON.

        Raises:
            SourceError: on HTTP and connection errors
            ParseError: when the body is not JSON
        """
        url = f"{self.base_url}{endpoint}"
        req = Request(url, headers=self.headers, method="GET")
        try:
            with urlopen(req, timeout=self.timeout, context=self._ssl_context) as response:
                body = response.read()
        except HTTPError as e:
            raise SourceError(f"HTTP {e.code} from {self._redact(url)}: {e.reason}") from e
        except URLError as e:
            raise SourceError(f"Failed to reach {self._redact(url)}: {e.reason}") from e
        except OSError as e:
            raise SourceError(f"Failed to read {self._redact(url)}: {e}") from e

        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ParseError(f"Bad JSON from {self._redact(url)}: {e}") from e

    @staticmethod
    def _redact(url: str) -> str:
        """Hide auth tokens passed as query parameters"""
        return url.split("auth=", 1)[0] + "auth=***" if "auth=" in url else url

    @staticmethod
    def query(params: Dict[str, Optional[str]]) -> str:
        """Pi-hole style query string: bare keys for None values, values percent-encoded"""
        parts = [key if value is None else f"{key}={quote(str(value), safe='')}" for key, value in params.items()]
        return "?" + "&".join(parts)
