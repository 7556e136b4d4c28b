"""Pi-hole stats extend.

Polls the Pi-hole admin API twice:

    api.php?summaryRaw&auth=KEY       totals for today
    api.php?getQueryTypes&auth=KEY    query type percentages

The API key is taken from the config file or the PIHOLE_API_KEY environment
variable (a .env file in the working directory is honoured).
"""

import argparse
import os
from typing import Any, Dict, Optional

from ..config import ExtendConfig
from ..errors import ParseError
from ..http import JsonHttpClient
from ..utils import to_number
from .base import Extend

SUMMARY_FIELDS = (
    "domains_being_blocked",
    "dns_queries_today",
    "ads_blocked_today",
    "ads_percentage_today",
    "unique_domains",
    "queries_forwarded",
    "queries_cached",
    "clients_ever_seen",
    "unique_clients",
    "dns_queries_all_types",
    "reply_NODATA",
    "reply_NXDOMAIN",
    "reply_CNAME",
    "reply_IP",
    "privacy_level",
)

# getQueryTypes keys look like "A (IPv4)", "AAAA (IPv6)", "ANY"
QUERY_TYPES = (
    "a", "aaaa", "any", "srv", "soa", "ptr", "txt", "naptr",
    "mx", "ds", "rrsig", "dnskey", "ns", "other", "svcb", "https",
)


class PiholeConfig(ExtendConfig):
    api_url: str = "http://localhost/admin/api.php"
    api_key: Optional[str] = None
    timeout: int = 10


def query_type_key(label: str) -> str:
    """'AAAA (IPv6)' -> 'query_aaaa'"""
    return "query_" + label.split("(", 1)[0].strip().lower()


class PiholeExtend(Extend):
    """
    Pi-hole extend
    Emits:
      - summary counters (domains_being_blocked, dns_queries_today, ...)
      - status (1 enabled, 0 otherwise)
      - query_<type> percentages (needs an API key)
    """

    name = "pihole"
    description = "Pi-hole stats"
    config_model = PiholeConfig
    default_config = "/usr/local/etc/pihole_extend.toml"

    @classmethod
    def add_arguments(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--url", dest="api_url", help="Pi-hole api.php URL")

    def apply_args(self, args: argparse.Namespace) -> None:
        if getattr(args, "api_url", None):
            self.config.api_url = args.api_url

    def _client(self) -> JsonHttpClient:
        return JsonHttpClient(self.config.api_url, timeout=self.config.timeout)

    @property
    def api_key(self) -> Optional[str]:
        return self.config.api_key or os.environ.get("PIHOLE_API_KEY")

    def collect(self) -> Dict[str, Any]:
        client = self._client()
        params = {"summaryRaw": None}
        if self.api_key:
            params["auth"] = self.api_key

        summary = client.get_json(client.query(params))
        if not isinstance(summary, dict):
            raise ParseError(f"Unexpected summary response: {str(summary)[:100]}")

        data: Dict[str, Any] = {field: to_number(summary.get(field)) for field in SUMMARY_FIELDS}
        data["status"] = 1 if summary.get("status") == "enabled" else 0
        data.update({f"query_{qtype}": 0 for qtype in QUERY_TYPES})

        if not self.api_key:
            self.logger.warning("No Pi-hole API key configured, skipping query types")
            return data

        types = client.get_json(client.query({"getQueryTypes": None, "auth": self.api_key}))
        # unauthenticated requests come back as an empty list
        querytypes = types.get("querytypes", {}) if isinstance(types, dict) else {}
        for label, value in querytypes.items():
            data[query_type_key(label)] = to_number(value)

        return data


def main():
    from ..cli import run_extend
    raise SystemExit(run_extend(PiholeExtend))
