"""OpenSearch / Elasticsearch cluster stats extend.

Reads /_cluster/health and /_stats from one node and flattens the cluster
health plus the _all.total section of the index stats.
"""

import argparse
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..config import ExtendConfig
from ..errors import ConfigError, ParseError
from ..http import JsonHttpClient
from ..utils import to_number
from .base import Extend

STATUS_CODES = {"green": 0, "yellow": 1, "red": 2}

HEALTH_FIELDS = {
    "c_nodes": "number_of_nodes",
    "c_data_nodes": "number_of_data_nodes",
    "c_act_pri_shards": "active_primary_shards",
    "c_act_shards": "active_shards",
    "c_rel_shards": "relocating_shards",
    "c_init_shards": "initializing_shards",
    "c_delayed_shards": "delayed_unassigned_shards",
    "c_unass_shards": "unassigned_shards",
    "c_pending_tasks": "number_of_pending_tasks",
    "c_in_fl_fetch": "number_of_in_flight_fetch",
    "c_task_max_in_time": "task_max_waiting_in_queue_millis",
    "c_act_shards_perc": "active_shards_percent_as_number",
}

# output key -> path under _stats._all.total
TOTAL_FIELDS: Dict[str, Tuple[str, ...]] = {
    "ttl_docs_count": ("docs", "count"),
    "ttl_docs_deleted": ("docs", "deleted"),
    "ttl_store_size": ("store", "size_in_bytes"),

    "ttl_ind_total": ("indexing", "index_total"),
    "ttl_ind_time": ("indexing", "index_time_in_millis"),
    "ttl_ind_current": ("indexing", "index_current"),
    "ttl_ind_failed": ("indexing", "index_failed"),
    "ttl_ind_del_total": ("indexing", "delete_total"),
    "ttl_ind_del_time": ("indexing", "delete_time_in_millis"),
    "ttl_ind_del_current": ("indexing", "delete_current"),
    "ttl_ind_noop_up_total": ("indexing", "noop_update_total"),
    "ttl_ind_throttled_time": ("indexing", "throttle_time_in_millis"),

    "ttl_get_total": ("get", "total"),
    "ttl_get_time": ("get", "time_in_millis"),
    "ttl_get_exists_total": ("get", "exists_total"),
    "ttl_get_exists_time": ("get", "exists_time_in_millis"),
    "ttl_get_missing_total": ("get", "missing_total"),
    "ttl_get_missing_time": ("get", "missing_time_in_millis"),
    "ttl_get_current": ("get", "current"),

    "ttl_search_open_contexts": ("search", "open_contexts"),
    "ttl_search_query_total": ("search", "query_total"),
    "ttl_search_query_time": ("search", "query_time_in_millis"),
    "ttl_search_query_current": ("search", "query_current"),
    "ttl_search_fetch_total": ("search", "fetch_total"),
    "ttl_search_fetch_time": ("search", "fetch_time_in_millis"),
    "ttl_search_fetch_current": ("search", "fetch_current"),
    "ttl_search_scroll_total": ("search", "scroll_total"),
    "ttl_search_scroll_time": ("search", "scroll_time_in_millis"),
    "ttl_search_scroll_current": ("search", "scroll_current"),

    "ttl_merges_current": ("merges", "current"),
    "ttl_merges_current_docs": ("merges", "current_docs"),
    "ttl_merges_current_size": ("merges", "current_size_in_bytes"),
    "ttl_merges_total": ("merges", "total"),
    "ttl_merges_total_time": ("merges", "total_time_in_millis"),
    "ttl_merges_total_docs": ("merges", "total_docs"),
    "ttl_merges_total_size": ("merges", "total_size_in_bytes"),

    "ttl_refresh_total": ("refresh", "total"),
    "ttl_refresh_total_time": ("refresh", "total_time_in_millis"),
    "ttl_refresh_listeners": ("refresh", "listeners"),

    "ttl_flush_total": ("flush", "total"),
    "ttl_flush_periodic": ("flush", "periodic"),
    "ttl_flush_total_time": ("flush", "total_time_in_millis"),

    "ttl_warmer_current": ("warmer", "current"),
    "ttl_warmer_total": ("warmer", "total"),
    "ttl_warmer_total_time": ("warmer", "total_time_in_millis"),

    "ttl_query_cache_size": ("query_cache", "memory_size_in_bytes"),
    "ttl_query_cache_total": ("query_cache", "total_count"),
    "ttl_query_cache_hits": ("query_cache", "hit_count"),
    "ttl_query_cache_misses": ("query_cache", "miss_count"),
    "ttl_query_cache_cached": ("query_cache", "cache_count"),
    "ttl_query_cache_count": ("query_cache", "cache_size"),
    "ttl_query_cache_evictions": ("query_cache", "evictions"),

    "ttl_fielddata_size": ("fielddata", "memory_size_in_bytes"),
    "ttl_fielddata_evictions": ("fielddata", "evictions"),

    "ttl_completion_size": ("completion", "size_in_bytes"),

    "ttl_segments_count": ("segments", "count"),
    "ttl_segments_memory": ("segments", "memory_in_bytes"),
    "ttl_segments_index_writer_memory": ("segments", "index_writer_memory_in_bytes"),
    "ttl_segments_version_map_memory": ("segments", "version_map_memory_in_bytes"),
    "ttl_segments_fixed_bitset_memory": ("segments", "fixed_bit_set_memory_in_bytes"),

    "ttl_translog_operations": ("translog", "operations"),
    "ttl_translog_size": ("translog", "size_in_bytes"),
    "ttl_translog_uncommitted_ops": ("translog", "uncommitted_operations"),
    "ttl_translog_uncommitted_size": ("translog", "uncommitted_size_in_bytes"),

    "ttl_request_cache_size": ("request_cache", "memory_size_in_bytes"),
    "ttl_request_cache_evictions": ("request_cache", "evictions"),
    "ttl_request_cache_hits": ("request_cache", "hit_count"),
    "ttl_request_cache_misses": ("request_cache", "miss_count"),
}


class OpensearchConfig(ExtendConfig):
    host: str = "127.0.0.1"
    port: int = 9200
    https: bool = False
    insecure: bool = False
    auth_file: Optional[str] = None
    timeout: int = 10


def dig(data: Dict[str, Any], path: Tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def read_auth_file(path: Path) -> Tuple[str, str]:
    """First line of the file is 'user:password'"""
    try:
        line = path.read_text().splitlines()[0].strip()
    except (OSError, IndexError) as e:
        raise ConfigError(f"Unable to read auth file {path}: {e}") from e
    if ":" not in line:
        raise ConfigError(f"Auth file {path} must contain user:password")
    user, password = line.split(":", 1)
    return user, password


class OpensearchExtend(Extend):
    """
    OpenSearch extend
    Emits:
      - cluster_name and c_* cluster health fields (c_status: green 0, yellow 1, red 2, unknown 3)
      - ttl_* totals from _stats._all.total
    """

    name = "opensearch"
    description = "OpenSearch/Elasticsearch stats"
    config_model = OpensearchConfig

    @classmethod
    def add_arguments(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--host", help="host to connect to (default: 127.0.0.1)")
        parser.add_argument("--port", type=int, help="port to connect to (default: 9200)")
        parser.add_argument("-S", "--https", action="store_true", help="use HTTPS")
        parser.add_argument("-I", "--insecure", action="store_true", help="do not verify the certificate")
        parser.add_argument("-a", "--auth", dest="auth_file", help="file holding user:password for basic auth")
        parser.add_argument("--timeout", type=int, help="request timeout in seconds (default: 10)")

    def apply_args(self, args: argparse.Namespace) -> None:
        if getattr(args, "host", None):
            self.config.host = args.host
        if getattr(args, "port", None):
            self.config.port = args.port
        if getattr(args, "https", False):
            self.config.https = True
        if getattr(args, "insecure", False):
            self.config.insecure = True
        if getattr(args, "auth_file", None):
            self.config.auth_file = args.auth_file
        if getattr(args, "timeout", None):
            self.config.timeout = args.timeout

    @property
    def base_url(self) -> str:
        scheme = "https" if self.config.https else "http"
        return f"{scheme}://{self.config.host}:{self.config.port}"

    def _client(self) -> JsonHttpClient:
        username = password = None
        if self.config.auth_file:
            username, password = read_auth_file(Path(self.config.auth_file))
        return JsonHttpClient(self.base_url, timeout=self.config.timeout, insecure=self.config.insecure,
                              username=username, password=password)

    def collect(self) -> Dict[str, Any]:
        client = self._client()
        health = client.get_json("/_cluster/health")
        stats = client.get_json("/_stats")
        if not isinstance(health, dict) or not isinstance(stats, dict):
            raise ParseError("Unexpected response shape from cluster health or stats")

        data: Dict[str, Any] = {
            "cluster_name": health.get("cluster_name", ""),
            "c_status": STATUS_CODES.get(health.get("status"), 3),
        }
        for key, source in HEALTH_FIELDS.items():
            data[key] = to_number(health.get(source))

        totals = dig(stats, ("_all", "total")) or {}
        if not totals:
            self.logger.warning("_stats response carries no _all.total section")
        for key, path in TOTAL_FIELDS.items():
            data[key] = to_number(dig(totals, path))

        return data


def main():
    from ..cli import run_extend
    raise SystemExit(run_extend(OpensearchExtend))
