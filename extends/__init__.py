"""
LibreNMS SNMP extends - stand-alone stats collectors for snmpd `extend`

Every extend gathers stats from one source and prints the same envelope:

    {"data": {...}, "version": 1, "error": 0, "errorString": ""}

Structure:
    extends/
    - collectors/          # Database, API, CLI and /proc collectors
      - base.py            # Extend base class
      - postgres.py        # pg_stat_* views
      - pihole.py          # Pi-hole admin API
      - nextcloud.py       # php occ
      - opensearch.py      # _cluster/health and _stats
      - zfs.py             # ARC stats and zpool list
      - samba.py           # smbstatus
      - mdadm.py           # /proc/mdstat and md sysfs
      - softnet.py         # /proc/net/softnet_stat
      - text_blob.py       # arbitrary shell commands
    - logs/                # Log tail summarizers
      - base.py            # LogExtend base class, backward line reader
      - privoxy.py         # Privoxy logfile
      - http_access_log.py # Combined Log Format access logs
    - envelope.py          # Envelope, gzip+base64, cache files
    - config.py            # TOML/JSON/YAML config loading
    - errors.py            # Error codes
    - http.py              # JSON over HTTP
    - utils.py             # Command execution and procfs helpers
    - manager.py           # Name -> extend registry
    - cli.py               # Command line front end
"""

from .envelope import Envelope, compress_output
from .errors import ConfigError, ExtendError, ParseError, SourceError

__version__ = "1.0.0"

__all__ = [
    'Envelope',
    'compress_output',
    'ExtendError',
    'ConfigError',
    'SourceError',
    'ParseError',
]
