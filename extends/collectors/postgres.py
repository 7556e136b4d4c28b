"""Postgres stats extend.

Dumps pg_stat_wal, pg_stat_bgwriter, pg_stat_archiver, pg_stat_database and
pg_stat_slru for LibreNMS. Connection settings come from a TOML file:

    dsn="dbi:Pg:dbname=postgres"
    user=""
    pass=""
"""

import logging
from typing import Any, Dict, List, Optional

from peewee import DatabaseError, InterfaceError, PostgresqlDatabase
from pydantic import Field

from ..config import ExtendConfig
from ..errors import SourceError
from .base import Extend

SHARED_DATABASE = "_________shared________"

DB_ERRORS = (DatabaseError, InterfaceError)


class PostgresConfig(ExtendConfig):
    dsn: str = "dbi:Pg:dbname=postgres"
    user: str = ""
    password: str = Field("", alias="pass")


def parse_dsn(dsn: str) -> Dict[str, str]:
    """
    Split a DSN into connection keywords.

    Accepts the DBI form "dbi:Pg:dbname=postgres;host=db;port=5432" and the
    libpq form "dbname=postgres host=db port=5432".
    """
    dsn = dsn.strip()
    if dsn.lower().startswith("dbi:pg:"):
        body = dsn[len("dbi:Pg:"):]
        pairs = [p for p in body.split(";") if p.strip()]
    else:
        pairs = dsn.split()

    params = {}
    for pair in pairs:
        if "=" not in pair:
            continue
        key, value = pair.split("=", 1)
        params[key.strip()] = value.strip().strip("'")
    return params


class PostgresExtend(Extend):
    """
    Postgres extend
    Emits:
      - wal: pg_stat_wal row
      - bgwriter: pg_stat_bgwriter row
      - archiver: pg_stat_archiver row
      - database: pg_stat_database rows keyed by datname
      - slru: pg_stat_slru rows keyed by name
    """

    name = "postgres"
    description = "Postgres stats"
    config_model = PostgresConfig
    default_config = "/usr/local/etc/librenms_pg_extend.toml"

    def __init__(self, config: Optional[PostgresConfig] = None, logger: Optional[logging.Logger] = None):
        super().__init__(config, logger)
        self.db: Optional[PostgresqlDatabase] = None

    def connect(self) -> PostgresqlDatabase:
        params = parse_dsn(self.config.dsn)
        database = params.pop("dbname", params.pop("database", "postgres"))
        if self.config.user:
            params["user"] = self.config.user
        if self.config.password:
            params["password"] = self.config.password

        db = PostgresqlDatabase(database, autoconnect=False, **params)
        try:
            db.connect()
        except DB_ERRORS as e:
            raise SourceError(f"Failed to connect to {database}: {str(e).strip()}") from e
        return db

    def query(self, sql: str) -> List[Dict[str, Any]]:
        """Run a query and return rows as dicts"""
        cursor = self.db.execute_sql(sql)
        columns = [col[0] for col in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def _stat_row(self, view: str) -> Dict[str, Any]:
        """First row of a single row stats view, minus stats_reset"""
        try:
            rows = self.query(f"select * from {view};")
        except DB_ERRORS as e:
            # pg_stat_wal and pg_stat_slru only exist on 14+/13+
            self.logger.warning(f"{view} not readable: {str(e).strip()}")
            return {}
        if not rows:
            return {}
        row = rows[0]
        row.pop("stats_reset", None)
        return row

    def _database_stats(self) -> Dict[str, Dict[str, Any]]:
        stats = {}
        for row in self.query("select * from pg_stat_database;"):
            for key in ("datid", "stats_reset", "checksum_last_failure"):
                row.pop(key, None)
            db_name = row.pop("datname", None)
            if db_name is None:
                db_name = SHARED_DATABASE
            stats[db_name] = row
        return stats

    def _slru_stats(self) -> Dict[str, Dict[str, Any]]:
        try:
            rows = self.query("select * from pg_stat_slru;")
        except DB_ERRORS as e:
            self.logger.warning(f"pg_stat_slru not readable: {str(e).strip()}")
            return {}

        stats = {}
        for row in rows:
            row.pop("stats_reset", None)
            stats[row.pop("name")] = row
        return stats

    def collect(self) -> Dict[str, Any]:
        self.db = self.connect()
        try:
            return {
                "wal": self._stat_row("pg_stat_wal"),
                "database": self._database_stats(),
                "slru": self._slru_stats(),
                "bgwriter": self._stat_row("pg_stat_bgwriter"),
                "archiver": self._stat_row("pg_stat_archiver"),
            }
        except DB_ERRORS as e:
            raise SourceError(f"Query failed: {str(e).strip()}") from e
        finally:
            self.db.close()


def main():
    from ..cli import run_extend
    raise SystemExit(run_extend(PostgresExtend))
