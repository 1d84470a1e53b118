"""Connection helpers for MySQL, PostgreSQL and Redis."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional
from urllib.parse import parse_qsl

import redis
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.pool import NullPool, QueuePool

_MYSQL_DEFAULT_PORT = 3306
_REDIS_DEFAULT_ADDR = "localhost:6379"
_INFO_LOG_LEVEL = 4

_MYSQL_DSN = re.compile(
    r"^(?:(?P<user>[^:@]*)(?::(?P<password>.*))?@)?"
    r"(?P<net>[^(/]*)(?:\((?P<addr>[^)]*)\))?"
    r"/(?P<db>[^?]*)(?:\?(?P<params>.*))?$"
)


@dataclass
class MySQLOptions:
    """Settings for a MySQL connection pool."""

    dsn: str = ""
    host: str = ""
    username: str = ""
    password: str = ""
    database: str = ""
    max_idle_connections: int = 0
    max_open_connections: int = 0
    max_connection_life_time: timedelta = timedelta(0)
    log_level: int = 0

    def build_dsn(self) -> str:
        """The configured DSN, or one assembled from the individual fields."""
        if self.dsn:
            return self.dsn
        return (
            f"{self.username}:{self.password}@tcp({self.host})/{self.database}"
            f"?charset=utf8mb4&parseTime=true&loc=Local"
        )


@dataclass
class PostgresOptions:
    """Settings for a PostgreSQL connection."""

    dsn: str = ""
    host: str = ""
    port: int = 0
    user: str = ""
    password: str = ""
    db_name: str = ""
    log_level: int = 0

    def build_dsn(self) -> str:
        """The configured DSN, or a key=value one assembled from the fields."""
        if self.dsn:
            return self.dsn
        return (
            f"host={self.host} user={self.user} password={self.password} "
            f"dbname={self.db_name} port={self.port} sslmode=disable TimeZone=Asia/Shanghai"
        )


@dataclass
class RedisOptions:
    """Settings for a Redis client; db must be set."""

    addr: str = ""
    password: str = ""
    db: Optional[int] = None


def _split_host_port(addr: str) -> tuple[str, Optional[int]]:
    if addr.startswith("["):
        host, _, rest = addr[1:].partition("]")
        port_text = rest[1:] if rest.startswith(":") else ""
    else:
        host, sep, port_text = addr.rpartition(":")
        if not sep:
            return addr, None
    return host, (int(port_text) if port_text else None)


def _mysql_url(dsn: str) -> URL:
    if "://" in dsn:
        return make_url(dsn)
    match = _MYSQL_DSN.match(dsn)
    if match is None:
        raise ValueError(f"invalid MySQL DSN: {dsn!r}")
    params = dict(parse_qsl(match["params"] or ""))
    query: dict[str, str] = {}
    if "charset" in params:
        query["charset"] = params["charset"]
    host: Optional[str] = None
    port: Optional[int] = None
    net = match["net"] or "tcp"
    addr = match["addr"]
    if net == "unix":
        if addr:
            query["unix_socket"] = addr
    elif addr:
        host, port = _split_host_port(addr)
        port = port or _MYSQL_DEFAULT_PORT
    return URL.create(
        "mysql+pymysql",
        username=match["user"] or None,
        password=match["password"],
        host=host,
        port=port,
        database=match["db"] or None,
        query=query,
    )


def _pool_arguments(opts: MySQLOptions) -> dict[str, Any]:
    if opts.max_idle_connections <= 0:
        return {"poolclass": NullPool}
    pool_size = opts.max_idle_connections
    if opts.max_open_connections > 0:
        pool_size = min(pool_size, opts.max_open_connections)
        max_overflow = opts.max_open_connections - pool_size
    else:
        max_overflow = -1
    lifetime = opts.max_connection_life_time.total_seconds()
    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_recycle": int(lifetime) if lifetime > 0 else -1,
    }


def new_mysql(opts: MySQLOptions) -> Engine:
    """An engine for the configured MySQL database, checked by opening one connection.

    A log_level of 4 (info) or above echoes the SQL that is run.
    """
    engine = create_engine(
        _mysql_url(opts.build_dsn()),
        echo=opts.log_level >= _INFO_LOG_LEVEL,
        **_pool_arguments(opts),
    )
    try:
        with engine.connect():
            pass
    except Exception:
        engine.dispose()
        raise
    return engine


def new_redis(opts: RedisOptions) -> redis.Redis:
    """A Redis client for the configured address and database; connects lazily."""
    if opts.db is None:
        raise ValueError("redis database number is not set")
    host, port = _split_host_port(opts.addr or _REDIS_DEFAULT_ADDR)
    if port is None:
        raise ValueError(f"missing port in address {opts.addr!r}")
    return redis.Redis(
        host=host,
        port=port,
        password=opts.password or None,
        db=opts.db,
    )