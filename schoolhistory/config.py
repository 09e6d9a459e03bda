"""Gateway configuration and Redis client settings."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import redis
import yaml

DEFAULT_HTTP_ADDR = "0.0.0.0:8001"
DEFAULT_GRPC_ADDR = "0.0.0.0:9001"
DEFAULT_SERVICE_ENDPOINT = "localhost:9000"
DEFAULT_DATABASE_SOURCE = (
    "user=postgres password=password dbname=test host=localhost port=5432 sslmode=disable"
)
DEFAULT_REDIS_ADDR = "localhost:6379"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


@dataclass
class RedisSettings:
    """Where and how to reach Redis; timeouts are duration strings such as '0.2s'."""

    addr: str = ""
    network: str = ""
    read_timeout: str = ""
    write_timeout: str = ""


@dataclass
class GatewayConfig:
    """Settings of the gateway: upstream service, storage and listen addresses."""

    service_endpoint: str = DEFAULT_SERVICE_ENDPOINT
    database_driver: str = ""
    database_source: str = DEFAULT_DATABASE_SOURCE
    redis: RedisSettings = field(default_factory=RedisSettings)
    http_addr: str = DEFAULT_HTTP_ADDR
    http_timeout: str = ""
    grpc_addr: str = DEFAULT_GRPC_ADDR
    grpc_timeout: str = ""


def _section(doc: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = doc.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"config section {name!r} must be a mapping")
    return value


def _string(doc: Mapping[str, Any], name: str) -> str:
    value = doc.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"config value {name!r} must be a string")
    return value


def load_gateway_config(data: Mapping[str, Any] | None) -> GatewayConfig:
    """Build a gateway config from a parsed document, filling in defaults."""
    doc: Mapping[str, Any] = {} if data is None else data
    if not isinstance(doc, Mapping):
        raise ValueError("config document must be a mapping")

    data_sec = _section(doc, "data")
    database = _section(data_sec, "database")
    redis_sec = _section(data_sec, "redis")
    server = _section(doc, "server")
    http = _section(server, "http")
    grpc = _section(server, "grpc")

    return GatewayConfig(
        service_endpoint=_string(data_sec, "service_endpoint") or DEFAULT_SERVICE_ENDPOINT,
        database_driver=_string(database, "driver"),
        database_source=_string(database, "source") or DEFAULT_DATABASE_SOURCE,
        redis=RedisSettings(
            addr=_string(redis_sec, "addr"),
            network=_string(redis_sec, "network"),
            read_timeout=_string(redis_sec, "read_timeout"),
            write_timeout=_string(redis_sec, "write_timeout"),
        ),
        http_addr=_string(http, "addr") or DEFAULT_HTTP_ADDR,
        http_timeout=_string(http, "timeout"),
        grpc_addr=_string(grpc, "addr") or DEFAULT_GRPC_ADDR,
        grpc_timeout=_string(grpc, "timeout"),
    )


def load_gateway_config_file(path: str) -> GatewayConfig:
    """Read a YAML file and build a gateway config from it."""
    with open(path, encoding="utf-8") as handle:
        doc = yaml.safe_load(handle)
    return load_gateway_config(doc)


def _parse_duration(text: str) -> float | None:
    """Seconds in a duration string; None when empty or zero."""
    text = text.strip()
    if not text:
        return None
    sign = 1.0
    body = text
    if body[0] in "+-":
        sign = -1.0 if body[0] == "-" else 1.0
        body = body[1:]
    if body == "0":
        return None
    pos = 0
    total = 0.0
    while pos < len(body):
        match = _DURATION_PART.match(body, pos)
        if match is None:
            raise ValueError(f"invalid duration: {text!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if not body:
        raise ValueError(f"invalid duration: {text!r}")
    seconds = sign * total
    return seconds if seconds > 0 else None


def _split_addr(addr: str) -> tuple[str, int]:
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid redis address: {addr!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host or "localhost", int(port)


def make_redis_client(settings: RedisSettings) -> redis.Redis:
    """Create a Redis client from settings.

    The client has a single socket timeout, so the larger of the read and
    write timeouts is used.
    """
    timeouts = [
        t
        for t in (_parse_duration(settings.read_timeout), _parse_duration(settings.write_timeout))
        if t is not None
    ]
    socket_timeout = max(timeouts) if timeouts else None

    network = settings.network or "tcp"
    if network == "unix":
        if not settings.addr:
            raise ValueError("a unix socket path is required")
        return redis.Redis(unix_socket_path=settings.addr, socket_timeout=socket_timeout)

    host, port = _split_addr(settings.addr or DEFAULT_REDIS_ADDR)
    return redis.Redis(host=host, port=port, socket_timeout=socket_timeout)