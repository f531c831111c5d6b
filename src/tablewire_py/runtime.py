from __future__ import annotations

import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from botocore.config import Config

from .errors import ValidationError
from .transport import Transport

DEFAULT_REGION = "us-east-1"


@dataclass(frozen=True)
class CallMetric:
    operation: str
    seconds: float
    ok: bool


def resolve_endpoint(region: str) -> str:
    if not region:
        raise ValidationError("region is required to resolve the endpoint")
    suffix = "amazonaws.com.cn" if region.startswith("cn-") else "amazonaws.com"
    return f"https://dynamodb.{region}.{suffix}"


def _float_env(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as err:
        raise ValidationError(f"{name} must be a number of seconds (got {raw!r})") from err
    if value <= 0:
        raise ValidationError(f"{name} must be > 0")
    return value


@dataclass(frozen=True)
class ClientConfig:
    region: str = DEFAULT_REGION
    endpoint_url: str | None = None
    connect_timeout: float = 1.0
    read_timeout: float = 3.0
    max_pool_connections: int = 10

    @staticmethod
    def from_env(environ: Mapping[str, str] = os.environ) -> ClientConfig:
        region = environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION") or DEFAULT_REGION
        return ClientConfig(
            region=region,
            endpoint_url=environ.get("DYNAMODB_ENDPOINT") or None,
            connect_timeout=_float_env(environ, "DYNAMODB_CONNECT_TIMEOUT", 1.0),
            read_timeout=_float_env(environ, "DYNAMODB_READ_TIMEOUT", 3.0),
        )

    @property
    def resolved_endpoint(self) -> str:
        return self.endpoint_url or resolve_endpoint(self.region)

    def botocore_config(self) -> Config:
        return Config(
            region_name=self.region,
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            max_pool_connections=self.max_pool_connections,
        )


class _InstrumentedTransport:
    def __init__(self, transport: Transport, on_call: Callable[[CallMetric], None]) -> None:
        self._transport = transport
        self._on_call = on_call

    def send(self, operation: str, body: bytes, *, deadline: float | None = None) -> bytes:
        start = time.monotonic()
        try:
            out = self._transport.send(operation, body, deadline=deadline)
        except Exception:
            self._on_call(CallMetric(operation=operation, seconds=time.monotonic() - start, ok=False))
            raise

        self._on_call(CallMetric(operation=operation, seconds=time.monotonic() - start, ok=True))
        return out


def instrument_transport(transport: Transport, on_call: Callable[[CallMetric], None]) -> Transport:
    return _InstrumentedTransport(transport, on_call)


__all__ = ["CallMetric", "ClientConfig", "instrument_transport", "resolve_endpoint"]
