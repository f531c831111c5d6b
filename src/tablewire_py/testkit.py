from __future__ import annotations

import json

from .errors import TransportFailure
from .mocks import ANY, FakeTransport

ERROR_TYPE_PREFIX = "com.amazonaws.dynamodb.v20120810#"


def service_error(code: str, message: str = "", *, status_code: int = 400) -> TransportFailure:
    body = json.dumps({"__type": f"{ERROR_TYPE_PREFIX}{code}", "message": message}).encode("utf-8")
    return TransportFailure(status_code=status_code, body=body)


def no_sleep(_: float) -> None:
    return None


class StepClock:
    """Monotonic clock stand-in that advances by ``step`` on every reading."""

    def __init__(self, *, start: float = 0.0, step: float = 1.0) -> None:
        if step < 0:
            raise ValueError("step must be >= 0")
        self._now = start
        self._step = step

    def __call__(self) -> float:
        now = self._now
        self._now += self._step
        return now


__all__ = [
    "ANY",
    "FakeTransport",
    "StepClock",
    "no_sleep",
    "service_error",
]
