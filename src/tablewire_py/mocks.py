from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()


def _assert_match(expected: Any, actual: Any, *, path: str) -> None:
    if expected is ANY:
        return

    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            raise AssertionError(f"{path}: expected dict, got {type(actual).__name__}")
        for k, v in expected.items():
            if k not in actual:
                raise AssertionError(f"{path}: missing key {k!r}")
            _assert_match(v, actual[k], path=f"{path}.{k}")
        return

    if isinstance(expected, list):
        if not isinstance(actual, list):
            raise AssertionError(f"{path}: expected list, got {type(actual).__name__}")
        if len(expected) != len(actual):
            raise AssertionError(f"{path}: expected {len(expected)} items, got {len(actual)}")
        for i, (e, a) in enumerate(zip(expected, actual, strict=True)):
            _assert_match(e, a, path=f"{path}[{i}]")
        return

    if expected != actual:
        raise AssertionError(f"{path}: expected {expected!r}, got {actual!r}")


@dataclass(frozen=True)
class ExpectedCall:
    operation: str
    expected: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None
    response: Mapping[str, Any] | None = None
    raw: bytes | None = None
    error: Exception | None = None


class FakeTransport:
    """Scripted transport: each ``send`` consumes the next expectation in order.

    Request bodies are decoded and matched against ``expected`` (a partial
    dict, where ``ANY`` matches anything, or a callable asserting on the
    request). The reply is ``raw`` bytes if given, otherwise the JSON
    encoding of ``response``; ``error`` is raised instead when set.
    """

    def __init__(self) -> None:
        self._expected: list[ExpectedCall] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.deadlines: list[float | None] = []

    def expect(
        self,
        operation: str,
        expected: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        raw: bytes | None = None,
        error: Exception | None = None,
    ) -> None:
        self._expected.append(
            ExpectedCall(operation=operation, expected=expected, response=response, raw=raw, error=error)
        )

    def assert_no_pending(self) -> None:
        if self._expected:
            raise AssertionError(f"pending expected calls: {self._expected!r}")

    def send(self, operation: str, body: bytes, *, deadline: float | None = None) -> bytes:
        request = json.loads(body)
        self.calls.append((operation, request))
        self.deadlines.append(deadline)
        if not self._expected:
            raise AssertionError(f"unexpected call: {operation}")

        call = self._expected.pop(0)
        if call.operation != operation:
            raise AssertionError(f"expected {call.operation}, got {operation}")

        if callable(call.expected):
            call.expected(request)
        elif call.expected is not None:
            _assert_match(dict(call.expected), request, path=operation)

        if call.error is not None:
            raise call.error
        if call.raw is not None:
            return call.raw
        return json.dumps(dict(call.response or {})).encode("utf-8")
