from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, Self

from .errors import MalformedResponseError

if TYPE_CHECKING:
    from .schema import TableSchema

SERVICE_ALIAS = "DynamoDB"
API_VERSION = "20120810"
TARGET_PREFIX = f"{SERVICE_ALIAS}_{API_VERSION}"


def target_header(operation_name: str) -> str:
    return f"{TARGET_PREFIX}.{operation_name}"


class WireRequest(Protocol):
    def to_wire(self) -> dict[str, Any]: ...


class WireResponse(Protocol):
    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> Self: ...


def _no_validation(request: Any, schemas: Mapping[str, TableSchema]) -> None:
    return None


def _unchanged(request: Any, response: Any) -> Any:
    return response


@dataclass(frozen=True)
class OperationContract[Req: WireRequest, Resp: WireResponse]:
    """Binds one operation name to its request/response shapes.

    ``validate`` runs before anything is encoded or sent; ``finalize`` runs on
    the decoded response and may enforce response-side invariants.
    """

    name: str
    request_type: type[Req]
    response_type: type[Resp]
    validate: Callable[[Req, Mapping[str, TableSchema]], None] = _no_validation
    finalize: Callable[[Req, Resp], Resp] = _unchanged

    @property
    def target(self) -> str:
        return target_header(self.name)

    def encode_request(self, request: Req) -> dict[str, Any]:
        return request.to_wire()

    def decode_response(self, data: Any) -> Resp:
        if not isinstance(data, dict):
            raise MalformedResponseError(f"{self.name}: response body must be a JSON object")
        return self.response_type.from_wire(data)


def compact(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


def wire_int(data: Mapping[str, Any], name: str) -> int | None:
    raw = data.get(name)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise MalformedResponseError(f"{name} must be an integer")
    return raw


def wire_str(data: Mapping[str, Any], name: str) -> str | None:
    raw = data.get(name)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise MalformedResponseError(f"{name} must be a string")
    return raw


def wire_dict(data: Mapping[str, Any], name: str) -> dict[str, Any] | None:
    raw = data.get(name)
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedResponseError(f"{name} must be an object")
    return raw


def wire_list(data: Mapping[str, Any], name: str) -> list[Any] | None:
    raw = data.get(name)
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise MalformedResponseError(f"{name} must be an array")
    return raw
