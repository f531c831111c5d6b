from __future__ import annotations

import base64
import binascii
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Literal

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer

from .errors import InvalidValueError, MalformedValueError

type ValueTag = Literal["S", "N", "B", "BOOL", "NULL", "SS", "NS", "BS", "L", "M"]

VALUE_TAGS: frozenset[str] = frozenset({"S", "N", "B", "BOOL", "NULL", "SS", "NS", "BS", "L", "M"})
SCALAR_TAGS: frozenset[str] = frozenset({"S", "N", "B"})
SET_TAGS: frozenset[str] = frozenset({"SS", "NS", "BS"})

_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def _number_text(value: Any) -> str:
    if isinstance(value, bool):
        raise InvalidValueError("N value must not be a bool")
    if isinstance(value, float):
        raise InvalidValueError("N value must not be a float; use Decimal or str")
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, str):
        return value
    raise InvalidValueError(f"N value must be int, Decimal or str, got {type(value).__name__}")


def _check_payload(tag: str, payload: Any) -> None:
    if tag not in VALUE_TAGS:
        raise InvalidValueError(f"unsupported attribute value type: {tag!r}")

    if tag in {"S", "N"}:
        ok = isinstance(payload, str)
    elif tag == "B":
        ok = isinstance(payload, bytes)
    elif tag == "BOOL":
        ok = isinstance(payload, bool)
    elif tag == "NULL":
        ok = payload is True
    elif tag in {"SS", "NS"}:
        ok = isinstance(payload, tuple) and all(isinstance(v, str) for v in payload)
    elif tag == "BS":
        ok = isinstance(payload, tuple) and all(isinstance(v, bytes) for v in payload)
    elif tag == "L":
        ok = isinstance(payload, tuple) and all(isinstance(v, Value) for v in payload)
    else:
        ok = isinstance(payload, MappingProxyType) and all(
            isinstance(k, str) and isinstance(v, Value) for k, v in payload.items()
        )

    if not ok:
        raise InvalidValueError(f"{tag} payload has invalid type {type(payload).__name__}")


@dataclass(frozen=True)
class Value:
    """A single DynamoDB attribute value: exactly one tag and its payload.

    Build instances with the static constructors (``Value.s("x")``,
    ``Value.n(10)``, ``Value.ss(["a", "b"])`` ...). The payload's Python type
    is checked on construction; set cardinality and number syntax are
    checked by :meth:`validate`, which :func:`encode_value` always runs.
    """

    tag: ValueTag
    payload: Any

    def __post_init__(self) -> None:
        if self.tag == "M" and isinstance(self.payload, Mapping) and not isinstance(self.payload, MappingProxyType):
            object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))
        _check_payload(self.tag, self.payload)

    @staticmethod
    def s(value: str) -> Value:
        return Value("S", value)

    @staticmethod
    def n(value: int | Decimal | str) -> Value:
        return Value("N", _number_text(value))

    @staticmethod
    def b(value: bytes | bytearray) -> Value:
        return Value("B", bytes(value))

    @staticmethod
    def bool_(value: bool) -> Value:
        return Value("BOOL", value)

    @staticmethod
    def null() -> Value:
        return Value("NULL", True)

    @staticmethod
    def ss(values: Iterable[str]) -> Value:
        return Value("SS", tuple(values))

    @staticmethod
    def ns(values: Iterable[int | Decimal | str]) -> Value:
        return Value("NS", tuple(_number_text(v) for v in values))

    @staticmethod
    def bs(values: Iterable[bytes | bytearray]) -> Value:
        return Value("BS", tuple(bytes(v) for v in values))

    @staticmethod
    def l(values: Iterable[Value]) -> Value:  # noqa: E743
        return Value("L", tuple(values))

    @staticmethod
    def m(values: Mapping[str, Value]) -> Value:
        return Value("M", MappingProxyType(dict(values)))

    @property
    def is_scalar(self) -> bool:
        return self.tag in SCALAR_TAGS

    @property
    def is_set(self) -> bool:
        return self.tag in SET_TAGS

    def validate(self) -> None:
        if self.tag == "N":
            _validate_number(self.payload)
        elif self.tag in SET_TAGS:
            _validate_set(self.tag, self.payload)
        elif self.tag == "L":
            for v in self.payload:
                v.validate()
        elif self.tag == "M":
            for v in self.payload.values():
                v.validate()

    def to_attribute_value(self) -> dict[str, Any]:
        """Return the boto3-style attribute value (raw bytes, no base64)."""
        if self.tag in {"SS", "NS", "BS"}:
            return {self.tag: list(self.payload)}
        if self.tag == "L":
            return {"L": [v.to_attribute_value() for v in self.payload]}
        if self.tag == "M":
            return {"M": {k: v.to_attribute_value() for k, v in self.payload.items()}}
        return {self.tag: self.payload}

    @staticmethod
    def from_attribute_value(av: Mapping[str, Any]) -> Value:
        if not isinstance(av, Mapping) or len(av) != 1:
            raise InvalidValueError("attribute value must be a single-key map")
        (tag, raw), *_ = av.items()

        if tag == "B":
            return Value.b(raw.value if isinstance(raw, Binary) else raw)
        if tag == "BS":
            return Value.bs(v.value if isinstance(v, Binary) else v for v in raw)
        if tag in {"SS", "NS"}:
            return Value(tag, tuple(raw))
        if tag == "L":
            return Value.l(Value.from_attribute_value(v) for v in raw)
        if tag == "M":
            return Value.m({k: Value.from_attribute_value(v) for k, v in raw.items()})
        return Value(tag, raw)

    @staticmethod
    def from_python(obj: Any) -> Value:
        try:
            av = _SERIALIZER.serialize(obj)
        except (TypeError, ArithmeticError) as err:
            raise InvalidValueError(str(err)) from err
        return Value.from_attribute_value(av)

    def to_python(self) -> Any:
        return _DESERIALIZER.deserialize(self.to_attribute_value())

    def __hash__(self) -> int:
        if self.tag == "M":
            return hash((self.tag, frozenset(self.payload.items())))
        return hash((self.tag, self.payload))


_SERIALIZER = TypeSerializer()
_DESERIALIZER = TypeDeserializer()


def _validate_number(text: str) -> None:
    if _NUMBER_RE.match(text) is None:
        raise InvalidValueError(f"invalid number: {text!r}")


def _validate_set(tag: str, members: tuple[Any, ...]) -> None:
    if not members:
        raise InvalidValueError(f"{tag} must not be empty")

    if tag == "NS":
        for m in members:
            _validate_number(m)
        seen: set[Any] = {Decimal(m) for m in members}
    else:
        seen = set(members)

    if len(seen) != len(members):
        raise InvalidValueError(f"{tag} contains duplicate members")


def require_value(name: str, value: Any) -> Value:
    if not isinstance(value, Value):
        raise InvalidValueError(f"{name}: expected Value, got {type(value).__name__}")
    return value


def encode_value(value: Value) -> dict[str, Any]:
    require_value("attribute value", value).validate()
    return _encode(value)


def _encode(value: Value) -> dict[str, Any]:
    tag = value.tag
    if tag == "B":
        return {"B": base64.b64encode(value.payload).decode("ascii")}
    if tag == "BS":
        return {"BS": [base64.b64encode(v).decode("ascii") for v in value.payload]}
    if tag in {"SS", "NS"}:
        return {tag: list(value.payload)}
    if tag == "L":
        return {"L": [_encode(v) for v in value.payload]}
    if tag == "M":
        return {"M": {k: _encode(v) for k, v in value.payload.items()}}
    return {tag: value.payload}


def _b64decode(text: Any) -> bytes:
    if not isinstance(text, str):
        raise MalformedValueError("binary value must be a base64 string")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as err:
        raise MalformedValueError("binary value is not valid base64") from err


def decode_value(wire: Any) -> Value:
    if not isinstance(wire, dict):
        raise MalformedValueError("attribute value must be a JSON object")
    if len(wire) != 1:
        raise MalformedValueError(f"attribute value must carry exactly one type tag, got {sorted(wire)}")

    (tag, raw), *_ = wire.items()
    if tag not in VALUE_TAGS:
        raise MalformedValueError(f"unsupported attribute value type: {tag!r}")

    try:
        if tag == "B":
            value = Value("B", _b64decode(raw))
        elif tag == "BS":
            if not isinstance(raw, list):
                raise MalformedValueError("BS value must be a list")
            value = Value("BS", tuple(_b64decode(v) for v in raw))
        elif tag in {"SS", "NS"}:
            if not isinstance(raw, list):
                raise MalformedValueError(f"{tag} value must be a list")
            value = Value(tag, tuple(raw))
        elif tag == "L":
            if not isinstance(raw, list):
                raise MalformedValueError("L value must be a list")
            value = Value("L", tuple(decode_value(v) for v in raw))
        elif tag == "M":
            if not isinstance(raw, dict):
                raise MalformedValueError("M value must be a map")
            value = Value.m({str(k): decode_value(v) for k, v in raw.items()})
        else:
            value = Value(tag, raw)

        if tag == "N" or tag in SET_TAGS:
            value.validate()
    except InvalidValueError as err:
        raise MalformedValueError(str(err)) from err

    return value
