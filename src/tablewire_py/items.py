from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal

from .errors import MalformedResponseError, MalformedValueError, ValidationError
from .values import Value, decode_value, encode_value, require_value

type Item = Mapping[str, Value]
type Key = Mapping[str, Value]
type KeyType = Literal["HASH", "RANGE"]


def encode_item(item: Item) -> dict[str, Any]:
    if not isinstance(item, Mapping):
        raise ValidationError("item must be a mapping of attribute name to Value")
    out: dict[str, Any] = {}
    for name, value in item.items():
        if not isinstance(name, str) or not name:
            raise ValidationError("attribute names must be non-empty strings")
        out[name] = encode_value(value)
    return out


def decode_item(wire: Any) -> dict[str, Value]:
    if not isinstance(wire, dict):
        raise MalformedValueError("item must be a JSON object")
    return {str(name): decode_value(v) for name, v in wire.items()}


def decode_items(wire: Any) -> list[dict[str, Value]]:
    if not isinstance(wire, list):
        raise MalformedValueError("item list must be a JSON array")
    return [decode_item(item) for item in wire]


def item_from_python(data: Mapping[str, Any]) -> dict[str, Value]:
    return {str(k): Value.from_python(v) for k, v in data.items()}


def item_to_python(item: Item) -> dict[str, Any]:
    return {k: v.to_python() for k, v in item.items()}


def require_non_empty(item: Item, *, what: str = "item") -> None:
    if not item:
        raise ValidationError(f"{what} must not be empty")


def key_identity(key: Key) -> str:
    """Canonical, hashable identity of a key (or item) for duplicate detection."""
    canonical: dict[str, Any] = {}
    for name in sorted(key):
        value = require_value(name, key[name])
        value.validate()
        if value.tag == "N":
            canonical[name] = {"N": str(Decimal(value.payload).normalize())}
        else:
            canonical[name] = encode_value(value)
    return json.dumps(canonical, sort_keys=True, separators=(",", ":"))


@dataclass(frozen=True)
class KeySchemaElement:
    attribute_name: str
    key_type: KeyType

    def to_wire(self) -> dict[str, Any]:
        return {"AttributeName": self.attribute_name, "KeyType": self.key_type}

    @staticmethod
    def from_wire(data: Mapping[str, Any]) -> KeySchemaElement:
        if not isinstance(data, Mapping):
            raise MalformedResponseError("KeySchema entries must be JSON objects")
        key_type = str(data.get("KeyType", ""))
        if key_type not in {"HASH", "RANGE"}:
            raise MalformedValueError(f"unknown KeyType: {key_type!r}")
        name = str(data.get("AttributeName", ""))
        return KeySchemaElement(attribute_name=name, key_type=key_type)  # type: ignore[arg-type]


@dataclass(frozen=True)
class KeySchema:
    elements: tuple[KeySchemaElement, ...]

    @staticmethod
    def of(hash_key: str, range_key: str | None = None) -> KeySchema:
        elements = [KeySchemaElement(hash_key, "HASH")]
        if range_key is not None:
            elements.append(KeySchemaElement(range_key, "RANGE"))
        return KeySchema(tuple(elements))

    @staticmethod
    def from_wire(data: Sequence[Mapping[str, Any]]) -> KeySchema:
        return KeySchema(tuple(KeySchemaElement.from_wire(e) for e in data))

    def to_wire(self) -> list[dict[str, Any]]:
        return [e.to_wire() for e in self.elements]

    def validate(self) -> None:
        if not self.elements:
            raise ValidationError("key schema must not be empty")
        if len(self.elements) > 2:
            raise ValidationError("key schema supports at most two elements")

        hashes = [e for e in self.elements if e.key_type == "HASH"]
        ranges = [e for e in self.elements if e.key_type == "RANGE"]
        if len(hashes) != 1:
            raise ValidationError("key schema requires exactly one HASH element")
        if len(ranges) > 1:
            raise ValidationError("key schema allows at most one RANGE element")
        if self.elements[0].key_type != "HASH":
            raise ValidationError("HASH element must come first in the key schema")

        names = [e.attribute_name for e in self.elements]
        if any(not n for n in names):
            raise ValidationError("key schema attribute names must be non-empty")
        if len(set(names)) != len(names):
            raise ValidationError("key schema attribute names must be distinct")

    @property
    def hash_key(self) -> str:
        for e in self.elements:
            if e.key_type == "HASH":
                return e.attribute_name
        raise ValidationError("key schema has no HASH element")

    @property
    def range_key(self) -> str | None:
        for e in self.elements:
            if e.key_type == "RANGE":
                return e.attribute_name
        return None

    @property
    def attribute_names(self) -> tuple[str, ...]:
        return tuple(e.attribute_name for e in self.elements)

    def project(self, item: Item) -> dict[str, Value]:
        key: dict[str, Value] = {}
        for name in self.attribute_names:
            if name not in item:
                raise ValidationError(f"item is missing key attribute: {name}")
            key[name] = item[name]
        return key

    def validate_key(self, key: Key) -> None:
        expected = set(self.attribute_names)
        if set(key) != expected:
            raise ValidationError(f"key must contain exactly the attributes {sorted(expected)}, got {sorted(key)}")
        validate_key_values(key)


def validate_key_values(key: Key) -> None:
    require_non_empty(key, what="key")
    for name, value in key.items():
        if not require_value(name, value).is_scalar:
            raise ValidationError(f"key attribute {name} must be of type S, N or B (got {value.tag})")
