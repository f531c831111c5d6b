from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from .contract import wire_dict, wire_int, wire_list, wire_str
from .errors import MalformedResponseError, ValidationError
from .items import KeySchema
from .validation import validate_attribute_name

type ScalarAttributeType = Literal["S", "N", "B"]
type ProjectionType = Literal["ALL", "KEYS_ONLY", "INCLUDE"]

MaxLocalSecondaryIndexes = 5
MaxGlobalSecondaryIndexes = 5
MaxNonKeyAttributes = 20


class TableStatus(StrEnum):
    CREATING = "CREATING"
    ACTIVE = "ACTIVE"
    UPDATING = "UPDATING"
    DELETING = "DELETING"

    @staticmethod
    def can_transition(current: str, target: str) -> bool:
        if current == target:
            return True
        return target in _TRANSITIONS.get(current, frozenset())


_TRANSITIONS: dict[str, frozenset[str]] = {
    TableStatus.CREATING: frozenset({TableStatus.ACTIVE}),
    TableStatus.ACTIVE: frozenset({TableStatus.UPDATING, TableStatus.DELETING}),
    TableStatus.UPDATING: frozenset({TableStatus.ACTIVE, TableStatus.DELETING}),
    TableStatus.DELETING: frozenset(),
}


def _timestamp(raw: Any, *, field_name: str) -> datetime | None:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise MalformedResponseError(f"{field_name} must be an epoch timestamp")
    try:
        return datetime.fromtimestamp(raw, tz=UTC)
    except (OverflowError, OSError, ValueError) as err:
        raise MalformedResponseError(f"{field_name} is out of range: {raw!r}") from err


@dataclass(frozen=True)
class AttributeDefinition:
    attribute_name: str
    attribute_type: ScalarAttributeType

    def validate(self) -> None:
        validate_attribute_name(self.attribute_name, key=True)
        if self.attribute_type not in {"S", "N", "B"}:
            raise ValidationError(
                f"attribute {self.attribute_name}: AttributeType must be S, N or B (got {self.attribute_type!r})"
            )

    def to_wire(self) -> dict[str, Any]:
        return {"AttributeName": self.attribute_name, "AttributeType": self.attribute_type}

    @staticmethod
    def from_wire(data: Mapping[str, Any]) -> AttributeDefinition:
        if not isinstance(data, Mapping):
            raise MalformedResponseError("AttributeDefinitions entries must be JSON objects")
        return AttributeDefinition(
            attribute_name=str(data.get("AttributeName", "")),
            attribute_type=str(data.get("AttributeType", "")),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class Projection:
    projection_type: ProjectionType
    non_key_attributes: tuple[str, ...] = ()

    @staticmethod
    def all() -> Projection:
        return Projection(projection_type="ALL")

    @staticmethod
    def keys_only() -> Projection:
        return Projection(projection_type="KEYS_ONLY")

    @staticmethod
    def include(*attributes: str) -> Projection:
        return Projection(projection_type="INCLUDE", non_key_attributes=tuple(attributes))

    def validate(self, *, index_name: str) -> None:
        if self.projection_type not in {"ALL", "KEYS_ONLY", "INCLUDE"}:
            raise ValidationError(f"{index_name}: unsupported ProjectionType {self.projection_type!r}")
        if self.projection_type == "INCLUDE":
            if not self.non_key_attributes:
                raise ValidationError(f"{index_name}: INCLUDE projection requires NonKeyAttributes")
            if len(self.non_key_attributes) > MaxNonKeyAttributes:
                raise ValidationError(f"{index_name}: at most {MaxNonKeyAttributes} NonKeyAttributes allowed")
        elif self.non_key_attributes:
            raise ValidationError(f"{index_name}: NonKeyAttributes is only valid with INCLUDE projection")

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ProjectionType": self.projection_type}
        if self.non_key_attributes:
            out["NonKeyAttributes"] = list(self.non_key_attributes)
        return out

    @staticmethod
    def from_wire(data: Mapping[str, Any]) -> Projection:
        return Projection(
            projection_type=str(data.get("ProjectionType", "ALL")),  # type: ignore[arg-type]
            non_key_attributes=tuple(data.get("NonKeyAttributes") or ()),
        )


@dataclass(frozen=True)
class ProvisionedThroughput:
    read_capacity_units: int
    write_capacity_units: int

    def validate(self, *, owner: str) -> None:
        for name, units in (
            ("ReadCapacityUnits", self.read_capacity_units),
            ("WriteCapacityUnits", self.write_capacity_units),
        ):
            if isinstance(units, bool) or not isinstance(units, int) or units < 1:
                raise ValidationError(f"{owner}: {name} must be an integer >= 1")

    def to_wire(self) -> dict[str, Any]:
        return {
            "ReadCapacityUnits": self.read_capacity_units,
            "WriteCapacityUnits": self.write_capacity_units,
        }


@dataclass(frozen=True)
class ProvisionedThroughputDescription:
    read_capacity_units: int | None = None
    write_capacity_units: int | None = None
    number_of_decreases_today: int | None = None
    last_increase_date_time: datetime | None = None
    last_decrease_date_time: datetime | None = None

    @staticmethod
    def from_wire(data: Mapping[str, Any]) -> ProvisionedThroughputDescription:
        return ProvisionedThroughputDescription(
            read_capacity_units=wire_int(data, "ReadCapacityUnits"),
            write_capacity_units=wire_int(data, "WriteCapacityUnits"),
            number_of_decreases_today=wire_int(data, "NumberOfDecreasesToday"),
            last_increase_date_time=_timestamp(data.get("LastIncreaseDateTime"), field_name="LastIncreaseDateTime"),
            last_decrease_date_time=_timestamp(data.get("LastDecreaseDateTime"), field_name="LastDecreaseDateTime"),
        )


@dataclass(frozen=True)
class LocalSecondaryIndex:
    index_name: str
    key_schema: KeySchema
    projection: Projection = field(default_factory=Projection.all)

    def to_wire(self) -> dict[str, Any]:
        return {
            "IndexName": self.index_name,
            "KeySchema": self.key_schema.to_wire(),
            "Projection": self.projection.to_wire(),
        }


@dataclass(frozen=True)
class GlobalSecondaryIndex:
    index_name: str
    key_schema: KeySchema
    provisioned_throughput: ProvisionedThroughput
    projection: Projection = field(default_factory=Projection.all)

    def to_wire(self) -> dict[str, Any]:
        return {
            "IndexName": self.index_name,
            "KeySchema": self.key_schema.to_wire(),
            "Projection": self.projection.to_wire(),
            "ProvisionedThroughput": self.provisioned_throughput.to_wire(),
        }


@dataclass(frozen=True)
class LocalSecondaryIndexDescription:
    index_name: str | None = None
    key_schema: KeySchema | None = None
    projection: Projection | None = None
    index_size_bytes: int | None = None
    item_count: int | None = None

    @staticmethod
    def from_wire(data: Mapping[str, Any]) -> LocalSecondaryIndexDescription:
        if not isinstance(data, Mapping):
            raise MalformedResponseError("LocalSecondaryIndexes entries must be JSON objects")
        key_schema = wire_list(data, "KeySchema")
        projection = wire_dict(data, "Projection")
        return LocalSecondaryIndexDescription(
            index_name=wire_str(data, "IndexName"),
            key_schema=KeySchema.from_wire(key_schema) if key_schema is not None else None,
            projection=Projection.from_wire(projection) if projection is not None else None,
            index_size_bytes=wire_int(data, "IndexSizeBytes"),
            item_count=wire_int(data, "ItemCount"),
        )


@dataclass(frozen=True)
class GlobalSecondaryIndexDescription:
    index_name: str | None = None
    key_schema: KeySchema | None = None
    projection: Projection | None = None
    index_status: str | None = None
    index_size_bytes: int | None = None
    item_count: int | None = None
    provisioned_throughput: ProvisionedThroughputDescription | None = None

    @staticmethod
    def from_wire(data: Mapping[str, Any]) -> GlobalSecondaryIndexDescription:
        if not isinstance(data, Mapping):
            raise MalformedResponseError("GlobalSecondaryIndexes entries must be JSON objects")
        key_schema = wire_list(data, "KeySchema")
        projection = wire_dict(data, "Projection")
        throughput = wire_dict(data, "ProvisionedThroughput")
        return GlobalSecondaryIndexDescription(
            index_name=wire_str(data, "IndexName"),
            key_schema=KeySchema.from_wire(key_schema) if key_schema is not None else None,
            projection=Projection.from_wire(projection) if projection is not None else None,
            index_status=wire_str(data, "IndexStatus"),
            index_size_bytes=wire_int(data, "IndexSizeBytes"),
            item_count=wire_int(data, "ItemCount"),
            provisioned_throughput=(
                ProvisionedThroughputDescription.from_wire(throughput) if throughput is not None else None
            ),
        )


@dataclass(frozen=True)
class TableDescription:
    table_name: str | None = None
    table_status: str | None = None
    key_schema: KeySchema | None = None
    attribute_definitions: tuple[AttributeDefinition, ...] = ()
    creation_date_time: datetime | None = None
    item_count: int | None = None
    table_size_bytes: int | None = None
    provisioned_throughput: ProvisionedThroughputDescription | None = None
    local_secondary_indexes: tuple[LocalSecondaryIndexDescription, ...] = ()
    global_secondary_indexes: tuple[GlobalSecondaryIndexDescription, ...] = ()

    @staticmethod
    def from_wire(data: Mapping[str, Any]) -> TableDescription:
        key_schema = wire_list(data, "KeySchema")
        throughput = wire_dict(data, "ProvisionedThroughput")
        return TableDescription(
            table_name=wire_str(data, "TableName"),
            table_status=wire_str(data, "TableStatus"),
            key_schema=KeySchema.from_wire(key_schema) if key_schema is not None else None,
            attribute_definitions=tuple(
                AttributeDefinition.from_wire(d) for d in wire_list(data, "AttributeDefinitions") or ()
            ),
            creation_date_time=_timestamp(data.get("CreationDateTime"), field_name="CreationDateTime"),
            item_count=wire_int(data, "ItemCount"),
            table_size_bytes=wire_int(data, "TableSizeBytes"),
            provisioned_throughput=(
                ProvisionedThroughputDescription.from_wire(throughput) if throughput is not None else None
            ),
            local_secondary_indexes=tuple(
                LocalSecondaryIndexDescription.from_wire(d) for d in wire_list(data, "LocalSecondaryIndexes") or ()
            ),
            global_secondary_indexes=tuple(
                GlobalSecondaryIndexDescription.from_wire(d)
                for d in wire_list(data, "GlobalSecondaryIndexes") or ()
            ),
        )


def table_description_from_wire(data: Mapping[str, Any], name: str) -> TableDescription | None:
    raw = wire_dict(data, name)
    if raw is None:
        return None
    return TableDescription.from_wire(raw)


@dataclass(frozen=True)
class TableSchema:
    """Key layout of one table and its indexes, used for local request checks."""

    key_schema: KeySchema
    local_indexes: Mapping[str, KeySchema] = field(default_factory=dict)
    global_indexes: Mapping[str, KeySchema] = field(default_factory=dict)

    @staticmethod
    def from_description(description: TableDescription) -> TableSchema:
        if description.key_schema is None:
            raise ValidationError("table description has no key schema")
        return TableSchema(
            key_schema=description.key_schema,
            local_indexes={
                d.index_name: d.key_schema
                for d in description.local_secondary_indexes
                if d.index_name and d.key_schema is not None
            },
            global_indexes={
                d.index_name: d.key_schema
                for d in description.global_secondary_indexes
                if d.index_name and d.key_schema is not None
            },
        )

    def is_global_index(self, index_name: str | None) -> bool:
        return index_name is not None and index_name in self.global_indexes

    def key_schema_for(self, index_name: str | None) -> KeySchema:
        if index_name is None:
            return self.key_schema
        if index_name in self.global_indexes:
            return self.global_indexes[index_name]
        if index_name in self.local_indexes:
            return self.local_indexes[index_name]
        raise ValidationError(f"unknown index: {index_name}")


def validate_attribute_definitions(
    definitions: Sequence[AttributeDefinition],
    *,
    key_attributes: Sequence[str],
) -> None:
    names = [d.attribute_name for d in definitions]
    if len(set(names)) != len(names):
        raise ValidationError("AttributeDefinitions contains duplicate attribute names")
    for d in definitions:
        d.validate()

    defined = set(names)
    used = set(key_attributes)
    missing = sorted(used - defined)
    if missing:
        raise ValidationError(f"key attributes missing from AttributeDefinitions: {missing}")
    unused = sorted(defined - used)
    if unused:
        raise ValidationError(f"AttributeDefinitions not used by any key schema: {unused}")


def throughput_to_wire(throughput: ProvisionedThroughput | None) -> dict[str, Any] | None:
    return throughput.to_wire() if throughput is not None else None


def index_list_to_wire(
    indexes: Sequence[LocalSecondaryIndex] | Sequence[GlobalSecondaryIndex],
) -> list[dict[str, Any]] | None:
    if not indexes:
        return None
    return [idx.to_wire() for idx in indexes]


__all__ = [
    "AttributeDefinition",
    "GlobalSecondaryIndex",
    "GlobalSecondaryIndexDescription",
    "LocalSecondaryIndex",
    "LocalSecondaryIndexDescription",
    "Projection",
    "ProvisionedThroughput",
    "ProvisionedThroughputDescription",
    "TableDescription",
    "TableSchema",
    "TableStatus",
]
