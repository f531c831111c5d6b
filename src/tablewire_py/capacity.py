from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import MalformedResponseError
from .items import decode_item
from .values import Value


def _float(raw: Any, *, field_name: str) -> float | None:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise MalformedResponseError(f"{field_name} must be a number")
    return float(raw)


@dataclass(frozen=True)
class Capacity:
    capacity_units: float | None = None

    @staticmethod
    def from_wire(data: Any) -> Capacity:
        if not isinstance(data, dict):
            raise MalformedResponseError("Capacity must be an object")
        return Capacity(capacity_units=_float(data.get("CapacityUnits"), field_name="CapacityUnits"))


def _capacity_map(raw: Any, *, field_name: str) -> dict[str, Capacity]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise MalformedResponseError(f"{field_name} must be an object")
    return {str(name): Capacity.from_wire(v) for name, v in raw.items()}


@dataclass(frozen=True)
class ConsumedCapacity:
    """Capacity units an operation consumed; purely informational."""

    table_name: str | None = None
    capacity_units: float | None = None
    table: Capacity | None = None
    local_secondary_indexes: Mapping[str, Capacity] = field(default_factory=dict)
    global_secondary_indexes: Mapping[str, Capacity] = field(default_factory=dict)

    @staticmethod
    def from_wire(data: Any) -> ConsumedCapacity:
        if not isinstance(data, dict):
            raise MalformedResponseError("ConsumedCapacity must be an object")
        table = data.get("Table")
        return ConsumedCapacity(
            table_name=data.get("TableName"),
            capacity_units=_float(data.get("CapacityUnits"), field_name="CapacityUnits"),
            table=Capacity.from_wire(table) if table is not None else None,
            local_secondary_indexes=_capacity_map(
                data.get("LocalSecondaryIndexes"), field_name="LocalSecondaryIndexes"
            ),
            global_secondary_indexes=_capacity_map(
                data.get("GlobalSecondaryIndexes"), field_name="GlobalSecondaryIndexes"
            ),
        )


def consumed_capacity_from_wire(raw: Any) -> ConsumedCapacity | None:
    if raw is None:
        return None
    return ConsumedCapacity.from_wire(raw)


def consumed_capacity_list_from_wire(raw: Any) -> tuple[ConsumedCapacity, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise MalformedResponseError("ConsumedCapacity must be a list for batch operations")
    return tuple(ConsumedCapacity.from_wire(c) for c in raw)


def total_capacity_units(capacity: ConsumedCapacity | tuple[ConsumedCapacity, ...] | None) -> float:
    if capacity is None:
        return 0.0
    if isinstance(capacity, ConsumedCapacity):
        return capacity.capacity_units or 0.0
    return sum(c.capacity_units or 0.0 for c in capacity)


@dataclass(frozen=True)
class ItemCollectionMetrics:
    item_collection_key: Mapping[str, Value] = field(default_factory=dict)
    size_estimate_range_gb: tuple[float, ...] = ()

    @staticmethod
    def from_wire(data: Any) -> ItemCollectionMetrics:
        if not isinstance(data, dict):
            raise MalformedResponseError("ItemCollectionMetrics must be an object")
        key_raw = data.get("ItemCollectionKey")
        size_raw = data.get("SizeEstimateRangeGB") or []
        if not isinstance(size_raw, list):
            raise MalformedResponseError("SizeEstimateRangeGB must be a list")
        return ItemCollectionMetrics(
            item_collection_key=decode_item(key_raw) if key_raw is not None else {},
            size_estimate_range_gb=tuple(_float(v, field_name="SizeEstimateRangeGB") or 0.0 for v in size_raw),
        )


def item_collection_metrics_from_wire(raw: Any) -> ItemCollectionMetrics | None:
    if raw is None:
        return None
    return ItemCollectionMetrics.from_wire(raw)
