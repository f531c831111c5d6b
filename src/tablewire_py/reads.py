from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Self

from .capacity import ConsumedCapacity, consumed_capacity_from_wire
from .conditions import (
    KEY_CONDITION_OPERATORS,
    Condition,
    check_expression_placeholders,
    encode_condition_map,
    encode_expression_values,
    validate_condition_map,
)
from .contract import OperationContract, compact, wire_dict, wire_int, wire_list
from .errors import MalformedResponseError, ValidationError
from .items import Key, decode_item, decode_items, encode_item, validate_key_values
from .validation import (
    RETURN_CONSUMED_CAPACITY,
    SELECT_VALUES,
    validate_attribute_name,
    validate_choice,
    validate_expression,
    validate_index_name,
    validate_limit,
    validate_table_name,
)
from .values import Value

if TYPE_CHECKING:
    from .schema import TableSchema

MaxTotalSegments = 1000000


def _validate_projection(
    *,
    select: str | None,
    attributes_to_get: Sequence[str] | None,
    projection_expression: str | None,
    index_name: str | None,
) -> None:
    validate_choice("Select", select, SELECT_VALUES)
    if attributes_to_get is not None and projection_expression is not None:
        raise ValidationError("AttributesToGet cannot be combined with ProjectionExpression")
    if attributes_to_get is not None:
        if not attributes_to_get:
            raise ValidationError("AttributesToGet must not be empty when provided")
        if len(set(attributes_to_get)) != len(attributes_to_get):
            raise ValidationError("AttributesToGet contains duplicate attribute names")
        for name in attributes_to_get:
            validate_attribute_name(name)
    validate_expression(projection_expression, field="ProjectionExpression")

    projected = attributes_to_get is not None or projection_expression is not None
    if select == "SPECIFIC_ATTRIBUTES" and not projected:
        raise ValidationError("Select=SPECIFIC_ATTRIBUTES requires AttributesToGet or ProjectionExpression")
    if select not in {None, "SPECIFIC_ATTRIBUTES"} and projected:
        raise ValidationError(f"Select={select} cannot be combined with a projection")
    if select == "ALL_PROJECTED_ATTRIBUTES" and index_name is None:
        raise ValidationError("Select=ALL_PROJECTED_ATTRIBUTES requires IndexName")


def _validate_cursor(cursor: Key | None) -> None:
    if cursor is None:
        return
    validate_key_values(cursor)


def _reject_strong_read_on_global_index(
    table_name: str,
    index_name: str | None,
    consistent_read: bool | None,
    schemas: Mapping[str, TableSchema],
) -> None:
    if not consistent_read or index_name is None:
        return
    schema = schemas.get(table_name)
    if schema is not None and schema.is_global_index(index_name):
        raise ValidationError(f"ConsistentRead is not supported on global secondary index {index_name}")


def _names_to_wire(names: Mapping[str, str] | None) -> dict[str, str] | None:
    return dict(names) if names is not None else None


@dataclass(frozen=True)
class GetItemRequest:
    table_name: str
    key: Key
    consistent_read: bool | None = None
    attributes_to_get: tuple[str, ...] | None = None
    projection_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    return_consumed_capacity: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return compact(
            {
                "TableName": self.table_name,
                "Key": encode_item(self.key),
                "ConsistentRead": self.consistent_read,
                "AttributesToGet": list(self.attributes_to_get) if self.attributes_to_get is not None else None,
                "ProjectionExpression": self.projection_expression,
                "ExpressionAttributeNames": _names_to_wire(self.expression_attribute_names),
                "ReturnConsumedCapacity": self.return_consumed_capacity,
            }
        )


@dataclass(frozen=True)
class GetItemResponse:
    item: dict[str, Value] | None = None
    consumed_capacity: ConsumedCapacity | None = None

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> Self:
        raw = wire_dict(data, "Item")
        return cls(
            item=decode_item(raw) if raw is not None else None,
            consumed_capacity=consumed_capacity_from_wire(data.get("ConsumedCapacity")),
        )


def validate_get_item(request: GetItemRequest, schemas: Mapping[str, TableSchema]) -> None:
    validate_table_name(request.table_name)
    validate_choice("ReturnConsumedCapacity", request.return_consumed_capacity, RETURN_CONSUMED_CAPACITY)

    schema = schemas.get(request.table_name)
    if schema is not None:
        schema.key_schema.validate_key(request.key)
    else:
        validate_key_values(request.key)

    _validate_projection(
        select=None,
        attributes_to_get=request.attributes_to_get,
        projection_expression=request.projection_expression,
        index_name=None,
    )
    check_expression_placeholders(
        [request.projection_expression],
        names=request.expression_attribute_names,
        values=None,
    )


GET_ITEM = OperationContract("GetItem", GetItemRequest, GetItemResponse, validate=validate_get_item)


@dataclass(frozen=True)
class QueryRequest:
    table_name: str
    key_conditions: Mapping[str, Condition]
    index_name: str | None = None
    consistent_read: bool | None = None
    scan_index_forward: bool | None = None
    limit: int | None = None
    select: str | None = None
    exclusive_start_key: Key | None = None
    attributes_to_get: tuple[str, ...] | None = None
    projection_expression: str | None = None
    query_filter: Mapping[str, Condition] | None = None
    conditional_operator: str | None = None
    filter_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Value] | None = None
    return_consumed_capacity: str | None = None

    @property
    def is_filtered(self) -> bool:
        return self.query_filter is not None or self.filter_expression is not None

    def next_page(self, response: QueryResponse) -> QueryRequest | None:
        if response.last_evaluated_key is None:
            return None
        return replace(self, exclusive_start_key=response.last_evaluated_key)

    def to_wire(self) -> dict[str, Any]:
        return compact(
            {
                "TableName": self.table_name,
                "IndexName": self.index_name,
                "KeyConditions": encode_condition_map(self.key_conditions),
                "ConsistentRead": self.consistent_read,
                "ScanIndexForward": self.scan_index_forward,
                "Limit": self.limit,
                "Select": self.select,
                "ExclusiveStartKey": (
                    encode_item(self.exclusive_start_key) if self.exclusive_start_key is not None else None
                ),
                "AttributesToGet": list(self.attributes_to_get) if self.attributes_to_get is not None else None,
                "ProjectionExpression": self.projection_expression,
                "QueryFilter": encode_condition_map(self.query_filter) if self.query_filter is not None else None,
                "ConditionalOperator": self.conditional_operator,
                "FilterExpression": self.filter_expression,
                "ExpressionAttributeNames": _names_to_wire(self.expression_attribute_names),
                "ExpressionAttributeValues": encode_expression_values(self.expression_attribute_values),
                "ReturnConsumedCapacity": self.return_consumed_capacity,
            }
        )


@dataclass(frozen=True)
class _ReadPage:
    items: tuple[dict[str, Value], ...] = ()
    count: int | None = None
    scanned_count: int | None = None
    last_evaluated_key: dict[str, Value] | None = None
    consumed_capacity: ConsumedCapacity | None = None

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> Self:
        items = wire_list(data, "Items")
        last = wire_dict(data, "LastEvaluatedKey")
        return cls(
            items=tuple(decode_items(items)) if items is not None else (),
            count=wire_int(data, "Count"),
            scanned_count=wire_int(data, "ScannedCount"),
            last_evaluated_key=decode_item(last) if last else None,
            consumed_capacity=consumed_capacity_from_wire(data.get("ConsumedCapacity")),
        )

    @property
    def has_more(self) -> bool:
        return self.last_evaluated_key is not None


@dataclass(frozen=True)
class QueryResponse(_ReadPage):
    pass


@dataclass(frozen=True)
class ScanResponse(_ReadPage):
    pass


def _validate_key_conditions(request: QueryRequest, schemas: Mapping[str, TableSchema]) -> None:
    conditions = request.key_conditions
    if not conditions:
        raise ValidationError("KeyConditions must not be empty")
    if len(conditions) > 2:
        raise ValidationError("KeyConditions supports at most two conditions (hash and range)")

    for attribute, condition in conditions.items():
        validate_attribute_name(attribute, key=True)
        if condition.comparison_operator not in KEY_CONDITION_OPERATORS:
            raise ValidationError(
                f"{attribute}: {condition.comparison_operator} is not a valid key condition operator"
            )
        condition.validate(attribute=attribute)
        for operand in condition.attribute_value_list:
            if not operand.is_scalar:
                raise ValidationError(f"{attribute}: key condition operands must be of type S, N or B")

    equality = [name for name, c in conditions.items() if c.comparison_operator == "EQ"]
    if not equality:
        raise ValidationError("KeyConditions requires an EQ condition on the hash key")

    schema = schemas.get(request.table_name)
    if schema is None:
        return

    key_schema = schema.key_schema_for(request.index_name)
    hash_key = key_schema.hash_key
    hash_condition = conditions.get(hash_key)
    if hash_condition is None or hash_condition.comparison_operator != "EQ":
        raise ValidationError(f"KeyConditions requires an EQ condition on the hash key {hash_key}")

    for attribute in conditions:
        if attribute != hash_key and attribute != key_schema.range_key:
            raise ValidationError(f"KeyConditions may only reference key attributes (got {attribute})")


def validate_query(request: QueryRequest, schemas: Mapping[str, TableSchema]) -> None:
    validate_table_name(request.table_name)
    validate_index_name(request.index_name)
    validate_limit(request.limit)
    validate_choice("ReturnConsumedCapacity", request.return_consumed_capacity, RETURN_CONSUMED_CAPACITY)

    _reject_strong_read_on_global_index(request.table_name, request.index_name, request.consistent_read, schemas)
    _validate_key_conditions(request, schemas)
    _validate_projection(
        select=request.select,
        attributes_to_get=request.attributes_to_get,
        projection_expression=request.projection_expression,
        index_name=request.index_name,
    )

    if request.query_filter is not None and request.filter_expression is not None:
        raise ValidationError("QueryFilter cannot be combined with FilterExpression")
    validate_condition_map(
        request.query_filter,
        conditional_operator=request.conditional_operator,
        field="QueryFilter",
    )
    validate_expression(request.filter_expression, field="FilterExpression")
    check_expression_placeholders(
        [request.projection_expression, request.filter_expression],
        names=request.expression_attribute_names,
        values=request.expression_attribute_values,
    )
    _validate_cursor(request.exclusive_start_key)


def _check_count(page: _ReadPage, select: str | None, operation: str) -> None:
    if select == "COUNT":
        if page.items:
            raise MalformedResponseError(f"{operation}: Select=COUNT response must not carry items")
        return
    if page.count is not None and page.count != len(page.items):
        raise MalformedResponseError(
            f"{operation}: Count={page.count} does not match the {len(page.items)} items returned"
        )


def finalize_query(request: QueryRequest, response: QueryResponse) -> QueryResponse:
    _check_count(response, request.select, "Query")
    returned = (response.count or 0) if request.select == "COUNT" else len(response.items)
    if not request.is_filtered and returned == 0 and response.last_evaluated_key is not None:
        raise MalformedResponseError("Query returned an empty page together with a LastEvaluatedKey")
    return response


QUERY = OperationContract(
    "Query", QueryRequest, QueryResponse, validate=validate_query, finalize=finalize_query
)


@dataclass(frozen=True)
class ScanRequest:
    table_name: str
    index_name: str | None = None
    consistent_read: bool | None = None
    limit: int | None = None
    select: str | None = None
    exclusive_start_key: Key | None = None
    segment: int | None = None
    total_segments: int | None = None
    attributes_to_get: tuple[str, ...] | None = None
    projection_expression: str | None = None
    scan_filter: Mapping[str, Condition] | None = None
    conditional_operator: str | None = None
    filter_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Value] | None = None
    return_consumed_capacity: str | None = None

    def next_page(self, response: ScanResponse) -> ScanRequest | None:
        if response.last_evaluated_key is None:
            return None
        return replace(self, exclusive_start_key=response.last_evaluated_key)

    def to_wire(self) -> dict[str, Any]:
        return compact(
            {
                "TableName": self.table_name,
                "IndexName": self.index_name,
                "ConsistentRead": self.consistent_read,
                "Limit": self.limit,
                "Select": self.select,
                "ExclusiveStartKey": (
                    encode_item(self.exclusive_start_key) if self.exclusive_start_key is not None else None
                ),
                "Segment": self.segment,
                "TotalSegments": self.total_segments,
                "AttributesToGet": list(self.attributes_to_get) if self.attributes_to_get is not None else None,
                "ProjectionExpression": self.projection_expression,
                "ScanFilter": encode_condition_map(self.scan_filter) if self.scan_filter is not None else None,
                "ConditionalOperator": self.conditional_operator,
                "FilterExpression": self.filter_expression,
                "ExpressionAttributeNames": _names_to_wire(self.expression_attribute_names),
                "ExpressionAttributeValues": encode_expression_values(self.expression_attribute_values),
                "ReturnConsumedCapacity": self.return_consumed_capacity,
            }
        )


def validate_scan(request: ScanRequest, schemas: Mapping[str, TableSchema]) -> None:
    validate_table_name(request.table_name)
    validate_index_name(request.index_name)
    validate_limit(request.limit)
    validate_choice("ReturnConsumedCapacity", request.return_consumed_capacity, RETURN_CONSUMED_CAPACITY)
    _reject_strong_read_on_global_index(request.table_name, request.index_name, request.consistent_read, schemas)

    if (request.segment is None) != (request.total_segments is None):
        raise ValidationError("Segment and TotalSegments must be provided together")
    if request.segment is not None and request.total_segments is not None:
        if not 1 <= request.total_segments <= MaxTotalSegments:
            raise ValidationError(f"TotalSegments must be between 1 and {MaxTotalSegments}")
        if not 0 <= request.segment < request.total_segments:
            raise ValidationError("Segment must be >= 0 and < TotalSegments")

    _validate_projection(
        select=request.select,
        attributes_to_get=request.attributes_to_get,
        projection_expression=request.projection_expression,
        index_name=request.index_name,
    )
    if request.scan_filter is not None and request.filter_expression is not None:
        raise ValidationError("ScanFilter cannot be combined with FilterExpression")
    validate_condition_map(
        request.scan_filter,
        conditional_operator=request.conditional_operator,
        field="ScanFilter",
    )
    validate_expression(request.filter_expression, field="FilterExpression")
    check_expression_placeholders(
        [request.projection_expression, request.filter_expression],
        names=request.expression_attribute_names,
        values=request.expression_attribute_values,
    )
    _validate_cursor(request.exclusive_start_key)


def finalize_scan(request: ScanRequest, response: ScanResponse) -> ScanResponse:
    _check_count(response, request.select, "Scan")
    return response


SCAN = OperationContract("Scan", ScanRequest, ScanResponse, validate=validate_scan, finalize=finalize_scan)


__all__ = [
    "GET_ITEM",
    "QUERY",
    "SCAN",
    "GetItemRequest",
    "GetItemResponse",
    "QueryRequest",
    "QueryResponse",
    "ScanRequest",
    "ScanResponse",
]
