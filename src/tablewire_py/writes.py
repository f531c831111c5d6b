from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Literal, Self

from .capacity import (
    ConsumedCapacity,
    ItemCollectionMetrics,
    consumed_capacity_from_wire,
    item_collection_metrics_from_wire,
)
from .conditions import (
    ExpectedAttributeValue,
    check_expression_placeholders,
    encode_condition_map,
    encode_expression_values,
    validate_condition_map,
)
from .contract import OperationContract, compact, wire_dict
from .errors import ValidationError
from .items import Item, Key, decode_item, encode_item, require_non_empty, validate_key_values
from .validation import (
    RETURN_CONSUMED_CAPACITY,
    RETURN_ITEM_COLLECTION_METRICS,
    validate_attribute_name,
    validate_choice,
    validate_expression,
    validate_table_name,
)
from .values import SET_TAGS, Value, encode_value, require_value

if TYPE_CHECKING:
    from .schema import TableSchema

PUT_RETURN_VALUES = frozenset({"NONE", "ALL_OLD"})
UPDATE_RETURN_VALUES = frozenset({"NONE", "ALL_OLD", "UPDATED_OLD", "ALL_NEW", "UPDATED_NEW"})

type UpdateAction = Literal["PUT", "ADD", "DELETE"]


def _validate_common(
    table_name: str,
    *,
    return_values: str | None,
    allowed_return_values: frozenset[str],
    return_consumed_capacity: str | None,
    return_item_collection_metrics: str | None,
) -> None:
    validate_table_name(table_name)
    validate_choice("ReturnValues", return_values, allowed_return_values)
    validate_choice("ReturnConsumedCapacity", return_consumed_capacity, RETURN_CONSUMED_CAPACITY)
    validate_choice(
        "ReturnItemCollectionMetrics", return_item_collection_metrics, RETURN_ITEM_COLLECTION_METRICS
    )


def _validate_condition(
    *,
    expected: Mapping[str, ExpectedAttributeValue] | None,
    conditional_operator: str | None,
    condition_expression: str | None,
) -> None:
    if expected is not None and condition_expression is not None:
        raise ValidationError("Expected cannot be combined with ConditionExpression")
    validate_condition_map(expected, conditional_operator=conditional_operator, field="Expected")
    validate_expression(condition_expression, field="ConditionExpression")


def _validate_key(table_name: str, key: Key, schemas: Mapping[str, TableSchema]) -> None:
    schema = schemas.get(table_name)
    if schema is not None:
        schema.key_schema.validate_key(key)
    else:
        validate_key_values(key)


def _expected_to_wire(expected: Mapping[str, ExpectedAttributeValue] | None) -> dict[str, Any] | None:
    return encode_condition_map(expected) if expected is not None else None


def _names_to_wire(names: Mapping[str, str] | None) -> dict[str, str] | None:
    return dict(names) if names is not None else None


@dataclass(frozen=True)
class _WriteResult:
    attributes: dict[str, Value] | None = None
    consumed_capacity: ConsumedCapacity | None = None
    item_collection_metrics: ItemCollectionMetrics | None = None

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> Self:
        raw = wire_dict(data, "Attributes")
        return cls(
            attributes=decode_item(raw) if raw is not None else None,
            consumed_capacity=consumed_capacity_from_wire(data.get("ConsumedCapacity")),
            item_collection_metrics=item_collection_metrics_from_wire(data.get("ItemCollectionMetrics")),
        )


def _drop_unrequested_attributes[R: _WriteResult](return_values: str | None, response: R) -> R:
    if return_values in {None, "NONE"} and response.attributes is not None:
        return replace(response, attributes=None)
    return response


@dataclass(frozen=True)
class PutItemRequest:
    table_name: str
    item: Item
    expected: Mapping[str, ExpectedAttributeValue] | None = None
    conditional_operator: str | None = None
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Value] | None = None
    return_values: str | None = None
    return_consumed_capacity: str | None = None
    return_item_collection_metrics: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return compact(
            {
                "TableName": self.table_name,
                "Item": encode_item(self.item),
                "Expected": _expected_to_wire(self.expected),
                "ConditionalOperator": self.conditional_operator,
                "ConditionExpression": self.condition_expression,
                "ExpressionAttributeNames": _names_to_wire(self.expression_attribute_names),
                "ExpressionAttributeValues": encode_expression_values(self.expression_attribute_values),
                "ReturnValues": self.return_values,
                "ReturnConsumedCapacity": self.return_consumed_capacity,
                "ReturnItemCollectionMetrics": self.return_item_collection_metrics,
            }
        )


@dataclass(frozen=True)
class PutItemResponse(_WriteResult):
    pass


def validate_put_item(request: PutItemRequest, schemas: Mapping[str, TableSchema]) -> None:
    _validate_common(
        request.table_name,
        return_values=request.return_values,
        allowed_return_values=PUT_RETURN_VALUES,
        return_consumed_capacity=request.return_consumed_capacity,
        return_item_collection_metrics=request.return_item_collection_metrics,
    )
    require_non_empty(request.item)
    for name, value in request.item.items():
        validate_attribute_name(name)
        require_value(name, value).validate()

    schema = schemas.get(request.table_name)
    if schema is not None:
        validate_key_values(schema.key_schema.project(request.item))

    _validate_condition(
        expected=request.expected,
        conditional_operator=request.conditional_operator,
        condition_expression=request.condition_expression,
    )
    check_expression_placeholders(
        [request.condition_expression],
        names=request.expression_attribute_names,
        values=request.expression_attribute_values,
    )


def finalize_put_item(request: PutItemRequest, response: PutItemResponse) -> PutItemResponse:
    return _drop_unrequested_attributes(request.return_values, response)


PUT_ITEM = OperationContract(
    "PutItem", PutItemRequest, PutItemResponse, validate=validate_put_item, finalize=finalize_put_item
)


@dataclass(frozen=True)
class DeleteItemRequest:
    table_name: str
    key: Key
    expected: Mapping[str, ExpectedAttributeValue] | None = None
    conditional_operator: str | None = None
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Value] | None = None
    return_values: str | None = None
    return_consumed_capacity: str | None = None
    return_item_collection_metrics: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return compact(
            {
                "TableName": self.table_name,
                "Key": encode_item(self.key),
                "Expected": _expected_to_wire(self.expected),
                "ConditionalOperator": self.conditional_operator,
                "ConditionExpression": self.condition_expression,
                "ExpressionAttributeNames": _names_to_wire(self.expression_attribute_names),
                "ExpressionAttributeValues": encode_expression_values(self.expression_attribute_values),
                "ReturnValues": self.return_values,
                "ReturnConsumedCapacity": self.return_consumed_capacity,
                "ReturnItemCollectionMetrics": self.return_item_collection_metrics,
            }
        )


@dataclass(frozen=True)
class DeleteItemResponse(_WriteResult):
    pass


def validate_delete_item(request: DeleteItemRequest, schemas: Mapping[str, TableSchema]) -> None:
    _validate_common(
        request.table_name,
        return_values=request.return_values,
        allowed_return_values=PUT_RETURN_VALUES,
        return_consumed_capacity=request.return_consumed_capacity,
        return_item_collection_metrics=request.return_item_collection_metrics,
    )
    _validate_key(request.table_name, request.key, schemas)
    _validate_condition(
        expected=request.expected,
        conditional_operator=request.conditional_operator,
        condition_expression=request.condition_expression,
    )
    check_expression_placeholders(
        [request.condition_expression],
        names=request.expression_attribute_names,
        values=request.expression_attribute_values,
    )


def finalize_delete_item(request: DeleteItemRequest, response: DeleteItemResponse) -> DeleteItemResponse:
    return _drop_unrequested_attributes(request.return_values, response)


DELETE_ITEM = OperationContract(
    "DeleteItem",
    DeleteItemRequest,
    DeleteItemResponse,
    validate=validate_delete_item,
    finalize=finalize_delete_item,
)


@dataclass(frozen=True)
class AttributeValueUpdate:
    """Legacy per-attribute update action (``AttributeUpdates``).

    PUT replaces the attribute, ADD increments a number or unions a set, and
    DELETE removes the attribute (no value) or subtracts members from a set.
    """

    action: UpdateAction = "PUT"
    value: Value | None = None

    @staticmethod
    def put(value: Value) -> AttributeValueUpdate:
        return AttributeValueUpdate("PUT", value)

    @staticmethod
    def add(value: Value) -> AttributeValueUpdate:
        return AttributeValueUpdate("ADD", value)

    @staticmethod
    def delete(value: Value | None = None) -> AttributeValueUpdate:
        return AttributeValueUpdate("DELETE", value)

    def validate(self, *, attribute: str) -> None:
        if self.action not in {"PUT", "ADD", "DELETE"}:
            raise ValidationError(f"{attribute}: unsupported update action {self.action!r}")
        if self.value is not None:
            require_value(attribute, self.value).validate()

        if self.action == "PUT" and self.value is None:
            raise ValidationError(f"{attribute}: PUT requires a value")
        if self.action == "ADD":
            if self.value is None:
                raise ValidationError(f"{attribute}: ADD requires a value")
            if self.value.tag != "N" and self.value.tag not in SET_TAGS:
                raise ValidationError(f"{attribute}: ADD only supports numbers and sets (got {self.value.tag})")
        if self.action == "DELETE" and self.value is not None and self.value.tag not in SET_TAGS:
            raise ValidationError(f"{attribute}: DELETE with a value only supports sets (got {self.value.tag})")

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"Action": self.action}
        if self.value is not None:
            out["Value"] = encode_value(self.value)
        return out


@dataclass(frozen=True)
class UpdateItemRequest:
    table_name: str
    key: Key
    attribute_updates: Mapping[str, AttributeValueUpdate] | None = None
    update_expression: str | None = None
    expected: Mapping[str, ExpectedAttributeValue] | None = None
    conditional_operator: str | None = None
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Value] | None = None
    return_values: str | None = None
    return_consumed_capacity: str | None = None
    return_item_collection_metrics: str | None = None

    def to_wire(self) -> dict[str, Any]:
        updates = (
            {name: u.to_wire() for name, u in self.attribute_updates.items()}
            if self.attribute_updates is not None
            else None
        )
        return compact(
            {
                "TableName": self.table_name,
                "Key": encode_item(self.key),
                "AttributeUpdates": updates,
                "UpdateExpression": self.update_expression,
                "Expected": _expected_to_wire(self.expected),
                "ConditionalOperator": self.conditional_operator,
                "ConditionExpression": self.condition_expression,
                "ExpressionAttributeNames": _names_to_wire(self.expression_attribute_names),
                "ExpressionAttributeValues": encode_expression_values(self.expression_attribute_values),
                "ReturnValues": self.return_values,
                "ReturnConsumedCapacity": self.return_consumed_capacity,
                "ReturnItemCollectionMetrics": self.return_item_collection_metrics,
            }
        )


@dataclass(frozen=True)
class UpdateItemResponse(_WriteResult):
    pass


def _reject_key_updates(attributes: Sequence[str], key_attributes: Sequence[str]) -> None:
    touched = sorted(set(attributes) & set(key_attributes))
    if touched:
        raise ValidationError(f"key attributes cannot be updated: {touched}")


def validate_update_item(request: UpdateItemRequest, schemas: Mapping[str, TableSchema]) -> None:
    _validate_common(
        request.table_name,
        return_values=request.return_values,
        allowed_return_values=UPDATE_RETURN_VALUES,
        return_consumed_capacity=request.return_consumed_capacity,
        return_item_collection_metrics=request.return_item_collection_metrics,
    )
    _validate_key(request.table_name, request.key, schemas)

    if request.attribute_updates is not None and request.update_expression is not None:
        raise ValidationError("AttributeUpdates cannot be combined with UpdateExpression")
    if request.attribute_updates is not None:
        if not request.attribute_updates:
            raise ValidationError("AttributeUpdates must not be empty when provided")
        for attribute, update in request.attribute_updates.items():
            validate_attribute_name(attribute)
            update.validate(attribute=attribute)
        schema = schemas.get(request.table_name)
        if schema is not None:
            _reject_key_updates(list(request.attribute_updates), schema.key_schema.attribute_names)
    validate_expression(request.update_expression, field="UpdateExpression")

    _validate_condition(
        expected=request.expected,
        conditional_operator=request.conditional_operator,
        condition_expression=request.condition_expression,
    )
    check_expression_placeholders(
        [request.update_expression, request.condition_expression],
        names=request.expression_attribute_names,
        values=request.expression_attribute_values,
    )


def finalize_update_item(request: UpdateItemRequest, response: UpdateItemResponse) -> UpdateItemResponse:
    return _drop_unrequested_attributes(request.return_values, response)


UPDATE_ITEM = OperationContract(
    "UpdateItem",
    UpdateItemRequest,
    UpdateItemResponse,
    validate=validate_update_item,
    finalize=finalize_update_item,
)


__all__ = [
    "DELETE_ITEM",
    "PUT_ITEM",
    "UPDATE_ITEM",
    "AttributeValueUpdate",
    "DeleteItemRequest",
    "DeleteItemResponse",
    "PutItemRequest",
    "PutItemResponse",
    "UpdateItemRequest",
    "UpdateItemResponse",
]
