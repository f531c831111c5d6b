from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Self

from .capacity import ConsumedCapacity, ItemCollectionMetrics, consumed_capacity_list_from_wire
from .conditions import check_expression_placeholders
from .contract import OperationContract, compact, wire_dict
from .errors import MalformedResponseError, ProvisionedThroughputExceededError, ValidationError
from .items import Item, Key, decode_item, decode_items, encode_item, key_identity, validate_key_values
from .validation import (
    RETURN_CONSUMED_CAPACITY,
    RETURN_ITEM_COLLECTION_METRICS,
    validate_attribute_name,
    validate_choice,
    validate_expression,
    validate_table_name,
)
from .values import Value, require_value

if TYPE_CHECKING:
    from .schema import TableSchema

MaxBatchGetKeys = 100
MaxBatchWriteRequests = 25


@dataclass(frozen=True)
class KeysAndAttributes:
    keys: tuple[Key, ...]
    attributes_to_get: tuple[str, ...] | None = None
    consistent_read: bool | None = None
    projection_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None

    def to_wire(self) -> dict[str, Any]:
        return compact(
            {
                "Keys": [encode_item(k) for k in self.keys],
                "AttributesToGet": list(self.attributes_to_get) if self.attributes_to_get is not None else None,
                "ConsistentRead": self.consistent_read,
                "ProjectionExpression": self.projection_expression,
                "ExpressionAttributeNames": (
                    dict(self.expression_attribute_names) if self.expression_attribute_names is not None else None
                ),
            }
        )

    @staticmethod
    def from_wire(data: Any) -> KeysAndAttributes:
        if not isinstance(data, dict):
            raise MalformedResponseError("KeysAndAttributes must be an object")
        attributes = data.get("AttributesToGet")
        names = wire_dict(data, "ExpressionAttributeNames")
        return KeysAndAttributes(
            keys=tuple(decode_items(data.get("Keys", []))),
            attributes_to_get=tuple(attributes) if attributes is not None else None,
            consistent_read=data.get("ConsistentRead"),
            projection_expression=data.get("ProjectionExpression"),
            expression_attribute_names=dict(names) if names is not None else None,
        )


@dataclass(frozen=True)
class PutRequest:
    item: Item


@dataclass(frozen=True)
class DeleteRequest:
    key: Key


@dataclass(frozen=True)
class WriteRequest:
    """One put or delete inside a BatchWriteItem; exactly one side is set."""

    put_request: PutRequest | None = None
    delete_request: DeleteRequest | None = None

    @staticmethod
    def put(item: Item) -> WriteRequest:
        return WriteRequest(put_request=PutRequest(item))

    @staticmethod
    def delete(key: Key) -> WriteRequest:
        return WriteRequest(delete_request=DeleteRequest(key))

    def validate(self) -> None:
        if (self.put_request is None) == (self.delete_request is None):
            raise ValidationError("WriteRequest must hold exactly one of PutRequest or DeleteRequest")
        if self.put_request is not None:
            if not self.put_request.item:
                raise ValidationError("PutRequest item must not be empty")
            for name, value in self.put_request.item.items():
                validate_attribute_name(name)
                require_value(name, value).validate()
        if self.delete_request is not None:
            validate_key_values(self.delete_request.key)

    def to_wire(self) -> dict[str, Any]:
        if self.put_request is not None:
            return {"PutRequest": {"Item": encode_item(self.put_request.item)}}
        if self.delete_request is not None:
            return {"DeleteRequest": {"Key": encode_item(self.delete_request.key)}}
        raise ValidationError("WriteRequest must hold exactly one of PutRequest or DeleteRequest")

    @staticmethod
    def from_wire(data: Any) -> WriteRequest:
        if not isinstance(data, dict):
            raise MalformedResponseError("WriteRequest must be an object")
        put = data.get("PutRequest")
        delete = data.get("DeleteRequest")
        if (put is None) == (delete is None):
            raise MalformedResponseError("WriteRequest must carry exactly one of PutRequest or DeleteRequest")
        if put is not None:
            if not isinstance(put, dict):
                raise MalformedResponseError("PutRequest must be an object")
            return WriteRequest(put_request=PutRequest(decode_item(put.get("Item"))))
        if not isinstance(delete, dict):
            raise MalformedResponseError("DeleteRequest must be an object")
        return WriteRequest(delete_request=DeleteRequest(decode_item(delete.get("Key"))))


def _table_map(data: Mapping[str, Any], name: str) -> dict[str, Any]:
    raw = wire_dict(data, name)
    return raw if raw is not None else {}


def _validate_table_names(request_items: Mapping[str, Any]) -> None:
    if not request_items:
        raise ValidationError("RequestItems must name at least one table")
    for table_name in request_items:
        validate_table_name(table_name)


@dataclass(frozen=True)
class BatchGetItemRequest:
    request_items: Mapping[str, KeysAndAttributes]
    return_consumed_capacity: str | None = None

    @property
    def key_count(self) -> int:
        return sum(len(k.keys) for k in self.request_items.values())

    def retry_request(self, response: BatchGetItemResponse) -> BatchGetItemRequest | None:
        if not response.unprocessed_keys:
            return None
        return replace(self, request_items=dict(response.unprocessed_keys))

    def to_wire(self) -> dict[str, Any]:
        return compact(
            {
                "RequestItems": {name: k.to_wire() for name, k in self.request_items.items()},
                "ReturnConsumedCapacity": self.return_consumed_capacity,
            }
        )


@dataclass(frozen=True)
class BatchGetItemResponse:
    responses: Mapping[str, tuple[dict[str, Value], ...]] = field(default_factory=dict)
    unprocessed_keys: Mapping[str, KeysAndAttributes] = field(default_factory=dict)
    consumed_capacity: tuple[ConsumedCapacity, ...] = ()

    @property
    def has_unprocessed(self) -> bool:
        return any(k.keys for k in self.unprocessed_keys.values())

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            responses={
                str(name): tuple(decode_items(items)) for name, items in _table_map(data, "Responses").items()
            },
            unprocessed_keys={
                str(name): KeysAndAttributes.from_wire(k) for name, k in _table_map(data, "UnprocessedKeys").items()
            },
            consumed_capacity=consumed_capacity_list_from_wire(data.get("ConsumedCapacity")),
        )


def validate_batch_get_item(request: BatchGetItemRequest, schemas: Mapping[str, TableSchema]) -> None:
    _validate_table_names(request.request_items)
    validate_choice("ReturnConsumedCapacity", request.return_consumed_capacity, RETURN_CONSUMED_CAPACITY)

    total = request.key_count
    if total > MaxBatchGetKeys:
        raise ValidationError(f"BatchGetItem supports at most {MaxBatchGetKeys} keys (got {total})")

    for table_name, entry in request.request_items.items():
        if not entry.keys:
            raise ValidationError(f"{table_name}: Keys must not be empty")
        if entry.attributes_to_get is not None and entry.projection_expression is not None:
            raise ValidationError(f"{table_name}: AttributesToGet cannot be combined with ProjectionExpression")
        if entry.attributes_to_get is not None:
            if not entry.attributes_to_get:
                raise ValidationError(f"{table_name}: AttributesToGet must not be empty when provided")
            for name in entry.attributes_to_get:
                validate_attribute_name(name)
        validate_expression(entry.projection_expression, field="ProjectionExpression")
        check_expression_placeholders(
            [entry.projection_expression], names=entry.expression_attribute_names, values=None
        )

        schema = schemas.get(table_name)
        seen: set[str] = set()
        for key in entry.keys:
            if schema is not None:
                schema.key_schema.validate_key(key)
            else:
                validate_key_values(key)
            identity = key_identity(key)
            if identity in seen:
                raise ValidationError(f"{table_name}: duplicate key in BatchGetItem request")
            seen.add(identity)


def finalize_batch_get_item(request: BatchGetItemRequest, response: BatchGetItemResponse) -> BatchGetItemResponse:
    returned = sum(len(items) for items in response.responses.values())
    unprocessed = sum(len(k.keys) for k in response.unprocessed_keys.values())
    if returned == 0 and unprocessed > 0 and unprocessed >= request.key_count:
        raise ProvisionedThroughputExceededError(
            "BatchGetItem: no keys were processed",
            unprocessed=response.unprocessed_keys,
        )
    return response


BATCH_GET_ITEM = OperationContract(
    "BatchGetItem",
    BatchGetItemRequest,
    BatchGetItemResponse,
    validate=validate_batch_get_item,
    finalize=finalize_batch_get_item,
)


@dataclass(frozen=True)
class BatchWriteItemRequest:
    request_items: Mapping[str, Sequence[WriteRequest]]
    return_consumed_capacity: str | None = None
    return_item_collection_metrics: str | None = None

    @property
    def request_count(self) -> int:
        return sum(len(reqs) for reqs in self.request_items.values())

    def retry_request(self, response: BatchWriteItemResponse) -> BatchWriteItemRequest | None:
        if not response.unprocessed_items:
            return None
        return replace(self, request_items=dict(response.unprocessed_items))

    def to_wire(self) -> dict[str, Any]:
        return compact(
            {
                "RequestItems": {name: [r.to_wire() for r in reqs] for name, reqs in self.request_items.items()},
                "ReturnConsumedCapacity": self.return_consumed_capacity,
                "ReturnItemCollectionMetrics": self.return_item_collection_metrics,
            }
        )


@dataclass(frozen=True)
class BatchWriteItemResponse:
    unprocessed_items: Mapping[str, tuple[WriteRequest, ...]] = field(default_factory=dict)
    item_collection_metrics: Mapping[str, tuple[ItemCollectionMetrics, ...]] = field(default_factory=dict)
    consumed_capacity: tuple[ConsumedCapacity, ...] = ()

    @property
    def has_unprocessed(self) -> bool:
        return any(self.unprocessed_items.values())

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> Self:
        unprocessed: dict[str, tuple[WriteRequest, ...]] = {}
        for name, reqs in _table_map(data, "UnprocessedItems").items():
            if not isinstance(reqs, list):
                raise MalformedResponseError(f"UnprocessedItems[{name}] must be an array")
            unprocessed[str(name)] = tuple(WriteRequest.from_wire(r) for r in reqs)

        metrics: dict[str, tuple[ItemCollectionMetrics, ...]] = {}
        for name, entries in _table_map(data, "ItemCollectionMetrics").items():
            if not isinstance(entries, list):
                raise MalformedResponseError(f"ItemCollectionMetrics[{name}] must be an array")
            metrics[str(name)] = tuple(ItemCollectionMetrics.from_wire(m) for m in entries)

        return cls(
            unprocessed_items=unprocessed,
            item_collection_metrics=metrics,
            consumed_capacity=consumed_capacity_list_from_wire(data.get("ConsumedCapacity")),
        )


def _key_names(
    table_name: str, requests: Sequence[WriteRequest], schemas: Mapping[str, TableSchema]
) -> tuple[str, ...] | None:
    schema = schemas.get(table_name)
    if schema is not None:
        return schema.key_schema.attribute_names
    for req in requests:
        if req.delete_request is not None:
            return tuple(sorted(req.delete_request.key))
    return None


def _write_identity(req: WriteRequest, key_names: tuple[str, ...] | None) -> str:
    if req.delete_request is not None:
        return key_identity(req.delete_request.key)
    item = req.put_request.item if req.put_request is not None else {}
    if key_names is None:
        return key_identity(item)
    missing = [name for name in key_names if name not in item]
    if missing:
        raise ValidationError(f"PutRequest item is missing key attributes: {missing}")
    return key_identity({name: item[name] for name in key_names})


def validate_batch_write_item(request: BatchWriteItemRequest, schemas: Mapping[str, TableSchema]) -> None:
    _validate_table_names(request.request_items)
    validate_choice("ReturnConsumedCapacity", request.return_consumed_capacity, RETURN_CONSUMED_CAPACITY)
    validate_choice(
        "ReturnItemCollectionMetrics", request.return_item_collection_metrics, RETURN_ITEM_COLLECTION_METRICS
    )

    total = request.request_count
    if total > MaxBatchWriteRequests:
        raise ValidationError(f"BatchWriteItem supports at most {MaxBatchWriteRequests} requests (got {total})")

    for table_name, requests in request.request_items.items():
        if not requests:
            raise ValidationError(f"{table_name}: write request list must not be empty")

        schema = schemas.get(table_name)
        key_names = _key_names(table_name, requests, schemas)
        seen: set[str] = set()
        for req in requests:
            req.validate()
            if schema is not None and req.delete_request is not None:
                schema.key_schema.validate_key(req.delete_request.key)
            identity = _write_identity(req, key_names)
            if identity in seen:
                raise ValidationError(f"{table_name}: BatchWriteItem contains more than one operation on the same key")
            seen.add(identity)


def finalize_batch_write_item(
    request: BatchWriteItemRequest, response: BatchWriteItemResponse
) -> BatchWriteItemResponse:
    unprocessed = sum(len(reqs) for reqs in response.unprocessed_items.values())
    if unprocessed > 0 and unprocessed >= request.request_count:
        raise ProvisionedThroughputExceededError(
            "BatchWriteItem: no write requests were processed",
            unprocessed=response.unprocessed_items,
        )
    return response


BATCH_WRITE_ITEM = OperationContract(
    "BatchWriteItem",
    BatchWriteItemRequest,
    BatchWriteItemResponse,
    validate=validate_batch_write_item,
    finalize=finalize_batch_write_item,
)


__all__ = [
    "BATCH_GET_ITEM",
    "BATCH_WRITE_ITEM",
    "BatchGetItemRequest",
    "BatchGetItemResponse",
    "BatchWriteItemRequest",
    "BatchWriteItemResponse",
    "DeleteRequest",
    "KeysAndAttributes",
    "PutRequest",
    "WriteRequest",
]
