from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Self

from .contract import OperationContract, compact, wire_list, wire_str
from .errors import MalformedResponseError, ValidationError
from .items import KeySchema
from .schema import (
    AttributeDefinition,
    GlobalSecondaryIndex,
    LocalSecondaryIndex,
    MaxGlobalSecondaryIndexes,
    MaxLocalSecondaryIndexes,
    ProvisionedThroughput,
    TableDescription,
    TableStatus,
    index_list_to_wire,
    table_description_from_wire,
    throughput_to_wire,
    validate_attribute_definitions,
)
from .validation import validate_index_name, validate_limit, validate_table_name

if TYPE_CHECKING:
    from .schema import TableSchema

MaxListTablesLimit = 100


@dataclass(frozen=True)
class _TableResult:
    table_description: TableDescription | None = None

    @property
    def table_status(self) -> str | None:
        if self.table_description is None:
            return None
        return self.table_description.table_status


@dataclass(frozen=True)
class CreateTableRequest:
    table_name: str
    key_schema: KeySchema
    attribute_definitions: tuple[AttributeDefinition, ...]
    provisioned_throughput: ProvisionedThroughput
    local_secondary_indexes: tuple[LocalSecondaryIndex, ...] = ()
    global_secondary_indexes: tuple[GlobalSecondaryIndex, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        return compact(
            {
                "TableName": self.table_name,
                "KeySchema": self.key_schema.to_wire(),
                "AttributeDefinitions": [d.to_wire() for d in self.attribute_definitions],
                "ProvisionedThroughput": self.provisioned_throughput.to_wire(),
                "LocalSecondaryIndexes": index_list_to_wire(self.local_secondary_indexes),
                "GlobalSecondaryIndexes": index_list_to_wire(self.global_secondary_indexes),
            }
        )


@dataclass(frozen=True)
class CreateTableResponse(_TableResult):
    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> Self:
        return cls(table_description=table_description_from_wire(data, "TableDescription"))


def _validate_indexes(request: CreateTableRequest) -> list[str]:
    if len(request.local_secondary_indexes) > MaxLocalSecondaryIndexes:
        raise ValidationError(f"at most {MaxLocalSecondaryIndexes} local secondary indexes are allowed")
    if len(request.global_secondary_indexes) > MaxGlobalSecondaryIndexes:
        raise ValidationError(f"at most {MaxGlobalSecondaryIndexes} global secondary indexes are allowed")

    names: set[str] = set()
    key_attributes: list[str] = []
    table_hash = request.key_schema.hash_key

    for lsi in request.local_secondary_indexes:
        validate_index_name(lsi.index_name)
        if lsi.index_name in names:
            raise ValidationError(f"duplicate index name: {lsi.index_name}")
        names.add(lsi.index_name)
        lsi.key_schema.validate()
        if lsi.key_schema.hash_key != table_hash:
            raise ValidationError(f"{lsi.index_name}: local secondary index must use the table hash key {table_hash}")
        if lsi.key_schema.range_key is None:
            raise ValidationError(f"{lsi.index_name}: local secondary index requires a RANGE key")
        lsi.projection.validate(index_name=lsi.index_name)
        key_attributes.extend(lsi.key_schema.attribute_names)

    for gsi in request.global_secondary_indexes:
        validate_index_name(gsi.index_name)
        if gsi.index_name in names:
            raise ValidationError(f"duplicate index name: {gsi.index_name}")
        names.add(gsi.index_name)
        gsi.key_schema.validate()
        gsi.projection.validate(index_name=gsi.index_name)
        gsi.provisioned_throughput.validate(owner=gsi.index_name)
        key_attributes.extend(gsi.key_schema.attribute_names)

    return key_attributes


def validate_create_table(request: CreateTableRequest, schemas: Mapping[str, TableSchema]) -> None:
    validate_table_name(request.table_name)
    request.key_schema.validate()
    request.provisioned_throughput.validate(owner=request.table_name)

    key_attributes = list(request.key_schema.attribute_names)
    key_attributes.extend(_validate_indexes(request))
    validate_attribute_definitions(request.attribute_definitions, key_attributes=key_attributes)


def finalize_create_table(request: CreateTableRequest, response: CreateTableResponse) -> CreateTableResponse:
    status = response.table_status
    if status is not None and status not in set(TableStatus):
        raise MalformedResponseError(f"CreateTable returned unknown TableStatus {status!r}")
    return response


CREATE_TABLE = OperationContract(
    "CreateTable",
    CreateTableRequest,
    CreateTableResponse,
    validate=validate_create_table,
    finalize=finalize_create_table,
)


@dataclass(frozen=True)
class DeleteTableRequest:
    table_name: str

    def to_wire(self) -> dict[str, Any]:
        return {"TableName": self.table_name}


@dataclass(frozen=True)
class DeleteTableResponse(_TableResult):
    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> Self:
        return cls(table_description=table_description_from_wire(data, "TableDescription"))


def _validate_table_only(
    request: DeleteTableRequest | DescribeTableRequest, schemas: Mapping[str, TableSchema]
) -> None:
    validate_table_name(request.table_name)


DELETE_TABLE = OperationContract(
    "DeleteTable", DeleteTableRequest, DeleteTableResponse, validate=_validate_table_only
)


@dataclass(frozen=True)
class DescribeTableRequest:
    table_name: str

    def to_wire(self) -> dict[str, Any]:
        return {"TableName": self.table_name}


@dataclass(frozen=True)
class DescribeTableResponse(_TableResult):
    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> Self:
        return cls(table_description=table_description_from_wire(data, "Table"))


DESCRIBE_TABLE = OperationContract(
    "DescribeTable", DescribeTableRequest, DescribeTableResponse, validate=_validate_table_only
)


@dataclass(frozen=True)
class UpdateGlobalSecondaryIndexAction:
    index_name: str
    provisioned_throughput: ProvisionedThroughput

    def to_wire(self) -> dict[str, Any]:
        return {
            "IndexName": self.index_name,
            "ProvisionedThroughput": self.provisioned_throughput.to_wire(),
        }


@dataclass(frozen=True)
class GlobalSecondaryIndexUpdate:
    update: UpdateGlobalSecondaryIndexAction

    @staticmethod
    def throughput(index_name: str, read: int, write: int) -> GlobalSecondaryIndexUpdate:
        return GlobalSecondaryIndexUpdate(
            UpdateGlobalSecondaryIndexAction(index_name, ProvisionedThroughput(read, write))
        )

    def to_wire(self) -> dict[str, Any]:
        return {"Update": self.update.to_wire()}


@dataclass(frozen=True)
class UpdateTableRequest:
    table_name: str
    provisioned_throughput: ProvisionedThroughput | None = None
    global_secondary_index_updates: tuple[GlobalSecondaryIndexUpdate, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        return compact(
            {
                "TableName": self.table_name,
                "ProvisionedThroughput": throughput_to_wire(self.provisioned_throughput),
                "GlobalSecondaryIndexUpdates": (
                    [u.to_wire() for u in self.global_secondary_index_updates]
                    if self.global_secondary_index_updates
                    else None
                ),
            }
        )


@dataclass(frozen=True)
class UpdateTableResponse(_TableResult):
    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> Self:
        return cls(table_description=table_description_from_wire(data, "TableDescription"))


def validate_update_table(request: UpdateTableRequest, schemas: Mapping[str, TableSchema]) -> None:
    validate_table_name(request.table_name)
    if request.provisioned_throughput is None and not request.global_secondary_index_updates:
        raise ValidationError("UpdateTable requires ProvisionedThroughput or GlobalSecondaryIndexUpdates")
    if request.provisioned_throughput is not None:
        request.provisioned_throughput.validate(owner=request.table_name)

    schema = schemas.get(request.table_name)
    seen: set[str] = set()
    for update in request.global_secondary_index_updates:
        action = update.update
        validate_index_name(action.index_name)
        if action.index_name in seen:
            raise ValidationError(f"duplicate GlobalSecondaryIndexUpdates entry for {action.index_name}")
        seen.add(action.index_name)
        if schema is not None and not schema.is_global_index(action.index_name):
            raise ValidationError(f"{action.index_name} is not a global secondary index of {request.table_name}")
        action.provisioned_throughput.validate(owner=action.index_name)


UPDATE_TABLE = OperationContract(
    "UpdateTable", UpdateTableRequest, UpdateTableResponse, validate=validate_update_table
)


@dataclass(frozen=True)
class ListTablesRequest:
    exclusive_start_table_name: str | None = None
    limit: int | None = None

    def next_page(self, response: ListTablesResponse) -> ListTablesRequest | None:
        if response.last_evaluated_table_name is None:
            return None
        return replace(self, exclusive_start_table_name=response.last_evaluated_table_name)

    def to_wire(self) -> dict[str, Any]:
        return compact({"ExclusiveStartTableName": self.exclusive_start_table_name, "Limit": self.limit})


@dataclass(frozen=True)
class ListTablesResponse:
    table_names: tuple[str, ...] = ()
    last_evaluated_table_name: str | None = None

    @property
    def has_more(self) -> bool:
        return self.last_evaluated_table_name is not None

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> Self:
        names = wire_list(data, "TableNames") or []
        if not all(isinstance(n, str) for n in names):
            raise MalformedResponseError("TableNames must be an array of strings")
        return cls(
            table_names=tuple(names),
            last_evaluated_table_name=wire_str(data, "LastEvaluatedTableName") or None,
        )


def validate_list_tables(request: ListTablesRequest, schemas: Mapping[str, TableSchema]) -> None:
    validate_limit(request.limit, maximum=MaxListTablesLimit)
    if request.exclusive_start_table_name is not None:
        validate_table_name(request.exclusive_start_table_name)


def finalize_list_tables(request: ListTablesRequest, response: ListTablesResponse) -> ListTablesResponse:
    if len(response.table_names) > MaxListTablesLimit:
        raise MalformedResponseError(f"ListTables returned more than {MaxListTablesLimit} names in one page")
    return response


LIST_TABLES = OperationContract(
    "ListTables",
    ListTablesRequest,
    ListTablesResponse,
    validate=validate_list_tables,
    finalize=finalize_list_tables,
)


def attribute_definitions(**types: str) -> tuple[AttributeDefinition, ...]:
    return tuple(AttributeDefinition(name, t) for name, t in types.items())  # type: ignore[arg-type]


__all__ = [
    "CREATE_TABLE",
    "DELETE_TABLE",
    "DESCRIBE_TABLE",
    "LIST_TABLES",
    "UPDATE_TABLE",
    "CreateTableRequest",
    "CreateTableResponse",
    "DeleteTableRequest",
    "DeleteTableResponse",
    "DescribeTableRequest",
    "DescribeTableResponse",
    "GlobalSecondaryIndexUpdate",
    "ListTablesRequest",
    "ListTablesResponse",
    "UpdateGlobalSecondaryIndexAction",
    "UpdateTableRequest",
    "UpdateTableResponse",
    "attribute_definitions",
]
