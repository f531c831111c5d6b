from __future__ import annotations

import pytest

from tablewire_py import (
    AttributeDefinition,
    Client,
    CreateTableRequest,
    DeleteTableRequest,
    GlobalSecondaryIndex,
    GlobalSecondaryIndexUpdate,
    KeySchema,
    ListTablesRequest,
    LocalSecondaryIndex,
    MalformedResponseError,
    Projection,
    ProvisionedThroughput,
    ResourceInUseError,
    TableSchema,
    TableStatus,
    UpdateTableRequest,
    ValidationError,
)
from tablewire_py.mocks import FakeTransport
from tablewire_py.testkit import StepClock, no_sleep, service_error

THROUGHPUT = ProvisionedThroughput(5, 5)


def _create_request(**overrides: object) -> CreateTableRequest:
    fields: dict[str, object] = {
        "table_name": "notes",
        "key_schema": KeySchema.of("pk", "sk"),
        "attribute_definitions": (AttributeDefinition("pk", "S"), AttributeDefinition("sk", "N")),
        "provisioned_throughput": THROUGHPUT,
    }
    fields.update(overrides)
    return CreateTableRequest(**fields)  # type: ignore[arg-type]


def _description(status: str) -> dict[str, object]:
    return {
        "TableName": "notes",
        "TableStatus": status,
        "KeySchema": [{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        "AttributeDefinitions": [
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "N"},
        ],
        "CreationDateTime": 1700000000.5,
        "ProvisionedThroughput": {"ReadCapacityUnits": 5, "WriteCapacityUnits": 5, "NumberOfDecreasesToday": 0},
    }


def test_create_table_returns_creating() -> None:
    transport = FakeTransport()
    transport.expect(
        "CreateTable",
        {
            "TableName": "notes",
            "KeySchema": [{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
            "ProvisionedThroughput": {"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
        },
        response={"TableDescription": _description("CREATING")},
    )

    resp = Client(transport).create_table(_create_request())

    assert resp.table_status == TableStatus.CREATING
    assert resp.table_description is not None
    assert resp.table_description.key_schema == KeySchema.of("pk", "sk")
    assert resp.table_description.creation_date_time is not None
    transport.assert_no_pending()


def test_create_table_with_indexes_wire_shape() -> None:
    transport = FakeTransport()
    transport.expect(
        "CreateTable",
        {
            "LocalSecondaryIndexes": [
                {
                    "IndexName": "by-created",
                    "KeySchema": [
                        {"AttributeName": "pk", "KeyType": "HASH"},
                        {"AttributeName": "created", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "KEYS_ONLY"},
                }
            ],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": "by-owner",
                    "Projection": {"ProjectionType": "INCLUDE", "NonKeyAttributes": ["title"]},
                    "ProvisionedThroughput": {"ReadCapacityUnits": 1, "WriteCapacityUnits": 1},
                }
            ],
        },
        response={"TableDescription": _description("CREATING")},
    )

    Client(transport).create_table(
        _create_request(
            attribute_definitions=(
                AttributeDefinition("pk", "S"),
                AttributeDefinition("sk", "N"),
                AttributeDefinition("created", "N"),
                AttributeDefinition("owner", "S"),
            ),
            local_secondary_indexes=(
                LocalSecondaryIndex("by-created", KeySchema.of("pk", "created"), Projection.keys_only()),
            ),
            global_secondary_indexes=(
                GlobalSecondaryIndex(
                    "by-owner", KeySchema.of("owner"), ProvisionedThroughput(1, 1), Projection.include("title")
                ),
            ),
        )
    )
    transport.assert_no_pending()


@pytest.mark.parametrize(
    "request_",
    [
        _create_request(table_name="no"),
        _create_request(key_schema=KeySchema(())),
        _create_request(provisioned_throughput=ProvisionedThroughput(0, 5)),
        _create_request(attribute_definitions=(AttributeDefinition("pk", "S"),)),
        _create_request(
            attribute_definitions=(
                AttributeDefinition("pk", "S"),
                AttributeDefinition("sk", "N"),
                AttributeDefinition("extra", "S"),
            )
        ),
        _create_request(
            attribute_definitions=(
                AttributeDefinition("pk", "S"),
                AttributeDefinition("sk", "BOOL"),  # type: ignore[arg-type]
            ),
        ),
        _create_request(
            attribute_definitions=(
                AttributeDefinition("pk", "S"),
                AttributeDefinition("sk", "N"),
                AttributeDefinition("created", "N"),
            ),
            local_secondary_indexes=(LocalSecondaryIndex("by-created", KeySchema.of("other", "created")),),
        ),
        _create_request(
            local_secondary_indexes=(LocalSecondaryIndex("by-pk", KeySchema.of("pk")),),
        ),
        _create_request(
            attribute_definitions=(
                AttributeDefinition("pk", "S"),
                AttributeDefinition("sk", "N"),
                AttributeDefinition("owner", "S"),
            ),
            global_secondary_indexes=(
                GlobalSecondaryIndex("by-owner", KeySchema.of("owner"), THROUGHPUT, Projection("INCLUDE")),
            ),
        ),
        _create_request(
            attribute_definitions=(
                AttributeDefinition("pk", "S"),
                AttributeDefinition("sk", "N"),
                AttributeDefinition("owner", "S"),
            ),
            global_secondary_indexes=(
                GlobalSecondaryIndex("dup", KeySchema.of("owner"), THROUGHPUT),
                GlobalSecondaryIndex("dup", KeySchema.of("owner", "sk"), THROUGHPUT),
            ),
        ),
    ],
)
def test_create_table_validation(request_: CreateTableRequest) -> None:
    transport = FakeTransport()
    with pytest.raises(ValidationError):
        Client(transport).create_table(request_)
    assert transport.calls == []


def test_create_table_unknown_status_is_malformed() -> None:
    transport = FakeTransport()
    transport.expect("CreateTable", response={"TableDescription": _description("PROVISIONING")})
    with pytest.raises(MalformedResponseError):
        Client(transport).create_table(_create_request())


def test_wait_for_status_polls_until_active() -> None:
    transport = FakeTransport()
    transport.expect("DescribeTable", {"TableName": "notes"}, response={"Table": _description("CREATING")})
    transport.expect("DescribeTable", {"TableName": "notes"}, response={"Table": _description("CREATING")})
    transport.expect("DescribeTable", {"TableName": "notes"}, response={"Table": _description("ACTIVE")})

    slept: list[float] = []
    description = Client(transport).wait_for_status(
        "notes", interval=0.5, sleep=slept.append, clock=StepClock(step=0.1)
    )

    assert description.table_status == TableStatus.ACTIVE
    assert slept == [0.5, 0.5]
    transport.assert_no_pending()


def test_wait_for_status_times_out() -> None:
    transport = FakeTransport()
    for _ in range(3):
        transport.expect("DescribeTable", response={"Table": _description("CREATING")})

    with pytest.raises(ValidationError, match="timed out"):
        Client(transport).wait_for_status("notes", timeout=2.0, sleep=no_sleep, clock=StepClock(step=1.0))


def test_wait_for_status_rejects_illegal_transition() -> None:
    transport = FakeTransport()
    transport.expect("DescribeTable", response={"Table": _description("ACTIVE")})
    transport.expect("DescribeTable", response={"Table": _description("CREATING")})

    with pytest.raises(ValidationError, match="illegal status transition"):
        Client(transport).wait_for_status("notes", TableStatus.UPDATING, sleep=no_sleep, clock=StepClock())


def test_update_table_while_creating_is_resource_in_use() -> None:
    transport = FakeTransport()
    transport.expect(
        "UpdateTable",
        {"TableName": "notes", "ProvisionedThroughput": {"ReadCapacityUnits": 10, "WriteCapacityUnits": 10}},
        error=service_error("ResourceInUseException", "Table is being created: notes"),
    )

    with pytest.raises(ResourceInUseError) as exc:
        Client(transport).update_table(UpdateTableRequest("notes", ProvisionedThroughput(10, 10)))
    assert exc.value.code == "ResourceInUseException"


def test_update_table_validation() -> None:
    transport = FakeTransport()
    client = Client(transport, schemas={"notes": TableSchema(KeySchema.of("pk"), global_indexes={})})

    with pytest.raises(ValidationError):
        client.update_table(UpdateTableRequest("notes"))
    with pytest.raises(ValidationError, match="not a global secondary index"):
        client.update_table(
            UpdateTableRequest(
                "notes", global_secondary_index_updates=(GlobalSecondaryIndexUpdate.throughput("gsi", 1, 1),)
            )
        )
    with pytest.raises(ValidationError, match="duplicate"):
        Client(transport).update_table(
            UpdateTableRequest(
                "notes",
                global_secondary_index_updates=(
                    GlobalSecondaryIndexUpdate.throughput("gsi", 1, 1),
                    GlobalSecondaryIndexUpdate.throughput("gsi", 2, 2),
                ),
            )
        )
    assert transport.calls == []


def test_update_table_global_index_wire_shape() -> None:
    transport = FakeTransport()
    transport.expect(
        "UpdateTable",
        {
            "GlobalSecondaryIndexUpdates": [
                {
                    "Update": {
                        "IndexName": "by-owner",
                        "ProvisionedThroughput": {"ReadCapacityUnits": 3, "WriteCapacityUnits": 4},
                    }
                }
            ]
        },
        response={"TableDescription": _description("UPDATING")},
    )
    resp = Client(transport).update_table(
        UpdateTableRequest(
            "notes", global_secondary_index_updates=(GlobalSecondaryIndexUpdate.throughput("by-owner", 3, 4),)
        )
    )
    assert resp.table_status == TableStatus.UPDATING


def test_list_tables_pagination() -> None:
    transport = FakeTransport()
    transport.expect(
        "ListTables",
        {"Limit": 2},
        response={"TableNames": ["a-table", "b-table"], "LastEvaluatedTableName": "b-table"},
    )
    transport.expect(
        "ListTables",
        {"Limit": 2, "ExclusiveStartTableName": "b-table"},
        response={"TableNames": ["c-table"]},
    )

    pages = list(Client(transport).list_table_pages(ListTablesRequest(limit=2)))

    assert [name for page in pages for name in page.table_names] == ["a-table", "b-table", "c-table"]
    assert not pages[-1].has_more
    transport.assert_no_pending()


def test_list_tables_limit_is_capped() -> None:
    transport = FakeTransport()
    with pytest.raises(ValidationError):
        Client(transport).list_tables(ListTablesRequest(limit=101))
    with pytest.raises(ValidationError):
        Client(transport).list_tables(ListTablesRequest(limit=0))
    assert transport.calls == []


def test_delete_then_wait_until_deleted() -> None:
    transport = FakeTransport()
    transport.expect("DeleteTable", {"TableName": "notes"}, response={"TableDescription": _description("DELETING")})
    transport.expect("DescribeTable", response={"Table": _description("DELETING")})
    transport.expect("DescribeTable", error=service_error("ResourceNotFoundException", "Requested resource not found"))

    client = Client(transport)
    resp = client.delete_table(DeleteTableRequest("notes"))
    assert resp.table_status == TableStatus.DELETING

    client.wait_until_deleted("notes", sleep=no_sleep, clock=StepClock())
    transport.assert_no_pending()


def test_describe_schema_builds_table_schema() -> None:
    description = _description("ACTIVE")
    description["GlobalSecondaryIndexes"] = [
        {
            "IndexName": "by-owner",
            "KeySchema": [{"AttributeName": "owner", "KeyType": "HASH"}],
            "Projection": {"ProjectionType": "ALL"},
            "IndexStatus": "ACTIVE",
        }
    ]
    transport = FakeTransport()
    transport.expect("DescribeTable", response={"Table": description})

    schema = Client(transport).describe_schema("notes")

    assert schema.key_schema == KeySchema.of("pk", "sk")
    assert schema.is_global_index("by-owner")
    assert schema.key_schema_for("by-owner") == KeySchema.of("owner")


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        (TableStatus.CREATING, TableStatus.ACTIVE, True),
        (TableStatus.ACTIVE, TableStatus.UPDATING, True),
        (TableStatus.UPDATING, TableStatus.ACTIVE, True),
        (TableStatus.ACTIVE, TableStatus.DELETING, True),
        (TableStatus.ACTIVE, TableStatus.ACTIVE, True),
        (TableStatus.ACTIVE, TableStatus.CREATING, False),
        (TableStatus.DELETING, TableStatus.ACTIVE, False),
        (TableStatus.CREATING, TableStatus.UPDATING, False),
    ],
)
def test_table_status_transitions(current: TableStatus, target: TableStatus, allowed: bool) -> None:
    assert TableStatus.can_transition(current, target) is allowed
