from __future__ import annotations

import os
import uuid
from collections.abc import Iterator

import pytest
from botocore.credentials import Credentials

from tablewire_py import (
    AttributeDefinition,
    Client,
    CreateTableRequest,
    DeleteTableRequest,
    KeySchema,
    ProvisionedThroughput,
    TableSchema,
)
from tablewire_py.runtime import ClientConfig
from tablewire_py.transport import BotocoreTransport


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.environ.get("DYNAMODB_ENDPOINT"):
        return
    skip = pytest.mark.skip(reason="DYNAMODB_ENDPOINT is not set")
    for item in items:
        if "integration" in item.path.parts:
            item.add_marker(skip)


@pytest.fixture
def client() -> Client:
    cfg = ClientConfig.from_env()
    transport = BotocoreTransport(
        cfg.resolved_endpoint,
        cfg.region,
        credentials=Credentials(
            os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
            os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
        ),
        config=cfg.botocore_config(),
    )
    return Client(transport)


@pytest.fixture
def table(client: Client) -> Iterator[str]:
    table_name = f"tablewire_py_{uuid.uuid4().hex[:12]}"
    client.create_table(
        CreateTableRequest(
            table_name,
            KeySchema.of("pk", "sk"),
            (AttributeDefinition("pk", "S"), AttributeDefinition("sk", "N")),
            ProvisionedThroughput(5, 5),
        )
    )
    client.wait_for_status(table_name, interval=0.2)
    try:
        yield table_name
    finally:
        client.delete_table(DeleteTableRequest(table_name))
        client.wait_until_deleted(table_name, interval=0.2)


@pytest.fixture
def schema() -> TableSchema:
    return TableSchema(KeySchema.of("pk", "sk"))
