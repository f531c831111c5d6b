from __future__ import annotations

import json
import logging
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .batch import (
    BatchGetItemRequest,
    BatchGetItemResponse,
    BatchWriteItemRequest,
    BatchWriteItemResponse,
    DeleteRequest,
    KeysAndAttributes,
    PutRequest,
    WriteRequest,
)
from .capacity import Capacity, ConsumedCapacity, ItemCollectionMetrics
from .client import Client
from .conditions import Condition, ExpectedAttributeValue
from .errors import (
    AwsError,
    CancelledError,
    ConditionalCheckFailedError,
    DecodeError,
    InvalidValueError,
    MalformedResponseError,
    MalformedValueError,
    ProvisionedThroughputExceededError,
    ResourceInUseError,
    ResourceNotFoundError,
    TablewireError,
    TransportFailure,
    ValidationError,
)
from .items import KeySchema, KeySchemaElement, item_from_python, item_to_python
from .reads import (
    GetItemRequest,
    GetItemResponse,
    QueryRequest,
    QueryResponse,
    ScanRequest,
    ScanResponse,
)
from .schema import (
    AttributeDefinition,
    GlobalSecondaryIndex,
    LocalSecondaryIndex,
    Projection,
    ProvisionedThroughput,
    TableDescription,
    TableSchema,
    TableStatus,
)
from .tables import (
    CreateTableRequest,
    CreateTableResponse,
    DeleteTableRequest,
    DeleteTableResponse,
    DescribeTableRequest,
    DescribeTableResponse,
    GlobalSecondaryIndexUpdate,
    ListTablesRequest,
    ListTablesResponse,
    UpdateTableRequest,
    UpdateTableResponse,
)
from .values import Value, decode_value, encode_value
from .writes import (
    AttributeValueUpdate,
    DeleteItemRequest,
    DeleteItemResponse,
    PutItemRequest,
    PutItemResponse,
    UpdateItemRequest,
    UpdateItemResponse,
)

if TYPE_CHECKING:
    from .runtime import CallMetric, ClientConfig, instrument_transport, resolve_endpoint
    from .transport import BotocoreTransport, Transport

logging.getLogger(__name__).addHandler(logging.NullHandler())


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name in {"CallMetric", "ClientConfig", "instrument_transport", "resolve_endpoint"}:
        from . import runtime

        return getattr(runtime, name)
    if name in {"BotocoreTransport", "Transport"}:
        from . import transport

        return getattr(transport, name)
    raise AttributeError(name)


__all__ = [
    "AttributeDefinition",
    "AttributeValueUpdate",
    "AwsError",
    "BatchGetItemRequest",
    "BatchGetItemResponse",
    "BatchWriteItemRequest",
    "BatchWriteItemResponse",
    "BotocoreTransport",
    "CallMetric",
    "CancelledError",
    "Capacity",
    "Client",
    "ClientConfig",
    "Condition",
    "ConditionalCheckFailedError",
    "ConsumedCapacity",
    "CreateTableRequest",
    "CreateTableResponse",
    "DecodeError",
    "DeleteItemRequest",
    "DeleteItemResponse",
    "DeleteRequest",
    "DeleteTableRequest",
    "DeleteTableResponse",
    "DescribeTableRequest",
    "DescribeTableResponse",
    "ExpectedAttributeValue",
    "GetItemRequest",
    "GetItemResponse",
    "GlobalSecondaryIndex",
    "GlobalSecondaryIndexUpdate",
    "InvalidValueError",
    "ItemCollectionMetrics",
    "KeySchema",
    "KeySchemaElement",
    "KeysAndAttributes",
    "ListTablesRequest",
    "ListTablesResponse",
    "LocalSecondaryIndex",
    "MalformedResponseError",
    "MalformedValueError",
    "Projection",
    "ProvisionedThroughput",
    "ProvisionedThroughputExceededError",
    "PutItemRequest",
    "PutItemResponse",
    "PutRequest",
    "QueryRequest",
    "QueryResponse",
    "ResourceInUseError",
    "ResourceNotFoundError",
    "ScanRequest",
    "ScanResponse",
    "TableDescription",
    "TableSchema",
    "TableStatus",
    "TablewireError",
    "Transport",
    "TransportFailure",
    "UpdateItemRequest",
    "UpdateItemResponse",
    "UpdateTableRequest",
    "UpdateTableResponse",
    "ValidationError",
    "Value",
    "WriteRequest",
    "__repo_version__",
    "__version__",
    "decode_value",
    "encode_value",
    "instrument_transport",
    "item_from_python",
    "item_to_python",
    "resolve_endpoint",
]
