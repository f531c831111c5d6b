from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from .aws_errors import classify_failure
from .batch import (
    BATCH_GET_ITEM,
    BATCH_WRITE_ITEM,
    BatchGetItemRequest,
    BatchGetItemResponse,
    BatchWriteItemRequest,
    BatchWriteItemResponse,
)
from .capacity import total_capacity_units
from .contract import OperationContract
from .errors import (
    CancelledError,
    MalformedResponseError,
    ResourceNotFoundError,
    TransportFailure,
    ValidationError,
)
from .reads import (
    GET_ITEM,
    QUERY,
    SCAN,
    GetItemRequest,
    GetItemResponse,
    QueryRequest,
    QueryResponse,
    ScanRequest,
    ScanResponse,
)
from .schema import TableDescription, TableSchema, TableStatus
from .tables import (
    CREATE_TABLE,
    DELETE_TABLE,
    DESCRIBE_TABLE,
    LIST_TABLES,
    UPDATE_TABLE,
    CreateTableRequest,
    CreateTableResponse,
    DeleteTableRequest,
    DeleteTableResponse,
    DescribeTableRequest,
    DescribeTableResponse,
    ListTablesRequest,
    ListTablesResponse,
    UpdateTableRequest,
    UpdateTableResponse,
)
from .writes import (
    DELETE_ITEM,
    PUT_ITEM,
    UPDATE_ITEM,
    DeleteItemRequest,
    DeleteItemResponse,
    PutItemRequest,
    PutItemResponse,
    UpdateItemRequest,
    UpdateItemResponse,
)

if TYPE_CHECKING:
    from .runtime import CallMetric, ClientConfig
    from .transport import Transport

log = logging.getLogger(__name__)

CONTRACTS: Mapping[str, OperationContract[Any, Any]] = MappingProxyType(
    {
        c.name: c
        for c in (
            GET_ITEM,
            PUT_ITEM,
            DELETE_ITEM,
            UPDATE_ITEM,
            QUERY,
            SCAN,
            BATCH_GET_ITEM,
            BATCH_WRITE_ITEM,
            CREATE_TABLE,
            DELETE_TABLE,
            DESCRIBE_TABLE,
            UPDATE_TABLE,
            LIST_TABLES,
        )
    }
)


def _check_cancelled(operation: str, cancel: threading.Event | None, deadline: float | None) -> None:
    if cancel is not None and cancel.is_set():
        raise CancelledError(f"{operation}: cancelled")
    if deadline is not None and time.monotonic() >= deadline:
        raise CancelledError(f"{operation}: deadline exceeded")


class Client:
    """Typed client for the table store's JSON wire protocol.

    Every call validates locally, sends exactly one request through the
    transport and never retries. ``schemas`` maps table names to their key
    layout; when a table is listed there, key and index checks are stricter.
    """

    def __init__(self, transport: Transport, *, schemas: Mapping[str, TableSchema] | None = None) -> None:
        self._transport = transport
        self._schemas: Mapping[str, TableSchema] = MappingProxyType(dict(schemas or {}))

    @staticmethod
    def from_config(
        config: ClientConfig,
        *,
        session: Any | None = None,
        schemas: Mapping[str, TableSchema] | None = None,
        metrics: Callable[[CallMetric], None] | None = None,
    ) -> Client:
        from .runtime import instrument_transport
        from .transport import BotocoreTransport

        transport: Transport = BotocoreTransport(
            config.resolved_endpoint,
            config.region,
            session=session,
            config=config.botocore_config(),
        )
        if metrics is not None:
            transport = instrument_transport(transport, metrics)
        return Client(transport, schemas=schemas)

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def schemas(self) -> Mapping[str, TableSchema]:
        return self._schemas

    def with_schema(self, table_name: str, schema: TableSchema) -> Client:
        return Client(self._transport, schemas={**self._schemas, table_name: schema})

    def call(
        self,
        name: str,
        request: Any,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> Any:
        contract = CONTRACTS.get(name)
        if contract is None:
            raise ValidationError(f"unknown operation: {name}")
        return self._invoke(contract, request, timeout=timeout, cancel=cancel)

    def _invoke[Req, Resp](
        self,
        contract: OperationContract[Req, Resp],
        request: Req,
        *,
        timeout: float | None,
        cancel: threading.Event | None,
    ) -> Resp:
        name = contract.name
        if not isinstance(request, contract.request_type):
            raise ValidationError(
                f"{name} expects {contract.request_type.__name__}, got {type(request).__name__}"
            )

        contract.validate(request, self._schemas)
        body = json.dumps(contract.encode_request(request), separators=(",", ":")).encode("utf-8")

        deadline = time.monotonic() + timeout if timeout is not None else None
        _check_cancelled(name, cancel, deadline)

        log.debug("dispatching %s (%d bytes)", name, len(body))
        try:
            raw = self._transport.send(name, body, deadline=deadline)
        except TransportFailure as err:
            classified = classify_failure(err)
            log.debug("%s failed: %s (status=%s)", name, type(classified).__name__, err.status_code)
            if classified is err:
                raise
            raise classified from err

        _check_cancelled(name, cancel, deadline)

        try:
            data = json.loads(raw) if raw else {}
        except ValueError as err:
            raise MalformedResponseError(f"{name}: response body is not valid JSON") from err

        response = contract.finalize(request, contract.decode_response(data))

        consumed = getattr(response, "consumed_capacity", None)
        if consumed:
            log.debug("%s consumed %s capacity units", name, total_capacity_units(consumed))
        return response

    def get_item(
        self, request: GetItemRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> GetItemResponse:
        return self._invoke(GET_ITEM, request, timeout=timeout, cancel=cancel)

    def put_item(
        self, request: PutItemRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> PutItemResponse:
        return self._invoke(PUT_ITEM, request, timeout=timeout, cancel=cancel)

    def delete_item(
        self, request: DeleteItemRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> DeleteItemResponse:
        return self._invoke(DELETE_ITEM, request, timeout=timeout, cancel=cancel)

    def update_item(
        self, request: UpdateItemRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> UpdateItemResponse:
        return self._invoke(UPDATE_ITEM, request, timeout=timeout, cancel=cancel)

    def query(
        self, request: QueryRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> QueryResponse:
        return self._invoke(QUERY, request, timeout=timeout, cancel=cancel)

    def scan(
        self, request: ScanRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> ScanResponse:
        return self._invoke(SCAN, request, timeout=timeout, cancel=cancel)

    def batch_get_item(
        self, request: BatchGetItemRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> BatchGetItemResponse:
        return self._invoke(BATCH_GET_ITEM, request, timeout=timeout, cancel=cancel)

    def batch_write_item(
        self, request: BatchWriteItemRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> BatchWriteItemResponse:
        return self._invoke(BATCH_WRITE_ITEM, request, timeout=timeout, cancel=cancel)

    def create_table(
        self, request: CreateTableRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> CreateTableResponse:
        return self._invoke(CREATE_TABLE, request, timeout=timeout, cancel=cancel)

    def delete_table(
        self, request: DeleteTableRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> DeleteTableResponse:
        return self._invoke(DELETE_TABLE, request, timeout=timeout, cancel=cancel)

    def describe_table(
        self, request: DescribeTableRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> DescribeTableResponse:
        return self._invoke(DESCRIBE_TABLE, request, timeout=timeout, cancel=cancel)

    def update_table(
        self, request: UpdateTableRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> UpdateTableResponse:
        return self._invoke(UPDATE_TABLE, request, timeout=timeout, cancel=cancel)

    def list_tables(
        self,
        request: ListTablesRequest | None = None,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> ListTablesResponse:
        return self._invoke(LIST_TABLES, request or ListTablesRequest(), timeout=timeout, cancel=cancel)

    def query_pages(
        self, request: QueryRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> Iterator[QueryResponse]:
        next_request: QueryRequest | None = request
        while next_request is not None:
            page = self.query(next_request, timeout=timeout, cancel=cancel)
            yield page
            next_request = next_request.next_page(page)

    def scan_pages(
        self, request: ScanRequest, *, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> Iterator[ScanResponse]:
        next_request: ScanRequest | None = request
        while next_request is not None:
            page = self.scan(next_request, timeout=timeout, cancel=cancel)
            yield page
            next_request = next_request.next_page(page)

    def list_table_pages(
        self,
        request: ListTablesRequest | None = None,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> Iterator[ListTablesResponse]:
        next_request: ListTablesRequest | None = request or ListTablesRequest()
        while next_request is not None:
            page = self.list_tables(next_request, timeout=timeout, cancel=cancel)
            yield page
            next_request = next_request.next_page(page)

    def describe_schema(self, table_name: str) -> TableSchema:
        description = self.describe_table(DescribeTableRequest(table_name)).table_description
        if description is None:
            raise MalformedResponseError(f"DescribeTable({table_name}) returned no table description")
        return TableSchema.from_description(description)

    def wait_for_status(
        self,
        table_name: str,
        target: str = TableStatus.ACTIVE,
        *,
        timeout: float = 60.0,
        interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> TableDescription:
        deadline = clock() + timeout
        previous: str | None = None
        while True:
            description = self.describe_table(DescribeTableRequest(table_name)).table_description
            status = description.table_status if description is not None else None
            if description is None or status is None:
                raise MalformedResponseError(f"DescribeTable({table_name}) returned no TableStatus")

            if previous is not None and not TableStatus.can_transition(previous, status):
                raise ValidationError(f"{table_name}: illegal status transition {previous} -> {status}")
            if status == target:
                return description
            if status == TableStatus.DELETING:
                raise ValidationError(f"{table_name}: table is DELETING and cannot reach {target}")

            log.debug("%s is %s, waiting for %s", table_name, status, target)
            previous = status
            if clock() >= deadline:
                raise ValidationError(f"{table_name}: timed out waiting for {target} (last status {status})")
            sleep(interval)

    def wait_until_deleted(
        self,
        table_name: str,
        *,
        timeout: float = 60.0,
        interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        deadline = clock() + timeout
        while True:
            try:
                description = self.describe_table(DescribeTableRequest(table_name)).table_description
            except ResourceNotFoundError:
                return

            status = description.table_status if description is not None else None
            log.debug("%s is %s, waiting for deletion", table_name, status)
            if clock() >= deadline:
                raise ValidationError(f"{table_name}: timed out waiting for deletion (last status {status})")
            sleep(interval)


__all__ = ["CONTRACTS", "Client"]
