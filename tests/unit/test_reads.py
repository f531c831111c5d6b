from __future__ import annotations

import pytest

from tablewire_py import (
    Client,
    Condition,
    GetItemRequest,
    InvalidValueError,
    KeySchema,
    MalformedResponseError,
    QueryRequest,
    ScanRequest,
    TableSchema,
    ValidationError,
    Value,
)
from tablewire_py.mocks import ANY, FakeTransport

SCHEMA = TableSchema(
    key_schema=KeySchema.of("pk", "sk"),
    local_indexes={"by-created": KeySchema.of("pk", "created")},
    global_indexes={"by-owner": KeySchema.of("owner", "sk")},
)


def _client(transport: FakeTransport, *, with_schema: bool = True) -> Client:
    return Client(transport, schemas={"notes": SCHEMA} if with_schema else None)


def _item(pk: str, sk: int) -> dict[str, dict[str, str]]:
    return {"pk": {"S": pk}, "sk": {"N": str(sk)}}


def test_get_item_round_trip() -> None:
    transport = FakeTransport()
    transport.expect(
        "GetItem",
        {"TableName": "notes", "Key": {"pk": {"S": "A"}, "sk": {"N": "1"}}, "ConsistentRead": True},
        response={"Item": {"pk": {"S": "A"}, "sk": {"N": "1"}, "body": {"S": "hi"}}},
    )

    resp = _client(transport).get_item(
        GetItemRequest("notes", {"pk": Value.s("A"), "sk": Value.n(1)}, consistent_read=True)
    )

    assert resp.item == {"pk": Value.s("A"), "sk": Value.n(1), "body": Value.s("hi")}
    transport.assert_no_pending()


def test_get_item_missing_item_is_none() -> None:
    transport = FakeTransport()
    transport.expect("GetItem", response={})
    resp = _client(transport, with_schema=False).get_item(GetItemRequest("notes", {"pk": Value.s("A")}))
    assert resp.item is None


def test_get_item_rejects_key_not_matching_schema() -> None:
    transport = FakeTransport()
    with pytest.raises(ValidationError):
        _client(transport).get_item(GetItemRequest("notes", {"pk": Value.s("A")}))
    assert transport.calls == []


def test_get_item_rejects_projection_mixing() -> None:
    transport = FakeTransport()
    with pytest.raises(ValidationError):
        _client(transport, with_schema=False).get_item(
            GetItemRequest(
                "notes",
                {"pk": Value.s("A")},
                attributes_to_get=("a",),
                projection_expression="a",
            )
        )
    assert transport.calls == []


def test_query_requires_hash_key_equality() -> None:
    transport = FakeTransport()
    client = _client(transport, with_schema=False)

    with pytest.raises(ValidationError, match="EQ condition"):
        client.query(QueryRequest("notes", {"sk": Condition.gt(Value.n(1))}))
    with pytest.raises(ValidationError):
        client.query(QueryRequest("notes", {}))
    assert transport.calls == []


def test_query_with_schema_checks_hash_attribute() -> None:
    transport = FakeTransport()
    client = _client(transport)

    with pytest.raises(ValidationError, match="hash key pk"):
        client.query(QueryRequest("notes", {"sk": Condition.eq(Value.n(1))}))
    with pytest.raises(ValidationError, match="key attributes"):
        client.query(QueryRequest("notes", {"pk": Condition.eq(Value.s("A")), "body": Condition.eq(Value.s("x"))}))
    with pytest.raises(ValidationError, match="not a valid key condition operator"):
        client.query(QueryRequest("notes", {"pk": Condition.eq(Value.s("A")), "sk": Condition.ne(Value.n(1))}))
    assert transport.calls == []


def test_query_rejects_consistent_read_on_global_index() -> None:
    transport = FakeTransport()
    with pytest.raises(ValidationError, match="global secondary index"):
        _client(transport).query(
            QueryRequest("notes", {"owner": Condition.eq(Value.s("u1"))}, index_name="by-owner", consistent_read=True)
        )
    assert transport.calls == []


def test_query_on_local_index_allows_consistent_read() -> None:
    transport = FakeTransport()
    transport.expect("Query", {"IndexName": "by-created", "ConsistentRead": True}, response={"Items": [], "Count": 0})
    resp = _client(transport).query(
        QueryRequest("notes", {"pk": Condition.eq(Value.s("A"))}, index_name="by-created", consistent_read=True)
    )
    assert resp.items == ()
    assert not resp.has_more


def test_query_pagination_echoes_cursor_unmodified() -> None:
    cursor = {"pk": {"S": "A"}, "sk": {"N": "2.50"}}
    transport = FakeTransport()
    transport.expect(
        "Query",
        lambda req: _assert_absent(req, "ExclusiveStartKey"),
        response={"Items": [_item("A", 1)], "Count": 1, "ScannedCount": 1, "LastEvaluatedKey": cursor},
    )
    transport.expect(
        "Query",
        {"ExclusiveStartKey": cursor, "KeyConditions": ANY},
        response={"Items": [_item("A", 3)], "Count": 1, "ScannedCount": 1},
    )

    request = QueryRequest("notes", {"pk": Condition.eq(Value.s("A"))}, limit=1)
    pages = list(_client(transport).query_pages(request))

    assert [len(p.items) for p in pages] == [1, 1]
    assert pages[0].last_evaluated_key == {"pk": Value.s("A"), "sk": Value.n("2.50")}
    assert pages[-1].last_evaluated_key is None
    transport.assert_no_pending()


def test_query_empty_page_with_cursor_is_rejected() -> None:
    transport = FakeTransport()
    transport.expect("Query", response={"Items": [], "Count": 0, "LastEvaluatedKey": {"pk": {"S": "A"}}})

    with pytest.raises(MalformedResponseError):
        _client(transport, with_schema=False).query(QueryRequest("notes", {"pk": Condition.eq(Value.s("A"))}))


def test_filtered_query_may_return_empty_page_with_cursor() -> None:
    transport = FakeTransport()
    transport.expect(
        "Query",
        {"FilterExpression": "#s = :s"},
        response={"Items": [], "Count": 0, "ScannedCount": 10, "LastEvaluatedKey": {"pk": {"S": "A"}}},
    )

    resp = _client(transport, with_schema=False).query(
        QueryRequest(
            "notes",
            {"pk": Condition.eq(Value.s("A"))},
            filter_expression="#s = :s",
            expression_attribute_names={"#s": "status"},
            expression_attribute_values={":s": Value.s("open")},
        )
    )
    assert resp.count == 0
    assert resp.scanned_count == 10
    assert resp.has_more


def test_query_count_mismatch_is_malformed() -> None:
    transport = FakeTransport()
    transport.expect("Query", response={"Items": [_item("A", 1)], "Count": 2})
    with pytest.raises(MalformedResponseError):
        _client(transport, with_schema=False).query(QueryRequest("notes", {"pk": Condition.eq(Value.s("A"))}))


def test_select_count_returns_no_items() -> None:
    transport = FakeTransport()
    transport.expect("Query", {"Select": "COUNT"}, response={"Count": 4, "ScannedCount": 4})
    resp = _client(transport, with_schema=False).query(
        QueryRequest("notes", {"pk": Condition.eq(Value.s("A"))}, select="COUNT")
    )
    assert resp.count == 4
    assert resp.items == ()


def test_query_rejects_legacy_and_expression_filters_together() -> None:
    transport = FakeTransport()
    with pytest.raises(ValidationError):
        _client(transport, with_schema=False).query(
            QueryRequest(
                "notes",
                {"pk": Condition.eq(Value.s("A"))},
                query_filter={"status": Condition.eq(Value.s("open"))},
                filter_expression="attribute_exists(body)",
            )
        )
    assert transport.calls == []


def test_scan_pages_loop_through_empty_pages() -> None:
    transport = FakeTransport()
    transport.expect(
        "Scan",
        response={"Items": [_item("A", 1)], "Count": 1, "ScannedCount": 5, "LastEvaluatedKey": _item("A", 5)},
    )
    transport.expect(
        "Scan",
        {"ExclusiveStartKey": _item("A", 5)},
        response={"Items": [], "Count": 0, "ScannedCount": 5, "LastEvaluatedKey": _item("B", 2)},
    )
    transport.expect(
        "Scan",
        {"ExclusiveStartKey": _item("B", 2)},
        response={"Items": [_item("C", 1)], "Count": 1, "ScannedCount": 3},
    )

    request = ScanRequest("notes", scan_filter={"sk": Condition.eq(Value.n(1))})
    pages = list(_client(transport).scan_pages(request))

    assert [p.count for p in pages] == [1, 0, 1]
    assert [item["pk"] for page in pages for item in page.items] == [Value.s("A"), Value.s("C")]
    transport.assert_no_pending()


@pytest.mark.parametrize(
    "request_",
    [
        ScanRequest("notes", segment=0),
        ScanRequest("notes", segment=2, total_segments=2),
        ScanRequest("notes", segment=0, total_segments=0),
        ScanRequest("notes", limit=0),
        ScanRequest("notes", select="EVERYTHING"),
        ScanRequest("notes", select="SPECIFIC_ATTRIBUTES"),
        ScanRequest("notes", select="ALL_PROJECTED_ATTRIBUTES"),
        ScanRequest("notes", index_name="by-owner", consistent_read=True),
        ScanRequest("n"),
    ],
)
def test_scan_request_validation(request_: ScanRequest) -> None:
    transport = FakeTransport()
    with pytest.raises(ValidationError):
        _client(transport).scan(request_)
    assert transport.calls == []


def test_parallel_scan_segment_is_sent() -> None:
    transport = FakeTransport()
    transport.expect("Scan", {"Segment": 1, "TotalSegments": 4}, response={"Items": [], "Count": 0})
    _client(transport).scan(ScanRequest("notes", segment=1, total_segments=4))
    transport.assert_no_pending()


def _assert_absent(request: object, key: str) -> None:
    assert isinstance(request, dict)
    assert key not in request


@pytest.mark.parametrize("with_schema", [True, False])
def test_get_item_rejects_plain_python_key_values(with_schema: bool) -> None:
    transport = FakeTransport()
    key = {"pk": "A", "sk": 1}
    with pytest.raises(InvalidValueError, match="pk: expected Value, got str"):
        _client(transport, with_schema=with_schema).get_item(GetItemRequest("notes", key))  # type: ignore[arg-type]
    assert transport.calls == []
