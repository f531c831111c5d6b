from __future__ import annotations

import pytest

from tablewire_py import (
    AttributeValueUpdate,
    Client,
    ConditionalCheckFailedError,
    DeleteItemRequest,
    ExpectedAttributeValue,
    InvalidValueError,
    KeySchema,
    PutItemRequest,
    TableSchema,
    UpdateItemRequest,
    ValidationError,
    Value,
)
from tablewire_py.mocks import FakeTransport
from tablewire_py.testkit import service_error

SCHEMA = TableSchema(key_schema=KeySchema.of("pk"))
KEY = {"pk": Value.s("A")}


def _client(transport: FakeTransport) -> Client:
    return Client(transport, schemas={"notes": SCHEMA})


def test_put_item_sends_item_and_condition() -> None:
    transport = FakeTransport()
    transport.expect(
        "PutItem",
        {
            "TableName": "notes",
            "Item": {"pk": {"S": "A"}, "n": {"N": "1"}},
            "ConditionExpression": "attribute_not_exists(#pk)",
            "ExpressionAttributeNames": {"#pk": "pk"},
        },
        response={},
    )

    resp = _client(transport).put_item(
        PutItemRequest(
            "notes",
            {"pk": Value.s("A"), "n": Value.n(1)},
            condition_expression="attribute_not_exists(#pk)",
            expression_attribute_names={"#pk": "pk"},
        )
    )
    assert resp.attributes is None
    transport.assert_no_pending()


def test_conditional_put_failure_is_conditional_check_failed() -> None:
    transport = FakeTransport()
    transport.expect(
        "PutItem",
        error=service_error("ConditionalCheckFailedException", "The conditional request failed"),
    )

    with pytest.raises(ConditionalCheckFailedError) as exc:
        _client(transport).put_item(
            PutItemRequest(
                "notes",
                {"pk": Value.s("A"), "body": Value.s("new")},
                condition_expression="attribute_exists(body)",
            )
        )
    assert exc.value.code == "ConditionalCheckFailedException"
    assert exc.value.status_code == 400


def test_put_item_requires_non_empty_item_and_key_attributes() -> None:
    transport = FakeTransport()
    client = _client(transport)
    with pytest.raises(ValidationError):
        client.put_item(PutItemRequest("notes", {}))
    with pytest.raises(ValidationError, match="missing key attribute"):
        client.put_item(PutItemRequest("notes", {"other": Value.s("x")}))
    assert transport.calls == []


def test_put_item_rejects_expected_with_condition_expression() -> None:
    transport = FakeTransport()
    with pytest.raises(ValidationError):
        _client(transport).put_item(
            PutItemRequest(
                "notes",
                {"pk": Value.s("A")},
                expected={"pk": ExpectedAttributeValue.absent()},
                condition_expression="attribute_not_exists(pk)",
            )
        )
    assert transport.calls == []


def test_put_item_legacy_expected_wire_shape() -> None:
    transport = FakeTransport()
    transport.expect(
        "PutItem",
        {"Expected": {"pk": {"Exists": False}}, "ReturnValues": "ALL_OLD"},
        response={"Attributes": {"pk": {"S": "A"}, "v": {"N": "1"}}},
    )
    resp = _client(transport).put_item(
        PutItemRequest(
            "notes",
            {"pk": Value.s("A")},
            expected={"pk": ExpectedAttributeValue.absent()},
            return_values="ALL_OLD",
        )
    )
    assert resp.attributes == {"pk": Value.s("A"), "v": Value.n(1)}


def test_put_item_return_values_restricted() -> None:
    transport = FakeTransport()
    with pytest.raises(ValidationError):
        _client(transport).put_item(PutItemRequest("notes", {"pk": Value.s("A")}, return_values="ALL_NEW"))


def test_attributes_dropped_when_not_requested() -> None:
    transport = FakeTransport()
    transport.expect("DeleteItem", response={"Attributes": {"pk": {"S": "A"}}})
    resp = _client(transport).delete_item(DeleteItemRequest("notes", KEY, return_values="NONE"))
    assert resp.attributes is None


def test_delete_missing_item_is_idempotent() -> None:
    transport = FakeTransport()
    transport.expect("DeleteItem", {"TableName": "notes", "Key": {"pk": {"S": "missing"}}}, response={})

    resp = _client(transport).delete_item(DeleteItemRequest("notes", {"pk": Value.s("missing")}))

    assert resp.attributes is None
    assert resp.consumed_capacity is None
    transport.assert_no_pending()


def test_delete_item_reports_capacity_and_metrics() -> None:
    transport = FakeTransport()
    transport.expect(
        "DeleteItem",
        response={
            "ConsumedCapacity": {"TableName": "notes", "CapacityUnits": 1.0},
            "ItemCollectionMetrics": {"ItemCollectionKey": {"pk": {"S": "A"}}, "SizeEstimateRangeGB": [0.0, 1.0]},
        },
    )
    resp = _client(transport).delete_item(
        DeleteItemRequest("notes", KEY, return_consumed_capacity="TOTAL", return_item_collection_metrics="SIZE")
    )
    assert resp.consumed_capacity is not None
    assert resp.consumed_capacity.capacity_units == 1.0
    assert resp.item_collection_metrics is not None
    assert resp.item_collection_metrics.size_estimate_range_gb == (0.0, 1.0)


def test_update_item_attribute_updates_wire_shape() -> None:
    transport = FakeTransport()
    transport.expect(
        "UpdateItem",
        {
            "AttributeUpdates": {
                "count": {"Action": "ADD", "Value": {"N": "1"}},
                "tags": {"Action": "DELETE", "Value": {"SS": ["old"]}},
                "body": {"Action": "DELETE"},
                "title": {"Action": "PUT", "Value": {"S": "t"}},
            },
            "ReturnValues": "UPDATED_NEW",
        },
        response={"Attributes": {"count": {"N": "2"}}},
    )

    resp = _client(transport).update_item(
        UpdateItemRequest(
            "notes",
            KEY,
            attribute_updates={
                "count": AttributeValueUpdate.add(Value.n(1)),
                "tags": AttributeValueUpdate.delete(Value.ss(["old"])),
                "body": AttributeValueUpdate.delete(),
                "title": AttributeValueUpdate.put(Value.s("t")),
            },
            return_values="UPDATED_NEW",
        )
    )
    assert resp.attributes == {"count": Value.n(2)}


@pytest.mark.parametrize(
    "update",
    [
        AttributeValueUpdate("PUT"),
        AttributeValueUpdate.add(Value.s("x")),
        AttributeValueUpdate("ADD"),
        AttributeValueUpdate.delete(Value.s("x")),
        AttributeValueUpdate("REPLACE", Value.s("x")),  # type: ignore[arg-type]
    ],
)
def test_update_actions_are_validated(update: AttributeValueUpdate) -> None:
    transport = FakeTransport()
    with pytest.raises(ValidationError):
        _client(transport).update_item(UpdateItemRequest("notes", KEY, attribute_updates={"a": update}))
    assert transport.calls == []


def test_update_item_rejects_key_attribute_updates() -> None:
    transport = FakeTransport()
    with pytest.raises(ValidationError, match="key attributes cannot be updated"):
        _client(transport).update_item(
            UpdateItemRequest("notes", KEY, attribute_updates={"pk": AttributeValueUpdate.put(Value.s("B"))})
        )


def test_update_item_rejects_mixed_update_styles() -> None:
    transport = FakeTransport()
    with pytest.raises(ValidationError):
        _client(transport).update_item(
            UpdateItemRequest(
                "notes",
                KEY,
                attribute_updates={"a": AttributeValueUpdate.put(Value.s("x"))},
                update_expression="SET a = :a",
                expression_attribute_values={":a": Value.s("x")},
            )
        )


def test_update_expression_placeholders_are_checked_together_with_condition() -> None:
    transport = FakeTransport()
    transport.expect("UpdateItem", {"UpdateExpression": "SET #c = :n", "ConditionExpression": "#c < :max"})
    _client(transport).update_item(
        UpdateItemRequest(
            "notes",
            KEY,
            update_expression="SET #c = :n",
            condition_expression="#c < :max",
            expression_attribute_names={"#c": "count"},
            expression_attribute_values={":n": Value.n(2), ":max": Value.n(10)},
        )
    )
    transport.assert_no_pending()

    with pytest.raises(ValidationError, match="unused"):
        _client(FakeTransport()).update_item(
            UpdateItemRequest(
                "notes",
                KEY,
                update_expression="SET #c = :n",
                expression_attribute_names={"#c": "count"},
                expression_attribute_values={":n": Value.n(2), ":max": Value.n(10)},
            )
        )


@pytest.mark.parametrize(
    "request_",
    [
        PutItemRequest("notes", {"pk": "A"}),  # type: ignore[dict-item]
        PutItemRequest("notes", {"pk": Value.s("A"), "n": 1}),  # type: ignore[dict-item]
        DeleteItemRequest("notes", {"pk": "A"}),  # type: ignore[dict-item]
        UpdateItemRequest("notes", {"pk": "A"}),  # type: ignore[dict-item]
        UpdateItemRequest("notes", KEY, attribute_updates={"a": AttributeValueUpdate("PUT", "x")}),  # type: ignore[arg-type]
        UpdateItemRequest(
            "notes",
            KEY,
            update_expression="SET a = :v",
            expression_attribute_values={":v": "x"},  # type: ignore[dict-item]
        ),
    ],
)
def test_writes_reject_plain_python_values(request_: object) -> None:
    transport = FakeTransport()
    with pytest.raises(InvalidValueError, match="expected Value, got"):
        Client(transport).call(type(request_).__name__.removesuffix("Request"), request_)
    with pytest.raises(InvalidValueError):
        _client(transport).call(type(request_).__name__.removesuffix("Request"), request_)
    assert transport.calls == []
