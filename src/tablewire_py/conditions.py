from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal

from .errors import MalformedValueError, ValidationError
from .validation import CONDITIONAL_OPERATORS, validate_attribute_name, validate_choice
from .values import SCALAR_TAGS, Value, decode_value, encode_value, require_value

type ComparisonOperator = Literal[
    "EQ",
    "NE",
    "LE",
    "LT",
    "GE",
    "GT",
    "NOT_NULL",
    "NULL",
    "CONTAINS",
    "NOT_CONTAINS",
    "BEGINS_WITH",
    "IN",
    "BETWEEN",
]


@dataclass(frozen=True)
class _Arity:
    min_operands: int
    max_operands: int | None
    types: frozenset[str] | None
    same_type: bool = False


_ARITY: dict[str, _Arity] = {
    "EQ": _Arity(1, 1, None),
    "NE": _Arity(1, 1, None),
    "LE": _Arity(1, 1, SCALAR_TAGS),
    "LT": _Arity(1, 1, SCALAR_TAGS),
    "GE": _Arity(1, 1, SCALAR_TAGS),
    "GT": _Arity(1, 1, SCALAR_TAGS),
    "NOT_NULL": _Arity(0, 0, None),
    "NULL": _Arity(0, 0, None),
    "CONTAINS": _Arity(1, 1, SCALAR_TAGS),
    "NOT_CONTAINS": _Arity(1, 1, SCALAR_TAGS),
    "BEGINS_WITH": _Arity(1, 1, frozenset({"S", "B"})),
    "IN": _Arity(1, None, SCALAR_TAGS, same_type=True),
    "BETWEEN": _Arity(2, 2, SCALAR_TAGS, same_type=True),
}

KEY_CONDITION_OPERATORS: frozenset[str] = frozenset({"EQ", "LE", "LT", "GE", "GT", "BEGINS_WITH", "BETWEEN"})


def validate_operands(operator: str, operands: Sequence[Value], *, attribute: str) -> None:
    arity = _ARITY.get(operator)
    if arity is None:
        raise ValidationError(f"{attribute}: unsupported comparison operator {operator!r}")

    count = len(operands)
    if count < arity.min_operands or (arity.max_operands is not None and count > arity.max_operands):
        expected = (
            str(arity.min_operands)
            if arity.min_operands == arity.max_operands
            else f"at least {arity.min_operands}"
        )
        raise ValidationError(f"{attribute}: {operator} requires {expected} operand(s), got {count}")

    for operand in operands:
        if not isinstance(operand, Value):
            raise ValidationError(f"{attribute}: {operator} operands must be Value instances")
        if arity.types is not None and operand.tag not in arity.types:
            raise ValidationError(
                f"{attribute}: {operator} does not accept operands of type {operand.tag}"
            )
        operand.validate()

    if arity.same_type and len({o.tag for o in operands}) > 1:
        raise ValidationError(f"{attribute}: {operator} operands must all share one type")

    if operator == "BETWEEN":
        low, high = operands
        if _greater(low, high):
            raise ValidationError(f"{attribute}: BETWEEN lower bound must not exceed upper bound")


def _greater(a: Value, b: Value) -> bool:
    if a.tag == "N":
        return Decimal(a.payload) > Decimal(b.payload)
    if a.tag == "S":
        return a.payload.encode("utf-8") > b.payload.encode("utf-8")
    return bool(a.payload > b.payload)


def _encode_operands(operands: Iterable[Value]) -> list[dict[str, Any]]:
    return [encode_value(v) for v in operands]


def _decode_operands(raw: Any) -> tuple[Value, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise MalformedValueError("AttributeValueList must be a list")
    return tuple(decode_value(v) for v in raw)


@dataclass(frozen=True)
class Condition:
    comparison_operator: ComparisonOperator
    attribute_value_list: tuple[Value, ...] = ()

    @staticmethod
    def eq(value: Value) -> Condition:
        return Condition("EQ", (value,))

    @staticmethod
    def ne(value: Value) -> Condition:
        return Condition("NE", (value,))

    @staticmethod
    def le(value: Value) -> Condition:
        return Condition("LE", (value,))

    @staticmethod
    def lt(value: Value) -> Condition:
        return Condition("LT", (value,))

    @staticmethod
    def ge(value: Value) -> Condition:
        return Condition("GE", (value,))

    @staticmethod
    def gt(value: Value) -> Condition:
        return Condition("GT", (value,))

    @staticmethod
    def between(low: Value, high: Value) -> Condition:
        return Condition("BETWEEN", (low, high))

    @staticmethod
    def begins_with(prefix: Value) -> Condition:
        return Condition("BEGINS_WITH", (prefix,))

    @staticmethod
    def contains(value: Value) -> Condition:
        return Condition("CONTAINS", (value,))

    @staticmethod
    def not_contains(value: Value) -> Condition:
        return Condition("NOT_CONTAINS", (value,))

    @staticmethod
    def in_(*values: Value) -> Condition:
        return Condition("IN", tuple(values))

    @staticmethod
    def not_null() -> Condition:
        return Condition("NOT_NULL")

    @staticmethod
    def null() -> Condition:
        return Condition("NULL")

    def validate(self, *, attribute: str) -> None:
        validate_operands(self.comparison_operator, self.attribute_value_list, attribute=attribute)

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ComparisonOperator": self.comparison_operator}
        if self.attribute_value_list:
            out["AttributeValueList"] = _encode_operands(self.attribute_value_list)
        return out

    @staticmethod
    def from_wire(data: Mapping[str, Any]) -> Condition:
        return Condition(
            comparison_operator=str(data.get("ComparisonOperator", "")),  # type: ignore[arg-type]
            attribute_value_list=_decode_operands(data.get("AttributeValueList")),
        )


@dataclass(frozen=True)
class ExpectedAttributeValue:
    """Legacy per-attribute write condition.

    Either the ``Value``/``Exists`` form (equality or presence check) or the
    ``ComparisonOperator``/``AttributeValueList`` form, never both.
    """

    value: Value | None = None
    exists: bool | None = None
    comparison_operator: ComparisonOperator | None = None
    attribute_value_list: tuple[Value, ...] = ()

    @staticmethod
    def equals(value: Value) -> ExpectedAttributeValue:
        return ExpectedAttributeValue(value=value, exists=True)

    @staticmethod
    def absent() -> ExpectedAttributeValue:
        return ExpectedAttributeValue(exists=False)

    @staticmethod
    def matches(condition: Condition) -> ExpectedAttributeValue:
        return ExpectedAttributeValue(
            comparison_operator=condition.comparison_operator,
            attribute_value_list=condition.attribute_value_list,
        )

    def validate(self, *, attribute: str) -> None:
        if self.comparison_operator is not None:
            if self.value is not None or self.exists is not None:
                raise ValidationError(
                    f"{attribute}: Value/Exists cannot be combined with ComparisonOperator"
                )
            validate_operands(self.comparison_operator, self.attribute_value_list, attribute=attribute)
            return

        if self.attribute_value_list:
            raise ValidationError(f"{attribute}: AttributeValueList requires ComparisonOperator")
        if self.exists is False:
            if self.value is not None:
                raise ValidationError(f"{attribute}: Value cannot be used when Exists is false")
            return
        if self.value is None:
            raise ValidationError(f"{attribute}: Value is required unless Exists is false")
        require_value(attribute, self.value).validate()

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.value is not None:
            out["Value"] = encode_value(self.value)
        if self.exists is not None:
            out["Exists"] = self.exists
        if self.comparison_operator is not None:
            out["ComparisonOperator"] = self.comparison_operator
        if self.attribute_value_list:
            out["AttributeValueList"] = _encode_operands(self.attribute_value_list)
        return out


def validate_condition_map(
    conditions: Mapping[str, Condition] | Mapping[str, ExpectedAttributeValue] | None,
    *,
    conditional_operator: str | None,
    field: str,
) -> None:
    if conditions is None:
        if conditional_operator is not None:
            raise ValidationError(f"ConditionalOperator requires {field}")
        return

    if not conditions:
        raise ValidationError(f"{field} must not be empty when provided")

    validate_choice("ConditionalOperator", conditional_operator, CONDITIONAL_OPERATORS)
    if conditional_operator is not None and len(conditions) < 2:
        raise ValidationError(f"ConditionalOperator requires at least two {field} entries")

    for attribute, condition in conditions.items():
        validate_attribute_name(attribute)
        condition.validate(attribute=attribute)


def encode_condition_map(
    conditions: Mapping[str, Condition] | Mapping[str, ExpectedAttributeValue],
) -> dict[str, Any]:
    return {name: c.to_wire() for name, c in conditions.items()}


_NAME_TOKEN = re.compile(r"#[A-Za-z0-9_]+")
_VALUE_TOKEN = re.compile(r":[A-Za-z0-9_]+")


def check_expression_placeholders(
    expressions: Sequence[str | None],
    *,
    names: Mapping[str, str] | None,
    values: Mapping[str, Value] | None,
) -> None:
    used_names: set[str] = set()
    used_values: set[str] = set()
    for expr in expressions:
        if expr is None:
            continue
        used_names.update(_NAME_TOKEN.findall(expr))
        used_values.update(_VALUE_TOKEN.findall(expr))

    defined_names = set(names or {})
    defined_values = set(values or {})

    if names is not None and not names:
        raise ValidationError("ExpressionAttributeNames must not be empty when provided")
    if values is not None and not values:
        raise ValidationError("ExpressionAttributeValues must not be empty when provided")

    bad_names = sorted(n for n in defined_names if not n.startswith("#"))
    if bad_names:
        raise ValidationError(f"ExpressionAttributeNames keys must start with '#': {bad_names}")
    bad_values = sorted(v for v in defined_values if not v.startswith(":"))
    if bad_values:
        raise ValidationError(f"ExpressionAttributeValues keys must start with ':': {bad_values}")

    missing_names = sorted(used_names - defined_names)
    if missing_names:
        raise ValidationError(f"undefined expression attribute names: {missing_names}")
    missing_values = sorted(used_values - defined_values)
    if missing_values:
        raise ValidationError(f"undefined expression attribute values: {missing_values}")

    unused_names = sorted(defined_names - used_names)
    if unused_names:
        raise ValidationError(f"unused expression attribute names: {unused_names}")
    unused_values = sorted(defined_values - used_values)
    if unused_values:
        raise ValidationError(f"unused expression attribute values: {unused_values}")

    for placeholder, value in (values or {}).items():
        require_value(placeholder, value).validate()


def encode_expression_values(values: Mapping[str, Value] | None) -> dict[str, Any] | None:
    if values is None:
        return None
    return {k: encode_value(v) for k, v in values.items()}
