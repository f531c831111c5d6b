from __future__ import annotations

import re
from collections.abc import Collection

from .errors import ValidationError

MaxTableNameLength = 255
MinTableNameLength = 3
MaxAttributeNameLength = 65535
MaxKeyAttributeNameLength = 255
MaxExpressionLength = 4096

_NAME_RE = re.compile(r"^[a-zA-Z0-9_.-]+$")

RETURN_CONSUMED_CAPACITY = frozenset({"INDEXES", "TOTAL", "NONE"})
RETURN_ITEM_COLLECTION_METRICS = frozenset({"SIZE", "NONE"})
SELECT_VALUES = frozenset({"ALL_ATTRIBUTES", "ALL_PROJECTED_ATTRIBUTES", "SPECIFIC_ATTRIBUTES", "COUNT"})
CONDITIONAL_OPERATORS = frozenset({"AND", "OR"})


def validate_table_name(name: str) -> None:
    if not isinstance(name, str) or len(name) < MinTableNameLength or len(name) > MaxTableNameLength:
        raise ValidationError(f"table name length invalid: {name!r}")

    if _NAME_RE.match(name) is None:
        raise ValidationError(f"table name contains invalid characters: {name!r}")


def validate_index_name(name: str | None) -> None:
    if name is None:
        return

    if not isinstance(name, str) or len(name) < MinTableNameLength or len(name) > MaxTableNameLength:
        raise ValidationError(f"index name length invalid: {name!r}")

    if _NAME_RE.match(name) is None:
        raise ValidationError(f"index name contains invalid characters: {name!r}")


def validate_attribute_name(name: str, *, key: bool = False) -> None:
    limit = MaxKeyAttributeNameLength if key else MaxAttributeNameLength
    if not isinstance(name, str) or not name:
        raise ValidationError("attribute name cannot be empty")
    if len(name.encode("utf-8")) > limit:
        raise ValidationError(f"attribute name exceeds maximum length ({limit} bytes)")


def validate_expression(expression: str | None, *, field: str) -> None:
    if expression is None:
        return
    if not expression.strip():
        raise ValidationError(f"{field} cannot be empty")
    if len(expression) > MaxExpressionLength:
        raise ValidationError(f"{field} exceeds maximum length")


def validate_choice(field: str, value: str | None, allowed: Collection[str]) -> None:
    if value is None:
        return
    if value not in allowed:
        raise ValidationError(f"unsupported {field}: {value!r} (expected one of {sorted(allowed)})")


def validate_limit(limit: int | None, *, maximum: int | None = None) -> None:
    if limit is None:
        return
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ValidationError("limit must be > 0")
    if maximum is not None and limit > maximum:
        raise ValidationError(f"limit must be <= {maximum}")
