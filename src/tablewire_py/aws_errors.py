from __future__ import annotations

import json

from .errors import (
    AwsError,
    ConditionalCheckFailedError,
    ProvisionedThroughputExceededError,
    ResourceInUseError,
    ResourceNotFoundError,
    TablewireError,
    TransportFailure,
    ValidationError,
)

_ERROR_CLASSES: dict[str, type[TablewireError]] = {
    "ConditionalCheckFailedException": ConditionalCheckFailedError,
    "ValidationException": ValidationError,
    "ResourceNotFoundException": ResourceNotFoundError,
    "ResourceInUseException": ResourceInUseError,
    "ProvisionedThroughputExceededException": ProvisionedThroughputExceededError,
}


def parse_error_body(body: bytes) -> tuple[str, str] | None:
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None

    code = str(data.get("__type") or "")
    if "#" in code:
        code = code.rsplit("#", 1)[1]
    if not code:
        return None

    message = str(data.get("message") or data.get("Message") or "")
    return code, message


def classify_failure(failure: TransportFailure) -> TablewireError:
    parsed = parse_error_body(failure.body or b"")
    if parsed is None:
        return failure

    code, message = parsed
    cls = _ERROR_CLASSES.get(code)
    if cls is None:
        return AwsError(code=code, message=message, status_code=failure.status_code, body=failure.body)

    return cls(message or code, code=code, status_code=failure.status_code, body=failure.body)
