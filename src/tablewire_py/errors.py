from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class TablewireError(Exception):
    def __init__(
        self,
        message: str = "",
        *,
        code: str | None = None,
        status_code: int | None = None,
        body: bytes | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.body = body


class ValidationError(TablewireError):
    pass


class InvalidValueError(ValidationError):
    pass


class ConditionalCheckFailedError(TablewireError):
    pass


class ResourceNotFoundError(TablewireError):
    pass


class ResourceInUseError(TablewireError):
    pass


class ProvisionedThroughputExceededError(TablewireError):
    def __init__(
        self,
        message: str = "",
        *,
        unprocessed: Mapping[str, Any] | None = None,
        code: str | None = None,
        status_code: int | None = None,
        body: bytes | None = None,
    ) -> None:
        super().__init__(message, code=code, status_code=status_code, body=body)
        self.unprocessed = unprocessed


class DecodeError(TablewireError):
    pass


class MalformedValueError(DecodeError):
    pass


class MalformedResponseError(DecodeError):
    pass


class TransportFailure(TablewireError):
    def __init__(self, *, status_code: int | None, body: bytes = b"", message: str = "") -> None:
        super().__init__(
            message or f"transport failure (status={status_code})",
            status_code=status_code,
            body=body,
        )


class CancelledError(TablewireError):
    pass


class AwsError(TablewireError):
    def __init__(
        self,
        *,
        code: str,
        message: str,
        status_code: int | None = None,
        body: bytes | None = None,
    ) -> None:
        super().__init__(f"{code}: {message}", code=code, status_code=status_code, body=body)
        self.message = message
