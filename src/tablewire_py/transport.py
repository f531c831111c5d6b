from __future__ import annotations

import logging
import time
from typing import Any, Protocol

import boto3
import botocore.exceptions
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.config import Config
from botocore.httpsession import URLLib3Session

from .contract import target_header
from .errors import CancelledError, TransportFailure

log = logging.getLogger(__name__)

SIGNING_NAME = "dynamodb"
CONTENT_TYPE = "application/x-amz-json-1.0"


class Transport(Protocol):
    """Signs and sends one operation.

    Returns the raw response body. Raises ``TransportFailure`` for non-2xx
    responses and network failures, and ``CancelledError`` when ``deadline``
    (a ``time.monotonic()`` value) has passed.
    """

    def send(self, operation: str, body: bytes, *, deadline: float | None = None) -> bytes: ...


def _check_deadline(operation: str, deadline: float | None) -> None:
    if deadline is not None and time.monotonic() >= deadline:
        raise CancelledError(f"{operation}: deadline exceeded")


class BotocoreTransport:
    def __init__(
        self,
        endpoint_url: str,
        region: str,
        *,
        credentials: Any | None = None,
        session: Any | None = None,
        config: Config | None = None,
    ) -> None:
        self._endpoint_url = endpoint_url.rstrip("/") + "/"
        self._region = region
        self._credentials = credentials
        self._session = session
        cfg = config or Config()
        self._connect_timeout = float(cfg.connect_timeout)
        self._read_timeout = float(cfg.read_timeout)
        self._http = URLLib3Session(
            timeout=(self._connect_timeout, self._read_timeout),
            max_pool_connections=cfg.max_pool_connections,
        )

    @property
    def endpoint_url(self) -> str:
        return self._endpoint_url

    @property
    def region(self) -> str:
        return self._region

    def _resolve_credentials(self) -> Any:
        if self._credentials is None:
            sess = self._session or boto3.session.Session(region_name=self._region)
            credentials = sess.get_credentials()
            if credentials is None:
                raise botocore.exceptions.NoCredentialsError()
            self._credentials = credentials
        return self._credentials

    def _signed_request(self, operation: str, body: bytes) -> Any:
        request = AWSRequest(
            method="POST",
            url=self._endpoint_url,
            data=body,
            headers={
                "Content-Type": CONTENT_TYPE,
                "X-Amz-Target": target_header(operation),
            },
        )
        SigV4Auth(self._resolve_credentials(), SIGNING_NAME, self._region).add_auth(request)
        return request.prepare()

    def _http_for(self, deadline: float | None) -> tuple[URLLib3Session, bool]:
        if deadline is None:
            return self._http, False
        remaining = max(deadline - time.monotonic(), 0.001)
        if remaining >= self._read_timeout:
            return self._http, False
        # socket timeouts capped at what is left of the deadline
        http = URLLib3Session(timeout=(min(self._connect_timeout, remaining), remaining), max_pool_connections=1)
        return http, True

    def send(self, operation: str, body: bytes, *, deadline: float | None = None) -> bytes:
        _check_deadline(operation, deadline)
        prepared = self._signed_request(operation, body)
        http, bounded = self._http_for(deadline)
        try:
            response = http.send(prepared)
        except (botocore.exceptions.ConnectTimeoutError, botocore.exceptions.ReadTimeoutError) as err:
            raise CancelledError(f"{operation}: {err}") from err
        except (botocore.exceptions.HTTPClientError, botocore.exceptions.ConnectionError) as err:
            log.debug("%s transport error: %s", operation, err)
            raise TransportFailure(status_code=None, message=f"{operation}: {err}") from err
        finally:
            if bounded:
                http.close()

        _check_deadline(operation, deadline)
        content = response.content or b""
        if response.status_code >= 300:
            raise TransportFailure(status_code=response.status_code, body=content)
        return content

    def close(self) -> None:
        self._http.close()


__all__ = ["BotocoreTransport", "Transport"]
