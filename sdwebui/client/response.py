"""Turn final HTTP responses into typed values or ApiError."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from sdwebui.client.sanitize import DEFAULT_MAX_LENGTH, sanitize_for_logging
from sdwebui.exceptions import ApiError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@lru_cache(maxsize=128)
def _adapter(response_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(response_type)


class ResponseHandler:
    """Reads a response body and either deserializes it or raises ApiError.

    Never retries; by the time a response gets here it is final.
    """

    def __init__(
        self,
        *,
        log: logging.Logger | None = None,
        detailed_logging: bool = False,
        max_log_length: int = DEFAULT_MAX_LENGTH,
    ) -> None:
        self._log = log or logger
        self.detailed_logging = detailed_logging
        self.max_log_length = max_log_length

    def handle(self, response: httpx.Response, endpoint: str, response_type: type[T] | Any) -> T:
        """Deserialize a successful response into ``response_type``."""
        content = response.text
        self._raise_for_status(response, endpoint, content)

        if self.detailed_logging:
            self._log.debug(
                "Successful response from %s: %s",
                endpoint,
                sanitize_for_logging(content, self.max_log_length),
            )

        try:
            payload = json.loads(content) if content.strip() else None
        except json.JSONDecodeError as exc:
            self._log.error("Error deserializing response from %s: %s", endpoint, exc)
            raise ApiError(f"Error deserializing response from {endpoint}") from exc

        if payload is None:
            self._log.error("Failed to deserialize response from %s: empty body", endpoint)
            raise ApiError(f"Failed to deserialize response from {endpoint}")

        try:
            result: T = _adapter(response_type).validate_python(payload)
        except ValidationError as exc:
            self._log.error("Error deserializing response from %s: %s", endpoint, exc)
            raise ApiError(f"Error deserializing response from {endpoint}") from exc
        return result

    def ensure_success(self, response: httpx.Response, endpoint: str) -> None:
        """Failure-path check for calls that expect no payload."""
        if not response.is_success:
            self._raise_for_status(response, endpoint, response.text)

    def _raise_for_status(self, response: httpx.Response, endpoint: str, content: str) -> None:
        if response.is_success:
            return
        self._log.error(
            "Unsuccessful response from %s. Status: %d, Body: %s",
            endpoint,
            response.status_code,
            content,
        )
        raise ApiError(
            f"API returned error for {endpoint}",
            status_code=response.status_code,
            response_body=content,
        )
