"""HTTP transport layer wrapping httpx with retries and typed responses."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from pydantic import BaseModel

from sdwebui.client.response import ResponseHandler
from sdwebui.client.retry import RetryEngine
from sdwebui.client.sanitize import sanitize_for_logging
from sdwebui.exceptions import ApiError

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Awaitable, Callable

    from sdwebui.config import ClientOptions

logger = logging.getLogger(__name__)

T = TypeVar("T")

JSON_HEADERS = {"Content-Type": "application/json"}


def serialize_body(body: Any) -> str:
    """JSON-encode a request body.

    Pydantic models dump by alias with ``None`` fields dropped; params
    objects go through their ``to_body()``; anything else is sent as-is.
    """
    if isinstance(body, BaseModel):
        return body.model_dump_json(by_alias=True, exclude_none=True)
    if hasattr(body, "to_body"):
        return json.dumps(body.to_body())
    return json.dumps(body)


class HttpTransport:
    """Single entry point the API groups use to talk to the WebUI.

    Binds the retry engine and response handler to one ``httpx.AsyncClient``.
    Whether ``aclose()`` closes that client is fixed by ``owns_client`` at
    construction.
    """

    def __init__(
        self,
        options: ClientOptions,
        client: httpx.AsyncClient,
        *,
        owns_client: bool = False,
        log: logging.Logger | None = None,
        retry: RetryEngine | None = None,
    ) -> None:
        options.validate()
        self.options = options
        self._client = client
        self._owns_client = owns_client
        self._closed = False
        self._log = log or logger
        self._retry = retry or RetryEngine(options.retry_policy, log=self._log)
        self._handler = ResponseHandler(
            log=self._log,
            detailed_logging=options.detailed_logging,
            max_log_length=options.validation.max_json_log_length,
        )
        logger.debug("transport ready: %s", options.base_url)

    @classmethod
    def create(cls, options: ClientOptions, **kwargs: Any) -> HttpTransport:
        """Build a transport around a new httpx client that it owns."""
        options.validate()
        return cls(options, build_http_client(options), owns_client=True, **kwargs)

    @property
    def owns_client(self) -> bool:
        return self._owns_client

    async def get(
        self,
        endpoint: str,
        response_type: type[T] | Any,
        *,
        cancel: asyncio.Event | None = None,
    ) -> T:
        async def call() -> T:
            if self.options.detailed_logging:
                self._log.debug("GET request to %s", endpoint)
            response = await self._retry.execute(lambda: self._client.get(endpoint), endpoint, cancel=cancel)
            return self._handler.handle(response, endpoint, response_type)

        return await self._guard("GET", endpoint, call)

    async def post(
        self,
        endpoint: str,
        body: Any,
        response_type: type[T] | Any,
        *,
        cancel: asyncio.Event | None = None,
    ) -> T:
        async def call() -> T:
            content = self._encode("POST", endpoint, body)
            response = await self._retry.execute(
                lambda: self._client.post(endpoint, content=content, headers=JSON_HEADERS),
                endpoint,
                cancel=cancel,
            )
            return self._handler.handle(response, endpoint, response_type)

        return await self._guard("POST", endpoint, call)

    async def post_no_response(
        self,
        endpoint: str,
        body: Any = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> None:
        """POST with or without a body, expecting nothing back."""

        async def call() -> None:
            if body is None:
                if self.options.detailed_logging:
                    self._log.debug("POST request to %s without body", endpoint)
                operation = lambda: self._client.post(endpoint)  # noqa: E731
            else:
                content = self._encode("POST", endpoint, body)
                operation = lambda: self._client.post(endpoint, content=content, headers=JSON_HEADERS)  # noqa: E731
            response = await self._retry.execute(operation, endpoint, cancel=cancel)
            self._handler.ensure_success(response, endpoint)

        await self._guard("POST", endpoint, call)

    def _encode(self, verb: str, endpoint: str, body: Any) -> str:
        content = serialize_body(body)
        if self.options.detailed_logging:
            self._log.debug(
                "%s request to %s with body: %s",
                verb,
                endpoint,
                sanitize_for_logging(content, self.options.validation.max_json_log_length),
            )
        return content

    async def _guard(self, verb: str, endpoint: str, call: Callable[[], Awaitable[T]]) -> T:
        # CancelledError is a BaseException and passes through untouched.
        try:
            return await call()
        except ApiError:
            raise
        except Exception as exc:
            self._log.exception("Error executing %s request to %s", verb, endpoint)
            raise ApiError(f"Error executing {verb} request to {endpoint}") from exc

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            await self._client.aclose()
            logger.debug("transport closed")


def build_http_client(options: ClientOptions) -> httpx.AsyncClient:
    headers = {}
    if options.api_key:
        headers["Authorization"] = f"Bearer {options.api_key}"
    return httpx.AsyncClient(base_url=options.base_url, timeout=options.timeout, headers=headers)
