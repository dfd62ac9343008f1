"""Stable Diffusion WebUI async client, httpx-based."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from sdwebui.client._http import HttpTransport
from sdwebui.client.checkpoints import CheckpointAPI
from sdwebui.client.extras import ExtrasAPI
from sdwebui.client.generation import GenerationAPI
from sdwebui.client.info import InfoAPI
from sdwebui.client.models import GenerationResponse, HealthCheckResult
from sdwebui.client.options import OptionsAPI
from sdwebui.client.params import ExtraSingleImageParams, Img2ImgParams, Txt2ImgParams
from sdwebui.client.progress import ProgressAPI
from sdwebui.client.retry import RetryEngine, RetryPolicy
from sdwebui.client.util import save_images
from sdwebui.config import ClientOptions, Endpoints
from sdwebui.exceptions import ApiError

if TYPE_CHECKING:
    import asyncio

    import httpx

__all__ = [
    "ExtraSingleImageParams",
    "GenerationResponse",
    "HttpTransport",
    "Img2ImgParams",
    "RetryEngine",
    "RetryPolicy",
    "SDClient",
    "Txt2ImgParams",
    "save_images",
]

logger = logging.getLogger(__name__)


class SDClient:
    """Composite client for a Stable Diffusion WebUI instance.

    Usage::

        async with SDClient(ClientOptions(base_url="http://127.0.0.1:7860")) as c:
            await c.info.samplers()
            result = await c.generate.txt2img(Txt2ImgParams(prompt="a cat"))

    Pass ``http_client`` to share an existing ``httpx.AsyncClient``; it is
    closed by ``aclose()`` only if ``owns_http_client`` is true. Without one,
    the client creates and owns its own.
    """

    def __init__(
        self,
        options: ClientOptions | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        owns_http_client: bool = False,
        retry: RetryEngine | None = None,
    ) -> None:
        options = options or ClientOptions()
        if http_client is None:
            self._http = HttpTransport.create(options, retry=retry)
        else:
            self._http = HttpTransport(options, http_client, owns_client=owns_http_client, retry=retry)

        self.generate = GenerationAPI(self._http)
        self.checkpoints = CheckpointAPI(self._http)
        self.options = OptionsAPI(self._http)
        self.progress = ProgressAPI(self._http)
        self.info = InfoAPI(self._http)
        self.extras = ExtrasAPI(self._http)

    @property
    def transport(self) -> HttpTransport:
        return self._http

    async def ping(self, *, cancel: asyncio.Event | None = None) -> bool:
        """True if the API answers the sampler listing."""
        try:
            await self.info.samplers(cancel=cancel)
        except ApiError as e:
            logger.error("API is unavailable: %s", e)
            return False
        logger.info("API is available")
        return True

    async def health_check(self, *, cancel: asyncio.Event | None = None) -> HealthCheckResult:
        """Probe the API and report latency or the failure reason."""
        endpoint = Endpoints.SAMPLERS
        started = time.monotonic()
        try:
            await self.info.samplers(cancel=cancel)
        except ApiError as e:
            logger.warning("health check failed: %s", e)
            return HealthCheckResult.failure(str(e), endpoint=endpoint)
        return HealthCheckResult.success(time.monotonic() - started, endpoint=endpoint)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> SDClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()
