"""WebUI settings endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sdwebui.client.models import WebUIOptions
from sdwebui.config import Endpoints

if TYPE_CHECKING:
    import asyncio

    from sdwebui.client._http import HttpTransport

logger = logging.getLogger(__name__)


class OptionsAPI:
    def __init__(self, http: HttpTransport) -> None:
        self._http = http

    async def get(self, *, cancel: asyncio.Event | None = None) -> WebUIOptions:
        """Current server options."""
        result: WebUIOptions = await self._http.get(Endpoints.OPTIONS, WebUIOptions, cancel=cancel)
        return result

    async def set(self, options: WebUIOptions, *, cancel: asyncio.Event | None = None) -> None:
        """Apply the non-empty fields of ``options``."""
        logger.info("updating webui options")
        await self._http.post_no_response(Endpoints.OPTIONS, options, cancel=cancel)
