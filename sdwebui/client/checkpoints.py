"""Checkpoint (sd-model) endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sdwebui.client.models import SdModel, WebUIOptions
from sdwebui.config import Endpoints

if TYPE_CHECKING:
    import asyncio

    from sdwebui.client._http import HttpTransport

logger = logging.getLogger(__name__)


class CheckpointAPI:
    def __init__(self, http: HttpTransport) -> None:
        self._http = http

    async def available(self, *, cancel: asyncio.Event | None = None) -> list[SdModel]:
        """Checkpoints the WebUI can load."""
        models: list[SdModel] = await self._http.get(Endpoints.SD_MODELS, list[SdModel], cancel=cancel)
        logger.info("found %d model(s)", len(models))
        return models

    async def current(self, *, cancel: asyncio.Event | None = None) -> str:
        """Title of the active checkpoint, or ``"unknown"``."""
        options: WebUIOptions = await self._http.get(Endpoints.OPTIONS, WebUIOptions, cancel=cancel)
        return options.sd_model_checkpoint or "unknown"

    async def set(self, name: str, *, cancel: asyncio.Event | None = None) -> None:
        """Switch the active checkpoint. The WebUI loads it before answering."""
        if not name or not name.strip():
            raise ValueError("model name cannot be empty")
        logger.info("setting model: %s", name)
        await self._http.post_no_response(Endpoints.OPTIONS, WebUIOptions(sd_model_checkpoint=name), cancel=cancel)

    async def refresh(self, *, cancel: asyncio.Event | None = None) -> None:
        await self._http.post_no_response(Endpoints.REFRESH_CHECKPOINTS, cancel=cancel)
        logger.info("model list refreshed")
