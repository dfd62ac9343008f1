"""Sampler, scheduler, upscaler and extra-network listing endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sdwebui.client.models import (
    Embedding,
    EmbeddingsResponse,
    LatentUpscaleMode,
    Lora,
    Sampler,
    Scheduler,
    Upscaler,
)
from sdwebui.config import Endpoints

if TYPE_CHECKING:
    import asyncio

    from sdwebui.client._http import HttpTransport

logger = logging.getLogger(__name__)


class InfoAPI:
    def __init__(self, http: HttpTransport) -> None:
        self._http = http

    async def samplers(self, *, cancel: asyncio.Event | None = None) -> list[str]:
        """Available sampler names."""
        samplers: list[Sampler] = await self._http.get(Endpoints.SAMPLERS, list[Sampler], cancel=cancel)
        names = [s.name for s in samplers if s.name]
        logger.info("found %d sampler(s)", len(names))
        return names

    async def schedulers(self, *, cancel: asyncio.Event | None = None) -> list[Scheduler]:
        result: list[Scheduler] = await self._http.get(Endpoints.SCHEDULERS, list[Scheduler], cancel=cancel)
        logger.info("found %d scheduler(s)", len(result))
        return result

    async def upscalers(self, *, cancel: asyncio.Event | None = None) -> list[Upscaler]:
        result: list[Upscaler] = await self._http.get(Endpoints.UPSCALERS, list[Upscaler], cancel=cancel)
        result = [u for u in result if u.name]
        logger.info("found %d upscaler(s)", len(result))
        return result

    async def latent_upscale_modes(self, *, cancel: asyncio.Event | None = None) -> list[LatentUpscaleMode]:
        result: list[LatentUpscaleMode] = await self._http.get(
            Endpoints.LATENT_UPSCALE_MODES, list[LatentUpscaleMode], cancel=cancel
        )
        logger.info("found %d latent upscale mode(s)", len(result))
        return result

    async def loras(self, *, cancel: asyncio.Event | None = None) -> list[Lora]:
        """Available LoRAs."""
        result: list[Lora] = await self._http.get(Endpoints.LORAS, list[Lora], cancel=cancel)
        result = [lora for lora in result if lora.name]
        logger.info("found %d lora(s)", len(result))
        return result

    async def refresh_loras(self, *, cancel: asyncio.Event | None = None) -> None:
        await self._http.post_no_response(Endpoints.REFRESH_LORAS, cancel=cancel)
        logger.info("loras refreshed")

    async def embeddings(self, *, cancel: asyncio.Event | None = None) -> dict[str, Embedding]:
        """Loaded textual-inversion embeddings keyed by name."""
        response: EmbeddingsResponse = await self._http.get(Endpoints.EMBEDDINGS, EmbeddingsResponse, cancel=cancel)
        if not response.loaded:
            logger.info("no embeddings loaded")
            return {}
        result = {name: Embedding(name=name, **data) for name, data in response.loaded.items()}
        logger.info("found %d embedding(s)", len(result))
        return result

    async def refresh_embeddings(self, *, cancel: asyncio.Event | None = None) -> None:
        await self._http.post_no_response(Endpoints.REFRESH_EMBEDDINGS, cancel=cancel)
        logger.info("embeddings refreshed")
