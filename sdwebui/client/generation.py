"""Image generation endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sdwebui.client.models import GenerationResponse
from sdwebui.config import Endpoints

if TYPE_CHECKING:
    import asyncio

    from sdwebui.client._http import HttpTransport
    from sdwebui.client.params import Img2ImgParams, Txt2ImgParams

logger = logging.getLogger(__name__)


class GenerationAPI:
    def __init__(self, http: HttpTransport) -> None:
        self._http = http

    async def txt2img(self, params: Txt2ImgParams, *, cancel: asyncio.Event | None = None) -> GenerationResponse:
        """Generate images from text prompt."""
        params.validate(self._http.options.validation)
        logger.info("txt2img: '%s' %dx%d steps=%d", params.prompt[:60], params.width, params.height, params.steps)
        result: GenerationResponse = await self._http.post(
            Endpoints.TXT2IMG, params, GenerationResponse, cancel=cancel
        )
        logger.info("txt2img: got %d image(s)", len(result.images))
        return result

    async def img2img(self, params: Img2ImgParams, *, cancel: asyncio.Event | None = None) -> GenerationResponse:
        """Generate images from image + text prompt."""
        params.validate(self._http.options.validation)
        logger.info("img2img: '%s' strength=%.2f steps=%d", params.prompt[:60], params.denoising_strength, params.steps)
        result: GenerationResponse = await self._http.post(
            Endpoints.IMG2IMG, params, GenerationResponse, cancel=cancel
        )
        logger.info("img2img: got %d image(s)", len(result.images))
        return result
