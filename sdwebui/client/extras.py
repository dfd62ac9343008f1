"""Postprocessing endpoints: PNG info and single-image upscaling."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sdwebui.client.models import ExtraSingleImageResponse, PngInfoResponse
from sdwebui.client.util import to_b64
from sdwebui.config import Endpoints

if TYPE_CHECKING:
    import asyncio
    from pathlib import Path

    from sdwebui.client._http import HttpTransport
    from sdwebui.client.params import ExtraSingleImageParams

logger = logging.getLogger(__name__)


class ExtrasAPI:
    def __init__(self, http: HttpTransport) -> None:
        self._http = http

    async def png_info(self, image: str | bytes | Path, *, cancel: asyncio.Event | None = None) -> PngInfoResponse:
        """Generation parameters embedded in a PNG."""
        result: PngInfoResponse = await self._http.post(
            Endpoints.PNG_INFO, {"image": to_b64(image)}, PngInfoResponse, cancel=cancel
        )
        logger.debug("png info: %d item(s)", len(result.items))
        return result

    async def single_image(
        self,
        params: ExtraSingleImageParams,
        *,
        cancel: asyncio.Event | None = None,
    ) -> ExtraSingleImageResponse:
        """Upscale / restore faces on one image."""
        logger.info("extras: upscaler=%s resize=%.1f", params.upscaler_1, params.upscaling_resize)
        result: ExtraSingleImageResponse = await self._http.post(
            Endpoints.EXTRA_SINGLE_IMAGE, params, ExtraSingleImageResponse, cancel=cancel
        )
        return result
