"""Progress polling and job control endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sdwebui.client.models import GenerationProgress
from sdwebui.config import Endpoints

if TYPE_CHECKING:
    import asyncio

    from sdwebui.client._http import HttpTransport

logger = logging.getLogger(__name__)


class ProgressAPI:
    def __init__(self, http: HttpTransport) -> None:
        self._http = http

    async def get(
        self,
        *,
        skip_current_image: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> GenerationProgress:
        """Progress of the running job; ``skip_current_image`` omits the preview."""
        endpoint = Endpoints.PROGRESS
        if skip_current_image:
            endpoint = f"{endpoint}?skip_current_image=true"
        progress: GenerationProgress = await self._http.get(endpoint, GenerationProgress, cancel=cancel)
        if progress.state is not None:
            logger.debug(
                "progress: %.0f%% step %d/%d",
                progress.progress * 100,
                progress.state.sampling_step,
                progress.state.sampling_steps,
            )
        return progress

    async def interrupt(self, *, cancel: asyncio.Event | None = None) -> None:
        """Stop the running job."""
        await self._http.post_no_response(Endpoints.INTERRUPT, cancel=cancel)
        logger.info("generation interrupted")

    async def skip(self, *, cancel: asyncio.Event | None = None) -> None:
        """Skip the current image of a batch."""
        await self._http.post_no_response(Endpoints.SKIP, cancel=cancel)
        logger.info("image skipped")
