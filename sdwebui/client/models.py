"""Pydantic models for WebUI responses."""

from __future__ import annotations

import base64
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sdwebui.client.util import strip_data_uri


class _WebUIModel(BaseModel):
    # The WebUI adds fields between releases; keep whatever it sends.
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class SdModel(_WebUIModel):
    title: str
    model_name: str
    hash: str | None = None
    sha256: str | None = None
    filename: str | None = None
    config: str | None = None


class Sampler(_WebUIModel):
    name: str
    aliases: list[str] = Field(default_factory=list)
    options: dict[str, Any] = Field(default_factory=dict)


class Scheduler(_WebUIModel):
    name: str
    label: str = ""
    aliases: list[str] | None = None
    default_rho: float | None = None
    need_inner_model: bool | None = None


class Upscaler(_WebUIModel):
    name: str
    model_name: str | None = None
    model_path: str | None = None
    model_url: str | None = None
    scale: float | None = None


class LatentUpscaleMode(_WebUIModel):
    name: str


class Lora(_WebUIModel):
    name: str
    alias: str | None = None
    path: str | None = None
    metadata: Any = None


class Embedding(_WebUIModel):
    name: str
    vectors: int | None = None
    shape: int | None = None
    step: int | None = None
    sd_checkpoint: str | None = None
    sd_checkpoint_name: str | None = None


class EmbeddingsResponse(_WebUIModel):
    loaded: dict[str, dict[str, Any]] | None = None
    skipped: dict[str, dict[str, Any]] | None = None


class ProgressState(_WebUIModel):
    skipped: bool = False
    interrupted: bool = False
    job: str | None = None
    job_count: int = 0
    job_no: int = 0
    sampling_step: int = 0
    sampling_steps: int = 0


class GenerationProgress(_WebUIModel):
    progress: float = 0.0
    eta_relative: float = 0.0
    state: ProgressState | None = None
    current_image: str | None = None
    textinfo: str | None = None


class WebUIOptions(_WebUIModel):
    """Subset of WebUI settings; unknown keys are kept as extras."""

    sd_model_checkpoint: str | None = None
    sd_vae: str | None = None
    clip_stop_at_last_layers: float | None = Field(default=None, alias="CLIP_stop_at_last_layers")
    enable_hr: bool | None = None
    hr_upscaler: str | None = None
    face_restoration_model: str | None = None
    samples_save: bool | None = None
    samples_format: str | None = None
    outdir_samples: str | None = None
    enable_xformers: bool | None = None


class GenerationResponse(_WebUIModel):
    """txt2img / img2img result. ``images`` are base64 strings."""

    images: list[str] = Field(default_factory=list)
    parameters: dict[str, Any] = Field(default_factory=dict)
    info: str = ""

    def decode_images(self) -> list[bytes]:
        return [base64.b64decode(strip_data_uri(img)) for img in self.images]


class PngInfoResponse(_WebUIModel):
    info: str = ""
    items: dict[str, Any] = Field(default_factory=dict)
    parameters: dict[str, Any] = Field(default_factory=dict)


class ExtraSingleImageResponse(_WebUIModel):
    image: str = ""
    html_info: str = ""

    def decode_image(self) -> bytes:
        return base64.b64decode(strip_data_uri(self.image))


class HealthCheckResult(BaseModel):
    is_healthy: bool
    endpoint: str | None = None
    response_time: float | None = None
    error: str | None = None
    checked_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def success(cls, response_time: float, endpoint: str | None = None) -> HealthCheckResult:
        return cls(is_healthy=True, response_time=response_time, endpoint=endpoint)

    @classmethod
    def failure(cls, error: str, endpoint: str | None = None) -> HealthCheckResult:
        return cls(is_healthy=False, error=error, endpoint=endpoint)
