"""sdw: async client and CLI for the Stable Diffusion WebUI REST API."""

__version__ = "0.1.0"

from sdwebui.client import (
    ExtraSingleImageParams,
    GenerationResponse,
    Img2ImgParams,
    SDClient,
    Txt2ImgParams,
    save_images,
)
from sdwebui.config import ClientOptions, ValidationOptions, load_options
from sdwebui.exceptions import ApiError, ConfigurationError, StableDiffusionError

__all__ = [
    "ApiError",
    "ClientOptions",
    "ConfigurationError",
    "ExtraSingleImageParams",
    "GenerationResponse",
    "Img2ImgParams",
    "SDClient",
    "StableDiffusionError",
    "Txt2ImgParams",
    "ValidationOptions",
    "load_options",
    "save_images",
]
