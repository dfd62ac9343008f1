"""Configuration, constants, and option loading for the sdwebui client."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from sdwebui.exceptions import ConfigurationError

if TYPE_CHECKING:
    from sdwebui.client.retry import RetryPolicy

# ============================================================================
# XDG Base Directory Configuration
# ============================================================================

# Config: ~/.config/sdwebui/config.toml
CONFIG_DIR = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "sdwebui"
CONFIG_FILE = CONFIG_DIR / "config.toml"

DEFAULT_BASE_URL = "http://localhost:7860"
URL_ENV_VAR = "SD_WEBUI_URL"
API_KEY_ENV_VAR = "SD_WEBUI_API_KEY"

MB = 1024 * 1024


# ============================================================================
# API endpoints
# ============================================================================

API_PREFIX = "/sdapi/v1"


class Endpoints:
    """WebUI REST paths."""

    TXT2IMG = f"{API_PREFIX}/txt2img"
    IMG2IMG = f"{API_PREFIX}/img2img"
    SD_MODELS = f"{API_PREFIX}/sd-models"
    OPTIONS = f"{API_PREFIX}/options"
    REFRESH_CHECKPOINTS = f"{API_PREFIX}/refresh-checkpoints"
    PROGRESS = f"{API_PREFIX}/progress"
    INTERRUPT = f"{API_PREFIX}/interrupt"
    SKIP = f"{API_PREFIX}/skip"
    SAMPLERS = f"{API_PREFIX}/samplers"
    SCHEDULERS = f"{API_PREFIX}/schedulers"
    UPSCALERS = f"{API_PREFIX}/upscalers"
    LATENT_UPSCALE_MODES = f"{API_PREFIX}/latent-upscale-modes"
    LORAS = f"{API_PREFIX}/loras"
    REFRESH_LORAS = f"{API_PREFIX}/refresh-loras"
    EMBEDDINGS = f"{API_PREFIX}/embeddings"
    REFRESH_EMBEDDINGS = f"{API_PREFIX}/refresh-embeddings"
    PNG_INFO = f"{API_PREFIX}/png-info"
    EXTRA_SINGLE_IMAGE = f"{API_PREFIX}/extra-single-image"


# ============================================================================
# Option objects
# ============================================================================


@dataclass
class ValidationOptions:
    """Limits applied to outgoing requests and to log output."""

    max_image_size: int = 4096
    min_image_size: int = 64
    image_size_divisor: int = 8
    max_image_file_size: int = 50 * MB
    max_json_log_length: int = 500

    def validate(self) -> None:
        if self.max_image_size <= 0:
            raise ConfigurationError("max_image_size must be positive")
        if self.min_image_size <= 0:
            raise ConfigurationError("min_image_size must be positive")
        if self.min_image_size > self.max_image_size:
            raise ConfigurationError("min_image_size cannot be greater than max_image_size")
        if self.image_size_divisor <= 0:
            raise ConfigurationError("image_size_divisor must be positive")
        if self.max_image_file_size <= 0:
            raise ConfigurationError("max_image_file_size must be positive")
        if self.max_json_log_length < 0:
            raise ConfigurationError("max_json_log_length cannot be negative")


@dataclass
class ClientOptions:
    """Connection settings for a WebUI instance.

    ``timeout`` and ``retry_delay`` are in seconds.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = 300.0
    retry_count: int = 3
    retry_delay: float = 1.0
    api_key: str | None = None
    detailed_logging: bool = False
    validation: ValidationOptions = field(default_factory=ValidationOptions)

    def validate(self) -> None:
        """Raise ConfigurationError on the first invalid setting."""
        if not self.base_url or not self.base_url.strip():
            raise ConfigurationError("base_url cannot be empty")
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError("base_url must be a valid absolute URL")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be a positive number")
        if self.retry_count < 0:
            raise ConfigurationError("retry_count cannot be negative")
        if self.retry_delay < 0:
            raise ConfigurationError("retry_delay cannot be negative")
        self.validation.validate()

    @property
    def retry_policy(self) -> RetryPolicy:
        from sdwebui.client.retry import RetryPolicy  # noqa: PLC0415

        return RetryPolicy(max_retries=self.retry_count, base_delay=self.retry_delay)


# ============================================================================
# Config Functions
# ============================================================================


def load_config() -> dict[str, Any]:
    """Load configuration from TOML config file."""
    if CONFIG_FILE.exists():
        with CONFIG_FILE.open("rb") as f:
            return tomllib.load(f)
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to TOML config file."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    lines: list[str] = []
    for key, value in config.items():
        if isinstance(value, dict):
            lines.append(f"[{key}]")
            for k, v in value.items():
                lines.append(f"{k} = {_toml_value(v)}")
            lines.append("")
        else:
            lines.append(f"{key} = {_toml_value(value)}")

    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)


def load_options(**overrides: Any) -> ClientOptions:
    """Build ClientOptions from defaults, the config file, env vars and overrides.

    Later sources win. ``None`` overrides are ignored so CLI flags that were
    not given fall through to the file and environment.
    """
    known = {f.name for f in fields(ClientOptions)} - {"validation"}
    values: dict[str, Any] = {}

    section = load_config().get("client", {})
    if isinstance(section, dict):
        values.update({k: v for k, v in section.items() if k in known})

    env_url = os.environ.get(URL_ENV_VAR)
    if env_url:
        values["base_url"] = env_url
    env_key = os.environ.get(API_KEY_ENV_VAR)
    if env_key:
        values["api_key"] = env_key

    values.update({k: v for k, v in overrides.items() if v is not None and k in known})
    return ClientOptions(**values)
