"""Pytest configuration and fixtures."""

from __future__ import annotations

import base64

import pytest
import pytest_asyncio
import respx

from sdwebui.client import SDClient
from sdwebui.client.retry import RetryEngine, RetryPolicy
from sdwebui.config import ClientOptions

BASE_URL = "http://127.0.0.1:7860"

# 1x1 red PNG for image response stubs
TINY_PNG = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01"
    b"\x00\x00\x00\x01\x08\x02\x00\x00\x00\x90wS\xde\x00"
    b"\x00\x00\x0cIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00"
    b"\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)
TINY_PNG_B64 = base64.b64encode(TINY_PNG).decode()


def no_jitter(bound: float) -> float:  # noqa: ARG001
    return 0.0


class RecordingSleep:
    """Stand-in for asyncio.sleep that returns at once and remembers delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def fast_retry(max_retries: int = 2, base_delay: float = 0.5, sleep: RecordingSleep | None = None) -> RetryEngine:
    return RetryEngine(
        RetryPolicy(max_retries=max_retries, base_delay=base_delay),
        jitter=no_jitter,
        sleep=sleep or RecordingSleep(),
    )


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the real config file and environment."""
    config_dir = tmp_path / "config"
    monkeypatch.setattr("sdwebui.config.CONFIG_DIR", config_dir)
    monkeypatch.setattr("sdwebui.config.CONFIG_FILE", config_dir / "config.toml")
    monkeypatch.setattr("sdwebui.cli.CONFIG_FILE", config_dir / "config.toml")
    monkeypatch.delenv("SD_WEBUI_URL", raising=False)
    monkeypatch.delenv("SD_WEBUI_API_KEY", raising=False)


@pytest.fixture()
def options() -> ClientOptions:
    return ClientOptions(base_url=BASE_URL, retry_count=2, retry_delay=0.5)


@pytest.fixture()
def mock_api():
    """Activate respx mock for the WebUI base URL."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as rsps:
        yield rsps


@pytest_asyncio.fixture()
async def client(mock_api: respx.MockRouter, options: ClientOptions):  # noqa: ARG001
    """SDClient wired to the mocked transport, retrying without waiting."""
    c = SDClient(options, retry=fast_retry())
    yield c
    await c.aclose()
