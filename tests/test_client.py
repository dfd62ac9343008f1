"""Tests for sdwebui.client package."""

from __future__ import annotations

import base64
import json
from pathlib import Path

import httpx
import pytest
import respx

from sdwebui.client import SDClient
from sdwebui.client.models import HealthCheckResult, WebUIOptions
from sdwebui.client.params import ExtraSingleImageParams, Img2ImgParams, Txt2ImgParams
from sdwebui.client.util import (
    decode_image,
    detect_image_format,
    image_to_data_uri,
    save_images,
    strip_data_uri,
    to_b64,
)
from sdwebui.config import ClientOptions, ValidationOptions
from tests.conftest import BASE_URL, TINY_PNG, TINY_PNG_B64, fast_retry

# ── util ──────────────────────────────────────────────────────────────


class TestToB64:
    def test_bytes_input(self):
        raw = b"hello"
        assert to_b64(raw) == base64.b64encode(raw).decode()

    def test_file_path(self, tmp_path: Path):
        f = tmp_path / "img.png"
        f.write_bytes(b"\x89PNG")
        result = to_b64(str(f))
        assert base64.b64decode(result) == b"\x89PNG"

    def test_pathlib_path(self, tmp_path: Path):
        f = tmp_path / "img.png"
        f.write_bytes(b"data")
        assert base64.b64decode(to_b64(f)) == b"data"

    def test_passthrough_string(self):
        b64 = base64.b64encode(b"already").decode()
        assert to_b64(b64) == b64

    def test_long_base64_string(self):
        # longer than any filesystem allows for a path
        assert to_b64(TINY_PNG_B64 * 100) == TINY_PNG_B64 * 100

    def test_unsupported_type(self):
        with pytest.raises(TypeError, match="unsupported image type"):
            to_b64(12345)  # type: ignore[arg-type]


class TestImageHelpers:
    def test_detect_png(self):
        assert detect_image_format(TINY_PNG) == "image/png"

    def test_detect_jpeg(self):
        assert detect_image_format(b"\xff\xd8\xff\xe0" + b"\x00" * 12) == "image/jpeg"

    def test_detect_webp_needs_marker(self):
        assert detect_image_format(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
        assert detect_image_format(b"RIFF\x00\x00\x00\x00WAVEfmt ") is None

    def test_detect_too_short(self):
        assert detect_image_format(b"\x89PNG") is None

    def test_strip_data_uri(self):
        assert strip_data_uri("data:image/png;base64,QUJD") == "QUJD"
        assert strip_data_uri("QUJD") == "QUJD"

    def test_decode_image(self):
        assert decode_image(f"data:image/png;base64,{TINY_PNG_B64}") == TINY_PNG

    def test_decode_image_invalid_base64(self):
        with pytest.raises(ValueError, match="invalid base64"):
            decode_image("not base64!!")

    def test_decode_image_not_an_image(self):
        with pytest.raises(ValueError, match="does not contain a valid image"):
            decode_image(base64.b64encode(b"plain text, nothing to see").decode())

    def test_image_to_data_uri(self, tmp_path: Path):
        f = tmp_path / "img.png"
        f.write_bytes(TINY_PNG)
        assert image_to_data_uri(f) == f"data:image/png;base64,{TINY_PNG_B64}"

    def test_image_to_data_uri_missing(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            image_to_data_uri(tmp_path / "missing.png")

    def test_image_to_data_uri_too_large(self, tmp_path: Path):
        f = tmp_path / "img.png"
        f.write_bytes(TINY_PNG)
        with pytest.raises(ValueError, match="exceeds maximum allowed size"):
            image_to_data_uri(f, ValidationOptions(max_image_file_size=10))

    def test_image_to_data_uri_not_image(self, tmp_path: Path):
        f = tmp_path / "notes.txt"
        f.write_bytes(b"just some text in a file")
        with pytest.raises(ValueError, match="not a valid image format"):
            image_to_data_uri(f)


class TestSaveImages:
    def test_saves_files(self, tmp_path: Path):
        images = [b"img0", b"img1", b"img2"]
        paths = save_images(images, str(tmp_path), prefix="test")
        assert len(paths) == 3
        for i, p in enumerate(paths):
            assert p.name == f"test_{i:04d}.png"
            assert p.read_bytes() == images[i]

    def test_creates_directory(self, tmp_path: Path):
        out = tmp_path / "sub" / "dir"
        save_images([b"x"], str(out))
        assert (out / "output_0000.png").exists()


# ── params ────────────────────────────────────────────────────────────


class TestTxt2ImgParams:
    def test_minimal_body(self):
        body = Txt2ImgParams(prompt="a cat").to_body()
        assert body["prompt"] == "a cat"
        assert body["width"] == 512
        assert body["height"] == 512
        assert body["steps"] == 20
        assert body["cfg_scale"] == 7.0
        assert body["seed"] == -1
        assert "sampler_name" not in body
        assert "scheduler" not in body
        assert "enable_hr" not in body
        assert "override_settings" not in body

    def test_optional_fields_included(self):
        p = Txt2ImgParams(
            prompt="test",
            sampler_name="Euler a",
            scheduler="karras",
            styles=["cinematic"],
            override_settings={"CLIP_stop_at_last_layers": 2},
            enable_hr=True,
            hr_upscaler="Latent",
            denoising_strength=0.5,
        )
        body = p.to_body()
        assert body["sampler_name"] == "Euler a"
        assert body["scheduler"] == "karras"
        assert body["styles"] == ["cinematic"]
        assert body["override_settings"] == {"CLIP_stop_at_last_layers": 2}
        assert body["override_settings_restore_afterwards"] is True
        assert body["enable_hr"] is True
        assert body["hr_scale"] == 2.0
        assert body["hr_upscaler"] == "Latent"
        assert body["denoising_strength"] == 0.5

    def test_valid_params_pass(self):
        Txt2ImgParams(prompt="ok", width=1024, height=768).validate()

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"prompt": "  "}, "prompt cannot be empty"),
            ({"prompt": "x", "width": 32}, "width must be between 64 and 4096"),
            ({"prompt": "x", "height": 8192}, "height must be between 64 and 4096"),
            ({"prompt": "x", "width": 513}, "width must be divisible by 8"),
            ({"prompt": "x", "steps": 0}, "steps must be greater than 0"),
            ({"prompt": "x", "cfg_scale": 0.5}, "cfg_scale must be between 1 and 30"),
            ({"prompt": "x", "cfg_scale": 31}, "cfg_scale must be between 1 and 30"),
            ({"prompt": "x", "batch_size": 0}, "batch_size must be greater than 0"),
            ({"prompt": "x", "n_iter": 0}, "n_iter must be greater than 0"),
            ({"prompt": "x", "enable_hr": True, "hr_scale": 0}, "hr_scale must be greater than 0"),
        ],
    )
    def test_validation_errors(self, kwargs: dict, message: str):
        with pytest.raises(ValueError, match=message):
            Txt2ImgParams(**kwargs).validate()

    def test_custom_limits(self):
        limits = ValidationOptions(max_image_size=1024, image_size_divisor=64)
        with pytest.raises(ValueError, match="divisible by 64"):
            Txt2ImgParams(prompt="x", width=520).validate(limits)


class TestImg2ImgParams:
    def test_minimal_body(self, tmp_path: Path):
        img = tmp_path / "init.png"
        img.write_bytes(b"\x89PNG")
        body = Img2ImgParams(prompt="paint it", init_images=[str(img)]).to_body()
        assert body["prompt"] == "paint it"
        assert body["denoising_strength"] == 0.75
        assert base64.b64decode(body["init_images"][0]) == b"\x89PNG"
        assert "mask" not in body
        assert "image_cfg_scale" not in body

    def test_inpaint_fields(self, tmp_path: Path):
        img = tmp_path / "init.png"
        img.write_bytes(b"img")
        mask = tmp_path / "mask.png"
        mask.write_bytes(b"mask")

        p = Img2ImgParams(
            prompt="test",
            init_images=[img],
            mask=mask,
            inpainting_mask_invert=True,
            image_cfg_scale=1.5,
        )
        body = p.to_body()
        assert base64.b64decode(body["mask"]) == b"mask"
        assert body["inpainting_mask_invert"] == 1
        assert body["mask_blur"] == 4
        assert body["image_cfg_scale"] == 1.5

    def test_requires_init_image(self):
        with pytest.raises(ValueError, match="init_images must contain at least one image"):
            Img2ImgParams(prompt="x").validate()

    def test_denoising_range(self):
        with pytest.raises(ValueError, match="denoising_strength must be between 0 and 1"):
            Img2ImgParams(prompt="x", init_images=[TINY_PNG], denoising_strength=1.5).validate()


class TestExtraSingleImageParams:
    def test_body(self):
        body = ExtraSingleImageParams(image=TINY_PNG, upscaler_1="R-ESRGAN 4x+", upscaling_resize_w=1024).to_body()
        assert body["image"] == TINY_PNG_B64
        assert body["upscaler_1"] == "R-ESRGAN 4x+"
        assert body["upscaling_resize_w"] == 1024
        assert "upscaling_resize_h" not in body
        assert "upscaling_crop" not in body


# ── info ──────────────────────────────────────────────────────────────


class TestInfoAPI:
    @pytest.mark.asyncio
    async def test_samplers(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/samplers").respond(
            json=[
                {"name": "Euler", "aliases": ["k_euler"], "options": {}},
                {"name": "Euler a", "aliases": ["k_euler_a"], "options": {}},
            ]
        )
        assert await client.info.samplers() == ["Euler", "Euler a"]

    @pytest.mark.asyncio
    async def test_schedulers(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/schedulers").respond(
            json=[
                {"name": "automatic", "label": "Automatic", "aliases": None},
                {"name": "karras", "label": "Karras", "aliases": ["Karras"], "default_rho": 7.0},
            ]
        )
        result = await client.info.schedulers()
        assert [s.name for s in result] == ["automatic", "karras"]
        assert result[1].default_rho == 7.0

    @pytest.mark.asyncio
    async def test_upscalers_skip_unnamed(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/upscalers").respond(
            json=[{"name": "None", "scale": 4}, {"name": "", "scale": 4}, {"name": "Lanczos", "scale": 4}]
        )
        assert [u.name for u in await client.info.upscalers()] == ["None", "Lanczos"]

    @pytest.mark.asyncio
    async def test_latent_upscale_modes(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/latent-upscale-modes").respond(json=[{"name": "Latent"}])
        assert (await client.info.latent_upscale_modes())[0].name == "Latent"

    @pytest.mark.asyncio
    async def test_loras(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/loras").respond(
            json=[{"name": "style", "alias": "style", "path": "/models/Lora/style.safetensors", "metadata": {}}]
        )
        result = await client.info.loras()
        assert len(result) == 1
        assert result[0].path == "/models/Lora/style.safetensors"

    @pytest.mark.asyncio
    async def test_refresh_loras(self, mock_api: respx.MockRouter, client: SDClient):
        route = mock_api.post("/sdapi/v1/refresh-loras").respond(200)
        await client.info.refresh_loras()
        assert route.called

    @pytest.mark.asyncio
    async def test_embeddings(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/embeddings").respond(
            json={
                "loaded": {"bad-hands": {"step": 1000, "vectors": 4, "shape": 768, "sd_checkpoint": "abc"}},
                "skipped": {},
            }
        )
        result = await client.info.embeddings()
        assert list(result) == ["bad-hands"]
        assert result["bad-hands"].name == "bad-hands"
        assert result["bad-hands"].vectors == 4

    @pytest.mark.asyncio
    async def test_embeddings_none_loaded(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/embeddings").respond(json={"loaded": {}, "skipped": {}})
        assert await client.info.embeddings() == {}


# ── checkpoints / options / progress ──────────────────────────────────


class TestCheckpointAPI:
    @pytest.mark.asyncio
    async def test_available(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/sd-models").respond(
            json=[{"title": "sdxl.safetensors [abc]", "model_name": "sdxl", "hash": "abc", "filename": "sdxl.safetensors"}]
        )
        result = await client.checkpoints.available()
        assert result[0].title == "sdxl.safetensors [abc]"
        assert result[0].hash == "abc"

    @pytest.mark.asyncio
    async def test_current(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/options").respond(json={"sd_model_checkpoint": "v1-5", "samples_format": "png"})
        assert await client.checkpoints.current() == "v1-5"

    @pytest.mark.asyncio
    async def test_current_unknown(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/options").respond(json={"samples_format": "png"})
        assert await client.checkpoints.current() == "unknown"

    @pytest.mark.asyncio
    async def test_set(self, mock_api: respx.MockRouter, client: SDClient):
        route = mock_api.post("/sdapi/v1/options").respond(200)
        await client.checkpoints.set("sdxl.safetensors [abc]")
        assert json.loads(route.calls[0].request.content) == {"sd_model_checkpoint": "sdxl.safetensors [abc]"}

    @pytest.mark.asyncio
    async def test_set_empty_name(self, mock_api: respx.MockRouter, client: SDClient):
        route = mock_api.post("/sdapi/v1/options").respond(200)
        with pytest.raises(ValueError, match="model name cannot be empty"):
            await client.checkpoints.set(" ")
        assert not route.called

    @pytest.mark.asyncio
    async def test_refresh(self, mock_api: respx.MockRouter, client: SDClient):
        route = mock_api.post("/sdapi/v1/refresh-checkpoints").respond(200)
        await client.checkpoints.refresh()
        assert route.called


class TestOptionsAPI:
    @pytest.mark.asyncio
    async def test_get_keeps_unknown_keys(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/options").respond(
            json={"sd_model_checkpoint": "v1-5", "CLIP_stop_at_last_layers": 2, "show_progressbar": True}
        )
        result = await client.options.get()
        assert result.clip_stop_at_last_layers == 2
        assert result.model_extra == {"show_progressbar": True}

    @pytest.mark.asyncio
    async def test_set_sends_only_given_fields(self, mock_api: respx.MockRouter, client: SDClient):
        route = mock_api.post("/sdapi/v1/options").respond(200)
        await client.options.set(WebUIOptions(clip_stop_at_last_layers=2, samples_format="jpg"))
        assert json.loads(route.calls[0].request.content) == {"CLIP_stop_at_last_layers": 2, "samples_format": "jpg"}


class TestProgressAPI:
    @pytest.mark.asyncio
    async def test_get(self, mock_api: respx.MockRouter, client: SDClient):
        route = mock_api.get("/sdapi/v1/progress").respond(
            json={
                "progress": 0.5,
                "eta_relative": 3.2,
                "state": {"job": "txt2img", "job_count": 1, "sampling_step": 10, "sampling_steps": 20},
                "current_image": None,
                "textinfo": None,
            }
        )
        result = await client.progress.get(skip_current_image=True)
        assert result.progress == 0.5
        assert result.state is not None
        assert result.state.sampling_step == 10
        assert route.calls[0].request.url.params["skip_current_image"] == "true"

    @pytest.mark.asyncio
    async def test_get_without_skip(self, mock_api: respx.MockRouter, client: SDClient):
        route = mock_api.get("/sdapi/v1/progress").respond(json={"progress": 0.0, "eta_relative": 0.0})
        await client.progress.get()
        assert "skip_current_image" not in route.calls[0].request.url.params

    @pytest.mark.asyncio
    async def test_interrupt_and_skip(self, mock_api: respx.MockRouter, client: SDClient):
        interrupt = mock_api.post("/sdapi/v1/interrupt").respond(200)
        skip = mock_api.post("/sdapi/v1/skip").respond(200)
        await client.progress.interrupt()
        await client.progress.skip()
        assert interrupt.called
        assert skip.called


# ── generation ────────────────────────────────────────────────────────


class TestTxt2Img:
    @pytest.mark.asyncio
    async def test_returns_decodable_images(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.post("/sdapi/v1/txt2img").respond(
            json={"images": [TINY_PNG_B64], "parameters": {}, "info": '{"seed": 1}'}
        )
        result = await client.generate.txt2img(Txt2ImgParams(prompt="a cat"))
        assert result.images == [TINY_PNG_B64]
        assert result.decode_images() == [TINY_PNG]
        assert result.info == '{"seed": 1}'

    @pytest.mark.asyncio
    async def test_multiple_images(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.post("/sdapi/v1/txt2img").respond(
            json={"images": [TINY_PNG_B64] * 3, "parameters": {}, "info": ""}
        )
        result = await client.generate.txt2img(Txt2ImgParams(prompt="cats", batch_size=3))
        assert len(result.decode_images()) == 3

    @pytest.mark.asyncio
    async def test_sends_correct_body(self, mock_api: respx.MockRouter, client: SDClient):
        route = mock_api.post("/sdapi/v1/txt2img").respond(json={"images": [TINY_PNG_B64], "parameters": {}, "info": ""})
        params = Txt2ImgParams(prompt="hello", width=768, height=768, steps=30, sampler_name="Euler a")
        await client.generate.txt2img(params)
        sent = json.loads(route.calls[0].request.content)
        assert sent["prompt"] == "hello"
        assert sent["width"] == 768
        assert sent["steps"] == 30
        assert sent["sampler_name"] == "Euler a"

    @pytest.mark.asyncio
    async def test_invalid_params_never_sent(self, mock_api: respx.MockRouter, client: SDClient):
        route = mock_api.post("/sdapi/v1/txt2img").respond(json={"images": []})
        with pytest.raises(ValueError, match="prompt cannot be empty"):
            await client.generate.txt2img(Txt2ImgParams(prompt=""))
        assert not route.called

    @pytest.mark.asyncio
    async def test_retries_busy_server(self, mock_api: respx.MockRouter, client: SDClient):
        route = mock_api.post("/sdapi/v1/txt2img")
        route.side_effect = [
            httpx.Response(503),
            httpx.Response(200, json={"images": [TINY_PNG_B64], "parameters": {}, "info": ""}),
        ]
        result = await client.generate.txt2img(Txt2ImgParams(prompt="a cat"))
        assert len(result.images) == 1
        assert route.call_count == 2


class TestImg2Img:
    @pytest.mark.asyncio
    async def test_returns_images(self, mock_api: respx.MockRouter, client: SDClient, tmp_path: Path):
        route = mock_api.post("/sdapi/v1/img2img").respond(
            json={"images": [TINY_PNG_B64], "parameters": {}, "info": ""}
        )
        img = tmp_path / "init.png"
        img.write_bytes(TINY_PNG)
        result = await client.generate.img2img(Img2ImgParams(prompt="paint", init_images=[img]))
        assert result.decode_images() == [TINY_PNG]
        assert json.loads(route.calls[0].request.content)["init_images"] == [TINY_PNG_B64]


# ── extras ────────────────────────────────────────────────────────────


class TestExtrasAPI:
    @pytest.mark.asyncio
    async def test_png_info(self, mock_api: respx.MockRouter, client: SDClient):
        route = mock_api.post("/sdapi/v1/png-info").respond(
            json={"info": "a cat\nSteps: 20", "items": {"parameters": "a cat"}, "parameters": {"Steps": 20}}
        )
        result = await client.extras.png_info(TINY_PNG)
        assert result.parameters == {"Steps": 20}
        assert json.loads(route.calls[0].request.content) == {"image": TINY_PNG_B64}

    @pytest.mark.asyncio
    async def test_single_image(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.post("/sdapi/v1/extra-single-image").respond(json={"image": TINY_PNG_B64, "html_info": "<p>ok</p>"})
        result = await client.extras.single_image(ExtraSingleImageParams(image=TINY_PNG))
        assert result.decode_image() == TINY_PNG


# ── client ────────────────────────────────────────────────────────────


class TestSDClient:
    @pytest.mark.asyncio
    async def test_ping_true(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/samplers").respond(json=[{"name": "Euler"}])
        assert await client.ping() is True

    @pytest.mark.asyncio
    async def test_ping_false_on_error(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/samplers").mock(side_effect=httpx.ConnectError("refused"))
        assert await client.ping() is False

    @pytest.mark.asyncio
    async def test_health_check_healthy(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/samplers").respond(json=[{"name": "Euler"}])
        result = await client.health_check()
        assert isinstance(result, HealthCheckResult)
        assert result.is_healthy
        assert result.endpoint == "/sdapi/v1/samplers"
        assert result.response_time is not None
        assert result.error is None

    @pytest.mark.asyncio
    async def test_health_check_unhealthy(self, mock_api: respx.MockRouter, client: SDClient):
        mock_api.get("/sdapi/v1/samplers").respond(status_code=500, text="boom")
        result = await client.health_check()
        assert not result.is_healthy
        assert "Status: 500" in (result.error or "")

    @pytest.mark.asyncio
    async def test_shared_http_client_not_closed(self, mock_api: respx.MockRouter):
        mock_api.get("/sdapi/v1/samplers").respond(json=[])
        http = httpx.AsyncClient(base_url=BASE_URL)
        async with SDClient(ClientOptions(base_url=BASE_URL), http_client=http, retry=fast_retry()) as c:
            assert not c.transport.owns_client
            assert await c.info.samplers() == []
        assert not http.is_closed
        await http.aclose()

    @pytest.mark.asyncio
    async def test_owned_http_client_closed(self):
        async with SDClient(ClientOptions(base_url=BASE_URL)) as c:
            assert c.transport.owns_client
        assert c.transport._client.is_closed
