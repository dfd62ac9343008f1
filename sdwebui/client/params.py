"""Generation parameter dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sdwebui.client.util import to_b64
from sdwebui.config import ValidationOptions

if TYPE_CHECKING:
    from pathlib import Path

MIN_CFG_SCALE = 1.0
MAX_CFG_SCALE = 30.0


def validate_dimension(value: int, name: str, limits: ValidationOptions) -> None:
    if value < limits.min_image_size or value > limits.max_image_size:
        raise ValueError(f"{name} must be between {limits.min_image_size} and {limits.max_image_size}")
    if value % limits.image_size_divisor != 0:
        raise ValueError(f"{name} must be divisible by {limits.image_size_divisor}")


@dataclass
class _SamplingParams:
    prompt: str
    negative_prompt: str = ""
    styles: list[str] = field(default_factory=list)
    width: int = 512
    height: int = 512
    steps: int = 20
    cfg_scale: float = 7.0
    seed: int = -1
    subseed: int = -1
    subseed_strength: float = 0.0
    batch_size: int = 1
    n_iter: int = 1
    sampler_name: str = ""
    scheduler: str = ""
    restore_faces: bool = False
    tiling: bool = False
    send_images: bool = True
    save_images: bool = False
    override_settings: dict[str, Any] = field(default_factory=dict)
    override_settings_restore_afterwards: bool = True
    alwayson_scripts: dict[str, Any] = field(default_factory=dict)

    def validate(self, limits: ValidationOptions | None = None) -> None:
        """Raise ValueError if the WebUI would reject these parameters."""
        limits = limits or ValidationOptions()
        if not self.prompt or not self.prompt.strip():
            raise ValueError("prompt cannot be empty")
        validate_dimension(self.width, "width", limits)
        validate_dimension(self.height, "height", limits)
        if self.steps <= 0:
            raise ValueError("steps must be greater than 0")
        if not MIN_CFG_SCALE <= self.cfg_scale <= MAX_CFG_SCALE:
            raise ValueError(f"cfg_scale must be between {MIN_CFG_SCALE:g} and {MAX_CFG_SCALE:g}")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be greater than 0")
        if self.n_iter <= 0:
            raise ValueError("n_iter must be greater than 0")

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "prompt": self.prompt,
            "negative_prompt": self.negative_prompt,
            "width": self.width,
            "height": self.height,
            "steps": self.steps,
            "cfg_scale": self.cfg_scale,
            "seed": self.seed,
            "subseed": self.subseed,
            "subseed_strength": self.subseed_strength,
            "batch_size": self.batch_size,
            "n_iter": self.n_iter,
            "restore_faces": self.restore_faces,
            "tiling": self.tiling,
            "send_images": self.send_images,
            "save_images": self.save_images,
        }
        if self.styles:
            body["styles"] = self.styles
        if self.sampler_name:
            body["sampler_name"] = self.sampler_name
        if self.scheduler:
            body["scheduler"] = self.scheduler
        if self.override_settings:
            body["override_settings"] = self.override_settings
            body["override_settings_restore_afterwards"] = self.override_settings_restore_afterwards
        if self.alwayson_scripts:
            body["alwayson_scripts"] = self.alwayson_scripts
        return body


@dataclass
class Txt2ImgParams(_SamplingParams):
    enable_hr: bool = False
    hr_scale: float = 2.0
    hr_upscaler: str = ""
    hr_second_pass_steps: int = 0
    denoising_strength: float | None = None

    def validate(self, limits: ValidationOptions | None = None) -> None:
        super().validate(limits)
        if self.enable_hr and self.hr_scale <= 0:
            raise ValueError("hr_scale must be greater than 0 when enable_hr is true")

    def to_body(self) -> dict[str, Any]:
        body = super().to_body()
        if self.enable_hr:
            body["enable_hr"] = True
            body["hr_scale"] = self.hr_scale
            body["hr_second_pass_steps"] = self.hr_second_pass_steps
            if self.hr_upscaler:
                body["hr_upscaler"] = self.hr_upscaler
        if self.denoising_strength is not None:
            body["denoising_strength"] = self.denoising_strength
        return body


@dataclass
class Img2ImgParams(_SamplingParams):
    init_images: list[str | bytes | Path] = field(default_factory=list)
    denoising_strength: float = 0.75
    resize_mode: int = 0
    image_cfg_scale: float | None = None
    mask: str | bytes | Path | None = None
    mask_blur: int = 4
    inpainting_fill: int = 0
    inpaint_full_res: bool = True
    inpainting_mask_invert: bool = False

    def validate(self, limits: ValidationOptions | None = None) -> None:
        super().validate(limits)
        if not self.init_images:
            raise ValueError("init_images must contain at least one image")
        if not 0.0 <= self.denoising_strength <= 1.0:
            raise ValueError("denoising_strength must be between 0 and 1")

    def to_body(self) -> dict[str, Any]:
        body = super().to_body()
        body["init_images"] = [to_b64(img) for img in self.init_images]
        body["denoising_strength"] = self.denoising_strength
        body["resize_mode"] = self.resize_mode
        if self.image_cfg_scale is not None:
            body["image_cfg_scale"] = self.image_cfg_scale
        if self.mask is not None:
            body["mask"] = to_b64(self.mask)
            body["mask_blur"] = self.mask_blur
            body["inpainting_fill"] = self.inpainting_fill
            body["inpaint_full_res"] = self.inpaint_full_res
            body["inpainting_mask_invert"] = 1 if self.inpainting_mask_invert else 0
        return body


@dataclass
class ExtraSingleImageParams:
    image: str | bytes | Path
    resize_mode: int = 0
    show_extras_results: bool = True
    gfpgan_visibility: float = 0.0
    codeformer_visibility: float = 0.0
    codeformer_weight: float = 0.5
    upscaling_resize: float = 2.0
    upscaling_resize_w: int | None = None
    upscaling_resize_h: int | None = None
    upscaling_crop: bool | None = None
    upscaler_1: str = "None"
    upscaler_2: str = "None"
    extras_upscaler_2_visibility: float = 0.0

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "image": to_b64(self.image),
            "resize_mode": self.resize_mode,
            "show_extras_results": self.show_extras_results,
            "gfpgan_visibility": self.gfpgan_visibility,
            "codeformer_visibility": self.codeformer_visibility,
            "codeformer_weight": self.codeformer_weight,
            "upscaling_resize": self.upscaling_resize,
            "upscaler_1": self.upscaler_1,
            "upscaler_2": self.upscaler_2,
            "extras_upscaler_2_visibility": self.extras_upscaler_2_visibility,
        }
        if self.upscaling_resize_w is not None:
            body["upscaling_resize_w"] = self.upscaling_resize_w
        if self.upscaling_resize_h is not None:
            body["upscaling_resize_h"] = self.upscaling_resize_h
        if self.upscaling_crop is not None:
            body["upscaling_crop"] = self.upscaling_crop
        return body
