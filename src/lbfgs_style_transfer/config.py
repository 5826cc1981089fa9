"""
Configuration schema and loader for L-BFGS style transfer.

Defines Pydantic models representing structured configuration sections,
a TOML-based config loader, and the merge step that overlays CLI
arguments on top of a loaded (or default) configuration.
"""

from pathlib import Path
from typing import Any

import tomlkit
from pydantic import BaseModel, Field, field_validator, model_validator

from lbfgs_style_transfer.config_defaults import (
    DEFAULT_CONTENT_LAYER,
    DEFAULT_CONTENT_WEIGHT,
    DEFAULT_CREATE_GIF,
    DEFAULT_DEVICE,
    DEFAULT_FUSED_CALLBACKS,
    DEFAULT_GIF_FPS,
    DEFAULT_INIT_METHOD,
    DEFAULT_ITERATIONS,
    DEFAULT_MAX_FUN,
    DEFAULT_MAX_ITER,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PLOT_LOSSES,
    DEFAULT_SAVE_EVERY,
    DEFAULT_SEED,
    DEFAULT_STYLE_LAYERS,
    DEFAULT_STYLE_WEIGHT,
    DEFAULT_TARGET_HEIGHT,
    DEFAULT_TV_POWER,
    DEFAULT_TV_WEIGHT,
)
from lbfgs_style_transfer.constants import VGG19_LAYER_NAMES
from lbfgs_style_transfer.type_defs import InitMethod


def _check_layer_name(name: str) -> str:
    if name not in VGG19_LAYER_NAMES:
        msg = (f"Unknown VGG19 layer '{name}'. "
               f"Expected one of: {', '.join(VGG19_LAYER_NAMES)}")
        raise ValueError(msg)
    return name


class ImageConfig(BaseModel):
    """Control how input images are resized."""

    target_height: int = Field(DEFAULT_TARGET_HEIGHT, ge=1)


class LossConfig(BaseModel):
    """Loss weights and the VGG19 layers they are computed on."""

    content_w: float = Field(DEFAULT_CONTENT_WEIGHT, ge=0)
    style_w: float = Field(DEFAULT_STYLE_WEIGHT, ge=0)
    tv_w: float = Field(DEFAULT_TV_WEIGHT, ge=0)
    tv_power: float = Field(DEFAULT_TV_POWER, gt=0)
    content_layer: str = Field(DEFAULT_CONTENT_LAYER)
    style_layers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_STYLE_LAYERS),
        min_length=1,
    )

    @field_validator("content_layer")
    @classmethod
    def _validate_content_layer(cls, value: str) -> str:
        return _check_layer_name(value)

    @field_validator("style_layers")
    @classmethod
    def _validate_style_layers(cls, value: list[str]) -> list[str]:
        for name in value:
            _check_layer_name(name)
        if len(set(value)) != len(value):
            msg = f"Duplicate style layers: {value}"
            raise ValueError(msg)
        return value


class OptimizationConfig(BaseModel):
    """Control the outer iteration loop and the L-BFGS-B budget."""

    iterations: int = Field(DEFAULT_ITERATIONS, ge=1)
    max_iter: int = Field(DEFAULT_MAX_ITER, ge=1)
    max_fun: int | None = Field(DEFAULT_MAX_FUN, ge=1)
    init_method: InitMethod = Field(DEFAULT_INIT_METHOD)
    seed: int = Field(DEFAULT_SEED, ge=0)
    fused_callbacks: bool = DEFAULT_FUSED_CALLBACKS


class OutputConfig(BaseModel):
    """Configure output directory, frame saving and loss reporting."""

    output: str = Field(DEFAULT_OUTPUT_DIR)
    save_every: int = Field(DEFAULT_SAVE_EVERY, ge=0)
    create_gif: bool = DEFAULT_CREATE_GIF
    gif_fps: int = Field(DEFAULT_GIF_FPS, ge=1, le=60)
    log_loss: str | None = None
    plot_losses: bool = DEFAULT_PLOT_LOSSES

    @model_validator(mode="after")
    def _gif_needs_frames(self) -> "OutputConfig":
        if self.create_gif and self.save_every == 0:
            msg = "create_gif requires save_every >= 1"
            raise ValueError(msg)
        return self


class HardwareConfig(BaseModel):
    """Select hardware acceleration device."""

    device: str = Field(DEFAULT_DEVICE)


class StyleTransferConfig(BaseModel):
    """
    Root configuration object combining all supported sections.

    Mirrors the structure of config.toml, grouping related parameters
    under logical categories.
    """

    image: ImageConfig = Field(
        default_factory=lambda: ImageConfig.model_validate({}),
    )
    loss: LossConfig = Field(
        default_factory=lambda: LossConfig.model_validate({}),
    )
    optimization: OptimizationConfig = Field(
        default_factory=lambda: OptimizationConfig.model_validate({}),
    )
    output: OutputConfig = Field(
        default_factory=lambda: OutputConfig.model_validate({}),
    )
    hardware: HardwareConfig = Field(
        default_factory=lambda: HardwareConfig.model_validate({}),
    )


class ConfigLoader:
    """
    Loads and parses a TOML configuration file into a typed config object.

    Falls back to defaults for any missing subsections or fields.
    """

    @staticmethod
    def load(path: str) -> StyleTransferConfig:
        """
        Load a style transfer configuration from a TOML file.

        Returns a validated StyleTransferConfig instance based on the file
        contents.
        """
        config_path = Path(path)
        if not config_path.is_file():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)

        with config_path.open("r", encoding="utf-8") as f:
            doc = tomlkit.load(f)

        return StyleTransferConfig.model_validate(doc.unwrap())


def parse_str_list(s: str | list[str]) -> list[str]:
    """
    Convert a comma-separated string or list of strings into a list.

    Args:
        s: A string like "block1_conv1,block2_conv1" or a list of names.

    Returns:
        A list of stripped, non-empty names.

    """
    if isinstance(s, list):
        return [str(item).strip() for item in s]
    return [part.strip() for part in s.split(",") if part.strip()]


# CLI destination -> (config section, field)
_CLI_FIELD_MAP: dict[str, tuple[str, str]] = {
    "height": ("image", "target_height"),
    "content_w": ("loss", "content_w"),
    "style_w": ("loss", "style_w"),
    "tv_w": ("loss", "tv_w"),
    "tv_power": ("loss", "tv_power"),
    "content_layer": ("loss", "content_layer"),
    "iterations": ("optimization", "iterations"),
    "max_iter": ("optimization", "max_iter"),
    "max_fun": ("optimization", "max_fun"),
    "init_method": ("optimization", "init_method"),
    "seed": ("optimization", "seed"),
    "output": ("output", "output"),
    "save_every": ("output", "save_every"),
    "fps": ("output", "gif_fps"),
    "log_loss": ("output", "log_loss"),
    "device": ("hardware", "device"),
}


def build_config_from_cli(
    args: dict[str, Any],
    base_config: StyleTransferConfig | None = None,
) -> StyleTransferConfig:
    """
    Overlay parsed CLI arguments on top of a base configuration.

    Only arguments that were actually supplied are applied; options
    registered with ``argparse.SUPPRESS`` are absent from ``args`` and
    keep the base (TOML or default) value. The merged result is
    re-validated so CLI values get the same checks as file values.
    """
    base = base_config or StyleTransferConfig.model_validate({})
    data = base.model_dump()

    for key, (section, field) in _CLI_FIELD_MAP.items():
        value = args.get(key)
        if value is not None:
            data[section][field] = value

    style_layers = args.get("style_layers")
    if style_layers:
        data["loss"]["style_layers"] = parse_str_list(style_layers)

    if args.get("gif"):
        data["output"]["create_gif"] = True
    if args.get("no_plot"):
        data["output"]["plot_losses"] = False
    if args.get("fused_callbacks"):
        data["optimization"]["fused_callbacks"] = True

    return StyleTransferConfig.model_validate(data)
