"""
Test configuration and shared fixtures for lbfgs_style_transfer.

This module defines reusable pytest fixtures for image files, tensors,
a small VGG-shaped feature network and configuration objects. The
feature network mirrors VGG's conv/ReLU/pool layout so layer naming
works unchanged, without downloading pretrained weights.

Note:
    This file is automatically loaded by pytest and should not be
    renamed.

"""
from collections.abc import Callable
from pathlib import Path
from typing import Any

import numpy as np
import pytest
import torch
from PIL import Image
from torch import nn

from lbfgs_style_transfer.config import StyleTransferConfig
from lbfgs_style_transfer.logging_utils import logger
from lbfgs_style_transfer.type_defs import InputPaths

TINY_CONTENT_LAYER = "block2_conv2"
TINY_STYLE_LAYERS = ["block1_conv1", "block2_conv1"]


def build_tiny_features(seed: int = 0) -> nn.Sequential:
    """Two-block VGG-style feature stack with deterministic weights."""
    torch.manual_seed(seed)
    return nn.Sequential(
        nn.Conv2d(3, 4, kernel_size=3, padding=1),
        nn.ReLU(inplace=True),
        nn.Conv2d(4, 4, kernel_size=3, padding=1),
        nn.ReLU(inplace=True),
        nn.MaxPool2d(kernel_size=2, stride=2),
        nn.Conv2d(4, 8, kernel_size=3, padding=1),
        nn.ReLU(inplace=True),
        nn.Conv2d(8, 8, kernel_size=3, padding=1),
        nn.ReLU(inplace=True),
        nn.MaxPool2d(kernel_size=2, stride=2),
    )


@pytest.fixture
def test_device() -> torch.device:
    """CPU device; keeps results bit-for-bit reproducible."""
    return torch.device("cpu")


@pytest.fixture
def tiny_features() -> nn.Sequential:
    """Provide a fresh small VGG-shaped feature stack."""
    return build_tiny_features()


@pytest.fixture
def tiny_features_factory() -> Callable[..., nn.Sequential]:
    """Build independent tiny feature stacks with the same seed."""
    return build_tiny_features


@pytest.fixture
def gradient_image() -> Image.Image:
    """A 48x32 RGB image with smooth horizontal and vertical ramps."""
    xs = np.linspace(0, 255, 48, dtype=np.float32)
    ys = np.linspace(0, 255, 32, dtype=np.float32)
    arr = np.zeros((32, 48, 3), dtype=np.uint8)
    arr[:, :, 0] = xs[None, :].astype(np.uint8)
    arr[:, :, 1] = ys[:, None].astype(np.uint8)
    arr[:, :, 2] = 128
    return Image.fromarray(arr)


@pytest.fixture
def noise_image() -> Image.Image:
    """A 40x40 RGB image of seeded uniform noise."""
    rng = np.random.default_rng(7)
    arr = rng.integers(0, 256, size=(40, 40, 3), dtype=np.uint8)
    return Image.fromarray(arr)


@pytest.fixture
def content_image(tmp_path: Path, gradient_image: Image.Image) -> Path:
    """Save the gradient image as the content PNG and return its path."""
    path = tmp_path / "content.png"
    gradient_image.save(path)
    return path


@pytest.fixture
def style_image(tmp_path: Path, noise_image: Image.Image) -> Path:
    """Save the noise image as the style PNG and return its path."""
    path = tmp_path / "style.png"
    noise_image.save(path)
    return path


@pytest.fixture
def input_paths(content_image: Path, style_image: Path) -> InputPaths:
    """Typed helper for passing content/style paths to the pipeline."""
    return InputPaths(content_path=str(content_image),
                      style_path=str(style_image))


@pytest.fixture
def make_style_transfer_config(
    tmp_path: Path,
) -> Callable[..., StyleTransferConfig]:
    """
    Build StyleTransferConfig instances sized for the tiny network.

    Defaults to CPU, a 16px working height, the tiny network's layers
    and an isolated output directory under tmp_path. Section overrides
    are merged on top.
    """
    default_output = tmp_path / "lst_outputs"

    def _build(**sections: dict[str, Any]) -> StyleTransferConfig:
        data: dict[str, dict[str, Any]] = {
            "image": {"target_height": 16},
            "loss": {
                "content_layer": TINY_CONTENT_LAYER,
                "style_layers": list(TINY_STYLE_LAYERS),
            },
            "optimization": {"iterations": 2, "max_iter": 3},
            "output": {
                "output": str(default_output),
                "plot_losses": False,
            },
            "hardware": {"device": "cpu"},
        }
        for section, values in sections.items():
            data.setdefault(section, {}).update(values)
        return StyleTransferConfig.model_validate(data)

    return _build


@pytest.fixture(autouse=True)
def enable_logger_propagation(monkeypatch: pytest.MonkeyPatch) -> None:
    """Enable propagation for the package logger to allow caplog to work."""
    monkeypatch.setattr(logger, "propagate", True)
