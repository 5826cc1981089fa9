"""
Defines shared type aliases for the L-BFGS style transfer tool.

Centralizes reusable type hints to improve consistency and readability.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import torch

InitMethod = Literal["content", "random", "white"]
LossHistory = dict[str, list[float]]
LayerActivations = dict[str, torch.Tensor]


@dataclass(slots=True)
class InputPaths:
    """Content and style input image paths."""

    content_path: str
    style_path: str


@dataclass(slots=True)
class SaveOptions:
    """Names and output flags for the final save step."""

    content_name: str
    style_name: str
    gif_name: str | None = None
    gif_created: bool = False
    plot_losses: bool = True
