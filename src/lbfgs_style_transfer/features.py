"""
Feature extraction from a frozen, pretrained VGG19.

Defines the FeatureExtractor, which evaluates the network once on a
stacked batch of (content, style, candidate) images and returns the
activation of every named layer it passes through. Layer names follow
the Keras VGG19 convention (``block3_conv1``, ``block4_pool``, ...).

Classes:
    CaffeInputAdapter: Converts Caffe-preprocessed BGR tensors into the
        input torchvision's VGG19 weights were trained on.
    FeatureExtractor: Named-activation view of the VGG19 feature stack.
"""

from collections.abc import Iterable
from pathlib import Path
from urllib.parse import urlparse

import torch
from torch import nn
from torchvision.models import VGG19_Weights, vgg19

from lbfgs_style_transfer.constants import (
    CAFFE_BGR_MEAN,
    CHANNEL_VIEW_SHAPE,
    IMAGENET_MEAN,
    IMAGENET_STD,
    PIXEL_MAX,
)
from lbfgs_style_transfer.logging_utils import logger
from lbfgs_style_transfer.type_defs import LayerActivations


def vgg19_layer_names(features: nn.Module) -> list[str | None]:
    """
    Name each child of a VGG feature stack.

    Convolutions are unnamed; the ReLU that follows the k-th convolution
    of block b is named ``block{b}_conv{k}``, and max pooling closes the
    block as ``block{b}_pool``. Any other layer is left unnamed.
    """
    names: list[str | None] = []
    block, conv = 1, 0
    for layer in features.children():
        if isinstance(layer, nn.Conv2d):
            conv += 1
            names.append(None)
        elif isinstance(layer, nn.ReLU):
            names.append(f"block{block}_conv{conv}")
        elif isinstance(layer, nn.MaxPool2d):
            names.append(f"block{block}_pool")
            block, conv = block + 1, 0
        else:
            names.append(None)
    return names


def initialize_vgg() -> nn.Module:
    """Load the pretrained VGG19 feature stack with frozen weights."""
    weights = VGG19_Weights.IMAGENET1K_V1
    cache_dir = Path(torch.hub.get_dir()) / "checkpoints"
    cache_path = cache_dir / Path(urlparse(weights.url).path).name

    if cache_path.exists():
        logger.info("Using cached VGG19 weights at %s", cache_path)
    else:
        logger.info("Downloading VGG19 weights to %s", cache_path)

    return vgg19(weights=weights).features


class CaffeInputAdapter(nn.Module):
    """Map BGR mean-subtracted 0-255 input to ImageNet-normalized RGB."""

    def __init__(self) -> None:
        super().__init__()
        self.register_buffer(
            "caffe_mean",
            torch.tensor(CAFFE_BGR_MEAN).view(*CHANNEL_VIEW_SHAPE),
        )
        self.register_buffer(
            "imagenet_mean",
            torch.tensor(IMAGENET_MEAN).view(*CHANNEL_VIEW_SHAPE),
        )
        self.register_buffer(
            "imagenet_std",
            torch.tensor(IMAGENET_STD).view(*CHANNEL_VIEW_SHAPE),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        rgb = (x + self.caffe_mean).flip(1) / PIXEL_MAX
        return (rgb - self.imagenet_mean) / self.imagenet_std


class FeatureExtractor(nn.Module):
    """
    Frozen VGG19 exposing intermediate activations by layer name.

    The feature stack is truncated after the deepest requested layer, so
    a forward pass does no work beyond what the losses need. Every
    named layer up to that point is returned, keyed by name, for the
    whole input batch.

    Attributes:
        adapter (CaffeInputAdapter): Input conversion applied first.
        layers (nn.Sequential): The truncated feature stack.
        layer_names (list[str | None]): Name of each entry of ``layers``.

    """

    def __init__(
        self,
        required_layers: Iterable[str],
        features: nn.Module | None = None,
    ) -> None:
        super().__init__()
        if features is None:
            features = initialize_vgg()

        required = list(required_layers)
        all_names = vgg19_layer_names(features)
        missing = [name for name in required if name not in all_names]
        if missing:
            msg = f"Layers not present in feature network: {missing}"
            raise ValueError(msg)

        depth = max(all_names.index(name) for name in required) + 1
        children = list(features.children())[:depth]
        # In-place ReLUs would overwrite the activations we hand out
        children = [
            nn.ReLU(inplace=False) if isinstance(layer, nn.ReLU) else layer
            for layer in children
        ]

        self.adapter = CaffeInputAdapter()
        self.layers = nn.Sequential(*children)
        self.layer_names = all_names[:depth]
        self.required_layers = required

        self.eval()
        for p in self.parameters():
            p.requires_grad_(False)  # noqa: FBT003

    def forward(self, batch: torch.Tensor) -> LayerActivations:
        """
        Run the feature stack and collect named activations.

        Args:
            batch: Preprocessed images of shape [N, 3, H, W].

        Returns:
            Mapping of layer name to activation tensor [N, C_l, H_l, W_l].

        """
        activations: LayerActivations = {}
        x = self.adapter(batch)
        for name, layer in zip(self.layer_names, self.layers, strict=True):
            x = layer(x)
            if name is not None:
                activations[name] = x
        return activations


def stack_images(
    content_img: torch.Tensor,
    style_img: torch.Tensor,
    candidate: torch.Tensor,
) -> torch.Tensor:
    """
    Stack content, style and candidate into one extractor batch.

    Raises:
        ValueError: If the three tensors are not all [1, 3, H, W] with
            the same H and W.

    """
    shapes = {
        "content": tuple(content_img.shape),
        "style": tuple(style_img.shape),
        "candidate": tuple(candidate.shape),
    }
    expected = shapes["content"]
    if len(expected) != 4 or expected[:2] != (1, 3):  # noqa: PLR2004
        msg = f"Expected image tensors of shape [1, 3, H, W], got {expected}"
        raise ValueError(msg)
    if any(shape != expected for shape in shapes.values()):
        msg = f"Image tensor shapes do not match: {shapes}"
        raise ValueError(msg)
    return torch.cat([content_img, style_img, candidate], dim=0)
