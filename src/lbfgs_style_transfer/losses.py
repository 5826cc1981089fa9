"""
Loss terms for neural style transfer.

Content loss compares raw activations, style loss compares Gram
matrices, and the total variation term penalizes high-frequency noise in
the candidate image. StyleTransferLoss combines them into one weighted
scalar from a single forward pass over the stacked
(content, style, candidate) batch.
"""

from dataclasses import dataclass

import torch

from lbfgs_style_transfer.config import LossConfig
from lbfgs_style_transfer.constants import (
    BATCH_CANDIDATE,
    BATCH_CONTENT,
    BATCH_STYLE,
)
from lbfgs_style_transfer.features import FeatureExtractor, stack_images


def content_loss(
    content_act: torch.Tensor,
    candidate_act: torch.Tensor,
) -> torch.Tensor:
    """Sum of squared differences between two activation maps."""
    return torch.sum((candidate_act - content_act) ** 2)


def gram_matrix(activation: torch.Tensor) -> torch.Tensor:
    """
    Compute the Gram matrix of a single activation map.

    Flattens the spatial dimensions of each channel and takes the inner
    product of every pair of channels, so the result describes feature
    co-occurrence independent of where the features are located.

    Args:
        activation: Activation of shape [channels, height, width].

    Returns:
        Symmetric matrix of shape [channels, channels].

    """
    c, h, w = activation.shape
    features = activation.reshape(c, h * w)
    return torch.mm(features, features.t())


def style_loss(
    style_act: torch.Tensor,
    candidate_act: torch.Tensor,
) -> torch.Tensor:
    """
    Squared Frobenius distance between Gram matrices.

    Divided by ``4 * C^2 * (H * W)^2`` of the layer so layers of different
    depth and resolution contribute on a comparable scale.
    """
    c, h, w = style_act.shape
    s = gram_matrix(style_act)
    x = gram_matrix(candidate_act)
    return torch.sum((s - x) ** 2) / (4.0 * (c ** 2) * ((h * w) ** 2))


def total_variation_loss(
    image: torch.Tensor,
    power: float = 1.25,
) -> torch.Tensor:
    """
    Smoothness penalty over neighbouring pixels of an image.

    For every pixel that has both a lower and a right neighbour, sums
    ``(dy^2 + dx^2) ** power`` over all channels.

    Args:
        image: Tensor of shape [1, C, H, W].
        power: Exponent applied to the squared gradient magnitude.

    """
    base = image[:, :, :-1, :-1]
    a = (base - image[:, :, 1:, :-1]) ** 2
    b = (base - image[:, :, :-1, 1:]) ** 2
    return torch.sum(torch.pow(a + b, power))


@dataclass(slots=True)
class LossBreakdown:
    """Host-side scalar values of each weighted loss term."""

    total: float
    content: float
    style: float
    total_variation: float


class StyleTransferLoss:
    """
    Weighted content + style + total variation objective.

    Owns the feature extractor and the fixed content and style images.
    The candidate is the only input that changes between calls.

    Attributes:
        extractor: Frozen feature network.
        content_img: Preprocessed content image [1, 3, H, W].
        style_img: Preprocessed style image of the same shape.
        config: Loss weights and layer selection.

    """

    def __init__(
        self,
        extractor: FeatureExtractor,
        content_img: torch.Tensor,
        style_img: torch.Tensor,
        config: LossConfig,
    ) -> None:
        # Fails early on mismatched inputs.
        stack_images(content_img, style_img, content_img)
        self.extractor = extractor
        self.content_img = content_img.detach()
        self.style_img = style_img.detach()
        self.config = config

    @property
    def image_shape(self) -> torch.Size:
        """Shape every candidate must have."""
        return self.content_img.shape

    def compute(
        self,
        candidate: torch.Tensor,
    ) -> tuple[torch.Tensor, LossBreakdown]:
        """Evaluate the total loss tensor and its weighted parts."""
        cfg = self.config
        batch = stack_images(self.content_img, self.style_img, candidate)
        activations = self.extractor(batch)

        content_act = activations[cfg.content_layer]
        content_score = cfg.content_w * content_loss(
            content_act[BATCH_CONTENT],
            content_act[BATCH_CANDIDATE],
        )

        layer_weight = cfg.style_w / len(cfg.style_layers)
        style_score = torch.zeros((), device=candidate.device)
        for name in cfg.style_layers:
            act = activations[name]
            style_score = style_score + layer_weight * style_loss(
                act[BATCH_STYLE],
                act[BATCH_CANDIDATE],
            )

        tv_score = cfg.tv_w * total_variation_loss(candidate, cfg.tv_power)
        total = content_score + style_score + tv_score

        breakdown = LossBreakdown(
            total=float(total.detach().item()),
            content=float(content_score.detach().item()),
            style=float(style_score.detach().item()),
            total_variation=float(tv_score.detach().item()),
        )
        return total, breakdown

    def loss_and_gradient(
        self,
        candidate: torch.Tensor,
    ) -> tuple[float, torch.Tensor, LossBreakdown]:
        """
        Return the loss and its gradient w.r.t. the candidate.

        One forward and one backward pass; the input tensor is not
        modified.
        """
        x = candidate.detach().clone().requires_grad_(True)  # noqa: FBT003
        total, breakdown = self.compute(x)
        (grad,) = torch.autograd.grad(total, x)
        return breakdown.total, grad, breakdown
