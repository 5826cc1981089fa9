"""Top-level orchestration for style transfer logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import torch
from PIL import Image

import lbfgs_style_transfer.image_io as lst_image_io
import lbfgs_style_transfer.optimization as lst_optimization
import lbfgs_style_transfer.runtime as lst_runtime
import lbfgs_style_transfer.timelapse as lst_timelapse
from lbfgs_style_transfer.config import LossConfig, StyleTransferConfig
from lbfgs_style_transfer.constants import (
    CAFFE_BGR_MEAN,
    CHANNEL_VIEW_SHAPE,
    PIXEL_MAX,
)
from lbfgs_style_transfer.evaluator import Evaluator
from lbfgs_style_transfer.features import FeatureExtractor
from lbfgs_style_transfer.logging_utils import logger
from lbfgs_style_transfer.loss_logger import LossCSVLogger
from lbfgs_style_transfer.losses import StyleTransferLoss
from lbfgs_style_transfer.type_defs import InitMethod, InputPaths, SaveOptions

if TYPE_CHECKING:  # pragma: no cover
    from torch import nn

    from lbfgs_style_transfer.optimization import IterationResult


def initialize_candidate(
    content_img: torch.Tensor,
    method: InitMethod,
    rng: np.random.Generator | None = None,
) -> torch.Tensor:
    """
    Build the starting candidate image in preprocessed (Caffe) space.

    Args:
        content_img: Preprocessed content image [1, 3, H, W].
        method: "content" copies the content image, "random" draws
            uniform pixel noise, "white" is a plain white image.
        rng: NumPy Generator used by "random"; an unseeded one is
            created when omitted.

    Raises:
        ValueError: If method is not a supported initialization method.

    """
    mean = torch.tensor(CAFFE_BGR_MEAN, dtype=content_img.dtype).view(
        *CHANNEL_VIEW_SHAPE,
    )
    if method == "content":
        return content_img.detach().clone()
    if method == "random":
        rng = rng if rng is not None else np.random.default_rng()
        noise = torch.from_numpy(
            rng.uniform(0.0, PIXEL_MAX, size=tuple(content_img.shape)),
        ).to(content_img.dtype)
        return (noise - mean).to(content_img.device)
    if method == "white":
        white = torch.full(
            content_img.shape, PIXEL_MAX, dtype=content_img.dtype,
        )
        return (white - mean).to(content_img.device)
    msg = f"Unsupported initialization method: {method}"
    raise ValueError(msg)


def build_loss(
    content_img: torch.Tensor,
    style_img: torch.Tensor,
    loss_config: LossConfig,
    device: torch.device,
    features: nn.Module | None = None,
) -> StyleTransferLoss:
    """Construct the feature extractor and the weighted objective."""
    layers = [loss_config.content_layer, *loss_config.style_layers]
    extractor = FeatureExtractor(layers, features=features).to(device)
    return StyleTransferLoss(extractor, content_img, style_img, loss_config)


def style_transfer(
    paths: InputPaths,
    config: StyleTransferConfig,
    *,
    features: nn.Module | None = None,
) -> torch.Tensor:
    """
    Top level style transfer entry point.

    Args:
        paths: Content and style image paths.
        config: Validated run configuration.
        features: Optional VGG-shaped feature stack used instead of the
            pretrained VGG19 download.

    Returns:
        The final candidate image in preprocessed space [1, 3, H, W].

    """
    lst_runtime.validate_input_paths(paths.content_path, paths.style_path)

    rng = lst_runtime.setup_random_seed(config.optimization.seed)
    device = lst_runtime.setup_device(config.hardware.device)

    content_img = lst_image_io.load_and_preprocess(
        paths.content_path,
        device,
        config.image.target_height,
    )
    height, width = content_img.shape[-2:]
    style_img = lst_image_io.load_and_preprocess(
        paths.style_path,
        device,
        config.image.target_height,
        size=(int(height), int(width)),
    )
    logger.info("Working resolution: %dx%d", width, height)

    loss = build_loss(content_img, style_img, config.loss, device, features)
    candidate = initialize_candidate(
        content_img,
        config.optimization.init_method,
        rng,
    )
    evaluator = Evaluator(
        loss.loss_and_gradient,
        candidate.shape,
        device,
        dtype=candidate.dtype,
    )

    output_path = lst_runtime.setup_output_directory(config.output.output)
    content_name = lst_runtime.canonical_stem(paths.content_path)
    style_name = lst_runtime.canonical_stem(paths.style_path)
    gif_name = f"timelapse_{content_name}_x_{style_name}.gif"
    gif_collector = lst_timelapse.setup_gif_collector(
        config.output.create_gif,
        output_path,
        gif_name,
        config.output.gif_fps,
    )
    loss_logger = _open_loss_logger(config.output.log_loss)

    def on_frame(frame: np.ndarray, iteration: int) -> None:
        frame_path = lst_runtime.iteration_image_path(
            output_path,
            content_name,
            style_name,
            iteration,
        )
        Image.fromarray(frame).save(frame_path)
        logger.debug("Saved iteration %d frame to %s", iteration, frame_path)
        if gif_collector is not None:
            gif_collector.append_data(frame)

    def on_iteration_end(result: IterationResult) -> None:
        if loss_logger is not None:
            loss_logger.log(result)

    runner = lst_optimization.OptimizationRunner(
        evaluator,
        candidate,
        config,
        callbacks=lst_optimization.OptimizationCallbacks(
            on_frame=on_frame,
            on_iteration_end=on_iteration_end,
        ),
    )
    try:
        candidate, loss_metrics, elapsed = runner.run()
    finally:
        if loss_logger is not None:
            loss_logger.close()
        if gif_collector is not None:
            gif_collector.close()

    save_opts = SaveOptions(
        content_name=content_name,
        style_name=style_name,
        gif_name=gif_name if gif_collector else None,
        gif_created=gif_collector is not None,
        plot_losses=config.output.plot_losses,
    )
    lst_runtime.save_outputs(
        candidate,
        loss_metrics,
        output_path,
        elapsed,
        save_opts,
    )
    return candidate


def _open_loss_logger(path: str | None) -> LossCSVLogger | None:
    """Open the CSV loss log, logging and skipping it on failure."""
    if not path:
        return None
    try:
        loss_logger = LossCSVLogger(path)
    except OSError as exc:
        logger.error("Failed to initialize CSV logging: %s", exc)
        return None
    logger.info("Loss CSV logging enabled: %s", path)
    return loss_logger
