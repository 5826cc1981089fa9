"""Output directory handling, artifact naming and the final save step."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import lbfgs_style_transfer.image_io as lst_image_io
from lbfgs_style_transfer.logging_utils import logger

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable

    import torch

    from lbfgs_style_transfer.type_defs import LossHistory, SaveOptions

FALLBACK_OUTPUT_DIR = "style_transfer_output"


def setup_output_directory(
    output_path: str,
    path_factory: Callable[[str], Path] = Path,
) -> Path:
    """
    Return the output directory, creating it if needed.

    If the requested location cannot be created the run continues in
    ``style_transfer_output`` under the working directory.
    """
    requested = path_factory(output_path)
    try:
        requested.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        fallback = path_factory(FALLBACK_OUTPUT_DIR)
        logger.error(
            "Failed to create output directory %s: %s. Using %s instead.",
            requested,
            exc,
            fallback,
        )
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback
    return requested


def canonical_stem(path: str | Path) -> str:
    """File stem used in output names, with spaces as underscores."""
    return Path(path).stem.replace(" ", "_")


def stylized_image_path(
    output_dir: Path,
    content_name: str,
    style_name: str,
) -> Path:
    """Path of the final stylized image."""
    return output_dir / f"stylized_{content_name}_x_{style_name}.png"


def iteration_image_path(
    output_dir: Path,
    content_name: str,
    style_name: str,
    iteration: int,
) -> Path:
    """Path of the frame saved after an outer iteration."""
    name = f"{content_name}_x_{style_name}_at_iteration_{iteration:03d}.png"
    return output_dir / name


def save_outputs(
    candidate: torch.Tensor,
    loss_metrics: LossHistory,
    output_dir: Path,
    elapsed: float,
    opts: SaveOptions,
) -> Path:
    """
    Write the final stylized image and, if enabled, the loss plot.

    Returns:
        Path of the saved stylized image.

    """
    final_path = lst_image_io.save_image(
        candidate,
        stylized_image_path(output_dir, opts.content_name, opts.style_name),
    )

    if opts.plot_losses:
        from lbfgs_style_transfer.visualization.metrics import (  # noqa: PLC0415
            plot_loss_curves,
        )

        plot_loss_curves(loss_metrics, output_dir)

    gif_path = output_dir / opts.gif_name if opts.gif_name else None
    if opts.gif_created and gif_path is not None and gif_path.exists():
        logger.info("GIF saved to: %s", gif_path)

    logger.info("Style transfer completed in %.2f seconds", elapsed)
    logger.info("Final stylized image saved to: %s", final_path)
    return final_path
