"""Plotting helpers for monitoring per-iteration losses."""

from __future__ import annotations

from typing import TYPE_CHECKING

from lbfgs_style_transfer.logging_utils import logger

if TYPE_CHECKING:  # pragma: no cover
    from pathlib import Path

    from lbfgs_style_transfer.type_defs import LossHistory

LOSS_PLOT_NAME = "loss_plot.png"


def plot_loss_curves(metrics: LossHistory, output_dir: Path) -> Path | None:
    """
    Persist a matplotlib plot of loss curve metrics, if available.

    Each series is drawn on a log scale since the weighted terms differ
    by orders of magnitude. Skips work when metrics are missing, empty,
    or matplotlib cannot be imported in the current environment.
    """
    if not metrics:
        logger.warning("No loss metrics dictionary provided.")
        return None

    if not any(len(values) > 0 for values in metrics.values()):
        logger.warning("Loss metrics dictionary is empty, nothing to plot.")
        return None

    try:  # deferred import keeps matplotlib optional
        import matplotlib as mpl  # noqa: PLC0415
        mpl.use("Agg")
        import matplotlib.pyplot as plt  # noqa: PLC0415
    except ImportError:
        logger.warning("matplotlib not found: skipping loss plot.")
        return None

    figure = plt.figure(figsize=(10, 6))
    try:
        for series_name, series_values in metrics.items():
            if series_values and all(v > 0 for v in series_values):
                iterations = range(1, len(series_values) + 1)
                plt.plot(iterations, series_values, label=series_name)
        plt.yscale("log")
        plt.xlabel("Iteration")
        plt.ylabel("Loss")
        plt.title("Loss Curves")
        plt.legend()
        plt.tight_layout()
        loss_plot_path = output_dir / LOSS_PLOT_NAME
        plt.savefig(loss_plot_path)
        logger.info("Loss plot saved to: %s", loss_plot_path)
    finally:
        plt.close(figure)
    return loss_plot_path
