"""Animated GIF timelapse of the candidate image across outer iterations."""

from __future__ import annotations

from pathlib import Path  # noqa: TC003
from typing import Any

import imageio
import numpy as np

from lbfgs_style_transfer.logging_utils import logger


class GifFrameCollector:
    """
    Stream per-iteration frames into an animated GIF.

    The imageio writer is opened on the first frame, so a run that
    saves no frames leaves no file behind. Every frame must have the
    size of the first one.
    """

    def __init__(self, output_path: Path, fps: int) -> None:
        self._output_path = output_path
        # imageio reads GIF frame durations in milliseconds.
        self._duration_ms = 1000 / max(1, fps)
        self._writer: Any = None
        self._frame_shape: tuple[int, ...] | None = None
        self._count = 0
        self._closed = False

    @property
    def output_path(self) -> Path:
        """Destination of the encoded GIF."""
        return self._output_path

    @property
    def frame_count(self) -> int:
        """Number of frames written so far."""
        return self._count

    def append_data(self, frame: np.ndarray) -> None:
        """Append an H x W x 3 uint8 frame."""
        if self._closed:
            msg = "Cannot append frame after GIF collector has been closed."
            raise RuntimeError(msg)
        if frame.dtype != np.uint8 or frame.ndim != 3:  # noqa: PLR2004
            msg = (f"Expected HxWx3 uint8 frame, got {frame.dtype} "
                   f"with shape {frame.shape}")
            raise ValueError(msg)
        if self._frame_shape is None:
            self._frame_shape = frame.shape
            self._writer = self._open_writer()
        elif frame.shape != self._frame_shape:
            msg = (f"Frame shape {frame.shape} differs from the first "
                   f"frame {self._frame_shape}")
            raise ValueError(msg)

        self._writer.append_data(frame)
        self._count += 1

    def _open_writer(self) -> Any:  # noqa: ANN401
        self._output_path.parent.mkdir(parents=True, exist_ok=True)
        return imageio.get_writer(
            self._output_path.as_posix(),
            mode="I",
            duration=self._duration_ms,
            loop=0,
        )

    def close(self) -> None:
        """Finish the GIF file. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._writer is None:
            return
        self._writer.close()
        logger.info(
            "Timelapse GIF saved to: %s (%d frames)",
            self._output_path,
            self._count,
        )


def setup_gif_collector(
    create_gif: bool,  # noqa: FBT001
    output_dir: Path,
    gif_name: str,
    fps: int,
) -> GifFrameCollector | None:
    """Return a GIF collector, or None when GIF output is disabled."""
    if not create_gif:
        return None
    return GifFrameCollector((output_dir / gif_name).resolve(), fps)
