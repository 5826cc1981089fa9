"""
Image loading, Caffe-style preprocessing, and display postprocessing.

Tensors produced here follow the convention of the original VGG
weights: float32, BGR channel order, per-channel mean subtracted, pixel
scale 0-255, shape [1, 3, H, W].
"""
from __future__ import annotations

from pathlib import Path

import numpy as np
import torch
from PIL import Image

from lbfgs_style_transfer.constants import (
    CAFFE_BGR_MEAN,
    CHANNEL_VIEW_SHAPE,
    COLOR_MODE_RGB,
    MAX_DIMENSION,
    PIXEL_MAX,
    SUPPORTED_IMAGE_MODES,
)
from lbfgs_style_transfer.logging_utils import logger


def load_image(path: str | Path) -> Image.Image:
    """
    Load an image from a file path and convert to RGB.

    Args:
        path: Path to the image file

    Returns:
        PIL Image in RGB mode

    Raises:
        FileNotFoundError: If the image file does not exist
        OSError: If the image cannot be opened or decoded
        ValueError: If the image mode has no RGB equivalent

    """
    try:
        with Image.open(path) as img:
            if img.mode not in SUPPORTED_IMAGE_MODES:
                msg = (f"Unsupported image mode '{img.mode}' for '{path}'; "
                       "expected a 1, 3 or 4 channel 8-bit image")
                raise ValueError(msg)
            return img.convert(COLOR_MODE_RGB)
    except FileNotFoundError as e:
        msg = f"Image file not found: '{path}'"
        raise FileNotFoundError(msg) from e
    except OSError as e:
        msg = f"Error loading image '{path}': {e!s}"
        raise OSError(msg) from e


def validate_image_dimensions(img: Image.Image) -> None:
    """Reject empty images and warn about very large ones."""
    if img.width == 0 or img.height == 0:
        msg = f"Image has zero size: {img.width}x{img.height}"
        raise ValueError(msg)
    if img.width > MAX_DIMENSION or img.height > MAX_DIMENSION:
        logger.warning(
            "Image is large: %dx%d. This may slow processing.",
            img.width,
            img.height,
        )


def target_size(width: int, height: int, target_height: int) -> tuple[int, int]:
    """Return (height, width) scaled to target_height, keeping aspect."""
    new_width = max(1, round(width * target_height / height))
    return target_height, new_width


def _caffe_mean(device: torch.device) -> torch.Tensor:
    return torch.tensor(CAFFE_BGR_MEAN, dtype=torch.float32).view(
        *CHANNEL_VIEW_SHAPE,
    ).to(device)


def preprocess_image(
    img: Image.Image,
    device: torch.device,
    size: tuple[int, int],
) -> torch.Tensor:
    """
    Resize an RGB image and convert it to a Caffe-normalized tensor.

    Args:
        img: RGB PIL image.
        device: Device to place the tensor on.
        size: Output (height, width).

    Returns:
        Tensor of shape [1, 3, height, width] in BGR order with the VGG
        channel means subtracted.

    """
    height, width = size
    if img.size != (width, height):
        img = img.resize((width, height), Image.Resampling.BICUBIC)
    array = np.asarray(img, dtype=np.float32)
    # HWC RGB -> CHW BGR
    tensor = torch.from_numpy(array[:, :, ::-1].copy()).permute(2, 0, 1)
    tensor = tensor.unsqueeze(0).to(device)
    return tensor - _caffe_mean(device)


def load_and_preprocess(
    path: str | Path,
    device: torch.device,
    target_height: int,
    *,
    size: tuple[int, int] | None = None,
) -> torch.Tensor:
    """
    Load an image file and preprocess it for the feature extractor.

    The image is resized to ``target_height`` keeping its aspect ratio,
    unless an explicit ``size`` is given (used to bring the style image
    to the content image's dimensions).

    Raises:
        FileNotFoundError: If the image file doesn't exist
        OSError: If the image cannot be opened or processed
        ValueError: If the image is empty or has an unsupported mode

    """
    img = load_image(path)
    validate_image_dimensions(img)
    if size is None:
        size = target_size(img.width, img.height, target_height)
    logger.debug("Preprocessing %s to %dx%d", path, size[1], size[0])
    return preprocess_image(img, device, size)


def postprocess_for_display(tensor: torch.Tensor) -> np.ndarray:
    """
    Invert the Caffe preprocessing and return a displayable image.

    Drops the batch dimension, adds the channel means back, reorders BGR
    to RGB and clips to the 8-bit range.

    Args:
        tensor: Preprocessed tensor of shape [1, 3, H, W].

    Returns:
        uint8 array of shape [H, W, 3] in RGB order.

    """
    with torch.no_grad():
        img = tensor.detach() + _caffe_mean(tensor.device)
        img = torch.nan_to_num(img, nan=0.0, posinf=PIXEL_MAX, neginf=0.0)
        img = img.squeeze(0).flip(0).clamp(0, PIXEL_MAX).round()
        return (
            img.permute(1, 2, 0)
            .to(torch.uint8)
            .cpu()
            .contiguous()
            .numpy()
        )


def save_image(tensor: torch.Tensor, path: str | Path) -> Path:
    """Postprocess a preprocessed tensor and write it as an image file."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(postprocess_for_display(tensor)).save(target)
    return target
