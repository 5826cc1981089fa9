"""Device selection and seeding of every random source a run touches."""

from __future__ import annotations

import random

import numpy as np
import torch

from lbfgs_style_transfer.logging_utils import logger


def setup_device(device_name: str) -> torch.device:
    """
    Resolve the requested device name.

    A CUDA request on a machine without CUDA degrades to the CPU with a
    warning rather than failing the run. Unknown names raise
    RuntimeError from torch.
    """
    wants_cuda = device_name.startswith("cuda")
    if wants_cuda and not torch.cuda.is_available():
        logger.warning(
            "CUDA requested but not available. Falling back to CPU.",
        )
        device_name = "cpu"

    device = torch.device(device_name)
    logger.info("Using device: %s", device)
    return device


def setup_random_seed(seed: int) -> np.random.Generator:
    """
    Seed torch, CUDA and ``random``; return a NumPy Generator.

    NumPy randomness goes through the returned ``default_rng`` Generator
    instead of the legacy global state.
    """
    random.seed(seed)
    torch.manual_seed(seed)
    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(seed)
    return np.random.default_rng(seed)
