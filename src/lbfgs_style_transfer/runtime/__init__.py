"""Runtime utilities for device, output, validation, and version helpers."""

from .device import setup_device, setup_random_seed
from .output import (
    canonical_stem,
    iteration_image_path,
    save_outputs,
    setup_output_directory,
    stylized_image_path,
)
from .validation import validate_input_paths
from .version import resolve_project_version

__all__ = [
    "canonical_stem",
    "iteration_image_path",
    "resolve_project_version",
    "save_outputs",
    "setup_device",
    "setup_output_directory",
    "setup_random_seed",
    "stylized_image_path",
    "validate_input_paths",
]
