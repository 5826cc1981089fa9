"""Checks on user-supplied input paths, run before any model work."""

from __future__ import annotations

from pathlib import Path


def validate_input_paths(content_path: str, style_path: str) -> None:
    """
    Fail fast when either input image is missing.

    Raises:
        FileNotFoundError: Naming the first role (content, then style)
            whose path is not a regular file.

    """
    for role, raw_path in (("Content", content_path), ("Style", style_path)):
        if not Path(raw_path).is_file():
            msg = f"{role} image not found: {raw_path}"
            raise FileNotFoundError(msg)
