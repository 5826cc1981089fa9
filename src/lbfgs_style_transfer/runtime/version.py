"""Project version lookup for ``--version``."""

from __future__ import annotations

from importlib import metadata as importlib_metadata
from pathlib import Path

import tomlkit
from tomlkit.exceptions import TOMLKitError

from lbfgs_style_transfer.logging_utils import logger

DISTRIBUTION_NAME = "lbfgs-style-transfer"
UNKNOWN_VERSION = "0.0.0"


def _version_from_pyproject(start: Path) -> str | None:
    """Read project.version from the nearest pyproject.toml above start."""
    candidates = (p / "pyproject.toml" for p in start.parents)
    pyproject_path = next((p for p in candidates if p.is_file()), None)
    if pyproject_path is None:
        return None

    try:
        doc = tomlkit.parse(pyproject_path.read_text(encoding="utf-8"))
    except (OSError, TOMLKitError) as exc:
        logger.warning("Error reading %s: %s", pyproject_path, exc)
        return None

    version = doc.unwrap().get("project", {}).get("version")
    if isinstance(version, str) and version.strip():
        return version.strip()
    return None


def resolve_project_version() -> str:
    """
    Return the installed distribution version.

    Source checkouts that were never installed fall back to the
    pyproject.toml next to the package, then to ``0.0.0``.
    """
    try:
        return importlib_metadata.version(DISTRIBUTION_NAME)
    except importlib_metadata.PackageNotFoundError:
        pass
    return (
        _version_from_pyproject(Path(__file__).resolve()) or UNKNOWN_VERSION
    )
