"""Discord pipeline tracker: one chat message per CI pipeline, edited as steps complete."""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

DISTRIBUTION_NAME = "discord-pipeline-tracker"
UNKNOWN_VERSION = "0.0.0"


def _checkout_version() -> str | None:
    """`project.version` from the checkout's pyproject.toml, when running from source."""
    pyproject_path = Path(__file__).resolve().parent.parent / "pyproject.toml"
    try:
        project = tomllib.loads(pyproject_path.read_text(encoding="utf-8")).get("project")
    except (OSError, tomllib.TOMLDecodeError):
        return None
    value = project.get("version") if isinstance(project, dict) else None
    return value if isinstance(value, str) else None


def _resolve_version() -> str:
    # A checkout beside the package wins over stale metadata from an older install.
    checkout = _checkout_version()
    if checkout is not None:
        return checkout
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return UNKNOWN_VERSION


__version__ = _resolve_version()

__all__ = ["__version__"]
