"""
Project options and environment configuration.

Environment variables:
  INTELLISLICE_PROFILE_NAME      Profile name written into the settings header
  INTELLISLICE_INHERITS          Base profile the written profile inherits from
  INTELLISLICE_OUTPUT_DIR        Default output directory for the CLI
  INTELLISLICE_DOWNLOAD_TIMEOUT  Timeout in seconds when fetching mesh URLs
"""

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

from .serializer import DEFAULT_APPLICATION, DEFAULT_DESIGNER
from .settings import DEFAULT_INHERITS, DEFAULT_PROFILE_NAME

logger = logging.getLogger(__name__)

PRODUCT_SUFFIX = "IntelliSlice"
PACKAGE_EXTENSION = ".3mf"
DEFAULT_DOWNLOAD_TIMEOUT = 60.0


class ProjectOptions(BaseModel):
    """Naming and metadata used when building a project package."""

    model_config = {"frozen": True}

    profile_name: str = Field(default=DEFAULT_PROFILE_NAME, min_length=1)
    inherits: str = DEFAULT_INHERITS
    designer: str = DEFAULT_DESIGNER
    application: str = DEFAULT_APPLICATION


def load_options() -> ProjectOptions:
    """Build ProjectOptions from the environment, falling back to defaults."""
    overrides: dict[str, str] = {}
    if name := os.environ.get("INTELLISLICE_PROFILE_NAME"):
        overrides["profile_name"] = name
    if inherits := os.environ.get("INTELLISLICE_INHERITS"):
        overrides["inherits"] = inherits
    return ProjectOptions(**overrides)


def default_output_dir() -> Path:
    """Return the default output directory from env or the working directory."""
    return Path(os.environ.get("INTELLISLICE_OUTPUT_DIR", "."))


def download_timeout() -> float:
    """Return the mesh download timeout in seconds."""
    raw = os.environ.get("INTELLISLICE_DOWNLOAD_TIMEOUT")
    if not raw:
        return DEFAULT_DOWNLOAD_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid INTELLISLICE_DOWNLOAD_TIMEOUT=%r", raw)
        return DEFAULT_DOWNLOAD_TIMEOUT
    return value if value > 0 else DEFAULT_DOWNLOAD_TIMEOUT
