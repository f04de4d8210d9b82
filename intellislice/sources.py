"""
Loading conversion inputs from the outside world.

- Mesh bytes from a local file or an http(s) URL.
- Settings records from a JSON object file or an INI file.

These are caller-side helpers; the conversion core itself never does I/O.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

import requests
from iniconfig import IniConfig, ParseError

from .config import download_timeout
from .errors import SourceError
from .progress import NullProgressReporter, ProgressReporter

logger = logging.getLogger(__name__)

INI_SUFFIXES = {".ini", ".cfg", ".config"}

_PERCENT_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*%\s*$")


def is_url(location: str) -> bool:
    return urlparse(location).scheme in ("http", "https")


def read_mesh_source(
    location: str | Path,
    reporter: ProgressReporter | None = None,
    timeout: float | None = None,
) -> tuple[bytes, str]:
    """
    Read mesh bytes from a path or URL.

    Returns:
        ``(data, filename)`` where filename is the base name used for naming
        the project.

    Raises:
        SourceError: If the file cannot be read or the download fails.
    """
    location_str = str(location)
    if is_url(location_str):
        filename = Path(unquote(urlparse(location_str).path)).name or "model.stl"
        data = download_mesh(location_str, reporter or NullProgressReporter(), timeout)
        return data, filename

    path = Path(location)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise SourceError(f"Cannot read mesh file {path}: {e}") from e
    logger.debug("Read %d bytes from %s", len(data), path)
    return data, path.name


def download_mesh(
    url: str,
    reporter: ProgressReporter,
    timeout: float | None = None,
    max_retries: int = 3,
) -> bytes:
    """Download a mesh with streaming progress, retrying transient failures."""
    timeout = timeout or download_timeout()
    last_error: Exception | None = None
    for attempt in range(1, max_retries + 1):
        try:
            with requests.get(url, stream=True, timeout=timeout) as resp:
                resp.raise_for_status()
                total = int(resp.headers.get("content-length", 0))
                transfer = reporter.begin_download(url, total)
                chunks: list[bytes] = []
                try:
                    for chunk in resp.iter_content(chunk_size=8192):
                        chunks.append(chunk)
                        transfer.advance(len(chunk))
                finally:
                    transfer.close()
            return b"".join(chunks)
        except requests.exceptions.HTTPError as e:
            if e.response is not None and 400 <= e.response.status_code < 500:
                raise SourceError(f"Download of {url} failed: {e}") from e
            last_error = e
        except (
            requests.exceptions.ConnectionError,
            requests.exceptions.Timeout,
            requests.exceptions.ChunkedEncodingError,
        ) as e:
            last_error = e
        except requests.exceptions.RequestException as e:
            raise SourceError(f"Download of {url} failed: {e}") from e

        logger.warning("Download attempt %d/%d for %s failed: %s",
                       attempt, max_retries, url, last_error)

    raise SourceError(f"Download of {url} failed after {max_retries} attempts: {last_error}")


def load_settings_file(path: Path) -> dict[str, Any]:
    """
    Load a settings record from disk.

    JSON files hold either the record itself or an object with a
    ``"settings"`` member (the shape of a parameter-suggestion response).
    INI files hold ``key = value`` lines in one or more sections; later
    sections override earlier ones.

    Raises:
        SourceError: If the file cannot be read or parsed.
    """
    if path.suffix.lower() in INI_SUFFIXES:
        return _load_ini_settings(path)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise SourceError(f"Cannot read settings file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise SourceError(f"Invalid JSON in settings file {path}: {e}") from e

    if isinstance(data, dict) and isinstance(data.get("settings"), dict):
        data = data["settings"]
    if not isinstance(data, dict):
        raise SourceError(f"Settings file {path} must contain a JSON object")
    return data


def _load_ini_settings(path: Path) -> dict[str, Any]:
    try:
        config = IniConfig(path)
    except OSError as e:
        raise SourceError(f"Cannot read settings file {path}: {e}") from e
    except ParseError as e:
        raise SourceError(f"Invalid INI settings file {path}: {e}") from e

    settings: dict[str, Any] = {}
    for section in config:
        for key, value in section.items():
            settings[key] = _ini_value(value)
    logger.debug("Loaded %d settings from %s", len(settings), path)
    return settings


def _ini_value(raw: str) -> str:
    """Strip quoting and a trailing percent sign from an INI value."""
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    match = _PERCENT_RE.match(value)
    if match:
        return match.group(1)
    return value
