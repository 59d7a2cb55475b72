"""
Config Loader for AreWeUp

Fetches the raw bytes of the health check document. The location is
either a local file path or an ``http(s)://`` URL, which also covers
pre-signed object store URLs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import httpx

from config.constants import Defaults
from exceptions import ConfigSourceError
from utils.logger import get_logger


logger = get_logger("ConfigLoader")


def is_remote(location: str) -> bool:
    """Whether the location is fetched over HTTP rather than read from disk."""
    return location.strip().lower().startswith(("http://", "https://"))


async def load_config_bytes(
    location: str,
    timeout: Optional[float] = None
) -> bytes:
    """
    Fetch the raw health check document.

    Args:
        location: File path or http(s) URL
        timeout: Transport timeout in seconds for remote documents

    Returns:
        The document bytes, undecoded

    Raises:
        ConfigSourceError: The document could not be read
    """
    if not location or not location.strip():
        raise ConfigSourceError("No configuration location was given")

    location = location.strip()

    if is_remote(location):
        return await _fetch_remote(location, timeout or Defaults.HTTP_TIMEOUT_SECONDS)

    return _read_local(location)


def _read_local(location: str) -> bytes:
    path = Path(location).expanduser()

    try:
        content = path.read_bytes()
    except OSError as e:
        raise ConfigSourceError(
            f"Could not read configuration file: {e.strerror or e}",
            location=str(path),
            cause=e
        ) from e

    logger.debug(f"Read {len(content)} bytes of configuration from {path}")
    return content


async def _fetch_remote(location: str, timeout: float) -> bytes:
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": Defaults.USER_AGENT}
        ) as client:
            response = await client.get(location)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ConfigSourceError(
            f"Configuration download returned HTTP {e.response.status_code}",
            location=_redact(location),
            cause=e
        ) from e
    except httpx.HTTPError as e:
        raise ConfigSourceError(
            f"Configuration download failed: {type(e).__name__}: {e}",
            location=_redact(location),
            cause=e
        ) from e

    logger.debug(f"Downloaded {len(response.content)} bytes of configuration from {_redact(location)}")
    return response.content


def _redact(location: str) -> str:
    """Strip the query string, which carries the signature of pre-signed URLs."""
    return location.split("?", 1)[0]
