"""Lookup of the current WhatsApp Web protocol version."""

import asyncio
import logging
from typing import Optional

import aiohttp

from .models import VersionInfo

logger = logging.getLogger(__name__)

VERSION_URL = (
    "https://raw.githubusercontent.com/WhiskeySockets/Baileys/master/"
    "src/Defaults/baileys-version.json"
)

# Used whenever the published version cannot be fetched
DEFAULT_VERSION = (2, 3000, 1015901307)


async def _get_json(session: aiohttp.ClientSession, url: str) -> dict:
    async with session.get(url) as response:
        response.raise_for_status()
        # Served as text/plain
        return await response.json(content_type=None)


async def fetch_latest_version(
    session: Optional[aiohttp.ClientSession] = None,
    url: str = VERSION_URL,
    timeout: float = 10.0,
) -> VersionInfo:
    """
    Fetch the latest published protocol version.

    Never raises: on any failure the bundled default is returned with
    ``is_latest=False`` and the error message attached.

    Args:
        session: Optional aiohttp session to reuse
        url: Where the version JSON is published
        timeout: Total request timeout in seconds

    Returns:
        VersionInfo for the socket config
    """
    try:
        if session is None:
            client_timeout = aiohttp.ClientTimeout(total=timeout)
            async with aiohttp.ClientSession(timeout=client_timeout) as owned:
                data = await _get_json(owned, url)
        else:
            data = await _get_json(session, url)

        info = VersionInfo(version=tuple(data["version"]), is_latest=True)
        logger.debug(f"Fetched protocol version {info.label}")
        return info

    except (aiohttp.ClientError, asyncio.TimeoutError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Could not fetch latest version, using default: {e}")
        return VersionInfo(version=DEFAULT_VERSION, is_latest=False, error=str(e))
