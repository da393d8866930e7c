"""
Stream validator - probes a channel's direct stream URL under a hard deadline

The probe is a HEAD request raced against a timer. When the timer wins, the
request task is cancelled and its session closed, so no connection is left
in flight. Every outcome is a result dict; transport problems never raise.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import aiohttp

from services.record_store import RecordStore
from services.xtream_client import DEFAULT_USER_AGENT, XtreamClient

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_MS = 5000
TIMED_OUT = "timed out"


async def head_request(url: str, user_agent: str) -> int:
    """Issue a HEAD request and return the final status code"""
    async with aiohttp.ClientSession(headers={"User-Agent": user_agent}) as session:
        async with session.head(url, allow_redirects=True) as response:
            return response.status


async def _probe_with_deadline(url: str, timeout_seconds: float, user_agent: str) -> int:
    # wait_for cancels head_request on expiry; its context managers close the connection
    return await asyncio.wait_for(head_request(url, user_agent), timeout=timeout_seconds)


def probe_stream(url: str, timeout_ms: int = PROBE_TIMEOUT_MS, user_agent: Optional[str] = None) -> Dict[str, Any]:
    """
    Probe a stream URL.

    Returns:
        {"valid": True, "status": code, "url": url} for a 2xx answer,
        {"valid": False, "status": code, "url": url} for any other status,
        {"valid": False, "error": "timed out", "url": url} when the deadline hits,
        {"valid": False, "error": message, "url": url} for other transport failures.
    """
    try:
        status = asyncio.run(_probe_with_deadline(url, timeout_ms / 1000, user_agent or DEFAULT_USER_AGENT))
    except asyncio.TimeoutError:
        logger.info(f"Stream probe timed out after {timeout_ms} ms")
        return {"valid": False, "error": TIMED_OUT, "url": url}
    except (aiohttp.ClientError, OSError, ValueError) as e:
        logger.info(f"Stream probe failed: {type(e).__name__}: {e}")
        return {"valid": False, "error": str(e) or type(e).__name__, "url": url}

    return {"valid": 200 <= status < 300, "status": status, "url": url}


class StreamValidator:
    """Validates a stored channel's stream and records the result on the channel"""

    def __init__(self, store=None, timeout_ms: int = PROBE_TIMEOUT_MS):
        self.store = store or RecordStore()
        self.timeout_ms = timeout_ms

    def validate_channel(self, channel_id: int, stream_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Probe a channel's live stream and persist the outcome.

        Args:
            channel_id: Local channel id
            stream_id: Provider stream id; defaults to the channel's metadata stream_id

        Returns:
            The validation result, also stored in channel.validation_result

        Raises:
            RecordNotFoundError: channel or its provider doesn't exist
        """
        channel = self.store.get_one("channels", channel_id, expand=("provider",))
        provider = channel.provider

        if stream_id is None:
            stream_id = (channel.meta or {}).get("stream_id") or channel.external_id

        url = XtreamClient.for_provider(provider).stream_url(stream_id)
        result = probe_stream(url, self.timeout_ms, provider.user_agent)

        self.store.update(
            "channels",
            channel.id,
            {"validated_at": datetime.now(timezone.utc), "validation_result": result},
        )
        logger.info(f"Validated channel {channel.name} (ID: {channel.id}): valid={result['valid']}")
        return result
