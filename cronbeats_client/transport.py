import asyncio
from typing import Dict, Optional, Protocol

import aiohttp
from loguru import logger

from cronbeats_client.errors import TransportError
from cronbeats_client.models import TransportResponse

# Silent until the application opts in with logger.enable("cronbeats_client")
logger.disable("cronbeats_client")


class Transport(Protocol):
    async def request(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: bytes,
        timeout_ms: int,
    ) -> TransportResponse:
        """Perform one HTTP call, raising if it could not be completed"""
        ...


class AiohttpTransport:
    """Default transport backed by aiohttp.

    Uses the given session when one is supplied, otherwise opens a short-lived
    session for every call so the client needs no explicit cleanup.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self.session = session
        self.logger = logger

    async def _send(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: bytes,
        timeout: aiohttp.ClientTimeout,
    ) -> TransportResponse:
        async with session.request(
            method, url, headers=headers, data=body or None, timeout=timeout
        ) as response:
            text = await response.text(errors="replace")
            # repeated headers are folded into one comma-separated value
            out_headers: Dict[str, str] = {}
            for key, value in response.headers.items():
                key = key.lower()
                out_headers[key] = f"{out_headers[key]},{value}" if key in out_headers else value
            return TransportResponse(status=response.status, body=text, headers=out_headers)

    async def request(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: bytes,
        timeout_ms: int,
    ) -> TransportResponse:
        timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)
        try:
            if self.session is not None:
                return await self._send(self.session, method, url, headers, body, timeout)
            async with aiohttp.ClientSession() as session:
                return await self._send(session, method, url, headers, body, timeout)
        except asyncio.TimeoutError as e:
            self.logger.debug(f"{method} {url} timed out after {timeout_ms}ms")
            raise TransportError("network request timed out", e) from e
        except aiohttp.ClientError as e:
            self.logger.debug(f"{method} {url} failed: {e}")
            raise TransportError("network request failed", e) from e
