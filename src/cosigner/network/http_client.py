"""
HTTP transport for the coordination service

Executes already-authenticated requests over aiohttp and hands back the raw
status code and decoded body. Interpreting error bodies, retry policy and
trust decisions belong to the caller; network failures propagate unchanged.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Protocol, Tuple

import aiohttp

from cosigner.core.request_signer import canonical_json

logger = logging.getLogger(__name__)

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class Transport(Protocol):
    """Anything that can execute a request against the coordination service."""

    async def execute(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[Dict[str, Any]],
    ) -> Tuple[int, Any]:
        ...


class HTTPTransport:
    """
    aiohttp-backed transport.

    Features:
    - Lazily created session, shared by all requests of one client
    - Request bodies serialized with the same canonical JSON that was signed
    - No internal retries
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        """
        Initialize HTTP transport.

        Args:
            base_url: Service root; request paths are appended verbatim
            timeout: Total timeout per request in seconds
            session: Externally managed session (not closed by this transport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    def _get_headers(self, custom_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "cosigner/0.1",
        }
        if custom_headers:
            headers.update(custom_headers)
        return headers

    @staticmethod
    def _decode_body(text: str) -> Any:
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text

    async def execute(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[Dict[str, Any]],
    ) -> Tuple[int, Any]:
        """
        Send one request.

        Args:
            method: HTTP method
            url: Path relative to the base URL (the signed URL)
            headers: Authentication headers
            body: JSON body for POST/PUT/PATCH, ignored otherwise

        Returns:
            (status code, decoded JSON body or raw text)
        """
        method = method.upper()
        absolute_url = self.base_url + url
        data = canonical_json(body).encode("utf-8") if method in BODY_METHODS else None

        session = self._get_session()
        try:
            async with session.request(
                method,
                absolute_url,
                data=data,
                headers=self._get_headers(headers),
            ) as response:
                text = await response.text()
                logger.debug(
                    "%s %s - Status: %s",
                    method,
                    url,
                    response.status,
                    extra={"event": "http.response", "status": response.status},
                )
                return response.status, self._decode_body(text)
        except asyncio.TimeoutError:
            logger.error(
                "Request timeout: %s %s",
                method,
                url,
                extra={"event": "http.timeout"},
            )
            raise
        except aiohttp.ClientError as e:
            logger.error(
                "Request error: %s",
                e,
                extra={"event": "http.client_error", "error_type": type(e).__name__},
            )
            raise

    async def close(self) -> None:
        """Close the session if this transport created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "HTTPTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
