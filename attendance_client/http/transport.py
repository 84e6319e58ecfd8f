"""
HTTP transport for the Attendance Client.

This module defines the request and response types that flow through the
middleware pipeline, and an aiohttp based transport that performs exactly one
HTTP exchange per call.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional
import aiohttp
from aiohttp import ClientSession, ClientTimeout, ClientError

from attendance_client import __version__
from attendance_client.exceptions import ErrorCode, TransportError
from attendance_client.interfaces import ITransport
from attendance_client.models import ApiEnvelope

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8080/api"
DEFAULT_TIMEOUT = 10.0
AUTHORIZATION = "Authorization"


class AttemptState(Enum):
    """Retry state of a pending request. Only moves forward."""
    INITIAL = "initial"
    RETRIED = "retried"


class _Attempt:
    """Shared retry marker; copies of a request share the same instance."""

    def __init__(self):
        self.state = AttemptState.INITIAL


@dataclass
class PendingRequest:
    """A request awaiting transport."""
    method: str
    path: str
    params: Optional[Dict[str, Any]] = None
    json: Optional[Any] = None
    headers: Dict[str, str] = field(default_factory=dict)
    authenticated: bool = True
    _attempt: _Attempt = field(default_factory=_Attempt, repr=False, compare=False)

    @property
    def attempt(self) -> AttemptState:
        return self._attempt.state

    @property
    def retried(self) -> bool:
        return self._attempt.state is AttemptState.RETRIED

    def claim_retry(self) -> bool:
        """
        Mark the request retried.

        Returns:
            True if this call moved the request from INITIAL to RETRIED,
            False if it was already retried
        """
        if self._attempt.state is AttemptState.RETRIED:
            return False
        self._attempt.state = AttemptState.RETRIED
        return True

    def with_header(self, name: str, value: str) -> "PendingRequest":
        headers = dict(self.headers)
        headers[name] = value
        return replace(self, headers=headers)

    def without_header(self, name: str) -> "PendingRequest":
        headers = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        return replace(self, headers=headers)


@dataclass
class Response:
    """An HTTP response as seen by the pipeline."""
    status: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def unauthorized(self) -> bool:
        return self.status == 401

    def envelope(self) -> ApiEnvelope:
        return ApiEnvelope.from_body(self.body)


class AiohttpTransport(ITransport):
    """
    Transport backed by an aiohttp ClientSession.

    The session is created lazily and released by `close()` or on exit of
    the async context manager. Never retries.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        default_headers: Optional[Dict[str, str]] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = ClientTimeout(total=timeout)
        self.common_headers: Dict[str, str] = {
            'User-Agent': f'AttendanceClient/{__version__}',
            'Content-Type': 'application/json',
        }
        if default_headers:
            self.common_headers.update(default_headers)

        self._session: Optional[ClientSession] = None

        logger.info(f"Transport initialized for API: {self.base_url}")

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=10,
                limit_per_host=5,
                keepalive_timeout=30,
                enable_cleanup_closed=True
            )
            self._session = ClientSession(
                connector=connector,
                timeout=self.timeout,
            )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def drop_header(self, name: str) -> None:
        """Remove a header from the globally attached headers."""
        for key in [k for k in self.common_headers if k.lower() == name.lower()]:
            del self.common_headers[key]

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def send(self, request: PendingRequest) -> Response:
        """
        Perform one HTTP exchange.

        Args:
            request: Request to send

        Returns:
            The response, whatever its status

        Raises:
            TransportError: When no response was received
        """
        await self._ensure_session()

        url = self.url_for(request.path)
        headers = dict(self.common_headers)
        headers.update(request.headers)

        logger.debug(f"Sending {request.method} {url} (attempt: {request.attempt.value})")

        try:
            async with self._session.request(
                method=request.method,
                url=url,
                json=request.json,
                params=request.params,
                headers=headers
            ) as response:
                text = await response.text()
                return Response(
                    status=response.status,
                    body=self._decode_body(text),
                    headers=dict(response.headers),
                )

        except asyncio.TimeoutError as e:
            logger.warning(f"Request to {url} timed out")
            raise TransportError(
                f"Request to {url} timed out",
                error_code=ErrorCode.NETWORK_TIMEOUT,
                cause=e
            )
        except (ClientError, OSError) as e:
            logger.warning(f"Network error on {request.method} {url}: {e}")
            raise TransportError(f"Network request failed: {e}", cause=e)

    @staticmethod
    def _decode_body(text: str) -> Any:
        if not text:
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return {'message': text}
