"""
HTTP API Client for the Attendance Client.

This module wires the session, the credential attacher, the response
gatekeeper and the transport into one client, and maps final responses to
return values or exceptions.
"""

import logging
from typing import Any, Dict, Optional

from attendance_client.auth.session import Session
from attendance_client.auth.session_manager import SessionManager
from attendance_client.auth.token_storage import MemoryTokenStorage, SecureTokenStorage
from attendance_client.config import ClientConfiguration
from attendance_client.exceptions import APIError, Unauthorized
from attendance_client.http.middleware import CredentialAttacher, Pipeline, ResponseGatekeeper
from attendance_client.http.renewal import RenewalClient
from attendance_client.http.transport import (
    DEFAULT_BASE_URL, DEFAULT_TIMEOUT, AiohttpTransport, PendingRequest, Response
)
from attendance_client.interfaces import ISessionStore, ITransport

logger = logging.getLogger(__name__)


def create_session_store(config: ClientConfiguration) -> ISessionStore:
    """Build the session store selected by configuration."""
    kind = config.get_token_store()
    if kind == 'memory':
        return MemoryTokenStorage()

    service_name = config.get_config('session.service_name', 'attendance-client')
    return SecureTokenStorage(
        service_name=service_name,
        use_keyring=None if kind == 'keyring' else False
    )


class AttendanceAPIClient:
    """
    HTTP API client for the attendance backend.

    Every request goes through credential attachment and the response
    gatekeeper, so an expired credential is renewed and the request replayed
    once without the caller noticing.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        store: Optional[ISessionStore] = None,
        config: Optional[ClientConfiguration] = None,
        transport: Optional[ITransport] = None
    ):
        if config is not None:
            base_url = base_url or config.get_api_url()
            timeout = timeout or config.get_timeout()
            store = store or create_session_store(config)

        self.transport = transport or AiohttpTransport(
            base_url=base_url or DEFAULT_BASE_URL,
            timeout=timeout or DEFAULT_TIMEOUT
        )
        self.session = Session(store or MemoryTokenStorage())
        self.auth = SessionManager(self)

        self.attacher = CredentialAttacher(self.session)
        self.renewal = RenewalClient(self.transport, self.session)
        self.gatekeeper = ResponseGatekeeper(
            session=self.session,
            renewal=self.renewal,
            attacher=self.attacher,
            on_session_expired=self.auth.expire_session
        )
        self.pipeline = Pipeline(
            self.transport,
            request_transforms=[self.attacher],
            response_handlers=[self.gatekeeper]
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        authenticated: bool = True
    ) -> Dict[str, Any]:
        """
        Make an HTTP request through the middleware pipeline.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: API path relative to the base URL
            params: Query parameters
            json: Request body
            authenticated: Whether to attach the credential and renew on 401

        Returns:
            Response body as dictionary

        Raises:
            Unauthorized: On a 401 that renewal could not recover
            APIError: On any other non-2xx status
            TransportError: When no response was received
        """
        request = PendingRequest(
            method=method.upper(),
            path=path,
            params=params,
            json=json,
            authenticated=authenticated
        )
        response = await self.pipeline.dispatch(request)
        return self._handle_response(request, response)

    def _handle_response(self, request: PendingRequest, response: Response) -> Dict[str, Any]:
        if response.ok:
            return response.body if isinstance(response.body, dict) else {'data': response.body}

        reason = response.envelope().reason(f"Request failed ({response.status})")
        if response.unauthorized:
            raise Unauthorized(
                f"{request.method} {request.path} unauthorized: {reason}",
                context={'path': request.path, 'retried': request.retried}
            )

        logger.debug(f"{request.method} {request.path} failed with {response.status}: {reason}")
        raise APIError(reason, status=response.status, context={'path': request.path})

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request('GET', path, params=params)

    async def post(self, path: str, json: Optional[Any] = None) -> Dict[str, Any]:
        return await self.request('POST', path, json=json)

    async def put(self, path: str, json: Optional[Any] = None) -> Dict[str, Any]:
        return await self.request('PUT', path, json=json)

    async def delete(self, path: str) -> Dict[str, Any]:
        return await self.request('DELETE', path)
