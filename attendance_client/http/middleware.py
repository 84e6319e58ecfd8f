"""
Request/response middleware for the Attendance Client.

Outgoing requests pass through an ordered list of request transforms; each
response then passes through an ordered list of response handlers. A handler
may replay the request once through the same exchange, which is how expired
credentials are renewed transparently:

    INITIAL --401--> RENEWING --renewed--> REPLAYED --> DONE
                         \\--failed--> LOGGED_OUT --> DONE
    INITIAL --anything else--> DONE

A request that already carries the RETRIED marker is never renewed again.
"""

import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from attendance_client.auth.session import Session
from attendance_client.exceptions import RenewalFailed
from attendance_client.http.renewal import RenewalClient
from attendance_client.http.transport import AUTHORIZATION, PendingRequest, Response
from attendance_client.interfaces import ITransport

logger = logging.getLogger(__name__)

Replay = Callable[[PendingRequest], Awaitable[Response]]
RequestTransform = Callable[[PendingRequest], PendingRequest]
ResponseHandler = Callable[[PendingRequest, Response, Replay], Awaitable[Response]]


class Pipeline:
    """Composes request transforms, a transport and response handlers."""

    def __init__(
        self,
        transport: ITransport,
        request_transforms: Sequence[RequestTransform] = (),
        response_handlers: Sequence[ResponseHandler] = ()
    ):
        self.transport = transport
        self.request_transforms: List[RequestTransform] = list(request_transforms)
        self.response_handlers: List[ResponseHandler] = list(response_handlers)

    async def dispatch(self, request: PendingRequest) -> Response:
        for transform in self.request_transforms:
            request = transform(request)
        return await self._exchange(request)

    async def _exchange(self, request: PendingRequest) -> Response:
        response = await self.transport.send(request)
        for handler in self.response_handlers:
            response = await handler(request, response, self._exchange)
        return response


class CredentialAttacher:
    """Adds `Authorization: Bearer <credential>` when a credential is held."""

    def __init__(self, session: Session):
        self.session = session

    def __call__(self, request: PendingRequest) -> PendingRequest:
        return self.decorate(request)

    def decorate(self, request: PendingRequest, credential: Optional[str] = None) -> PendingRequest:
        if not request.authenticated:
            return request

        credential = credential or self.session.credential
        if not credential:
            return request

        # Replace rather than add so the header is never duplicated
        return request.without_header(AUTHORIZATION).with_header(
            AUTHORIZATION, f'Bearer {credential}'
        )


class ResponseGatekeeper:
    """
    Detects expired credentials and drives the renew-and-replay protocol.

    Each logical request is renewed at most once; a second 401 is returned
    to the caller unchanged.
    """

    def __init__(
        self,
        session: Session,
        renewal: RenewalClient,
        attacher: CredentialAttacher,
        on_session_expired: Callable[[], None]
    ):
        self.session = session
        self.renewal = renewal
        self.attacher = attacher
        self.on_session_expired = on_session_expired

    async def __call__(self, request: PendingRequest, response: Response, replay: Replay) -> Response:
        return await self.handle(request, response, replay)

    async def handle(self, request: PendingRequest, response: Response, replay: Replay) -> Response:
        if not response.unauthorized or not request.authenticated:
            return response

        # Marker is set before renewal starts so no re-entrant call can renew again
        if not request.claim_retry():
            logger.debug(f"{request.method} {request.path} rejected after renewal")
            return response

        credential = self.session.credential
        if credential:
            try:
                new_credential = await self.renewal.renew(credential)
            except RenewalFailed as e:
                logger.debug(f"Renewal failed: {e}")
            else:
                logger.debug(f"Replaying {request.method} {request.path} with renewed credential")
                return await replay(self.attacher.decorate(request, credential=new_credential))

        self.on_session_expired()
        logger.warning("Session expired - logged out automatically")
        return response
