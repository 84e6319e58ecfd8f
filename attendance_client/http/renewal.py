"""
Credential renewal for the Attendance Client.

Renewal talks to the transport directly so that its own 401 is never seen by
the response gatekeeper.
"""

import logging

from attendance_client.auth.session import Session
from attendance_client.exceptions import RenewalFailed, TransportError
from attendance_client.http.transport import AUTHORIZATION, PendingRequest
from attendance_client.interfaces import ITransport
from attendance_client.logging_config import AuditLogger

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh"


class RenewalClient:
    """Exchanges the current credential for a fresh one."""

    def __init__(self, transport: ITransport, session: Session, path: str = REFRESH_PATH):
        self.transport = transport
        self.session = session
        self.path = path
        self.audit = AuditLogger()

    async def renew(self, current_credential: str) -> str:
        """
        Renew a credential.

        Args:
            current_credential: Credential to present to the refresh endpoint

        Returns:
            The new credential, already persisted in the session

        Raises:
            RenewalFailed: On transport error, non-2xx status or a response
                without a token. Never retried.
        """
        request = PendingRequest(
            method='POST',
            path=self.path,
            json={},
            headers={AUTHORIZATION: f'Bearer {current_credential}'},
            authenticated=False
        )

        try:
            response = await self.transport.send(request)
        except TransportError as e:
            self.audit.log_renewal(success=False, failure_reason=str(e))
            raise RenewalFailed(f"Refresh endpoint unreachable: {e}", cause=e)

        if not response.ok:
            reason = response.envelope().reason(f"status {response.status}")
            self.audit.log_renewal(success=False, failure_reason=reason)
            raise RenewalFailed(
                f"Refresh rejected ({response.status}): {reason}",
                context={'status': response.status}
            )

        new_credential = response.envelope().data.get('token')
        if not isinstance(new_credential, str) or not new_credential:
            self.audit.log_renewal(success=False, failure_reason="missing token")
            raise RenewalFailed("Refresh response carried no token")

        if not self.session.update_credential(new_credential):
            self.audit.log_renewal(success=False, failure_reason="session ended during renewal")
            raise RenewalFailed("Session ended while the credential was being renewed")

        self.audit.log_renewal(success=True)
        logger.info("Credential renewed")
        return new_credential
