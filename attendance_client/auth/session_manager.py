"""
Session lifecycle for the Attendance Client.

This module provides login, registration, logout and identity bootstrap on top
of the API client, and keeps the persisted session consistent: an identity is
never kept once its credential is gone.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union, TYPE_CHECKING

from attendance_client.auth.session import Session
from attendance_client.exceptions import (
    APIError, AuthFailed, RegistrationFailed, Unauthorized
)
from attendance_client.http.transport import AUTHORIZATION, PendingRequest, Response
from attendance_client.logging_config import AuditLogger
from attendance_client.models import ApiEnvelope, Identity, Role

if TYPE_CHECKING:
    from attendance_client.api_client import AttendanceAPIClient

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
REGISTER_PATH = "/auth/register"
ME_PATH = "/auth/me"


class SessionManager:
    """
    Owns the session lifecycle of one API client.

    Login bypasses credential attachment and renewal; every other call,
    registration included, goes through the client's authenticated pipeline.
    """

    def __init__(self, client: "AttendanceAPIClient"):
        self.client = client
        self.session: Session = client.session
        self.audit = AuditLogger()

    async def _post(self, path: str, payload: Dict[str, Any], authenticated: bool) -> Response:
        request = PendingRequest(method='POST', path=path, json=payload, authenticated=authenticated)
        return await self.client.pipeline.dispatch(request)

    async def login(self, identifier: str, password: str) -> Identity:
        """
        Authenticate and persist the session.

        Args:
            identifier: Username or email
            password: Account password

        Returns:
            Identity of the logged-in user

        Raises:
            AuthFailed: When the backend rejects the credentials; nothing is persisted
            TransportError: When the backend cannot be reached
        """
        logger.info(f"Logging in as {identifier}")

        response = await self._post(
            LOGIN_PATH, {'identifier': identifier, 'password': password}, authenticated=False
        )
        envelope = response.envelope()

        if not response.ok or not envelope.is_success:
            reason = envelope.reason("Login failed")
            self.audit.log_authentication(identifier, success=False, failure_reason=reason)
            raise AuthFailed(reason, context={'status': response.status})

        try:
            token = envelope.data['token']
            identity = Identity.from_dict(envelope.data['user'])
        except (KeyError, TypeError, ValueError) as e:
            self.audit.log_authentication(identifier, success=False, failure_reason="malformed response")
            raise AuthFailed(f"Malformed login response: {e}", cause=e)

        self.session.save(token, identity)
        self.audit.log_authentication(identity.username, user_id=identity.id)
        logger.info(f"Login successful for {identity.username} ({identity.role.value})")
        return identity

    async def register(
        self,
        username: str,
        password: str,
        email: str,
        role: Union[Role, str],
        personnel_id: int
    ) -> Identity:
        """
        Create a new account. Does not log in.

        The backend only lets an administrator create accounts, so the current
        credential is attached and renewed like any other request.

        Returns:
            Identity of the created account

        Raises:
            RegistrationFailed: On validation errors, conflicts or a caller
                without an administrator session
        """
        role = Role.parse(role)
        response = await self._post(REGISTER_PATH, {
            'username': username,
            'password': password,
            'email': email,
            'role': role.value,
            'personnel_id': personnel_id,
        }, authenticated=True)
        envelope = response.envelope()

        if not response.ok or not envelope.is_success:
            raise RegistrationFailed(
                envelope.reason("Registration failed"),
                field_errors=envelope.messages,
                context={'status': response.status}
            )

        logger.info(f"Account created for {username}")
        user = envelope.data.get('user')
        if isinstance(user, dict):
            return Identity.from_dict(user)

        return Identity(
            id=int(envelope.data.get('user_id') or 0),
            username=username,
            email=email,
            role=role,
        )

    async def fetch_current_identity(self) -> Identity:
        """
        Ask the backend who the current credential belongs to.

        Raises:
            Unauthorized: When the credential is rejected even after renewal
        """
        body = await self.client.get(ME_PATH)
        envelope = ApiEnvelope.from_body(body)
        try:
            return Identity.from_dict(envelope.data['user'])
        except (KeyError, TypeError, ValueError) as e:
            raise APIError(f"Malformed identity response: {e}", status=200, cause=e)

    async def refresh_identity(self) -> Identity:
        """Fetch the current identity and persist it next to the credential."""
        try:
            identity = await self.fetch_current_identity()
        except (Unauthorized, APIError):
            self.logout(reason="identity refresh rejected")
            raise

        credential = self.session.credential
        if credential:
            self.session.save(credential, identity)
        return identity

    async def bootstrap(self) -> Optional[Identity]:
        """
        Restore a persisted session, verifying it with the backend.

        Returns:
            The verified identity, or None when no usable session exists
        """
        if not self.session.credential or not self.session.identity:
            return None

        try:
            return await self.fetch_current_identity()
        except (Unauthorized, APIError) as e:
            logger.error(f"Stored session could not be verified: {e}")
            self.logout(reason="stored session rejected")
            return None

    def logout(self, reason: str = "user") -> None:
        """
        Clear the session and any globally attached credential header.

        Never fails; safe to call when no session exists.
        """
        identity = self.session.identity
        try:
            self.session.clear()
        except Exception as e:
            logger.error(f"Failed to clear stored session: {e}")

        drop_header = getattr(self.client.transport, 'drop_header', None)
        if drop_header:
            drop_header(AUTHORIZATION)

        if identity:
            self.audit.log_logout(identity.username, reason=reason)

    def expire_session(self) -> None:
        """Silent logout used when renewal fails."""
        self.logout(reason="renewal failed")

    def get_stored_identity(self) -> Optional[Identity]:
        return self.session.identity

    def get_credential(self) -> Optional[str]:
        return self.session.credential

    def credential_expires_at(self) -> Optional[datetime]:
        return self.session.expires_at()

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def has_role(self, role: Union[Role, str]) -> bool:
        identity = self.session.identity
        if identity is None:
            return False
        try:
            return identity.role is Role.parse(role)
        except ValueError:
            return False

    def is_admin(self) -> bool:
        return self.has_role(Role.ADMIN)
