"""
Session state for the Attendance Client.

A Session pairs the current credential with the identity it was issued for.
It is passed explicitly to every component that needs it, and all reads go
through the underlying store so that writes are visible immediately.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional
from jose import jwt, JWTError

from attendance_client.interfaces import ISessionStore
from attendance_client.models import Identity

logger = logging.getLogger(__name__)


class Session:
    """The (credential, identity) pair of the single client session."""

    def __init__(self, store: ISessionStore):
        self.store = store
        self._listeners: List[Callable[[bool], None]] = []

    @property
    def credential(self) -> Optional[str]:
        return self.store.get_credential()

    @property
    def identity(self) -> Optional[Identity]:
        return self.store.get_identity()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.credential)

    def add_listener(self, callback: Callable[[bool], None]) -> None:
        """
        Add callback for authentication state changes.

        Args:
            callback: Function called with the new authenticated flag
        """
        self._listeners.append(callback)

    def _notify(self, is_authenticated: bool) -> None:
        for callback in self._listeners:
            try:
                callback(is_authenticated)
            except Exception as e:
                logger.error(f"Error in session listener: {e}")

    def save(self, credential: str, identity: Optional[Identity]) -> None:
        self.store.save(credential, identity)
        self._notify(True)

    def update_credential(self, credential: str) -> bool:
        """
        Replace the credential, keeping the stored identity.

        Returns False without writing when the session was cleared meanwhile,
        e.g. by a logout while a renewal was in flight.
        """
        if not self.store.get_credential():
            return False
        self.store.save(credential, self.store.get_identity())
        return True

    def clear(self) -> None:
        was_authenticated = self.is_authenticated
        self.store.clear()
        if was_authenticated:
            self._notify(False)

    def expires_at(self) -> Optional[datetime]:
        """
        Expiration time of the current credential.

        Returns:
            Expiration datetime, or None when no credential is held or the
            credential carries no readable `exp` claim
        """
        credential = self.credential
        if not credential:
            return None

        try:
            # Decode without verification; the backend owns the signing key
            claims = jwt.get_unverified_claims(credential)
        except JWTError as e:
            logger.debug(f"Credential is not a readable JWT: {e}")
            return None

        exp = claims.get('exp')
        if not isinstance(exp, (int, float)):
            return None
        return datetime.fromtimestamp(exp)
