"""
Core interfaces for the Attendance Client.

This module defines the abstract interfaces that the session store and the
HTTP transport must implement.
"""

from abc import ABC, abstractmethod
from typing import Optional, TYPE_CHECKING

from .models import Identity

if TYPE_CHECKING:
    from .http.transport import PendingRequest, Response


class ISessionStore(ABC):
    """Interface for persisting the current credential and identity."""

    @abstractmethod
    def save(self, credential: str, identity: Optional[Identity]) -> None:
        """Persist credential and identity together."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove both credential and identity."""
        pass

    @abstractmethod
    def get_credential(self) -> Optional[str]:
        """Get the stored credential."""
        pass

    @abstractmethod
    def get_identity(self) -> Optional[Identity]:
        """Get the stored identity."""
        pass


class ITransport(ABC):
    """Interface for a single-exchange HTTP transport."""

    @abstractmethod
    async def send(self, request: "PendingRequest") -> "Response":
        """Send one request and return its response."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release transport resources."""
        pass
