"""
Secure Session Storage for the Attendance Client.

This module persists the current credential and identity using the system
keyring, or an encrypted file when no keyring backend is usable.
"""

import os
import json
import logging
from typing import Optional, Dict, Any
from pathlib import Path
import base64
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from attendance_client.exceptions import StorageError
from attendance_client.interfaces import ISessionStore
from attendance_client.models import Identity

logger = logging.getLogger(__name__)

TOKEN_SLOT = "token"
USER_SLOT = "user"


def _identity_from_json(value: Optional[str]) -> Optional[Identity]:
    if not value:
        return None
    try:
        return Identity.from_dict(json.loads(value))
    except (ValueError, KeyError, TypeError) as e:
        logger.warning(f"Ignoring unreadable stored identity: {e}")
        return None


def _identity_to_json(identity: Optional[Identity]) -> Optional[str]:
    return json.dumps(identity.to_dict()) if identity else None


class MemoryTokenStorage(ISessionStore):
    """Process-local session store."""

    def __init__(self):
        self._slots: Dict[str, str] = {}

    def save(self, credential: str, identity: Optional[Identity]) -> None:
        self._slots[TOKEN_SLOT] = credential
        user = _identity_to_json(identity)
        if user:
            self._slots[USER_SLOT] = user
        else:
            self._slots.pop(USER_SLOT, None)

    def clear(self) -> None:
        self._slots.clear()

    def get_credential(self) -> Optional[str]:
        return self._slots.get(TOKEN_SLOT)

    def get_identity(self) -> Optional[Identity]:
        return _identity_from_json(self._slots.get(USER_SLOT))


class SecureTokenStorage(ISessionStore):
    """
    Secure storage for the session credential and identity.

    Uses the system keyring when available and falls back to a Fernet
    encrypted file. Both slots are always written and cleared together.
    """

    def __init__(
        self,
        service_name: str = "attendance-client",
        storage_path: Optional[Path] = None,
        use_keyring: Optional[bool] = None
    ):
        self.service_name = service_name
        if use_keyring is None:
            use_keyring = self._check_keyring_availability()
        self.keyring_available = use_keyring
        self.storage_path = Path(storage_path) if storage_path else self._get_storage_path()

        # Encryption key for file storage
        self._encryption_key: Optional[bytes] = None

        logger.info(f"Session storage initialized (keyring: {self.keyring_available})")

    def _check_keyring_availability(self) -> bool:
        """Check if system keyring is available."""
        try:
            import keyring
            test_key = f"{self.service_name}_test"
            keyring.set_password(self.service_name, test_key, "test")
            result = keyring.get_password(self.service_name, test_key)
            keyring.delete_password(self.service_name, test_key)
            return result == "test"
        except Exception as e:
            logger.debug(f"Keyring not available: {e}")
            return False

    def _get_storage_path(self) -> Path:
        """Get path for encrypted file storage."""
        xdg_config = os.environ.get('XDG_CONFIG_HOME')
        if xdg_config:
            config_dir = Path(xdg_config) / 'attendance-client'
        else:
            config_dir = Path.home() / '.config' / 'attendance-client'

        return config_dir / 'session.enc'

    @property
    def key_path(self) -> Path:
        return self.storage_path.with_suffix('.key')

    def _get_encryption_key(self) -> bytes:
        """Get or create the encryption key for file storage."""
        if self._encryption_key:
            return self._encryption_key

        if self.key_path.exists():
            self._encryption_key = self.key_path.read_bytes().strip()
            return self._encryption_key

        password = os.urandom(32)
        salt = os.urandom(16)

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=100000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(password))

        # The key must outlive the process for the session to survive restarts
        self.key_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'wb') as f:
            f.write(key)
        os.chmod(self.key_path, 0o600)

        self._encryption_key = key
        return key

    def _encrypt_data(self, data: str) -> bytes:
        fernet = Fernet(self._get_encryption_key())
        return fernet.encrypt(data.encode())

    def _decrypt_data(self, encrypted_data: bytes) -> str:
        fernet = Fernet(self._get_encryption_key())
        return fernet.decrypt(encrypted_data).decode()

    def save(self, credential: str, identity: Optional[Identity]) -> None:
        """
        Store credential and identity securely.

        Args:
            credential: Bearer token
            identity: Profile of the user the token belongs to
        """
        slots = {
            TOKEN_SLOT: credential,
            USER_SLOT: _identity_to_json(identity),
        }

        try:
            if self.keyring_available:
                self._save_keyring(slots)
            else:
                self._save_file(slots)

            logger.info("Session stored securely")

        except Exception as e:
            logger.error(f"Failed to store session: {e}")
            raise StorageError(f"Failed to store session: {e}", cause=e)

    def _save_keyring(self, slots: Dict[str, Optional[str]]) -> None:
        import keyring

        for slot, value in slots.items():
            if value is None:
                self._delete_keyring_slot(slot)
            else:
                keyring.set_password(self.service_name, slot, value)

    def _save_file(self, slots: Dict[str, Optional[str]]) -> None:
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        encrypted_data = self._encrypt_data(json.dumps(slots))
        self.storage_path.write_bytes(encrypted_data)

        # Set restrictive permissions
        os.chmod(self.storage_path, 0o600)

    def _load_slots(self) -> Dict[str, Any]:
        try:
            if self.keyring_available:
                import keyring
                return {
                    TOKEN_SLOT: keyring.get_password(self.service_name, TOKEN_SLOT),
                    USER_SLOT: keyring.get_password(self.service_name, USER_SLOT),
                }

            if not self.storage_path.exists():
                return {}
            return json.loads(self._decrypt_data(self.storage_path.read_bytes()))

        except (InvalidToken, ValueError, OSError) as e:
            logger.warning(f"Failed to read stored session: {e}")
            return {}
        except Exception as e:
            logger.error(f"Failed to read stored session: {e}")
            return {}

    def get_credential(self) -> Optional[str]:
        return self._load_slots().get(TOKEN_SLOT)

    def get_identity(self) -> Optional[Identity]:
        return _identity_from_json(self._load_slots().get(USER_SLOT))

    def clear(self) -> None:
        """Remove stored credential and identity. Safe when nothing is stored."""
        try:
            if self.keyring_available:
                for slot in (TOKEN_SLOT, USER_SLOT):
                    self._delete_keyring_slot(slot)
            elif self.storage_path.exists():
                self.storage_path.unlink()
        except Exception as e:
            logger.warning(f"Failed to remove stored session: {e}")

    def _delete_keyring_slot(self, slot: str) -> None:
        import keyring
        from keyring.errors import PasswordDeleteError

        try:
            keyring.delete_password(self.service_name, slot)
        except PasswordDeleteError:
            pass
