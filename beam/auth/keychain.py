"""Secure credential storage using the system keychain."""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

__all__ = ["KeychainManager", "StoredCredentials"]

logger = logging.getLogger(__name__)

SERVICE_NAME = "Beam"
ACCOUNT_NAME = "session"


@dataclass
class StoredCredentials:
    """Session credentials kept between runs."""

    access_token: str
    user_email: str
    user_id: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: str) -> "StoredCredentials":
        parsed = json.loads(data)
        return cls(
            access_token=parsed["access_token"],
            user_email=parsed["user_email"],
            user_id=parsed.get("user_id"),
        )


class KeychainManager:
    """Reads and writes the stored session in the OS keychain."""

    def __init__(self, service_name: str = SERVICE_NAME):
        self.service_name = service_name

    def store(self, credentials: StoredCredentials) -> bool:
        """Store credentials. Returns True on success."""
        try:
            keyring.set_password(self.service_name, ACCOUNT_NAME, credentials.to_json())
            logger.info(f"Credentials stored for {credentials.user_email}")
            return True
        except KeyringError as e:
            logger.error(f"Failed to store credentials: {e}")
            return False

    def load(self) -> Optional[StoredCredentials]:
        """Load credentials, or None if absent or unreadable."""
        try:
            data = keyring.get_password(self.service_name, ACCOUNT_NAME)
            if data:
                return StoredCredentials.from_json(data)
            return None
        except KeyringError as e:
            logger.error(f"Failed to load credentials: {e}")
            return None
        except (json.JSONDecodeError, KeyError) as e:
            logger.error(f"Invalid credential format: {e}")
            return None

    def delete(self) -> bool:
        """Delete stored credentials. True if deleted or already absent."""
        try:
            keyring.delete_password(self.service_name, ACCOUNT_NAME)
            logger.info("Credentials deleted")
            return True
        except PasswordDeleteError:
            return True
        except KeyringError as e:
            logger.error(f"Failed to delete credentials: {e}")
            return False
