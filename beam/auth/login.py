"""Login management - owns the current session token."""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from ..sync.api_client import CATEGORIES, BeamApiClient
from ..sync.http_client import BeamAuthError, BeamClientError
from .keychain import KeychainManager, StoredCredentials

__all__ = ["LoginManager", "LoginState"]

logger = logging.getLogger(__name__)


@dataclass
class LoginState:
    """Current login state."""

    logged_in: bool = False
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    error: Optional[str] = None


class LoginManager:
    """Authenticates the user and serves as the sync layer's credential provider."""

    def __init__(self, client: BeamApiClient, keychain: Optional[KeychainManager] = None):
        """Initialize login manager.

        Args:
            client: Beam API client
            keychain: Keychain manager (creates default if None)
        """
        self.client = client
        self.keychain = keychain or KeychainManager()
        self._token: Optional[str] = None
        self._user_email: Optional[str] = None
        self._lock = threading.Lock()
        self._on_login_callback: Optional[Callable[[LoginState], None]] = None
        self._on_logout_callback: Optional[Callable[[], None]] = None

    def set_login_callback(self, callback: Callable[[LoginState], None]) -> None:
        """Set callback for login state changes."""
        self._on_login_callback = callback

    def set_logout_callback(self, callback: Callable[[], None]) -> None:
        """Set callback for logout."""
        self._on_logout_callback = callback

    def get_token(self) -> Optional[str]:
        with self._lock:
            return self._token

    def _set_session(self, token: Optional[str], user_email: Optional[str]) -> None:
        with self._lock:
            self._token = token
            self._user_email = user_email

    def _notify_login(self, state: LoginState) -> None:
        if self._on_login_callback:
            self._on_login_callback(state)

    def try_auto_login(self) -> LoginState:
        """Restore the stored session, if any.

        A token rejected by the server is discarded. A network failure keeps
        it, so the app can work offline and sync once the API is reachable.
        """
        credentials = self.keychain.load()
        if not credentials:
            return LoginState(logged_in=False)

        try:
            self.client.fetch_all(CATEGORIES, credentials.access_token)
        except BeamAuthError as e:
            logger.warning(f"Auto-login failed (auth): {e}")
            self.keychain.delete()
            return LoginState(logged_in=False, error="Stored session has expired")
        except BeamClientError as e:
            logger.warning(f"Could not verify stored session, using it anyway: {e}")

        self._set_session(credentials.access_token, credentials.user_email)
        state = LoginState(logged_in=True, user_email=credentials.user_email)
        logger.info(f"Session restored for {credentials.user_email}")
        self._notify_login(state)
        return state

    def login(self, email: str, password: str) -> LoginState:
        """Log in with email and password."""
        result = self.client.login(email, password)
        if not result.success:
            logger.warning(f"Login failed: {result.error}")
            return LoginState(logged_in=False, error=result.error)

        credentials = StoredCredentials(
            access_token=result.access_token,
            user_email=result.user_email or email,
            user_id=result.user_id,
        )
        if not self.keychain.store(credentials):
            logger.warning("Failed to store credentials in keychain")

        self._set_session(credentials.access_token, credentials.user_email)
        state = LoginState(
            logged_in=True,
            user_email=credentials.user_email,
            user_name=result.user_name,
        )
        logger.info(f"Logged in as {credentials.user_email}")
        self._notify_login(state)
        return state

    def logout(self) -> None:
        """Forget the session locally and in the keychain."""
        self._set_session(None, None)
        self.keychain.delete()
        logger.info("Logged out")
        if self._on_logout_callback:
            self._on_logout_callback()

    def is_logged_in(self) -> bool:
        return self.get_token() is not None

    @property
    def user_email(self) -> Optional[str]:
        with self._lock:
            return self._user_email
