"""Tests for login management and keychain storage."""

from unittest.mock import Mock, patch

from keyring.errors import KeyringError, PasswordDeleteError

from beam.auth.keychain import ACCOUNT_NAME, KeychainManager, StoredCredentials
from beam.auth.login import LoginManager
from beam.sync.api_client import CATEGORIES, LoginResult
from beam.sync.http_client import BeamAuthError, BeamClientError
from beam.sync.protocols import CredentialProvider


class TestLoginManager:
    """Tests for LoginManager."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = Mock()
        self.keychain = Mock()
        self.keychain.store.return_value = True
        self.manager = LoginManager(self.client, self.keychain)
        self.on_login = Mock()
        self.on_logout = Mock()
        self.manager.set_login_callback(self.on_login)
        self.manager.set_logout_callback(self.on_logout)

    def test_is_credential_provider(self):
        assert isinstance(self.manager, CredentialProvider)
        assert self.manager.get_token() is None
        assert self.manager.is_logged_in() is False

    def test_login_success(self):
        self.client.login.return_value = LoginResult(
            success=True,
            access_token="jwt-123",
            user_id="u-1",
            user_email="ada@example.com",
            user_name="Ada",
        )

        state = self.manager.login("ada@example.com", "pw")

        assert state.logged_in is True
        assert state.user_name == "Ada"
        assert self.manager.get_token() == "jwt-123"
        assert self.manager.user_email == "ada@example.com"
        stored = self.keychain.store.call_args[0][0]
        assert stored == StoredCredentials("jwt-123", "ada@example.com", "u-1")
        self.on_login.assert_called_once_with(state)

    def test_login_failure(self):
        self.client.login.return_value = LoginResult(success=False, error="Invalid email or password")

        state = self.manager.login("ada@example.com", "wrong")

        assert state.logged_in is False
        assert state.error == "Invalid email or password"
        assert self.manager.get_token() is None
        self.keychain.store.assert_not_called()
        self.on_login.assert_not_called()

    def test_login_survives_keychain_failure(self):
        self.client.login.return_value = LoginResult(success=True, access_token="jwt", user_email="a@b.c")
        self.keychain.store.return_value = False

        state = self.manager.login("a@b.c", "pw")

        assert state.logged_in is True
        assert self.manager.get_token() == "jwt"

    def test_auto_login_without_stored_session(self):
        self.keychain.load.return_value = None

        state = self.manager.try_auto_login()

        assert state.logged_in is False
        self.client.fetch_all.assert_not_called()
        self.on_login.assert_not_called()

    def test_auto_login_verifies_token(self):
        self.keychain.load.return_value = StoredCredentials("jwt", "ada@example.com")
        self.client.fetch_all.return_value = []

        state = self.manager.try_auto_login()

        assert state.logged_in is True
        self.client.fetch_all.assert_called_once_with(CATEGORIES, "jwt")
        assert self.manager.get_token() == "jwt"
        self.on_login.assert_called_once()

    def test_auto_login_discards_rejected_token(self):
        self.keychain.load.return_value = StoredCredentials("expired", "ada@example.com")
        self.client.fetch_all.side_effect = BeamAuthError("Invalid or expired session token")

        state = self.manager.try_auto_login()

        assert state.logged_in is False
        assert self.manager.get_token() is None
        self.keychain.delete.assert_called_once()
        self.on_login.assert_not_called()

    def test_auto_login_offline_keeps_token(self):
        self.keychain.load.return_value = StoredCredentials("jwt", "ada@example.com")
        self.client.fetch_all.side_effect = BeamClientError("Cannot connect to Beam API")

        state = self.manager.try_auto_login()

        assert state.logged_in is True
        assert self.manager.get_token() == "jwt"
        self.keychain.delete.assert_not_called()

    def test_logout(self):
        self.client.login.return_value = LoginResult(success=True, access_token="jwt", user_email="a@b.c")
        self.manager.login("a@b.c", "pw")

        self.manager.logout()

        assert self.manager.get_token() is None
        assert self.manager.user_email is None
        self.keychain.delete.assert_called_once()
        self.on_logout.assert_called_once()


class TestKeychainManager:
    """Tests for KeychainManager."""

    def setup_method(self):
        """Set up test fixtures."""
        self.keychain = KeychainManager(service_name="Beam-Test")
        self.credentials = StoredCredentials("jwt", "ada@example.com", "u-1")

    @patch("beam.auth.keychain.keyring")
    def test_store(self, mock_keyring):
        assert self.keychain.store(self.credentials) is True

        service, account, payload = mock_keyring.set_password.call_args[0]
        assert (service, account) == ("Beam-Test", ACCOUNT_NAME)
        assert StoredCredentials.from_json(payload) == self.credentials

    @patch("beam.auth.keychain.keyring")
    def test_store_failure(self, mock_keyring):
        mock_keyring.set_password.side_effect = KeyringError("locked")
        assert self.keychain.store(self.credentials) is False

    @patch("beam.auth.keychain.keyring")
    def test_load(self, mock_keyring):
        mock_keyring.get_password.return_value = self.credentials.to_json()
        assert self.keychain.load() == self.credentials

    @patch("beam.auth.keychain.keyring")
    def test_load_missing_or_corrupt(self, mock_keyring):
        mock_keyring.get_password.return_value = None
        assert self.keychain.load() is None

        mock_keyring.get_password.return_value = "{not json"
        assert self.keychain.load() is None

        mock_keyring.get_password.return_value = '{"user_email": "x"}'
        assert self.keychain.load() is None

    @patch("beam.auth.keychain.keyring")
    def test_delete_absent_is_ok(self, mock_keyring):
        mock_keyring.delete_password.side_effect = PasswordDeleteError("not found")
        assert self.keychain.delete() is True
