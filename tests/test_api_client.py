"""Tests for the Beam API client."""

import json
import pytest
from unittest.mock import Mock

import requests
import responses
from responses import matchers

from beam.sync.api_client import (
    CATEGORIES,
    TASKS,
    TIME_SESSIONS,
    BeamApiClient,
    LoginResult,
)
from beam.sync.http_client import BeamAuthError, BeamClientError
from beam.sync.retry import NO_RETRY, RetryConfig

API_URL = "http://beam.test/functions/v1"


class TestBeamApiClient:
    """Tests for BeamApiClient."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = BeamApiClient(
            api_url=API_URL + "/",
            retry_config=RetryConfig(max_retries=2, base_delay=0, jitter=False),
        )

    def teardown_method(self):
        """Clean up."""
        self.client.close()

    def test_headers_with_token(self):
        headers = self.client._get_headers("tok")

        assert headers["Authorization"] == "Bearer tok"
        assert headers["Accept"] == "application/json"
        assert headers["User-Agent"].startswith("Beam-Sync/")

    def test_headers_without_token(self):
        assert "Authorization" not in self.client._get_headers()

    def test_headers_fall_back_to_anon_key(self):
        client = BeamApiClient(api_url=API_URL, anon_key="anon")
        assert client._get_headers()["Authorization"] == "Bearer anon"
        client.close()

    @responses.activate
    def test_fetch_tasks(self):
        responses.add(
            responses.GET,
            f"{API_URL}/tasks/tasks",
            json={"tasks": [{"id": "t-1", "title": "A"}]},
            match=[matchers.header_matcher({"Authorization": "Bearer tok"})],
        )

        tasks = self.client.fetch_all(TASKS, "tok")

        assert tasks == [{"id": "t-1", "title": "A"}]

    @responses.activate
    def test_fetch_time_sessions_accepts_either_key(self):
        responses.add(
            responses.GET,
            f"{API_URL}/time-sessions/time-sessions",
            json={"time_sessions": [{"id": "s-1"}]},
        )

        assert self.client.fetch_all(TIME_SESSIONS, "tok") == [{"id": "s-1"}]

    @responses.activate
    def test_fetch_missing_key_is_empty(self):
        responses.add(responses.GET, f"{API_URL}/categories/categories", json={})

        assert self.client.fetch_all(CATEGORIES, "tok") == []

    @responses.activate
    def test_fetch_non_list_raises(self):
        responses.add(responses.GET, f"{API_URL}/categories/categories", json={"categories": "nope"})

        with pytest.raises(BeamClientError):
            self.client.fetch_all(CATEGORIES, "tok")

    @responses.activate
    def test_create_posts_json(self):
        responses.add(
            responses.POST,
            f"{API_URL}/tasks/tasks",
            json={"task": {"id": "t-9"}},
            match=[matchers.json_params_matcher({"title": "New", "status": "pending"})],
        )

        result = self.client.create(TASKS, {"title": "New", "status": "pending"}, "tok")

        assert result == {"task": {"id": "t-9"}}

    @responses.activate
    def test_update_uses_put(self):
        responses.add(responses.PUT, f"{API_URL}/tasks/tasks", json={})

        self.client.update(TASKS, {"id": "t-1", "title": "x"}, "tok")

        assert json.loads(responses.calls[0].request.body) == {"id": "t-1", "title": "x"}

    def test_update_requires_id(self):
        with pytest.raises(ValueError):
            self.client.update(TASKS, {"title": "x"}, "tok")

    @responses.activate
    def test_delete_sends_id_in_body(self):
        responses.add(
            responses.DELETE,
            f"{API_URL}/categories/categories",
            body="",
            status=204,
            match=[matchers.json_params_matcher({"id": "c-1"})],
        )

        assert self.client.delete(CATEGORIES, "c-1", "tok") == {}

    @responses.activate
    def test_401_raises_auth_error(self):
        responses.add(responses.GET, f"{API_URL}/tasks/tasks", status=401)

        with pytest.raises(BeamAuthError):
            self.client.fetch_all(TASKS, "expired")
        assert len(responses.calls) == 1

    @responses.activate
    def test_403_raises_auth_error(self):
        responses.add(responses.DELETE, f"{API_URL}/tasks/tasks", status=403)

        with pytest.raises(BeamAuthError):
            self.client.delete(TASKS, "t-1", "tok")

    @responses.activate
    def test_get_retries_server_errors(self):
        responses.add(responses.GET, f"{API_URL}/tasks/tasks", status=503)
        responses.add(responses.GET, f"{API_URL}/tasks/tasks", json={"tasks": []})

        assert self.client.fetch_all(TASKS, "tok") == []
        assert len(responses.calls) == 2

    @responses.activate
    def test_get_gives_up_after_retries(self):
        responses.add(responses.GET, f"{API_URL}/tasks/tasks", status=500)

        with pytest.raises(BeamClientError, match="Server error: 500"):
            self.client.fetch_all(TASKS, "tok")
        assert len(responses.calls) == 3

    @responses.activate
    def test_writes_are_not_retried(self):
        responses.add(responses.POST, f"{API_URL}/tasks/tasks", status=502)

        with pytest.raises(BeamClientError):
            self.client.create(TASKS, {"title": "x"}, "tok")
        assert len(responses.calls) == 1

    @responses.activate
    def test_client_error_includes_detail(self):
        responses.add(
            responses.POST,
            f"{API_URL}/tasks/tasks",
            json={"error": "title is required"},
            status=400,
        )

        with pytest.raises(BeamClientError, match="title is required"):
            self.client.create(TASKS, {}, "tok")

    @responses.activate
    def test_malformed_json(self):
        responses.add(responses.GET, f"{API_URL}/tasks/tasks", body="<html>", status=200)

        with pytest.raises(BeamClientError, match="Malformed response"):
            self.client.fetch_all(TASKS, "tok")

    def test_connection_error(self):
        session = Mock()
        session.request.side_effect = requests.exceptions.ConnectionError()
        client = BeamApiClient(api_url=API_URL, retry_config=NO_RETRY, session=session)

        with pytest.raises(BeamClientError, match="Cannot connect"):
            client.fetch_all(TASKS, "tok")

    @responses.activate
    def test_fetch_list_body_raises(self):
        responses.add(responses.GET, f"{API_URL}/tasks/tasks", json=[{"id": "x"}])

        with pytest.raises(BeamClientError, match="Expected an object"):
            self.client.fetch_all(TASKS, "tok")

    @responses.activate
    def test_error_body_that_is_not_an_object(self):
        responses.add(responses.POST, f"{API_URL}/tasks/tasks", json=["bad"], status=422)

        with pytest.raises(BeamClientError, match=r"API error \(422\)"):
            self.client.create(TASKS, {}, "tok")

    def test_other_request_errors_become_client_errors(self):
        session = Mock()
        session.request.side_effect = requests.exceptions.TooManyRedirects("loop")
        client = BeamApiClient(api_url=API_URL, retry_config=NO_RETRY, session=session)

        with pytest.raises(BeamClientError, match="loop"):
            client.fetch_all(TASKS, "tok")
        with pytest.raises(BeamClientError):
            client.delete(TASKS, "t-1", "tok")

    def test_timeout_passed_to_session(self):
        session = Mock()
        session.request.return_value = Mock(status_code=200, content=b"{}", json=lambda: {})
        client = BeamApiClient(api_url=API_URL, timeout=7, session=session)

        client.fetch_all(TASKS, "tok")

        assert session.request.call_args.kwargs["timeout"] == 7

    def test_injected_session_not_closed(self):
        session = Mock()
        client = BeamApiClient(api_url=API_URL, session=session)
        client.close()

        session.close.assert_not_called()


class TestLogin:
    """Tests for the password login call."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = BeamApiClient(api_url=API_URL)

    def teardown_method(self):
        """Clean up."""
        self.client.close()

    @responses.activate
    def test_login_success(self):
        responses.add(
            responses.POST,
            f"{API_URL}/auth/login",
            json={
                "session": {"access_token": "jwt-123"},
                "user": {
                    "id": "u-1",
                    "email": "ada@example.com",
                    "user_metadata": {"name": "Ada"},
                },
            },
            match=[matchers.json_params_matcher({"email": "ada@example.com", "password": "pw"})],
        )

        result = self.client.login("ada@example.com", "pw")

        assert result == LoginResult(
            success=True,
            access_token="jwt-123",
            user_id="u-1",
            user_email="ada@example.com",
            user_name="Ada",
        )

    @responses.activate
    def test_login_bad_password(self):
        responses.add(responses.POST, f"{API_URL}/auth/login", status=401)

        result = self.client.login("ada@example.com", "wrong")

        assert result.success is False
        assert result.error == "Invalid email or password"

    @responses.activate
    def test_login_without_token(self):
        responses.add(responses.POST, f"{API_URL}/auth/login", json={"session": None})

        result = self.client.login("ada@example.com", "pw")

        assert result.success is False
        assert "No access token" in result.error

    @responses.activate
    def test_login_non_object_body(self):
        responses.add(responses.POST, f"{API_URL}/auth/login", json=["jwt"])

        result = self.client.login("ada@example.com", "pw")

        assert result.success is False
        assert result.error == "Malformed login response"

    @responses.activate
    def test_login_server_error(self):
        responses.add(responses.POST, f"{API_URL}/auth/login", status=500)

        result = self.client.login("ada@example.com", "pw")

        assert result.success is False
        assert "Server error" in result.error
