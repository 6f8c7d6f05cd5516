"""Beam API client - CRUD calls against the remote task service."""

import logging
from dataclasses import dataclass
from typing import Optional

from .http_client import BaseApiClient, BeamAuthError, BeamClientError

__all__ = [
    "BeamApiClient",
    "BeamClientError",
    "BeamAuthError",
    "LoginResult",
    "TASKS",
    "CATEGORIES",
    "TIME_SESSIONS",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resource:
    """A remote collection: its endpoint and the key wrapping list responses."""

    endpoint: str
    list_key: str
    alt_list_key: Optional[str] = None

    def extract(self, response: dict) -> list[dict]:
        if not isinstance(response, dict):
            raise BeamClientError(f"Expected an object from {self.endpoint}")
        items = response.get(self.list_key)
        if items is None and self.alt_list_key:
            items = response.get(self.alt_list_key)
        if items is None:
            return []
        if not isinstance(items, list):
            raise BeamClientError(f"Expected a list under '{self.list_key}'")
        return items


TASKS = Resource("tasks/tasks", "tasks")
CATEGORIES = Resource("categories/categories", "categories")
TIME_SESSIONS = Resource("time-sessions/time-sessions", "timeSessions", "time_sessions")


@dataclass
class LoginResult:
    """Result of a password login."""

    success: bool
    access_token: Optional[str] = None
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    error: Optional[str] = None


class BeamApiClient(BaseApiClient):
    """List/create/update/delete for each Beam resource.

    Every call takes the bearer token explicitly so that a push issued
    before logout still carries the credential it was created with.
    """

    def fetch_all(self, resource: Resource, token: str) -> list[dict]:
        return resource.extract(self._request("GET", resource.endpoint, token=token))

    def create(self, resource: Resource, payload: dict, token: str) -> dict:
        return self._request("POST", resource.endpoint, token=token, data=payload)

    def update(self, resource: Resource, payload: dict, token: str) -> dict:
        if "id" not in payload:
            raise ValueError("Update payload requires an id")
        return self._request("PUT", resource.endpoint, token=token, data=payload)

    def delete(self, resource: Resource, item_id: str, token: str) -> dict:
        return self._request("DELETE", resource.endpoint, token=token, data={"id": item_id})

    def login(self, email: str, password: str) -> LoginResult:
        """Exchange email/password for a session access token."""
        try:
            response = self._request(
                "POST",
                "auth/login",
                data={"email": email, "password": password},
            )
        except BeamAuthError:
            return LoginResult(success=False, error="Invalid email or password")
        except BeamClientError as e:
            return LoginResult(success=False, error=str(e))

        if not isinstance(response, dict):
            return LoginResult(success=False, error="Malformed login response")
        session = response.get("session") or {}
        token = session.get("access_token")
        if not token:
            return LoginResult(success=False, error="No access token in login response")

        user = response.get("user") or {}
        metadata = user.get("user_metadata") or {}
        return LoginResult(
            success=True,
            access_token=token,
            user_id=user.get("id"),
            user_email=user.get("email") or email,
            user_name=metadata.get("name"),
        )
