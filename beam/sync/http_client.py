"""Base HTTP client for the Beam CRUD API."""

import logging
from typing import Optional

import requests

from .. import __version__
from .retry import RetryConfig, RetryExhausted, retry_with_backoff

__all__ = [
    "BaseApiClient",
    "BeamClientError",
    "BeamAuthError",
]

logger = logging.getLogger(__name__)


class BeamClientError(Exception):
    """Beam API client error."""

    pass


class BeamAuthError(BeamClientError):
    """Authentication error."""

    pass


class _TransientError(Exception):
    """Internal: Marks an error as transient/retryable."""

    pass


class BaseApiClient:
    """HTTP plumbing shared by the Beam API clients.

    Handles:
    - Session management
    - Bearer authentication, one token per call
    - Error classification (auth / transient / client)
    - Retry with exponential backoff for reads only

    Writes are sent exactly once. A failed push is not retried; the next
    full pull is what repairs divergence.
    """

    DEFAULT_RETRY_CONFIG = RetryConfig()

    USER_AGENT = f"Beam-Sync/{__version__}"

    def __init__(
        self,
        api_url: str,
        anon_key: Optional[str] = None,
        timeout: int = 30,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize base API client.

        Args:
            api_url: Base URL of the edge functions / REST API
            anon_key: Public key sent on unauthenticated calls (login)
            timeout: Request timeout in seconds
            retry_config: Backoff settings for GET requests
            session: Optional requests session (for dependency injection/testing)
        """
        self.api_url = api_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self.retry_config = retry_config or self.DEFAULT_RETRY_CONFIG
        self._session = session or requests.Session()
        self._owns_session = session is None

    def _get_headers(self, token: Optional[str] = None) -> dict:
        """Get request headers, with a bearer token when one is given."""
        headers = {
            "Accept": "application/json",
            "User-Agent": self.USER_AGENT,
        }
        bearer = token or self.anon_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    def _request(
        self,
        method: str,
        endpoint: str,
        token: Optional[str] = None,
        data: Optional[dict] = None,
        retry: Optional[bool] = None,
    ) -> dict:
        """Make a request to the Beam API.

        Args:
            method: HTTP method
            endpoint: API endpoint (relative to api_url)
            token: Bearer token for this call
            data: JSON body
            retry: Retry transient failures; defaults to True for GET only

        Returns:
            Response data as dict

        Raises:
            BeamAuthError: For 401/403 responses (not retried)
            BeamClientError: For other errors
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        kwargs: dict = {"timeout": self.timeout, "headers": self._get_headers(token)}
        if data is not None:
            kwargs["json"] = data
        if retry is None:
            retry = method.upper() == "GET"

        def do_request() -> dict:
            try:
                response = self._session.request(method, url, **kwargs)

                if response.status_code == 401:
                    raise BeamAuthError("Invalid or expired session token")
                if response.status_code == 403:
                    raise BeamAuthError("Not authorized for this resource")

                # Server errors (5xx) are retryable
                if response.status_code >= 500:
                    raise _TransientError(f"Server error: {response.status_code}")

                response.raise_for_status()
                return response.json() if response.content else {}

            except requests.exceptions.ConnectionError:
                raise _TransientError("Cannot connect to Beam API")
            except requests.exceptions.Timeout:
                raise _TransientError("Request timed out")
            except requests.exceptions.HTTPError as e:
                error_detail = ""
                try:
                    body = e.response.json()
                except ValueError:
                    body = None
                if isinstance(body, dict):
                    error_detail = body.get("error", "")
                raise BeamClientError(
                    f"API error ({e.response.status_code}): {error_detail or str(e)}"
                ) from e
            except ValueError as e:
                raise BeamClientError(f"Malformed response from {endpoint}: {e}") from e
            except requests.exceptions.RequestException as e:
                raise BeamClientError(f"Request to {endpoint} failed: {e}") from e

        if retry:
            try:
                return retry_with_backoff(
                    do_request,
                    config=self.retry_config,
                    retryable_exceptions=(_TransientError,),
                )
            except RetryExhausted as e:
                if e.last_error:
                    raise BeamClientError(str(e.last_error)) from e.last_error
                raise BeamClientError("Request failed after retries") from e
        else:
            try:
                return do_request()
            except _TransientError as e:
                raise BeamClientError(str(e)) from e

    def close(self) -> None:
        """Close the session if we own it."""
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "BaseApiClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
