"""Sync module - local store, remote gateway and pull triggers."""

from .api_client import BeamApiClient, LoginResult
from .gateway import PullResult, PushResult, RemoteSyncGateway
from .http_client import BeamAuthError, BeamClientError
from .local_store import LocalStore
from .protocols import CredentialProvider, PushGatewayProtocol, ReplaceableStoreProtocol
from .retry import RetryConfig, retry_with_backoff
from .storage import StateStorage
from .triggers import SyncTriggerPolicy

__all__ = [
    "BeamApiClient",
    "LoginResult",
    "BeamAuthError",
    "BeamClientError",
    "RemoteSyncGateway",
    "PushResult",
    "PullResult",
    "LocalStore",
    "CredentialProvider",
    "PushGatewayProtocol",
    "ReplaceableStoreProtocol",
    "RetryConfig",
    "retry_with_backoff",
    "StateStorage",
    "SyncTriggerPolicy",
]
