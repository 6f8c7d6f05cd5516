"""Protocol types for the sync layer's collaborators.

The local store and the remote gateway reference each other; these
interfaces break the cycle and let tests substitute either side.
"""

from concurrent.futures import Future
from typing import Any, Optional, Protocol, runtime_checkable

from ..models import Category, Task, TimeSession


@runtime_checkable
class CredentialProvider(Protocol):
    """Source of the current bearer token (None when logged out)."""

    def get_token(self) -> Optional[str]: ...


@runtime_checkable
class StateStorageProtocol(Protocol):
    """Durable key-value storage for JSON documents."""

    def load(self, key: str) -> Optional[Any]: ...

    def save(self, key: str, value: Any) -> None: ...


@runtime_checkable
class PushGatewayProtocol(Protocol):
    """Outbound half of the gateway, as seen by the local store."""

    def push_task_created(self, task: Task) -> Future: ...

    def push_task_updated(self, task_id: str, changes: dict) -> Future: ...

    def push_task_deleted(self, task_id: str) -> Future: ...

    def push_category_created(self, category: Category) -> Future: ...

    def push_category_updated(self, category_id: str, changes: dict) -> Future: ...

    def push_category_deleted(self, category_id: str) -> Future: ...

    def push_time_session_created(self, session: TimeSession) -> Future: ...


@runtime_checkable
class ReplaceableStoreProtocol(Protocol):
    """Inbound half: the one entry point a pull uses to apply server truth."""

    def replace_all(
        self,
        tasks: list[Task],
        categories: list[Category],
        time_sessions: list[TimeSession],
    ) -> None: ...
