"""Remote sync gateway - best-effort pushes and pull-and-replace."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Optional

from ..models import Category, Task, TimeSession
from .api_client import CATEGORIES, TASKS, TIME_SESSIONS, BeamApiClient, BeamClientError
from .mapping import (
    category_changes_to_wire,
    category_from_wire,
    category_to_wire,
    task_changes_to_wire,
    task_from_wire,
    task_to_wire,
    time_session_from_wire,
    time_session_to_wire,
)
from .protocols import CredentialProvider, ReplaceableStoreProtocol

__all__ = ["RemoteSyncGateway", "PushResult", "PullResult"]

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    """Outcome of one push. Callers are free to ignore it."""

    success: bool
    resource: str
    action: str
    item_id: Optional[str] = None
    skipped: bool = False
    error: Optional[str] = None


@dataclass
class PullResult:
    """Outcome of one pull-and-replace."""

    success: bool
    skipped: bool = False
    applied: bool = False
    tasks: int = 0
    categories: int = 0
    time_sessions: int = 0
    error: Optional[str] = None


class RemoteSyncGateway:
    """Moves data between the local store and the remote CRUD API.

    Pushes run on a worker pool and are never retried or ordered; each one
    carries the token that was current when it was issued. A pull fetches
    the three collections in parallel and replaces the store wholesale.
    Concurrent pulls are not coalesced: whichever resolves last wins.

    Without a credential, pushes and pulls are no-ops.
    """

    def __init__(
        self,
        client: BeamApiClient,
        store: ReplaceableStoreProtocol,
        credentials: CredentialProvider,
        max_workers: int = 4,
    ):
        """Initialize the gateway.

        Args:
            client: API client used for every request
            store: Receives pulled data via ``replace_all``
            credentials: Supplies the bearer token
            max_workers: Worker threads for pushes and pulls
        """
        self.client = client
        self.store = store
        self.credentials = credentials
        # Pushes and pulls run here; the fetch pool only runs leaf GETs so a
        # pull waiting on its fetches can never starve them.
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="beam-sync")
        self._fetch_pool = ThreadPoolExecutor(max_workers=3, thread_name_prefix="beam-fetch")
        self._pending: set[Future] = set()
        self._pending_lock = threading.Lock()
        self._closed = False

    # -- Pull -------------------------------------------------------------

    def load_from_remote(self) -> PullResult:
        """Fetch everything and replace the local store. Blocks the caller.

        Any failure leaves the store untouched. The result is also dropped
        if the credential changed or disappeared while the fetch was in
        flight.
        """
        token = self.credentials.get_token()
        if not token:
            logger.debug("Sync skipped: no session token")
            return PullResult(success=True, skipped=True)

        logger.info("Loading data from remote...")
        try:
            futures = {
                name: self._fetch_pool.submit(self.client.fetch_all, resource, token)
                for name, resource in (
                    ("tasks", TASKS),
                    ("categories", CATEGORIES),
                    ("time_sessions", TIME_SESSIONS),
                )
            }
            raw = {name: future.result() for name, future in futures.items()}

            tasks = [task_from_wire(t) for t in raw["tasks"]]
            categories = [category_from_wire(c) for c in raw["categories"]]
            sessions = [time_session_from_wire(s) for s in raw["time_sessions"]]
        except BeamClientError as e:
            logger.error(f"Sync failed: {e}")
            return PullResult(success=False, error=str(e))
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Sync failed, malformed remote data: {e!r}")
            return PullResult(success=False, error=f"Malformed remote data: {e!r}")

        if self.credentials.get_token() != token:
            logger.info("Credential changed during pull, discarding result")
            return PullResult(success=True, skipped=True)

        self.store.replace_all(tasks, categories, sessions)
        logger.info(
            f"Data synced: {len(tasks)} tasks, {len(categories)} categories, "
            f"{len(sessions)} time sessions"
        )
        return PullResult(
            success=True,
            applied=True,
            tasks=len(tasks),
            categories=len(categories),
            time_sessions=len(sessions),
        )

    def request_pull(self) -> Future:
        """Schedule ``load_from_remote`` on the worker pool."""
        return self._track(self._pool.submit(self.load_from_remote))

    # -- Push -------------------------------------------------------------

    def push_task_created(self, task: Task) -> Future:
        payload = task_to_wire(task)
        return self._submit_push(
            "task", "create", task.id,
            lambda token: self.client.create(TASKS, payload, token),
            refresh=True,
        )

    def push_task_updated(self, task_id: str, changes: dict) -> Future:
        payload = task_changes_to_wire(task_id, changes)
        return self._submit_push(
            "task", "update", task_id,
            lambda token: self.client.update(TASKS, payload, token),
            refresh=True,
        )

    def push_task_deleted(self, task_id: str) -> Future:
        return self._submit_push(
            "task", "delete", task_id,
            lambda token: self.client.delete(TASKS, task_id, token),
            refresh=True,
        )

    def push_category_created(self, category: Category) -> Future:
        payload = category_to_wire(category)
        return self._submit_push(
            "category", "create", category.id,
            lambda token: self.client.create(CATEGORIES, payload, token),
        )

    def push_category_updated(self, category_id: str, changes: dict) -> Future:
        payload = category_changes_to_wire(category_id, changes)
        return self._submit_push(
            "category", "update", category_id,
            lambda token: self.client.update(CATEGORIES, payload, token),
        )

    def push_category_deleted(self, category_id: str) -> Future:
        return self._submit_push(
            "category", "delete", category_id,
            lambda token: self.client.delete(CATEGORIES, category_id, token),
        )

    def push_time_session_created(self, session: TimeSession) -> Future:
        payload = time_session_to_wire(session)
        return self._submit_push(
            "time_session", "create", session.id,
            lambda token: self.client.create(TIME_SESSIONS, payload, token),
        )

    def _submit_push(
        self,
        resource: str,
        action: str,
        item_id: Optional[str],
        call: Callable[[str], dict],
        refresh: bool = False,
    ) -> Future:
        token = self.credentials.get_token()
        if not token or self._closed:
            future: Future = Future()
            future.set_result(
                PushResult(success=False, resource=resource, action=action,
                           item_id=item_id, skipped=True)
            )
            return future

        def run() -> PushResult:
            try:
                call(token)
            except BeamClientError as e:
                logger.error(f"Failed to sync {resource} {action} to server: {e}")
                return PushResult(
                    success=False, resource=resource, action=action,
                    item_id=item_id, error=str(e),
                )
            if refresh:
                logger.info(f"{resource.capitalize()} {action} synced to server, refreshing all data...")
                self._refresh_after_push()
            else:
                logger.debug(f"{resource.capitalize()} {action} synced to server")
            return PushResult(success=True, resource=resource, action=action, item_id=item_id)

        return self._track(self._pool.submit(run))

    def _refresh_after_push(self) -> None:
        """Re-pull after a successful push so other devices' edits show up."""
        if self._closed:
            return
        try:
            self.request_pull()
        except RuntimeError:
            logger.debug("Gateway shut down, skipping refresh")

    # -- Lifecycle --------------------------------------------------------

    def _track(self, future: Future) -> Future:
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._untrack)
        return future

    def _untrack(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for in-flight pushes and pulls, including follow-up pulls.

        Returns:
            True if nothing is left pending
        """
        while True:
            with self._pending_lock:
                pending = set(self._pending)
            if not pending:
                return True
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                return False

    def close(self, wait_for_pending: bool = True) -> None:
        """Stop accepting work and shut the worker pools down."""
        self._closed = True
        self._pool.shutdown(wait=wait_for_pending)
        self._fetch_pool.shutdown(wait=wait_for_pending)
