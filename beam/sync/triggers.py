"""Sync trigger policy - decides when a full pull fires."""

import logging
import threading
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import DEFAULT_SYNC_INTERVAL
from .protocols import CredentialProvider

__all__ = ["SyncTriggerPolicy", "PERIODIC_SYNC_JOB_ID"]

logger = logging.getLogger(__name__)

PERIODIC_SYNC_JOB_ID = "periodic_sync"


class SyncTriggerPolicy:
    """Fires the pull on login, visibility regain, focus regain and a timer.

    The triggers are independent: a single user gesture can fire both the
    visibility and the focus trigger, and nothing cancels a pull already in
    flight. Every trigger is inert while no credential exists.
    """

    def __init__(
        self,
        pull: Callable[[], Any],
        credentials: CredentialProvider,
        interval_seconds: int = DEFAULT_SYNC_INTERVAL,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        """Initialize the policy.

        Args:
            pull: The shared pull operation (should not block for long)
            credentials: Supplies the current token
            interval_seconds: Period of the background pull
            scheduler: Scheduler to host the periodic job (created if None)
        """
        self._pull = pull
        self.credentials = credentials
        self.interval_seconds = interval_seconds
        self.scheduler = scheduler or BackgroundScheduler()
        self._owns_scheduler = scheduler is None
        self._hidden = False
        self._lock = threading.Lock()

    @property
    def is_hidden(self) -> bool:
        return self._hidden

    def _has_credential(self) -> bool:
        return bool(self.credentials.get_token())

    def _fire(self, reason: str) -> None:
        logger.info(f"Refreshing data ({reason})")
        try:
            self._pull()
        except Exception:
            logger.exception(f"Pull trigger '{reason}' failed")

    # -- Triggers ---------------------------------------------------------

    def on_credential_acquired(self) -> None:
        """Login or session restore: pull once now and start the interval."""
        if not self._has_credential():
            return
        self._schedule_periodic()
        self._fire("credential acquired")

    def on_credential_cleared(self) -> None:
        """Logout: stop the periodic job."""
        if self.scheduler.get_job(PERIODIC_SYNC_JOB_ID) is not None:
            self.scheduler.remove_job(PERIODIC_SYNC_JOB_ID)
            logger.info("Periodic sync stopped")

    def on_visibility_changed(self, hidden: bool) -> None:
        """Track visibility; pull once on the hidden -> visible edge."""
        with self._lock:
            was_hidden = self._hidden
            self._hidden = hidden
        if was_hidden and not hidden and self._has_credential():
            self._fire("app visible again")

    def on_focus_gained(self) -> None:
        if self._has_credential():
            self._fire("window focused")

    def _on_interval(self) -> None:
        if self._hidden or not self._has_credential():
            return
        self._fire("periodic sync")

    # -- Scheduling -------------------------------------------------------

    def _schedule_periodic(self) -> None:
        self.scheduler.add_job(
            self._on_interval,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=PERIODIC_SYNC_JOB_ID,
            replace_existing=True,
        )
        logger.info(f"Periodic sync scheduled every {self.interval_seconds}s")

    def reschedule(self, interval_seconds: int) -> None:
        """Change the pull interval on the fly."""
        self.interval_seconds = interval_seconds
        if self.scheduler.get_job(PERIODIC_SYNC_JOB_ID) is not None:
            self.scheduler.reschedule_job(
                PERIODIC_SYNC_JOB_ID,
                trigger=IntervalTrigger(seconds=interval_seconds),
            )

    def start(self) -> None:
        if self._owns_scheduler and not self.scheduler.running:
            self.scheduler.start()

    def stop(self) -> None:
        """Shut down the scheduler if this policy created it."""
        if self._owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
