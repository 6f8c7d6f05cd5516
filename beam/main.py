"""Beam Sync - Main entry point."""

import getpass
import logging
import signal
import sys
import threading
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from . import __version__
from .auth import KeychainManager, LoginManager, LoginState
from .config import Config, setup_logging
from .notifications import Notifier
from .sync import BeamApiClient, LocalStore, RemoteSyncGateway, StateStorage, SyncTriggerPolicy
from .timer import PomodoroTimer, SessionRecorder, TimerDriver

logger = logging.getLogger(__name__)


class BeamApp:
    """Main application orchestrator.

    Wires the local store, the remote gateway, the trigger policy and the
    Pomodoro timer together and owns their lifecycle.
    """

    def __init__(self, config: Optional[Config] = None):
        """Initialize the application."""
        self.config = config or Config.load()
        setup_logging(self.config.debug_mode)

        logger.info(f"Beam Sync {__version__} starting...")
        logger.info(f"Using API URL: {self.config.api_url}")

        self.storage = StateStorage()
        self.client = BeamApiClient(
            api_url=self.config.api_url,
            timeout=self.config.sync.timeout,
        )
        self.keychain = KeychainManager()
        self.login_manager = LoginManager(self.client, self.keychain)
        self.notifier = Notifier(self.config.notifications)

        self.store = LocalStore(
            storage=self.storage,
            on_task_completed=self.notifier.task_completed,
        )
        self.gateway = RemoteSyncGateway(
            client=self.client,
            store=self.store,
            credentials=self.login_manager,
            max_workers=self.config.sync.max_workers,
        )
        self.store.attach_gateway(self.gateway)

        # Periodic pull and timer ticks share one scheduler
        self.scheduler = BackgroundScheduler()
        self.triggers = SyncTriggerPolicy(
            pull=self.gateway.request_pull,
            credentials=self.login_manager,
            interval_seconds=self.config.sync_interval,
            scheduler=self.scheduler,
        )

        self.timer = PomodoroTimer(self.config.pomodoro)
        self.timer_driver = TimerDriver(self.timer, self.scheduler)
        self.recorder = SessionRecorder(self.timer, self.store.add_time_session)
        self.timer.subscribe(self.notifier.session_completed)

        self.login_manager.set_login_callback(self._on_login)
        self.login_manager.set_logout_callback(self._on_logout)

        # State
        self._shutdown_done = False
        self._shutdown_event = threading.Event()

    # -- Event handlers ---------------------------------------------------

    def _on_login(self, state: LoginState) -> None:
        logger.info(f"Signed in as {state.user_email}")
        self.triggers.on_credential_acquired()

    def _on_logout(self) -> None:
        self.triggers.on_credential_cleared()

    def _signal_handler(self, signum, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}")
        self._shutdown_event.set()

    def _prompt_login(self) -> LoginState:
        """Ask for credentials on an interactive terminal."""
        if not sys.stdin.isatty():
            logger.warning("Not logged in; working offline")
            return LoginState(logged_in=False)

        email = input("Beam email: ").strip()
        password = getpass.getpass("Password: ")
        state = self.login_manager.login(email, password)
        if not state.logged_in:
            print(f"Login failed: {state.error}")
        return state

    # -- Lifecycle --------------------------------------------------------

    def run(self) -> None:
        """Run the application until a shutdown signal arrives."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        self.scheduler.start()
        self.timer_driver.start()

        state = self.login_manager.try_auto_login()
        if not state.logged_in:
            self._prompt_login()

        stats = self.store.get_dashboard_stats()
        logger.info(
            f"{stats.total_tasks} tasks, {stats.completed_tasks} completed "
            f"({stats.completion_rate:.0f}%)"
        )

        self._shutdown_event.wait()

    def _shutdown(self) -> None:
        """Shutdown the application. Safe to call multiple times."""
        if self._shutdown_done:
            return
        self._shutdown_done = True
        logger.info("Shutting down...")

        self.recorder.stop()
        self.recorder.close()
        self.timer_driver.stop()
        self.triggers.on_credential_cleared()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        if not self.gateway.drain(timeout=self.config.sync.timeout):
            logger.warning("Some sync requests were still in flight at shutdown")
        self.gateway.close(wait_for_pending=False)
        self.client.close()
        self.storage.close()

        logger.info("Shutdown complete")

    def __enter__(self) -> "BeamApp":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._shutdown()


def main() -> None:
    """Main entry point."""
    with BeamApp() as app:
        app.run()


if __name__ == "__main__":
    main()
