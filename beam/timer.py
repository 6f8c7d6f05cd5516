"""Pomodoro timer - work/break countdown state machine."""

import logging
import threading
from dataclasses import dataclass, fields, replace
from datetime import timedelta
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import PomodoroSettings
from .models import SessionType, TimerState, TimeSessionType, utcnow

__all__ = ["PomodoroTimer", "SessionCompleted", "TimerDriver", "SessionRecorder"]

logger = logging.getLogger(__name__)

TICK_JOB_ID = "timer_tick"


@dataclass(frozen=True)
class SessionCompleted:
    """Published once per session boundary."""

    ended: SessionType
    next: SessionType
    current_session: int
    task_id: Optional[str] = None
    elapsed_seconds: int = 0  # time actually spent in the session that ended


Listener = Callable[[SessionCompleted], None]


class PomodoroTimer:
    """Countdown that cycles work -> short break -> ... -> long break -> work.

    ``tick()`` advances one logical second and is driven from outside
    (see ``TimerDriver``). The timer halts at every session boundary; the
    next session needs an explicit ``start()``.

    A long break follows work session N when N is a multiple of
    ``sessions_until_long_break``. ``current_session`` only increments when
    a break ends.
    """

    def __init__(self, settings: Optional[PomodoroSettings] = None):
        self._settings = settings or PomodoroSettings()
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._reset_state()

    def _reset_state(self) -> None:
        self._is_running = False
        self._current_task_id: Optional[str] = None
        self._session_type = SessionType.WORK
        self._time_left = self._settings.work_duration * 60
        self._session_length = self._time_left
        self._current_session = 1
        self._total_sessions = 0

    def _duration_of(self, session_type: SessionType) -> int:
        """Full length of a session type in seconds, from current settings."""
        if session_type == SessionType.WORK:
            return self._settings.work_duration * 60
        if session_type == SessionType.SHORT_BREAK:
            return self._settings.short_break_duration * 60
        return self._settings.long_break_duration * 60

    # -- Reads ------------------------------------------------------------

    @property
    def state(self) -> TimerState:
        with self._lock:
            return TimerState(
                is_running=self._is_running,
                current_task_id=self._current_task_id,
                session_type=self._session_type,
                time_left=self._time_left,
                current_session=self._current_session,
                total_sessions=self._total_sessions,
            )

    @property
    def settings(self) -> PomodoroSettings:
        with self._lock:
            return replace(self._settings)

    def session_length(self, session_type: Optional[SessionType] = None) -> int:
        with self._lock:
            return self._duration_of(session_type or self._session_type)

    @property
    def elapsed(self) -> int:
        """Seconds spent so far in the current session."""
        with self._lock:
            return max(0, self._session_length - self._time_left)

    # -- Events -----------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a completion listener; returns a function that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, event: SessionCompleted) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Timer completion listener failed")

    # -- Controls ---------------------------------------------------------

    def start(self, task_id: Optional[str] = None) -> None:
        """Run the countdown, optionally switching the tracked task."""
        with self._lock:
            self._is_running = True
            if task_id:
                self._current_task_id = task_id
        logger.debug(f"Timer started ({self._session_type.value}, task={self._current_task_id})")

    def pause(self) -> None:
        with self._lock:
            self._is_running = False

    def stop(self) -> None:
        """Halt, forget the task and rewind the current session to full length."""
        with self._lock:
            self._is_running = False
            self._current_task_id = None
            self._time_left = self._duration_of(self._session_type)
            self._session_length = self._time_left

    def reset(self) -> None:
        """Back to work session 1 with nothing counted."""
        with self._lock:
            self._reset_state()

    def tick(self) -> None:
        """Advance one second; completes the session when it reaches zero."""
        with self._lock:
            if not self._is_running or self._time_left <= 0:
                return
            if self._time_left - 1 > 0:
                self._time_left -= 1
                return
            event = self._advance(ran_out=True)
        self._announce(event)

    def skip_session(self) -> SessionCompleted:
        """End the current session now, whatever time is left."""
        return self.complete_session()

    def complete_session(self) -> SessionCompleted:
        """Move to the next session type and publish the transition."""
        with self._lock:
            event = self._advance(ran_out=False)
        self._announce(event)
        return event

    def _advance(self, ran_out: bool) -> SessionCompleted:
        """Apply one session transition. Caller holds the lock."""
        ended = self._session_type
        if ran_out:
            elapsed = self._session_length
        else:
            elapsed = max(0, self._session_length - self._time_left)

        if ended == SessionType.WORK:
            if self._current_session % self._settings.sessions_until_long_break == 0:
                next_type = SessionType.LONG_BREAK
            else:
                next_type = SessionType.SHORT_BREAK
        else:
            next_type = SessionType.WORK
            self._current_session += 1

        self._session_type = next_type
        self._time_left = self._duration_of(next_type)
        self._session_length = self._time_left
        self._is_running = False
        self._total_sessions += 1

        return SessionCompleted(
            ended=ended,
            next=next_type,
            current_session=self._current_session,
            task_id=self._current_task_id,
            elapsed_seconds=elapsed,
        )

    def _announce(self, event: SessionCompleted) -> None:
        logger.info(
            f"Session complete: {event.ended.value} -> {event.next.value} "
            f"(session {event.current_session})"
        )
        self._publish(event)

    def update_settings(self, **changes) -> PomodoroSettings:
        """Merge new settings. A running countdown keeps its current length."""
        valid = {f.name for f in fields(PomodoroSettings)}
        unknown = set(changes) - valid
        if unknown:
            raise TypeError(f"Unknown timer settings: {', '.join(sorted(unknown))}")
        with self._lock:
            self._settings = replace(self._settings, **changes)
            return replace(self._settings)


class TimerDriver:
    """Calls ``tick()`` once per second from a scheduler job."""

    def __init__(self, timer: PomodoroTimer, scheduler: Optional[BackgroundScheduler] = None):
        self.timer = timer
        self.scheduler = scheduler or BackgroundScheduler()
        self._owns_scheduler = scheduler is None

    def start(self) -> None:
        self.scheduler.add_job(
            self.timer.tick,
            trigger=IntervalTrigger(seconds=1),
            id=TICK_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if self._owns_scheduler and not self.scheduler.running:
            self.scheduler.start()

    def stop(self) -> None:
        if self.scheduler.get_job(TICK_JOB_ID) is not None:
            self.scheduler.remove_job(TICK_JOB_ID)
        if self._owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)


class SessionRecorder:
    """Turns finished or stopped work sessions into time-tracking entries.

    Only work sessions with a task attached are recorded. Stopping records
    the time elapsed so far; completion records the time spent in the
    session (the full length when the countdown ran out).
    """

    def __init__(self, timer: PomodoroTimer, add_time_session: Callable[..., object]):
        self.timer = timer
        self._add_time_session = add_time_session
        self._unsubscribe = timer.subscribe(self._on_completed)

    def _record(self, task_id: str, elapsed: int) -> None:
        end = utcnow()
        self._add_time_session(
            start_time=end - timedelta(seconds=elapsed),
            end_time=end,
            duration=elapsed,
            task_id=task_id,
            type=TimeSessionType.WORK,
        )

    def _on_completed(self, event: SessionCompleted) -> None:
        if event.ended == SessionType.WORK and event.task_id and event.elapsed_seconds > 0:
            self._record(event.task_id, event.elapsed_seconds)

    def stop(self) -> None:
        """Stop the timer, recording the partial work session if one was running."""
        with self.timer._lock:
            state = self.timer.state
            elapsed = self.timer.elapsed
            self.timer.stop()
        if (
            state.is_running
            and state.session_type == SessionType.WORK
            and state.current_task_id
            and elapsed > 0
        ):
            self._record(state.current_task_id, elapsed)

    def close(self) -> None:
        self._unsubscribe()
