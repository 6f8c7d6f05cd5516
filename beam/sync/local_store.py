"""Local store - the in-memory, persisted copy of tasks, categories and sessions."""

import logging
import sqlite3
import threading
from dataclasses import fields, replace
from datetime import datetime
from typing import Callable, Optional

from ..config import STORAGE_NAMESPACE
from ..models import (
    Category,
    DashboardStats,
    Priority,
    Subtask,
    Task,
    TimeSession,
    TimeSessionType,
    ensure_aware,
    local_midnight,
    utcnow,
)
from .protocols import PushGatewayProtocol, StateStorageProtocol

__all__ = ["LocalStore", "DEFAULT_CATEGORIES", "UPDATABLE_TASK_FIELDS"]

logger = logging.getLogger(__name__)

STATE_VERSION = 1

DEFAULT_CATEGORIES = (
    Category(id="1", name="Work", color="#3B82F6", icon="briefcase"),
    Category(id="2", name="Personal", color="#10B981", icon="user"),
    Category(id="3", name="Learning", color="#F59E0B", icon="book-open"),
    Category(id="4", name="Health", color="#EF4444", icon="heart"),
)

UPDATABLE_TASK_FIELDS = frozenset(
    f.name for f in fields(Task) if f.name not in {"id", "created_at", "updated_at", "subtasks"}
)
UPDATABLE_CATEGORY_FIELDS = frozenset({"name", "color", "icon"})


class LocalStore:
    """Single source of truth for the client's collections.

    Every mutator applies its change in memory, persists the full state and
    returns immediately. Remote pushes are handed to the gateway afterwards
    and their outcome never feeds back into local state: a failed push is
    not rolled back. Divergence is repaired only by the next full pull
    (``replace_all``).

    Lookups of unknown ids are silent no-ops; mutators report them by
    returning False (or None).
    """

    def __init__(
        self,
        storage: Optional[StateStorageProtocol] = None,
        gateway: Optional[PushGatewayProtocol] = None,
        on_task_completed: Optional[Callable[[Task], None]] = None,
        namespace: str = STORAGE_NAMESPACE,
    ):
        """Initialize the store and load persisted state.

        Args:
            storage: Durable storage; None keeps state in memory only
            gateway: Remote push target; None disables pushes
            on_task_completed: Called when a task flips to completed
            namespace: Storage key for the persisted state
        """
        self._storage = storage
        self._gateway = gateway
        self._on_task_completed = on_task_completed
        self._namespace = namespace
        self._lock = threading.RLock()

        self._tasks: list[Task] = []
        self._categories: list[Category] = [replace(c) for c in DEFAULT_CATEGORIES]
        self._time_sessions: list[TimeSession] = []

        self._load()

    def attach_gateway(self, gateway: Optional[PushGatewayProtocol]) -> None:
        """Set (or clear) the push target after construction."""
        self._gateway = gateway

    def set_task_completed_callback(self, callback: Optional[Callable[[Task], None]]) -> None:
        self._on_task_completed = callback

    # -- Persistence ------------------------------------------------------

    def _load(self) -> None:
        if self._storage is None:
            return
        state = self._storage.load(self._namespace)
        if not state:
            logger.info("No persisted state, starting fresh")
            return
        try:
            tasks = [Task.from_dict(t) for t in state.get("tasks", [])]
            categories = [Category.from_dict(c) for c in state.get("categories", [])]
            sessions = [TimeSession.from_dict(s) for s in state.get("time_sessions", [])]
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Persisted state is unreadable, starting fresh: {e}")
            return

        self._tasks = tasks
        self._categories = categories
        self._time_sessions = sessions
        logger.debug(
            f"Loaded {len(tasks)} tasks, {len(categories)} categories, "
            f"{len(sessions)} time sessions"
        )

    def _persist(self) -> None:
        """Write the full state. Caller holds the lock."""
        if self._storage is None:
            return
        state = {
            "version": STATE_VERSION,
            "tasks": [t.to_dict() for t in self._tasks],
            "categories": [c.to_dict() for c in self._categories],
            "time_sessions": [s.to_dict() for s in self._time_sessions],
        }
        try:
            self._storage.save(self._namespace, state)
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"Failed to persist local state: {e}")

    def _find_task(self, task_id: str) -> Optional[Task]:
        return next((t for t in self._tasks if t.id == task_id), None)

    def _find_category(self, category_id: str) -> Optional[Category]:
        return next((c for c in self._categories if c.id == category_id), None)

    # -- Reads ------------------------------------------------------------

    @property
    def tasks(self) -> list[Task]:
        with self._lock:
            return [t.copy() for t in self._tasks]

    @property
    def categories(self) -> list[Category]:
        with self._lock:
            return [replace(c) for c in self._categories]

    @property
    def time_sessions(self) -> list[TimeSession]:
        with self._lock:
            return [replace(s) for s in self._time_sessions]

    def get_task(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._find_task(task_id)
            return task.copy() if task else None

    # -- Tasks ------------------------------------------------------------

    def add_task(self, title: str, **data) -> Task:
        """Create a task locally and push it.

        Accepts any updatable task field as a keyword argument.
        """
        unknown = set(data) - UPDATABLE_TASK_FIELDS
        if unknown:
            raise TypeError(f"Unknown task fields: {', '.join(sorted(unknown))}")

        now = utcnow()
        task = Task(title=title, created_at=now, updated_at=now, subtasks=[], **data)
        with self._lock:
            self._tasks.append(task)
            self._persist()
            snapshot = task.copy()

        logger.info(f"Task added locally: {task.title}")
        if self._gateway is not None:
            self._gateway.push_task_created(snapshot)
        return snapshot

    def update_task(self, task_id: str, **changes) -> bool:
        """Merge ``changes`` into a task and push only those fields."""
        unknown = set(changes) - UPDATABLE_TASK_FIELDS
        if unknown:
            raise TypeError(f"Unknown task fields: {', '.join(sorted(unknown))}")
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValueError("Task title must not be empty")
        if "priority" in changes:
            changes["priority"] = Priority(changes["priority"])
        if changes.get("due_date") is not None:
            changes["due_date"] = ensure_aware(changes["due_date"])

        with self._lock:
            task = self._find_task(task_id)
            if task is None:
                logger.debug(f"update_task: no task {task_id}")
                return False
            for key, value in changes.items():
                setattr(task, key, value)
            task.updated_at = max(utcnow(), task.created_at)
            self._persist()

        logger.info(f"Task updated locally: {task_id}")
        if self._gateway is not None and changes:
            self._gateway.push_task_updated(task_id, dict(changes))
        return True

    def delete_task(self, task_id: str) -> bool:
        """Remove a task and the time sessions recorded against it."""
        with self._lock:
            task = self._find_task(task_id)
            if task is None:
                return False
            self._tasks.remove(task)
            self._time_sessions = [s for s in self._time_sessions if s.task_id != task_id]
            self._persist()

        logger.info(f"Task deleted locally: {task_id}")
        if self._gateway is not None:
            self._gateway.push_task_deleted(task_id)
        return True

    def toggle_task(self, task_id: str) -> bool:
        """Flip a task's completed flag.

        The completion callback fires on false -> true, before the push is
        issued, based purely on the local change.
        """
        with self._lock:
            task = self._find_task(task_id)
            if task is None:
                return False
            task.completed = not task.completed
            task.updated_at = max(utcnow(), task.created_at)
            completed = task.completed
            self._persist()
            snapshot = task.copy()

        logger.info(f"Task toggled locally: {task_id} {'completed' if completed else 'pending'}")
        if completed and self._on_task_completed is not None:
            try:
                self._on_task_completed(snapshot)
            except Exception:
                logger.exception("Task completion callback failed")
        if self._gateway is not None:
            self._gateway.push_task_updated(task_id, {"completed": completed})
        return True

    # -- Subtasks (local only) --------------------------------------------

    def _mutate_subtask(
        self, task_id: str, subtask_id: str, mutate: Callable[[Task, Subtask], None]
    ) -> bool:
        with self._lock:
            task = self._find_task(task_id)
            if task is None:
                return False
            subtask = next((s for s in task.subtasks if s.id == subtask_id), None)
            if subtask is None:
                return False
            mutate(task, subtask)
            task.updated_at = max(utcnow(), task.created_at)
            self._persist()
        return True

    def add_subtask(self, task_id: str, title: str) -> Optional[Subtask]:
        if not title or not title.strip():
            raise ValueError("Subtask title must not be empty")
        with self._lock:
            task = self._find_task(task_id)
            if task is None:
                return None
            subtask = Subtask(title=title)
            task.subtasks.append(subtask)
            task.updated_at = max(utcnow(), task.created_at)
            self._persist()
            return replace(subtask)

    def toggle_subtask(self, task_id: str, subtask_id: str) -> bool:
        def flip(task: Task, subtask: Subtask) -> None:
            subtask.completed = not subtask.completed

        return self._mutate_subtask(task_id, subtask_id, flip)

    def update_subtask(self, task_id: str, subtask_id: str, title: str) -> bool:
        if not title or not title.strip():
            raise ValueError("Subtask title must not be empty")

        def rename(task: Task, subtask: Subtask) -> None:
            subtask.title = title

        return self._mutate_subtask(task_id, subtask_id, rename)

    def delete_subtask(self, task_id: str, subtask_id: str) -> bool:
        def remove(task: Task, subtask: Subtask) -> None:
            task.subtasks.remove(subtask)

        return self._mutate_subtask(task_id, subtask_id, remove)

    # -- Categories -------------------------------------------------------

    def add_category(self, name: str, color: str = "#3B82F6", icon: str = "folder") -> Category:
        category = Category(name=name, color=color, icon=icon)
        with self._lock:
            self._categories.append(category)
            self._persist()

        logger.info(f"Category added locally: {name}")
        if self._gateway is not None:
            self._gateway.push_category_created(replace(category))
        return replace(category)

    def update_category(self, category_id: str, **changes) -> bool:
        unknown = set(changes) - UPDATABLE_CATEGORY_FIELDS
        if unknown:
            raise TypeError(f"Unknown category fields: {', '.join(sorted(unknown))}")

        with self._lock:
            category = self._find_category(category_id)
            if category is None:
                return False
            for key, value in changes.items():
                setattr(category, key, value)
            self._persist()

        if self._gateway is not None and changes:
            self._gateway.push_category_updated(category_id, dict(changes))
        return True

    def delete_category(self, category_id: str) -> bool:
        """Remove a category. Tasks still pointing at it keep the stale id."""
        with self._lock:
            category = self._find_category(category_id)
            if category is None:
                return False
            self._categories.remove(category)
            self._persist()

        if self._gateway is not None:
            self._gateway.push_category_deleted(category_id)
        return True

    # -- Time sessions ----------------------------------------------------

    def add_time_session(
        self,
        start_time: datetime,
        end_time: Optional[datetime] = None,
        duration: Optional[int] = None,
        task_id: Optional[str] = None,
        type: TimeSessionType = TimeSessionType.WORK,
    ) -> TimeSession:
        session = TimeSession(
            start_time=start_time,
            end_time=end_time,
            duration=duration,
            task_id=task_id,
            type=type,
        )
        with self._lock:
            self._time_sessions.append(session)
            self._persist()

        logger.info(f"Time session recorded: {session.duration}s for task {task_id}")
        if self._gateway is not None:
            self._gateway.push_time_session_created(replace(session))
        return replace(session)

    # -- Pull -------------------------------------------------------------

    def replace_all(
        self,
        tasks: list[Task],
        categories: list[Category],
        time_sessions: list[TimeSession],
    ) -> None:
        """Swap all three collections for server truth. Not a merge."""
        with self._lock:
            self._tasks = list(tasks)
            self._categories = list(categories)
            self._time_sessions = list(time_sessions)
            self._persist()

    # -- Derived ----------------------------------------------------------

    def get_dashboard_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        today = local_midnight(now)
        with self._lock:
            total = len(self._tasks)
            completed = sum(1 for t in self._tasks if t.completed)
            today_tasks = [t for t in self._tasks if t.created_at >= today]
            total_minutes = sum(s.duration for s in self._time_sessions) / 60

        return DashboardStats(
            total_tasks=total,
            completed_tasks=completed,
            completion_rate=(completed / total * 100) if total > 0 else 0.0,
            total_time_spent=total_minutes,
            today_tasks=len(today_tasks),
            today_completed_tasks=sum(1 for t in today_tasks if t.completed),
        )

    def get_tasks_by_category(self, category_id: str) -> list[Task]:
        with self._lock:
            return [t.copy() for t in self._tasks if t.category == category_id]

    def get_today_tasks(self, now: Optional[datetime] = None) -> list[Task]:
        """Tasks created today, plus tasks due today or later."""
        today = local_midnight(now)
        with self._lock:
            return [
                t.copy()
                for t in self._tasks
                if t.created_at >= today or (t.due_date is not None and t.due_date >= today)
            ]
