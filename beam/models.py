"""Domain types for tasks, categories, time sessions and the timer."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

__all__ = [
    "Priority",
    "SessionType",
    "TimeSessionType",
    "Subtask",
    "Task",
    "Category",
    "TimeSession",
    "DashboardStats",
    "TimerState",
    "new_id",
    "utcnow",
    "local_midnight",
    "parse_timestamp",
    "ensure_aware",
    "format_timestamp",
]


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SessionType(str, Enum):
    """Phase of the Pomodoro cycle."""

    WORK = "work"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"


class TimeSessionType(str, Enum):
    WORK = "work"
    BREAK = "break"


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_midnight(now: Optional[datetime] = None) -> datetime:
    """Start of the current day in the local timezone (timezone-aware)."""
    now = (now or datetime.now()).astimezone()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware datetime.

    Naive values are taken as UTC. Returns None for empty input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def ensure_aware(value: datetime) -> datetime:
    """Attach the local timezone to naive datetimes supplied by callers."""
    return value if value.tzinfo is not None else value.astimezone()


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Subtask:
    title: str
    id: str = field(default_factory=new_id)
    completed: bool = False
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "completed": self.completed,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Subtask":
        return cls(
            id=data["id"],
            title=data["title"],
            completed=bool(data.get("completed", False)),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
        )


@dataclass
class Task:
    """A unit of work owned by the local store."""

    title: str
    id: str = field(default_factory=new_id)
    description: Optional[str] = None
    completed: bool = False
    priority: Priority = Priority.MEDIUM
    category: str = ""
    due_date: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    estimated_time: Optional[int] = None  # minutes
    actual_time: Optional[int] = None  # minutes
    subtasks: list[Subtask] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValueError("Task title must not be empty")
        self.priority = Priority(self.priority)
        self.created_at = ensure_aware(self.created_at)
        self.updated_at = ensure_aware(self.updated_at)
        if self.due_date is not None:
            self.due_date = ensure_aware(self.due_date)

    def copy(self) -> "Task":
        return replace(self, subtasks=[replace(s) for s in self.subtasks])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "priority": self.priority.value,
            "category": self.category,
            "due_date": format_timestamp(self.due_date),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "estimated_time": self.estimated_time,
            "actual_time": self.actual_time,
            "subtasks": [s.to_dict() for s in self.subtasks],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        created_at = parse_timestamp(data.get("created_at")) or utcnow()
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description"),
            completed=bool(data.get("completed", False)),
            priority=Priority(data.get("priority") or Priority.MEDIUM),
            category=data.get("category") or "",
            due_date=parse_timestamp(data.get("due_date")),
            created_at=created_at,
            updated_at=parse_timestamp(data.get("updated_at")) or created_at,
            estimated_time=data.get("estimated_time"),
            actual_time=data.get("actual_time"),
            subtasks=[Subtask.from_dict(s) for s in data.get("subtasks") or []],
        )


@dataclass
class Category:
    name: str
    color: str = "#3B82F6"
    icon: str = "folder"
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color, "icon": self.icon}

    @classmethod
    def from_dict(cls, data: dict) -> "Category":
        return cls(
            id=data["id"],
            name=data["name"],
            color=data.get("color") or "#3B82F6",
            icon=data.get("icon") or "folder",
        )


@dataclass
class TimeSession:
    """A tracked interval of work or break time.

    ``duration`` is in seconds. When it is not given and ``end_time`` is,
    it is derived from the two timestamps.
    """

    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    task_id: Optional[str] = None
    type: TimeSessionType = TimeSessionType.WORK
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        self.type = TimeSessionType(self.type)
        self.start_time = ensure_aware(self.start_time)
        if self.end_time is not None:
            self.end_time = ensure_aware(self.end_time)
        if self.duration is None:
            if self.end_time is not None:
                self.duration = int((self.end_time - self.start_time).total_seconds())
            else:
                self.duration = 0
        if self.duration < 0:
            raise ValueError("Time session duration must not be negative")

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "start_time": format_timestamp(self.start_time),
            "end_time": format_timestamp(self.end_time),
            "duration": self.duration,
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimeSession":
        return cls(
            id=data["id"],
            task_id=data.get("task_id"),
            start_time=parse_timestamp(data.get("start_time")) or utcnow(),
            end_time=parse_timestamp(data.get("end_time")),
            duration=data.get("duration"),
            type=TimeSessionType(data.get("type") or TimeSessionType.WORK),
        )


@dataclass(frozen=True)
class DashboardStats:
    total_tasks: int = 0
    completed_tasks: int = 0
    completion_rate: float = 0.0
    total_time_spent: float = 0.0  # minutes
    today_tasks: int = 0
    today_completed_tasks: int = 0


@dataclass(frozen=True)
class TimerState:
    """Snapshot of the Pomodoro timer."""

    is_running: bool
    current_task_id: Optional[str]
    session_type: SessionType
    time_left: int  # seconds
    current_session: int
    total_sessions: int
