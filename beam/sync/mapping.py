"""Translation between local models and the API's snake_case wire shape.

Local -> wire:
    category         -> category_id
    completed (bool) -> status ("completed" | "pending")
    datetimes        -> ISO-8601 strings

Wire -> local is the reverse, with defaults for missing fields.
"""

import logging
from typing import Any

from ..models import (
    Category,
    Priority,
    Task,
    TimeSession,
    TimeSessionType,
    format_timestamp,
    parse_timestamp,
    utcnow,
)

__all__ = [
    "task_from_wire",
    "category_from_wire",
    "time_session_from_wire",
    "task_to_wire",
    "task_changes_to_wire",
    "category_to_wire",
    "category_changes_to_wire",
    "time_session_to_wire",
    "STATUS_COMPLETED",
    "STATUS_PENDING",
]

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_PENDING = "pending"

# Local field name -> wire field name for task updates
_TASK_FIELD_MAP = {
    "title": "title",
    "description": "description",
    "category": "category_id",
    "priority": "priority",
    "due_date": "due_date",
    "estimated_time": "estimated_time",
    "actual_time": "actual_time",
}


def _status(completed: bool) -> str:
    return STATUS_COMPLETED if completed else STATUS_PENDING


def _wire_value(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return format_timestamp(value)
    if isinstance(value, Priority):
        return value.value
    return value


def task_from_wire(data: dict) -> Task:
    """Build a local Task from an API record.

    Subtasks live in their own remote resource and start empty here.
    """
    now = utcnow()
    created_at = parse_timestamp(data.get("created_at")) or now
    return Task(
        id=str(data["id"]),
        title=data["title"],
        description=data.get("description") or None,
        completed=data.get("status") == STATUS_COMPLETED,
        priority=Priority(data.get("priority") or Priority.MEDIUM),
        category=data.get("category_id") or "",
        due_date=parse_timestamp(data.get("due_date")),
        created_at=created_at,
        updated_at=parse_timestamp(data.get("updated_at")) or max(now, created_at),
        estimated_time=data.get("estimated_time") or None,
        actual_time=data.get("actual_time") or None,
        subtasks=[],
    )


def category_from_wire(data: dict) -> Category:
    return Category(
        id=str(data["id"]),
        name=data["name"],
        color=data.get("color") or "#3B82F6",
        icon=data.get("icon") or "folder",
    )


def time_session_from_wire(data: dict) -> TimeSession:
    # The API does not report the session kind reliably; everything pulled is
    # treated as work time.
    return TimeSession(
        id=str(data["id"]),
        task_id=data.get("task_id"),
        start_time=parse_timestamp(data.get("start_time")) or utcnow(),
        end_time=parse_timestamp(data.get("end_time")),
        duration=data.get("duration"),
        type=TimeSessionType.WORK,
    )


def task_to_wire(task: Task) -> dict:
    """Full create payload for a new task."""
    payload = {
        "title": task.title,
        "description": task.description,
        "priority": task.priority.value,
        "category_id": task.category or None,
        "due_date": format_timestamp(task.due_date),
        "estimated_time": task.estimated_time,
        "status": _status(task.completed),
    }
    return {k: v for k, v in payload.items() if v is not None}


def task_changes_to_wire(task_id: str, changes: dict) -> dict:
    """Update payload carrying only the fields present in ``changes``."""
    payload: dict = {"id": task_id}
    for key, value in changes.items():
        if key == "completed":
            payload["status"] = _status(bool(value))
        elif key == "category":
            payload["category_id"] = value or None
        elif key in _TASK_FIELD_MAP:
            payload[_TASK_FIELD_MAP[key]] = _wire_value(value)
        else:
            logger.debug(f"Field '{key}' is local-only, not pushed")
    return payload


def category_to_wire(category: Category) -> dict:
    return {"name": category.name, "color": category.color, "icon": category.icon}


def category_changes_to_wire(category_id: str, changes: dict) -> dict:
    payload: dict = {"id": category_id}
    for key in ("name", "color", "icon"):
        if key in changes:
            payload[key] = changes[key]
    return payload


def time_session_to_wire(session: TimeSession) -> dict:
    payload = {
        "task_id": session.task_id,
        "start_time": format_timestamp(session.start_time),
        "end_time": format_timestamp(session.end_time),
        "duration": session.duration,
        "type": session.type.value,
    }
    return {k: v for k, v in payload.items() if v is not None}
