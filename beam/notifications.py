"""Native OS notifications for task and timer events."""

import logging
import platform
import subprocess

from .config import NotificationSettings
from .models import SessionType, Task
from .timer import SessionCompleted

__all__ = ["send_notification", "Notifier"]

logger = logging.getLogger(__name__)

APP_TITLE = "Beam"


def send_notification(title: str, message: str, sound: bool = True) -> None:
    """Send a native OS notification. Never raises.

    Args:
        title: Notification title.
        message: Notification body text.
        sound: Whether to play a sound (macOS only).
    """
    system = platform.system()
    try:
        if system == "Darwin":
            _send_macos(title, message, sound)
        elif system == "Windows":
            _send_windows(title, message)
        elif system == "Linux":
            _send_linux(title, message)
        else:
            logger.debug(f"Notifications not supported on {system}")
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Failed to send notification: {e}")


def _send_macos(title: str, message: str, sound: bool) -> None:
    """Send notification via osascript on macOS."""
    safe_title = title.replace("\\", "\\\\").replace('"', '\\"')
    safe_message = message.replace("\\", "\\\\").replace('"', '\\"')

    sound_clause = ' sound name "Glass"' if sound else ""
    script = (
        f'display notification "{safe_message}" '
        f'with title "{safe_title}"{sound_clause}'
    )
    subprocess.run(["osascript", "-e", script], capture_output=True, timeout=5)


def _send_windows(title: str, message: str) -> None:
    """Send toast notification via PowerShell on Windows."""
    safe_title = title.replace("'", "''")
    safe_message = message.replace("'", "''")

    ps_script = (
        "[Windows.UI.Notifications.ToastNotificationManager, Windows.UI.Notifications, "
        "ContentType = WindowsRuntime] > $null; "
        "$template = [Windows.UI.Notifications.ToastNotificationManager]::"
        "GetTemplateContent([Windows.UI.Notifications.ToastTemplateType]::ToastText02); "
        "$textNodes = $template.GetElementsByTagName('text'); "
        f"$textNodes.Item(0).AppendChild($template.CreateTextNode('{safe_title}')) > $null; "
        f"$textNodes.Item(1).AppendChild($template.CreateTextNode('{safe_message}')) > $null; "
        "$toast = [Windows.UI.Notifications.ToastNotification]::new($template); "
        f"[Windows.UI.Notifications.ToastNotificationManager]::CreateToastNotifier('{APP_TITLE}').Show($toast)"
    )
    subprocess.run(["powershell", "-Command", ps_script], capture_output=True, timeout=10)


def _send_linux(title: str, message: str) -> None:
    """Send notification via notify-send (libnotify)."""
    subprocess.run(
        ["notify-send", "--app-name", APP_TITLE, title, message],
        capture_output=True,
        timeout=5,
    )


class Notifier:
    """Fire-and-forget signals for task completion and timer boundaries."""

    def __init__(self, settings: NotificationSettings):
        self._settings = settings

    def update_settings(self, settings: NotificationSettings) -> None:
        self._settings = settings

    def task_completed(self, task: Task) -> None:
        if not self._settings.enabled:
            return
        send_notification("Task completed", task.title, sound=self._settings.sound)

    def session_completed(self, event: SessionCompleted) -> None:
        if not self._settings.enabled:
            return
        if event.ended == SessionType.WORK:
            title = "Work session completed"
            if event.next == SessionType.LONG_BREAK:
                message = "Great streak! Time for a long break."
            else:
                message = "Time for a short break!"
        else:
            title = "Break is over"
            message = f"Ready to focus? Session {event.current_session} is up next."
        send_notification(title, message, sound=self._settings.sound)
