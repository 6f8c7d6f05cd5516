"""Beam Sync - local task store, remote sync and Pomodoro timer."""

__version__ = "1.0.0"
