"""Exceptions raised across the recorder boundary."""

from __future__ import annotations


class RecorderError(RuntimeError):
    """A track recorder could not carry out a command (start, stop, marker)."""
