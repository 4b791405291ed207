"""Last-value-wins broadcast for state and diagnostic observers.

Publishing never waits on a subscriber: every subscription is a one-slot mailbox
that is overwritten on each publish. A slow reader only ever sees the most recent
value it has not consumed yet.
"""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

T = TypeVar("T")


class Subscription(Generic[T]):
    """A subscriber's mailbox holding at most one unread value."""

    def __init__(self, owner: LastValue[T], initial: T) -> None:
        self._owner = owner
        self._cond = threading.Condition()
        self._pending = True
        self._value = initial
        self.closed = False

    def _offer(self, value: T) -> None:
        with self._cond:
            self._value = value
            self._pending = True
            self._cond.notify_all()

    def poll(self) -> T | None:
        """Return the unread value, or None if nothing new was published."""

        with self._cond:
            if not self._pending:
                return None
            self._pending = False
            return self._value

    def wait(self, timeout: float | None = None) -> T | None:
        """Block the *subscriber* until a value is available (or timeout)."""

        with self._cond:
            if not self._pending:
                self._cond.wait(timeout)
            if not self._pending:
                return None
            self._pending = False
            return self._value

    def close(self) -> None:
        self._owner._remove(self)
        self.closed = True


class LastValue(Generic[T]):
    """Holds a current value and fans every change out to subscribers."""

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._subs: list[Subscription[T]] = []
        self._lock = threading.Lock()

    @property
    def value(self) -> T:
        return self._value

    def publish(self, value: T) -> None:
        with self._lock:
            self._value = value
            subs = list(self._subs)
        for sub in subs:
            sub._offer(value)

    def subscribe(self) -> Subscription[T]:
        """New subscriptions immediately see the current value as unread."""

        with self._lock:
            sub = Subscription(self, self._value)
            self._subs.append(sub)
        return sub

    def _remove(self, sub: Subscription[T]) -> None:
        with self._lock:
            if sub in self._subs:
                self._subs.remove(sub)

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)
