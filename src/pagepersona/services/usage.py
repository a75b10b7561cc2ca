"""Per-user usage accounting."""

from __future__ import annotations

import threading
from collections import Counter
from typing import Protocol

__all__ = ["InMemoryUsageTracker", "UsageTracker"]


class UsageTracker(Protocol):
    """Collaborator notified after each transformation attempt."""

    def increment_user_usage(self, user_id: str, *, log_success: bool = False) -> None: ...

    def increment_user_failed_attempt(self, user_id: str, *, log_success: bool = False) -> None: ...


class InMemoryUsageTracker:
    """Counts successful and failed transformations per user."""

    def __init__(self) -> None:
        self._usage: Counter[str] = Counter()
        self._failures: Counter[str] = Counter()
        self._lock = threading.Lock()

    def increment_user_usage(self, user_id: str, *, log_success: bool = False) -> None:
        with self._lock:
            self._usage[user_id] += 1

    def increment_user_failed_attempt(self, user_id: str, *, log_success: bool = False) -> None:
        with self._lock:
            self._failures[user_id] += 1

    def usage_for(self, user_id: str) -> int:
        return self._usage[user_id]

    def failed_attempts_for(self, user_id: str) -> int:
        return self._failures[user_id]
