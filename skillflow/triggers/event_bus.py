"""In-process pub/sub for task lifecycle and schedule notifications.

Subscriptions are keyed by a glob pattern over dotted event names, so a
dashboard can follow every queue transition with ``"task.*"`` while an
alerting hook listens only to ``"task.failed"``.
"""

from __future__ import annotations

import inspect
import logging
from fnmatch import fnmatchcase
from typing import Any, Callable

logger = logging.getLogger(__name__)

# ── Event names ────────────────────────────────────────────────────────────
EVENT_TASK_QUEUED    = "task.queued"
EVENT_TASK_STARTED   = "task.started"
EVENT_TASK_COMPLETED = "task.completed"
EVENT_TASK_FAILED    = "task.failed"
EVENT_TASK_CANCELLED = "task.cancelled"
EVENT_SCHEDULE_FIRED = "schedule.fired"

Subscriber = Callable[[Any], Any]


class EventBus:
    """Fan-out of named events to sync or async subscribers.

    Usage::

        bus = EventBus()
        stop = bus.subscribe("task.*", on_task_change)
        await bus.emit("task.completed", task)
        stop()
    """

    def __init__(self) -> None:
        self._subscriptions: list[tuple[str, Subscriber]] = []

    def subscribe(self, pattern: str, callback: Subscriber) -> Callable[[], None]:
        """Call *callback(data)* for every event whose name matches *pattern*.

        Returns a function that removes this subscription.
        """
        entry = (pattern, callback)
        self._subscriptions.append(entry)

        def _remove() -> None:
            if entry in self._subscriptions:
                self._subscriptions.remove(entry)

        return _remove

    def unsubscribe(self, pattern: str, callback: Subscriber) -> bool:
        """Drop the first subscription of *callback* under *pattern*."""
        try:
            self._subscriptions.remove((pattern, callback))
        except ValueError:
            return False
        return True

    def subscriber_count(self, event: str) -> int:
        return sum(1 for pattern, _ in self._subscriptions if fnmatchcase(event, pattern))

    async def emit(self, event: str, data: Any = None) -> None:
        """Deliver *data* to matching subscribers in subscription order.

        A subscriber that raises is logged; delivery to the rest continues.
        """
        matched = [cb for pattern, cb in list(self._subscriptions) if fnmatchcase(event, pattern)]
        for cb in matched:
            try:
                result = cb(data)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Subscriber %r failed for event %s", cb, event)
