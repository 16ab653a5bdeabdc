"""Single-slot task queue and bounded histories."""

from skillflow.workers.history import BoundedHistory
from skillflow.workers.queue import TaskQueue

__all__ = ["BoundedHistory", "TaskQueue"]
