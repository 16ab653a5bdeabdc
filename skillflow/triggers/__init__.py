"""Schedule timers and the in-process event bus."""

from skillflow.triggers.event_bus import EventBus
from skillflow.triggers.scheduler import WorkflowScheduler

__all__ = ["EventBus", "WorkflowScheduler"]
