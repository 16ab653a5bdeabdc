"""Callback/hook system for execution events."""

from skillflow.callbacks.base import BaseCallback, ExecutionCallback, SkillflowCallback
from skillflow.callbacks.logging import LoggingCallback

__all__ = ["BaseCallback", "ExecutionCallback", "SkillflowCallback", "LoggingCallback"]
