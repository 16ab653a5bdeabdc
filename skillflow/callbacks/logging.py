"""Structured JSON logging callback for execution events."""

import json
import logging
from datetime import datetime, timezone

from skillflow.callbacks.base import BaseCallback
from skillflow.types import ExecutionEvent

logger = logging.getLogger("skillflow.audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class LoggingCallback(BaseCallback):
    """Emits one JSON log line per execution event.

    Each line carries:
      - event: event type name
      - ts: ISO-8601 UTC timestamp
      - workflow_id plus the fields relevant to the event

    Log level: INFO for normal events, ERROR for failures.
    Logger name: skillflow.audit (configure in your logging setup)
    """

    async def on_step_start(self, workflow_id: str, event: ExecutionEvent) -> None:
        logger.info(json.dumps({
            "event": "step_start",
            "ts": _now(),
            "workflow_id": workflow_id,
            "step_id": event.step_id,
            "step_index": event.step_index,
            "total_steps": event.total_steps,
        }))

    async def on_step_complete(self, workflow_id: str, event: ExecutionEvent) -> None:
        logger.info(json.dumps({
            "event": "step_skipped" if event.skipped else "step_complete",
            "ts": _now(),
            "workflow_id": workflow_id,
            "step_id": event.step_id,
            "duration_ms": event.duration,
            "output_type": type(event.output).__name__,
        }))

    async def on_step_error(self, workflow_id: str, event: ExecutionEvent) -> None:
        logger.error(json.dumps({
            "event": "step_error",
            "ts": _now(),
            "workflow_id": workflow_id,
            "step_id": event.step_id,
            "duration_ms": event.duration,
            "error": (event.error or "")[:500],
        }, ensure_ascii=False))

    async def on_execution_complete(self, workflow_id: str, event: ExecutionEvent) -> None:
        result = event.result
        logger.info(json.dumps({
            "event": "execution_complete",
            "ts": _now(),
            "workflow_id": workflow_id,
            "steps": len(result.step_results) if result else 0,
            "duration_ms": result.duration if result else None,
        }))

    async def on_execution_error(self, workflow_id: str, event: ExecutionEvent) -> None:
        result = event.result
        logger.error(json.dumps({
            "event": "execution_error",
            "ts": _now(),
            "workflow_id": workflow_id,
            "error": (event.error or "")[:500],
            "duration_ms": result.duration if result else None,
        }, ensure_ascii=False))
