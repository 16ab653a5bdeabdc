"""In-process capability: small data-shaping actions that need no network.

Actions:
    echo     → data = params
    set      → data = params (named values for later steps)
    extract  → data = jmespath.search(expression, data)
    format   → data = {"text": template}
    delay    → sleep for ms milliseconds, data = {"delayed": ms}
    fail     → always fails with message
"""

import asyncio
import json
import logging
from typing import Any

import jmespath
from jmespath.exceptions import JMESPathError

from skillflow.capabilities.base import BaseCapability
from skillflow.types import ActionDefinition, ActionParameter, HealthResult, InvokeResult

logger = logging.getLogger(__name__)

_MAX_DELAY_MS = 60_000


def _maybe_json(value: Any) -> Any:
    """Placeholders render objects as JSON text; turn such text back into data."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped[:1] in ("{", "["):
            try:
                return json.loads(stripped)
            except ValueError:
                return value
    return value


class BuiltinCapability(BaseCapability):
    type_name = "builtin"
    display_name = "Builtin"

    _ACTIONS = [
        ActionDefinition(
            name="echo",
            display_name="Echo",
            description="Return the params unchanged",
        ),
        ActionDefinition(
            name="set",
            display_name="Set Values",
            description="Store the params as this step's output",
        ),
        ActionDefinition(
            name="extract",
            display_name="Extract",
            description="Query a value with a JMESPath expression",
            params=[
                ActionParameter(name="data", type="object", required=True, description="Source value or JSON text"),
                ActionParameter(name="expression", required=True, example="items[0].title"),
            ],
        ),
        ActionDefinition(
            name="format",
            display_name="Format Text",
            description="Produce text from a template",
            params=[ActionParameter(name="template", required=True, example="Report for {{currentDate}}")],
        ),
        ActionDefinition(
            name="delay",
            display_name="Delay",
            description="Wait before continuing",
            params=[ActionParameter(name="ms", type="number", required=True, example=1000)],
        ),
        ActionDefinition(
            name="fail",
            display_name="Fail",
            description="Fail the step with a message",
            params=[ActionParameter(name="message", example="stop here")],
        ),
    ]

    def supported_actions(self) -> list[str]:
        return [a.name for a in self._ACTIONS]

    def action_definitions(self) -> list[ActionDefinition]:
        return list(self._ACTIONS)

    async def check_health(self) -> HealthResult:
        return HealthResult(healthy=True, response_time=0, message="OK")

    async def invoke(self, action: str, params: dict[str, Any]) -> InvokeResult:
        if action in ("echo", "set"):
            return InvokeResult(success=True, data=dict(params))

        if action == "extract":
            expression = params.get("expression")
            if not expression:
                return InvokeResult(success=False, error="extract requires 'expression'")
            try:
                value = jmespath.search(expression, _maybe_json(params.get("data")))
            except JMESPathError as exc:
                return InvokeResult(success=False, error=f"Invalid JMESPath expression {expression!r}: {exc}")
            return InvokeResult(success=True, data=value)

        if action == "format":
            text = params.get("template", "")
            return InvokeResult(success=True, data={"text": text}, raw_output=str(text))

        if action == "delay":
            try:
                ms = int(params.get("ms", 0))
            except (TypeError, ValueError):
                return InvokeResult(success=False, error=f"delay 'ms' must be a number, got {params.get('ms')!r}")
            ms = max(0, min(ms, _MAX_DELAY_MS))
            await asyncio.sleep(ms / 1000)
            return InvokeResult(success=True, data={"delayed": ms})

        if action == "fail":
            return InvokeResult(success=False, error=str(params.get("message") or "Step failed"))

        return self.unsupported(action)
