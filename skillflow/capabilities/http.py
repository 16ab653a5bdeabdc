"""JSON-over-HTTP capability for out-of-process executors.

Each action maps to a path on the executor's endpoint; params are POSTed as
the JSON body and the JSON response becomes ``InvokeResult.data``.  Path maps
come from the per-type presets below or from ``type_config.actions``.
"""

import logging
from typing import Any

import httpx

from skillflow.capabilities.base import BaseCapability, ConfigField
from skillflow.types import ActionDefinition, ActionParameter, InvokeResult

logger = logging.getLogger(__name__)

ACTION_PRESETS: dict[str, dict[str, str]] = {
    "puppeteer": {"fetch": "/api/fetch", "screenshot": "/api/fetch/screenshot"},
    "playwright": {"fetch": "/api/fetch", "screenshot": "/api/fetch/screenshot"},
    "claudecode": {"chat": "/v1/chat/completions", "chat-simple": "/api/chat"},
    "notification": {"send": "/api/notifications/send"},
}

_ACTION_DOCS: dict[str, ActionDefinition] = {
    "fetch": ActionDefinition(
        name="fetch",
        display_name="Fetch Page",
        description="Load a URL and return its readable content",
        params=[ActionParameter(name="url", required=True, description="Page to load", example="https://example.com")],
    ),
    "screenshot": ActionDefinition(
        name="screenshot",
        display_name="Screenshot",
        description="Capture a screenshot of a URL",
        params=[ActionParameter(name="url", required=True, description="Page to capture")],
    ),
    "chat": ActionDefinition(
        name="chat",
        display_name="Chat Completion",
        description="Send a message list to the chat backend",
        params=[ActionParameter(name="messages", type="array", required=True, description="Chat messages")],
    ),
    "send": ActionDefinition(
        name="send",
        display_name="Send Notification",
        description="Deliver a notification to a channel",
        params=[
            ActionParameter(name="channel", required=True, description="Channel id", example="dingtalk-1"),
            ActionParameter(name="title", required=True, description="Notification title"),
            ActionParameter(name="content", description="Notification body"),
        ],
    ),
}


class HttpCapability(BaseCapability):
    """Executor reached over HTTP. One instance per configured executor."""

    type_name = "http"
    display_name = "HTTP Executor"
    config_schema = {
        "timeout": ConfigField(type="number", optional=True, description="Executor-side timeout in milliseconds"),
        "actions": ConfigField(type="object", optional=True, description="Action name → request path"),
        "defaults": ConfigField(type="object", optional=True, description="Params merged under every request"),
    }

    def _action_paths(self) -> dict[str, str]:
        paths = dict(ACTION_PRESETS.get(self.instance.type, {}))
        paths.update(self.instance.type_config.get("actions") or {})
        return paths

    def supported_actions(self) -> list[str]:
        return list(self._action_paths())

    def action_definitions(self) -> list[ActionDefinition]:
        return [
            _ACTION_DOCS.get(name) or ActionDefinition(name=name, display_name=name, description=f"POST {path}")
            for name, path in self._action_paths().items()
        ]

    def _build_body(self, params: dict[str, Any]) -> dict[str, Any]:
        body: dict[str, Any] = dict(self.instance.type_config.get("defaults") or {})
        body.update(params)
        timeout = self.instance.type_config.get("timeout")
        if timeout and "timeout" not in params:
            body["timeout"] = timeout
        return body

    async def invoke(self, action: str, params: dict[str, Any]) -> InvokeResult:
        path = self._action_paths().get(action)
        if path is None:
            return self.unsupported(action)

        url = f"{self.instance.endpoint.rstrip('/')}{path}"
        try:
            async with self._client(self.timeout_seconds) as client:
                response = await client.post(url, json=self._build_body(params))
        except httpx.HTTPError as exc:
            logger.warning("Executor %s action %s request failed: %s", self.instance.name, action, exc)
            return InvokeResult(success=False, error=str(exc) or type(exc).__name__)

        if not response.is_success:
            return InvokeResult(success=False, error=f"HTTP {response.status_code}: {response.text}")

        try:
            data = response.json()
        except ValueError:
            return InvokeResult(success=True, data=response.text, raw_output=response.text)

        raw_output = None
        if isinstance(data, dict):
            raw = data.get("rawOutput", data.get("raw_output"))
            raw_output = raw if isinstance(raw, str) else None
        return InvokeResult(success=True, data=data, raw_output=raw_output)
