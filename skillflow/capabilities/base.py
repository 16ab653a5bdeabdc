"""Capability protocol and shared base class.

A capability is one configured executor instance (a browser driver, a chat
backend, a notifier, or the in-process builtin) seen through a single
interface.  The skill executor knows nothing about what an action does beyond
its name.

Usage:
    class MyCapability(BaseCapability):
        type_name = "mine"

        def supported_actions(self):
            return ["ping"]

        async def invoke(self, action, params):
            return InvokeResult(success=True, data={"pong": True})

    registry.register_type("mine", MyCapability)
"""

from __future__ import annotations

import time
from typing import Any, Optional, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel

from skillflow.types import ActionDefinition, ExecutorInstance, HealthResult, InvokeResult


class ConfigField(BaseModel):
    """Declared shape of one key in ExecutorInstance.type_config."""
    type: str                           # "string" | "number" | "boolean" | "object"
    default: Any = None
    optional: bool = False
    description: str = ""


_PY_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
}


@runtime_checkable
class Capability(Protocol):
    """What the registry and the skill executor require of every capability."""

    type_name: str
    instance: ExecutorInstance

    async def invoke(self, action: str, params: dict[str, Any]) -> InvokeResult:
        """Run *action* with already-resolved *params*."""
        ...

    def supported_actions(self) -> list[str]:
        ...

    def action_definitions(self) -> list[ActionDefinition]:
        ...

    async def check_health(self) -> HealthResult:
        ...


class BaseCapability:
    """Concrete base: HTTP health probe, config validation, action listing.

    Subclasses set ``type_name`` and implement ``invoke`` and
    ``supported_actions``.
    """

    type_name: str = ""
    display_name: str = ""
    config_schema: dict[str, ConfigField] = {}

    def __init__(
        self,
        instance: ExecutorInstance,
        timeout_seconds: float = 30.0,
        health_timeout_seconds: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Args:
            instance: Executor configuration (endpoint, health path, type_config).
            timeout_seconds: Per-invoke HTTP timeout.
            health_timeout_seconds: Health probe timeout.
            transport: Optional httpx transport; tests pass httpx.MockTransport.
        """
        self.instance = instance
        self.timeout_seconds = timeout_seconds
        self.health_timeout_seconds = health_timeout_seconds
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        kwargs: dict[str, Any] = {"timeout": timeout}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    def config_value(self, key: str) -> Any:
        """type_config value, falling back to the schema default."""
        if key in self.instance.type_config:
            return self.instance.type_config[key]
        field = self.config_schema.get(key)
        return field.default if field else None

    async def check_health(self) -> HealthResult:
        started = time.monotonic()
        url = f"{self.instance.endpoint.rstrip('/')}{self.instance.health_path}"
        try:
            async with self._client(self.health_timeout_seconds) as client:
                response = await client.get(url)
            elapsed = int((time.monotonic() - started) * 1000)
            return HealthResult(
                healthy=response.is_success,
                response_time=elapsed,
                message="OK" if response.is_success else f"HTTP {response.status_code}",
            )
        except httpx.HTTPError as exc:
            return HealthResult(
                healthy=False,
                response_time=int((time.monotonic() - started) * 1000),
                message=str(exc) or type(exc).__name__,
            )

    async def invoke(self, action: str, params: dict[str, Any]) -> InvokeResult:
        raise NotImplementedError

    def supported_actions(self) -> list[str]:
        return []

    def action_definitions(self) -> list[ActionDefinition]:
        return []

    def unsupported(self, action: str) -> InvokeResult:
        return InvokeResult(
            success=False,
            error=f"Unsupported action: {action}. Supported: {', '.join(self.supported_actions())}",
        )

    def validate_config(self) -> list[str]:
        """Return a list of problems with instance.type_config; empty means valid."""
        errors: list[str] = []
        for key, field in self.config_schema.items():
            value = self.instance.type_config.get(key)
            if value is None:
                if not field.optional and field.default is None:
                    errors.append(f"Missing required field: {key}")
                continue
            expected = _PY_TYPES.get(field.type)
            if expected is None:
                continue
            if field.type == "number" and isinstance(value, bool):
                errors.append(f"Field {key} must be of type number")
            elif not isinstance(value, expected):
                errors.append(f"Field {key} must be of type {field.type}")
        return errors
