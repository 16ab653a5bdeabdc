"""Central registry of capability types and configured executor instances."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from skillflow.capabilities.base import Capability
from skillflow.capabilities.builtin import BuiltinCapability
from skillflow.capabilities.http import ACTION_PRESETS, HttpCapability
from skillflow.exceptions import CapabilityError, CapabilityNotFound, UnsupportedAction
from skillflow.types import ActionDefinition, ExecutorInstance, ExecutorStatus, HealthResult, InvokeResult

logger = logging.getLogger(__name__)

CapabilityFactory = Callable[[ExecutorInstance], Capability]

BUILTIN_INSTANCE = "builtin"


class CapabilityRegistry:
    """Maps capability type names to factories and holds executor instances.

    Instances keep their registration order; ``resolve`` without an explicit
    name returns the first enabled instance of the requested type.
    """

    def __init__(self):
        self._factories: dict[str, CapabilityFactory] = {}
        self._instances: dict[str, ExecutorInstance] = {}
        self._capabilities: dict[str, Capability] = {}

    # ── Types ────────────────────────────────────────────────────────────

    def register_type(self, type_name: str, factory: CapabilityFactory) -> None:
        """Register a factory building a capability for instances of *type_name*."""
        self._factories[type_name] = factory
        for name, inst in self._instances.items():
            if inst.type == type_name:
                self._capabilities.pop(name, None)

    def list_types(self) -> list[str]:
        return list(self._factories)

    # ── Instances ────────────────────────────────────────────────────────

    def add_instance(self, instance: ExecutorInstance) -> None:
        """Add or replace an executor instance by name."""
        if instance.type not in self._factories:
            raise CapabilityError(
                f"Unknown capability type '{instance.type}' for executor '{instance.name}'",
                capability_type=instance.type,
                instance_name=instance.name,
            )
        self._instances[instance.name] = instance
        self._capabilities.pop(instance.name, None)

    def remove_instance(self, name: str) -> bool:
        self._capabilities.pop(name, None)
        return self._instances.pop(name, None) is not None

    def set_enabled(self, name: str, enabled: bool) -> ExecutorInstance:
        instance = self.get_instance(name)
        instance.enabled = enabled
        return instance

    def get_instance(self, name: str) -> ExecutorInstance:
        instance = self._instances.get(name)
        if instance is None:
            raise CapabilityNotFound(f"Executor '{name}' not found", instance_name=name)
        return instance

    def list_instances(self, type_name: Optional[str] = None) -> list[ExecutorInstance]:
        return [i for i in self._instances.values() if type_name is None or i.type == type_name]

    def capability_for(self, name: str) -> Capability:
        """The capability object serving instance *name*, built on first use."""
        capability = self._capabilities.get(name)
        if capability is None:
            instance = self.get_instance(name)
            capability = self._factories[instance.type](instance)
            self._capabilities[name] = capability
        return capability

    def resolve(self, type_name: str, name: Optional[str] = None) -> Capability:
        """Find the capability for a step.

        Args:
            type_name: Capability type the step asks for.
            name: Explicit instance name; None picks the first enabled instance of the type.

        Raises:
            CapabilityNotFound: if nothing matches, the match is disabled, or the
                named instance is of a different type.
        """
        if name:
            instance = self._instances.get(name)
            if instance is None:
                raise CapabilityNotFound(
                    f"Executor '{name}' not found", capability_type=type_name, instance_name=name
                )
            if instance.type != type_name:
                raise CapabilityNotFound(
                    f"Executor '{name}' is of type '{instance.type}', not '{type_name}'",
                    capability_type=type_name,
                    instance_name=name,
                )
            if not instance.enabled:
                raise CapabilityNotFound(
                    f"Executor '{name}' is disabled", capability_type=type_name, instance_name=name
                )
            return self.capability_for(name)

        for instance in self._instances.values():
            if instance.type == type_name and instance.enabled:
                return self.capability_for(instance.name)
        raise CapabilityNotFound(f"No enabled executor of type '{type_name}'", capability_type=type_name)

    # ── Dispatch ─────────────────────────────────────────────────────────

    async def invoke(
        self,
        type_name: str,
        name: Optional[str],
        action: str,
        params: dict[str, Any],
    ) -> InvokeResult:
        """Resolve a capability and run *action*.

        Resolution failures raise CapabilityNotFound, unknown actions raise
        UnsupportedAction; anything the capability itself raises is reported
        as a failed InvokeResult.
        """
        capability = self.resolve(type_name, name)
        supported = capability.supported_actions()
        if action not in supported:
            raise UnsupportedAction(
                f"Executor '{capability.instance.name}' does not support action '{action}'. "
                f"Supported: {', '.join(supported)}",
                action=action,
                capability_type=type_name,
                instance_name=capability.instance.name,
            )
        try:
            return await capability.invoke(action, params)
        except Exception as exc:
            logger.exception("Executor %s raised during action %s", capability.instance.name, action)
            return InvokeResult(success=False, error=str(exc) or type(exc).__name__)

    def actions_for(self, name: str) -> list[ActionDefinition]:
        return self.capability_for(name).action_definitions()

    # ── Health ───────────────────────────────────────────────────────────

    async def check_health(self, name: str) -> HealthResult:
        """Probe one instance and record the outcome on it."""
        instance = self.get_instance(name)
        if not instance.enabled:
            instance.status = ExecutorStatus.UNKNOWN
            return HealthResult(healthy=False, message="Executor is disabled")

        result = await self.capability_for(name).check_health()
        instance.status = ExecutorStatus.HEALTHY if result.healthy else ExecutorStatus.UNHEALTHY
        instance.last_checked = datetime.now(timezone.utc)
        instance.response_time = result.response_time
        if not result.healthy:
            logger.warning("Executor %s unhealthy: %s", name, result.message)
        return result

    async def check_all_health(self) -> dict[str, HealthResult]:
        results: dict[str, HealthResult] = {}
        for name, instance in list(self._instances.items()):
            if instance.enabled:
                results[name] = await self.check_health(name)
        return results


def build_default_registry(
    instances: Optional[list[ExecutorInstance]] = None,
    timeout_seconds: float = 30.0,
    health_timeout_seconds: float = 5.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CapabilityRegistry:
    """Registry with the builtin type, the HTTP preset types and the given instances.

    A ``builtin`` instance is always present so steps of type ``builtin``
    resolve without any executor configuration.
    """
    registry = CapabilityRegistry()

    def _http(instance: ExecutorInstance) -> Capability:
        return HttpCapability(
            instance,
            timeout_seconds=timeout_seconds,
            health_timeout_seconds=health_timeout_seconds,
            transport=transport,
        )

    registry.register_type("builtin", BuiltinCapability)
    registry.register_type("http", _http)
    for type_name in ACTION_PRESETS:
        registry.register_type(type_name, _http)

    configured = list(instances or [])
    if not any(i.type == "builtin" for i in configured):
        registry.add_instance(ExecutorInstance(name=BUILTIN_INSTANCE, type="builtin", description="In-process actions"))
    for instance in configured:
        if instance.type not in registry.list_types():
            logger.warning("Skipping executor %s: unknown type '%s'", instance.name, instance.type)
            continue
        registry.add_instance(instance)
    return registry
