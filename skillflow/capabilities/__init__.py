"""Capabilities: the executors workflow steps dispatch to."""

from skillflow.capabilities.base import BaseCapability, Capability, ConfigField
from skillflow.capabilities.builtin import BuiltinCapability
from skillflow.capabilities.http import ACTION_PRESETS, HttpCapability
from skillflow.capabilities.registry import CapabilityRegistry, build_default_registry

__all__ = [
    "Capability",
    "BaseCapability",
    "ConfigField",
    "BuiltinCapability",
    "HttpCapability",
    "ACTION_PRESETS",
    "CapabilityRegistry",
    "build_default_registry",
]
