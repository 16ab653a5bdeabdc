"""
Variable substitution for step params and conditions.

Placeholders have the form ``{{name}}`` or ``{{name.sub.path}}``.  Each key is
looked up in three namespaces, first match wins:

  1. builtin values     (currentDate, currentTime, currentDatetime, randomId)
  2. user-input values  (caller-supplied, or workflow defaults)
  3. step outputs       (keyed by output variable and by step id)

``{{step}}`` substitutes the whole stored output as compact JSON;
``{{step.data.field}}`` walks into it.  Unknown keys and missing paths become
the empty string, so a template can never raise.

Every string is scanned once and each match is replaced through a callable,
so a substituted value is never itself re-scanned for placeholders or
interpreted as a regex replacement pattern.
"""

from __future__ import annotations

import json
import random
import re
import string
from datetime import datetime
from typing import Any, Optional

from skillflow.types import BuiltinVariableInfo, BuiltinVariables, ExecutionContext

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
_MISSING = object()


# ── Builtin values ────────────────────────────────────────────────────────────


def _format_date(now: datetime) -> str:
    return now.strftime("%Y-%m-%d")


def _format_time(now: datetime) -> str:
    return now.strftime("%H:%M:%S")


def _format_datetime(now: datetime) -> str:
    return f"{_format_date(now)} {_format_time(now)}"


def _random_id() -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=8))


def generate_builtin_values(
    toggles: BuiltinVariables,
    now: Optional[datetime] = None,
) -> dict[str, str]:
    """Compute the builtin values a workflow asked for, once per run."""
    now = now or datetime.now()
    values: dict[str, str] = {}
    if toggles.current_date:
        values["currentDate"] = _format_date(now)
    if toggles.current_time:
        values["currentTime"] = _format_time(now)
    if toggles.current_datetime:
        values["currentDatetime"] = _format_datetime(now)
    if toggles.random_id:
        values["randomId"] = _random_id()
    return values


def describe_builtin_variables(now: Optional[datetime] = None) -> list[BuiltinVariableInfo]:
    """Catalogue of builtin variables with a live example value each."""
    now = now or datetime.now()
    return [
        BuiltinVariableInfo(name="currentDate", description="Current local date", example=_format_date(now)),
        BuiltinVariableInfo(name="currentTime", description="Current local time", example=_format_time(now)),
        BuiltinVariableInfo(
            name="currentDatetime", description="Current local date and time", example=_format_datetime(now)
        ),
        BuiltinVariableInfo(name="randomId", description="8-character random id", example=_random_id()),
    ]


# ── Resolution ────────────────────────────────────────────────────────────────


def stringify(value: Any) -> str:
    """Text form of a value as it appears inside a resolved string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return str(value)


def get_path(value: Any, path: str) -> Any:
    """Walk a dotted path through dicts (by key) and lists (by index)."""
    current = value
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, list) and part.lstrip("-").isdigit():
            index = int(part)
            current = current[index] if -len(current) <= index < len(current) else None
        else:
            return None
    return current


def lookup_variable(key: str, context: ExecutionContext) -> Any:
    """Resolve one placeholder key against the context. Returns None when unknown."""
    for namespace in (context.builtin_values, context.user_input_values, context.step_outputs):
        value = namespace.get(key, _MISSING)
        if value is not _MISSING:
            return value

    if "." not in key:
        return None

    # Longest step-output name that prefixes the key, so "a.b" outranks "a"
    # when both are output variables.
    best = None
    for name in context.step_outputs:
        if key.startswith(name + ".") and (best is None or len(name) > len(best)):
            best = name
    if best is None:
        return None
    return get_path(context.step_outputs[best], key[len(best) + 1:])


def resolve_string(template: str, context: ExecutionContext) -> str:
    return _PLACEHOLDER_RE.sub(lambda m: stringify(lookup_variable(m.group(1), context)), template)


def resolve_template(template: Any, context: ExecutionContext) -> Any:
    """Return *template* with every placeholder substituted.

    Strings are substituted textually; lists and dicts are rebuilt with each
    element resolved; every other value is returned as-is.  Pure: the same
    template and context always produce the same output.
    """
    if isinstance(template, str):
        return resolve_string(template, context)
    if isinstance(template, list):
        return [resolve_template(item, context) for item in template]
    if isinstance(template, dict):
        return {key: resolve_template(value, context) for key, value in template.items()}
    return template


def find_placeholders(template: Any) -> set[str]:
    """All placeholder keys referenced anywhere in *template*."""
    if isinstance(template, str):
        return set(_PLACEHOLDER_RE.findall(template))
    if isinstance(template, list):
        return set().union(*(find_placeholders(item) for item in template)) if template else set()
    if isinstance(template, dict):
        return set().union(*(find_placeholders(v) for v in template.values())) if template else set()
    return set()
