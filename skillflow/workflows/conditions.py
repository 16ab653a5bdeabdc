"""
Step guard conditions.  Never calls eval().

A condition is resolved textually with the template resolver and the result is
parsed with ``ast`` and walked by a tiny interpreter that accepts only:

  - Literals: strings, numbers, true/false/null/undefined (and the Python spellings)
  - Comparisons: ==, !=, <, <=, >, >=, in, not in  (=== and !== are accepted as aliases)
  - Boolean: and, or, not  (&&, || and ! are accepted as aliases)
  - Unary minus, grouping parentheses, list/tuple literals as ``in`` targets

Example::

    "'{{status}}' == 'ok' && {{fetch.data.count}} > 0"
"""

from __future__ import annotations

import ast
import logging
import re
from typing import Any, Literal

from skillflow.exceptions import ConditionError
from skillflow.types import ExecutionContext

from .template import resolve_string

logger = logging.getLogger(__name__)

FailurePolicy = Literal["run", "skip", "fail"]

_STRING_LITERAL_RE = re.compile(r"""('(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")""")
_BANG_RE = re.compile(r"!(?!=)")

_NAMED_CONSTANTS: dict[str, Any] = {
    "true": True,
    "True": True,
    "false": False,
    "False": False,
    "null": None,
    "None": None,
    "undefined": None,
}


def evaluate_condition(
    condition: str | None,
    context: ExecutionContext,
    on_error: FailurePolicy = "run",
) -> bool:
    """
    Decide whether a step runs.

    Args:
        condition: Guard expression; empty or None always runs the step.
        context:   Variables for placeholder substitution.
        on_error:  What a malformed expression means: "run" the step anyway,
                   "skip" it, or "fail" by raising ConditionError.

    Returns:
        bool result of the expression.
    """
    if not condition or not condition.strip():
        return True

    resolved = resolve_string(condition, context)
    try:
        return evaluate_expression(resolved)
    except ConditionError as exc:
        if on_error == "fail":
            raise
        logger.warning(
            "Failed to evaluate condition %r (resolved %r): %s; %s step",
            condition, resolved, exc, "running" if on_error == "run" else "skipping",
        )
        return on_error == "run"


def evaluate_expression(expression: str) -> bool:
    """Evaluate an already-resolved expression.

    An expression that is blank after resolution is false.

    Raises:
        ConditionError: on syntax errors, disallowed constructs, or operands
            that cannot be compared.
    """
    normalized = _normalize_operators(expression).strip()
    if not normalized:
        return False

    try:
        tree = ast.parse(normalized, mode="eval")
    except (SyntaxError, ValueError, MemoryError, RecursionError) as exc:
        raise ConditionError(f"Invalid condition syntax: {expression!r}", expression=expression) from exc

    try:
        return bool(_eval_node(tree.body))
    except (TypeError, ValueError) as exc:
        raise ConditionError(
            f"Cannot compare operands in condition {expression!r}: {exc}", expression=expression
        ) from exc
    except RecursionError as exc:
        raise ConditionError(f"Condition nested too deeply: {expression[:80]!r}", expression=expression) from exc


def validate_condition(expression: str) -> None:
    """Static check: placeholders are treated as null literals and the rest must parse."""
    probe = re.sub(r"\{\{[^{}]*\}\}", "null", expression)
    normalized = _normalize_operators(probe).strip()
    if not normalized:
        return
    try:
        tree = ast.parse(normalized, mode="eval")
    except (SyntaxError, ValueError, MemoryError, RecursionError) as exc:
        raise ConditionError(f"Invalid condition syntax: {expression!r}", expression=expression) from exc
    try:
        _check_node(tree.body, expression)
    except RecursionError as exc:
        raise ConditionError(f"Condition nested too deeply: {expression[:80]!r}", expression=expression) from exc


# ── Internal ──────────────────────────────────────────────────────────────────


def _normalize_operators(expression: str) -> str:
    """Rewrite JS-style operators to Python ones, leaving string literals untouched."""
    parts = _STRING_LITERAL_RE.split(expression)
    # split() with one capture group: even indexes are code, odd are literals
    for i in range(0, len(parts), 2):
        code = parts[i]
        code = code.replace("!==", "!=").replace("===", "==")
        code = code.replace("&&", " and ").replace("||", " or ")
        code = _BANG_RE.sub(" not ", code)
        parts[i] = code
    return "".join(parts)


def _eval_node(node: ast.expr) -> Any:
    if isinstance(node, ast.Constant):
        return node.value

    if isinstance(node, ast.Name):
        if node.id in _NAMED_CONSTANTS:
            return _NAMED_CONSTANTS[node.id]
        raise ConditionError(
            f"Unknown name '{node.id}' in condition; quote string values, e.g. '{{{{var}}}}' == 'x'",
            expression=node.id,
        )

    if isinstance(node, (ast.Tuple, ast.List)):
        return tuple(_eval_node(el) for el in node.elts)

    if isinstance(node, ast.Compare):
        left = _eval_node(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval_node(comparator)
            if not _apply_compare_op(op, left, right):
                return False
            left = right
        return True

    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            return all(_eval_node(v) for v in node.values)
        if isinstance(node.op, ast.Or):
            return any(_eval_node(v) for v in node.values)

    if isinstance(node, ast.UnaryOp):
        if isinstance(node.op, ast.Not):
            return not _eval_node(node.operand)
        if isinstance(node.op, ast.USub):
            operand = _eval_node(node.operand)
            if isinstance(operand, (int, float)) and not isinstance(operand, bool):
                return -operand

    raise ConditionError(
        f"Unsupported expression node '{type(node).__name__}' in condition. "
        "Only comparisons, boolean operators, and literals are allowed.",
    )


def _check_node(node: ast.expr, expression: str) -> None:
    """Walk the tree without evaluating, rejecting anything _eval_node would."""
    if isinstance(node, ast.Constant):
        return
    if isinstance(node, ast.Name):
        if node.id not in _NAMED_CONSTANTS:
            raise ConditionError(f"Unknown name '{node.id}' in condition {expression!r}", expression=expression)
        return
    if isinstance(node, (ast.Tuple, ast.List)):
        for el in node.elts:
            _check_node(el, expression)
        return
    if isinstance(node, ast.Compare):
        if not all(type(op) in _COMPARE_OPS for op in node.ops):
            raise ConditionError(f"Unsupported comparison in {expression!r}", expression=expression)
        for child in (node.left, *node.comparators):
            _check_node(child, expression)
        return
    if isinstance(node, ast.BoolOp):
        for child in node.values:
            _check_node(child, expression)
        return
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.Not, ast.USub)):
        _check_node(node.operand, expression)
        return
    raise ConditionError(
        f"Unsupported expression node '{type(node).__name__}' in condition {expression!r}",
        expression=expression,
    )


def _coerce_numeric(left: Any, right: Any) -> tuple[Any, Any]:
    """Let "5" > 3 compare numerically, the way condition authors expect."""
    def _num(v: Any) -> Any:
        if isinstance(v, str):
            try:
                return float(v)
            except ValueError:
                return v
        return v

    left_is_num = isinstance(left, (int, float)) and not isinstance(left, bool)
    right_is_num = isinstance(right, (int, float)) and not isinstance(right, bool)
    if left_is_num and isinstance(right, str):
        return left, _num(right)
    if right_is_num and isinstance(left, str):
        return _num(left), right
    return left, right


_COMPARE_OPS = {
    ast.Eq: lambda a, b: a == b,
    ast.NotEq: lambda a, b: a != b,
    ast.Lt: lambda a, b: a < b,
    ast.LtE: lambda a, b: a <= b,
    ast.Gt: lambda a, b: a > b,
    ast.GtE: lambda a, b: a >= b,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}


def _apply_compare_op(op: ast.cmpop, left: Any, right: Any) -> bool:
    """Apply a single comparison operator."""
    fn = _COMPARE_OPS.get(type(op))
    if fn is None:
        raise ConditionError(f"Unsupported comparison operator: {type(op).__name__}")
    if isinstance(op, (ast.Lt, ast.LtE, ast.Gt, ast.GtE)):
        left, right = _coerce_numeric(left, right)
    return fn(left, right)
