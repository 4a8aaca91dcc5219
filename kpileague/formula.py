from __future__ import annotations

import ast
import logging
import math
import operator
from typing import Callable, Dict, Set

logger = logging.getLogger(__name__)

_BINARY_OPS: Dict[type, Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}
_UNARY_OPS: Dict[type, Callable[[float], float]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


class FormulaError(ValueError):
    """Raised for expressions outside the numeric-literal arithmetic subset."""


def _free_variables(tree: ast.AST) -> Set[str]:
    return {node.id for node in ast.walk(tree) if isinstance(node, ast.Name)}


def _evaluate(node: ast.AST, value: float) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body, value)
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise FormulaError(f"Unsupported literal {node.value!r}")
        return float(node.value)
    if isinstance(node, ast.Name):
        return value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        return _BINARY_OPS[type(node.op)](_evaluate(node.left, value), _evaluate(node.right, value))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand, value))
    raise FormulaError(f"Unsupported syntax: {type(node).__name__}")


def compile_conversion(expression: str) -> ast.Expression:
    """Parse a conversion expression such as ``value / 300``.

    Only numbers, ``+ - * /``, parentheses and a single free variable are allowed.
    """
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as exc:
        raise FormulaError(f"Malformed expression {expression!r}") from exc
    names = _free_variables(tree)
    if len(names) > 1:
        raise FormulaError(f"Expression {expression!r} uses more than one variable: {', '.join(sorted(names))}")
    for node in ast.walk(tree):
        if isinstance(node, (ast.Call, ast.Attribute, ast.Subscript, ast.Compare, ast.BoolOp)):
            raise FormulaError(f"Unsupported syntax in {expression!r}")
    return tree


def evaluate_conversion(expression: str, value: float) -> float:
    """Convert a raw metric value to points; anything unusable contributes zero."""
    try:
        result = _evaluate(compile_conversion(expression), float(value))
    except (FormulaError, ZeroDivisionError, OverflowError, RecursionError) as err:
        logger.warning("Conversion expression %r failed for value %s: %s", expression, value, err)
        return 0.0
    if not math.isfinite(result):
        logger.warning("Conversion expression %r produced a non-finite result for value %s", expression, value)
        return 0.0
    return result
