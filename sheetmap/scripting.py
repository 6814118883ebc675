"""Sandboxed evaluation of user movement scripts.

Movement scripts are single expressions in a small, Python-flavoured language.
They are parsed with :mod:`ast` and interpreted node by node against an explicit
whitelist, so nothing outside the supplied inputs is reachable: no attribute
access, no imports, no builtins other than a few pure helpers.

Examples::

    2                                   # move two rows down
    {"row": row + 3, "col": 0}          # absolute target
    1 if sheet == "Data" else 0
    mapping["total"][0]["row"] - row    # align with another field's entry
"""

from __future__ import annotations

import ast
import operator
from typing import Any, Callable, Dict, Mapping, Protocol

from sheetmap.core.errors import ScriptError

SCRIPT_INPUTS = ("row", "col", "sheet", "field", "index", "mapping")
MAX_SCRIPT_LENGTH = 2000


class ScriptEvaluator(Protocol):
    """Capability that turns a movement script into a value."""

    def evaluate(self, script: str, context: Mapping[str, Any]) -> Any:  # pragma: no cover - interface definition
        ...


def _checked_mul(left: Any, right: Any) -> Any:
    if isinstance(left, (str, list, tuple)) or isinstance(right, (str, list, tuple)):
        raise ScriptError("Sequence repetition is not allowed")
    return operator.mul(left, right)


def _checked_mod(left: Any, right: Any) -> Any:
    if isinstance(left, str) or isinstance(right, str):
        raise ScriptError("String formatting is not allowed")
    return operator.mod(left, right)


_BIN_OPS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: _checked_mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: _checked_mod,
}

_UNARY_OPS: Dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}

_COMPARE_OPS: Dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
}

SAFE_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "abs": abs,
    "min": min,
    "max": max,
    "int": int,
    "round": round,
    "len": len,
}


class ExpressionEvaluator:
    """Whitelist interpreter for movement expressions."""

    def __init__(self, functions: Mapping[str, Callable[..., Any]] | None = None) -> None:
        self._functions = dict(SAFE_FUNCTIONS if functions is None else functions)

    def evaluate(self, script: str, context: Mapping[str, Any]) -> Any:
        """Evaluate ``script`` with exactly the names in :data:`SCRIPT_INPUTS`.

        Raises:
            ScriptError: On syntax errors, disallowed constructs or runtime failures.
        """

        source = (script or "").strip()
        if not source:
            raise ScriptError("Script is empty")
        if len(source) > MAX_SCRIPT_LENGTH:
            raise ScriptError("Script is too long")
        try:
            tree = ast.parse(source, mode="eval")
        except SyntaxError as exc:
            raise ScriptError(f"Invalid script syntax: {exc.msg}") from exc

        names = {name: context.get(name) for name in SCRIPT_INPUTS}
        try:
            return self._eval(tree.body, names)
        except ScriptError:
            raise
        except (ArithmeticError, TypeError, ValueError, KeyError, IndexError) as exc:
            raise ScriptError(f"Script failed: {exc.__class__.__name__}: {exc}") from exc

    def _eval(self, node: ast.AST, names: Mapping[str, Any]) -> Any:
        if isinstance(node, ast.Constant):
            if isinstance(node.value, (int, float, str, bool)) or node.value is None:
                return node.value
            raise ScriptError(f"Unsupported constant: {node.value!r}")

        if isinstance(node, ast.Name):
            if node.id in names:
                return names[node.id]
            raise ScriptError(f"Unknown name: {node.id}")

        if isinstance(node, ast.BinOp):
            op = _BIN_OPS.get(type(node.op))
            if op is None:
                raise ScriptError(f"Operator not allowed: {type(node.op).__name__}")
            return op(self._eval(node.left, names), self._eval(node.right, names))

        if isinstance(node, ast.UnaryOp):
            op = _UNARY_OPS.get(type(node.op))
            if op is None:
                raise ScriptError(f"Operator not allowed: {type(node.op).__name__}")
            return op(self._eval(node.operand, names))

        if isinstance(node, ast.BoolOp):
            if isinstance(node.op, ast.And):
                result: Any = True
                for value in node.values:
                    result = self._eval(value, names)
                    if not result:
                        return result
                return result
            result = False
            for value in node.values:
                result = self._eval(value, names)
                if result:
                    return result
            return result

        if isinstance(node, ast.Compare):
            left = self._eval(node.left, names)
            for op_node, comparator in zip(node.ops, node.comparators):
                op = _COMPARE_OPS.get(type(op_node))
                if op is None:
                    raise ScriptError(f"Comparison not allowed: {type(op_node).__name__}")
                right = self._eval(comparator, names)
                if not op(left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.IfExp):
            if self._eval(node.test, names):
                return self._eval(node.body, names)
            return self._eval(node.orelse, names)

        if isinstance(node, ast.Dict):
            if any(key is None for key in node.keys):
                raise ScriptError("Dict unpacking is not allowed")
            return {
                self._eval(key, names): self._eval(value, names)
                for key, value in zip(node.keys, node.values)
            }

        if isinstance(node, (ast.List, ast.Tuple)):
            items = [self._eval(item, names) for item in node.elts]
            return items if isinstance(node, ast.List) else tuple(items)

        if isinstance(node, ast.Subscript):
            if isinstance(node.slice, ast.Slice):
                raise ScriptError("Slicing is not allowed")
            container = self._eval(node.value, names)
            if not isinstance(container, (dict, list, tuple, str)):
                raise ScriptError("Subscript target must be a dict, list or string")
            return container[self._eval(node.slice, names)]

        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in self._functions:
                raise ScriptError("Only abs/min/max/int/round/len may be called")
            if node.keywords:
                raise ScriptError("Keyword arguments are not allowed")
            args = [self._eval(arg, names) for arg in node.args]
            return self._functions[node.func.id](*args)

        raise ScriptError(f"Unsupported expression: {type(node).__name__}")


__all__ = ["ExpressionEvaluator", "SAFE_FUNCTIONS", "SCRIPT_INPUTS", "ScriptEvaluator"]
