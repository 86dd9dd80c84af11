"""Expression evaluation for Ikinyarwanda scripts.

`evaluate` turns one trimmed token into a value using the active `Scope`.
It recognises, in order:

- whole-token string literals ('single' with \\' escapes, "double" with JSON
  escapes)
- JSON object/array literals (falls through on a parse failure)
- signed decimal numbers and the keywords true/false/null/undefined
- bare variables and dotted/bracketed paths such as `a.b[0].c`
- binary operators, split on the right-most top-level occurrence of the
  lowest-precedence tier present, then prefix `!`, `-` and `+`

Function calls are not expressions here; the executor handles tokens that are
a whole `name(...)` call before handing anything to this module.
"""

import json
import math
import re
from typing import Any, List, Optional, Tuple

from .errors import EvalError, OperandTypeError
from .preprocess import iter_code_chars
from .scope import Scope
from .syntax import is_private_name

_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# lowest precedence first
OPERATOR_TIERS: List[List[str]] = [
    ["||"],
    ["&&"],
    ["==", "!="],
    [">=", "<=", ">", "<"],
    ["+", "-"],
    ["*", "/", "%"],
]

_UNARY_PREDECESSORS = set("+-*/%<>=!&|(,")

KEYWORD_VALUES = {"true": True, "false": False, "null": None, "undefined": None}

_NO_VALUE = object()


# --- value helpers -----------------------------------------------------------
def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if is_number(value):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without coercion; containers compare by identity."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return left is right


def to_display(value: Any) -> str:
    """Printed form used for concatenation and `andika`."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None else to_display(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value)


def normalize_number(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _to_number(value: Any, token: str) -> Any:
    if is_number(value):
        return value
    raise OperandTypeError(f"Expected numeric value for expression token: {token}")


def _to_comparable(left: Any, right: Any, left_raw: str, right_raw: str) -> Tuple[Any, Any]:
    if is_number(left) and is_number(right):
        return left, right
    if isinstance(left, str) and isinstance(right, str):
        return left, right
    bad = left_raw if not (is_number(left) or isinstance(left, str)) else right_raw
    raise OperandTypeError(f"Expected comparable value for token: {bad}")


# --- literals and paths ------------------------------------------------------
def _string_end(token: str, quote: str) -> int:
    """Index of the first unescaped `quote` after position 0, or -1."""
    for index in range(1, len(token)):
        if token[index] == quote and token[index - 1] != "\\":
            return index
    return -1


def _parse_string_literal(token: str) -> Any:
    quote = token[0]
    if quote not in ("'", '"') or len(token) < 2 or _string_end(token, quote) != len(token) - 1:
        return _NO_VALUE
    if quote == "'":
        return token[1:-1].replace("\\'", "'")
    try:
        return json.loads(token)
    except ValueError:
        raise EvalError(f"Invalid string literal: {token}")


def _parse_json_literal(token: str) -> Any:
    if not ((token.startswith("{") and token.endswith("}")) or (token.startswith("[") and token.endswith("]"))):
        return _NO_VALUE
    try:
        return json.loads(token)
    except ValueError:
        return _NO_VALUE


def parse_path(token: str) -> Optional[List[Any]]:
    """Split `a.b[0].c` into ['a', 'b', 0, 'c']; None if not a path."""
    match = _IDENT_RE.match(token)
    if not match:
        return None
    parts: List[Any] = [match.group(0)]
    index = match.end()
    while index < len(token):
        if token[index] == ".":
            match = _IDENT_RE.match(token, index + 1)
            if not match:
                return None
            parts.append(match.group(0))
            index = match.end()
            continue
        if token[index] == "[":
            close = token.find("]", index + 1)
            if close == -1:
                return None
            inner = token[index + 1 : close].strip()
            if not inner.isdigit():
                return None
            parts.append(int(inner))
            index = close + 1
            continue
        return None
    return parts


def _step(current: Any, part: Any) -> Any:
    if current is None:
        return _NO_VALUE
    if isinstance(part, int):
        if isinstance(current, (list, tuple)) and 0 <= part < len(current):
            return current[part]
        return _NO_VALUE
    if isinstance(current, dict):
        return current[part] if part in current else _NO_VALUE
    if is_private_name(part):
        raise EvalError(f"Access to private attribute is not allowed: {part}")
    if hasattr(current, part):
        return getattr(current, part)
    return _NO_VALUE


def resolve_path(token: str, scope: Scope) -> Any:
    """Resolve a path against the scope; `_NO_VALUE` on any missing segment.

    Raises:
        EvalError: for an underscore-prefixed attribute segment.
    """
    parts = parse_path(token)
    if not parts or parts[0] not in scope:
        return _NO_VALUE
    current = scope[parts[0]]
    for part in parts[1:]:
        current = _step(current, part)
        if current is _NO_VALUE:
            return _NO_VALUE
    return current


# --- operators ---------------------------------------------------------------
def is_unary_at(expression: str, index: int) -> bool:
    prefix = expression[:index].rstrip()
    return prefix == "" or prefix[-1] in _UNARY_PREDECESSORS


def find_top_level_operator(expression: str, operators: List[str]) -> Optional[Tuple[int, str]]:
    """Right-most (index, operator) outside quotes and brackets, or None."""
    ordered = sorted(operators, key=len, reverse=True)
    depth = 0
    skip_until = -1
    last: Optional[Tuple[int, str]] = None
    for index, char in iter_code_chars(expression):
        if char in "([{":
            depth += 1
            continue
        if char in ")]}":
            depth -= 1
            continue
        if depth != 0 or index < skip_until:
            continue
        for operator in ordered:
            if not expression.startswith(operator, index):
                continue
            if operator in ("+", "-") and is_unary_at(expression, index):
                continue
            last = (index, operator)
            skip_until = index + len(operator)
            break
    return last


def strip_enclosing_parentheses(expression: str) -> str:
    text = expression.strip()
    if not (text.startswith("(") and text.endswith(")")):
        return text
    depth = 0
    for index, char in iter_code_chars(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if depth == 0 and index < len(text) - 1:
            return text
    return text[1:-1].strip()


def apply_binary(operator: str, left: Any, right: Any, left_raw: str, right_raw: str) -> Any:
    if operator == "||":
        return truthy(left) or truthy(right)
    if operator == "&&":
        return truthy(left) and truthy(right)
    if operator == "==":
        return strict_equals(left, right)
    if operator == "!=":
        return not strict_equals(left, right)
    if operator in (">", "<", ">=", "<="):
        a, b = _to_comparable(left, right, left_raw, right_raw)
        if operator == ">":
            return a > b
        if operator == "<":
            return a < b
        if operator == ">=":
            return a >= b
        return a <= b
    if operator == "+":
        if isinstance(left, str) or isinstance(right, str):
            return to_display(left) + to_display(right)
        return normalize_number(_to_number(left, left_raw) + _to_number(right, right_raw))
    a = _to_number(left, left_raw)
    b = _to_number(right, right_raw)
    if operator == "-":
        return normalize_number(a - b)
    if operator == "*":
        return normalize_number(a * b)
    if operator in ("/", "%") and b == 0:
        raise EvalError(f"Division by zero: {right_raw}")
    if operator == "/":
        return normalize_number(a / b)
    if operator == "%":
        return normalize_number(math.fmod(a, b))
    raise EvalError(f"Unsupported operator: {operator}")


def _evaluate_operators(expression: str, scope: Scope) -> Any:
    unwrapped = strip_enclosing_parentheses(expression)
    if unwrapped != expression:
        return evaluate(unwrapped, scope)

    for operators in OPERATOR_TIERS:
        match = find_top_level_operator(expression, operators)
        if match is None:
            continue
        index, operator = match
        left_raw = expression[:index].strip()
        right_raw = expression[index + len(operator) :].strip()
        if not left_raw or not right_raw:
            raise EvalError(f"Missing operand for '{operator}' in: {expression}")
        left = evaluate(left_raw, scope)
        right = evaluate(right_raw, scope)
        return apply_binary(operator, left, right, left_raw, right_raw)

    if expression.startswith("!") and len(expression) > 1:
        return not truthy(evaluate(expression[1:], scope))
    if expression.startswith("-") and len(expression) > 1:
        operand = expression[1:].strip()
        return -_to_number(evaluate(operand, scope), operand)
    if expression.startswith("+") and len(expression) > 1:
        operand = expression[1:].strip()
        return _to_number(evaluate(operand, scope), operand)
    return _NO_VALUE


def evaluate(token: str, scope: Scope) -> Any:
    """Evaluate one expression token against `scope`.

    Raises:
        EvalError: when the token is empty or matches no known form.
        OperandTypeError: when an operator receives the wrong operand type.
    """
    text = token.strip()
    if text == "":
        raise EvalError("Cannot parse an empty value token.")

    value = _parse_string_literal(text)
    if value is not _NO_VALUE:
        return value
    value = _parse_json_literal(text)
    if value is not _NO_VALUE:
        return value
    if _NUMBER_RE.match(text):
        return float(text) if "." in text else int(text)
    if text in KEYWORD_VALUES:
        return KEYWORD_VALUES[text]
    if text in scope:
        return scope[text]
    value = resolve_path(text, scope)
    if value is not _NO_VALUE:
        return value
    value = _evaluate_operators(text, scope)
    if value is not _NO_VALUE:
        return value
    raise EvalError(f"Unknown value or variable: {text}")
