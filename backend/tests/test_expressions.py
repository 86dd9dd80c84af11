"""Expression evaluator tests: literals, paths, operators and coercion rules."""

import pytest

from backend.ikinyarwanda.errors import EvalError, OperandTypeError
from backend.ikinyarwanda.expressions import evaluate, find_top_level_operator, to_display, truthy
from backend.ikinyarwanda.scope import Scope


@pytest.fixture
def scope():
    return Scope(
        {
            "a": 2,
            "b": 3,
            "name": "Ada",
            "user": {"tags": ["x", "y"], "profile": {"age": 30}},
            "flag": True,
        }
    )


@pytest.mark.parametrize(
    "token,expected",
    [
        ("'hello'", "hello"),
        ("'it\\'s'", "it's"),
        ('"line\\nbreak"', "line\nbreak"),
        ("42", 42),
        ("-1.5", -1.5),
        ("true", True),
        ("false", False),
        ("null", None),
        ("undefined", None),
        ('{"k": [1, 2]}', {"k": [1, 2]}),
        ("[1, 2, 3]", [1, 2, 3]),
    ],
)
def test_literals(scope, token, expected):
    assert evaluate(token, scope) == expected


def test_variables_and_paths(scope):
    assert evaluate("name", scope) == "Ada"
    assert evaluate("user.tags[1]", scope) == "y"
    assert evaluate("user.profile.age", scope) == 30


def test_missing_path_is_unknown(scope):
    with pytest.raises(EvalError) as exc:
        evaluate("user.nope.deeper", scope)
    assert "Unknown value or variable" in str(exc.value)


def test_numeric_sum_and_string_concat(scope):
    assert evaluate("a + b", scope) == 5
    assert evaluate("'x' + a", scope) == "x2"
    assert evaluate("name + ' ' + 'Lovelace'", scope) == "Ada Lovelace"
    assert evaluate('"a" + "b"', scope) == "ab"
    assert evaluate("'n=' + null", scope) == "n=null"
    assert evaluate("'f=' + flag", scope) == "f=true"


def test_precedence_and_parentheses(scope):
    assert evaluate("a + b * 2", scope) == 8
    assert evaluate("(a + b) * 2", scope) == 10
    assert evaluate("a * -2", scope) == -4
    assert evaluate("-(a + b)", scope) == -5


def test_right_most_split_groups_subtraction_left(scope):
    # splitting at the right-most operator evaluates 10 - 4 first
    assert evaluate("10 - 4 - 3", scope) == 3
    assert evaluate("12 / 3 / 2", scope) == 2


def test_division_results(scope):
    assert evaluate("6 / 3", scope) == 2
    assert isinstance(evaluate("6 / 3", scope), int)
    assert evaluate("7 / 2", scope) == 3.5
    assert evaluate("-7 % 3", scope) == -1


def test_division_by_zero(scope):
    with pytest.raises(EvalError):
        evaluate("a / 0", scope)
    with pytest.raises(EvalError):
        evaluate("a % 0", scope)


def test_arithmetic_type_errors(scope):
    with pytest.raises(OperandTypeError):
        evaluate("name - 1", scope)
    with pytest.raises(OperandTypeError):
        evaluate("flag * 2", scope)
    with pytest.raises(OperandTypeError):
        evaluate("name > 1", scope)


def test_strict_equality(scope):
    assert evaluate("a == 2", scope) is True
    assert evaluate("a == '2'", scope) is False
    assert evaluate("flag == 1", scope) is False
    assert evaluate("a != b", scope) is True
    assert evaluate("null == undefined", scope) is True
    assert evaluate("[1] == [1]", scope) is False


def test_logic_and_comparison(scope):
    assert evaluate("a < b && b <= 3", scope) is True
    assert evaluate("a > b || name == 'Ada'", scope) is True
    assert evaluate("!flag", scope) is False
    assert evaluate("'abc' < 'abd'", scope) is True


def test_truthiness():
    assert truthy([]) is True
    assert truthy({}) is True
    assert truthy(0) is False
    assert truthy("") is False
    assert truthy(None) is False
    assert truthy("0") is True
    assert truthy(float("nan")) is False


def test_printed_forms():
    assert to_display(3.0) == "3"
    assert to_display([1, "a", None]) == "1,a,"
    assert to_display({"a": 1}) == '{"a": 1}'
    assert to_display(False) == "false"


def test_operator_scan_skips_quotes_and_brackets():
    assert find_top_level_operator("'a+b' + [1+2]", ["+", "-"]) == (6, "+")
    assert find_top_level_operator("-5", ["+", "-"]) is None


def test_malformed_json_falls_through_to_unknown(scope):
    with pytest.raises(EvalError):
        evaluate("{not json}", scope)


def test_empty_token(scope):
    with pytest.raises(EvalError):
        evaluate("   ", scope)


def test_missing_operand(scope):
    with pytest.raises(EvalError):
        evaluate("a *", scope)
