"""Import/export statements against the dependency table."""

import pytest

from backend.ikinyarwanda.errors import BindingError, CommandError, ScriptSyntaxError
from backend.ikinyarwanda.interpreter import run


class MathLib:
    @staticmethod
    def max(*values):
        return max(values)

    @staticmethod
    def min(*values):
        return min(values)


def test_named_import_with_alias_and_koresha():
    code = "import { max as biggest } from 'math'\nlet top = koresha(biggest, 3, 9)\nexport top"
    res = run(code, dependencies={"math": MathLib()})
    assert res["exports"]["top"] == 9


def test_default_and_named_imports_combined():
    code = """
    import math from 'math';
    import { max as biggest } from 'math';
    let answer = koresha(math, 'min', 4, 9);
    answer = koresha(biggest, answer, 7);
    export { answer as finalAnswer };
    """
    res = run(code, dependencies={"math": {"max": max, "min": min}})
    assert res["ok"] is True
    assert res["exports"] == {"finalAnswer": 7}


def test_imports_are_const():
    with pytest.raises(BindingError):
        run("import cfg from 'cfg'\ncfg = 1", dependencies={"cfg": {}})


def test_missing_dependency_or_member():
    with pytest.raises(CommandError):
        run("import x from 'nowhere'")
    with pytest.raises(CommandError) as exc:
        run("import { nope } from 'math'", dependencies={"math": {"max": max}})
    assert "nope" in str(exc.value)


def test_invalid_import_syntax():
    with pytest.raises(ScriptSyntaxError):
        run("import from 'math'")


def test_export_is_resolved_at_run_end():
    code = "let counter = 1\nexport counter\ncounter = counter + 41"
    res = run(code)
    assert res["exports"]["counter"] == 42


def test_export_declaration_and_assignment_forms():
    code = """
    export const name = 'ikinyarwanda'
    let total = 0
    export total = total + 5
    """
    res = run(code)
    assert res["exports"] == {"name": "ikinyarwanda", "total": 5}


def test_export_list_requires_known_names():
    with pytest.raises(CommandError):
        run("export { ghost }")
    with pytest.raises(CommandError):
        run("export ghost")


def test_export_from_function_scope_sees_later_mutation():
    code = """
    umukoro make() {
      let inner = 1
      export inner
      inner = 2
    }
    make()
    """
    res = run(code)
    assert res["exports"]["inner"] == 2
    assert "inner" not in res["variables"]
