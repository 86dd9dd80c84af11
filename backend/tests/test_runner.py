"""Runner option merging, file runs and sequential multi-source runs."""

from backend.ikinyarwanda.environment import Surface
from backend.ikinyarwanda.runner import Runner, merge_options


def test_merge_options_merges_tables_and_overrides_scalars():
    base = {"variables": {"a": 1}, "dependencies": {"db": 1}, "stop_on_validation_fail": True}
    merged = merge_options(base, {"variables": {"b": 2}, "stop_on_validation_fail": False})
    assert merged == {
        "variables": {"a": 1, "b": 2},
        "dependencies": {"db": 1},
        "stop_on_validation_fail": False,
    }
    assert base["variables"] == {"a": 1}


def test_with_options_returns_independent_runner():
    base = Runner(variables={"greeting": "Muraho"})
    derived = base.with_options(variables={"name": "Ada"})
    res = derived.run("let text = greeting + ' ' + name")
    assert res["variables"]["text"] == "Muraho Ada"
    assert base.options == {"variables": {"greeting": "Muraho"}}
    assert derived.interpreter is base.interpreter


def test_run_file(tmp_path):
    script = tmp_path / "index.ikw"
    script.write_text("let x = 2;\nx = x * 5;\nexport x;\n", encoding="utf-8")
    res = Runner().run_file(script)
    assert res["exports"] == {"x": 10}


def test_run_many_stops_after_first_validation_failure():
    surface = Surface({"#name": ""})
    runner = Runner(surface=surface)
    sources = [
        "shyiramo('#name', 'one')",
        "shyiramo('#name', '')\nidafite_agaciro('#name')",
        "shyiramo('#name', 'three')",
    ]
    results = runner.run_many(sources)
    assert [r["ok"] for r in results] == [True, False]
    assert surface.elements["#name"] == ""


def test_run_many_without_stopping_runs_everything():
    surface = Surface({"#name": ""})
    runner = Runner(surface=surface, stop_on_validation_fail=False)
    results = runner.run_many(["idafite_agaciro('#name')", "shyiramo('#name', 'done')"])
    assert len(results) == 2
    assert results[0]["results"] == [True]
    assert surface.elements["#name"] == "done"
