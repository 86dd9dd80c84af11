"""API integration tests using FastAPI TestClient."""

from fastapi.testclient import TestClient

from backend.app.main import _cap_settings, app
from backend.ikinyarwanda.interpreter import Interpreter

client = TestClient(app)


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_run_code_returns_result_record():
    r = client.post("/run", json={"code": "let x = 2;\nx = x * 5;\nexport x;"})
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["errors"] is None
    assert body["variables"] == {"x": 10}
    assert body["exports"] == {"x": 10}
    assert isinstance(body["duration_ms"], int)


def test_run_with_variables():
    r = client.post("/run", json={"code": "let total = a + b", "variables": {"a": 2, "b": 3}})
    assert r.json()["variables"]["total"] == 5


def test_fault_returns_stable_error_payload():
    r = client.post("/run", json={"code": "const v = 1\nv = 2"})
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is False
    assert body["errors"]["code"] == "BINDING_ERROR"
    assert body["errors"]["context"]["line_text"] == "v = 2"


def test_validation_failure_with_elements():
    r = client.post("/run", json={"code": "idafite_agaciro('#name')\nlet after = 1", "elements": {"#name": ""}})
    body = r.json()
    assert body["ok"] is False
    assert body["errors"] is None
    assert body["failed_line"] == "idafite_agaciro('#name')"
    assert body["surface"]["elements"] == {"#name": ""}


def test_missing_code_and_file():
    body = client.post("/run", json={}).json()
    assert body["errors"]["code"] == "BAD_REQUEST"


def test_run_file_under_script_root(tmp_path, monkeypatch):
    (tmp_path / "app.ikw").write_text("let name = 'ikin'\nexport name\n", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("let a = 1\n", encoding="utf-8")
    monkeypatch.setenv("IKIN_SCRIPT_ROOT", str(tmp_path))

    body = client.post("/run", json={"file": "app.ikw"}).json()
    assert body["exports"] == {"name": "ikin"}

    body = client.post("/run", json={"file": "notes.txt"}).json()
    assert body["errors"]["code"] == "FILE_ERROR"

    body = client.post("/run", json={"file": "../outside.ikw"}).json()
    assert body["errors"]["code"] == "FILE_ERROR"


def test_cap_settings_clamps():
    defaults = Interpreter()
    capped = _cap_settings({"max_call_depth": 10_000, "network_timeout_s": 600})
    assert capped["max_call_depth"] == defaults.max_call_depth
    assert capped["network_timeout_s"] == defaults.network_timeout_s

    lowered = _cap_settings({"max_call_depth": 3})
    assert lowered["max_call_depth"] == 3
    assert _cap_settings(None) == {
        "max_call_depth": defaults.max_call_depth,
        "network_timeout_s": defaults.network_timeout_s,
    }


def test_capped_call_depth_applies_to_run():
    code = "umukoro loop(n) {\n  let r = loop(n + 1)\n  garura r\n}\nloop(0)"
    body = client.post("/run", json={"code": code, "settings": {"max_call_depth": 3}}).json()
    assert body["errors"]["code"] == "RUNTIME_ERROR"
    assert "Call depth" in body["errors"]["message"]


def test_container_results_are_returned_as_json():
    body = client.post("/run", json={"code": "let f = 1\nkoresha({\"a\": [1, 2]})"}).json()
    assert body["results"] == [{"a": [1, 2]}]
