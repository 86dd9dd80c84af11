"""Security-oriented tests ensuring scripts cannot reach Python internals."""

import pytest
from fastapi.testclient import TestClient

from backend.app.main import app
from backend.ikinyarwanda.errors import CommandError, EvalError
from backend.ikinyarwanda.interpreter import Interpreter

client = TestClient(app)


class Service:
    def __init__(self):
        self._token = "secret"

    def ping(self):
        return "pong"


def test_dunder_path_segments_are_rejected():
    it = Interpreter()
    with pytest.raises(EvalError) as exc:
        it.run("let s = 'x'\nlet name = s.__class__.__name__")
    assert "private attribute" in str(exc.value)


def test_private_attribute_of_dependency_is_rejected():
    with pytest.raises(EvalError):
        Interpreter().run("let t = svc._token", variables={"svc": Service()})


def test_koresha_refuses_private_methods():
    it = Interpreter()
    with pytest.raises(CommandError):
        it.run("koresha('svc', '__init__')", dependencies={"svc": Service()})
    res = it.run("let p = koresha('svc', 'ping')", dependencies={"svc": Service()})
    assert res["variables"]["p"] == "pong"


def test_import_of_private_member_is_rejected():
    with pytest.raises(CommandError):
        Interpreter().run("import { _token } from 'svc'", dependencies={"svc": Service()})


def test_mapping_keys_with_underscores_still_resolve():
    res = Interpreter().run("let v = cfg._id", variables={"cfg": {"_id": 7}})
    assert res["variables"]["v"] == 7


def test_escape_chain_fails_over_http(tmp_path):
    marker = tmp_path / "owned"
    code = "\n".join(
        [
            "let s = 'x'",
            "let o = s.__class__.__mro__[1]",
            "let subs = koresha(o, '__subclasses__')",
            f"koresha(subs, 'system', 'touch {marker}')",
        ]
    )
    body = client.post("/run", json={"code": code}).json()
    assert body["errors"]["code"] == "RUNTIME_ERROR"
    assert "private attribute" in body["errors"]["message"]
    assert not marker.exists()
