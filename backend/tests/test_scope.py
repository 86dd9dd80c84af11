"""Unit tests for scope frames: declaration, shadowing, const enforcement."""

import pytest

from backend.ikinyarwanda.errors import BindingError
from backend.ikinyarwanda.scope import Scope


def test_redeclare_in_same_frame_fails_even_for_let():
    root = Scope()
    root.declare("a", 1)
    with pytest.raises(BindingError):
        root.declare("a", 2)
    root.declare("c", 1, const=True)
    with pytest.raises(BindingError):
        root.declare("c", 2)


def test_shadowing_in_child_frame():
    root = Scope()
    root.declare("a", 1)
    inner = root.child()
    inner.declare("a", 2)
    assert inner.resolve("a") == 2
    assert root.resolve("a") == 1


def test_assign_rewrites_owning_frame():
    root = Scope()
    root.declare("total", 0)
    inner = root.child().child()
    inner.assign("total", 5)
    assert root.bindings["total"] == 5
    assert "total" not in inner.bindings


def test_const_violation_at_any_depth():
    root = Scope()
    root.declare("limit", 3, const=True)
    inner = root.child()
    with pytest.raises(BindingError) as exc:
        inner.assign("limit", 4)
    assert "Cannot reassign const variable" in str(exc.value)
    assert inner.is_const("limit")


def test_assign_unknown_binds_locally():
    root = Scope()
    inner = root.child()
    inner.assign("fresh", 1)
    assert inner.own_items() == {"fresh": 1}
    assert not root.has_in_chain("fresh")


def test_resolve_missing():
    root = Scope({"a": 1})
    with pytest.raises(KeyError):
        root.resolve("missing")
    assert root.resolve("missing", None) is None


def test_mapping_view_and_snapshot():
    root = Scope({"a": 1, "b": 2})
    inner = root.child()
    inner.declare("b", 20)
    assert inner.snapshot() == {"a": 1, "b": 20}
    assert "a" in inner
    assert len(inner) == 2
    inner["a"] = 10
    assert root["a"] == 10
    assert inner.owner("b") is inner
