"""Lexical scope frames.

A `Scope` owns its bindings and the set of names declared const in it, and
points at an optional parent. Lookups walk outward; assignment rewrites the
value in the frame that owns the name. The mapping interface covers the whole
visible chain so a `Scope` can be handed to command handlers as a plain
read/write view of the variables in effect.
"""

from collections.abc import MutableMapping
from typing import Any, Dict, Iterator, Optional, Set

from .errors import BindingError

MISSING = object()


class Scope(MutableMapping):
    def __init__(self, bindings: Optional[Dict[str, Any]] = None, parent: Optional["Scope"] = None):
        self.bindings: Dict[str, Any] = dict(bindings or {})
        self.consts: Set[str] = set()
        self.parent = parent

    def child(self) -> "Scope":
        return Scope(parent=self)

    def owner(self, name: str) -> Optional["Scope"]:
        """Return the nearest frame that binds `name`, or None."""
        frame: Optional[Scope] = self
        while frame is not None:
            if name in frame.bindings:
                return frame
            frame = frame.parent
        return None

    def has_in_chain(self, name: str) -> bool:
        return self.owner(name) is not None

    def resolve(self, name: str, default: Any = MISSING) -> Any:
        frame = self.owner(name)
        if frame is not None:
            return frame.bindings[name]
        if default is MISSING:
            raise KeyError(name)
        return default

    def declare(self, name: str, value: Any, const: bool = False) -> None:
        """Bind `name` in this frame; redeclaring in the same frame fails."""
        if name in self.bindings:
            raise BindingError(f"Variable already declared in this scope: {name}")
        self.bindings[name] = value
        if const:
            self.consts.add(name)

    def assign(self, name: str, value: Any) -> None:
        """Rewrite `name` where it lives, or bind it here if it is unknown."""
        frame = self.owner(name)
        if frame is None:
            self.bindings[name] = value
            return
        if name in frame.consts:
            raise BindingError(f"Cannot reassign const variable: {name}")
        frame.bindings[name] = value

    def is_const(self, name: str) -> bool:
        frame = self.owner(name)
        return frame is not None and name in frame.consts

    def own_items(self) -> Dict[str, Any]:
        return dict(self.bindings)

    def snapshot(self) -> Dict[str, Any]:
        """Flatten the visible chain into a dict; inner frames win."""
        frames = []
        frame: Optional[Scope] = self
        while frame is not None:
            frames.append(frame)
            frame = frame.parent
        out: Dict[str, Any] = {}
        for frame in reversed(frames):
            out.update(frame.bindings)
        return out

    # MutableMapping over the visible chain
    def __getitem__(self, name: str) -> Any:
        return self.resolve(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.assign(name, value)

    def __delitem__(self, name: str) -> None:
        if name not in self.bindings:
            raise KeyError(name)
        del self.bindings[name]
        self.consts.discard(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has_in_chain(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self.snapshot())

    def __repr__(self) -> str:
        return f"Scope({self.bindings!r}, parent={'yes' if self.parent else 'no'})"
