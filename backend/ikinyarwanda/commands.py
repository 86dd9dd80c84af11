"""Command dispatch protocol shared by the executor and the command families.

A command family is a callable `(line, scope, aux) -> Handled | NOT_HANDLED`
(or an awaitable of either). `aux` carries run-level collaborators such as
the UI surface. Custom command handlers receive a `CommandContext`.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from .errors import CommandError
from .expressions import evaluate
from .scope import Scope
from .syntax import CommandCall, is_private_name, parse_command


@dataclass(frozen=True)
class Handled:
    value: Any = None


class NotHandled:
    """Marker type; compare against the `NOT_HANDLED` instance."""

    def __repr__(self) -> str:
        return "NOT_HANDLED"


NOT_HANDLED = NotHandled()

Outcome = Union[Handled, NotHandled]
CommandFamily = Callable[[str, Scope, Dict[str, Any]], Union[Outcome, Awaitable[Outcome]]]


@dataclass
class CommandContext:
    """What a custom command handler receives.

    Attributes:
        args: evaluated argument values
        variables: read/write view of the scope the command runs in
        dependencies: the run's dependency table
        line: literal statement text
        command: the command name
        run: `await ctx.run(code, **overrides)` runs a nested script seeded
            with the current variables, dependencies, commands and settings
    """

    args: List[Any]
    variables: Scope
    dependencies: Dict[str, Any]
    line: str
    command: str
    run: Callable[..., Awaitable[Dict[str, Any]]]


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def match_command(line: str, *names: str) -> Optional[CommandCall]:
    """Parse `line` as a call to one of `names`; None otherwise."""
    call = parse_command(line)
    if call is None or call.name not in names:
        return None
    return call


def evaluate_args(call: CommandCall, scope: Scope, count: Optional[int] = None) -> List[Any]:
    """Evaluate plain (non-call) argument tokens for a family command."""
    if count is not None and len(call.args) != count:
        raise CommandError(f"{call.name} expects {count} argument(s), received {len(call.args)}.")
    return [evaluate(token, scope) for token in call.args]


# --- dependency targets ------------------------------------------------------
def resolve_dependency_target(raw: Any, dependencies: Mapping[str, Any]) -> Any:
    """A string naming a dependency stands for that dependency."""
    if isinstance(raw, str) and raw in dependencies:
        return dependencies[raw]
    return raw


def find_method(target: Any, name: str) -> Optional[Callable[..., Any]]:
    """Return the callable member `name` of `target`, or None.

    Mappings expose members by key, every other object by attribute.
    Underscore-prefixed attributes are refused.
    """
    if target is None:
        return None
    if isinstance(target, Mapping):
        member = target.get(name)
    elif is_private_name(name):
        raise CommandError(f"Access to private attribute is not allowed: {name}")
    else:
        member = getattr(target, name, None)
    return member if callable(member) else None


def get_member(target: Any, name: str) -> Any:
    """Member lookup used by named imports; raises KeyError when absent."""
    if isinstance(target, Mapping):
        return target[name]
    if target is not None and not is_private_name(name) and hasattr(target, name):
        return getattr(target, name)
    raise KeyError(name)
