"""Validation predicates over the UI surface.

Each predicate answers "is there a problem?": `True` means the check failed.
When the run stops on validation failure (the default) a `True` ends the run
with `ok: False`.
"""

import re
from typing import Any, Dict

from .commands import NOT_HANDLED, Handled, Outcome, evaluate_args, match_command
from .environment import Surface
from .errors import CommandError
from .scope import Scope

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _input_value(surface: Surface, selector: str) -> str:
    value = surface.read(selector)
    if not isinstance(value, str):
        raise CommandError(f"Element does not expose a string value: {selector}")
    return value


def is_empty(surface: Surface, selector: str) -> bool:
    return _input_value(surface, selector).strip() == ""


def is_not_email(surface: Surface, selector: str) -> bool:
    return not EMAIL_RE.match(_input_value(surface, selector).strip())


def values_differ(surface: Surface, first: str, second: str) -> bool:
    return _input_value(surface, first) != _input_value(surface, second)


def validation_family(line: str, scope: Scope, aux: Dict[str, Any]) -> Outcome:
    call = match_command(line, "idafite_agaciro", "si_imererwe_neza", "ntibihuye")
    if call is None:
        return NOT_HANDLED
    surface = aux.get("surface")
    if surface is None:
        raise CommandError("Validation commands require a UI surface.")

    if call.name == "idafite_agaciro":
        (selector,) = evaluate_args(call, scope, 1)
        return Handled(is_empty(surface, str(selector)))
    if call.name == "si_imererwe_neza":
        (selector,) = evaluate_args(call, scope, 1)
        return Handled(is_not_email(surface, str(selector)))
    first, second = evaluate_args(call, scope, 2)
    return Handled(values_differ(surface, str(first), str(second)))
