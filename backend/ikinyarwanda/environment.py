"""Environment-interaction commands and the headless UI surface.

Scripts talk to their host UI through a `Surface`: a selector-addressed store
of element values plus styles, alerts and event listeners. The server and CLI
have no real UI, so the surface is an in-memory stand-in that hosts (and
tests) populate and inspect.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .commands import NOT_HANDLED, Handled, Outcome, evaluate_args, match_command
from .errors import CommandError
from .expressions import evaluate, to_display
from .scope import Scope
from .syntax import is_identifier

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Awaitable[Any]]


class Surface:
    """In-memory UI surface.

    Args:
        elements: initial selector -> value mapping. A value may be a plain
            string (an input or text node) or a dict (a form of named fields).
    """

    def __init__(self, elements: Optional[Dict[str, Any]] = None):
        self.elements: Dict[str, Any] = dict(elements or {})
        self.styles: Dict[str, Dict[str, str]] = {}
        self.alerts: List[str] = []
        self.listeners: Dict[Tuple[str, str], List[Listener]] = {}

    def read(self, selector: str) -> Any:
        if selector not in self.elements:
            raise CommandError(f"Element not found: {selector}")
        return self.elements[selector]

    def write(self, selector: str, value: Any) -> None:
        if selector not in self.elements:
            raise CommandError(f"Element not found: {selector}")
        self.elements[selector] = value

    def set_style(self, selector: str, prop: str, value: str) -> None:
        self.read(selector)
        self.styles.setdefault(selector, {})[prop] = value

    def alert(self, message: str) -> None:
        self.alerts.append(message)

    def listen(self, selector: str, event: str, listener: Listener) -> None:
        self.read(selector)
        self.listeners.setdefault((selector, event), []).append(listener)

    async def dispatch(self, selector: str, event: str, payload: Any = None) -> List[Any]:
        """Fire `event` on `selector`; returns each listener's result."""
        results = []
        for listener in list(self.listeners.get((selector, event), [])):
            results.append(await listener(payload))
        return results


def _require_surface(aux: Dict[str, Any], command: str) -> Surface:
    surface = aux.get("surface")
    if surface is None:
        raise CommandError(f"{command} requires a UI surface; pass surface=Surface(...) to the run.")
    return surface


def _handler_name(token: str, scope: Scope) -> str:
    # a bare identifier names a function unless a variable of that name holds it
    text = token.strip()
    if is_identifier(text) and text not in scope:
        return text
    return str(evaluate(text, scope))


def environment_family(line: str, scope: Scope, aux: Dict[str, Any]) -> Outcome:
    call = match_command(
        line,
        "andika",
        "muburire",
        "shyiramo",
        "hindura_ibuju",
        "fata_agaciro",
        "shyiraho_agaciro",
        "tegeka",
    )
    if call is None:
        return NOT_HANDLED

    if call.name == "andika":
        values = evaluate_args(call, scope)
        print(" ".join(to_display(v) for v in values))
        return Handled(None)

    if call.name == "muburire":
        (value,) = evaluate_args(call, scope, 1)
        surface = aux.get("surface")
        if surface is None:
            logger.warning("alert is not available in this environment: %s", to_display(value))
        else:
            surface.alert(to_display(value))
        return Handled(None)

    surface = _require_surface(aux, call.name)

    if call.name in ("shyiramo", "shyiraho_agaciro"):
        selector, value = evaluate_args(call, scope, 2)
        surface.write(str(selector), to_display(value))
        return Handled(None)

    if call.name == "hindura_ibuju":
        selector, colour = evaluate_args(call, scope, 2)
        surface.set_style(str(selector), "color", str(colour))
        return Handled(None)

    if call.name == "fata_agaciro":
        (selector,) = evaluate_args(call, scope, 1)
        return Handled(surface.read(str(selector)))

    # tegeka(selector, event, handler)
    if len(call.args) != 3:
        raise CommandError(f"tegeka expects 3 argument(s), received {len(call.args)}.")
    selector = str(evaluate(call.args[0], scope))
    event = str(evaluate(call.args[1], scope))
    handler = _handler_name(call.args[2], scope)
    on_event = aux["on_event"]

    async def listener(payload: Any) -> Any:
        return await on_event(handler, payload)

    surface.listen(selector, event, listener)
    logger.debug("bound %s on %s to %s", event, selector, handler)
    return Handled(None)
