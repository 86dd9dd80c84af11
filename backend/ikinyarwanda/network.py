"""Outbound network commands.

`zana`/`zana_json` issue GET requests, `subiza`/`subiza_json` POST a payload,
and `fata` snapshots a form from the UI surface so it can be posted. Requests
run through `requests` in a worker thread so the interpreter's event loop is
not blocked while waiting on the network.
"""

import asyncio
import json
from typing import Any, Dict

import requests

from .commands import NOT_HANDLED, Handled, Outcome, evaluate_args, match_command
from .errors import CommandError
from .scope import Scope

DEFAULT_TIMEOUT_S = 10.0


class FormData(dict):
    """Form fields captured by `fata`; posted form-encoded instead of as JSON."""


def parse_response_body(response: requests.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        return response.json()
    text = response.text
    try:
        return json.loads(text)
    except ValueError:
        return text


def _post(url: str, payload: Any, timeout: float) -> requests.Response:
    if isinstance(payload, FormData):
        return requests.post(url, data=dict(payload), timeout=timeout)
    return requests.post(url, json=payload, timeout=timeout)


def _get(url: str, timeout: float) -> requests.Response:
    return requests.get(url, timeout=timeout)


async def network_family(line: str, scope: Scope, aux: Dict[str, Any]) -> Outcome:
    call = match_command(line, "fata", "zana", "zana_json", "subiza", "subiza_json")
    if call is None:
        return NOT_HANDLED
    timeout = float(aux.get("network_timeout_s", DEFAULT_TIMEOUT_S))

    if call.name == "fata":
        (selector,) = evaluate_args(call, scope, 1)
        surface = aux.get("surface")
        if surface is None:
            raise CommandError("fata(...) requires a UI surface.")
        form = surface.read(str(selector))
        if not isinstance(form, dict):
            raise CommandError(f"Form not found: {selector}")
        return Handled(FormData(form))

    if call.name in ("zana", "zana_json"):
        (url,) = evaluate_args(call, scope, 1)
        response = await asyncio.to_thread(_get, str(url), timeout)
        if call.name == "zana":
            return Handled(response)
        return Handled(parse_response_body(response))

    url, payload = evaluate_args(call, scope, 2)
    response = await asyncio.to_thread(_post, str(url), payload, timeout)
    if call.name == "subiza":
        return Handled(response)
    return Handled(parse_response_body(response))
