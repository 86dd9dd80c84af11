"""FastAPI application entrypoints for the Ikinyarwanda interpreter.

Each `/run` request constructs a fresh `Interpreter` so no state is shared
between requests. Client-supplied tunables are clamped by `_cap_settings`
before they reach the interpreter, and every fault is turned into a stable
JSON payload (`errors` set, HTTP 200) instead of a server error.
"""

import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI
from pydantic import BaseModel

from ..ikinyarwanda.environment import Surface
from ..ikinyarwanda.errors import IkinError
from ..ikinyarwanda.interpreter import Interpreter

logger = logging.getLogger(__name__)

app = FastAPI(title="Ikinyarwanda API", version="0.1")

SCRIPT_SUFFIX = ".ikw"


def _cap_settings(settings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Clamp per-run tunables to the server's defaults.

    A fresh `Interpreter()` supplies the ceilings; clients may ask for less
    but never more. Returns a dict of attribute values for the interpreter.
    """
    defaults = Interpreter()
    safe = {
        "max_call_depth": defaults.max_call_depth,
        "network_timeout_s": defaults.network_timeout_s,
    }
    if not settings:
        return safe
    caps = {}
    caps["max_call_depth"] = max(
        1, min(int(settings.get("max_call_depth", safe["max_call_depth"])), safe["max_call_depth"])
    )
    caps["network_timeout_s"] = max(
        0.1, min(float(settings.get("network_timeout_s", safe["network_timeout_s"])), safe["network_timeout_s"])
    )
    return caps


def script_root() -> Path:
    return Path(os.environ.get("IKIN_SCRIPT_ROOT", ".")).resolve()


def resolve_script(name: str) -> Path:
    """Map a client-supplied file name to a `.ikw` file under the script root."""
    root = script_root()
    path = (root / name).resolve()
    if path.suffix != SCRIPT_SUFFIX:
        raise ValueError(f"Script files must end in {SCRIPT_SUFFIX}: {name}")
    if root != path and root not in path.parents:
        raise ValueError(f"Script path escapes the script root: {name}")
    if not path.is_file():
        raise ValueError(f"Script not found: {name}")
    return path


def to_jsonable(value: Any) -> Any:
    """Convert run results to JSON-safe data; unknown objects become strings."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    return repr(value)


class RunRequest(BaseModel):
    """Pydantic model for the `/run` request body.

    Fields:
        code: script source text; either this or `file` is required.
        file: name of a `.ikw` file under `IKIN_SCRIPT_ROOT`.
        variables: initial variables for the run.
        elements: optional headless UI surface contents (selector -> value).
        settings: optional runtime tunables; capped server-side.
        stop_on_validation_fail: end the run at the first failed validation.
    """

    code: Optional[str] = None
    file: Optional[str] = None
    variables: Optional[Dict[str, Any]] = None
    elements: Optional[Dict[str, Any]] = None
    settings: Optional[Dict[str, Any]] = None
    stop_on_validation_fail: bool = True


def _error_payload(start: float, error: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "ok": False,
        "variables": {},
        "exports": {},
        "results": [],
        "duration_ms": int((time.time() - start) * 1000),
        "errors": error,
    }


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/run")
async def run_code(req: RunRequest):
    """Run a script and return its result record.

    The response always carries `errors` (None on success) and
    `duration_ms`. Validation failures are not errors: they come back with
    `ok: False` and `failed_line`.
    """
    start = time.time()
    if req.code is None and not req.file:
        return _error_payload(start, {"code": "BAD_REQUEST", "message": "Provide either code or file."})

    try:
        code = req.code if req.code is not None else resolve_script(req.file).read_text(encoding="utf-8")
    except (OSError, ValueError) as e:
        return _error_payload(start, {"code": "FILE_ERROR", "message": str(e)})

    surface = Surface(req.elements) if req.elements is not None else None
    try:
        capped = _cap_settings(req.settings or {})
        it = Interpreter()
        it.max_call_depth = capped["max_call_depth"]
        it.network_timeout_s = capped["network_timeout_s"]
        result = await it.execute(
            code,
            variables=req.variables or {},
            stop_on_validation_fail=req.stop_on_validation_fail,
            surface=surface,
        )
    except IkinError as e:
        logger.warning("run failed: %s", e.message)
        return _error_payload(start, e.to_dict())
    except Exception as e:
        logger.warning("run crashed: %s", e)
        return _error_payload(start, {"code": "SERVER_ERROR", "message": str(e)})

    payload = to_jsonable(result)
    if surface is not None:
        payload["surface"] = {
            "elements": to_jsonable(surface.elements),
            "styles": to_jsonable(surface.styles),
            "alerts": list(surface.alerts),
        }
    payload["duration_ms"] = int((time.time() - start) * 1000)
    payload["errors"] = None
    return payload
