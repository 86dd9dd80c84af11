"""`ikin` command line.

Usage:
  ikin                      run ./index.ikw
  ikin run path/to/app.ikw  run a script file (`run` may be omitted)
  ikin serve [port]         serve the HTTP API (default $PORT or 3000)

Exit codes: 0 success, 2 validation failure, 1 fault or bad arguments.
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .app.main import to_jsonable
from .ikinyarwanda.errors import IkinError
from .ikinyarwanda.runner import Runner

logger = logging.getLogger("ikin")

DEFAULT_SCRIPT = "index.ikw"
DEFAULT_PORT = 3000


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="ikin", description="Ikinyarwanda script runner")
    p.add_argument("command", nargs="*", help="[run] [file.ikw] | serve [port]")
    p.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    p.add_argument("--json", action="store_true", help="Print the result record as JSON")
    p.add_argument(
        "--no-stop-on-validation-fail",
        dest="stop_on_validation_fail",
        action="store_false",
        help="Keep running after a failed validation",
    )
    return p.parse_args(argv)


def serve(port: int) -> int:
    import uvicorn

    uvicorn.run("backend.app.main:app", host="0.0.0.0", port=port)
    return 0


def run_script(path: str, ns: argparse.Namespace) -> int:
    if not path.endswith(".ikw"):
        sys.stderr.write(f"Expected a .ikw file, got: {path}\n")
        return 1
    if not Path(path).is_file():
        sys.stderr.write(f"Script not found: {path}\n")
        return 1

    runner = Runner(stop_on_validation_fail=ns.stop_on_validation_fail)
    try:
        result = runner.run_file(path)
    except IkinError as e:
        sys.stderr.write(f"{e.code}: {e.message}\n")
        if e.line_text:
            sys.stderr.write(f"  at: {e.line_text}\n")
        if e.hint:
            sys.stderr.write(f"  hint: {e.hint}\n")
        return 1
    except Exception as e:
        logger.debug("script crashed", exc_info=True)
        sys.stderr.write(f"Error: {e}\n")
        return 1

    if ns.json:
        print(json.dumps(to_jsonable(result), indent=2))
    if not result["ok"]:
        sys.stderr.write(f"Validation failed at line: {result['failed_line']}\n")
        return 2
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ns = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    words = list(ns.command)
    if words and words[0] == "serve":
        if len(words) > 2:
            sys.stderr.write("usage: ikin serve [port]\n")
            return 1
        raw_port = words[1] if len(words) == 2 else os.environ.get("PORT", str(DEFAULT_PORT))
        try:
            port = int(raw_port)
        except ValueError:
            sys.stderr.write(f"Invalid port: {raw_port}\n")
            return 1
        return serve(port)

    if words and words[0] == "run":
        words = words[1:]
    if len(words) > 1:
        sys.stderr.write("usage: ikin [run] [file.ikw]\n")
        return 1
    return run_script(words[0] if words else DEFAULT_SCRIPT, ns)


if __name__ == "__main__":
    sys.exit(main())
