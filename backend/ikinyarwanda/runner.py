"""Reusable run configuration.

A `Runner` holds a set of base options (variables, dependencies, custom
commands, hooks, surface ...) and applies them to every script it runs.
Per-call options are merged on top: scalars replace the base value while
`variables`, `dependencies` and `commands` are merged key by key.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .interpreter import Interpreter

logger = logging.getLogger(__name__)

MERGED_OPTIONS = ("variables", "dependencies", "commands")


def merge_options(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if key in MERGED_OPTIONS and value is not None:
            merged[key] = {**(base.get(key) or {}), **value}
        else:
            merged[key] = value
    return merged


class Runner:
    def __init__(self, interpreter: Optional[Interpreter] = None, **base_options: Any):
        self.interpreter = interpreter or Interpreter()
        self.options = dict(base_options)

    def with_options(self, **options: Any) -> "Runner":
        """Return a new Runner sharing the interpreter, with merged options."""
        return Runner(self.interpreter, **merge_options(self.options, options))

    async def execute(self, code: str, **options: Any) -> Dict[str, Any]:
        return await self.interpreter.execute(code, **merge_options(self.options, options))

    def run(self, code: str, **options: Any) -> Dict[str, Any]:
        return asyncio.run(self.execute(code, **options))

    def run_file(self, path: Union[str, Path], **options: Any) -> Dict[str, Any]:
        source = Path(path).read_text(encoding="utf-8")
        logger.debug("running %s", path)
        return self.run(source, **options)

    async def execute_many(self, sources: Iterable[str], **options: Any) -> List[Dict[str, Any]]:
        """Run `sources` in order; stop after the first validation failure.

        With `stop_on_validation_fail=False` every source runs and failures
        never occur, so the list always has one result per source.
        """
        results = []
        for code in sources:
            result = await self.execute(code, **options)
            results.append(result)
            if not result["ok"]:
                logger.debug("stopping after validation failure: %s", result.get("failed_line"))
                break
        return results

    def run_many(self, sources: Iterable[str], **options: Any) -> List[Dict[str, Any]]:
        return asyncio.run(self.execute_many(sources, **options))
