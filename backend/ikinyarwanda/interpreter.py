"""Ikinyarwanda interpreter.

This module implements the statement executor for the Ikinyarwanda scripting
language: a small line-oriented imperative language with functions
(`umukoro`), loops (`subiramo`), conditionals (`niba` / `niba_atariyo`),
returns (`garura`), `let`/`const` bindings and JS-style import/export.

Execution model:

- source text is preprocessed into logical lines (see `preprocess`)
- the executor walks the lines with one cursor per block level; block
  constructs pull their body out with `collect_block` and skip past it
- every statement handler returns `(next_index, signal)`; a non-None signal is
  a `Return` that each caller hands straight back up to the function call
  that consumes it
- lines that are neither declarations nor control flow are commands, offered
  in a fixed order to the environment, validation and network families and
  then to `injiza`, `koresha`, custom commands and user functions

A run either returns a result record or raises. The only non-exceptional
early exit is a validation failure, reported as `ok: False`.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .commands import (
    CommandContext,
    CommandFamily,
    Handled,
    find_method,
    get_member,
    maybe_await,
    resolve_dependency_target,
)
from .environment import Surface, environment_family
from .errors import CommandError, EvalError, IkinError, ScriptSyntaxError
from .expressions import evaluate, is_number, truthy
from .network import DEFAULT_TIMEOUT_S, network_family
from .preprocess import BlockSpan, collect_block, preprocess_code
from .scope import Scope
from .syntax import (
    CommandCall,
    LoopHeader,
    is_else_header,
    parse_assignment,
    parse_command,
    parse_conditional_header,
    parse_declaration,
    parse_export,
    parse_function_header,
    parse_import,
    parse_loop_header,
    parse_return,
    statement_keyword,
    strip_semicolon,
)
from .validation import validation_family

logger = logging.getLogger(__name__)


@dataclass
class Return:
    """Control signal: unwind to the nearest function call with `value`."""

    value: Any = None


Signal = Optional[Return]
StepResult = Tuple[int, Signal]


@dataclass
class FunctionDef:
    name: str
    params: List[str]
    body: List[str]
    scope: Scope


@dataclass
class RunContext:
    """Everything owned by one run. Never shared between runs."""

    dependencies: Dict[str, Any]
    commands: Dict[str, Callable[..., Any]]
    stop_on_validation_fail: bool = True
    surface: Optional[Surface] = None
    on_command_start: Optional[Callable[[Dict[str, Any]], Any]] = None
    on_command_end: Optional[Callable[[Dict[str, Any]], Any]] = None
    on_error: Optional[Callable[[BaseException], Any]] = None
    functions: Dict[str, FunctionDef] = field(default_factory=dict)
    export_bindings: Dict[str, Tuple[Scope, str]] = field(default_factory=dict)
    results: List[Any] = field(default_factory=list)
    call_depth: int = 0


class ValidationFailure(Exception):
    """Internal: a validation command reported a problem; ends the run."""

    def __init__(self, line: str):
        super().__init__(line)
        self.line = line


class Interpreter:
    """Top-level Ikinyarwanda interpreter.

    One instance can serve any number of runs; all per-run state lives in a
    `RunContext` created by `execute`.

    Tunable attributes (defaults are set in __init__):
    - max_call_depth: nesting limit for user-function calls
    - network_timeout_s: per-request timeout for network commands
    - environment_family, validation_family, network_family: the command
      families, tried in that order before generic command dispatch
    """

    def __init__(self):
        self.max_call_depth = 64
        self.network_timeout_s = DEFAULT_TIMEOUT_S
        self.environment_family: CommandFamily = environment_family
        self.validation_family: CommandFamily = validation_family
        self.network_family: CommandFamily = network_family

    # --- entry points --------------------------------------------------
    def run(self, code: str, **options: Any) -> Dict[str, Any]:
        """Synchronous wrapper around `execute`; see it for the options."""
        return asyncio.run(self.execute(code, **options))

    async def execute(
        self,
        code: str,
        *,
        variables: Optional[Dict[str, Any]] = None,
        dependencies: Optional[Dict[str, Any]] = None,
        commands: Optional[Dict[str, Callable[..., Any]]] = None,
        stop_on_validation_fail: bool = True,
        inject_dependencies_as_variables: bool = False,
        on_command_start: Optional[Callable[[Dict[str, Any]], Any]] = None,
        on_command_end: Optional[Callable[[Dict[str, Any]], Any]] = None,
        on_error: Optional[Callable[[BaseException], Any]] = None,
        surface: Optional[Surface] = None,
    ) -> Dict[str, Any]:
        """Run `code` and return its result record.

        Returns:
            {"ok": bool, "failed_line": str (only when ok is False),
             "variables": {...}, "exports": {...}, "results": [...]}

        Raises:
            IkinError: for any script fault. Exceptions raised by hooks, custom
            commands or network calls propagate unchanged. `on_error`, when
            given, sees the exception first but cannot suppress it.
        """
        root = Scope(variables or {})
        deps = dict(dependencies or {})
        if inject_dependencies_as_variables:
            for key, value in deps.items():
                if key not in root.bindings:
                    root.bindings[key] = value

        ctx = RunContext(
            dependencies=deps,
            commands=dict(commands or {}),
            stop_on_validation_fail=stop_on_validation_fail,
            surface=surface,
            on_command_start=on_command_start,
            on_command_end=on_command_end,
            on_error=on_error,
        )

        try:
            lines = preprocess_code(code)
            logger.debug("run started: %d logical lines", len(lines))
            await self._execute_lines(lines, root, ctx)
        except ValidationFailure as failure:
            logger.debug("run stopped by validation at: %s", failure.line)
            return self._build_result(ctx, root, failed_line=failure.line)
        except Exception as exc:
            if ctx.on_error is not None:
                await maybe_await(ctx.on_error(exc))
            raise
        logger.debug("run finished: %d result(s)", len(ctx.results))
        return self._build_result(ctx, root)

    def _build_result(self, ctx: RunContext, root: Scope, failed_line: Optional[str] = None) -> Dict[str, Any]:
        result: Dict[str, Any] = {"ok": failed_line is None}
        if failed_line is not None:
            result["failed_line"] = failed_line
        result["variables"] = root.own_items()
        # export bindings resolve now so later mutations are reflected
        result["exports"] = {
            name: scope.resolve(variable, None) for name, (scope, variable) in ctx.export_bindings.items()
        }
        result["results"] = list(ctx.results)
        return result

    # --- statement loop ------------------------------------------------
    async def _execute_lines(self, lines: List[str], scope: Scope, ctx: RunContext) -> Signal:
        i = 0
        while i < len(lines):
            line = lines[i].strip()
            if line in ("", "{", "}"):
                i += 1
                continue
            try:
                i, signal = await self._dispatch_statement(lines, i, line, scope, ctx)
            except IkinError as e:
                if e.line_text is None:
                    e.line_text = line
                raise
            except RecursionError:
                raise EvalError("Expression too deeply nested", line_text=line) from None
            if signal is not None:
                return signal
        return None

    async def _dispatch_statement(self, lines: List[str], i: int, line: str, scope: Scope, ctx: RunContext) -> StepResult:
        keyword = statement_keyword(line)
        dispatch_map = {
            "umukoro": self._dispatch_func_def,
            "subiramo": self._dispatch_loop,
            "niba": self._dispatch_if,
            "niba_atariyo": self._dispatch_stray_else,
            "garura": self._dispatch_return,
            "import": self._dispatch_import,
            "export": self._dispatch_export,
            "let": self._dispatch_declaration,
            "const": self._dispatch_declaration,
        }
        handler = dispatch_map.get(keyword or "", self._dispatch_assignment_or_command)
        return await handler(lines, i, line, scope, ctx)

    def _reject_trailing(self, lines: List[str], span: BlockSpan) -> None:
        if strip_semicolon(span.trailing):
            raise ScriptSyntaxError(
                f"Unexpected text after closing brace: {span.trailing}",
                line_text=lines[span.end_index],
            )

    async def _dispatch_func_def(self, lines, i, line, scope, ctx) -> StepResult:
        header = parse_function_header(line)
        span = collect_block(lines, i)
        self._reject_trailing(lines, span)
        ctx.functions[header.name] = FunctionDef(header.name, header.params, span.body, scope)
        logger.debug("function defined: %s(%s)", header.name, ", ".join(header.params))
        return span.end_index + 1, None

    async def _dispatch_loop(self, lines, i, line, scope, ctx) -> StepResult:
        header = parse_loop_header(line)
        span = collect_block(lines, i)
        self._reject_trailing(lines, span)
        signal = await self._run_loop(header, span.body, scope, ctx)
        return span.end_index + 1, signal

    async def _dispatch_if(self, lines, i, line, scope, ctx) -> StepResult:
        condition = parse_conditional_header(line)
        span = collect_block(lines, i)
        else_body, end_index = self._collect_else(lines, span)
        value = await self._evaluate_token(condition, scope, ctx)
        branch = span.body if truthy(value) else else_body
        signal = await self._execute_lines(branch, scope.child(), ctx)
        return end_index + 1, signal

    def _collect_else(self, lines: List[str], span: BlockSpan) -> Tuple[List[str], int]:
        """Find an else block right after an if block.

        Returns (else_body, index_of_last_line_consumed).
        """
        trailing = strip_semicolon(span.trailing)
        if trailing:
            if not is_else_header(trailing):
                raise ScriptSyntaxError(
                    f"Unexpected text after closing brace: {span.trailing}",
                    line_text=lines[span.end_index],
                )
            else_span = collect_block(lines, span.end_index, span.close_column + 1)
        else:
            nxt = span.end_index + 1
            if nxt >= len(lines) or statement_keyword(lines[nxt]) != "niba_atariyo":
                return [], span.end_index
            if not is_else_header(lines[nxt]):
                raise ScriptSyntaxError(
                    f"Invalid else block: {lines[nxt]}",
                    line_text=lines[nxt],
                    hint="Write: niba_atariyo {",
                )
            else_span = collect_block(lines, nxt)
        self._reject_trailing(lines, else_span)
        return else_span.body, else_span.end_index

    async def _dispatch_stray_else(self, lines, i, line, scope, ctx) -> StepResult:
        raise ScriptSyntaxError(
            "'niba_atariyo' without matching 'niba'",
            line_text=line,
            hint="Place 'niba_atariyo {' right after the closing brace of a niba block.",
        )

    async def _dispatch_return(self, lines, i, line, scope, ctx) -> StepResult:
        expression = parse_return(line)
        value = None if expression == "" else await self._evaluate_token(expression, scope, ctx)
        return i + 1, Return(value)

    async def _dispatch_import(self, lines, i, line, scope, ctx) -> StepResult:
        statement = parse_import(line)
        name = statement.dependency
        if name not in ctx.dependencies:
            raise CommandError(f"Dependency not found for import: {name}")
        dependency = ctx.dependencies[name]
        if statement.default_name is not None:
            scope.declare(statement.default_name, dependency, const=True)
            return i + 1, None
        for member, local in statement.members:
            try:
                value = get_member(dependency, member)
            except KeyError:
                raise CommandError(f'Imported member "{member}" was not found on dependency "{name}".')
            scope.declare(local, value, const=True)
        return i + 1, None

    async def _dispatch_export(self, lines, i, line, scope, ctx) -> StepResult:
        statement = parse_export(line)
        if statement.declaration is not None:
            decl = statement.declaration
            value = await self._evaluate_token(decl.expression, scope, ctx)
            scope.declare(decl.name, value, decl.is_const)
            ctx.export_bindings[decl.name] = (scope, decl.name)
            return i + 1, None
        if statement.assignment is not None:
            assignment = statement.assignment
            value = await self._evaluate_token(assignment.expression, scope, ctx)
            scope.assign(assignment.name, value)
            ctx.export_bindings[assignment.name] = (scope, assignment.name)
            return i + 1, None
        for variable, export_name in statement.names:
            if not scope.has_in_chain(variable):
                raise CommandError(f"Cannot export unknown variable: {variable}")
            ctx.export_bindings[export_name] = (scope, variable)
        return i + 1, None

    async def _dispatch_declaration(self, lines, i, line, scope, ctx) -> StepResult:
        decl = parse_declaration(line)
        if decl is None:
            raise ScriptSyntaxError(f"Invalid declaration: {line}", line_text=line, hint="Write: let name = value")
        value = await self._evaluate_token(decl.expression, scope, ctx)
        scope.declare(decl.name, value, decl.is_const)
        return i + 1, None

    async def _dispatch_assignment_or_command(self, lines, i, line, scope, ctx) -> StepResult:
        assignment = parse_assignment(line)
        if assignment is not None:
            value = await self._evaluate_token(assignment.expression, scope, ctx)
            scope.assign(assignment.name, value)
            return i + 1, None
        value = await self._execute_command(line, scope, ctx)
        if value is not None:
            ctx.results.append(value)
        return i + 1, None

    # --- loops ---------------------------------------------------------
    async def _run_loop(self, header: LoopHeader, body: List[str], scope: Scope, ctx: RunContext) -> Signal:
        if header.mode == "count":
            count = await self._evaluate_token(header.count, scope, ctx)
            if not is_number(count) or not math.isfinite(count) or count < 0 or count != int(count):
                raise EvalError(f"Loop count must be a non-negative integer: {header.count}")
            for _ in range(int(count)):
                signal = await self._execute_lines(body, scope.child(), ctx)
                if signal is not None:
                    return signal
            return None

        start = await self._evaluate_token(header.start, scope, ctx)
        end = await self._evaluate_token(header.end, scope, ctx)
        if not (is_number(start) and is_number(end) and math.isfinite(start) and math.isfinite(end)):
            raise EvalError(f"Range loop bounds must be numeric: {header.start}, {header.end}")
        step = 1 if start <= end else -1
        value = start
        while (value <= end) if step > 0 else (value >= end):
            iteration = scope.child()
            iteration.declare(header.variable, value)
            signal = await self._execute_lines(body, iteration, ctx)
            if signal is not None:
                return signal
            value += step
        return None

    # --- evaluation and commands ---------------------------------------
    async def _evaluate_token(self, token: str, scope: Scope, ctx: RunContext) -> Any:
        """Evaluate an expression, dispatching it when it is a whole call."""
        text = token.strip()
        if text == "":
            return None
        call = parse_command(text)
        if call is not None:
            if call.name in ctx.functions:
                return await self._call_user_function(call.name, None, scope, ctx, call)
            return await self._execute_command(text, scope, ctx)
        return evaluate(text, scope)

    def _aux(self, scope: Scope, ctx: RunContext) -> Dict[str, Any]:
        async def on_event(handler: str, event: Any) -> Any:
            return await self._call_user_function(handler, [event], scope, ctx)

        return {
            "surface": ctx.surface,
            "network_timeout_s": self.network_timeout_s,
            "on_event": on_event,
        }

    async def _notify_end(self, ctx: RunContext, name: Optional[str], line: str, value: Any) -> None:
        if ctx.on_command_end is None or not name:
            return
        await maybe_await(ctx.on_command_end({"name": name, "line": line, "value": value}))

    async def _execute_command(self, line: str, scope: Scope, ctx: RunContext) -> Any:
        call = parse_command(line)
        name = call.name if call else None

        if name and ctx.on_command_start is not None:
            await maybe_await(ctx.on_command_start({"name": name, "line": line}))

        aux = self._aux(scope, ctx)
        outcome = await maybe_await(self.environment_family(line, scope, aux))
        if isinstance(outcome, Handled):
            await self._notify_end(ctx, name, line, outcome.value)
            return outcome.value

        outcome = await maybe_await(self.validation_family(line, scope, aux))
        if isinstance(outcome, Handled):
            if outcome.value and ctx.stop_on_validation_fail:
                raise ValidationFailure(line)
            await self._notify_end(ctx, name, line, outcome.value)
            return outcome.value

        outcome = await maybe_await(self.network_family(line, scope, aux))
        if isinstance(outcome, Handled):
            await self._notify_end(ctx, name, line, outcome.value)
            return outcome.value

        if call is None:
            raise ScriptSyntaxError(f"Invalid syntax: {line}", line_text=line)

        if call.name == "injiza":
            value = await self._run_injiza(call, scope, ctx)
        elif call.name in ("koresha", "hamagara"):
            value = await self._run_koresha(call, scope, ctx)
        elif call.name in ctx.commands:
            value = await self._run_custom_command(call, line, scope, ctx)
        elif call.name in ctx.functions:
            value = await self._call_user_function(call.name, None, scope, ctx, call)
        else:
            raise CommandError(f"Unknown command or function: {call.name}")

        await self._notify_end(ctx, name, line, value)
        return value

    async def _run_injiza(self, call: CommandCall, scope: Scope, ctx: RunContext) -> Any:
        if len(call.args) != 1:
            raise CommandError("injiza(serviceName) expects one argument.")
        key = str(await self._evaluate_token(call.args[0], scope, ctx))
        if key not in ctx.dependencies:
            raise CommandError(f"Dependency not found: {key}")
        return ctx.dependencies[key]

    async def _run_koresha(self, call: CommandCall, scope: Scope, ctx: RunContext) -> Any:
        if not call.args:
            raise CommandError(f"{call.name} expects at least one argument.")
        raw = await self._evaluate_token(call.args[0], scope, ctx)
        target = resolve_dependency_target(raw, ctx.dependencies)

        if len(call.args) == 1:
            if callable(target):
                return await maybe_await(target())
            return target

        second = await self._evaluate_token(call.args[1], scope, ctx)
        rest = [await self._evaluate_token(token, scope, ctx) for token in call.args[2:]]

        if isinstance(second, str):
            method = find_method(target, second)
            if method is not None:
                return await maybe_await(method(*rest))
        if callable(target):
            return await maybe_await(target(second, *rest))
        raise CommandError(
            f"{call.name} could not call dependency target. "
            f"Use {call.name}('dep', 'method', ...) or {call.name}(fn, ...)."
        )

    async def _run_custom_command(self, call: CommandCall, line: str, scope: Scope, ctx: RunContext) -> Any:
        args = [await self._evaluate_token(token, scope, ctx) for token in call.args]
        handler = ctx.commands[call.name]

        async def run_nested(
            code: str,
            *,
            variables: Optional[Dict[str, Any]] = None,
            dependencies: Optional[Dict[str, Any]] = None,
            commands: Optional[Dict[str, Callable[..., Any]]] = None,
            stop_on_validation_fail: Optional[bool] = None,
            surface: Optional[Surface] = None,
        ) -> Dict[str, Any]:
            # a nested run gets a brand-new context seeded from this one
            return await self.execute(
                code,
                variables={**scope.snapshot(), **(variables or {})},
                dependencies={**ctx.dependencies, **(dependencies or {})},
                commands={**ctx.commands, **(commands or {})},
                stop_on_validation_fail=(
                    ctx.stop_on_validation_fail if stop_on_validation_fail is None else stop_on_validation_fail
                ),
                surface=ctx.surface if surface is None else surface,
            )

        context = CommandContext(
            args=args,
            variables=scope,
            dependencies=ctx.dependencies,
            line=line,
            command=call.name,
            run=run_nested,
        )
        return await maybe_await(handler(context))

    async def _call_user_function(
        self,
        name: str,
        args: Optional[List[Any]],
        scope: Scope,
        ctx: RunContext,
        call: Optional[CommandCall] = None,
    ) -> Any:
        definition = ctx.functions.get(name)
        if definition is None:
            raise CommandError(f"Unknown function: {name}")
        if args is None:
            tokens = call.args if call is not None else []
            args = [await self._evaluate_token(token, scope, ctx) for token in tokens]
        if len(args) != len(definition.params):
            raise CommandError(
                f"Function {name} expected {len(definition.params)} argument(s), received {len(args)}."
            )
        if ctx.call_depth >= self.max_call_depth:
            raise EvalError("Call depth limit exceeded")

        # lexical scoping: the frame hangs off the defining scope, not the caller's
        frame = definition.scope.child()
        for param, value in zip(definition.params, args):
            frame.declare(param, value)
        ctx.call_depth += 1
        try:
            signal = await self._execute_lines(definition.body, frame, ctx)
        finally:
            ctx.call_depth -= 1
        return signal.value if signal is not None else None


async def execute(code: str, **options: Any) -> Dict[str, Any]:
    """Run `code` with a fresh `Interpreter`; see `Interpreter.execute`."""
    return await Interpreter().execute(code, **options)


def run(code: str, **options: Any) -> Dict[str, Any]:
    return Interpreter().run(code, **options)
