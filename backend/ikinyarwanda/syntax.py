"""Small per-construct parsers.

Each parser takes one logical line and returns a structured value (or None
when the line is not that construct). Parsers never evaluate anything; the
executor evaluates the expression strings they return.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import ScriptSyntaxError
from .preprocess import iter_code_chars

IDENT = r"[A-Za-z_][A-Za-z0-9_]*"

_IDENT_RE = re.compile(rf"^{IDENT}$")
_LEADING_WORD_RE = re.compile(rf"^({IDENT})")
_CALL_HEAD_RE = re.compile(rf"^({IDENT})\s*\(")
_DECLARATION_RE = re.compile(rf"^(let|const)\s+({IDENT})\s*=(?!=)\s*(.+)$", re.S)
_ASSIGNMENT_RE = re.compile(rf"^({IDENT})\s*=(?!=)\s*(.+)$", re.S)
_FUNCTION_RE = re.compile(rf"^umukoro\s+({IDENT})\s*\(([^)]*)\)\s*\{{$")
_CONDITIONAL_RE = re.compile(r"^niba\s*\((.*)\)\s*\{$", re.S)
_ELSE_RE = re.compile(r"^niba_atariyo\s*\{$")
_RETURN_RE = re.compile(r"^garura(?![A-Za-z0-9_])\s*(.*)$", re.S)
_SPECIFIER_RE = re.compile(rf"^({IDENT})(?:\s+as\s+({IDENT}))?$")
_NAMED_IMPORT_RE = re.compile(r"^import\s*\{(.+)\}\s*from\s*(['\"])(.+)\2$", re.S)
_DEFAULT_IMPORT_RE = re.compile(rf"^import\s+({IDENT})\s+from\s+(['\"])(.+)\2$")
_NAMED_EXPORT_RE = re.compile(r"^\{(.+)\}$", re.S)

KEYWORDS = frozenset(
    ["umukoro", "subiramo", "niba", "niba_atariyo", "garura", "import", "export", "let", "const"]
)


def is_identifier(text: str) -> bool:
    return bool(_IDENT_RE.match(text))


def is_private_name(name: str) -> bool:
    """Underscore-prefixed attributes are never reachable from scripts."""
    return name.startswith("_")


def strip_semicolon(line: str) -> str:
    return line[:-1].strip() if line.endswith(";") else line


def statement_keyword(line: str) -> Optional[str]:
    """Return the statement keyword that starts `line`, if any."""
    match = _LEADING_WORD_RE.match(line)
    if match and match.group(1) in KEYWORDS:
        return match.group(1)
    return None


def split_top_level(text: str) -> List[str]:
    """Split on commas that are outside quotes and nested brackets."""
    args: List[str] = []
    depth = 0
    start = 0
    for index, char in iter_code_chars(text):
        if char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
        elif char == "," and depth == 0:
            args.append(text[start:index].strip())
            start = index + 1
    tail = text[start:].strip()
    if tail:
        args.append(tail)
    return args


def matching_paren(text: str, open_at: int) -> int:
    """Index of the `)` closing the `(` at `open_at`, or -1."""
    depth = 0
    for index, char in iter_code_chars(text):
        if index < open_at:
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
    return -1


@dataclass
class CommandCall:
    name: str
    args: List[str]
    line: str


def parse_command(line: str) -> Optional[CommandCall]:
    """Parse `name(arg, ...)` where the parentheses span the whole line."""
    text = strip_semicolon(line.strip())
    match = _CALL_HEAD_RE.match(text)
    if not match or not text.endswith(")"):
        return None
    open_at = match.end() - 1
    if matching_paren(text, open_at) != len(text) - 1:
        return None
    return CommandCall(name=match.group(1), args=split_top_level(text[open_at + 1 : -1]), line=text)


@dataclass
class Declaration:
    kind: str
    name: str
    expression: str

    @property
    def is_const(self) -> bool:
        return self.kind == "const"


@dataclass
class Assignment:
    name: str
    expression: str


def parse_declaration(line: str) -> Optional[Declaration]:
    match = _DECLARATION_RE.match(strip_semicolon(line.strip()))
    if not match:
        return None
    return Declaration(kind=match.group(1), name=match.group(2), expression=match.group(3).strip())


def parse_assignment(line: str) -> Optional[Assignment]:
    match = _ASSIGNMENT_RE.match(strip_semicolon(line.strip()))
    if not match:
        return None
    return Assignment(name=match.group(1), expression=match.group(2).strip())


@dataclass
class FunctionHeader:
    name: str
    params: List[str]


def parse_function_header(line: str) -> FunctionHeader:
    match = _FUNCTION_RE.match(line.strip())
    if not match:
        raise ScriptSyntaxError(
            f"Invalid function declaration: {line}",
            line_text=line,
            hint="Write: umukoro name(a, b) {",
        )
    name = match.group(1)
    raw = match.group(2).strip()
    params = [p.strip() for p in raw.split(",")] if raw else []
    for param in params:
        if not is_identifier(param):
            raise ScriptSyntaxError(f'Invalid function parameter "{param}" in {name}.', line_text=line)
    if len(set(params)) != len(params):
        raise ScriptSyntaxError(f"Duplicate parameter name in {name}.", line_text=line)
    return FunctionHeader(name=name, params=params)


@dataclass
class LoopHeader:
    """`subiramo(count) {` or `subiramo(var, start, end) {`."""

    mode: str
    count: str = ""
    variable: str = ""
    start: str = ""
    end: str = ""


def parse_loop_header(line: str) -> LoopHeader:
    text = line.strip()
    call = parse_command(text[:-1]) if text.endswith("{") else None
    if call is None or call.name != "subiramo":
        raise ScriptSyntaxError(
            f"Invalid loop declaration: {line}",
            line_text=line,
            hint="Write: subiramo(n) { or subiramo(i, start, end) {",
        )
    if len(call.args) == 1:
        return LoopHeader(mode="count", count=call.args[0])
    if len(call.args) == 3:
        variable = call.args[0]
        if not is_identifier(variable):
            raise ScriptSyntaxError(f"Invalid loop variable: {variable}", line_text=line)
        return LoopHeader(mode="range", variable=variable, start=call.args[1], end=call.args[2])
    raise ScriptSyntaxError(f"subiramo expects 1 or 3 arguments: {line}", line_text=line)


def parse_conditional_header(line: str) -> str:
    """Return the condition expression of `niba(cond) {`."""
    match = _CONDITIONAL_RE.match(line.strip())
    if not match or not match.group(1).strip():
        raise ScriptSyntaxError(
            f"Invalid conditional declaration: {line}",
            line_text=line,
            hint="Write: niba(condition) {",
        )
    return match.group(1).strip()


def is_else_header(text: str) -> bool:
    return bool(_ELSE_RE.match(text.strip()))


def parse_return(line: str) -> str:
    """Return the (possibly empty) expression of a `garura` statement."""
    match = _RETURN_RE.match(strip_semicolon(line.strip()))
    if not match:
        raise ScriptSyntaxError(f"Invalid return syntax: {line}", line_text=line)
    return (match.group(1) or "").strip()


def parse_specifiers(text: str, what: str) -> List[Tuple[str, str]]:
    """Parse `a, b as c` into [(a, a), (b, c)]."""
    specifiers = []
    for token in (t.strip() for t in text.split(",")):
        if not token:
            continue
        match = _SPECIFIER_RE.match(token)
        if not match:
            raise ScriptSyntaxError(f"Invalid {what} specifier: {token}")
        specifiers.append((match.group(1), match.group(2) or match.group(1)))
    if not specifiers:
        raise ScriptSyntaxError(f"Empty {what} list")
    return specifiers


@dataclass
class ImportStatement:
    dependency: str
    default_name: Optional[str] = None
    members: List[Tuple[str, str]] = field(default_factory=list)


def parse_import(line: str) -> ImportStatement:
    text = strip_semicolon(line.strip())
    match = _NAMED_IMPORT_RE.match(text)
    if match:
        return ImportStatement(dependency=match.group(3), members=parse_specifiers(match.group(1), "import"))
    match = _DEFAULT_IMPORT_RE.match(text)
    if match:
        return ImportStatement(dependency=match.group(3), default_name=match.group(1))
    raise ScriptSyntaxError(
        f"Invalid import syntax: {line}",
        line_text=line,
        hint="Write: import name from 'dep' or import { a, b as c } from 'dep'",
    )


@dataclass
class ExportStatement:
    """Exactly one of the fields is set."""

    declaration: Optional[Declaration] = None
    assignment: Optional[Assignment] = None
    names: List[Tuple[str, str]] = field(default_factory=list)


def parse_export(line: str) -> ExportStatement:
    text = strip_semicolon(line.strip())
    body = text[len("export"):].strip()
    declaration = parse_declaration(body)
    if declaration:
        return ExportStatement(declaration=declaration)
    assignment = parse_assignment(body)
    if assignment:
        return ExportStatement(assignment=assignment)
    match = _NAMED_EXPORT_RE.match(body)
    if match:
        return ExportStatement(names=parse_specifiers(match.group(1), "export"))
    if is_identifier(body):
        return ExportStatement(names=[(body, body)])
    raise ScriptSyntaxError(f"Invalid export syntax: {line}", line_text=line)
