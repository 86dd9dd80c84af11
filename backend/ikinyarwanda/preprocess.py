"""Source preprocessing and curly-brace block extraction.

`preprocess_code` turns raw source text into the list of logical lines the
executor walks. `collect_block` extracts the body of a `{ ... }` construct
from that list. Both are quote-aware: braces and `//` inside single- or
double-quoted strings are ignored.
"""

from dataclasses import dataclass
from typing import Iterator, List, Tuple

from .errors import ScriptSyntaxError


def iter_code_chars(text: str) -> Iterator[Tuple[int, str]]:
    """Yield (index, char) for every character outside a quoted span.

    Quote characters toggle a span only when not preceded by a backslash and
    are never yielded themselves.
    """
    in_single = False
    in_double = False
    for index, char in enumerate(text):
        previous = text[index - 1] if index > 0 else ""
        if not in_double and char == "'" and previous != "\\":
            in_single = not in_single
            continue
        if not in_single and char == '"' and previous != "\\":
            in_double = not in_double
            continue
        if in_single or in_double:
            continue
        yield index, char


def strip_inline_comment(line: str) -> str:
    for index, char in iter_code_chars(line):
        if char == "/" and line[index + 1 : index + 2] == "/":
            return line[:index]
    return line


def preprocess_code(code: str) -> List[str]:
    """Split source text into trimmed, comment-free, non-empty logical lines."""
    normalized = code.replace("\r\n", "\n").replace("\r", "\n")
    lines = (strip_inline_comment(raw).strip() for raw in normalized.split("\n"))
    return [line for line in lines if line]


def brace_delta(text: str) -> int:
    delta = 0
    for _, char in iter_code_chars(text):
        if char == "{":
            delta += 1
        elif char == "}":
            delta -= 1
    return delta


@dataclass
class BlockSpan:
    """Result of `collect_block`.

    Attributes:
        body: lines strictly between the header and the matching brace
        end_index: index of the line holding the matching closing brace
        trailing: text following that brace on the same line (stripped)
        close_column: position of that brace within its line
    """

    body: List[str]
    end_index: int
    trailing: str = ""
    close_column: int = 0


def collect_block(lines: List[str], start: int, column: int = 0) -> BlockSpan:
    """Extract the block opened on `lines[start]`.

    `column` lets a caller start counting part-way through the header line,
    which is how `} niba_atariyo {` is handled: the else header begins after
    the if-block's closing brace.
    """
    header = lines[start][column:]
    depth = brace_delta(header)
    if "{" not in header or depth <= 0:
        raise ScriptSyntaxError(
            f"Expected block opening at line: {lines[start]}",
            line_text=lines[start],
            hint="Block headers must end with '{'.",
        )

    body: List[str] = []
    for index in range(start + 1, len(lines)):
        line = lines[index]
        close_at = None
        for pos, char in iter_code_chars(line):
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    close_at = pos
                    break
        if close_at is None:
            body.append(line)
            continue
        leading = line[:close_at].strip()
        if leading:
            body.append(leading)
        return BlockSpan(
            body=body,
            end_index=index,
            trailing=line[close_at + 1 :].strip(),
            close_column=close_at,
        )

    raise ScriptSyntaxError(
        f"Unclosed block near line: {lines[start]}",
        line_text=lines[start],
        hint="Add a matching '}' for this block.",
    )
