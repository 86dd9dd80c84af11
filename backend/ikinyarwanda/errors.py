"""Run-fault exceptions raised by the Ikinyarwanda interpreter.

Every fault that aborts a run derives from `IkinError`. The subclasses only
differ by their `code`, which the HTTP service reports verbatim so clients can
branch on a stable string instead of parsing messages.

Validation failures are deliberately *not* modelled here: they are an outcome
of a run (`ok: False`), not a fault.
"""

from typing import Any, Dict, Optional


class IkinError(Exception):
    """Base class for every run fault.

    Attributes:
        code: stable machine-readable error category
        line_text: the logical line being executed when the fault occurred
        hint: optional short suggestion for fixing the script
    """

    code = "RUNTIME_ERROR"

    def __init__(self, message: str, *, line_text: Optional[str] = None, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.line_text = line_text
        self.hint = hint

    def to_dict(self) -> Dict[str, Any]:
        err: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.line_text is not None:
            err["context"] = {"line_text": self.line_text}
        if self.hint:
            err["hint"] = self.hint
        return err


class ScriptSyntaxError(IkinError):
    """Malformed statement, header, block or import/export form."""

    code = "SYNTAX_ERROR"


class EvalError(IkinError):
    """Raised when an expression cannot be evaluated."""

    code = "RUNTIME_ERROR"


class BindingError(EvalError):
    """Redeclaration in the same scope or assignment to a const."""

    code = "BINDING_ERROR"


class OperandTypeError(EvalError):
    """An operator received an operand of the wrong type."""

    code = "TYPE_ERROR"


class CommandError(EvalError):
    """Unknown command, bad arity, or a missing dependency/member/element."""

    code = "COMMAND_ERROR"
