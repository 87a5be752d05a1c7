## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from typing import Literal
from dataclasses import dataclass, field, replace


Severity = Literal["error", "warning", "info"]


# Message templates, formatted with positional arguments by `DiagnosticBag.report`.
MESSAGES: dict[str, tuple[Severity, str]] = {
    'DX1001': ("error", "Syntax error, {0}"),
    'DX0019': ("error", "Operator '{0}' cannot be applied to operands of type '{1}' and '{2}'"),
    'DX0020': ("error", "Division by constant zero"),
    'DX0023': ("error", "Operator '{0}' cannot be applied to operand of type '{1}'"),
    'DX0029': ("error", "Cannot implicitly convert type '{0}' to '{1}'"),
    'DX0030': ("error", "Cannot convert type '{0}' to '{1}'"),
    'DX0101': ("error", "The module already contains a definition for '{0}'"),
    'DX0103': ("error", "The name '{0}' does not exist in the current context"),
    'DX0111': ("error", "Type '{0}' already defines a member called '{1}' with the same parameter types"),
    'DX0117': ("error", "'{0}' does not contain a definition for '{1}'"),
    'DX0120': ("error", "An object reference is required for the non-static member '{0}'"),
    'DX0121': ("error", "The call is ambiguous between the following methods: '{0}' and '{1}'"),
    'DX0126': ("error", "An object of a type convertible to '{0}' is required"),
    'DX0127': ("error", "Since '{0}' returns void, a return keyword must not be followed by an object expression"),
    'DX0128': ("error", "A local variable named '{0}' is already defined in this scope"),
    'DX0136': ("error", "A local or parameter named '{0}' cannot be declared in this scope because that name is used in an enclosing scope"),
    'DX0131': ("error", "The left-hand side of an assignment must be a variable, property or field"),
    'DX0139': ("error", "No enclosing loop out of which to break or continue"),
    'DX0149': ("error", "Method name expected"),
    'DX0161': ("error", "'{0}': not all code paths return a value"),
    'DX0162': ("warning", "Unreachable code detected"),
    'DX0168': ("warning", "The variable '{0}' is declared but never used"),
    'DX0173': ("error", "Type of conditional expression cannot be determined because there is no implicit conversion between '{0}' and '{1}'"),
    'DX0176': ("error", "Member '{0}' cannot be accessed with an instance reference; qualify it with a type name instead"),
    'DX0191': ("error", "Property or field '{0}' cannot be assigned to; it is read only"),
    'DX0200': ("error", "Type '{0}' cannot be instantiated"),
    'DX0201': ("error", "Only assignment, call, increment, decrement and new object expressions can be used as a statement"),
    'DX0219': ("warning", "The variable '{0}' is assigned but its value is never used"),
    'DX0246': ("error", "The type or namespace name '{0}' could not be found"),
    'DX0428': ("error", "Cannot convert method group '{0}' to a value; did you intend to invoke the method?"),
    'DX0594': ("error", "Floating-point constant is outside the range of type 'double'"),
    'DX0708': ("error", "'{0}': instance members are not supported, declare the member static"),
    'DX0815': ("error", "Cannot assign {0} to an implicitly-typed variable"),
    'DX0818': ("error", "Implicitly-typed variables must be initialized"),
    'DX1023': ("error", "Embedded statement cannot be a declaration"),
    'DX1501': ("error", "No overload for method '{0}' takes {1} arguments"),
    'DX1503': ("error", "Argument {0}: cannot convert from '{1}' to '{2}'"),
    'DX1547': ("error", "Keyword 'void' cannot be used in this context"),
    'DX7036': ("error", "There is no argument given that corresponds to the required parameter '{0}' of '{1}'"),
}


@dataclass(frozen=True)
class Diagnostic:
    id: str
    severity: Severity
    message: str
    line: int | None = None
    column: int | None = None
    filename: str | None = None
    is_warning_as_error: bool = False

    def is_error(self) -> bool:
        return self.severity == "error" or self.is_warning_as_error

    def render(self) -> str:
        return f"{self.id} - {self.message}"

    def __str__(self):
        where = f"({self.line},{self.column})" if self.line is not None else ""
        prefix = f"{self.filename or '<source>'}{where}: "
        return prefix + f"{self.severity} {self.render()}"


@dataclass(frozen=True)
class CompilationOptions:
    """Controls how warnings participate in the success verdict."""
    warnings_as_errors: bool | frozenset[str] = False
    suppressed: frozenset[str] = frozenset()

    def promotes(self, diag_id: str) -> bool:
        if isinstance(self.warnings_as_errors, bool):
            return self.warnings_as_errors
        return diag_id in self.warnings_as_errors


@dataclass
class DiagnosticBag:
    filename: str | None = None
    options: CompilationOptions = field(default_factory=CompilationOptions)
    items: list[Diagnostic] = field(default_factory=list)

    def report(self, diag_id: str, *args, line=None, column=None) -> Diagnostic | None:
        severity, template = MESSAGES[diag_id]
        if diag_id in self.options.suppressed and severity != "error": return None
        promoted = severity == "warning" and self.options.promotes(diag_id)
        diag = Diagnostic(diag_id, severity, template.format(*args), line, column, self.filename, promoted)
        self.items.append(diag)
        return diag

    def extend(self, diagnostics) -> None:
        for d in diagnostics:
            if d.severity == "warning" and not d.is_warning_as_error and self.options.promotes(d.id):
                d = replace(d, is_warning_as_error=True)
            self.items.append(d)

    def has_errors(self) -> bool:
        return any(d.is_error() for d in self.items)

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.items)


@dataclass(frozen=True)
class Ok:
    success = True

@dataclass(frozen=True)
class Failed:
    messages: tuple[str, ...]
    success = False

    def render(self) -> str:
        return '\n'.join(self.messages)


def evaluate(diagnostics) -> Ok | Failed:
    """Turn a diagnostics sequence into a verdict, keeping every failing entry in original order."""
    failing = tuple(d.render() for d in diagnostics if d.is_error())
    return Failed(failing) if failing else Ok()
