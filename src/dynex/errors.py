## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘


class DynexError(Exception):
    def __init__(self, message: str = "", *, diagnostics=None, token=None, meta=None):
        """Base class for all errors raised by the engine."""
        super().__init__(message)
        self.diagnostics: list = list(diagnostics or [])
        self.token: str = token
        self.meta: dict = meta


class CompileError(DynexError):
    """Source failed to compile; `diagnostics` holds every error found, in order."""
    pass

class ParseError(CompileError, ValueError):
    """Malformed syntax; diagnostics only contain syntax-category entries."""
    def __init__(self, message, *, diagnostics=None, filename=None, line=None, column=None, token=None):
        super().__init__(message, diagnostics=diagnostics, token=token)
        self.filename = filename
        self.line = line
        self.column = column

class BindError(CompileError):
    pass

class GlobalsMismatchError(BindError, TypeError):
    """Globals instance does not structurally match the shape a script was compiled against."""
    pass


class EmitFailure(CompileError):
    pass

class LoadError(DynexError):
    pass

class ReferenceLoadError(DynexError, ImportError):
    def __init__(self, message, *, token=None, filename=None, meta=None):
        super().__init__(message, token=token, meta=meta)
        self.filename = filename


class ResolutionError(DynexError, LookupError):
    pass

class AmbiguousMatchError(ResolutionError):
    pass

class SignatureMismatchError(ResolutionError):
    pass

class InvocationError(DynexError, TypeError):
    pass


class ScriptRuntimeError(DynexError, RuntimeError):
    """Unhandled fault raised while evaluating a script body."""
    def __init__(self, message: str = "", *, token=None, meta=None, line=None):
        super().__init__(message, token=token, meta=meta)
        self.line = line

class ExecutionCancelled(DynexError):
    pass

class VariableNotFoundError(DynexError, KeyError):
    def __str__(self):
        return self.args[0] if self.args else ""
