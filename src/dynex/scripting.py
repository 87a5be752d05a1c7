## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import threading
from typing import Any
from dataclasses import dataclass, field

from . import types as T
from .parser import parse, SyntaxTree
from .binder import bind_script, BoundScript
from .context import GlobalsBinding
from .diagnostics import DiagnosticBag, CompilationOptions, Diagnostic, evaluate
from .errors import DynexError, CompileError, ScriptRuntimeError, ExecutionCancelled, VariableNotFoundError
from .interpreter import compile_script, Program
from .loader import ReferenceCache, ReferenceSet


class CancellationToken:
    """Cooperative cancellation signal, checked by a running script at every statement, iteration and call."""

    def __init__(self):
        self._event = threading.Event()
        self._timer = None

    @classmethod
    def after(cls, seconds: float) -> "CancellationToken":
        token = cls()
        token._timer = threading.Timer(seconds, token.cancel)
        token._timer.daemon = True
        token._timer.start()
        return token

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExecutionCancelled("Execution was cancelled.")


@dataclass(frozen=True)
class ScriptVariable:
    name: str
    type: str
    value: Any


class RunState:
    """Outcome of one run: every top-level variable with its final value, in declaration order."""

    def __init__(self, script: "CompiledScript", values: dict, types: dict[str, T.TypeSymbol], return_value=None):
        self.script = script
        self.return_value = return_value
        self.lock = threading.Lock()
        self._values = values
        self._types = types

    @property
    def variables(self) -> list[ScriptVariable]:
        return [ScriptVariable(k, self._types[k].name, v) for k, v in self._values.items()]

    def get_variable(self, name: str) -> ScriptVariable:
        if name not in self._values:
            raise VariableNotFoundError(f"Variable `{name}` is not declared at the top level of the script.")
        return ScriptVariable(name, self._types[name].name, self._values[name])

    def __getitem__(self, name: str) -> Any:
        return self.get_variable(name).value

    def __contains__(self, name) -> bool:
        return name in self._values

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __repr__(self):
        return f"RunState({', '.join(f'{k}={v!r}' for k, v in self._values.items())})"


@dataclass
class CompiledScript:
    source: str
    tree: SyntaxTree
    globals: GlobalsBinding
    references: ReferenceSet
    options: CompilationOptions
    program: Program = field(repr=False)
    state: list[T.LocalSymbol] = field(repr=False)
    previous: list[T.LocalSymbol] = field(default_factory=list, repr=False)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    engine: "ScriptEngine" = field(default=None, repr=False)

    @property
    def variable_names(self) -> list[str]:
        return [s.name for s in self.state]

    def visible_variables(self) -> list[T.LocalSymbol]:
        """Top-level variables of this submission and all those it continues, later names winning."""
        merged = {s.name: s for s in self.previous}
        for s in self.state:
            merged.pop(s.name, None)
            merged[s.name] = s
        return list(merged.values())

    def run(self, globals_=None, previous_state: RunState | None = None, *, cancel=None) -> RunState:
        return self.engine.run(self, globals_, previous_state, cancel=cancel)

    def continue_with(self, source: str, *, filename: str | None = None) -> "CompiledScript":
        return self.engine.compile(source, self.globals.shape, filename=filename, options=self.options,
                                   references=self.references, previous=self)


class ScriptEngine:
    def __init__(self, cache: ReferenceCache | None = None):
        self.cache = cache if cache is not None else ReferenceCache()

    def compile(self, source: str, globals_shape=None, *, filename: str | None = None,
                options: CompilationOptions | None = None, references: ReferenceSet | None = None,
                previous: CompiledScript | None = None) -> CompiledScript:
        """Parse and bind `source` against a globals shape, raising `CompileError` with all diagnostics on failure."""
        options = options or CompilationOptions()
        references = references if references is not None else ReferenceSet.default()
        libraries = self.cache.load_all(references)
        known = {t.python_type: t for lib in libraries for t in lib.types.values()}
        binding = GlobalsBinding(globals_shape, known)

        tree = parse(source, "script", filename)
        bag = DiagnosticBag(filename, options)
        earlier = previous.visible_variables() if previous is not None else None
        bound: BoundScript = bind_script(tree.root, bag, libraries, binding, earlier)
        if bag.has_errors():
            raise CompileError(evaluate(bag).render(), diagnostics=bag.items)

        return CompiledScript(source, tree, binding, references, options, compile_script(bound),
                              bound.state, bound.previous, list(bag), engine=self)

    def run(self, script: CompiledScript, globals_=None, previous_state: RunState | None = None,
            *, cancel: CancellationToken | None = None) -> RunState:
        """Execute a compiled script with a fresh state, or continuing from `previous_state`."""
        script.globals.check(globals_)
        if cancel is not None: cancel.raise_if_cancelled()

        if previous_state is None:
            return self._execute(script, globals_, {}, {}, cancel)
        with previous_state.lock:
            return self._execute(script, globals_, dict(previous_state._values), dict(previous_state._types), cancel)

    def _execute(self, script: CompiledScript, globals_, values: dict, types: dict, cancel) -> RunState:
        for sym in script.previous:
            if sym.name not in values:
                values[sym.name], types[sym.name] = T.default_value(sym.type), sym.type
        for sym in script.state:
            values.pop(sym.name, None)
            values[sym.name], types[sym.name] = T.default_value(sym.type), sym.type

        try:
            result = script.program.execute(values, globals_, cancel)
        except DynexError:
            raise
        except Exception as exc:
            line = getattr(exc, 'dx_line', None)
            where = f" at line {line}" if line is not None else ""
            raise ScriptRuntimeError(f"Script faulted{where}: {type(exc).__name__}: {exc}",
                                     token=type(exc).__name__, line=line) from exc
        return RunState(script, values, types, result)
