## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# One compile-then-run contract over both strategies: `prepare` turns source text into an
# artifact, `execute` produces a value from it, and each phase is timed along the way.
#

import time
import dataclasses
from typing import Any, Literal, Mapping, Protocol, get_type_hints
from contextlib import contextmanager
from dataclasses import dataclass, field
from concurrent.futures import Future, ThreadPoolExecutor

from .parser import parse
from .scripting import ScriptEngine, CompiledScript, RunState
from .compilation import Compilation, EmitResult
from .diagnostics import CompilationOptions
from .modules import ModuleLoader, LoadedModule
from .invoker import CallableHandle, resolve, invoke
from .loader import ReferenceSet
from .context import read_global


@dataclass
class PhaseTimings:
    """Elapsed milliseconds per phase; phases a strategy does not go through stay `None`."""
    compile: float | None = None
    first_run: float | None = None
    second_run: float | None = None
    emit: float | None = None
    load: float | None = None
    invoke: float | None = None

    @contextmanager
    def measure(self, phase: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            setattr(self, phase, (time.perf_counter() - start) * 1000.0)

    def items(self) -> list[tuple[str, float]]:
        return [(f.name, v) for f in dataclasses.fields(self) if (v := getattr(self, f.name)) is not None]


@dataclass
class ScriptArtifact:
    script: CompiledScript
    kind: Literal["script"] = "script"

@dataclass
class ModuleArtifact:
    module: LoadedModule
    handle: CallableHandle
    emitted: EmitResult = field(repr=False, default=None)
    kind: Literal["module"] = "module"

ExecutionArtifact = ScriptArtifact | ModuleArtifact


class Strategy(Protocol):
    timings: PhaseTimings

    def prepare(self, source: str, filename: str | None = None) -> ExecutionArtifact: ...
    def execute(self, artifact: ExecutionArtifact, globals_: Any, *, cancel=None) -> Any: ...


class ScriptStrategy:
    """Compile once, run twice against the same globals, then read one named variable."""

    def __init__(self, engine: ScriptEngine, globals_shape, result_name: str = "prediction", *,
                 options: CompilationOptions | None = None, references: ReferenceSet | None = None):
        self.engine = engine
        self.globals_shape = globals_shape
        self.result_name = result_name
        self.options = options
        self.references = references
        self.timings = PhaseTimings()
        self.last_state: RunState | None = None

    def prepare(self, source: str, filename: str | None = None) -> ScriptArtifact:
        with self.timings.measure('compile'):
            script = self.engine.compile(source, self.globals_shape, filename=filename,
                                         options=self.options, references=self.references)
        return ScriptArtifact(script)

    def execute(self, artifact: ScriptArtifact, globals_: Any, *, cancel=None) -> Any:
        with self.timings.measure('first_run'):
            self.engine.run(artifact.script, globals_, cancel=cancel)
        with self.timings.measure('second_run'):
            self.last_state = self.engine.run(artifact.script, globals_, cancel=cancel)
        return self.last_state[self.result_name]


class ModuleStrategy:
    """Emit, load once, then invoke one static method with the globals' fields as arguments."""

    def __init__(self, loader: ModuleLoader, type_name: str, member_name: str, *,
                 references: ReferenceSet | None = None, options: CompilationOptions | None = None,
                 module_name: str | None = None, signature=None):
        self.loader = loader
        self.type_name = type_name
        self.member_name = member_name
        self.references = references
        self.options = options
        self.module_name = module_name
        self.signature = signature
        self.timings = PhaseTimings()

    def prepare(self, source: str, filename: str | None = None) -> ModuleArtifact:
        with self.timings.measure('compile'):
            tree = parse(source, "module", filename)
            compilation = Compilation.create(self.module_name, [tree], self.references, self.options,
                                             cache=self.loader.cache)
            compilation.bind()
        with self.timings.measure('emit'):
            result = compilation.emit()
        image = result.raise_for_failure()
        with self.timings.measure('load'):
            module = self.loader.load(image)
        handle = resolve(module.symbols, self.type_name, self.member_name, self.signature)
        return ModuleArtifact(module, handle, result)

    def execute(self, artifact: ModuleArtifact, globals_: Any, *, cancel=None) -> Any:
        """Invoke with `globals_` expanded to positional arguments.

        Emitted code is not instrumented, so `cancel` is only honoured before the call starts;
        once invoked the method runs to completion.
        """
        if cancel is not None: cancel.raise_if_cancelled()
        with self.timings.measure('invoke'):
            return invoke(artifact.handle, argument_values(globals_))


def argument_values(globals_: Any) -> list:
    """Positional arguments from a globals record, in the field order `GlobalsBinding` reflects."""
    if globals_ is None: return []
    if isinstance(globals_, Mapping):
        return list(globals_.values())
    if isinstance(globals_, (list, tuple)):
        return list(globals_)
    if dataclasses.is_dataclass(globals_):
        return [read_global(globals_, f.name) for f in dataclasses.fields(globals_)]
    if names := [n for n in get_type_hints(type(globals_)) if not n.startswith("_")]:
        return [read_global(globals_, n) for n in names]
    return [globals_]


def run_strategy(strategy: Strategy, source: str, globals_: Any, filename: str | None = None) -> Any:
    return strategy.execute(strategy.prepare(source, filename), globals_)


class Dispatcher:
    """Worker threads for heavy steps (compile, emit, load), owned by whoever creates them."""

    def __init__(self, max_workers: int = 2):
        self.max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None

    def dispatch(self, fn, *args, **kwargs) -> Future:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="dynex")
        return self._executor.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()
