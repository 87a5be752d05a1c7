## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from typing import Any, Mapping

from .parser import parse as _parse, SyntaxTree
from .diagnostics import CompilationOptions, evaluate as _evaluate
from .loader import ReferenceCache, ReferenceSet
from .scripting import ScriptEngine, CompiledScript, RunState, CancellationToken
from .compilation import Compilation, EmitResult
from .image import EmittedModuleImage
from .modules import ModuleLoader, ModuleRegistry, LoadedModule
from .invoker import CallableHandle, resolve as _resolve, invoke as _invoke
from .pipeline import ScriptStrategy, ModuleStrategy, Dispatcher


class Engine:
    """Facade owning the reference cache and module registry shared by both strategies."""

    def __init__(self, references: ReferenceSet | None = None):
        self.references = references if references is not None else ReferenceSet.default()
        self.cache = ReferenceCache()
        self.registry = ModuleRegistry()
        self.scripts = ScriptEngine(self.cache)
        self.loader = ModuleLoader(self.registry, self.cache)
        self.dispatcher = Dispatcher()

    def add_reference(self, path) -> None:
        self.references = self.references.with_path(path)

    def dispatch(self, fn, *args, **kwargs):
        return self.dispatcher.dispatch(fn, *args, **kwargs)

    def close(self) -> None:
        self.dispatcher.shutdown()

    # Scripts ─────────────────────────────────────────────────────────────────────────────────
    def compile_script(self, source: str, globals_shape=None, *, filename: str | None = None,
                       options: CompilationOptions | None = None) -> CompiledScript:
        return self.scripts.compile(source, globals_shape, filename=filename, options=options,
                                    references=self.references)

    def run_script(self, script: CompiledScript | str, globals_=None, previous_state: RunState | None = None,
                   *, globals_shape=None, cancel: CancellationToken | None = None) -> RunState:
        if isinstance(script, str):
            if globals_shape is None and globals_ is not None:
                globals_shape = ({k: type(v) for k, v in globals_.items()} if isinstance(globals_, Mapping)
                                 else type(globals_))
            script = self.compile_script(script, globals_shape)
        return self.scripts.run(script, globals_, previous_state, cancel=cancel)

    # Modules ─────────────────────────────────────────────────────────────────────────────────
    def parse(self, source: str, kind: str = "module", filename: str | None = None) -> SyntaxTree:
        return _parse(source, kind, filename)

    def compile_module(self, sources, module_name: str | None = None, *,
                       options: CompilationOptions | None = None) -> Compilation:
        return Compilation.create(module_name, sources, self.references, options, cache=self.cache)

    def emit(self, compilation: Compilation) -> EmitResult:
        return compilation.emit()

    def load(self, image: EmittedModuleImage) -> LoadedModule:
        return self.loader.load(image)

    def resolve(self, module: LoadedModule | str, type_name: str, member_name: str, signature=None) -> CallableHandle:
        if isinstance(module, str): module = self.registry.get(module)
        return _resolve(module.symbols, type_name, member_name, signature)

    def invoke(self, handle: CallableHandle, *args) -> Any:
        return _invoke(handle, args)

    def evaluate(self, diagnostics):
        return _evaluate(diagnostics)

    # Strategies ──────────────────────────────────────────────────────────────────────────────
    def script_strategy(self, globals_shape, result_name: str = "prediction", **kwargs) -> ScriptStrategy:
        return ScriptStrategy(self.scripts, globals_shape, result_name, references=self.references, **kwargs)

    def module_strategy(self, type_name: str, member_name: str, **kwargs) -> ModuleStrategy:
        return ModuleStrategy(self.loader, type_name, member_name, references=self.references, **kwargs)
