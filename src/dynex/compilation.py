## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import copy
import uuid
from typing import Literal
from dataclasses import dataclass

from .parser import SyntaxTree, parse
from .binder import bind_module, BoundModule
from .diagnostics import DiagnosticBag, CompilationOptions, Diagnostic, evaluate, Ok, Failed
from .emitter import emit_python
from .image import EmittedModuleImage, pack_image
from .loader import ReferenceCache, ReferenceSet
from .errors import CompileError, EmitFailure


OutputKind = Literal["library"]


def random_module_name() -> str:
    """Unique module identity for sources that do not name one."""
    return f"dx_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class EmitResult:
    success: bool
    diagnostics: tuple[Diagnostic, ...]
    image: EmittedModuleImage | None = None
    python_source: str | None = None

    @property
    def verdict(self) -> Ok | Failed:
        return evaluate(self.diagnostics)

    def raise_for_failure(self) -> EmittedModuleImage:
        if not self.success:
            raise EmitFailure(self.verdict.render(), diagnostics=self.diagnostics)
        return self.image


class Compilation:
    """Module sources bound against a reference set; binding happens once, on first use."""

    output_kind: OutputKind = "library"

    def __init__(self, module_name: str, trees: tuple[SyntaxTree, ...], references: ReferenceSet,
                 options: CompilationOptions, cache: ReferenceCache):
        self.module_name = module_name
        self.trees = trees
        self.references = references
        self.options = options
        self.cache = cache
        self._bound: BoundModule | None = None
        self._bag: DiagnosticBag | None = None

    @classmethod
    def create(cls, module_name: str | None = None, trees=(), references: ReferenceSet | None = None,
               options: CompilationOptions | None = None, *, cache: ReferenceCache | None = None) -> "Compilation":
        if isinstance(trees, (SyntaxTree, str)): trees = [trees]
        trees = tuple(parse(t, "module") if isinstance(t, str) else t for t in trees)
        for t in trees:
            if t.kind != "module":
                raise CompileError(f"Tree from `{t.filename or '<source>'}` is a {t.kind}, expected a module.")
        return cls(module_name or random_module_name(), trees,
                   references if references is not None else ReferenceSet.default(),
                   options or CompilationOptions(), cache if cache is not None else ReferenceCache())

    def bind(self) -> BoundModule:
        if self._bound is None:
            libraries = self.cache.load_all(self.references)
            filename = self.trees[0].filename if len(self.trees) == 1 else None
            self._bag = DiagnosticBag(filename, self.options)
            # Syntax trees stay pristine, so the same tree may feed several compilations.
            units = [copy.deepcopy(t.root) for t in self.trees]
            self._bound = bind_module(units, self._bag, libraries)
        return self._bound

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        self.bind()
        return tuple(self._bag)

    def emit(self) -> EmitResult:
        """Always returns diagnostics; the image is only produced when they contain no errors."""
        bound = self.bind()
        diagnostics = tuple(self._bag)
        if self._bag.has_errors():
            return EmitResult(False, diagnostics)

        source, exports = emit_python(bound, self.module_name)
        try:
            code = compile(source, f"<dynex:{self.module_name}>", "exec")
        except SyntaxError as exc:
            raise EmitFailure(f"Generated code for `{self.module_name}` does not compile: {exc}",
                              diagnostics=diagnostics) from exc
        data = pack_image(self.module_name, self.references.paths, exports, code)
        return EmitResult(True, diagnostics, EmittedModuleImage(data), source)
