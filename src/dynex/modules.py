## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from types import ModuleType
from dataclasses import dataclass, field

from . import types as T
from . import operators
from .image import EmittedModuleImage, unpack_image
from .emitter import reference_binding_name
from .invoker import SymbolTable
from .loader import ReferenceCache, ReferenceSet
from .errors import LoadError, ReferenceLoadError, ResolutionError


@dataclass
class LoadedModule:
    name: str
    module: ModuleType = field(repr=False)
    references: tuple[str, ...]
    exports: dict = field(repr=False)
    symbols: SymbolTable = field(repr=False)

    @property
    def type_names(self) -> list[str]:
        return list(self.symbols.types)

    def get_type(self, name: str) -> type:
        """The Python class backing a module type, by simple or full name."""
        for full_name, info in self.exports.items():
            if name in (full_name, info['name']):
                return getattr(self.module, info['python_name'])
        raise ResolutionError(f"Type `{name}` was not found in module `{self.name}`.", token=name)


class ModuleRegistry:
    """Modules loaded by one owner, keyed by module name; nothing is shared through `sys.modules`."""

    def __init__(self):
        self._modules: dict[str, LoadedModule] = {}

    def add(self, module: LoadedModule) -> None:
        if module.name in self._modules:
            raise LoadError(f"A module named `{module.name}` is already loaded.", token=module.name)
        self._modules[module.name] = module

    def get(self, name: str) -> LoadedModule:
        if (module := self._modules.get(name)) is None:
            raise ResolutionError(f"Module `{name}` is not loaded.", token=name)
        return module

    def remove(self, name: str) -> LoadedModule:
        module = self.get(name)
        del self._modules[name]
        return module

    def __contains__(self, name) -> bool:
        return name in self._modules

    def __iter__(self):
        return iter(self._modules.values())

    def __len__(self):
        return len(self._modules)


class ModuleLoader:
    def __init__(self, registry: ModuleRegistry | None = None, cache: ReferenceCache | None = None):
        self.registry = registry if registry is not None else ModuleRegistry()
        self.cache = cache if cache is not None else ReferenceCache()

    def load(self, image: EmittedModuleImage) -> LoadedModule:
        """Consume an image, run its static initialisation and register the resulting module."""
        if not isinstance(image, EmittedModuleImage):
            raise LoadError(f"Expected an emitted module image, got `{type(image).__name__}`.")
        contents = unpack_image(image.consume())
        if contents.module_name in self.registry:
            raise LoadError(f"A module named `{contents.module_name}` is already loaded.", token=contents.module_name)

        try:
            libraries = self.cache.load_all(ReferenceSet(contents.references))
        except ReferenceLoadError as exc:
            raise LoadError(f"Reference `{exc.filename}` of module `{contents.module_name}` failed to load.",
                            token=exc.token) from exc

        module = ModuleType(f"dynex.loaded.{contents.module_name}")
        module.__dict__['_rt'] = operators
        known: dict[str, T.TypeSymbol] = {}
        for i, lib in enumerate(libraries):
            for name, sym in lib.types.items():
                module.__dict__[reference_binding_name(i, name)] = sym.python_type
                known[sym.full_name] = sym

        try:
            exec(contents.code, module.__dict__)
        except Exception as exc:
            raise LoadError(f"Static initialisation of module `{contents.module_name}` failed: "
                            f"{type(exc).__name__}: {exc}", token=contents.module_name) from exc

        for full_name, info in contents.exports.items():
            if not isinstance(getattr(module, info['python_name'], None), type):
                raise LoadError(f"Module `{contents.module_name}` does not define exported type `{full_name}`.",
                                token=full_name)
            known[full_name] = T.TypeSymbol(info['name'], 'module', module.__dict__[info['python_name']],
                                            namespace=info['namespace'], instantiable=False)

        symbols = SymbolTable.from_exports(contents.module_name, module, contents.exports, known)
        loaded = LoadedModule(contents.module_name, module, contents.references, contents.exports, symbols)
        self.registry.add(loaded)
        return loaded
