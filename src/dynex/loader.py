## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import os
import inspect
import importlib.util as importer
from pathlib import Path
from types import ModuleType, UnionType, NoneType
from typing import Any, Callable, Union, get_args, get_origin, get_type_hints
from dataclasses import dataclass, field

from . import types as T
from .errors import ReferenceLoadError


def get_python_name(name: str) -> str:
    """Map a member name as written in source (`NextDouble`) to its Python function name (`next_double`)."""
    if name.isupper(): return name
    out = []
    for i, ch in enumerate(name):
        if ch.isupper() and i > 0 and not name[i-1].isupper():
            out.append('_')
        out.append(ch.lower())
    return ''.join(out)


def get_dialect_name(py_name: str) -> str:
    """Inverse of `get_python_name` for well-formed snake_case names."""
    if py_name.isupper(): return py_name
    return ''.join(part[:1].upper() + part[1:] for part in py_name.split('_'))


def core_library_path() -> str:
    """Location of the bundled `System` library, the minimal reference for most sources."""
    return str(Path(__file__).resolve().parent / 'libs' / '_system.py')


def resolve_reference_paths(value: str | None) -> list[Path]:
    parts = [p for p in (value or "").split(os.pathsep) if p]
    return [Path(os.path.expanduser(os.path.expandvars(p))) for p in parts]


@dataclass(frozen=True)
class ReferenceSet:
    """Ordered, immutable sequence of library locations used to resolve external symbols."""
    paths: tuple[str, ...] = ()

    @classmethod
    def from_paths(cls, paths) -> "ReferenceSet":
        unique = []
        for p in paths:
            p = str(Path(p).resolve())
            if p not in unique: unique.append(p)
        return cls(tuple(unique))

    @classmethod
    def default(cls) -> "ReferenceSet":
        return cls.from_paths([core_library_path()])

    def with_path(self, path) -> "ReferenceSet":
        return ReferenceSet.from_paths([*self.paths, path])

    def __iter__(self):
        return iter(self.paths)

    def __len__(self):
        return len(self.paths)


@dataclass
class ReferenceLibrary:
    path: str
    namespace: str
    module: ModuleType
    types: dict[str, T.TypeSymbol] = field(default_factory=dict)


class ReferenceCache:
    """Owned registry of reference libraries loaded into this process, keyed by path."""

    def __init__(self):
        self._libraries: dict[str, ReferenceLibrary] = {}

    def __contains__(self, path) -> bool:
        return str(Path(path).resolve()) in self._libraries

    def load(self, path: str) -> ReferenceLibrary:
        key = str(Path(path).resolve())
        if (lib := self._libraries.get(key)) is not None: return lib
        lib = load_reference_library(key, known=self._known_types())
        self._libraries[key] = lib
        return lib

    def load_all(self, references: ReferenceSet) -> list[ReferenceLibrary]:
        return [self.load(p) for p in references]

    def evict(self, path: str) -> None:
        self._libraries.pop(str(Path(path).resolve()), None)

    def _known_types(self) -> dict[type, T.TypeSymbol]:
        return {t.python_type: t for lib in self._libraries.values() for t in lib.types.values()}


def _load_python_module(path: str) -> ModuleType:
    if not os.path.isfile(path):
        raise ReferenceLoadError(f"Reference `{path}` not found.", token=path, filename=path)
    mod_name = f"dynex.ext.{Path(path).stem.lstrip('_')}_{abs(hash(path)):x}"
    spec = importer.spec_from_file_location(mod_name, path)
    if spec is None or spec.loader is None:
        raise ReferenceLoadError(f"Reference `{path}` is not a loadable Python file.", token=path, filename=path)
    module = importer.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise ReferenceLoadError(str(e), filename=path, token=Path(path).stem) from e
    return module


def load_reference_library(path: str, known: dict[type, T.TypeSymbol] | None = None) -> ReferenceLibrary:
    """Load a library file and reflect the classes of its `__types__` registry into type symbols."""
    module = _load_python_module(path)
    # Require explicit type registry on module; otherwise treat as reference error.
    if not isinstance(getattr(module, '__types__', None), list):
        raise ReferenceLoadError(f"Reference `{path}` is missing type registry `__types__`.", token=path, filename=path)

    namespace = getattr(module, '__namespace__', None) or Path(path).stem.lstrip('_').capitalize()
    lib = ReferenceLibrary(path, namespace, module)
    known = dict(known or {})

    # First pass: register all type symbols so members can refer to each other.
    for cls in module.__types__:
        if not isinstance(cls, type):
            raise ReferenceLoadError(f"Entry `{cls!r}` in `__types__` is not a class.", token=repr(cls), filename=path)
        sym = T.TypeSymbol(cls.__name__, 'reference', cls, namespace=namespace,
                           instantiable=not getattr(cls, '__static__', False))
        lib.types[sym.name] = known[cls] = sym

    # Second pass: reflect constructors and members from annotations.
    for sym in lib.types.values():
        try:
            _reflect_members(sym, known)
        except ReferenceLoadError as exc:
            exc.filename = path
            raise
    return lib


def annotation_to_type(tp: Any, known: dict[type, T.TypeSymbol], where: str) -> T.TypeSymbol:
    if tp in (None, NoneType): return T.VOID
    if tp in (Any, object): return T.OBJECT
    if tp is bool: return T.BOOL
    if tp is int: return T.INT
    if tp is float: return T.DOUBLE
    if tp is str: return T.STRING
    if isinstance(tp, type) and tp in known: return known[tp]
    if isinstance(tp, UnionType) or get_origin(tp) is Union:
        # Only `X | None` is supported, mapped to `X` which then accepts null.
        args = [a for a in get_args(tp) if a is not NoneType]
        if len(args) == 1: return annotation_to_type(args[0], known, where)
    raise ReferenceLoadError(f"Unsupported type annotation `{tp}` in `{where}`.", token=where)


def _reflect_callable(fn: Callable, owner: T.TypeSymbol, name: str, known, *, skip_self: bool) -> tuple:
    where = f"{owner.name}.{name}"
    hints = get_type_hints(fn)
    params = list(inspect.signature(fn).parameters.values())
    if skip_self: params = params[1:]

    result = []
    for p in params:
        if p.kind not in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            raise ReferenceLoadError(f"Member `{where}` may only declare positional parameters.", token=where)
        if p.name not in hints:
            raise ReferenceLoadError(f"Member `{where}` must annotate parameter `{p.name}`.", token=where)
        has_default = p.default is not inspect.Parameter.empty
        result.append(T.ParamSymbol(p.name, annotation_to_type(hints[p.name], known, where),
                                    has_default, p.default if has_default else None))

    if name != '__init__' and 'return' not in hints:
        raise ReferenceLoadError(f"Member `{where}` must declare a return annotation.", token=where)
    ret = annotation_to_type(hints.get('return'), known, where)
    return tuple(result), ret


def _reflect_members(sym: T.TypeSymbol, known: dict) -> None:
    cls = sym.python_type

    init = cls.__dict__.get('__init__')
    if sym.instantiable:
        params = _reflect_callable(init, sym, '__init__', known, skip_self=True)[0] if init is not None else ()
        sym.constructors.append(T.MethodSymbol('.ctor', sym, params, sym, is_static=True, python_name='__init__', impl=cls))

    hints = get_type_hints(cls)
    for py_name, attr in vars(cls).items():
        if py_name.startswith('_'): continue
        name = get_dialect_name(py_name)

        if isinstance(attr, (staticmethod, classmethod)):
            fn = attr.__func__
            params, ret = _reflect_callable(fn, sym, name, known, skip_self=isinstance(attr, classmethod))
            sym.add_member(T.MethodSymbol(name, sym, params, ret, is_static=True, python_name=py_name, impl=getattr(cls, py_name)))
        elif inspect.isfunction(attr):
            params, ret = _reflect_callable(attr, sym, name, known, skip_self=True)
            sym.add_member(T.MethodSymbol(name, sym, params, ret, is_static=False, python_name=py_name, impl=attr))
        elif isinstance(attr, property):
            if 'return' not in (fget_hints := get_type_hints(attr.fget)):
                raise ReferenceLoadError(f"Property `{sym.name}.{name}` must declare a return annotation.", token=name)
            ret = annotation_to_type(fget_hints['return'], known, f"{sym.name}.{name}")
            sym.add_member(T.FieldSymbol(name, sym, ret, is_static=False, read_only=attr.fset is None, python_name=py_name))
        elif py_name in hints:
            field_type = annotation_to_type(hints[py_name], known, f"{sym.name}.{name}")
            sym.add_member(T.FieldSymbol(name, sym, field_type, is_static=True, read_only=True, python_name=py_name))
