## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# Typed lookup of exported methods in a loaded module.  The table is built once from the
# image's exported symbols; resolving is a checked dictionary lookup, never reflection.
#

from types import ModuleType
from typing import Any, Callable, Sequence
from dataclasses import dataclass, field

from . import types as T
from .errors import ResolutionError, AmbiguousMatchError, SignatureMismatchError, InvocationError


@dataclass(frozen=True)
class CallableHandle:
    module: str
    type_name: str
    member_name: str
    params: tuple[tuple[str, T.TypeSymbol], ...]
    returns: T.TypeSymbol
    target: Callable = field(repr=False, compare=False)

    @property
    def arity(self) -> int:
        return len(self.params)

    @property
    def param_types(self) -> tuple[str, ...]:
        return tuple(t.name for _, t in self.params)

    def signature(self) -> str:
        args = ', '.join(f"{t.name} {n}" for n, t in self.params)
        return f"{self.returns.name} {self.type_name}.{self.member_name}({args})"

    def __call__(self, *args):
        return invoke(self, args)


class SymbolTable:
    """Mapping of `(type name, member name)` to the callable handles of its overloads."""

    def __init__(self, module_name: str):
        self.module_name = module_name
        self._entries: dict[tuple[str, str], list[CallableHandle]] = {}
        self._aliases: dict[str, list[str]] = {}
        self.types: list[str] = []

    @classmethod
    def from_exports(cls, module_name: str, module: ModuleType, exports: dict,
                     known: dict[str, T.TypeSymbol]) -> "SymbolTable":
        table = cls(module_name)
        def to_type(label: str) -> T.TypeSymbol:
            return T.BUILTIN_TYPES.get(label) or known.get(label) or T.OBJECT

        for full_name, info in exports.items():
            owner = getattr(module, info['python_name'])
            table.types.append(full_name)
            table._aliases.setdefault(info['name'], []).append(full_name)
            if full_name != info['name']: table._aliases.setdefault(full_name, []).append(full_name)
            for m in info['members']:
                if m['kind'] != 'method': continue
                handle = CallableHandle(module_name, full_name, m['name'],
                                        tuple((n, to_type(t)) for n, t in m['params']),
                                        to_type(m['returns']), getattr(owner, m['python_name']))
                table._entries.setdefault((full_name, m['name']), []).append(handle)
        return table

    def _full_name(self, type_name: str) -> str:
        names = self._aliases.get(type_name, [])
        if not names:
            raise ResolutionError(f"Type `{type_name}` was not found in module `{self.module_name}`.", token=type_name)
        if len(names) > 1:
            raise AmbiguousMatchError(f"Type name `{type_name}` matches {', '.join(names)}; use a full name.", token=type_name)
        return names[0]

    def lookup(self, type_name: str, member_name: str) -> list[CallableHandle]:
        full_name = self._full_name(type_name)
        if (handles := self._entries.get((full_name, member_name))) is None:
            raise ResolutionError(f"Type `{full_name}` has no method `{member_name}`.", token=member_name)
        return handles

    def __contains__(self, key) -> bool:
        try:
            self.lookup(*key)
            return True
        except ResolutionError:
            return False

    def __iter__(self):
        return (h for handles in self._entries.values() for h in handles)


def _normalize_signature(signature) -> tuple[str, ...]:
    if isinstance(signature, str):
        signature = signature.strip().strip('()')
        return tuple(p.strip() for p in signature.split(',') if p.strip())
    return tuple(t if isinstance(t, str) else t.name for t in signature)


def resolve(table: SymbolTable, type_name: str, member_name: str, signature=None) -> CallableHandle:
    """Find one method by name; overloads need a `signature` of parameter type names, like `("int", "double")`."""
    handles = table.lookup(type_name, member_name)
    if signature is None:
        if len(handles) > 1:
            options = '; '.join(h.signature() for h in handles)
            raise AmbiguousMatchError(f"`{type_name}.{member_name}` has {len(handles)} overloads, pass a signature: {options}.",
                                      token=member_name)
        return handles[0]

    wanted = _normalize_signature(signature)
    for h in handles:
        if h.param_types == wanted: return h
    raise SignatureMismatchError(f"No overload of `{type_name}.{member_name}` takes ({', '.join(wanted)}).",
                                 token=member_name)


def invoke(handle: CallableHandle, args: Sequence[Any]) -> Any:
    args = list(args)
    if len(args) != handle.arity:
        raise InvocationError(f"`{handle.signature()}` takes {handle.arity} argument(s), {len(args)} given.",
                              token=handle.member_name)
    for i, (value, (name, t)) in enumerate(zip(args, handle.params)):
        if not T.conforms(value, t):
            raise InvocationError(f"Argument {i+1} (`{name}`) of `{handle.signature()}` expects {t.name}, "
                                  f"got {T.type_of_value(value)}.", token=name)
        args[i] = T.coerce(value, t)

    try:
        return handle.target(*args)
    except Exception as exc:
        raise InvocationError(f"`{handle.signature()}` faulted: {type(exc).__name__}: {exc}",
                              token=handle.member_name) from exc
