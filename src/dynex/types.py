## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from typing import Any, Literal, Callable
from dataclasses import dataclass, field


TypeKind = Literal["primitive", "reference", "module", "null", "error"]


class TypeSymbol:
    """A type visible to source code: primitive, library class, or class declared by a module."""

    def __init__(self, name: str, kind: TypeKind, python_type: type | None = None, *,
                 namespace: str | None = None, instantiable: bool = True):
        self.name = name
        self.kind = kind
        self.python_type = python_type
        self.namespace = namespace
        self.instantiable = instantiable
        self.members: dict[str, list] = {}
        self.constructors: list[MethodSymbol] = []

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    def add_member(self, member) -> None:
        self.members.setdefault(member.name, []).append(member)

    def lookup(self, name: str) -> list:
        return self.members.get(name, []) or COMMON_MEMBERS.get(name, [])

    def __repr__(self):
        return self.name

    __str__ = __repr__


INT = TypeSymbol('int', 'primitive', int)
DOUBLE = TypeSymbol('double', 'primitive', float)
BOOL = TypeSymbol('bool', 'primitive', bool)
STRING = TypeSymbol('string', 'primitive', str)
OBJECT = TypeSymbol('object', 'primitive', object)
VOID = TypeSymbol('void', 'primitive', type(None))
NULL = TypeSymbol('<null>', 'null')
ERROR = TypeSymbol('?', 'error')

BUILTIN_TYPES: dict[str, TypeSymbol] = {t.name: t for t in (INT, DOUBLE, BOOL, STRING, OBJECT, VOID)}
NUMERIC = (INT, DOUBLE)


@dataclass(frozen=True)
class ParamSymbol:
    name: str
    type: TypeSymbol
    has_default: bool = False
    default: Any = None


@dataclass(eq=False)
class MethodSymbol:
    name: str
    owner: TypeSymbol | None
    params: tuple[ParamSymbol, ...]
    return_type: TypeSymbol
    is_static: bool = True
    python_name: str | None = None
    impl: Callable | None = None       # Library function, or intrinsic taking the target first.
    intrinsic: bool = False
    decl: Any = field(default=None, repr=False)

    @property
    def required(self) -> int:
        return sum(1 for p in self.params if not p.has_default)

    def signature(self) -> str:
        owner = f"{self.owner.full_name}." if self.owner is not None else ""
        return f"{owner}{self.name}({', '.join(p.type.name for p in self.params)})"


@dataclass(eq=False)
class FieldSymbol:
    name: str
    owner: TypeSymbol | None
    type: TypeSymbol
    is_static: bool = True
    read_only: bool = False
    python_name: str | None = None
    impl: Callable | None = None       # Intrinsic getter, taking the target.
    decl: Any = field(default=None, repr=False)


LocalKind = Literal["local", "param", "state", "global"]

@dataclass(eq=False)
class LocalSymbol:
    """A named storage location: function local/parameter, script state variable, or global field."""
    name: str
    type: TypeSymbol
    kind: LocalKind = "local"
    read: bool = False
    written: bool = False
    line: int | None = None
    column: int | None = None


## CONVERSIONS
def is_reference_like(t: TypeSymbol) -> bool:
    return t.kind in ('reference', 'module') or t in (STRING, OBJECT)

def implicit_conversion(src: TypeSymbol, dst: TypeSymbol) -> str | None:
    """Returns "identity" or "implicit" when `src` may be assigned to `dst`, otherwise None."""
    if src is dst or ERROR in (src, dst): return "identity"
    if src is VOID or dst is VOID: return None
    if src is INT and dst is DOUBLE: return "implicit"
    if dst is OBJECT: return "implicit"
    if src is NULL and is_reference_like(dst): return "implicit"
    return None

def explicit_conversion(src: TypeSymbol, dst: TypeSymbol) -> bool:
    if implicit_conversion(src, dst) is not None: return True
    if src in NUMERIC and dst in NUMERIC: return True
    return src is OBJECT and dst is not VOID


def default_value(t: TypeSymbol) -> Any:
    return {INT: 0, DOUBLE: 0.0, BOOL: False}.get(t)


def conforms(value: Any, t: TypeSymbol) -> bool:
    """Runtime check that a Python value can be stored in a location of type `t`."""
    if t in (OBJECT, ERROR): return True
    if t is INT: return isinstance(value, int) and not isinstance(value, bool)
    if t is DOUBLE: return isinstance(value, (int, float)) and not isinstance(value, bool)
    if t is BOOL: return isinstance(value, bool)
    if t is STRING: return value is None or isinstance(value, str)
    if t.python_type is not None: return value is None or isinstance(value, t.python_type)
    return False


def coerce(value: Any, t: TypeSymbol) -> Any:
    return float(value) if t is DOUBLE and isinstance(value, int) else value


def type_of_value(value: Any) -> str:
    """Name of a Python value's type in source terms, used in error messages."""
    for t in (BOOL, INT, DOUBLE, STRING):
        if conforms(value, t) and value is not None: return t.name
    return 'null' if value is None else type(value).__name__


COMMON_MEMBERS: dict[str, list] = {}
