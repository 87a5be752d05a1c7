## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import dataclasses
from typing import Any, Mapping, MutableMapping, get_type_hints

from . import types as T
from .errors import GlobalsMismatchError, BindError
from .loader import annotation_to_type


class GlobalsBinding:
    """The declared shape of a script's globals: field names and their types, in declaration order.

    A shape is a dataclass (or any class with annotated attributes); a plain `dict` of
    `{name: python_type}` is accepted too.  Instances handed to `run` may be objects of the
    shape, other objects with the same attributes, or mappings.
    """

    def __init__(self, shape: Any = None, known: dict[type, T.TypeSymbol] | None = None):
        self.shape = shape
        self.fields: dict[str, T.TypeSymbol] = {}
        if shape is None: return

        if isinstance(shape, Mapping):
            hints = dict(shape)
        elif dataclasses.is_dataclass(shape) and isinstance(shape, type):
            hints = get_type_hints(shape)
            hints = {f.name: hints[f.name] for f in dataclasses.fields(shape)}
        elif isinstance(shape, type):
            hints = get_type_hints(shape)
        else:
            raise BindError(f"Globals shape `{shape!r}` must be a class or a mapping of field types.")

        for name, annotation in hints.items():
            if name.startswith('_'): continue
            try:
                self.fields[name] = annotation_to_type(annotation, known or {}, f"globals.{name}")
            except Exception as exc:
                raise BindError(f"Globals field `{name}` has unsupported type `{annotation}`.", token=name) from exc

    def symbols(self) -> list[T.LocalSymbol]:
        return [T.LocalSymbol(name, t, kind="global") for name, t in self.fields.items()]

    def check(self, instance: Any) -> None:
        """Raise `GlobalsMismatchError` unless `instance` structurally matches this shape."""
        if not self.fields: return
        if instance is None:
            raise GlobalsMismatchError(f"Script declares globals {list(self.fields)}, but none were given.")

        problems = []
        for name, t in self.fields.items():
            try:
                value = read_global(instance, name)
            except (KeyError, AttributeError):
                problems.append(f"missing field `{name}`")
                continue
            if not T.conforms(value, t):
                problems.append(f"field `{name}` expects {t.name}, got {T.type_of_value(value)}")
        if problems:
            shape_name = getattr(self.shape, '__name__', 'globals')
            raise GlobalsMismatchError(f"Globals do not match `{shape_name}`: " + '; '.join(problems) + '.',
                                       token=shape_name)


def read_global(instance: Any, name: str) -> Any:
    if isinstance(instance, Mapping): return instance[name]
    return getattr(instance, name)

def write_global(instance: Any, name: str, value: Any) -> None:
    if isinstance(instance, MutableMapping): instance[name] = value
    else: setattr(instance, name, value)
