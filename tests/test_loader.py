## dynex — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import os
from dataclasses import dataclass

import pytest

from dynex.loader import (ReferenceSet, ReferenceCache, load_reference_library, core_library_path,
                          get_python_name, get_dialect_name, resolve_reference_paths)
from dynex.scripting import ScriptEngine
from dynex.compilation import Compilation
from dynex.modules import ModuleLoader
from dynex.invoker import resolve
from dynex.parser import parse
from dynex.errors import ReferenceLoadError, LoadError


GEOMETRY = '''
class Vector:
    def __init__(self, x: float, y: float):
        self.x, self.y = x, y

    @property
    def length(self) -> float:
        return (self.x ** 2 + self.y ** 2) ** 0.5

    def scaled(self, k: float) -> "Vector":
        return Vector(self.x * k, self.y * k)

    @staticmethod
    def unit() -> "Vector":
        return Vector(1.0, 0.0)


class Limits:
    __static__ = True
    LARGEST: int = 1000


__namespace__ = "Geometry"
__types__ = [Vector, Limits]
'''


def _write(tmp_path, name: str, content: str) -> str:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return str(path)


@dataclass
class Globals:
    MaxValue: int


def test_name_mapping():
    assert get_python_name("NextDouble") == "next_double"
    assert get_python_name("Next") == "next"
    assert get_python_name("PI") == "PI"
    assert get_dialect_name("next_in_range") == "NextInRange"
    assert get_dialect_name("LARGEST") == "LARGEST"


def test_core_library():
    lib = load_reference_library(core_library_path())
    assert lib.namespace == "System"
    assert set(lib.types) == {"Random", "Math", "Convert"}
    random = lib.types["Random"]
    assert [m.name for m in random.members["Next"]] == ["Next"]
    assert random.members["Next"][0].required == 0
    assert not lib.types["Math"].instantiable


def test_reference_set_is_ordered_and_unique(tmp_path):
    a, b = _write(tmp_path, "a.py", "__types__ = []"), _write(tmp_path, "b.py", "__types__ = []")
    refs = ReferenceSet.from_paths([a, b, a])
    assert len(refs) == 2
    assert list(refs)[0].endswith("a.py")
    assert len(ReferenceSet.default().with_path(a)) == 2


def test_reference_paths_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("DYNEX_TEST_DIR", str(tmp_path))
    paths = resolve_reference_paths(os.pathsep.join(["$DYNEX_TEST_DIR/one.py", "", "two.py"]))
    assert [p.name for p in paths] == ["one.py", "two.py"]
    assert str(paths[0]).startswith(str(tmp_path))


def test_cache_loads_each_path_once(tmp_path):
    path = _write(tmp_path, "geometry.py", GEOMETRY)
    cache = ReferenceCache()
    assert cache.load(path) is cache.load(path)
    assert path in cache
    cache.evict(path)
    assert path not in cache


def test_script_uses_reference_library(tmp_path):
    refs = ReferenceSet.default().with_path(_write(tmp_path, "geometry.py", GEOMETRY))
    engine = ScriptEngine()
    script = engine.compile("""
        using Geometry;
        var v = new Vector(3, 4);
        double len = v.Length;
        double twice = v.Scaled(2).Length;
        double one = Vector.Unit().Length;
        bool small = MaxValue < Limits.LARGEST;
    """, Globals, references=refs)
    state = engine.run(script, Globals(10))
    assert (state["len"], state["twice"], state["one"]) == (5.0, 10.0, 1.0)
    assert state["small"] is True


def test_module_uses_reference_library(tmp_path):
    refs = ReferenceSet.default().with_path(_write(tmp_path, "geometry.py", GEOMETRY))
    source = "using Geometry; static class Shapes { static double Diagonal(double w, double h) { return new Vector(w, h).Length; } }"
    image = Compilation.create(None, [parse(source)], refs).emit().raise_for_failure()
    module = ModuleLoader().load(image)
    assert resolve(module.symbols, "Shapes", "Diagonal")(6, 8) == 10.0
    assert module.references == refs.paths


def test_library_without_registry(tmp_path):
    path = _write(tmp_path, "bare.py", "class Thing: pass\n")
    with pytest.raises(ReferenceLoadError, match="__types__"):
        load_reference_library(path)


def test_missing_library(tmp_path):
    with pytest.raises(ReferenceLoadError, match="not found"):
        load_reference_library(str(tmp_path / "nowhere.py"))


def test_library_that_fails_to_import(tmp_path):
    path = _write(tmp_path, "broken.py", "raise RuntimeError('boom')\n")
    with pytest.raises(ReferenceLoadError, match="boom") as e:
        load_reference_library(path)
    assert e.value.filename == path


def test_unsupported_annotation(tmp_path):
    path = _write(tmp_path, "lists.py", """
class Bag:
    def items(self) -> list[int]:
        return []

__types__ = [Bag]
""")
    with pytest.raises(ReferenceLoadError, match="Unsupported") as e:
        load_reference_library(path)
    assert e.value.filename == path


def test_unannotated_member(tmp_path):
    path = _write(tmp_path, "loose.py", """
class Loose:
    def go(self, x):
        return x

__types__ = [Loose]
""")
    with pytest.raises(ReferenceLoadError, match="annotate"):
        load_reference_library(path)


def test_missing_reference_at_load_time(tmp_path):
    path = _write(tmp_path, "geometry.py", GEOMETRY)
    refs = ReferenceSet.default().with_path(path)
    image = Compilation.create(None, [parse("static class Empty { }")], refs).emit().raise_for_failure()
    os.remove(path)
    with pytest.raises(LoadError, match="failed to load"):
        ModuleLoader().load(image)
