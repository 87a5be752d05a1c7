## dynex — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import pytest

from dynex.parser import parse
from dynex.compilation import Compilation, EmitResult
from dynex.diagnostics import Ok, Failed
from dynex.image import EmittedModuleImage, MAGIC
from dynex.invoker import resolve, invoke
from dynex.modules import ModuleLoader, ModuleRegistry
from dynex.errors import CompileError, EmitFailure, LoadError, ResolutionError


MODEL = """
using System;

namespace Samples
{
    public static class Model2
    {
        public static int Predict(int maxValue)
        {
            var random = new Random();
            return random.Next(maxValue);
        }
    }
}
"""

LOOPS = """
static class Loops
{
    static int SumOdd(int n) {
        int s = 0;
        for (int i = 0; i < n; i++) {
            if (i % 2 == 0) continue;
            s += i;
        }
        return s;
    }
    static int CountDown(int n) {
        int steps = 0;
        do { n--; steps++; if (n == 1) continue; } while (n > 0);
        return steps;
    }
    static int FirstOver(int limit) {
        int x = 1;
        while (true) { x *= 2; if (x > limit) break; }
        return x;
    }
    static double Half(int x) { return x / 2.0; }
    static string Label(int x) { return x > 0 ? "pos" : "non-pos"; }
    static int Truncate(double d) { return (int)d; }
}
"""


def _emit(source, module_name=None, **kwargs) -> EmitResult:
    return Compilation.create(module_name, [parse(source, filename="test.dx")], **kwargs).emit()


def _load(source, loader=None):
    loader = loader or ModuleLoader()
    return loader.load(_emit(source).raise_for_failure())


def test_emit_success():
    result = _emit(MODEL)
    assert result.success
    assert isinstance(result.verdict, Ok)
    assert isinstance(result.image, EmittedModuleImage)
    assert result.image.data.startswith(MAGIC)
    assert "class T0_Model2" in result.python_source


def test_emit_failure_has_no_image():
    result = _emit("""
        static class Bad {
            public static int Predict(int maxValue) { maxValue = "oops"; return maxValue; }
        }""")
    assert not result.success
    assert result.image is None
    assert any(d.id == 'DX0029' and d.is_error() for d in result.diagnostics)
    assert isinstance(result.verdict, Failed)
    with pytest.raises(EmitFailure, match="DX0029"):
        result.raise_for_failure()
    with pytest.raises(LoadError):
        ModuleLoader().load(result.image)


def test_scripts_are_not_modules():
    with pytest.raises(CompileError):
        Compilation.create(None, [parse("int x = 1;", kind="script")])


def test_same_tree_feeds_several_compilations():
    tree = parse(MODEL)
    first = Compilation.create(None, [tree]).emit()
    second = Compilation.create(None, [tree]).emit()
    assert first.success and second.success
    assert first.diagnostics == second.diagnostics == ()


def test_load_and_invoke_predict():
    module = _load(MODEL)
    handle = resolve(module.symbols, "Model2", "Predict")
    assert handle.signature() == "int Samples.Model2.Predict(int maxValue)"
    for _ in range(20):
        assert 0 <= invoke(handle, [100]) < 100
    assert resolve(module.symbols, "Samples.Model2", "Predict").target is handle.target
    assert module.type_names == ["Samples.Model2"]
    assert module.get_type("Model2").__qualname__ == "Samples.Model2"


def test_image_is_consumed_once():
    loader = ModuleLoader()
    image = _emit(MODEL).image
    loader.load(image)
    assert image.consumed
    with pytest.raises(LoadError, match="already"):
        loader.load(image)


def test_tampered_image_is_rejected():
    data = bytearray(_emit(MODEL).image.data)
    data[20] ^= 0xFF
    with pytest.raises(LoadError, match="integrity"):
        ModuleLoader().load(EmittedModuleImage(bytes(data)))


def test_truncated_image_is_rejected():
    data = _emit(MODEL).image.data
    with pytest.raises(LoadError, match="integrity|truncated"):
        ModuleLoader().load(EmittedModuleImage(data[:len(data) // 2]))


def test_foreign_bytes_are_rejected():
    with pytest.raises(LoadError, match="not a dynex module"):
        ModuleLoader().load(EmittedModuleImage(b"\x7fELF" + bytes(64)))
    with pytest.raises(LoadError):
        ModuleLoader().load(b"DXIM")


def test_duplicate_module_name():
    loader = ModuleLoader()
    loader.load(_emit(MODEL, "shared").image)
    with pytest.raises(LoadError, match="already loaded"):
        loader.load(_emit(MODEL, "shared").image)


def test_registry():
    registry = ModuleRegistry()
    loader = ModuleLoader(registry)
    module = loader.load(_emit(MODEL, "named").image)
    assert "named" in registry and registry.get("named") is module
    assert list(registry) == [module]
    registry.remove("named")
    with pytest.raises(ResolutionError):
        registry.get("named")
    with pytest.raises(ResolutionError, match="named"):
        registry.remove("named")
    assert len(registry) == 0


def test_static_fields_initialise_on_load():
    module = _load("""
        static class Counter {
            static int Start = 40;
            static string Name = "counter";
            static int Next() { Start += 2; return Start; }
            static string Describe() { return Name + ":" + Start; }
        }""")
    next_ = resolve(module.symbols, "Counter", "Next")
    assert next_() == 42
    assert next_() == 44
    assert resolve(module.symbols, "Counter", "Describe")() == "counter:44"


def test_static_initialisation_fault():
    with pytest.raises(LoadError, match="Static initialisation") as e:
        _load("static class Boom { static int X = 1 / Zero(); static int Zero() { return 0; } }")
    assert isinstance(e.value.__cause__, ZeroDivisionError)


def test_control_flow():
    module = _load(LOOPS)
    call = lambda name, *args: resolve(module.symbols, "Loops", name)(*args)
    assert call("SumOdd", 10) == 1 + 3 + 5 + 7 + 9
    assert call("CountDown", 3) == 3
    assert call("CountDown", 0) == 1
    assert call("FirstOver", 100) == 128
    assert call("Half", 5) == 2.5
    assert (call("Label", 1), call("Label", 0)) == ("pos", "non-pos")
    assert call("Truncate", -2.7) == -2


def test_integer_semantics_match_scripts():
    module = _load("""
        static class Ints {
            static int Div(int a, int b) { return a / b; }
            static int Rem(int a, int b) { return a % b; }
            static int Post() { int i = 5; int j = i++; return i * 10 + j; }
        }""")
    div = resolve(module.symbols, "Ints", "Div")
    assert div(-7, 2) == -3
    assert resolve(module.symbols, "Ints", "Rem")(-7, 2) == -1
    assert resolve(module.symbols, "Ints", "Post")() == 65


def test_classes_call_each_other_across_namespaces():
    module = _load("""
        namespace A { static class One { static int Get() { return Two.Get() - 1; } } }
        namespace B { static class Two { static int Get() { return 2; } } }
    """)
    assert resolve(module.symbols, "One", "Get")() == 1


def test_string_members_in_modules():
    module = _load("""
        static class Text {
            static string Shout(string s) { return s.ToUpper() + "!"; }
            static int Size(string s) { return s.Length; }
            static bool Has(string s, string part) { return s.Contains(part); }
        }""")
    assert resolve(module.symbols, "Text", "Shout")("hey") == "HEY!"
    assert resolve(module.symbols, "Text", "Size")("four") == 4
    assert resolve(module.symbols, "Text", "Has")("haystack", "st") is True
