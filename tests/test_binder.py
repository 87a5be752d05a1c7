## dynex — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from dataclasses import dataclass

import pytest

from dynex import parser
from dynex import nodes as N
from dynex import types as T
from dynex.binder import bind_script, bind_module, can_complete
from dynex.context import GlobalsBinding
from dynex.diagnostics import DiagnosticBag
from dynex.loader import ReferenceCache, ReferenceSet


@dataclass
class Globals:
    MaxValue: int


_CACHE = ReferenceCache()

def _libraries():
    return _CACHE.load_all(ReferenceSet.default())


def _bind(source: str, shape=Globals):
    bag = DiagnosticBag()
    tree = parser.parse(source, kind="script")
    bound = bind_script(tree.root, bag, _libraries(), GlobalsBinding(shape))
    return bound, [d.id for d in bag]


def _ids(source: str) -> list[str]:
    return _bind(source)[1]


def _module_ids(source: str) -> list[str]:
    bag = DiagnosticBag()
    bind_module([parser.parse(source).root], bag, _libraries())
    return [d.id for d in bag]


@pytest.mark.parametrize("source, expected", [
    ('int x = "a";', ['DX0029']),
    ('int x = 1; int x = 2;', ['DX0128']),
    ('var v;', ['DX0818']),
    ('var v = null;', ['DX0815']),
    ('break;', ['DX0139']),
    ('1 + 2;', ['DX0201']),
    ('bool b = 1 < "x";', ['DX0019']),
    ('int x = 1 / 0;', ['DX0020']),
    ('bool b = -true;', ['DX0023']),
    ('Math m = new Math();', ['DX0200']),
    ('int r = new Random().Next(1, 2, 3);', ['DX1501']),
    ('double d = Math.Sqrt("x");', ['DX1503']),
    ('double d = Math.Pow(2.0);', ['DX7036']),
    ('Math.PI = 3.0;', ['DX0191']),
    ('int n = Math.Nothing;', ['DX0117']),
    ('Foo f = null;', ['DX0246']),
    ('int x = (int)"3";', ['DX0030']),
    ('var r = new Random(); int n = r.Length;', ['DX0117']),
    ('int F() { }', ['DX0161']),
    ('void G() { return 1; }', ['DX0127']),
    ('int H() { return; }', ['DX0126']),
    ('int F() { return 1; } int x = F;', ['DX0428']),
    ('if (true) int y = 1;', ['DX1023', 'DX0219']),
    ('3 = 4;', ['DX0131']),
    ('int x = MaxValue > 0 ? 1 : "one";', ['DX0173']),
    ('double d = 1e400;', ['DX0594']),
])
def test_script_errors(source, expected):
    assert _ids(source) == expected


def test_every_error_is_reported_in_source_order():
    assert _ids('int a = b; string s = 5; Foo f = null;') == ['DX0103', 'DX0029', 'DX0246']


def test_error_positions():
    bag = DiagnosticBag(filename="demo.dxs")
    bind_script(parser.parse("int a = 1;\nint b = missing;", kind="script").root, bag, _libraries(), GlobalsBinding(Globals))
    [d] = bag
    assert (d.line, d.column, d.filename) == (2, 9, "demo.dxs")


def test_unreachable_code_is_reported_once():
    assert _ids('int F() { return 1; int a = 2; return a; }') == ['DX0162']


def test_unused_locals():
    ids = _ids('void F() { int a; int b = 2; int c = 3; int d = c; int e = d; F(); }')
    assert ids.count('DX0168') == 1
    assert ids.count('DX0219') == 2


def test_shadowing_outer_local():
    assert _ids('void F(int x) { { int x = 1; } }')[0] == 'DX0136'


def test_state_variables_never_warn():
    assert _ids('int a = 1; int b;') == []


def test_implicit_int_to_double_conversion_is_inserted():
    bound, ids = _bind('double d = MaxValue;')
    assert ids == []
    init = bound.unit.items[0].declarators[0].init
    assert isinstance(init, N.Convert) and init.type is T.DOUBLE


def test_state_and_global_symbols():
    bound, _ = _bind('int prediction = MaxValue;')
    [sym] = bound.state
    assert (sym.name, sym.kind, sym.type) == ('prediction', 'state', T.INT)
    init = bound.unit.items[0].declarators[0].init
    assert init.symbol.kind == 'global'


def test_overload_prefers_exact_match():
    source = """
    static class Over {
        static int F(int a) { return 1; }
        static int F(double a) { return 2; }
        static int Use() { return F(1) + F(1.5); }
    }"""
    assert _module_ids(source) == []


def test_ambiguous_overloads():
    source = """
    static class Over {
        static int Pick(int a, double b) { return 1; }
        static int Pick(double a, int b) { return 2; }
        static int Use() { return Pick(1, 1); }
    }"""
    assert _module_ids(source) == ['DX0121']


def test_duplicate_overload_signature():
    source = "static class Dup { static int F(int a) { return a; } static int F(int b) { return b; } }"
    assert _module_ids(source) == ['DX0111']


def test_module_requires_static_members():
    assert _module_ids("class C { int F() { return 1; } }") == ['DX0708']


def test_module_duplicate_classes():
    assert _module_ids("namespace A { static class C { } static class C { } }") == ['DX0101']


def test_module_readonly_field():
    source = "static class K { static readonly int V = 1; static void Set() { V = 2; } }"
    assert _module_ids(source) == ['DX0191']


def test_module_classes_reference_each_other():
    source = """
    namespace N {
        static class A { static int One() { return B.Two() - 1; } }
        static class B { static int Two() { return 2; } static int Count = A.One(); }
    }"""
    assert _module_ids(source) == []


def test_unknown_using():
    assert _module_ids("using Nowhere; static class C { }") == ['DX0246']


def test_can_complete():
    [loop, stop] = parser.parse("while (true) { } return;", kind="script").root.items
    assert not can_complete(loop)
    assert not can_complete(stop)
    [loop] = parser.parse("while (true) { if (x) break; }", kind="script").root.items
    assert can_complete(loop)
