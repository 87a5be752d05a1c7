## dynex — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import pytest

from dynex.parser import parse
from dynex.compilation import Compilation
from dynex.modules import ModuleLoader
from dynex.invoker import resolve, invoke, CallableHandle
from dynex.errors import AmbiguousMatchError, SignatureMismatchError, InvocationError, ResolutionError


CALC = """
namespace Math2
{
    static class Calc
    {
        static int Add(int a, int b) { return a + b; }
        static double Add(double a, double b) { return a + b; }
        static int Div(int a, int b) { return a / b; }
        static string Greet(string name) { return "hi " + name; }
        static void Nothing() { }
    }
}
namespace Other
{
    static class Calc { static int Add(int a, int b) { return 0; } }
}
"""


@pytest.fixture(scope="module")
def symbols():
    image = Compilation.create(None, [parse(CALC)]).emit().raise_for_failure()
    return ModuleLoader().load(image).symbols


def test_overloads_need_a_signature(symbols):
    with pytest.raises(AmbiguousMatchError, match="overloads"):
        resolve(symbols, "Math2.Calc", "Add")


def test_signature_selects_overload(symbols):
    ints = resolve(symbols, "Math2.Calc", "Add", ("int", "int"))
    doubles = resolve(symbols, "Math2.Calc", "Add", "double, double")
    assert ints.param_types == ("int", "int")
    assert invoke(ints, [1, 2]) == 3
    result = invoke(doubles, [1, 2])
    assert result == 3.0 and isinstance(result, float)


def test_signature_mismatch(symbols):
    with pytest.raises(SignatureMismatchError):
        resolve(symbols, "Math2.Calc", "Add", ("string",))


def test_simple_type_name_must_be_unique(symbols):
    with pytest.raises(AmbiguousMatchError, match="full name"):
        resolve(symbols, "Calc", "Greet")
    assert resolve(symbols, "Other.Calc", "Add")(5, 6) == 0


def test_unknown_type_or_member(symbols):
    with pytest.raises(ResolutionError, match="Missing"):
        resolve(symbols, "Missing", "Add")
    with pytest.raises(ResolutionError, match="Subtract"):
        resolve(symbols, "Math2.Calc", "Subtract")
    assert ("Math2.Calc", "Greet") in symbols
    assert ("Math2.Calc", "Subtract") not in symbols


def test_invoke_checks_arity(symbols):
    greet = resolve(symbols, "Math2.Calc", "Greet")
    with pytest.raises(InvocationError, match="takes 1"):
        invoke(greet, [])
    with pytest.raises(InvocationError):
        invoke(greet, ["a", "b"])


def test_invoke_checks_types(symbols):
    div = resolve(symbols, "Math2.Calc", "Div")
    with pytest.raises(InvocationError, match="expects int"):
        invoke(div, ["1", 2])
    with pytest.raises(InvocationError):
        invoke(div, [1.5, 2])
    with pytest.raises(InvocationError):
        invoke(div, [True, 2])


def test_invoke_wraps_faults(symbols):
    div = resolve(symbols, "Math2.Calc", "Div")
    with pytest.raises(InvocationError, match="faulted") as e:
        invoke(div, [1, 0])
    assert isinstance(e.value.__cause__, ZeroDivisionError)


def test_void_and_string_members(symbols):
    assert resolve(symbols, "Math2.Calc", "Greet")("bob") == "hi bob"
    nothing = resolve(symbols, "Math2.Calc", "Nothing")
    assert nothing.returns.name == "void"
    assert nothing() is None


def test_handles_describe_themselves(symbols):
    handle = resolve(symbols, "Math2.Calc", "Div")
    assert isinstance(handle, CallableHandle)
    assert handle.arity == 2
    assert handle.signature() == "int Math2.Calc.Div(int a, int b)"
    assert sum(1 for _ in symbols) == 6
