## dynex — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import math
import threading
from dataclasses import dataclass

import pytest

from dynex import scripting
from dynex.scripting import ScriptEngine, CancellationToken, RunState
from dynex.diagnostics import CompilationOptions
from dynex.errors import (CompileError, GlobalsMismatchError, ScriptRuntimeError, ExecutionCancelled,
                          VariableNotFoundError)


@dataclass
class Globals:
    MaxValue: int


def _run(source: str, globals_=None, shape=Globals) -> RunState:
    engine = ScriptEngine()
    script = engine.compile(source, shape)
    return engine.run(script, globals_ if globals_ is not None else Globals(100))


def test_half_of_max_value():
    state = _run("int prediction = MaxValue / 2;")
    assert state["prediction"] == 50


def test_state_lists_every_top_level_variable_in_order():
    state = _run("""
        using System;
        var random = new Random(7);
        int prediction = random.Next(MaxValue);
        double ratio = prediction / 100.0;
    """)
    assert list(state) == ['random', 'prediction', 'ratio']
    assert [v.type for v in state.variables] == ['Random', 'int', 'double']
    assert 0 <= state["prediction"] < 100
    assert state["ratio"] == state["prediction"] / 100.0


def test_seeded_random_repeats_across_runs():
    engine = ScriptEngine()
    script = engine.compile("var random = new Random(42); int prediction = random.Next(MaxValue);", Globals)
    first = engine.run(script, Globals(1000))
    second = engine.run(script, Globals(1000))
    assert first["prediction"] == second["prediction"]
    assert first is not second


def test_missing_variable_raises():
    state = _run("int prediction = 1;")
    with pytest.raises(VariableNotFoundError):
        state["other"]
    with pytest.raises(KeyError):
        state.get_variable("other")
    assert "other" not in state


def test_undeclared_identifier_is_a_compile_error():
    with pytest.raises(CompileError, match="MaxValu") as e:
        ScriptEngine().compile("int prediction = MaxValu / 2;", Globals)
    assert [d.id for d in e.value.diagnostics] == ['DX0103']


def test_compile_reports_every_error():
    with pytest.raises(CompileError) as e:
        ScriptEngine().compile('int a = missing; string s = MaxValue; bool b = "x";', Globals)
    assert [d.id for d in e.value.diagnostics] == ['DX0103', 'DX0029', 'DX0029']


def test_warnings_do_not_fail_compilation():
    script = ScriptEngine().compile("{ int unused = 1; } int prediction = 2;", Globals)
    assert [d.id for d in script.diagnostics] == ['DX0219']


def test_warnings_as_errors():
    options = CompilationOptions(warnings_as_errors=True)
    with pytest.raises(CompileError, match="DX0219"):
        ScriptEngine().compile("{ int unused = 1; } int prediction = 2;", Globals, options=options)


def test_run_does_not_parse_or_bind_again(monkeypatch):
    engine = ScriptEngine()
    script = engine.compile("int prediction = MaxValue + 1;", Globals)

    def fail(*args, **kwargs):
        raise AssertionError("script was compiled again")
    monkeypatch.setattr(scripting, 'parse', fail)
    monkeypatch.setattr(scripting, 'bind_script', fail)

    assert engine.run(script, Globals(1))["prediction"] == 2
    assert engine.run(script, Globals(2))["prediction"] == 3


def test_globals_mismatch():
    engine = ScriptEngine()
    script = engine.compile("int prediction = MaxValue;", Globals)
    with pytest.raises(GlobalsMismatchError, match="MaxValue"):
        engine.run(script, {"MaxValue": "ten"})
    with pytest.raises(GlobalsMismatchError):
        engine.run(script, None)
    with pytest.raises(GlobalsMismatchError, match="missing"):
        engine.run(script, {"Other": 1})


def test_globals_as_mapping():
    engine = ScriptEngine()
    script = engine.compile("int prediction = MaxValue * 2;", {"MaxValue": int})
    assert engine.run(script, {"MaxValue": 21})["prediction"] == 42


def test_globals_are_written_back():
    g = Globals(10)
    _run("MaxValue = MaxValue + 1; MaxValue++;", g)
    assert g.MaxValue == 12


def test_runtime_fault_is_wrapped():
    with pytest.raises(ScriptRuntimeError) as e:
        _run("int zero = 0;\nint prediction = MaxValue / zero;")
    assert isinstance(e.value.__cause__, ZeroDivisionError)
    assert e.value.line == 2


def test_library_fault_is_wrapped():
    with pytest.raises(ScriptRuntimeError, match="ValueError"):
        _run("var r = new Random(); int n = r.Next(-1);")


def test_return_sets_result_value():
    state = _run("int half = MaxValue / 2; return half * 3;")
    assert state.return_value == 150
    assert state["half"] == 50


def test_integer_and_floating_point_semantics():
    state = _run("int a = -7 / 2; int b = -7 % 2; double c = 1.0 / 0; double d = 0.0 / 0; int e = (int)-2.9;")
    assert (state["a"], state["b"], state["e"]) == (-3, -1, -2)
    assert state["c"] == math.inf
    assert math.isnan(state["d"])


def test_integers_do_not_overflow():
    state = _run("int big = 2147483647; big = big * 4;")
    assert state["big"] == 2147483647 * 4


def test_string_concatenation_and_members():
    state = _run('string s = "n=" + 3 + " ok=" + true; int n = s.Length; string t = (2.0).ToString(); string u = s.ToUpper();')
    assert state["s"] == "n=3 ok=True"
    assert state["n"] == len("n=3 ok=True")
    assert state["t"] == "2"
    assert state["u"] == "N=3 OK=TRUE"


def test_loops_break_and_continue():
    state = _run("""
        int sum = 0;
        for (int i = 0; i < 10; i++) {
            if (i % 2 == 0) continue;
            if (i > 7) break;
            sum += i;
        }
        int n = 0;
        do { n++; } while (n < 5);
        int w = 0;
        while (true) { w += 3; if (w > 10) break; }
    """)
    assert state["sum"] == 1 + 3 + 5 + 7
    assert state["n"] == 5
    assert state["w"] == 12


def test_script_functions_and_recursion():
    state = _run("""
        int Fib(int n) { if (n < 2) return n; return Fib(n - 1) + Fib(n - 2); }
        int prediction = Fib(10);
    """)
    assert state["prediction"] == 55
    assert list(state) == ['prediction']


def test_functions_share_script_state():
    state = _run("int total = 0; void Add(int x) { total += x; } Add(3); Add(4);")
    assert state["total"] == 7


def test_conditional_and_logic():
    state = _run('string label = MaxValue > 50 && !(MaxValue == 0) ? "big" : "small"; double mixed = true ? 1 : 2.5;')
    assert state["label"] == "big"
    assert state["mixed"] == 1.0 and isinstance(state["mixed"], float)


def test_cancelled_before_start():
    token = CancellationToken()
    token.cancel()
    engine = ScriptEngine()
    script = engine.compile("int prediction = 1;", Globals)
    with pytest.raises(ExecutionCancelled):
        engine.run(script, Globals(1), cancel=token)


def test_cancellation_stops_infinite_loop():
    engine = ScriptEngine()
    script = engine.compile("int i = 0; while (true) { i++; }", Globals)
    with pytest.raises(ExecutionCancelled):
        engine.run(script, Globals(1), cancel=CancellationToken.after(0.05))


def test_cancellation_reaches_into_functions():
    engine = ScriptEngine()
    script = engine.compile("int Spin(int n) { while (true) { n++; } } int r = Spin(0);", Globals)
    token = CancellationToken()
    threading.Timer(0.05, token.cancel).start()
    with pytest.raises(ExecutionCancelled):
        engine.run(script, Globals(1), cancel=token)


def test_continue_with_previous_state():
    engine = ScriptEngine()
    first = engine.compile("int counter = 1;", Globals)
    second = first.continue_with("counter = counter + 1; int doubled = counter * 2;")

    s1 = engine.run(first, Globals(0))
    s2 = engine.run(second, Globals(0), s1)
    assert (s2["counter"], s2["doubled"]) == (2, 4)
    assert s1["counter"] == 1
    assert list(s2) == ['counter', 'doubled']


def test_previous_variables_carry_over_untouched():
    engine = ScriptEngine()
    first = engine.compile("int a = 5;", Globals)
    second = first.continue_with("int b = 2;")
    state = second.run(Globals(0), first.run(Globals(0)))
    assert state.as_dict() == {'a': 5, 'b': 2}


def test_redeclaring_shadows_earlier_submission():
    engine = ScriptEngine()
    first = engine.compile("int a = 5;", Globals)
    second = first.continue_with('string a = "five";')
    state = second.run(Globals(0), first.run(Globals(0)))
    assert state["a"] == "five"
    assert state.get_variable("a").type == 'string'


def test_concurrent_continuations_share_one_state():
    engine = ScriptEngine()
    first = engine.compile("int seed = 3;", Globals)
    second = first.continue_with("int result = seed * MaxValue;")
    state = first.run(Globals(0))

    results = []
    def work(n):
        results.append(second.run(Globals(n), state)["result"])
    threads = [threading.Thread(target=work, args=(n,)) for n in range(8)]
    for t in threads: t.start()
    for t in threads: t.join()
    assert sorted(results) == [3 * n for n in range(8)]
    assert list(state) == ['seed']
