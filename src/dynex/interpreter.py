## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# Script evaluation.  A bound script is compiled once into nested Python closures, so that
# running it again only pays for evaluating the body, never for walking or checking the tree.
#

from typing import Any, Callable
from dataclasses import dataclass

from . import nodes as N
from . import types as T
from . import operators as ops
from .context import read_global, write_global
from .binder import BoundScript


class _Signal(Exception):
    """Non-local control flow inside a script body."""

class _Break(_Signal): pass
class _Continue(_Signal): pass

class _Return(_Signal):
    def __init__(self, value):
        self.value = value


def _never_cancelled(): pass


class Machine:
    """State shared by every frame of a single run."""
    __slots__ = ('state', 'globals', 'functions', 'check')

    def __init__(self, state: dict, globals_: Any, functions: dict, cancel=None):
        self.state = state
        self.globals = globals_
        self.functions = functions
        self.check = cancel.raise_if_cancelled if cancel is not None else _never_cancelled


class Frame:
    __slots__ = ('locals', 'machine')

    def __init__(self, locals_: dict, machine: Machine):
        self.locals = locals_
        self.machine = machine


@dataclass
class Program:
    body: Callable
    functions: dict

    def execute(self, state: dict, globals_: Any, cancel=None) -> Any:
        """Run the top-level statements, updating `state` in place; returns the script's result value."""
        machine = Machine(state, globals_, self.functions, cancel)
        try:
            self.body(Frame({}, machine))
        except _Return as r:
            return r.value
        return None


class _Compiler:
    def __init__(self):
        self.functions: dict[T.MethodSymbol, Callable] = {}

    # Storage ──────────────────────────────────────────────────────────────────────────────────
    def place(self, target: N.Expr):
        """Returns `(locate, get, put)` closures for a storage location; `locate` evaluates the owning object once."""
        sym = target.symbol
        nowhere = lambda f: None

        if isinstance(sym, T.LocalSymbol):
            name, t = sym.name, sym.type
            match sym.kind:
                case "local" | "param":
                    def put(f, o, v): f.locals[name] = v; return v
                    return nowhere, (lambda f, o: f.locals[name]), put
                case "state":
                    def put(f, o, v): f.machine.state[name] = v; return v
                    return nowhere, (lambda f, o: f.machine.state[name]), put
                case "global":
                    def put(f, o, v): write_global(f.machine.globals, name, v); return v
                    return nowhere, (lambda f, o: T.coerce(read_global(f.machine.globals, name), t)), put

        assert isinstance(sym, T.FieldSymbol), f"unbound storage {target!r}"
        py_name = sym.python_name
        if sym.is_static:
            owner = sym.owner.python_type
            return nowhere, (lambda f, o: getattr(owner, py_name)), None

        locate = self.expr(target.target)
        if sym.impl is not None:
            impl = sym.impl
            return locate, (lambda f, o: ops.call_intrinsic(impl, o)), None
        return locate, (lambda f, o: ops.get_member(o, py_name)), (lambda f, o, v: ops.set_member(o, py_name, v))

    # Expressions ──────────────────────────────────────────────────────────────────────────────
    def expr(self, e: N.Expr) -> Callable:
        return getattr(self, f"expr_{type(e).__name__.lower()}")(e)

    def expr_literal(self, e: N.Literal):
        value = e.value
        return lambda f: value

    def expr_name(self, e: N.Name):
        _, get, _ = self.place(e)
        return lambda f: get(f, None)

    def expr_member(self, e: N.Member):
        locate, get, _ = self.place(e)
        return lambda f: get(f, locate(f))

    def expr_call(self, e: N.Call):
        m: T.MethodSymbol = e.symbol
        args = [self.expr(a) for a in e.args]

        if m.decl is not None:
            functions = self.functions
            def call(f):
                f.machine.check()
                return functions[m](f.machine, [a(f) for a in args])
            return call

        ret = m.return_type
        if m.intrinsic:
            impl, target = m.impl, self.expr(e.callee.target)
            return lambda f: ops.call_intrinsic(impl, target(f), *[a(f) for a in args])
        if m.is_static:
            impl = m.impl
            return lambda f: T.coerce(impl(*[a(f) for a in args]), ret)
        py_name, target = m.python_name, self.expr(e.callee.target)
        return lambda f: T.coerce(ops.call_member(target(f), py_name, *[a(f) for a in args]), ret)

    def expr_new(self, e: N.New):
        cls, args = e.symbol.impl, [self.expr(a) for a in e.args]
        return lambda f: cls(*[a(f) for a in args])

    def expr_unary(self, e: N.Unary):
        v = self.expr(e.operand)
        match e.op:
            case '-': return lambda f: -v(f)
            case '!': return lambda f: not v(f)
        return v

    def expr_binary(self, e: N.Binary):
        a, b = self.expr(e.left), self.expr(e.right)
        if e.op == '&&': return lambda f: a(f) and b(f)
        if e.op == '||': return lambda f: a(f) or b(f)
        fn = ops.binary_function(e.op, e.type if e.op in ('+', '-', '*', '/', '%') else e.left.type)
        return lambda f: fn(a(f), b(f))

    def expr_conditional(self, e: N.Conditional):
        test, then, other = self.expr(e.test), self.expr(e.then), self.expr(e.other)
        return lambda f: then(f) if test(f) else other(f)

    def expr_assign(self, e: N.Assign):
        locate, get, put = self.place(e.target)
        value = self.expr(e.value)
        if e.op == '=':
            return lambda f: put(f, locate(f), value(f))

        fn = ops.binary_function(e.op[:-1], e.target.type)
        def compound(f):
            o = locate(f)
            return put(f, o, fn(get(f, o), value(f)))
        return compound

    def expr_postincrement(self, e: N.PostIncrement):
        locate, get, put = self.place(e.target)
        delta = 1 if e.op == '++' else -1
        def step(f):
            o = locate(f)
            old = get(f, o)
            put(f, o, old + delta)
            return old
        return step

    def expr_cast(self, e: N.Cast):
        v, source, target = self.expr(e.operand), e.operand.type, e.type
        return lambda f: ops.convert(v(f), source, target)

    expr_convert = expr_cast

    # Statements ───────────────────────────────────────────────────────────────────────────────
    def stmt(self, s: N.Stmt) -> Callable:
        run = getattr(self, f"stmt_{type(s).__name__.lower()}")(s)
        line = s.line

        def step(f):
            f.machine.check()
            try:
                run(f)
            except _Signal:
                raise
            except Exception as exc:
                if getattr(exc, 'dx_line', None) is None: exc.dx_line = line
                raise
        return step

    def block(self, statements: list) -> Callable:
        steps = [self.stmt(s) for s in statements if not isinstance(s, N.Empty)]
        def run(f):
            for s in steps: s(f)
        return run

    def stmt_block(self, s: N.Block):
        return self.block(s.statements)

    def stmt_vardecl(self, s: N.VarDecl):
        actions = []
        for d in s.declarators:
            sym: T.LocalSymbol = d.symbol
            if sym.kind == "state" and d.init is None: continue  # Initialised before the run starts.
            init = self.expr(d.init) if d.init is not None else (lambda f, v=T.default_value(sym.type): v)
            actions.append((sym.kind == "state", sym.name, init))

        def run(f):
            for is_state, name, init in actions:
                (f.machine.state if is_state else f.locals)[name] = init(f)
        return run

    def stmt_exprstmt(self, s: N.ExprStmt):
        return self.expr(s.expr)

    def stmt_if(self, s: N.If):
        test, then = self.expr(s.test), self.stmt(s.then)
        other = self.stmt(s.other) if s.other is not None else None
        def run(f):
            if test(f): then(f)
            elif other is not None: other(f)
        return run

    def stmt_while(self, s: N.While):
        test, body = self.expr(s.test), self.stmt(s.body)
        def run(f):
            while test(f):
                f.machine.check()
                try:
                    body(f)
                except _Break:
                    break
                except _Continue:
                    continue
        return run

    def stmt_dowhile(self, s: N.DoWhile):
        test, body = self.expr(s.test), self.stmt(s.body)
        def run(f):
            while True:
                f.machine.check()
                try:
                    body(f)
                except _Break:
                    break
                except _Continue:
                    pass
                if not test(f): break
        return run

    def stmt_for(self, s: N.For):
        init = [self.stmt(i) for i in s.init]
        test = self.expr(s.test) if s.test is not None else (lambda f: True)
        update = [self.expr(u) for u in s.update]
        body = self.stmt(s.body)
        def run(f):
            for i in init: i(f)
            while test(f):
                f.machine.check()
                try:
                    body(f)
                except _Break:
                    break
                except _Continue:
                    pass
                for u in update: u(f)
        return run

    def stmt_break(self, s):
        def run(f): raise _Break()
        return run

    def stmt_continue(self, s):
        def run(f): raise _Continue()
        return run

    def stmt_return(self, s: N.Return):
        value = self.expr(s.value) if s.value is not None else (lambda f: None)
        def run(f): raise _Return(value(f))
        return run

    def stmt_empty(self, s):
        return lambda f: None

    # Functions ────────────────────────────────────────────────────────────────────────────────
    def function(self, decl: N.FunctionDecl) -> Callable:
        names = [p.name for p in decl.params]
        body = self.block(decl.body.statements)

        def invoke(machine: Machine, args: list):
            frame = Frame(dict(zip(names, args)), machine)
            try:
                body(frame)
            except _Return as r:
                return r.value
            return None
        return invoke


def compile_script(bound: BoundScript) -> Program:
    """Turn a successfully bound script into an executable `Program`."""
    compiler = _Compiler()
    statements = []
    for item in bound.unit.items:
        if isinstance(item, N.FunctionDecl):
            compiler.functions[item.symbol] = compiler.function(item)
        else:
            statements.append(item)
    return Program(compiler.block(statements), compiler.functions)
