## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# Translates a bound module into Python source.  Names inside the generated code follow a
# fixed scheme: `_rt` is the operators module, `R{i}_{Name}` the classes of reference
# library `i`, `T{i}_{Name}` the module's own classes, `v_{name}` locals and parameters.
#

from . import nodes as N
from . import types as T
from . import operators as ops
from .binder import BoundModule


_BUILTIN_ATTRS = {T.INT: 'INT', T.DOUBLE: 'DOUBLE', T.BOOL: 'BOOL', T.STRING: 'STRING',
                  T.OBJECT: 'OBJECT', T.NULL: 'NULL'}


def reference_binding_name(index: int, type_name: str) -> str:
    return f"R{index}_{type_name}"


def type_label(t: T.TypeSymbol) -> str:
    """Name of a type in the exported symbol table."""
    return t.name if t.kind in ('primitive', 'null') else t.full_name


class PythonEmitter:
    def __init__(self, bound: BoundModule):
        self.bound = bound
        self.lines: list[str] = []
        self.names: dict[T.TypeSymbol, str] = {}
        self.counter = 0

        for i, lib in enumerate(bound.libraries):
            for name, sym in lib.types.items():
                self.names[sym] = reference_binding_name(i, name)
        for i, cls in enumerate(bound.classes):
            self.names[cls.symbol] = f"T{i}_{cls.name}"

    def write(self, depth: int, text: str) -> None:
        self.lines.append('    ' * depth + text)

    def fresh(self, prefix: str) -> str:
        self.counter += 1
        return f"_{prefix}{self.counter}"

    # Expressions ──────────────────────────────────────────────────────────────────────────────
    def expr(self, e: N.Expr) -> str:
        return getattr(self, f"expr_{type(e).__name__.lower()}")(e)

    def expr_literal(self, e: N.Literal) -> str:
        return repr(e.value)

    def owner_of(self, f: T.FieldSymbol | T.MethodSymbol) -> str:
        return self.names[f.owner]

    def expr_name(self, e: N.Name) -> str:
        sym = e.symbol
        if isinstance(sym, T.LocalSymbol): return f"v_{sym.name}"
        return f"{self.owner_of(sym)}.{sym.python_name}"

    def expr_member(self, e: N.Member) -> str:
        f: T.FieldSymbol = e.symbol
        if f.is_static: return f"{self.owner_of(f)}.{f.python_name}"
        target = self.expr(e.target)
        if f.impl is not None: return f"_rt.call_intrinsic(_rt.{f.impl.__name__}, {target})"
        return f"_rt.get_member({target}, {f.python_name!r})"

    def expr_call(self, e: N.Call) -> str:
        m: T.MethodSymbol = e.symbol
        args = [self.expr(a) for a in e.args]
        if m.intrinsic:
            return f"_rt.call_intrinsic(_rt.{m.impl.__name__}, {', '.join([self.expr(e.callee.target), *args])})"
        if m.is_static:
            call = f"{self.owner_of(m)}.{m.python_name}({', '.join(args)})"
        else:
            call = f"_rt.call_member({', '.join([self.expr(e.callee.target), repr(m.python_name), *args])})"
        if m.return_type is T.DOUBLE and m.decl is None:
            call = f"float({call})"
        return call

    def expr_new(self, e: N.New) -> str:
        return f"{self.names[e.type]}({', '.join(self.expr(a) for a in e.args)})"

    def expr_unary(self, e: N.Unary) -> str:
        operand = self.expr(e.operand)
        return f"(not {operand})" if e.op == '!' else f"({e.op}{operand})"

    def expr_binary(self, e: N.Binary) -> str:
        a, b = self.expr(e.left), self.expr(e.right)
        if e.op in ('&&', '||'): return f"({a} {'and' if e.op == '&&' else 'or'} {b})"
        return self.apply(e.op, e.type if e.op in ('+', '-', '*', '/', '%') else e.left.type, a, b)

    def apply(self, op: str, t: T.TypeSymbol, a: str, b: str) -> str:
        if (helper := ops.binary_helper(op, t)) is not None:
            return f"_rt.{helper}({a}, {b})"
        return f"({a} {op} {b})"

    def function_ref(self, op: str, t: T.TypeSymbol) -> str:
        helper = ops.binary_helper(op, t)
        return f"_rt.{helper}" if helper else f"_rt.NATIVE[{op!r}]"

    def expr_conditional(self, e: N.Conditional) -> str:
        return f"({self.expr(e.then)} if {self.expr(e.test)} else {self.expr(e.other)})"

    def _storage(self, target: N.Expr) -> tuple[str, str | None]:
        """Returns `(owner, attribute)` for fields, or `(variable, None)` for locals."""
        sym = target.symbol
        if isinstance(sym, T.LocalSymbol): return f"v_{sym.name}", None
        if sym.is_static: return self.owner_of(sym), sym.python_name
        return self.expr(target.target), sym.python_name

    def expr_assign(self, e: N.Assign) -> str:
        owner, attr = self._storage(e.target)
        value = self.expr(e.value)
        if e.op == '=':
            return f"({owner} := {value})" if attr is None else f"_rt.set_member({owner}, {attr!r}, {value})"
        op = e.op[:-1]
        if attr is None:
            return f"({owner} := {self.apply(op, e.target.type, owner, value)})"
        return f"_rt.update_member({owner}, {attr!r}, {self.function_ref(op, e.target.type)}, {value})"

    def expr_postincrement(self, e: N.PostIncrement) -> str:
        owner, attr = self._storage(e.target)
        delta = 1 if e.op == '++' else -1
        if attr is None:
            return f"({owner}, ({owner} := {owner} + {delta}))[0]"
        return f"_rt.post_update({owner}, {attr!r}, {delta})"

    def expr_cast(self, e: N.Cast) -> str:
        operand, source, target = self.expr(e.operand), e.operand.type, e.type
        if source is target or target is T.OBJECT: return operand
        if source is T.INT and target is T.DOUBLE: return f"float({operand})"
        return f"_rt.convert({operand}, _rt.T.{_BUILTIN_ATTRS[source]}, _rt.T.{_BUILTIN_ATTRS[target]})"

    expr_convert = expr_cast

    # Statements ───────────────────────────────────────────────────────────────────────────────
    def statement_expr(self, e: N.Expr) -> str:
        """Plain statement forms for assignments, which read better than their expression forms."""
        if isinstance(e, N.Assign):
            owner, attr = self._storage(e.target)
            place = owner if attr is None else f"{owner}.{attr}"
            if e.op == '=' or ops.binary_helper(e.op[:-1], e.target.type) is None:
                if attr is None or e.target.symbol.is_static:
                    return f"{place} {e.op} {self.expr(e.value)}"
        if isinstance(e, N.PostIncrement):
            owner, attr = self._storage(e.target)
            if attr is None or e.target.symbol.is_static:
                place = owner if attr is None else f"{owner}.{attr}"
                return f"{place} {'+' if e.op == '++' else '-'}= 1"
        return self.expr(e)

    def body(self, depth: int, statements: list) -> None:
        start = len(self.lines)
        for s in statements: self.stmt(depth, s)
        if len(self.lines) == start: self.write(depth, 'pass')

    def embedded(self, depth: int, stmt: N.Stmt) -> None:
        self.body(depth, stmt.statements if isinstance(stmt, N.Block) else [stmt])

    def stmt(self, depth: int, s: N.Stmt) -> None:
        match s:
            case N.Block():
                for inner in s.statements: self.stmt(depth, inner)
            case N.VarDecl():
                for d in s.declarators:
                    value = self.expr(d.init) if d.init is not None else repr(T.default_value(d.symbol.type))
                    self.write(depth, f"v_{d.name} = {value}")
            case N.ExprStmt():
                self.write(depth, self.statement_expr(s.expr))
            case N.If():
                self.write(depth, f"if {self.expr(s.test)}:")
                self.embedded(depth + 1, s.then)
                if s.other is not None:
                    self.write(depth, "else:")
                    self.embedded(depth + 1, s.other)
            case N.While():
                self.write(depth, f"while {self.expr(s.test)}:")
                self.embedded(depth + 1, s.body)
            case N.DoWhile():
                # The flag lets `continue` fall through to the condition, as in the source loop.
                first = self.fresh('first')
                self.write(depth, f"{first} = True")
                self.write(depth, f"while {first} or {self.expr(s.test)}:")
                self.write(depth + 1, f"{first} = False")
                self.embedded(depth + 1, s.body)
            case N.For():
                for init in s.init: self.stmt(depth, init)
                first = self.fresh('first')
                self.write(depth, f"{first} = True")
                self.write(depth, "while True:")
                if s.update:
                    self.write(depth + 1, f"if not {first}:")
                    for u in s.update: self.write(depth + 2, self.statement_expr(u))
                self.write(depth + 1, f"{first} = False")
                if s.test is not None:
                    self.write(depth + 1, f"if not {self.expr(s.test)}: break")
                self.embedded(depth + 1, s.body)
            case N.Break():
                self.write(depth, "break")
            case N.Continue():
                self.write(depth, "continue")
            case N.Return():
                self.write(depth, "return" if s.value is None else f"return {self.expr(s.value)}")
            case N.Empty():
                pass

    # Declarations ─────────────────────────────────────────────────────────────────────────────
    def emit(self, module_name: str) -> tuple[str, dict]:
        self.write(0, f"# dynex module `{module_name}`")
        exports = {}
        for cls in self.bound.classes:
            exports[cls.full_name] = self.emit_class(cls)

        initialisers = [(cls, d) for cls in self.bound.classes for m in cls.members
                        if isinstance(m, N.FieldDecl) for d in m.declarators if d.init is not None]
        if initialisers:
            self.write(0, "")
            self.write(0, "# Static initialisation, in declaration order.")
        for cls, d in initialisers:
            self.write(0, f"{self.names[cls.symbol]}.{d.symbol.python_name} = {self.expr(d.init)}")
        return '\n'.join(self.lines) + '\n', exports

    def emit_class(self, cls: N.ClassDecl) -> dict:
        self.write(0, "")
        self.write(0, f"class {self.names[cls.symbol]}:")
        self.write(1, f"__qualname__ = {cls.full_name!r}")
        members = []
        for m in cls.members:
            if isinstance(m, N.FieldDecl):
                for d in m.declarators:
                    f: T.FieldSymbol = d.symbol
                    self.write(1, f"{f.python_name} = {T.default_value(f.type)!r}")
                    members.append({'kind': 'field', 'name': f.name, 'python_name': f.python_name,
                                    'type': type_label(f.type), 'read_only': f.read_only})
            else:
                method: T.MethodSymbol = m.symbol
                self.write(0, "")
                self.write(1, "@staticmethod")
                self.write(1, f"def {method.python_name}({', '.join(f'v_{p.name}' for p in m.params)}):")
                self.body(2, m.body.statements)
                members.append({'kind': 'method', 'name': method.name, 'python_name': method.python_name,
                                'params': [[p.name, type_label(p.type)] for p in method.params],
                                'returns': type_label(method.return_type)})
        return {'name': cls.name, 'namespace': cls.namespace, 'python_name': self.names[cls.symbol],
                'members': members}


def emit_python(bound: BoundModule, module_name: str) -> tuple[str, dict]:
    """Generate the Python source of a module and its exported symbol table."""
    return PythonEmitter(bound).emit(module_name)
