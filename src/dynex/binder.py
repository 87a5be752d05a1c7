## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# Semantic binding: resolves names, types and overloads, inserts implicit conversions and
# annotates the syntax tree in place.  Every problem is reported to a `DiagnosticBag`
# and binding carries on, so callers see all errors at once.
#

import math
from dataclasses import dataclass, field

from . import nodes as N
from . import types as T
from . import operators  # noqa: F401  (registers string and common members)
from .loader import ReferenceLibrary
from .context import GlobalsBinding
from .diagnostics import DiagnosticBag, Diagnostic


STATEMENT_EXPRESSIONS = (N.Assign, N.PostIncrement, N.Call, N.New)


class Scope:
    def __init__(self, parent: "Scope | None" = None, *, boundary: bool = False):
        self.parent = parent
        self.boundary = boundary
        self.symbols: dict[str, T.LocalSymbol] = {}

    def lookup(self, name: str) -> T.LocalSymbol | None:
        scope = self
        while scope is not None:
            if (sym := scope.symbols.get(name)) is not None: return sym
            scope = scope.parent
        return None

    def lookup_in_function(self, name: str) -> T.LocalSymbol | None:
        """Search enclosing scopes up to and including the nearest function boundary."""
        scope = self
        while scope is not None:
            if (sym := scope.symbols.get(name)) is not None: return sym
            if scope.boundary: return None
            scope = scope.parent
        return None

    def declare(self, sym: T.LocalSymbol) -> T.LocalSymbol:
        self.symbols[sym.name] = sym
        return sym


@dataclass
class BoundScript:
    unit: N.ScriptUnit
    container: T.TypeSymbol
    state: list[T.LocalSymbol]
    previous: list[T.LocalSymbol]
    globals: GlobalsBinding
    libraries: list[ReferenceLibrary]
    diagnostics: list[Diagnostic] = field(default_factory=list)


@dataclass
class BoundModule:
    units: list[N.ModuleUnit]
    classes: list[N.ClassDecl]
    libraries: list[ReferenceLibrary]
    diagnostics: list[Diagnostic] = field(default_factory=list)


@dataclass
class _Function:
    """Binding context of the function body currently being bound."""
    return_type: T.TypeSymbol | None       # None at script top-level, where `return` sets the result.
    name: str
    locals: list[T.LocalSymbol] = field(default_factory=list)
    loop_depth: int = 0


class Binder:
    def __init__(self, bag: DiagnosticBag, libraries: list[ReferenceLibrary]):
        self.bag = bag
        self.libraries = libraries
        self.types: dict[str, T.TypeSymbol] = {}
        self.namespaces: set[str] = set()
        for lib in libraries:
            self.namespaces.add(lib.namespace)
            for name, sym in lib.types.items():
                self.types.setdefault(name, sym)
                self.types.setdefault(sym.full_name, sym)
        self.container: T.TypeSymbol | None = None
        self.function: _Function | None = None

    def report(self, diag_id: str, node, *args):
        self.bag.report(diag_id, *args, line=getattr(node, 'line', None), column=getattr(node, 'column', None))

    # Types ────────────────────────────────────────────────────────────────────────────────────
    def resolve_type(self, ref: N.TypeRef, *, allow_void=False) -> T.TypeSymbol:
        if ref.name == 'void' and not allow_void:
            self.report('DX1547', ref)
            return T.ERROR
        if (t := T.BUILTIN_TYPES.get(ref.name)) is not None: return t
        if (t := self.types.get(ref.name)) is not None: return t
        self.report('DX0246', ref, ref.name)
        return T.ERROR

    def check_usings(self, usings: list[str], node) -> None:
        for name in usings:
            if name not in self.namespaces and name not in self.types:
                self.report('DX0246', node, name)

    def coerce(self, expr: N.Expr, target: T.TypeSymbol, node=None) -> N.Expr:
        """Check that `expr` converts implicitly to `target`, wrapping it in a conversion when needed."""
        source = expr.type
        conv = T.implicit_conversion(source, target)
        if conv is None:
            if source is T.VOID and target is not T.ERROR:
                self.report('DX0029', node or expr, 'void', target.name)
            else:
                self.report('DX0029', node or expr, source.name, target.name)
            return expr
        if source is T.INT and target is T.DOUBLE:
            return N.Convert(expr, type=T.DOUBLE, line=expr.line, column=expr.column)
        return expr

    # Declarations ─────────────────────────────────────────────────────────────────────────────
    def declare_function(self, owner: T.TypeSymbol, decl: N.FunctionDecl) -> T.MethodSymbol:
        ret = self.resolve_type(decl.return_type, allow_void=True)
        params = tuple(T.ParamSymbol(p.name, self.resolve_type(p.type_ref)) for p in decl.params)
        seen = set()
        for p in decl.params:
            if p.name in seen: self.report('DX0128', p, p.name)
            seen.add(p.name)

        method = T.MethodSymbol(decl.name, owner, params, ret, is_static=True, decl=decl)
        for other in owner.members.get(decl.name, []):
            if isinstance(other, T.FieldSymbol) or [p.type for p in other.params] == [p.type for p in params]:
                self.report('DX0111', decl, owner.name, decl.name)
                break
        owner.add_member(method)
        decl.symbol = method
        return method

    def assign_python_names(self, owner: T.TypeSymbol) -> None:
        for name, members in owner.members.items():
            for i, m in enumerate(members):
                prefix = 'f_' if isinstance(m, T.FieldSymbol) else 'm_'
                m.python_name = f"{prefix}{name}" if len(members) == 1 else f"{prefix}{name}__{i}"

    def bind_function_body(self, decl: N.FunctionDecl, parent: Scope) -> None:
        method: T.MethodSymbol = decl.symbol
        outer, self.function = self.function, _Function(method.return_type, decl.name)
        scope = Scope(parent, boundary=True)
        for p, ps in zip(decl.params, method.params):
            p.symbol = scope.declare(T.LocalSymbol(p.name, ps.type, "param", line=p.line, column=p.column))

        self.bind_statements(decl.body.statements, Scope(scope))
        if method.return_type not in (T.VOID, T.ERROR) and can_complete(decl.body):
            self.report('DX0161', decl, method.signature())
        self.warn_unused(self.function.locals)
        self.function = outer

    def warn_unused(self, symbols: list[T.LocalSymbol]) -> None:
        for sym in symbols:
            if sym.read: continue
            self.bag.report('DX0219' if sym.written else 'DX0168', sym.name, line=sym.line, column=sym.column)

    # Statements ───────────────────────────────────────────────────────────────────────────────
    def bind_statements(self, statements: list, scope: Scope) -> None:
        reachable = True
        for stmt in statements:
            if not reachable and not isinstance(stmt, N.Empty):
                self.report('DX0162', stmt)
                reachable = True  # Report once per run of dead statements.
            self.bind_statement(stmt, scope)
            if not can_complete(stmt): reachable = False

    def bind_embedded(self, stmt: N.Stmt, scope: Scope) -> None:
        if isinstance(stmt, N.VarDecl):
            self.report('DX1023', stmt)
        self.bind_statement(stmt, Scope(scope))

    def bind_statement(self, stmt: N.Stmt, scope: Scope) -> None:
        match stmt:
            case N.Block():
                self.bind_statements(stmt.statements, Scope(scope))
            case N.VarDecl():
                self.bind_var_decl(stmt, scope)
            case N.ExprStmt():
                self.bind_expr(stmt.expr, scope)
                if not isinstance(stmt.expr, STATEMENT_EXPRESSIONS):
                    self.report('DX0201', stmt)
            case N.If():
                stmt.test = self.bind_condition(stmt.test, scope)
                self.bind_embedded(stmt.then, scope)
                if stmt.other is not None: self.bind_embedded(stmt.other, scope)
            case N.While():
                stmt.test = self.bind_condition(stmt.test, scope)
                self.bind_loop_body(stmt.body, scope)
            case N.DoWhile():
                self.bind_loop_body(stmt.body, scope)
                stmt.test = self.bind_condition(stmt.test, scope)
            case N.For():
                inner = Scope(scope)
                for s in stmt.init:
                    self.bind_statement(s, inner)
                    if isinstance(s, N.ExprStmt) and not isinstance(s.expr, STATEMENT_EXPRESSIONS):
                        self.report('DX0201', s)
                if stmt.test is not None: stmt.test = self.bind_condition(stmt.test, inner)
                for e in stmt.update:
                    self.bind_expr(e, inner)
                    if not isinstance(e, STATEMENT_EXPRESSIONS): self.report('DX0201', e)
                self.bind_loop_body(stmt.body, inner)
            case N.Break() | N.Continue():
                if self.function.loop_depth == 0: self.report('DX0139', stmt)
            case N.Return():
                self.bind_return(stmt, scope)
            case N.Empty():
                pass
            case _:
                raise NotImplementedError(type(stmt).__name__)

    def bind_loop_body(self, body: N.Stmt, scope: Scope) -> None:
        self.function.loop_depth += 1
        self.bind_embedded(body, scope)
        self.function.loop_depth -= 1

    def bind_condition(self, test: N.Expr, scope: Scope) -> N.Expr:
        self.bind_expr(test, scope)
        return self.coerce(test, T.BOOL)

    def bind_return(self, stmt: N.Return, scope: Scope) -> None:
        expected = self.function.return_type
        if stmt.value is not None:
            self.bind_expr(stmt.value, scope)
        if expected is None:  # Script result, any value.
            if stmt.value is not None and stmt.value.type is T.VOID:
                self.report('DX0029', stmt.value, 'void', 'object')
        elif expected is T.VOID:
            if stmt.value is not None: self.report('DX0127', stmt, self.function.name)
        elif stmt.value is None:
            if expected is not T.ERROR: self.report('DX0126', stmt, expected.name)
        else:
            stmt.value = self.coerce(stmt.value, expected)

    def bind_var_decl(self, stmt: N.VarDecl, scope: Scope, kind: str = "local") -> list[T.LocalSymbol]:
        is_var = stmt.type_ref.name == 'var'
        declared = None if is_var else self.resolve_type(stmt.type_ref)
        symbols = []
        for d in stmt.declarators:
            if d.init is not None:
                self.bind_expr(d.init, scope)
            if is_var:
                if d.init is None:
                    self.report('DX0818', d)
                    var_type = T.ERROR
                elif d.init.type in (T.NULL, T.VOID):
                    self.report('DX0815', d, 'null' if d.init.type is T.NULL else 'void')
                    var_type = T.ERROR
                else:
                    var_type = d.init.type
            else:
                var_type = declared
                if d.init is not None: d.init = self.coerce(d.init, var_type)

            if d.name in scope.symbols:
                self.report('DX0128', d, d.name)
            elif scope.lookup_in_function(d.name) is not None and kind == "local":
                self.report('DX0136', d, d.name)
            sym = T.LocalSymbol(d.name, var_type, kind, written=d.init is not None, line=d.line, column=d.column)
            d.symbol = scope.declare(sym)
            if kind == "local": self.function.locals.append(sym)
            symbols.append(sym)
        return symbols

    # Expressions ──────────────────────────────────────────────────────────────────────────────
    def bind_expr(self, e: N.Expr, scope: Scope) -> T.TypeSymbol:
        method = getattr(self, f"bind_{type(e).__name__.lower()}")
        e.type = method(e, scope)
        return e.type

    def bind_literal(self, e: N.Literal, scope) -> T.TypeSymbol:
        if e.kind == 'double' and not math.isfinite(e.value):
            self.report('DX0594', e)
        return {'int': T.INT, 'double': T.DOUBLE, 'string': T.STRING, 'bool': T.BOOL, 'null': T.NULL}[e.kind]

    def lookup_name(self, name: str, scope: Scope):
        if (sym := scope.lookup(name)) is not None: return sym
        if self.container is not None and (members := self.container.members.get(name)):
            return members
        return self.types.get(name)

    def bind_name(self, e: N.Name, scope: Scope) -> T.TypeSymbol:
        found = self.lookup_name(e.name, scope)
        match found:
            case T.LocalSymbol():
                found.read = True
                e.symbol = found
                return found.type
            case [T.FieldSymbol() as f, *_]:
                e.symbol = f
                return f.type
            case [T.MethodSymbol(), *_]:
                self.report('DX0428', e, e.name)
                return T.ERROR
            case T.TypeSymbol():
                e.symbol = found
                return found          # A type used as an expression, only valid as a member target.
        self.report('DX0103', e, e.name)
        return T.ERROR

    def _is_type_expression(self, e: N.Expr) -> bool:
        return isinstance(e, N.Name) and isinstance(e.symbol, T.TypeSymbol)

    def _bind_target(self, target: N.Expr, scope: Scope) -> tuple[T.TypeSymbol, bool]:
        """Bind the target of a member access; returns the type and whether it is static access."""
        t = self.bind_expr(target, scope)
        return t, self._is_type_expression(target)

    def bind_member(self, e: N.Member, scope: Scope) -> T.TypeSymbol:
        t, static = self._bind_target(e.target, scope)
        if t is T.ERROR: return T.ERROR
        members = t.lookup(e.name)
        fields = [m for m in members if isinstance(m, T.FieldSymbol)]
        if not fields:
            if members: self.report('DX0428', e, e.name)
            else: self.report('DX0117', e, t.full_name, e.name)
            return T.ERROR
        f = fields[0]
        if static and not f.is_static: self.report('DX0120', e, f"{t.name}.{f.name}")
        if not static and f.is_static: self.report('DX0176', e, f"{t.name}.{f.name}")
        e.symbol = f
        return f.type

    def _method_group(self, callee: N.Expr, scope: Scope):
        """Returns (candidates, receiver-or-None, display name) for a call target."""
        if isinstance(callee, N.Name):
            found = self.lookup_name(callee.name, scope)
            if isinstance(found, list) and isinstance(found[0], T.MethodSymbol):
                return found, None, callee.name
            if found is None:
                self.report('DX0103', callee, callee.name)
                return None, None, callee.name
            self.report('DX0149', callee)
            return None, None, callee.name

        if isinstance(callee, N.Member):
            t, static = self._bind_target(callee.target, scope)
            if t is T.ERROR: return None, None, callee.name
            methods = [m for m in t.lookup(callee.name) if isinstance(m, T.MethodSymbol)]
            if not methods:
                if t.lookup(callee.name): self.report('DX0149', callee)
                else: self.report('DX0117', callee, t.full_name, callee.name)
                return None, None, callee.name
            display = f"{t.name}.{callee.name}"
            selected = [m for m in methods if m.is_static == static]
            if not selected:
                self.report('DX0120' if static else 'DX0176', callee, display)
                return None, None, callee.name
            return selected, (None if static else callee.target), display

        self.bind_expr(callee, scope)
        if callee.type is not T.ERROR: self.report('DX0149', callee)
        return None, None, '?'

    def resolve_overload(self, name: str, candidates: list, args: list[N.Expr], node) -> T.MethodSymbol | None:
        arg_types = [a.type for a in args]
        if T.ERROR in arg_types: return None
        n, applicable = len(args), []
        for m in candidates:
            if not (m.required <= n <= len(m.params)): continue
            convs = [T.implicit_conversion(a, p.type) for a, p in zip(arg_types, m.params)]
            if all(c is not None for c in convs):
                applicable.append((sum(c == "identity" for c in convs), m))

        if not applicable:
            arity_ok = [m for m in candidates if m.required <= n <= len(m.params)]
            if len(candidates) == 1 and n < candidates[0].required:
                m = candidates[0]
                self.report('DX7036', node, m.params[n].name, m.signature())
            elif not arity_ok:
                self.report('DX1501', node, name, n)
            else:
                m = arity_ok[0]
                for i, (a, p) in enumerate(zip(args, m.params)):
                    if T.implicit_conversion(a.type, p.type) is None:
                        self.report('DX1503', a, i + 1, a.type.name, p.type.name)
                        break
            return None

        best_score = max(score for score, _ in applicable)
        best = [m for score, m in applicable if score == best_score]
        if len(best) > 1:
            self.report('DX0121', node, best[0].signature(), best[1].signature())
            return None
        chosen = best[0]
        for i, p in enumerate(chosen.params[:n]):
            args[i] = self.coerce(args[i], p.type)
        return chosen

    def bind_call(self, e: N.Call, scope: Scope) -> T.TypeSymbol:
        candidates, receiver, name = self._method_group(e.callee, scope)
        for a in e.args: self.bind_expr(a, scope)
        if candidates is None: return T.ERROR
        method = self.resolve_overload(name, candidates, e.args, e)
        if method is None: return T.ERROR
        e.symbol = method
        return method.return_type

    def bind_new(self, e: N.New, scope: Scope) -> T.TypeSymbol:
        t = self.resolve_type(e.type_ref)
        for a in e.args: self.bind_expr(a, scope)
        if t is T.ERROR: return T.ERROR
        if t.kind != 'reference' or not t.instantiable or not t.constructors:
            self.report('DX0200', e, t.name)
            return T.ERROR
        ctor = self.resolve_overload(t.name, t.constructors, e.args, e)
        if ctor is None: return T.ERROR
        e.symbol = ctor
        return t

    def bind_unary(self, e: N.Unary, scope: Scope) -> T.TypeSymbol:
        t = self.bind_expr(e.operand, scope)
        if t is T.ERROR: return T.ERROR
        if e.op in '-+' and t in T.NUMERIC: return t
        if e.op == '!' and t is T.BOOL: return T.BOOL
        self.report('DX0023', e, e.op, t.name)
        return T.ERROR

    def bind_binary(self, e: N.Binary, scope: Scope) -> T.TypeSymbol:
        lt, rt = self.bind_expr(e.left, scope), self.bind_expr(e.right, scope)
        if T.ERROR in (lt, rt): return T.ERROR
        op = e.op

        if op == '+' and T.STRING in (lt, rt) and T.VOID not in (lt, rt):
            return T.STRING
        if op in ('+', '-', '*', '/', '%') and lt in T.NUMERIC and rt in T.NUMERIC:
            result = T.DOUBLE if T.DOUBLE in (lt, rt) else T.INT
            e.left, e.right = self.coerce(e.left, result), self.coerce(e.right, result)
            if result is T.INT and op in '/%' and isinstance(e.right, N.Literal) and e.right.value == 0:
                self.report('DX0020', e)
            return result
        if op in ('<', '<=', '>', '>=') and lt in T.NUMERIC and rt in T.NUMERIC:
            common = T.DOUBLE if T.DOUBLE in (lt, rt) else T.INT
            e.left, e.right = self.coerce(e.left, common), self.coerce(e.right, common)
            return T.BOOL
        if op in ('==', '!='):
            if lt in T.NUMERIC and rt in T.NUMERIC:
                common = T.DOUBLE if T.DOUBLE in (lt, rt) else T.INT
                e.left, e.right = self.coerce(e.left, common), self.coerce(e.right, common)
                return T.BOOL
            if T.VOID not in (lt, rt) and (T.implicit_conversion(lt, rt) or T.implicit_conversion(rt, lt)):
                return T.BOOL
        if op in ('&&', '||') and lt is T.BOOL and rt is T.BOOL:
            return T.BOOL
        self.report('DX0019', e, op, lt.name, rt.name)
        return T.ERROR

    def bind_conditional(self, e: N.Conditional, scope: Scope) -> T.TypeSymbol:
        e.test = self.bind_condition(e.test, scope)
        a, b = self.bind_expr(e.then, scope), self.bind_expr(e.other, scope)
        if T.ERROR in (a, b): return T.ERROR
        if a is b: return a
        if T.implicit_conversion(b, a) and a is not T.OBJECT:
            e.other = self.coerce(e.other, a)
            return a
        if T.implicit_conversion(a, b) and b is not T.OBJECT:
            e.then = self.coerce(e.then, b)
            return b
        self.report('DX0173', e, a.name, b.name)
        return T.ERROR

    def bind_assignable(self, target: N.Expr, scope: Scope, *, read: bool) -> T.TypeSymbol:
        """Bind an assignment target, checking it denotes writable storage."""
        if isinstance(target, N.Name):
            found = self.lookup_name(target.name, scope)
            if isinstance(found, T.LocalSymbol):
                found.written = True
                found.read = found.read or read
                target.symbol, target.type = found, found.type
                return found.type
            if isinstance(found, list) and isinstance(found[0], T.FieldSymbol):
                target.symbol, target.type = found[0], found[0].type
                return self._check_writable(found[0], target)
            if found is None:
                self.report('DX0103', target, target.name)
                return T.ERROR
        elif isinstance(target, N.Member):
            t = self.bind_expr(target, scope)
            if t is T.ERROR: return T.ERROR
            return self._check_writable(target.symbol, target)
        else:
            self.bind_expr(target, scope)
        self.report('DX0131', target)
        return T.ERROR

    def _check_writable(self, f: T.FieldSymbol, node) -> T.TypeSymbol:
        if f.read_only:
            self.report('DX0191', node, f.name)
            return T.ERROR
        return f.type

    def bind_assign(self, e: N.Assign, scope: Scope) -> T.TypeSymbol:
        t = self.bind_assignable(e.target, scope, read=e.op != '=')
        self.bind_expr(e.value, scope)
        if t is T.ERROR or e.value.type is T.ERROR: return t

        if e.op == '=':
            e.value = self.coerce(e.value, t)
            return t
        op = e.op[:-1]
        if op == '+' and t is T.STRING and e.value.type is not T.VOID:
            return t
        if t in T.NUMERIC and e.value.type in T.NUMERIC:
            e.value = self.coerce(e.value, t, node=e)
            return t
        self.report('DX0019', e, e.op, t.name, e.value.type.name)
        return T.ERROR

    def bind_postincrement(self, e: N.PostIncrement, scope: Scope) -> T.TypeSymbol:
        t = self.bind_assignable(e.target, scope, read=True)
        if t is T.ERROR: return T.ERROR
        if t not in T.NUMERIC:
            self.report('DX0023', e, e.op, t.name)
            return T.ERROR
        return t

    def bind_cast(self, e: N.Cast, scope: Scope) -> T.TypeSymbol:
        src, dst = self.bind_expr(e.operand, scope), self.resolve_type(e.type_ref)
        if T.ERROR in (src, dst): return T.ERROR
        if not T.explicit_conversion(src, dst):
            self.report('DX0030', e, src.name, dst.name)
            return T.ERROR
        return dst

    def bind_convert(self, e: N.Convert, scope: Scope) -> T.TypeSymbol:
        return e.type


## REACHABILITY
def _always_true(test) -> bool:
    return test is None or (isinstance(test, N.Literal) and test.value is True)

def _has_break(stmt) -> bool:
    match stmt:
        case N.Break(): return True
        case N.Block(): return any(_has_break(s) for s in stmt.statements)
        case N.If(): return _has_break(stmt.then) or (stmt.other is not None and _has_break(stmt.other))
    return False  # Breaks inside nested loops belong to those loops.

def can_complete(stmt) -> bool:
    """Conservative check whether control can flow past the end of a statement."""
    match stmt:
        case N.Return() | N.Break() | N.Continue():
            return False
        case N.Block():
            return all(can_complete(s) for s in stmt.statements)
        case N.If():
            return stmt.other is None or can_complete(stmt.then) or can_complete(stmt.other)
        case N.While() | N.DoWhile() | N.For():
            return not _always_true(stmt.test) or _has_break(stmt.body)
    return True


## ENTRY POINTS
def bind_script(unit: N.ScriptUnit, bag: DiagnosticBag, libraries: list[ReferenceLibrary],
                globals_: GlobalsBinding, previous: list[T.LocalSymbol] | None = None) -> BoundScript:
    binder = Binder(bag, libraries)
    binder.check_usings(unit.usings, unit)

    # Layering, outermost first: globals, variables of earlier submissions, this script's state.
    global_scope = Scope()
    for sym in globals_.symbols(): global_scope.declare(sym)
    previous_scope = Scope(global_scope)
    for sym in previous or []:
        previous_scope.declare(T.LocalSymbol(sym.name, sym.type, "state"))
    state_scope = Scope(previous_scope, boundary=True)

    container = T.TypeSymbol('Script', 'module', instantiable=False)
    binder.container = container
    functions = [it for it in unit.items if isinstance(it, N.FunctionDecl)]
    for decl in functions:
        binder.declare_function(container, decl)
    binder.assign_python_names(container)

    binder.function = _Function(None, 'Script')
    state: list[T.LocalSymbol] = []
    statements = [it for it in unit.items if not isinstance(it, N.FunctionDecl)]
    reachable = True
    for stmt in statements:
        if not reachable and not isinstance(stmt, N.Empty):
            binder.report('DX0162', stmt)
            reachable = True
        if isinstance(stmt, N.VarDecl):
            state += binder.bind_var_decl(stmt, state_scope, kind="state")
        else:
            binder.bind_statement(stmt, state_scope)
        if not can_complete(stmt): reachable = False
    binder.warn_unused(binder.function.locals)

    for decl in functions:
        binder.bind_function_body(decl, state_scope)
    return BoundScript(unit, container, state, list(previous or []), globals_, libraries, list(bag))


def bind_module(units: list[N.ModuleUnit], bag: DiagnosticBag, libraries: list[ReferenceLibrary]) -> BoundModule:
    binder = Binder(bag, libraries)
    classes: list[N.ClassDecl] = []

    # First pass: declare classes so members may refer to any of them.
    declared: dict[str, T.TypeSymbol] = {}
    for unit in units:
        for cls in unit.classes:
            if cls.full_name in declared:
                binder.report('DX0101', cls, cls.full_name)
                continue
            sym = T.TypeSymbol(cls.name, 'module', namespace=cls.namespace, instantiable=False)
            declared[cls.full_name] = cls.symbol = sym
            binder.types[cls.name] = binder.types[cls.full_name] = sym
            if cls.namespace: binder.namespaces.add(cls.namespace)
            classes.append(cls)
    for unit in units:
        binder.check_usings(unit.usings, unit)

    # Second pass: member signatures.
    for cls in classes:
        owner = cls.symbol
        for member in cls.members:
            if 'static' not in member.modifiers:
                report_node = member.declarators[0] if isinstance(member, N.FieldDecl) else member
                binder.report('DX0708', report_node, f"{cls.name}.{getattr(report_node, 'name', '')}")
            if isinstance(member, N.FunctionDecl):
                binder.declare_function(owner, member)
                continue
            field_type = binder.resolve_type(member.type_ref)
            for d in member.declarators:
                if owner.members.get(d.name):
                    binder.report('DX0111', d, owner.name, d.name)
                f = T.FieldSymbol(d.name, owner, field_type, is_static=True,
                                  read_only='readonly' in member.modifiers, decl=d)
                owner.add_member(f)
                d.symbol = f
        binder.assign_python_names(owner)

    # Third pass: field initialisers and method bodies.
    for cls in classes:
        binder.container = cls.symbol
        for member in cls.members:
            if isinstance(member, N.FieldDecl):
                binder.function = _Function(T.VOID, cls.name)
                for d in member.declarators:
                    if d.init is None: continue
                    binder.bind_expr(d.init, Scope(boundary=True))
                    d.init = binder.coerce(d.init, d.symbol.type)
            else:
                binder.bind_function_body(member, Scope())
    binder.container = None
    return BoundModule(units, classes, libraries, list(bag))
