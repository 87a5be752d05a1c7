## dynex — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import pytest

from dynex import parser
from dynex import nodes as N
from dynex.errors import ParseError, CompileError


def _script(source: str) -> list:
    return parser.parse(source, kind="script", filename="<test>").root.items


def test_script_declarations_and_functions():
    fn, decl = _script("int Twice(int x) { return 2 * x; }\nint a = Twice(3);")
    assert isinstance(fn, N.FunctionDecl) and fn.name == 'Twice'
    assert [p.name for p in fn.params] == ['x']
    assert isinstance(decl, N.VarDecl) and decl.declarators[0].name == 'a'
    assert isinstance(decl.declarators[0].init, N.Call)


def test_multiplication_binds_tighter_than_addition():
    [decl] = _script("int x = 1 + 2 * 3;")
    init = decl.declarators[0].init
    assert isinstance(init, N.Binary) and init.op == '+'
    assert isinstance(init.right, N.Binary) and init.right.op == '*'


def test_assignment_is_right_associative():
    [stmt] = _script("a = b = 3;")
    assert isinstance(stmt.expr, N.Assign)
    assert isinstance(stmt.expr.value, N.Assign)


def test_dangling_else_belongs_to_inner_if():
    [stmt] = _script("if (a) if (b) x = 1; else x = 2;")
    assert stmt.other is None
    assert stmt.then.other is not None


def test_statement_forms():
    items = _script("""
        for (int i = 0; i < 3; i++) { continue; }
        while (false) break;
        do { x--; } while (x > 0);
        ;
        return;
    """)
    assert [type(s) for s in items] == [N.For, N.While, N.DoWhile, N.Empty, N.Return]
    loop = items[0]
    assert isinstance(loop.init[0], N.VarDecl)
    assert isinstance(loop.update[0], N.PostIncrement)


def test_literals_and_escapes():
    [decl] = _script(r'var s = "a\n\"b\"";')
    assert decl.declarators[0].init.value == 'a\n"b"'
    [decl] = _script("double d = 2.5e2;")
    assert decl.declarators[0].init.value == 250.0
    [decl] = _script("object o = null;")
    assert decl.declarators[0].init.kind == 'null'


def test_cast_and_member_call():
    [decl] = _script("int n = (int)Math.Floor(2.7);")
    cast = decl.declarators[0].init
    assert isinstance(cast, N.Cast) and cast.type_ref.name == 'int'
    assert isinstance(cast.operand.callee, N.Member)


def test_comments_are_ignored():
    items = _script("// leading\nint x = 1; /* block\ncomment */ int y = 2;")
    assert len(items) == 2


def test_block_namespace_scopes_classes():
    tree = parser.parse("namespace A.B { using System; class C { static int F() { return 1; } } }")
    [cls] = tree.root.classes
    assert cls.full_name == 'A.B.C'
    assert 'System' in tree.root.usings


def test_file_scoped_namespace():
    tree = parser.parse("namespace N;\nstatic class K { static int V = 3; }")
    [cls] = tree.root.classes
    assert cls.full_name == 'N.K'
    assert isinstance(cls.members[0], N.FieldDecl)


def test_nodes_carry_positions():
    [_, decl] = _script("int a = 1;\nint b = a;")
    assert decl.declarators[0].line == 2


def test_syntax_error_has_single_syntax_diagnostic():
    with pytest.raises(ParseError) as e:
        parser.parse("int x = ;", kind="script", filename="<test>")
    assert isinstance(e.value, CompileError)
    [diag] = e.value.diagnostics
    assert diag.id == 'DX1001'
    assert diag.line == 1


def test_unterminated_input_reports_end():
    with pytest.raises(ParseError, match="end of input"):
        parser.parse("class C {", kind="module")


def test_statements_are_not_module_members():
    with pytest.raises(ParseError):
        parser.parse("int x = 1;", kind="module")


def test_parse_error_context_highlights_line():
    source = "int a = 1;\nint b = ;\n"
    with pytest.raises(ParseError) as e:
        parser.parse(source, kind="script", filename="demo.dxs")
    context = parser.format_parse_error_context("demo.dxs", e.value.line, e.value.column, e.value.token, source=source)
    assert 'line 2' in context
    assert 'int b' in context
