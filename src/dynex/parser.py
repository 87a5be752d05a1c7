## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import ast
from typing import Literal as _Literal
from dataclasses import dataclass

import lark
from lark import v_args

from . import nodes as N
from .errors import ParseError
from .diagnostics import DiagnosticBag


GRAMMAR = r"""
script: using_directive* script_item*
?script_item: statement | function_decl

module: using_directive* module_item*
?module_item: namespace_decl | file_namespace | class_decl
namespace_decl: "namespace" qualified_name "{" using_directive* module_item* "}"
file_namespace: "namespace" qualified_name ";"
using_directive: "using" qualified_name ";"
qualified_name: NAME ("." NAME)*

class_decl: modifiers "class" NAME "{" member_decl* "}"
?member_decl: method_decl | field_decl
method_decl: modifiers type NAME "(" [params] ")" block
           | modifiers void_type NAME "(" [params] ")" block
field_decl: modifiers type declarator ("," declarator)* ";"
modifiers: modifier*
!modifier: "public" | "private" | "internal" | "static" | "readonly"

function_decl: type NAME "(" [params] ")" block
             | void_type NAME "(" [params] ")" block
params: param ("," param)*
param: type NAME

?type: builtin_type | var_type | NAME -> named_type
!builtin_type: "int" | "double" | "bool" | "string" | "object"
!var_type: "var"
!void_type: "void"

// STATEMENTS
?statement: block
          | local_decl ";"
          | expression ";"                                              -> expr_stmt
          | "if" "(" expression ")" statement ["else" statement]        -> if_stmt
          | "while" "(" expression ")" statement                        -> while_stmt
          | "do" statement "while" "(" expression ")" ";"               -> do_stmt
          | "for" "(" [for_init] ";" [expression] ";" [expression_list] ")" statement -> for_stmt
          | "break" ";"                                                 -> break_stmt
          | "continue" ";"                                              -> continue_stmt
          | "return" [expression] ";"                                   -> return_stmt
          | ";"                                                         -> empty_stmt
block: "{" statement* "}"
local_decl: type declarator ("," declarator)*
declarator: NAME ["=" expression]
?for_init: local_decl | expression_list
expression_list: expression ("," expression)*

// EXPRESSIONS
?expression: assignment | conditional
assignment: unary assign_op expression
!assign_op: "=" | "+=" | "-=" | "*=" | "/=" | "%="

?conditional: logical_or
            | logical_or "?" expression ":" conditional -> ternary
?logical_or: logical_and
           | logical_or "||" logical_and -> or_
?logical_and: equality
            | logical_and "&&" equality -> and_
?equality: relational
         | equality "==" relational -> eq
         | equality "!=" relational -> ne
?relational: additive
           | relational "<" additive -> lt
           | relational "<=" additive -> le
           | relational ">" additive -> gt
           | relational ">=" additive -> ge
?additive: multiplicative
         | additive "+" multiplicative -> add
         | additive "-" multiplicative -> sub
?multiplicative: unary
               | multiplicative "*" unary -> mul
               | multiplicative "/" unary -> div
               | multiplicative "%" unary -> mod
?unary: postfix
      | "-" unary -> neg
      | "+" unary -> pos
      | "!" unary -> not_
      | "(" builtin_type ")" unary -> cast
?postfix: primary
        | postfix "." NAME -> member
        | postfix "(" [arguments] ")" -> call
        | postfix "++" -> post_inc
        | postfix "--" -> post_dec
?primary: NAME -> name
        | INT_NUMBER -> int_lit
        | DOUBLE_NUMBER -> double_lit
        | STRING -> string_lit
        | "true" -> true_lit
        | "false" -> false_lit
        | "null" -> null_lit
        | "new" NAME "(" [arguments] ")" -> new
        | "(" expression ")"
arguments: expression ("," expression)*

// TOKENS
NAME: /[A-Za-z_][A-Za-z0-9_]*/
DOUBLE_NUMBER.2: /\d+\.\d+(?:[eE][+-]?\d+)?|\d+[eE][+-]?\d+/
INT_NUMBER: /\d+/
STRING: /"(?:[^"\\\n]|\\.)*"/

%import common.WS
%import common.CPP_COMMENT
%import common.C_COMMENT
%ignore WS
%ignore CPP_COMMENT
%ignore C_COMMENT
"""


SourceKind = _Literal["script", "module"]

_PARSER = None

def _get_parser() -> lark.Lark:
    global _PARSER
    if _PARSER is None:
        _PARSER = lark.Lark(GRAMMAR, start=['script', 'module'], parser="lalr", lexer="contextual",
                            propagate_positions=True, maybe_placeholders=True)
    return _PARSER


@dataclass(frozen=True)
class SyntaxTree:
    """Structural representation of one source unit, with the text it came from."""
    root: N.ScriptUnit | N.ModuleUnit
    source: str
    kind: SourceKind
    filename: str | None = None


def _pos(meta) -> dict:
    return {'line': getattr(meta, 'line', None), 'column': getattr(meta, 'column', None)}

def _tok_pos(tok) -> dict:
    return {'line': getattr(tok, 'line', None), 'column': getattr(tok, 'column', None)}


@v_args(meta=True)
class _ToNodes(lark.Transformer):
    """Converts the lark parse tree bottom-up into `nodes` dataclasses."""

    # Top-level ────────────────────────────────────────────────────────────────────────────────
    def script(self, meta, children):
        usings = [c for c in children if isinstance(c, str)]
        items = [c for c in children if not isinstance(c, str)]
        return N.ScriptUnit(usings, items, **_pos(meta))

    def module(self, meta, children):
        usings = [c for c in children if isinstance(c, str)]
        classes = self._scope_classes(children, None, usings)
        return N.ModuleUnit(usings, classes, **_pos(meta))

    def _scope_classes(self, items, namespace, usings):
        classes = []
        for item in items:
            if isinstance(item, tuple) and item[0] == 'file_namespace':
                namespace = item[1] if namespace is None else f"{namespace}.{item[1]}"
            elif isinstance(item, tuple) and item[0] == 'namespace':
                inner = item[1] if namespace is None else f"{namespace}.{item[1]}"
                usings += [c for c in item[2] if isinstance(c, str)]
                classes += self._scope_classes(item[2], inner, usings)
            elif isinstance(item, N.ClassDecl):
                item.namespace = namespace
                classes.append(item)
        return classes

    def namespace_decl(self, meta, children):
        name, *rest = children
        return ('namespace', name, rest)

    def file_namespace(self, meta, children):
        return ('file_namespace', children[0])

    def using_directive(self, meta, children):
        return children[0]

    def qualified_name(self, meta, children):
        return '.'.join(str(t) for t in children)

    def class_decl(self, meta, children):
        modifiers, name, *members = children
        return N.ClassDecl(modifiers, str(name), members, **_pos(meta))

    def method_decl(self, meta, children):
        modifiers, return_type, name, params, body = children
        return N.FunctionDecl(modifiers, return_type, str(name), params or [], body, **_tok_pos(name))

    def function_decl(self, meta, children):
        return_type, name, params, body = children
        return N.FunctionDecl([], return_type, str(name), params or [], body, **_tok_pos(name))

    def field_decl(self, meta, children):
        modifiers, type_ref, *declarators = children
        return N.FieldDecl(modifiers, type_ref, declarators, **_pos(meta))

    def modifiers(self, meta, children):
        return list(children)

    def modifier(self, meta, children):
        return str(children[0])

    def params(self, meta, children):
        return list(children)

    def param(self, meta, children):
        type_ref, name = children
        return N.Param(type_ref, str(name), **_tok_pos(name))

    # Types ────────────────────────────────────────────────────────────────────────────────────
    def builtin_type(self, meta, children):
        return N.TypeRef(str(children[0]), **_pos(meta))

    var_type = void_type = builtin_type

    def named_type(self, meta, children):
        return N.TypeRef(str(children[0]), **_pos(meta))

    # Statements ───────────────────────────────────────────────────────────────────────────────
    def block(self, meta, children):
        return N.Block(list(children), **_pos(meta))

    def local_decl(self, meta, children):
        type_ref, *declarators = children
        return N.VarDecl(type_ref, declarators, **_pos(meta))

    def declarator(self, meta, children):
        name, init = children
        return N.Declarator(str(name), init, **_tok_pos(name))

    def expr_stmt(self, meta, children):
        return N.ExprStmt(children[0], **_pos(meta))

    def if_stmt(self, meta, children):
        test, then, other = children
        return N.If(test, then, other, **_pos(meta))

    def while_stmt(self, meta, children):
        return N.While(children[0], children[1], **_pos(meta))

    def do_stmt(self, meta, children):
        return N.DoWhile(children[0], children[1], **_pos(meta))

    def for_stmt(self, meta, children):
        init, test, update, body = children
        if init is None: init = []
        elif isinstance(init, N.VarDecl): init = [init]
        else: init = [N.ExprStmt(e, line=e.line, column=e.column) for e in init]
        return N.For(init, test, update or [], body, **_pos(meta))

    def expression_list(self, meta, children):
        return list(children)

    def break_stmt(self, meta, children):
        return N.Break(**_pos(meta))

    def continue_stmt(self, meta, children):
        return N.Continue(**_pos(meta))

    def return_stmt(self, meta, children):
        return N.Return(children[0], **_pos(meta))

    def empty_stmt(self, meta, children):
        return N.Empty(**_pos(meta))

    # Expressions ──────────────────────────────────────────────────────────────────────────────
    def assignment(self, meta, children):
        target, op, value = children
        return N.Assign(op, target, value, **_pos(meta))

    def assign_op(self, meta, children):
        return str(children[0])

    def ternary(self, meta, children):
        return N.Conditional(*children, **_pos(meta))

    def _binary(op):
        def build(self, meta, children):
            return N.Binary(op, children[0], children[1], **_pos(meta))
        return build

    or_, and_ = _binary('||'), _binary('&&')
    eq, ne = _binary('=='), _binary('!=')
    lt, le, gt, ge = _binary('<'), _binary('<='), _binary('>'), _binary('>=')
    add, sub = _binary('+'), _binary('-')
    mul, div, mod = _binary('*'), _binary('/'), _binary('%')

    def _unary(op):
        def build(self, meta, children):
            return N.Unary(op, children[0], **_pos(meta))
        return build

    neg, pos, not_ = _unary('-'), _unary('+'), _unary('!')

    def cast(self, meta, children):
        return N.Cast(children[0], children[1], **_pos(meta))

    def member(self, meta, children):
        target, name = children
        return N.Member(target, str(name), **_tok_pos(name))

    def call(self, meta, children):
        callee, args = children
        return N.Call(callee, args or [], **_pos(meta))

    def post_inc(self, meta, children):
        return N.PostIncrement('++', children[0], **_pos(meta))

    def post_dec(self, meta, children):
        return N.PostIncrement('--', children[0], **_pos(meta))

    def arguments(self, meta, children):
        return list(children)

    def new(self, meta, children):
        name, args = children
        return N.New(N.TypeRef(str(name), **_tok_pos(name)), args or [], **_pos(meta))

    def name(self, meta, children):
        return N.Name(str(children[0]), **_pos(meta))

    def int_lit(self, meta, children):
        return N.Literal(int(children[0]), 'int', **_pos(meta))

    def double_lit(self, meta, children):
        return N.Literal(float(children[0]), 'double', **_pos(meta))

    def string_lit(self, meta, children):
        return N.Literal(ast.literal_eval(str(children[0])), 'string', **_pos(meta))

    def true_lit(self, meta, children):
        return N.Literal(True, 'bool', **_pos(meta))

    def false_lit(self, meta, children):
        return N.Literal(False, 'bool', **_pos(meta))

    def null_lit(self, meta, children):
        return N.Literal(None, 'null', **_pos(meta))


def _describe(exc) -> str:
    if isinstance(exc, lark.exceptions.UnexpectedCharacters):
        return f"unexpected character '{exc.char}'"
    token = getattr(exc, 'token', None)
    if token is None or getattr(token, 'type', None) == '$END':
        return "unexpected end of input"
    expected = sorted(getattr(exc, 'expected', None) or getattr(exc, 'allowed', None) or [])
    hint = f", expected one of {', '.join(expected[:6])}" if expected else ""
    return f"unexpected '{token}'" + hint


def parse(source: str, kind: SourceKind = "module", filename: str | None = None) -> SyntaxTree:
    """Parse source text of the given kind, raising `ParseError` with syntax diagnostics on failure."""
    try:
        tree = _get_parser().parse(source, start=kind)
    except lark.exceptions.UnexpectedInput as exc:
        line, column = getattr(exc, 'line', None), getattr(exc, 'column', None)
        if line is not None and line < 0: line, column = None, None
        token = getattr(exc, 'token', None)
        token_val = str(token) if token is not None and getattr(token, 'type', None) != '$END' else ''
        bag = DiagnosticBag(filename=filename)
        bag.report('DX1001', _describe(exc), line=line, column=column)
        raise ParseError(str(bag.items[0]), diagnostics=bag.items, filename=filename,
                         line=line, column=column, token=token_val) from None
    return SyntaxTree(_ToNodes().transform(tree), source, kind, filename)


def format_parse_error_context(filename, line, column, token_value, source=None):
    if line is None: return ''
    lines = source.splitlines(keepends=True) if source is not None else open(filename, 'r').readlines()
    start_line, end_line = max(0, line - 3), min(len(lines), line + 2)
    result = [f"\033[97m  File \"{filename}\", line {line}\033[0m"]

    for i in range(start_line, end_line):
        line_content = lines[i].rstrip('\n')
        line_color = '\033[90m'
        if i+1 == line:
            line_color = '\033[97m'
            width = max(1, len(token_value or ''))
            if column and 0 < column <= len(line_content):
                line_content = (
                    line_content[:column-1] +
                    f"\033[48;5;30m\033[1;97m{line_content[column-1:column+width-1]}\033[0m" +
                    line_content[column+width-1:]
                )
        result.append(f"{line_color}{i+1:>5} |\033[0m {line_content}")
    return '\n' + '\n'.join(result) + '\n'
