## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# Syntax nodes produced by the parser.  The binder annotates expressions in place
# with their resolved `type` and `symbol`, so both back-ends walk the same tree.
#

from typing import Any
from dataclasses import dataclass, field


@dataclass(eq=False)
class Node:
    line: int | None = field(default=None, kw_only=True)
    column: int | None = field(default=None, kw_only=True)


## TYPES & DECLARATIONS
@dataclass(eq=False)
class TypeRef(Node):
    name: str                     # keyword (`int`, `var`, `void`, ...) or a type name


@dataclass(eq=False)
class Declarator(Node):
    name: str
    init: "Expr | None" = None
    symbol: Any = field(default=None, kw_only=True)


@dataclass(eq=False)
class Param(Node):
    type_ref: TypeRef
    name: str
    symbol: Any = field(default=None, kw_only=True)


## EXPRESSIONS
@dataclass(eq=False)
class Expr(Node):
    type: Any = field(default=None, kw_only=True, repr=False)
    symbol: Any = field(default=None, kw_only=True, repr=False)

@dataclass(eq=False)
class Literal(Expr):
    value: Any
    kind: str                     # "int", "double", "string", "bool" or "null"

@dataclass(eq=False)
class Name(Expr):
    name: str

@dataclass(eq=False)
class Member(Expr):
    target: Expr
    name: str

@dataclass(eq=False)
class Call(Expr):
    callee: Expr
    args: list[Expr]

@dataclass(eq=False)
class New(Expr):
    type_ref: TypeRef
    args: list[Expr]

@dataclass(eq=False)
class Unary(Expr):
    op: str
    operand: Expr

@dataclass(eq=False)
class Binary(Expr):
    op: str
    left: Expr
    right: Expr

@dataclass(eq=False)
class Conditional(Expr):
    test: Expr
    then: Expr
    other: Expr

@dataclass(eq=False)
class Assign(Expr):
    op: str                       # "=" or a compound form like "+="
    target: Expr
    value: Expr

@dataclass(eq=False)
class PostIncrement(Expr):
    op: str                       # "++" or "--"
    target: Expr

@dataclass(eq=False)
class Cast(Expr):
    type_ref: TypeRef
    operand: Expr

@dataclass(eq=False)
class Convert(Expr):
    """Implicit conversion inserted by the binder, never produced by the parser."""
    operand: Expr


## STATEMENTS
@dataclass(eq=False)
class Stmt(Node):
    pass

@dataclass(eq=False)
class VarDecl(Stmt):
    type_ref: TypeRef
    declarators: list[Declarator]

@dataclass(eq=False)
class ExprStmt(Stmt):
    expr: Expr

@dataclass(eq=False)
class Block(Stmt):
    statements: list[Stmt]

@dataclass(eq=False)
class If(Stmt):
    test: Expr
    then: Stmt
    other: Stmt | None = None

@dataclass(eq=False)
class While(Stmt):
    test: Expr
    body: Stmt

@dataclass(eq=False)
class DoWhile(Stmt):
    body: Stmt
    test: Expr

@dataclass(eq=False)
class For(Stmt):
    init: list[Stmt]
    test: Expr | None
    update: list[Expr]
    body: Stmt

@dataclass(eq=False)
class Break(Stmt):
    pass

@dataclass(eq=False)
class Continue(Stmt):
    pass

@dataclass(eq=False)
class Return(Stmt):
    value: Expr | None = None

@dataclass(eq=False)
class Empty(Stmt):
    pass


## TOP-LEVEL
@dataclass(eq=False)
class FunctionDecl(Node):
    modifiers: list[str]
    return_type: TypeRef
    name: str
    params: list[Param]
    body: Block
    symbol: Any = field(default=None, kw_only=True)

@dataclass(eq=False)
class FieldDecl(Node):
    modifiers: list[str]
    type_ref: TypeRef
    declarators: list[Declarator]

@dataclass(eq=False)
class ClassDecl(Node):
    modifiers: list[str]
    name: str
    members: list[FunctionDecl | FieldDecl]
    namespace: str | None = None
    symbol: Any = field(default=None, kw_only=True)

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name


@dataclass(eq=False)
class ScriptUnit(Node):
    usings: list[str]
    items: list[Stmt | FunctionDecl]

@dataclass(eq=False)
class ModuleUnit(Node):
    usings: list[str]
    classes: list[ClassDecl]
