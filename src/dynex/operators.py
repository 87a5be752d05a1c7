## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# Value semantics shared by the script interpreter and by emitted module code.
#

import math
import operator
from typing import Any

from . import types as T


## ARITHMETIC
def op_idiv(b: int, a: int) -> int:
    if a == 0: raise ZeroDivisionError("Attempted to divide by zero.")
    q = abs(b) // abs(a)
    return q if (b >= 0) == (a >= 0) else -q

def op_irem(b: int, a: int) -> int:
    if a == 0: raise ZeroDivisionError("Attempted to divide by zero.")
    return b - a * op_idiv(b, a)

def op_fdiv(b: float, a: float) -> float:
    if a == 0:
        if b == 0 or math.isnan(b): return math.nan
        return math.copysign(math.inf, b) * math.copysign(1.0, a)
    return b / a

def op_frem(b: float, a: float) -> float:
    if a == 0 or math.isinf(b): return math.nan
    return math.fmod(b, a)

def op_add(b: Any, a: Any) -> Any:
    if isinstance(b, str) or isinstance(a, str):
        return op_to_string(b) + op_to_string(a)
    return b + a


NATIVE = {
    '+': operator.add, '-': operator.sub, '*': operator.mul,
    '<': operator.lt, '<=': operator.le, '>': operator.gt, '>=': operator.ge,
    '==': operator.eq, '!=': operator.ne,
}

def binary_helper(op: str, t: T.TypeSymbol) -> str | None:
    """Name of the helper implementing `op` on operands of type `t`, or None when Python's own operator applies."""
    if op == '+' and t is T.STRING: return 'op_add'
    if op == '/': return 'op_idiv' if t is T.INT else 'op_fdiv'
    if op == '%': return 'op_irem' if t is T.INT else 'op_frem'
    return None

def binary_function(op: str, t: T.TypeSymbol):
    name = binary_helper(op, t)
    return globals()[name] if name else NATIVE[op]


## CONVERSIONS
def op_to_string(x: Any) -> str:
    if x is None: return ""
    if isinstance(x, bool): return "True" if x else "False"
    if isinstance(x, float):
        if math.isnan(x): return "NaN"
        if math.isinf(x): return "∞" if x > 0 else "-∞"
        return str(int(x)) if x.is_integer() and abs(x) < 1e15 else repr(x)
    return str(x)

def op_to_int(x: Any) -> int:
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        raise TypeError("Specified cast is not valid.")
    if isinstance(x, float) and (math.isnan(x) or math.isinf(x)):
        raise OverflowError("Value was either too large or too small for an integer.")
    return int(x)

def op_to_double(x: Any) -> float:
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        raise TypeError("Specified cast is not valid.")
    return float(x)

def op_unbox(x: Any, t: T.TypeSymbol) -> Any:
    if t is T.INT: return op_to_int(x) if isinstance(x, int) else _invalid_cast()
    if t is T.DOUBLE: return op_to_double(x)
    if not T.conforms(x, t): _invalid_cast()
    return x

def _invalid_cast():
    raise TypeError("Specified cast is not valid.")


def convert(value: Any, source: T.TypeSymbol, target: T.TypeSymbol) -> Any:
    """Runtime effect of a cast or implicit conversion from `source` to `target`."""
    if source is target or target is T.OBJECT: return value
    if target is T.DOUBLE and source is T.INT: return float(value)
    if target is T.INT and source is T.DOUBLE: return op_to_int(value)
    if source is T.OBJECT: return op_unbox(value, target)
    return value


## STRING & COMMON MEMBERS
def op_str_length(s: str) -> int: return len(s)
def op_str_to_upper(s: str) -> str: return s.upper()
def op_str_to_lower(s: str) -> str: return s.lower()
def op_str_contains(s: str, part: str) -> bool: return part in s

def _null_check(target):
    if target is None: raise AttributeError("Object reference not set to an instance of an object.")

def call_intrinsic(fn, target, *args):
    _null_check(target)
    return fn(target, *args)

def get_member(target, name: str):
    _null_check(target)
    return getattr(target, name)

def set_member(target, name: str, value):
    _null_check(target)
    setattr(target, name, value)
    return value

def call_member(target, name: str, *args):
    _null_check(target)
    return getattr(target, name)(*args)

def update_member(target, name: str, fn, value):
    _null_check(target)
    result = fn(getattr(target, name), value)
    setattr(target, name, result)
    return result

def post_update(target, name: str, delta):
    _null_check(target)
    old = getattr(target, name)
    setattr(target, name, old + delta)
    return old


T.STRING.add_member(T.FieldSymbol('Length', T.STRING, T.INT, is_static=False, read_only=True, impl=op_str_length))
T.STRING.add_member(T.MethodSymbol('ToUpper', T.STRING, (), T.STRING, is_static=False, impl=op_str_to_upper, intrinsic=True))
T.STRING.add_member(T.MethodSymbol('ToLower', T.STRING, (), T.STRING, is_static=False, impl=op_str_to_lower, intrinsic=True))
T.STRING.add_member(T.MethodSymbol('Contains', T.STRING, (T.ParamSymbol('value', T.STRING),), T.BOOL,
                                   is_static=False, impl=op_str_contains, intrinsic=True))
T.COMMON_MEMBERS['ToString'] = [T.MethodSymbol('ToString', None, (), T.STRING, is_static=False,
                                               impl=op_to_string, intrinsic=True)]
