"""
Arithmetic evaluation for is/2 and the comparison builtins.

Integers stay integers wherever the operation allows it; '/' yields an
integer when the division is exact and a float otherwise.
"""

import math
from typing import Callable, Dict, Union

from .terms import Term, Atom, Number, String, Variable, Compound
from .utils import deref
from .errors import (
    instantiation_error, type_error, evaluation_error, indicator_term,
)

Numeric = Union[int, float]
Bindings = Dict[str, Term]


def _require_int(value: Numeric) -> int:
    if not isinstance(value, int):
        raise type_error("integer", Number(value))
    return value


def _check_divisor(value: Numeric) -> None:
    if value == 0:
        raise evaluation_error("zero_divisor")


def _to_int(value: float) -> int:
    if math.isinf(value) or math.isnan(value):
        raise evaluation_error("undefined")
    return int(value)


def _divide(a: Numeric, b: Numeric) -> Numeric:
    _check_divisor(b)
    if isinstance(a, int) and isinstance(b, int) and a % b == 0:
        return a // b
    return a / b


def _int_divide(a: Numeric, b: Numeric) -> int:
    a, b = _require_int(a), _require_int(b)
    _check_divisor(b)
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b >= 0) else -quotient


def _mod(a: Numeric, b: Numeric) -> int:
    a, b = _require_int(a), _require_int(b)
    _check_divisor(b)
    return a % b


def _rem(a: Numeric, b: Numeric) -> int:
    return _require_int(a) - _require_int(b) * _int_divide(a, b)


def _floor_divide(a: Numeric, b: Numeric) -> int:
    a, b = _require_int(a), _require_int(b)
    _check_divisor(b)
    return a // b


def _power(a: Numeric, b: Numeric) -> Numeric:
    if isinstance(a, int) and isinstance(b, int):
        if b < 0:
            if a in (1, -1):
                return a ** -b
            if a == 0:
                raise evaluation_error("zero_divisor")
            return float(a) ** b
        return a ** b
    return _float_op(math.pow, a, b)


def _int_power(a: Numeric, b: Numeric) -> Numeric:
    """'^': integer only when both operands are integers"""
    if isinstance(a, int) and isinstance(b, int):
        if b < 0:
            if a in (1, -1):
                return a ** -b
            if a == 0:
                raise evaluation_error("zero_divisor")
            raise type_error("float", Number(a))
        return a ** b
    return _float_op(math.pow, a, b)


def _float_op(function: Callable, *args: Numeric) -> float:
    try:
        result = function(*args)
    except OverflowError:
        raise evaluation_error("float_overflow")
    except (ValueError, ZeroDivisionError):
        raise evaluation_error("undefined")
    if isinstance(result, complex):
        raise evaluation_error("undefined")
    return result


def _positive_log(value: Numeric) -> float:
    if value <= 0:
        raise evaluation_error("undefined")
    return _float_op(math.log, value)


def _round(value: Numeric) -> int:
    if isinstance(value, int):
        return value
    if math.isinf(value) or math.isnan(value):
        raise evaluation_error("undefined")
    # Half away from zero
    return int(math.floor(abs(value) + 0.5)) * (1 if value >= 0 else -1)


def _sign(value: Numeric) -> Numeric:
    if isinstance(value, int):
        return (value > 0) - (value < 0)
    return math.copysign(1.0, value) if value != 0 else 0.0


def _shift(a: Numeric, b: Numeric, left: bool) -> int:
    a, b = _require_int(a), _require_int(b)
    return a << b if left else a >> b


def _integer(value: Numeric) -> int:
    return _round(value)


def _to_float(value: Numeric) -> float:
    try:
        return float(value)
    except OverflowError:
        raise evaluation_error("float_overflow")


def _max(a: Numeric, b: Numeric) -> Numeric:
    return b if b > a or (b == a and isinstance(b, float)) else a


def _min(a: Numeric, b: Numeric) -> Numeric:
    return b if b < a or (b == a and isinstance(b, float)) else a


def _gcd(a: Numeric, b: Numeric) -> int:
    return math.gcd(_require_int(a), _require_int(b))


def _msb(a: Numeric) -> int:
    a = _require_int(a)
    if a <= 0:
        raise type_error("positive_integer", Number(a))
    return a.bit_length() - 1


BINARY: Dict[str, Callable[[Numeric, Numeric], Numeric]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _divide,
    "//": _int_divide,
    "mod": _mod,
    "rem": _rem,
    "div": _floor_divide,
    "min": _min,
    "max": _max,
    "**": _power,
    "^": _int_power,
    ">>": lambda a, b: _shift(a, b, left=False),
    "<<": lambda a, b: _shift(a, b, left=True),
    "/\\": lambda a, b: _require_int(a) & _require_int(b),
    "\\/": lambda a, b: _require_int(a) | _require_int(b),
    "xor": lambda a, b: _require_int(a) ^ _require_int(b),
    "atan2": lambda a, b: _float_op(math.atan2, a, b),
    "atan": lambda a, b: _float_op(math.atan2, a, b),
    "copysign": lambda a, b: _float_op(math.copysign, a, b),
    "gcd": _gcd,
    "log": lambda a, b: _positive_log(b) / _positive_log(a),
}

UNARY: Dict[str, Callable[[Numeric], Numeric]] = {
    "-": lambda a: -a,
    "+": lambda a: a,
    "abs": abs,
    "sign": _sign,
    "sqrt": lambda a: _float_op(math.sqrt, a),
    "sin": lambda a: _float_op(math.sin, a),
    "cos": lambda a: _float_op(math.cos, a),
    "tan": lambda a: _float_op(math.tan, a),
    "asin": lambda a: _float_op(math.asin, a),
    "acos": lambda a: _float_op(math.acos, a),
    "atan": lambda a: _float_op(math.atan, a),
    "exp": lambda a: _float_op(math.exp, a),
    "log": _positive_log,
    "log2": lambda a: _positive_log(a) / math.log(2),
    "float": _to_float,
    "integer": _integer,
    "float_integer_part": lambda a: _to_float(math.trunc(a)),
    "float_fractional_part": lambda a: _to_float(a - math.trunc(a)),
    "truncate": lambda a: a if isinstance(a, int) else _to_int(math.trunc(a)),
    "round": _round,
    "ceiling": lambda a: a if isinstance(a, int) else _to_int(math.ceil(a)),
    "floor": lambda a: a if isinstance(a, int) else _to_int(math.floor(a)),
    "\\": lambda a: ~_require_int(a),
    "msb": _msb,
    "succ": lambda a: _require_int(a) + 1,
}

CONSTANTS: Dict[str, Numeric] = {
    "pi": math.pi,
    "e": math.e,
    "inf": math.inf,
    "infinite": math.inf,
    "nan": math.nan,
    "epsilon": 2.220446049250313e-16,
    "max_tagged_integer": (1 << 60) - 1,
}


def evaluate(term: Term, bindings: Bindings) -> Numeric:
    """
    Evaluate an arithmetic expression under the given bindings.

    Raises:
        PrologError: instantiation, type or evaluation errors

    Examples:
        >>> evaluate(parse_term("7 / 2"), {})
        3.5
        >>> evaluate(parse_term("6 / 2"), {})
        3
    """
    term = deref(term, bindings)

    if isinstance(term, Number):
        return term.value
    if isinstance(term, Variable):
        raise instantiation_error()
    if isinstance(term, Atom):
        if term.name in CONSTANTS:
            return CONSTANTS[term.name]
        if term.name == "[]":
            raise type_error("evaluable", term)
        raise type_error("evaluable", indicator_term(term.name, 0))
    if isinstance(term, String):
        if len(term.value) == 1:
            return ord(term.value)
        raise type_error("evaluable", term)

    assert isinstance(term, Compound)
    name, args = term.functor, term.args

    # [X] evaluates X, so "a" style code lists work
    if name == "." and len(args) == 2 and deref(args[1], bindings) == Atom("[]"):
        return evaluate(args[0], bindings)

    if len(args) == 2 and name in BINARY:
        left = evaluate(args[0], bindings)
        right = evaluate(args[1], bindings)
        return _checked(BINARY[name], left, right)
    if len(args) == 1 and name in UNARY:
        return _checked(UNARY[name], evaluate(args[0], bindings))

    raise type_error("evaluable", indicator_term(name, len(args)))


def _checked(function: Callable, *operands: Numeric) -> Numeric:
    try:
        value = function(*operands)
    except OverflowError:
        raise evaluation_error("float_overflow")
    if isinstance(value, float) and math.isinf(value):
        raise evaluation_error("float_overflow")
    return value


COMPARISONS: Dict[str, Callable[[Numeric, Numeric], bool]] = {
    "=:=": lambda a, b: a == b,
    "=\\=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    ">": lambda a, b: a > b,
    "=<": lambda a, b: a <= b,
    ">=": lambda a, b: a >= b,
}


def compare_expressions(op: str, left: Term, right: Term, bindings: Bindings) -> bool:
    """Evaluate both sides and compare them numerically"""
    return COMPARISONS[op](evaluate(left, bindings), evaluate(right, bindings))

