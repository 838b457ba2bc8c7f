"""
Operator table shared by the reader and the writer.

Each entry maps an operator name to ``(priority, type)`` where type is one of
the standard specifiers (xfx, xfy, yfx for infix; fy, fx for prefix).
"""

from typing import Dict, Optional, Tuple

OpDef = Tuple[int, str]

INFIX_OPS: Dict[str, OpDef] = {
    ":-": (1200, "xfx"),
    "-->": (1200, "xfx"),
    ";": (1100, "xfy"),
    "|": (1100, "xfy"),
    "->": (1050, "xfy"),
    "*->": (1050, "xfy"),
    ",": (1000, "xfy"),
    "=": (700, "xfx"),
    "\\=": (700, "xfx"),
    "==": (700, "xfx"),
    "\\==": (700, "xfx"),
    "@<": (700, "xfx"),
    "@>": (700, "xfx"),
    "@=<": (700, "xfx"),
    "@>=": (700, "xfx"),
    "=..": (700, "xfx"),
    "is": (700, "xfx"),
    "=:=": (700, "xfx"),
    "=\\=": (700, "xfx"),
    "<": (700, "xfx"),
    ">": (700, "xfx"),
    "=<": (700, "xfx"),
    ">=": (700, "xfx"),
    ":": (200, "xfy"),
    "+": (500, "yfx"),
    "-": (500, "yfx"),
    "/\\": (500, "yfx"),
    "\\/": (500, "yfx"),
    "xor": (500, "yfx"),
    "*": (400, "yfx"),
    "/": (400, "yfx"),
    "//": (400, "yfx"),
    "rem": (400, "yfx"),
    "mod": (400, "yfx"),
    "div": (400, "yfx"),
    "<<": (400, "yfx"),
    ">>": (400, "yfx"),
    "**": (200, "xfx"),
    "^": (200, "xfy"),
}

PREFIX_OPS: Dict[str, OpDef] = {
    ":-": (1200, "fx"),
    "?-": (1200, "fx"),
    "dynamic": (1150, "fx"),
    "discontiguous": (1150, "fx"),
    "initialization": (1150, "fx"),
    "\\+": (900, "fy"),
    "-": (200, "fy"),
    "+": (200, "fy"),
    "\\": (200, "fy"),
}


def infix_op(name: str) -> Optional[OpDef]:
    return INFIX_OPS.get(name)


def prefix_op(name: str) -> Optional[OpDef]:
    return PREFIX_OPS.get(name)


def infix_arg_priorities(priority: int, op_type: str) -> Tuple[int, int]:
    """Maximum priorities allowed for the left and right operands"""
    left = priority - 1 if op_type in ("xfx", "xfy") else priority
    right = priority - 1 if op_type in ("xfx", "yfx") else priority
    return left, right


def prefix_arg_priority(priority: int, op_type: str) -> int:
    return priority if op_type == "fy" else priority - 1
