"""
Term output for the Prolog engine.

format_term() renders a term the way write/1 (quoted=False) or writeq/1
(quoted=True) would. portray_clause() renders a clause in the layout used by
listing/0, which the reader accepts back unchanged.
"""

import math
import re
from typing import Dict, List

from .operators import infix_op, prefix_op, infix_arg_priorities, prefix_arg_priority
from .terms import Term, Atom, Number, String, Variable, Compound, TRUE, is_list_cell
from .utils import comma_list, replace_variables, term_variables

SYMBOL_CHARS = set("+-*/\\^<>=~:.?@#&$")

_PLAIN_ATOM_RE = re.compile(r"^[a-z][a-zA-Z0-9_]*$")
_SOLO_ATOMS = {"[]", "{}", "!", ";"}
_QUOTE_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\t": "\\t", "\r": "\\r", "\0": "\\0"}


def atom_needs_quotes(name: str) -> bool:
    if name in _SOLO_ATOMS:
        return False
    if _PLAIN_ATOM_RE.match(name):
        return False
    if name and all(char in SYMBOL_CHARS for char in name) and name != ".":
        return False
    return True


def quote_text(text: str, quote: str = "'") -> str:
    escaped = "".join(_QUOTE_ESCAPES.get(char, char) for char in text)
    return quote + escaped.replace(quote, "\\" + quote) + quote


def format_atom(name: str, quoted: bool = False) -> str:
    if quoted and atom_needs_quotes(name):
        return quote_text(name)
    return name


def format_number(value) -> str:
    if isinstance(value, int):
        return str(value)
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if math.isnan(value):
        return "nan"
    text = repr(value)
    if "e" in text:
        mantissa, exponent = text.split("e")
        if "." not in mantissa:
            mantissa += ".0"
        return f"{mantissa}e{int(exponent)}"
    return text


class TermWriter:
    """Renders terms with operator-aware parenthesization"""

    def __init__(self, quoted: bool = False, ignore_ops: bool = False, arg_separator: str = ","):
        self.quoted = quoted
        self.ignore_ops = ignore_ops
        self.arg_separator = arg_separator

    def write(self, term: Term, max_priority: int = 1200) -> str:
        if isinstance(term, Variable):
            return term.name
        if isinstance(term, Number):
            return format_number(term.value)
        if isinstance(term, String):
            return quote_text(term.value, '"') if self.quoted else term.value
        if isinstance(term, Atom):
            return self._atom(term.name, max_priority)
        if isinstance(term, Compound):
            return self._compound(term, max_priority)
        raise TypeError(f"Unknown term type: {type(term)}")

    def _atom(self, name: str, max_priority: int) -> str:
        text = format_atom(name, self.quoted)
        if name in (",", "|"):
            return text
        op_priority = max((infix_op(name) or (0, ""))[0], (prefix_op(name) or (0, ""))[0])
        if op_priority > max_priority:
            return f"({text})"
        return text

    def _compound(self, term: Compound, max_priority: int) -> str:
        if is_list_cell(term):
            return self._list(term)

        if term.functor == "{}" and len(term.args) == 1 and not self.ignore_ops:
            return "{" + self.write(term.args[0], 1200) + "}"

        if not self.ignore_ops:
            if len(term.args) == 2:
                op = infix_op(term.functor)
                if op is not None:
                    return self._infix(term, op, max_priority)
            if len(term.args) == 1:
                op = prefix_op(term.functor)
                # -(1) stays canonical so it is not read back as the number -1
                signed_number = term.functor in ("-", "+") and isinstance(term.args[0], Number)
                if op is not None and not signed_number:
                    return self._prefix(term, op, max_priority)

        args = self.arg_separator.join(self.write(arg, 999) for arg in term.args)
        return f"{format_atom(term.functor, self.quoted)}({args})"

    def _infix(self, term: Compound, op, max_priority: int) -> str:
        priority, op_type = op
        left_max, right_max = infix_arg_priorities(priority, op_type)
        left = self.write(term.args[0], left_max)
        right = self.write(term.args[1], right_max)
        name = term.functor

        if name == ",":
            text = f"{left}{self.arg_separator}{right}"
        elif name[0].isalpha():
            text = f"{left} {format_atom(name, self.quoted)} {right}"
        else:
            op_text = format_atom(name, self.quoted)
            left_gap = " " if left and left[-1] in SYMBOL_CHARS else ""
            right_gap = " " if right and right[0] in SYMBOL_CHARS else ""
            text = f"{left}{left_gap}{op_text}{right_gap}{right}"

        if priority > max_priority:
            return f"({text})"
        return text

    def _prefix(self, term: Compound, op, max_priority: int) -> str:
        priority, op_type = op
        operand = self.write(term.args[0], prefix_arg_priority(priority, op_type))
        name = format_atom(term.functor, self.quoted)
        if name[0].isalpha() or not operand or operand[0] in SYMBOL_CHARS \
                or operand[0] == "(" or operand[0].isdigit():
            text = f"{name} {operand}"
        else:
            text = f"{name}{operand}"
        if priority > max_priority:
            return f"({text})"
        return text

    def _list(self, term: Compound) -> str:
        items: List[str] = []
        current: Term = term
        while is_list_cell(current):
            items.append(self.write(current.args[0], 999))
            current = current.args[1]
        text = "[" + self.arg_separator.join(items)
        if current != Atom("[]"):
            text += "|" + self.write(current, 999)
        return text + "]"


def format_term(term: Term, quoted: bool = False, ignore_ops: bool = False,
                max_priority: int = 1200, arg_separator: str = ",") -> str:
    """
    Render a term as text.

    Examples:
        >>> format_term(parse_term("X is 1 + 2"))
        'X is 1+2'
        >>> format_term(Atom("hello world"), quoted=True)
        "'hello world'"
    """
    return TermWriter(quoted, ignore_ops, arg_separator).write(term, max_priority)


# ============================================================================
# Clause layout
# ============================================================================

def _variable_letters(index: int) -> str:
    letter = chr(ord("A") + index % 26)
    suffix = index // 26
    return f"{letter}{suffix}" if suffix else letter


def name_variables(term: Term) -> Term:
    """Rename variables to A, B, C... in order of appearance; singletons become _"""
    occurrences: Dict[str, int] = {}
    stack = [term]
    while stack:
        current = stack.pop()
        if isinstance(current, Variable):
            occurrences[current.name] = occurrences.get(current.name, 0) + 1
        elif isinstance(current, Compound):
            stack.extend(current.args)

    mapping: Dict[str, Term] = {}
    index = 0
    for variable in term_variables(term):
        if occurrences[variable.name] == 1:
            mapping[variable.name] = Variable("_")
        else:
            mapping[variable.name] = Variable(_variable_letters(index))
            index += 1
    return replace_variables(term, mapping)


def portray_clause(clause: Term) -> str:
    """
    Render a clause in listing layout, terminated by '.'.

    Examples:
        >>> print(portray_clause(parse_term("g(X, Z) :- p(X, Y), p(Y, Z)")))
        g(A, B) :-
            p(A, C),
            p(C, B).
    """
    clause = name_variables(clause)
    writer = TermWriter(quoted=True, arg_separator=", ")

    if isinstance(clause, Compound) and clause.functor == ":-" and len(clause.args) == 2:
        head, body = clause.args
        if body == TRUE:
            return writer.write(head, 1199) + "."
        goals = [f"    {writer.write(goal, 999)}" for goal in comma_list(body)]
        return writer.write(head, 1199) + " :-\n" + ",\n".join(goals) + "."

    if isinstance(clause, Compound) and clause.functor == ":-" and len(clause.args) == 1:
        return ":- " + writer.write(clause.args[0], 1199) + "."

    return writer.write(clause, 1199) + "."
