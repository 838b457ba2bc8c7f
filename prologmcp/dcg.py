"""
Grammar rule translation

Rules written with ``-->`` are translated into ordinary clauses when a
program is consulted. Each non-terminal gets two extra arguments, the input
list and the remainder, in the usual difference-list style.
"""

from itertools import count
from typing import Iterator

from .terms import Term, Atom, Number, String, Variable, Compound, NIL
from .utils import make_list, proper_list
from .evaluator import add_args
from .errors import instantiation_error, type_error


class _Translator:
    def __init__(self):
        self._counter: Iterator[int] = count()

    def fresh(self) -> Variable:
        return Variable(f"_DCG{next(self._counter)}")

    def rule(self, rule: Compound) -> Term:
        head, body = rule.args
        pushback = None
        if isinstance(head, Compound) and head.functor == "," and len(head.args) == 2:
            head, pushback = head.args
        if isinstance(head, Variable):
            raise instantiation_error()
        if not isinstance(head, (Atom, Compound)):
            raise type_error("callable", head)

        start, end = self.fresh(), self.fresh()
        if pushback is None:
            translated = self.body(body, start, end)
        else:
            middle = self.fresh()
            translated = Compound(",", (self.body(body, start, middle),
                                        self.terminals(pushback, end, middle)))
        return Compound(":-", (add_args(head, (start, end)), translated))

    def terminals(self, items: Term, start: Term, end: Term) -> Term:
        if isinstance(items, String):
            elements = [_code(c) for c in items.value]
        else:
            elements = proper_list(items)
            if elements is None:
                raise type_error("list", items)
        return Compound("=", (start, make_list(elements, end)))

    def body(self, body: Term, start: Term, end: Term) -> Term:
        if isinstance(body, Variable):
            return Compound("phrase", (body, start, end))
        if isinstance(body, Compound) and len(body.args) == 2 and body.functor in (",", ";", "|", "->"):
            left, right = body.args
            if body.functor == ",":
                middle = self.fresh()
                return Compound(",", (self.body(left, start, middle), self.body(right, middle, end)))
            if body.functor == "->":
                middle = self.fresh()
                return Compound("->", (self.body(left, start, middle), self.body(right, middle, end)))
            return Compound(";", (self.body(left, start, end), self.body(right, start, end)))
        if isinstance(body, Compound) and body.functor == "\\+" and len(body.args) == 1:
            return Compound(",", (Compound("\\+", (self.body(body.args[0], start, self.fresh()),)),
                                  Compound("=", (start, end))))
        if isinstance(body, Compound) and body.functor == "{}" and len(body.args) == 1:
            return Compound(",", (body.args[0], Compound("=", (start, end))))
        if body == Atom("!"):
            return Compound(",", (body, Compound("=", (start, end))))
        if body == NIL or isinstance(body, String) or (isinstance(body, Compound) and body.functor == "."
                                                        and len(body.args) == 2):
            return self.terminals(body, start, end)
        if isinstance(body, Compound) and body.functor == "call" and body.args:
            return Compound("call", body.args + (start, end))
        if not isinstance(body, (Atom, Compound)):
            raise type_error("callable", body)
        return add_args(body, (start, end))


def _code(char: str) -> Term:
    return Number(ord(char))


def is_grammar_rule(term: Term) -> bool:
    return isinstance(term, Compound) and term.functor == "-->" and len(term.args) == 2


def translate_rule(rule: Compound) -> Term:
    """
    Translate a grammar rule into a clause term.

    ``greeting --> [hello], name`` becomes
    ``greeting(S0, S) :- S0 = [hello|S1], name(S1, S)``.
    """
    return _Translator().rule(rule)
