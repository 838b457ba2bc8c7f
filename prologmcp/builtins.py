"""
Builtin predicates

Every builtin is a plain function registered with the ``@builtin``
decorator. It receives the evaluator, the goal's arguments and the current
bindings. Deterministic builtins return the extended bindings, or None to
fail; nondeterministic ones are generators yielding one bindings dictionary
per solution.

Text, atom and output builtins live in ``strings.py`` and register into the
same table.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .terms import Term, Atom, Number, String, Variable, Compound, NIL, is_callable, is_atomic
from .utils import deref, resolve, list_to_python, proper_list, make_list, term_variables, comma_list
from .unification import subsumes, unify, variant
from .arithmetic import evaluate, compare_expressions
from .knowledge import Clause
from .evaluator import CONTROL
from .operators import INFIX_OPS, PREFIX_OPS
from .errors import (
    PrologError, instantiation_error, type_error, domain_error, permission_error,
    indicator_term,
)

logger = logging.getLogger(__name__)

Bindings = Dict[str, Term]
Key = Tuple[str, int]


@dataclass(frozen=True)
class Builtin:
    name: str
    arity: int
    function: Callable
    nondeterministic: bool = False


BUILTINS: Dict[Key, Builtin] = {}


def builtin(name: str, arity: int, nondeterministic: bool = False):
    """Register a function as the builtin name/arity"""
    def register(function: Callable) -> Callable:
        BUILTINS[(name, arity)] = Builtin(name, arity, function, nondeterministic)
        return function
    return register


# ============================================================================
# Argument helpers
# ============================================================================

def bound(term: Term, bindings: Bindings) -> Term:
    """Dereference an argument that must be instantiated"""
    term = deref(term, bindings)
    if isinstance(term, Variable):
        raise instantiation_error()
    return term


def integer_arg(term: Term, bindings: Bindings) -> int:
    term = bound(term, bindings)
    if not (isinstance(term, Number) and term.is_integer):
        raise type_error("integer", resolve(term, bindings))
    return term.value


def callable_arg(term: Term, bindings: Bindings) -> Term:
    term = bound(term, bindings)
    if not is_callable(term):
        raise type_error("callable", resolve(term, bindings))
    return term


def list_arg(term: Term, bindings: Bindings) -> List[Term]:
    """Items of an argument that must be a proper list"""
    items, tail = list_to_python(term, bindings)
    if isinstance(tail, Variable):
        raise instantiation_error()
    if tail != NIL:
        raise type_error("list", resolve(term, bindings))
    return items


def indicator_arg(term: Term, bindings: Bindings) -> Key:
    """Name/Arity predicate indicator"""
    term = bound(term, bindings)
    if not (isinstance(term, Compound) and term.functor == "/" and len(term.args) == 2):
        raise type_error("predicate_indicator", resolve(term, bindings))
    name = bound(term.args[0], bindings)
    if not isinstance(name, Atom):
        raise type_error("atom", name)
    arity = integer_arg(term.args[1], bindings)
    if arity < 0:
        raise domain_error("not_less_than_zero", Number(arity))
    return (name.name, arity)


def predicate_key(term: Term) -> Key:
    if isinstance(term, Compound):
        return (term.functor, len(term.args))
    return (term.name, 0)


def _fresh_variables(ev, count: int) -> List[Term]:
    return [ev.renamer.fresh() for _ in range(count)]


def unify_pairs(ev, bindings: Bindings, *pairs: Tuple[Term, Term]) -> Optional[Bindings]:
    """Unify each pair in turn; None as soon as one fails"""
    for left, right in pairs:
        bindings = ev.unify(left, right, bindings)
        if bindings is None:
            return None
    return bindings


# ============================================================================
# Standard order of terms
# ============================================================================

def _order_class(term: Term) -> int:
    if isinstance(term, Variable):
        return 0
    if isinstance(term, Number):
        return 1
    if isinstance(term, Atom):
        return 3
    if isinstance(term, String):
        return 4
    return 5


def compare_terms(left: Term, right: Term) -> int:
    """
    Compare two resolved terms in the standard order:
    Var < Number < Atom < String < Compound.

    Returns -1, 0 or 1.
    """
    stack = [(left, right)]
    while stack:
        a, b = stack.pop()
        class_a, class_b = _order_class(a), _order_class(b)
        if class_a != class_b:
            return -1 if class_a < class_b else 1
        if isinstance(a, Compound):
            key_a = (len(a.args), a.functor)
            key_b = (len(b.args), b.functor)
            if key_a != key_b:
                return -1 if key_a < key_b else 1
            stack.extend(reversed(list(zip(a.args, b.args))))
            continue
        if isinstance(a, Number):
            if a.value != b.value:
                return -1 if a.value < b.value else 1
            # 1.0 @< 1
            if type(a.value) is not type(b.value):
                return -1 if isinstance(a.value, float) else 1
            continue
        key_a = a.name if isinstance(a, (Atom, Variable)) else a.value
        key_b = b.name if isinstance(b, (Atom, Variable)) else b.value
        if key_a != key_b:
            return -1 if key_a < key_b else 1
    return 0


def sort_terms(items: List[Term], dedupe: bool, reverse: bool = False,
               key: Optional[Callable[[Term], Term]] = None) -> List[Term]:
    select = key or (lambda term: term)
    ordered = sorted(items, key=functools.cmp_to_key(lambda a, b: compare_terms(select(a), select(b))),
                     reverse=reverse)
    if not dedupe:
        return ordered
    result: List[Term] = []
    for item in ordered:
        if not result or compare_terms(select(result[-1]), select(item)) != 0:
            result.append(item)
    return result


# ============================================================================
# Control
# ============================================================================

@builtin("fail", 0)
def _fail(ev, args, bindings):
    return None


@builtin("false", 0)
def _false(ev, args, bindings):
    return None


@builtin("otherwise", 0)
def _otherwise(ev, args, bindings):
    return bindings


@builtin("throw", 1)
def _throw(ev, args, bindings):
    ball = bound(args[0], bindings)
    raise PrologError(ev.renamer.rename(resolve(ball, bindings)))


@builtin("findall", 3)
def _findall(ev, args, bindings):
    template, goal, result = args
    callable_arg(goal, bindings)
    items = [ev.renamer.rename(resolve(template, solution))
             for solution in ev.solve(goal, bindings)]
    return ev.unify(result, make_list(items), bindings)


@builtin("findall", 4)
def _findall_tail(ev, args, bindings):
    template, goal, result, tail = args
    callable_arg(goal, bindings)
    items = [ev.renamer.rename(resolve(template, solution))
             for solution in ev.solve(goal, bindings)]
    return ev.unify(result, make_list(items, tail), bindings)


@builtin("forall", 2)
def _forall(ev, args, bindings):
    condition, action = args
    for solution in ev.solve(callable_arg(condition, bindings), bindings):
        if ev.first_solution(action, solution) is None:
            return None
    return bindings


def _strip_carets(goal: Term, bindings: Bindings) -> Tuple[Term, List[str]]:
    """Split V^Goal into Goal and the existentially quantified variable names"""
    existential: List[str] = []
    goal = deref(goal, bindings)
    while isinstance(goal, Compound) and goal.functor == "^" and len(goal.args) == 2:
        existential.extend(v.name for v in term_variables(resolve(goal.args[0], bindings)))
        goal = deref(goal.args[1], bindings)
    return goal, existential


def _bag_groups(ev, args, bindings) -> Tuple[Term, List[Tuple[Term, List[Term]]]]:
    template, goal, _ = args
    goal, existential = _strip_carets(goal, bindings)
    callable_arg(goal, bindings)
    template_vars = {v.name for v in term_variables(resolve(template, bindings))}
    free = [v for v in term_variables(resolve(goal, bindings))
            if v.name not in template_vars and v.name not in existential]
    witness = make_list(free)

    pairs: List[Tuple[Term, Term]] = []
    for solution in ev.solve(goal, bindings):
        pair = ev.renamer.rename(resolve(Compound("-", (witness, template)), solution))
        pairs.append(pair.args)

    groups: List[Tuple[Term, List[Term]]] = []
    for found_witness, item in pairs:
        for group_witness, items in groups:
            if variant(group_witness, found_witness):
                items.append(item)
                break
        else:
            groups.append((found_witness, [item]))
    return witness, groups


@builtin("bagof", 3, nondeterministic=True)
def _bagof(ev, args, bindings):
    witness, groups = _bag_groups(ev, args, bindings)
    for group_witness, items in groups:
        unified = ev.unify(witness, group_witness, bindings)
        if unified is not None:
            unified = ev.unify(args[2], make_list(items), unified)
        if unified is not None:
            yield unified


@builtin("setof", 3, nondeterministic=True)
def _setof(ev, args, bindings):
    witness, groups = _bag_groups(ev, args, bindings)
    groups = sorted(groups, key=functools.cmp_to_key(lambda a, b: compare_terms(a[0], b[0])))
    for group_witness, items in groups:
        unified = ev.unify(witness, group_witness, bindings)
        if unified is not None:
            unified = ev.unify(args[2], make_list(sort_terms(items, dedupe=True)), unified)
        if unified is not None:
            yield unified


@builtin("aggregate_all", 3)
def _aggregate_all(ev, args, bindings):
    spec, goal, result = args
    spec = bound(spec, bindings)
    callable_arg(goal, bindings)

    if spec == Atom("count"):
        total = sum(1 for _ in ev.solve(goal, bindings))
        return ev.unify(result, Number(total), bindings)

    if not (isinstance(spec, Compound) and len(spec.args) == 1):
        raise domain_error("aggregate_spec", resolve(spec, bindings))
    kind, template = spec.functor, spec.args[0]
    values = [resolve(template, solution) for solution in ev.solve(goal, bindings)]

    if kind == "count":
        return ev.unify(result, Number(len(values)), bindings)
    if kind == "bag":
        return ev.unify(result, make_list([ev.renamer.rename(v) for v in values]), bindings)
    if kind == "set":
        return ev.unify(result, make_list(sort_terms(values, dedupe=True)), bindings)
    if kind == "sum":
        total = 0
        for value in values:
            total = total + evaluate(value, {})
        return ev.unify(result, Number(total), bindings)
    if kind in ("max", "min"):
        if not values:
            return None
        numbers = [evaluate(value, {}) for value in values]
        best = max(numbers) if kind == "max" else min(numbers)
        return ev.unify(result, Number(best), bindings)
    raise domain_error("aggregate_spec", resolve(spec, bindings))


# ============================================================================
# Unification and comparison
# ============================================================================

@builtin("=", 2)
def _unify(ev, args, bindings):
    return ev.unify(args[0], args[1], bindings)


@builtin("\\=", 2)
def _not_unifiable(ev, args, bindings):
    return None if ev.unifiable(args[0], args[1], bindings) else bindings


@builtin("unify_with_occurs_check", 2)
def _unify_occurs(ev, args, bindings):
    return unify(args[0], args[1], bindings, occurs_check=True)


@builtin("subsumes_term", 2)
def _subsumes_term(ev, args, bindings):
    return bindings if subsumes(args[0], args[1], bindings) else None


def _compare(args, bindings) -> int:
    return compare_terms(resolve(args[0], bindings), resolve(args[1], bindings))


@builtin("==", 2)
def _identical(ev, args, bindings):
    return bindings if _compare(args, bindings) == 0 else None


@builtin("\\==", 2)
def _not_identical(ev, args, bindings):
    return bindings if _compare(args, bindings) != 0 else None


@builtin("@<", 2)
def _term_less(ev, args, bindings):
    return bindings if _compare(args, bindings) < 0 else None


@builtin("@>", 2)
def _term_greater(ev, args, bindings):
    return bindings if _compare(args, bindings) > 0 else None


@builtin("@=<", 2)
def _term_less_equal(ev, args, bindings):
    return bindings if _compare(args, bindings) <= 0 else None


@builtin("@>=", 2)
def _term_greater_equal(ev, args, bindings):
    return bindings if _compare(args, bindings) >= 0 else None


@builtin("compare", 3)
def _compare_order(ev, args, bindings):
    order = deref(args[0], bindings)
    if not isinstance(order, Variable):
        if not isinstance(order, Atom):
            raise type_error("atom", order)
        if order.name not in ("<", "=", ">"):
            raise domain_error("order", order)
    result = compare_terms(resolve(args[1], bindings), resolve(args[2], bindings))
    symbol = "<" if result < 0 else ">" if result > 0 else "="
    return ev.unify(args[0], Atom(symbol), bindings)


# ============================================================================
# Type checks
# ============================================================================

def _type_check(name: str, test: Callable[[Term], bool]) -> None:
    @builtin(name, 1)
    def check(ev, args, bindings):
        return bindings if test(deref(args[0], bindings)) else None


_type_check("var", lambda t: isinstance(t, Variable))
_type_check("nonvar", lambda t: not isinstance(t, Variable))
_type_check("atom", lambda t: isinstance(t, Atom))
_type_check("number", lambda t: isinstance(t, Number))
_type_check("integer", lambda t: isinstance(t, Number) and t.is_integer)
_type_check("float", lambda t: isinstance(t, Number) and not t.is_integer)
_type_check("atomic", is_atomic)
_type_check("compound", lambda t: isinstance(t, Compound))
_type_check("callable", is_callable)
_type_check("string", lambda t: isinstance(t, String))


@builtin("is_list", 1)
def _is_list(ev, args, bindings):
    return bindings if proper_list(args[0], bindings) is not None else None


@builtin("ground", 1)
def _ground(ev, args, bindings):
    return bindings if not resolve(args[0], bindings).get_variables() else None


# ============================================================================
# Arithmetic
# ============================================================================

@builtin("is", 2)
def _is(ev, args, bindings):
    return ev.unify(args[0], Number(evaluate(args[1], bindings)), bindings)


def _comparison(op: str) -> None:
    @builtin(op, 2)
    def compare(ev, args, bindings):
        return bindings if compare_expressions(op, args[0], args[1], bindings) else None


for _op in ("=:=", "=\\=", "<", ">", "=<", ">="):
    _comparison(_op)


@builtin("between", 3, nondeterministic=True)
def _between(ev, args, bindings):
    low = integer_arg(args[0], bindings)
    high_term = bound(args[1], bindings)
    if isinstance(high_term, Atom) and high_term.name in ("inf", "infinite"):
        high = None
    else:
        high = integer_arg(high_term, bindings)
    value = deref(args[2], bindings)
    if not isinstance(value, Variable):
        number = integer_arg(value, bindings)
        if number >= low and (high is None or number <= high):
            yield bindings
        return
    current = low
    while high is None or current <= high:
        yield ev.unify(value, Number(current), bindings)
        current += 1


@builtin("succ", 2)
def _succ(ev, args, bindings):
    left = deref(args[0], bindings)
    if not isinstance(left, Variable):
        number = integer_arg(left, bindings)
        if number < 0:
            raise type_error("not_less_than_zero", left)
        return ev.unify(args[1], Number(number + 1), bindings)
    right = integer_arg(args[1], bindings)
    if right < 0:
        raise type_error("not_less_than_zero", Number(right))
    if right == 0:
        return None
    return ev.unify(left, Number(right - 1), bindings)


@builtin("plus", 3)
def _plus(ev, args, bindings):
    x, y, z = (deref(arg, bindings) for arg in args)
    if not isinstance(x, Variable) and not isinstance(y, Variable):
        return ev.unify(z, Number(evaluate(x, bindings) + evaluate(y, bindings)), bindings)
    if not isinstance(x, Variable) and not isinstance(z, Variable):
        return ev.unify(y, Number(evaluate(z, bindings) - evaluate(x, bindings)), bindings)
    if not isinstance(y, Variable) and not isinstance(z, Variable):
        return ev.unify(x, Number(evaluate(z, bindings) - evaluate(y, bindings)), bindings)
    raise instantiation_error()


# ============================================================================
# Term construction and inspection
# ============================================================================

@builtin("functor", 3)
def _functor(ev, args, bindings):
    term = deref(args[0], bindings)
    if isinstance(term, Compound):
        return unify_pairs(ev, bindings, (args[1], Atom(term.functor)), (args[2], Number(len(term.args))))
    if not isinstance(term, Variable):
        return unify_pairs(ev, bindings, (args[1], term), (args[2], Number(0)))

    name = bound(args[1], bindings)
    arity = integer_arg(args[2], bindings)
    if arity < 0:
        raise domain_error("not_less_than_zero", Number(arity))
    if arity == 0:
        if not is_atomic(name):
            raise type_error("atomic", resolve(name, bindings))
        return ev.unify(term, name, bindings)
    if isinstance(name, Compound):
        raise type_error("atomic", resolve(name, bindings))
    if not isinstance(name, Atom):
        raise type_error("atom", name)
    return ev.unify(term, Compound(name.name, _fresh_variables(ev, arity)), bindings)


@builtin("arg", 3, nondeterministic=True)
def _arg(ev, args, bindings):
    term = bound(args[1], bindings)
    if not isinstance(term, Compound):
        raise type_error("compound", resolve(term, bindings))
    index = deref(args[0], bindings)
    if isinstance(index, Variable):
        for position, value in enumerate(term.args, start=1):
            unified = unify_pairs(ev, bindings, (index, Number(position)), (args[2], value))
            if unified is not None:
                yield unified
        return
    position = integer_arg(index, bindings)
    if 1 <= position <= len(term.args):
        unified = ev.unify(args[2], term.args[position - 1], bindings)
        if unified is not None:
            yield unified


@builtin("=..", 2)
def _univ(ev, args, bindings):
    term = deref(args[0], bindings)
    if isinstance(term, Compound):
        return ev.unify(args[1], make_list([Atom(term.functor), *term.args]), bindings)
    if not isinstance(term, Variable):
        return ev.unify(args[1], make_list([term]), bindings)

    items = list_arg(args[1], bindings)
    if not items:
        raise domain_error("non_empty_list", NIL)
    head = bound(items[0], bindings)
    if len(items) == 1:
        if isinstance(head, Compound):
            raise type_error("atomic", resolve(head, bindings))
        return ev.unify(term, head, bindings)
    if not isinstance(head, Atom):
        raise type_error("atom", resolve(head, bindings))
    return ev.unify(term, Compound(head.name, items[1:]), bindings)


@builtin("copy_term", 2)
def _copy_term(ev, args, bindings):
    return ev.unify(args[1], ev.renamer.rename(resolve(args[0], bindings)), bindings)


@builtin("term_variables", 2)
def _term_variables(ev, args, bindings):
    variables = term_variables(resolve(args[0], bindings))
    return ev.unify(args[1], make_list(variables), bindings)


# ============================================================================
# Lists
# ============================================================================

@builtin("length", 2, nondeterministic=True)
def _length(ev, args, bindings):
    items, tail = list_to_python(args[0], bindings)
    size = deref(args[1], bindings)
    if not isinstance(size, Variable):
        count = integer_arg(size, bindings)
        if count < 0:
            raise domain_error("not_less_than_zero", size)
    else:
        count = None

    if tail == NIL:
        unified = ev.unify(size, Number(len(items)), bindings)
        if unified is not None:
            yield unified
        return
    if not isinstance(tail, Variable):
        raise type_error("list", resolve(args[0], bindings))

    if count is not None:
        if count >= len(items):
            unified = ev.unify(tail, make_list(_fresh_variables(ev, count - len(items))), bindings)
            if unified is not None:
                yield unified
        return

    extra = 0
    while True:
        unified = unify_pairs(ev, bindings, (tail, make_list(_fresh_variables(ev, extra))),
                              (size, Number(len(items) + extra)))
        if unified is not None:
            yield unified
        extra += 1


@builtin("msort", 2)
def _msort(ev, args, bindings):
    items = [resolve(item, bindings) for item in list_arg(args[0], bindings)]
    return ev.unify(args[1], make_list(sort_terms(items, dedupe=False)), bindings)


@builtin("sort", 2)
def _sort(ev, args, bindings):
    items = [resolve(item, bindings) for item in list_arg(args[0], bindings)]
    return ev.unify(args[1], make_list(sort_terms(items, dedupe=True)), bindings)


@builtin("sort", 4)
def _sort_on_key(ev, args, bindings):
    key = integer_arg(args[0], bindings)
    order = bound(args[1], bindings)
    if not (isinstance(order, Atom) and order.name in ("@<", "@>", "@=<", "@>=")):
        raise domain_error("order", resolve(order, bindings))
    items = [resolve(item, bindings) for item in list_arg(args[2], bindings)]

    def select(term: Term) -> Term:
        if key == 0:
            return term
        if not isinstance(term, Compound):
            raise type_error("compound", term)
        if key > len(term.args):
            raise type_error("compound", term)
        return term.args[key - 1]

    ordered = sort_terms(items, dedupe=order.name in ("@<", "@>"),
                         reverse=order.name in ("@>", "@>="), key=select)
    return ev.unify(args[3], make_list(ordered), bindings)


class _PredsortFailed(Exception):
    pass


@builtin("predsort", 3)
def _predsort(ev, args, bindings):
    predicate = args[0]
    items = [resolve(item, bindings) for item in list_arg(args[1], bindings)]
    order_var = ev.renamer.fresh()

    def compare(a: Term, b: Term) -> int:
        solution = ev.first_solution(Compound("call", (predicate, order_var, a, b)), bindings)
        if solution is None:
            raise _PredsortFailed()
        order = deref(order_var, solution)
        if order == Atom("<"):
            return -1
        if order == Atom(">"):
            return 1
        if order == Atom("="):
            return 0
        raise domain_error("order", resolve(order, solution))

    try:
        ordered = sorted(items, key=functools.cmp_to_key(compare))
    except _PredsortFailed:
        return None
    result: List[Term] = []
    for item in ordered:
        if not result or compare(result[-1], item) != 0:
            result.append(item)
    return ev.unify(args[2], make_list(result), bindings)


@builtin("keysort", 2)
def _keysort(ev, args, bindings):
    pairs = []
    for item in list_arg(args[0], bindings):
        item = resolve(item, bindings)
        if isinstance(item, Variable):
            raise instantiation_error()
        if not (isinstance(item, Compound) and item.functor == "-" and len(item.args) == 2):
            raise type_error("pair", item)
        pairs.append(item)
    ordered = sort_terms(pairs, dedupe=False, key=lambda pair: pair.args[0])
    return ev.unify(args[1], make_list(ordered), bindings)


# ============================================================================
# Database
# ============================================================================

def _check_modifiable(ev, key: Key) -> None:
    if key in BUILTINS or key in CONTROL:
        raise permission_error("modify", "static_procedure", indicator_term(*key))
    predicate = ev.kb.get(key)
    if predicate is not None and predicate.library:
        raise permission_error("modify", "static_procedure", indicator_term(*key))


def _clause_arg(term: Term, bindings: Bindings) -> Clause:
    return Clause.from_term(resolve(bound(term, bindings), bindings))


def _assert(ev, args, bindings, front: bool):
    clause = _clause_arg(args[0], bindings)
    _check_modifiable(ev, clause.key)
    if clause.key not in ev.kb:
        ev.kb.declare_dynamic(clause.key)
    ev.kb.add_clause(clause, front=front)
    return bindings


@builtin("assert", 1)
def _assert_z(ev, args, bindings):
    return _assert(ev, args, bindings, front=False)


@builtin("assertz", 1)
def _assertz(ev, args, bindings):
    return _assert(ev, args, bindings, front=False)


@builtin("asserta", 1)
def _asserta(ev, args, bindings):
    return _assert(ev, args, bindings, front=True)


def _split_clause(term: Term, bindings: Bindings) -> Tuple[Term, Term]:
    term = bound(term, bindings)
    if isinstance(term, Compound) and term.functor == ":-" and len(term.args) == 2:
        return callable_arg(term.args[0], bindings), term.args[1]
    return callable_arg(term, bindings), Atom("true")


@builtin("retract", 1, nondeterministic=True)
def _retract(ev, args, bindings):
    head, body = _split_clause(args[0], bindings)
    key = predicate_key(head)
    _check_modifiable(ev, key)
    for clause in ev.kb.clauses_for(key):
        mapping: Dict[str, Term] = {}
        unified = unify_pairs(ev, bindings, (head, ev.renamer.rename(clause.head, mapping)),
                              (body, ev.renamer.rename(clause.body, mapping)))
        if unified is not None and ev.kb.retract(key, clause):
            yield unified


@builtin("retractall", 1)
def _retractall(ev, args, bindings):
    head = callable_arg(args[0], bindings)
    key = predicate_key(head)
    _check_modifiable(ev, key)
    if key not in ev.kb:
        ev.kb.declare_dynamic(key)
        return bindings
    for clause in ev.kb.clauses_for(key):
        if ev.unifiable(head, ev.renamer.rename(clause.head), bindings):
            ev.kb.retract(key, clause)
    return bindings


@builtin("abolish", 1)
def _abolish(ev, args, bindings):
    key = indicator_arg(args[0], bindings)
    _check_modifiable(ev, key)
    ev.kb.abolish(key)
    return bindings


@builtin("clause", 2, nondeterministic=True)
def _clause(ev, args, bindings):
    head = callable_arg(args[0], bindings)
    body = deref(args[1], bindings)
    if not isinstance(body, Variable) and not is_callable(body):
        raise type_error("callable", resolve(body, bindings))
    key = predicate_key(head)
    if key in BUILTINS or key in CONTROL:
        raise permission_error("access", "private_procedure", indicator_term(*key))
    for clause in ev.kb.clauses_for(key):
        mapping: Dict[str, Term] = {}
        unified = unify_pairs(ev, bindings, (head, ev.renamer.rename(clause.head, mapping)),
                              (body, ev.renamer.rename(clause.body, mapping)))
        if unified is not None:
            yield unified


def declaration_keys(spec: Term, bindings: Bindings) -> List[Key]:
    """Indicators named by a dynamic/discontiguous declaration: a, b or [a, b]"""
    spec = bound(spec, bindings)
    if isinstance(spec, Compound) and spec.functor == "," and len(spec.args) == 2:
        parts = comma_list(resolve(spec, bindings))
    elif spec == NIL or (isinstance(spec, Compound) and spec.functor == "."):
        parts = list_arg(spec, bindings)
    else:
        parts = [spec]
    return [indicator_arg(part, bindings) for part in parts]


@builtin("dynamic", 1)
def _dynamic(ev, args, bindings):
    for key in declaration_keys(args[0], bindings):
        _check_modifiable(ev, key)
        ev.kb.declare_dynamic(key)
    return bindings


@builtin("discontiguous", 1)
def _discontiguous(ev, args, bindings):
    declaration_keys(args[0], bindings)
    return bindings


@builtin("current_predicate", 1, nondeterministic=True)
def _current_predicate(ev, args, bindings):
    spec = deref(args[0], bindings)
    if not isinstance(spec, Variable) and not (
            isinstance(spec, Compound) and spec.functor == "/" and len(spec.args) == 2):
        raise type_error("predicate_indicator", resolve(spec, bindings))
    for predicate in ev.kb.user_predicates():
        if not predicate.clauses and not predicate.dynamic:
            continue
        unified = ev.unify(spec, indicator_term(predicate.name, predicate.arity), bindings)
        if unified is not None:
            yield unified


@builtin("current_op", 3, nondeterministic=True)
def _current_op(ev, args, bindings):
    table = [(priority, kind, name) for name, (priority, kind) in INFIX_OPS.items()]
    table += [(priority, kind, name) for name, (priority, kind) in PREFIX_OPS.items()]
    for priority, kind, name in table:
        unified = unify_pairs(ev, bindings, (args[0], Number(priority)),
                              (args[1], Atom(kind)), (args[2], Atom(name)))
        if unified is not None:
            yield unified
