"""
Utility functions for the Prolog engine

Common functionality used across multiple modules.
"""

from typing import Dict, List, Optional, Set, Tuple
from .terms import Term, Variable, Compound, Atom, NIL, is_list_cell


def dereference_variable(var: Variable, bindings: Dict[str, Term]) -> Term:
    """
    Follow variable bindings to find the final value.

    This function follows chains of variable-to-variable bindings
    until it finds a non-variable term or an unbound variable.
    Handles circular references by tracking visited variables.

    Args:
        var: The variable to dereference
        bindings: Dictionary mapping variable names to terms

    Returns:
        The final term after following all bindings, or the
        original variable if unbound

    Examples:
        >>> bindings = {"X": Variable("Y"), "Y": Atom("a")}
        >>> dereference_variable(Variable("X"), bindings)
        Atom("a")
    """
    if var.name not in bindings:
        return var

    result = bindings[var.name]
    visited = {var.name}

    while isinstance(result, Variable) and result.name in bindings:
        if result.name in visited:
            break  # Circular reference detected
        visited.add(result.name)
        result = bindings[result.name]

    return result


def deref(term: Term, bindings: Dict[str, Term]) -> Term:
    """Dereference a term one level: variables are followed, others returned as-is"""
    if isinstance(term, Variable):
        return dereference_variable(term, bindings)
    return term


def resolve(term: Term, bindings: Dict[str, Term]) -> Term:
    """Fully apply bindings to a term"""
    return term.substitute(bindings)


def get_all_variables(terms: List[Term]) -> Set[str]:
    """
    Collect all variable names from a list of terms.

    Examples:
        >>> terms = [compound("p", var("X")), compound("q", var("Y"), var("X"))]
        >>> get_all_variables(terms)
        {"X", "Y"}
    """
    variables = set()
    for term in terms:
        variables.update(term.get_variables())
    return variables


def term_variables(term: Term) -> List[Variable]:
    """Variables of a term in depth-first, left-to-right order of first occurrence"""
    seen = set()
    ordered = []
    stack = [term]
    while stack:
        current = stack.pop()
        if isinstance(current, Variable):
            if current.name not in seen:
                seen.add(current.name)
                ordered.append(current)
        elif isinstance(current, Compound):
            stack.extend(reversed(current.args))
    return ordered


def is_ground_term(term: Term) -> bool:
    """
    Check if a term contains no variables.

    Examples:
        >>> is_ground_term(compound("p", atom("a"), atom("b")))
        True
        >>> is_ground_term(compound("p", var("X"), atom("b")))
        False
    """
    return len(term.get_variables()) == 0


def list_to_python(term: Term, bindings: Optional[Dict[str, Term]] = None) -> Tuple[List[Term], Term]:
    """
    Split a (possibly partial) Prolog list into its items and its tail.

    The tail is NIL for proper lists, an unbound variable for partial
    lists and any other term for malformed lists.
    """
    bindings = bindings or {}
    items = []
    current = deref(term, bindings)
    while is_list_cell(current):
        items.append(current.args[0])
        current = deref(current.args[1], bindings)
    return items, current


def proper_list(term: Term, bindings: Optional[Dict[str, Term]] = None) -> Optional[List[Term]]:
    """Items of a proper list, or None if the term is not one"""
    items, tail = list_to_python(term, bindings)
    if tail == NIL:
        return items
    return None


def make_list(items: List[Term], tail: Term = NIL) -> Term:
    """Build a Prolog list from Python items"""
    result = tail
    for item in reversed(items):
        result = Compound(".", (item, result))
    return result


def comma_list(term: Term) -> List[Term]:
    """Flatten a conjunction (a, b, c) into [a, b, c]"""
    goals = []
    while isinstance(term, Compound) and term.functor == "," and len(term.args) == 2:
        goals.append(term.args[0])
        term = term.args[1]
    goals.append(term)
    return goals


def conjunction(goals: List[Term]) -> Term:
    """Build a conjunction from a list of goals; the empty list is 'true'"""
    if not goals:
        return Atom("true")
    result = goals[-1]
    for goal in reversed(goals[:-1]):
        result = Compound(",", (goal, result))
    return result


def replace_variables(term: Term, mapping: Dict[str, Term]) -> Term:
    """Replace variables by exact name lookup; unlike substitute(), chains are not followed"""
    if isinstance(term, Variable):
        return mapping.get(term.name, term)
    if not isinstance(term, Compound):
        return term
    if is_list_cell(term):
        items, tail = [], term
        while is_list_cell(tail):
            items.append(replace_variables(tail.args[0], mapping))
            tail = tail.args[1]
        return make_list(items, replace_variables(tail, mapping))
    return Compound(term.functor, [replace_variables(arg, mapping) for arg in term.args])
