"""
Factory functions for creating Prolog terms.

This module provides convenience functions for creating terms without
circular import issues.
"""

from typing import Any, List, Union
from .terms import Term, Atom, Number, String, Variable, Compound, NIL


def atom(name: str) -> Atom:
    """
    Create an atomic term.

    Examples:
        >>> atom("john")
        Atom(name='john')
    """
    return Atom(name)


def number(value: Union[int, float]) -> Number:
    """
    Create a numeric term.

    Examples:
        >>> number(42)
        Number(value=42)
    """
    return Number(value)


def string(value: str) -> String:
    return String(value)


def var(name: str) -> Variable:
    """
    Create a logical variable.

    Variables should start with an uppercase letter or underscore.

    Examples:
        >>> var("X")
        Variable(name='X')
    """
    return Variable(name)


def compound(functor: str, *args: Term) -> Term:
    """
    Create a compound term.

    With no arguments the result is the atom of the same name.

    Examples:
        >>> compound("parent", atom("john"), atom("mary"))
        Compound(functor='parent', args=(Atom(name='john'), Atom(name='mary')))
    """
    if not args:
        return Atom(functor)
    return Compound(functor, list(args))


def plist(*items: Term, tail: Term = NIL) -> Term:
    """
    Create a Prolog list.

    Examples:
        >>> plist(atom("a"), atom("b"))   # [a, b]
    """
    result = tail
    for item in reversed(items):
        result = Compound(".", (item, result))
    return result


def term_from_python(value: Any) -> Term:
    """
    Convert a plain Python value to a term.

    Strings starting with an uppercase letter or underscore become variables,
    other strings atoms; lists become Prolog lists.

    Examples:
        >>> term_from_python(["a", 1, "X"])   # [a, 1, X]
    """
    if isinstance(value, Term):
        return value
    if isinstance(value, bool):
        return Atom("true" if value else "false")
    if isinstance(value, (int, float)):
        return Number(value)
    if isinstance(value, str):
        if value and (value[0].isupper() or value[0] == "_"):
            return Variable(value)
        return Atom(value)
    if isinstance(value, (list, tuple)):
        items: List[Term] = [term_from_python(item) for item in value]
        return plist(*items)
    raise TypeError(f"Cannot convert {type(value).__name__} to a term")
