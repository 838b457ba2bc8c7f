"""
Term representations for the Prolog engine

This module defines the core term types:
- Atom: Constants like 'john', '[]', '+'
- Number: Integers and floats
- String: Double-quoted text
- Variable: Logical variables like 'X', '_G12'
- Compound: Structures like 'parent(john, mary)' and list cells '.'(H, T)
"""

from typing import Dict, Set, Union
from dataclasses import dataclass
from abc import ABC, abstractmethod


class Term(ABC):
    """Abstract base class for all terms"""

    @abstractmethod
    def substitute(self, bindings: Dict[str, 'Term']) -> 'Term':
        """
        Apply variable substitutions to this term.

        Args:
            bindings: Dictionary mapping variable names to terms.
                     Chains of variables are followed transitively.

        Returns:
            New term with all bound variables replaced.
            Returns self if no substitutions apply.
        """
        pass

    @abstractmethod
    def get_variables(self) -> Set[str]:
        """Get all variable names in this term"""
        pass

    def __str__(self) -> str:
        from .writer import format_term
        return format_term(self, quoted=True)


@dataclass(frozen=True)
class Atom(Term):
    """Represents an atomic constant"""
    name: str

    def substitute(self, bindings: Dict[str, Term]) -> Term:
        return self

    def get_variables(self) -> Set[str]:
        return set()


@dataclass(frozen=True, eq=False)
class Number(Term):
    """Represents an integer or floating point number"""
    value: Union[int, float]

    def substitute(self, bindings: Dict[str, Term]) -> Term:
        return self

    def get_variables(self) -> Set[str]:
        return set()

    @property
    def is_integer(self) -> bool:
        return isinstance(self.value, int)

    def __eq__(self, other) -> bool:
        # 1 and 1.0 are different terms
        if not isinstance(other, Number):
            return False
        return type(self.value) is type(other.value) and self.value == other.value

    def __hash__(self) -> int:
        return hash((type(self.value).__name__, self.value))


@dataclass(frozen=True)
class String(Term):
    """Represents a double-quoted string"""
    value: str

    def substitute(self, bindings: Dict[str, Term]) -> Term:
        return self

    def get_variables(self) -> Set[str]:
        return set()


@dataclass(frozen=True)
class Variable(Term):
    """Represents a logical variable"""
    name: str

    def substitute(self, bindings: Dict[str, Term]) -> Term:
        """Apply substitution to this variable, following chains"""
        from .utils import dereference_variable
        result = dereference_variable(self, bindings)
        if isinstance(result, Variable):
            return result
        return result.substitute(bindings)

    def get_variables(self) -> Set[str]:
        return {self.name}

    @property
    def is_anonymous(self) -> bool:
        return self.name.startswith("_")


@dataclass(frozen=True)
class Compound(Term):
    """Represents a compound term with functor and arguments"""
    functor: str
    args: tuple  # tuple[Term, ...]

    def __init__(self, functor: str, args):
        if not isinstance(functor, str):
            raise TypeError(f"Compound functor must be a string, got {type(functor)}")
        if not isinstance(args, (list, tuple)):
            raise TypeError(f"Compound args must be list or tuple, got {type(args)}")
        if not args:
            raise ValueError("Compound term needs at least one argument")
        object.__setattr__(self, 'functor', functor)
        object.__setattr__(self, 'args', tuple(args))

    @property
    def arity(self) -> int:
        """Number of arguments"""
        return len(self.args)

    @property
    def indicator(self) -> tuple:
        return (self.functor, len(self.args))

    def substitute(self, bindings: Dict[str, Term]) -> Term:
        """Apply substitutions to all arguments"""
        if self.functor == "." and len(self.args) == 2:
            return _substitute_list(self, bindings)
        return Compound(self.functor, [arg.substitute(bindings) for arg in self.args])

    def get_variables(self) -> Set[str]:
        variables = set()
        stack = [self]
        while stack:
            term = stack.pop()
            if isinstance(term, Variable):
                variables.add(term.name)
            elif isinstance(term, Compound):
                stack.extend(term.args)
        return variables


def _substitute_list(cell: Compound, bindings: Dict[str, Term]) -> Term:
    # List spines can be long; walk them iteratively
    from .utils import dereference_variable
    heads = []
    tail: Term = cell
    while isinstance(tail, Compound) and tail.functor == "." and len(tail.args) == 2:
        heads.append(tail.args[0].substitute(bindings))
        tail = tail.args[1]
        if isinstance(tail, Variable):
            tail = dereference_variable(tail, bindings)
    result = tail.substitute(bindings)
    for head in reversed(heads):
        result = Compound(".", (head, result))
    return result


NIL = Atom("[]")
TRUE = Atom("true")
EMPTY_BLOCK = Atom("{}")


def is_callable(term: Term) -> bool:
    return isinstance(term, (Atom, Compound))


def is_atomic(term: Term) -> bool:
    return isinstance(term, (Atom, Number, String))


def is_list_cell(term: Term) -> bool:
    return isinstance(term, Compound) and term.functor == "." and len(term.args) == 2


def term_indicator(term: Term) -> tuple:
    """(name, arity) key of a callable term"""
    if isinstance(term, Compound):
        return (term.functor, len(term.args))
    if isinstance(term, Atom):
        return (term.name, 0)
    raise TypeError(f"Term {term!r} has no predicate indicator")
