"""
Unification for the Prolog engine

Bindings are plain dictionaries mapping variable names to terms. By default
unification never mutates the bindings it is given; a successful unification
returns a new dictionary extending them. With ``in_place`` the dictionary is
extended directly, and a failed unification undoes its own bindings.
"""

from itertools import count
from typing import Dict, List, Optional
from enum import Enum
from .terms import Term, Atom, Number, String, Variable, Compound
from .utils import deref, replace_variables

Bindings = Dict[str, Term]


class UnificationMode(Enum):
    """Different unification modes"""
    STANDARD = "standard"  # Standard two-way unification
    MATCH = "match"  # One-way pattern matching (term1 is pattern)


# ============================================================================
# Functional API
# ============================================================================

def unify(term1: Term, term2: Term,
          bindings: Optional[Bindings] = None,
          occurs_check: bool = False,
          in_place: bool = False) -> Optional[Bindings]:
    """
    Unify two terms under the given bindings.

    Examples:
        >>> unify(compound("p", var("X")), compound("p", atom("a")))
        {'X': Atom(name='a')}
    """
    return Unifier(occurs_check=occurs_check).unify(term1, term2, bindings, in_place)


def unifiable(term1: Term, term2: Term, bindings: Bindings,
              occurs_check: bool = False) -> bool:
    """True if the terms unify under the bindings; the bindings are left as they were"""
    trail: List[str] = []
    unified = Unifier(occurs_check=occurs_check)._unify_into(term1, term2, bindings, trail)
    for name in trail:
        del bindings[name]
    return unified


def match(pattern: Term, term: Term,
          bindings: Optional[Bindings] = None) -> Optional[Bindings]:
    """
    One-way pattern matching - only bind variables in pattern.

    Examples:
        >>> match(compound("p", var("X")), compound("p", atom("a")))
        {'X': Atom(name='a')}
        >>> match(compound("p", atom("a")), compound("p", var("X")))
        None
    """
    return Unifier(mode=UnificationMode.MATCH).unify(pattern, term, bindings)


def subsumes(general: Term, specific: Term, bindings: Optional[Bindings] = None) -> bool:
    """
    Check if general term subsumes specific term.

    A term t1 subsumes t2 if t1 can be made identical to t2 by binding
    variables of t1 only.
    """
    bindings = bindings or {}
    specific = specific.substitute(bindings)
    result = match(general.substitute(bindings), specific)
    if result is None:
        return False
    # Variables of the specific term must stay untouched
    return all(name not in result for name in specific.get_variables())


def variant(term1: Term, term2: Term) -> bool:
    """True if the terms are equal up to a consistent renaming of variables"""
    forward: Dict[str, str] = {}
    backward: Dict[str, str] = {}
    stack = [(term1, term2)]
    while stack:
        left, right = stack.pop()
        if isinstance(left, Variable) and isinstance(right, Variable):
            if forward.setdefault(left.name, right.name) != right.name:
                return False
            if backward.setdefault(right.name, left.name) != left.name:
                return False
        elif isinstance(left, Compound) and isinstance(right, Compound):
            if left.functor != right.functor or len(left.args) != len(right.args):
                return False
            stack.extend(zip(left.args, right.args))
        elif left != right:
            return False
    return True


class VariableRenamer:
    """Produces fresh variable names so clause copies never share variables"""

    def __init__(self, prefix: str = "_G"):
        self.prefix = prefix
        self._counter = count(1)

    def fresh(self) -> Variable:
        return Variable(f"{self.prefix}{next(self._counter)}")

    def rename(self, term: Term, mapping: Optional[Dict[str, Term]] = None) -> Term:
        """Copy a term replacing every variable with a fresh one"""
        if mapping is None:
            mapping = {}
        for name in term.get_variables():
            if name not in mapping:
                mapping[name] = self.fresh()
        return replace_variables(term, mapping)


# ============================================================================
# Unifier class
# ============================================================================

class Unifier:
    """
    Iterative unification with an optional occurs check.

    Prolog systems traditionally skip the occurs check; it is off by default
    and enabled for unify_with_occurs_check/2 or by configuration.
    """

    def __init__(self, mode: UnificationMode = UnificationMode.STANDARD,
                 occurs_check: bool = False):
        self.mode = mode
        self.occurs_check = occurs_check

    def unify(self, term1: Term, term2: Term,
              bindings: Optional[Bindings] = None,
              in_place: bool = False) -> Optional[Bindings]:
        if in_place and bindings is not None:
            trail: List[str] = []
            if self._unify_into(term1, term2, bindings, trail):
                return bindings
            for name in trail:
                del bindings[name]
            return None
        result = dict(bindings) if bindings else {}
        return result if self._unify_into(term1, term2, result, None) else None

    def _unify_into(self, term1: Term, term2: Term, result: Bindings,
                    trail: Optional[List[str]]) -> bool:
        stack = [(term1, term2)]

        while stack:
            left, right = stack.pop()
            left = deref(left, result)
            right = deref(right, result)

            if left is right:
                continue

            if isinstance(left, Variable):
                if isinstance(right, Variable) and left.name == right.name:
                    continue
                if not self._bind(left, right, result, trail):
                    return False
                continue

            if isinstance(right, Variable):
                if self.mode == UnificationMode.MATCH:
                    return False
                if not self._bind(right, left, result, trail):
                    return False
                continue

            if isinstance(left, Compound):
                if not isinstance(right, Compound):
                    return False
                if left.functor != right.functor or len(left.args) != len(right.args):
                    return False
                stack.extend(zip(reversed(left.args), reversed(right.args)))
                continue

            if not _atomic_equal(left, right):
                return False

        return True

    def _bind(self, variable: Variable, term: Term, bindings: Bindings,
              trail: Optional[List[str]]) -> bool:
        if self.occurs_check and occurs_in(variable.name, term, bindings):
            return False
        bindings[variable.name] = term
        if trail is not None:
            trail.append(variable.name)
        return True


def _atomic_equal(left: Term, right: Term) -> bool:
    if isinstance(left, (Atom, String, Number)):
        return left == right
    return False


def occurs_in(var_name: str, term: Term, bindings: Bindings) -> bool:
    """Check if variable occurs in term"""
    stack = [term]
    while stack:
        current = deref(stack.pop(), bindings)
        if isinstance(current, Variable):
            if current.name == var_name:
                return True
        elif isinstance(current, Compound):
            stack.extend(current.args)
    return False

