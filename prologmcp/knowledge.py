"""
Knowledge representation for the Prolog engine

This module defines clauses, predicates and the knowledge base structure.
Predicates are indexed by (name, arity) and kept in first-definition order,
which is the order listing/0 reports them in.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

from .terms import Term, Variable, Compound, TRUE, is_callable, term_indicator
from .utils import replace_variables, term_variables
from .writer import format_term, portray_clause
from .errors import instantiation_error, type_error, indicator_term

logger = logging.getLogger(__name__)

Key = Tuple[str, int]


@dataclass(frozen=True)
class Clause:
    """A program clause; facts have the body 'true'"""
    head: Term
    body: Term = TRUE

    @property
    def is_fact(self) -> bool:
        return self.body == TRUE

    @property
    def key(self) -> Key:
        return term_indicator(self.head)

    def get_variables(self) -> Set[str]:
        return self.head.get_variables() | self.body.get_variables()

    def to_term(self) -> Term:
        if self.is_fact:
            return self.head
        return Compound(":-", (self.head, self.body))

    @classmethod
    def from_term(cls, term: Term) -> 'Clause':
        """
        Build a clause from a term, checking it is a valid program clause.

        Examples:
            >>> Clause.from_term(parse_term("p(X) :- q(X)"))
            Clause(head=p(X), body=q(X))
        """
        if isinstance(term, Compound) and term.functor == ":-" and len(term.args) == 2:
            head, body = term.args
        else:
            head, body = term, TRUE
        if isinstance(head, Variable):
            raise instantiation_error()
        if not is_callable(head):
            raise type_error("callable", head)
        if isinstance(body, Variable):
            body = Compound("call", (body,))
        elif not is_callable(body):
            raise type_error("callable", body)
        return cls(head, body)

    def __str__(self) -> str:
        return portray_clause(self.to_term())


def variant_key(clause: Clause) -> Term:
    """A term that is equal for two clauses exactly when they are variants"""
    term = clause.to_term()
    mapping = {v.name: Variable(f"_V{i}") for i, v in enumerate(term_variables(term))}
    return replace_variables(term, mapping)


@dataclass
class Predicate:
    """All clauses for one name/arity plus its declarations"""
    name: str
    arity: int
    clauses: List[Clause] = field(default_factory=list)
    dynamic: bool = False
    library: bool = False
    _variants: Dict[Term, int] = field(default_factory=dict, repr=False)

    @property
    def key(self) -> Key:
        return (self.name, self.arity)

    @property
    def indicator(self) -> str:
        return format_term(indicator_term(self.name, self.arity), quoted=True)

    def variant_count(self, clause: Clause) -> int:
        return self._variants.get(variant_key(clause), 0)

    def add(self, clause: Clause, front: bool = False) -> None:
        if front:
            self.clauses.insert(0, clause)
        else:
            self.clauses.append(clause)
        vkey = variant_key(clause)
        self._variants[vkey] = self._variants.get(vkey, 0) + 1

    def remove(self, clause: Clause) -> bool:
        """Remove this exact clause object; False if it is already gone"""
        for index, existing in enumerate(self.clauses):
            if existing is clause:
                del self.clauses[index]
                vkey = variant_key(clause)
                remaining = self._variants.get(vkey, 0) - 1
                if remaining > 0:
                    self._variants[vkey] = remaining
                else:
                    self._variants.pop(vkey, None)
                return True
        return False

    def reset(self) -> None:
        self.clauses = []
        self._variants = {}

    def listing(self) -> str:
        """
        Render the predicate the way listing/1 prints it.

        Dynamic predicates start with their declaration; every predicate is
        followed by a blank line.
        """
        text = ""
        if self.dynamic:
            text += f":- dynamic {self.indicator}.\n\n"
        for clause in self.clauses:
            text += portray_clause(clause.to_term()) + "\n"
        if self.clauses:
            text += "\n"
        return text


class KnowledgeBase:
    """Container for predicates with lookup by name/arity"""

    def __init__(self):
        self._predicates: Dict[Key, Predicate] = {}

    def get(self, key: Key) -> Optional[Predicate]:
        return self._predicates.get(key)

    def __contains__(self, key: Key) -> bool:
        return key in self._predicates

    def clauses_for(self, key: Key) -> List[Clause]:
        """Snapshot of a predicate's clauses, so callers see the database as it was at call time"""
        predicate = self._predicates.get(key)
        if predicate is None:
            return []
        return list(predicate.clauses)

    def _predicate_for_update(self, key: Key, library: bool) -> Predicate:
        predicate = self._predicates.get(key)
        if predicate is None:
            predicate = Predicate(key[0], key[1], library=library)
            self._predicates[key] = predicate
        elif predicate.library and not library:
            # A user definition replaces the library one
            logger.debug(f"User definition overrides library predicate {predicate.indicator}")
            predicate.reset()
            predicate.library = False
        return predicate

    def add_clause(self, clause: Clause, front: bool = False, library: bool = False) -> None:
        """
        Add a clause to its predicate.

        Args:
            clause: The clause to add
            front: Insert before existing clauses (asserta) instead of after
            library: Mark the predicate as part of the built-in library
        """
        predicate = self._predicate_for_update(clause.key, library)
        predicate.add(clause, front=front)

    def variant_count(self, clause: Clause) -> int:
        """How many stored user clauses are variants of this one"""
        predicate = self._predicates.get(clause.key)
        if predicate is None or predicate.library:
            return 0
        return predicate.variant_count(clause)

    def declare_dynamic(self, key: Key) -> Predicate:
        predicate = self._predicate_for_update(key, library=False)
        predicate.dynamic = True
        return predicate

    def retract(self, key: Key, clause: Clause) -> bool:
        predicate = self._predicates.get(key)
        return predicate is not None and predicate.remove(clause)

    def abolish(self, key: Key) -> bool:
        return self._predicates.pop(key, None) is not None

    def clear(self) -> None:
        """Remove every user predicate; library predicates stay"""
        self._predicates = {k: p for k, p in self._predicates.items() if p.library}

    def predicates(self) -> Iterator[Predicate]:
        yield from list(self._predicates.values())

    def user_predicates(self) -> Iterator[Predicate]:
        """User predicates in first-definition order"""
        for predicate in list(self._predicates.values()):
            if not predicate.library:
                yield predicate

    def listing(self, name: Optional[str] = None, arity: Optional[int] = None) -> str:
        """Text of every user predicate, optionally restricted to a name or name/arity"""
        parts = []
        for predicate in self.user_predicates():
            if name is not None and predicate.name != name:
                continue
            if arity is not None and predicate.arity != arity:
                continue
            parts.append(predicate.listing())
        return "".join(parts)

    def __len__(self) -> int:
        """Number of user clauses"""
        return sum(len(p.clauses) for p in self.user_predicates())

    def __str__(self) -> str:
        text = self.listing()
        return text if text else "Empty knowledge base"
