"""
Main engine for prolog-mcp

Combines the knowledge base, the evaluator and the builtin registry behind
the three capabilities the session manager relies on: consulting program
text, running a query lazily, and listing the knowledge base.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional

from .terms import Term, Variable, Compound
from .knowledge import Clause, KnowledgeBase, variant_key
from .evaluator import CONTROL, Evaluator
from .builtins import BUILTINS
from . import strings  # noqa: F401  registers text and output builtins
from .library import load_library
from .dcg import is_grammar_rule, translate_rule
from .reader import read_terms, read_term
from .utils import resolve
from .errors import PrologError, PrologSyntaxError, permission_error, resource_error, indicator_term

logger = logging.getLogger(__name__)


class AnswerStatus(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"


@dataclass
class Answer:
    """
    One element of a query's answer sequence.

    Bindings map query variable names to their values; variables whose name
    starts with '_' and variables left unbound are not reported.
    """
    status: AnswerStatus
    bindings: Dict[str, Term] = field(default_factory=dict)
    stdout: str = ""
    stderr: str = ""
    error: Optional[Term] = None

    @property
    def succeeded(self) -> bool:
        return self.status is AnswerStatus.SUCCESS

    def __str__(self) -> str:
        if self.status is AnswerStatus.ERROR:
            return f"error: {self.error}"
        if self.status is AnswerStatus.FAILURE:
            return "false"
        if not self.bindings:
            return "true"
        return ", ".join(f"{name} = {value}" for name, value in self.bindings.items())


class PrologEngine:
    """
    Main interface for the Prolog engine.

    Examples:
        >>> engine = PrologEngine()
        >>> engine.consult_text("parent(tom, bob). parent(bob, ann).")
        []
        >>> [str(a) for a in engine.query("parent(tom, X)")]
        ['X = bob', 'false']
    """

    def __init__(self, max_depth: int = 500, occurs_check: bool = False, max_solutions: int = 0):
        self.kb = KnowledgeBase()
        load_library(self.kb)
        self.evaluator = Evaluator(self.kb, BUILTINS, max_depth=max_depth, occurs_check=occurs_check)
        self.max_solutions = max_solutions

    @classmethod
    def from_config(cls, query_config) -> 'PrologEngine':
        return cls(max_depth=query_config.max_depth,
                   occurs_check=query_config.occurs_check,
                   max_solutions=query_config.max_solutions)

    # ------------------------------------------------------------------
    # Consulting
    # ------------------------------------------------------------------

    def consult_text(self, text: str) -> List[str]:
        """
        Add the clauses of a program text to the knowledge base.

        Clauses are added one at a time, so a syntax error or a directive
        that raises leaves earlier clauses loaded. Variants count as a
        multiset: the n-th copy of a clause in the text is skipped when at
        least n copies were already stored, so consulting the same text twice
        is a no-op while duplicates within one text are all kept.

        Returns:
            Warnings produced while loading (failed directives)

        Raises:
            PrologError: syntax errors, invalid clauses and directive errors
        """
        warnings: List[str] = []
        initialization: List[Term] = []
        added = 0
        stored: Dict[Term, int] = {}
        seen: Dict[Term, int] = {}

        for term, _ in read_terms(text):
            if isinstance(term, Compound) and term.functor == ":-" and len(term.args) == 1:
                goal = term.args[0]
                if isinstance(goal, Compound) and goal.functor == "initialization" and len(goal.args) == 1:
                    initialization.append(goal.args[0])
                else:
                    self._run_directive(goal, warnings)
                continue
            if is_grammar_rule(term):
                term = translate_rule(term)
            clause = Clause.from_term(term)
            if clause.key in BUILTINS or clause.key in CONTROL:
                raise permission_error("modify", "static_procedure", indicator_term(*clause.key))
            vkey = variant_key(clause)
            if vkey not in stored:
                stored[vkey] = self.kb.variant_count(clause)
            seen[vkey] = seen.get(vkey, 0) + 1
            if seen[vkey] <= stored[vkey]:
                logger.debug(f"Skipping clause already loaded: {term}")
                continue
            self.kb.add_clause(clause)
            added += 1

        for goal in initialization:
            self._run_directive(goal, warnings)

        logger.info(f"Consulted {added} clauses ({len(warnings)} warnings)")
        return warnings

    def _run_directive(self, goal: Term, warnings: List[str]) -> None:
        solutions = self.evaluator.run(goal)
        try:
            found = next(solutions, None)
        except RecursionError:
            raise resource_error("stack")
        finally:
            solutions.close()
            out, err = self.evaluator.take_output()
            if out or err:
                logger.info(f"Directive output: {out}{err}")
        if found is None:
            warning = f"Warning: Goal (directive) failed: {goal}"
            logger.warning(warning)
            warnings.append(warning)

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    def query(self, text: str) -> Iterator[Answer]:
        """
        Run a query lazily.

        Yields one success answer per solution, then a failure answer once
        the solutions are exhausted; an uncaught error ends the sequence with
        an error answer instead. With max_solutions set, the sequence stops
        after that many solutions with a failure answer carrying a warning.
        """
        try:
            goal, variables = read_term(text)
        except PrologSyntaxError as error:
            yield Answer(AnswerStatus.ERROR, stderr=f"{error}\n", error=error.term)
            return

        logger.debug(f"Query: {goal}")
        self.evaluator.take_output()
        solutions = self.evaluator.run(goal)
        found = 0
        try:
            while True:
                try:
                    bindings = next(solutions, None)
                except PrologError as error:
                    yield self._error_answer(error.term)
                    return
                except RecursionError:
                    yield self._error_answer(resource_error("stack").term)
                    return

                out, err = self.evaluator.take_output()
                if bindings is None:
                    yield Answer(AnswerStatus.FAILURE, stdout=out, stderr=err)
                    return
                yield Answer(AnswerStatus.SUCCESS, bindings=_answer_bindings(variables, bindings),
                             stdout=out, stderr=err)
                found += 1
                if self.max_solutions and found >= self.max_solutions:
                    logger.warning(f"Query stopped after {found} solutions")
                    yield Answer(AnswerStatus.FAILURE,
                                 stderr=f"Warning: stopped after {found} solutions\n")
                    return
        finally:
            solutions.close()

    def _error_answer(self, term: Term) -> Answer:
        out, err = self.evaluator.take_output()
        logger.debug(f"Query raised {term}")
        return Answer(AnswerStatus.ERROR, stdout=out, stderr=err, error=term)

    def ask(self, text: str) -> bool:
        """True if the query has at least one solution"""
        answers = self.query(text)
        try:
            return next(answers).succeeded
        finally:
            answers.close()

    # ------------------------------------------------------------------
    # Knowledge base
    # ------------------------------------------------------------------

    def listing(self) -> str:
        return self.kb.listing()

    def clear(self) -> None:
        self.kb.clear()

    def __str__(self) -> str:
        return f"PrologEngine: {len(self.kb)} clauses"


def _answer_bindings(variables: Dict[str, Variable], bindings: Dict[str, Term]) -> Dict[str, Term]:
    result = {}
    for name, variable in variables.items():
        if name.startswith("_"):
            continue
        value = resolve(variable, bindings)
        if value == variable:
            continue
        result[name] = value
    return result
