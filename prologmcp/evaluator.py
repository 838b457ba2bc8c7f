"""
SLD resolution for the Prolog engine

Solutions are produced lazily by generators: each yielded value is a
bindings dictionary extending the one the goal was called with, and
backtracking is simply asking the generator for its next value.

Goals are kept as a linked continuation ``(goal, cut_barrier, rest, size)``
where size counts the goals still to run; a continuation longer than
``max_goals`` raises a stack resource error.
A frame runs deterministic steps inline and only nests a new generator
when a goal leaves alternatives behind; the last matching clause of a
predicate continues in the caller's frame, so deterministic recursion does
not grow the Python stack.

A frame copies the bindings it was handed the first time it needs to bind
something and extends that copy in place from then on; dictionaries handed
to another frame or left behind at a choice point are never mutated. A
deterministic builtin may extend the frame's own dictionary through
``unify``, and goals it solves get a copy.
Cut works with barriers. Every call that is opaque to cut (a predicate
call, call/N, catch/3) gets a fresh barrier number, and goals of its body
carry that number. Cutting to a barrier held by the current frame removes
nothing, as the frame has not branched since taking it. Cutting to any
other barrier is remembered and, once the continuation after the cut is
exhausted, signalled upwards through ``_cut_to`` until the frame that owns
the barrier stops trying alternatives.
"""

import io
import logging
from itertools import count
from typing import Dict, Iterator, Optional, Set, Tuple

from .terms import Term, Atom, Variable, Compound
from .knowledge import KnowledgeBase
from .unification import VariableRenamer, unify, unifiable
from .utils import deref, resolve
from .errors import (
    PrologError, instantiation_error, type_error, existence_error,
    resource_error, indicator_term,
)

logger = logging.getLogger(__name__)

Bindings = Dict[str, Term]
Goals = Optional[Tuple[Term, int, 'Goals', int]]

# Control constructs are handled by the evaluator itself
CONTROL = {(",", 2), (";", 2), ("->", 2), ("*->", 2), ("!", 0), ("true", 0),
           ("\\+", 1), ("catch", 3)} | {("call", n) for n in range(1, 9)}


class Evaluator:
    """
    Evaluates goals against a knowledge base using SLD resolution.

    Builtins are looked up in the registry passed in; anything else must be
    a predicate of the knowledge base, otherwise the call raises an
    existence error.
    """

    def __init__(self, knowledge_base: KnowledgeBase, builtins: Dict,
                 max_depth: int = 500, occurs_check: bool = False,
                 max_goals: int = 1_000_000):
        self.kb = knowledge_base
        self.builtins = builtins
        self.max_depth = max_depth
        self.max_goals = max_goals
        self.occurs_check = occurs_check
        self.renamer = VariableRenamer()
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()
        self._barriers = count(1)
        self._cut_to: Optional[int] = None
        self._call_depth = 0
        self._mutable: Optional[Bindings] = None

    # ------------------------------------------------------------------
    # Services used by builtins
    # ------------------------------------------------------------------

    def unify(self, term1: Term, term2: Term, bindings: Bindings) -> Optional[Bindings]:
        """Unify for builtins; extends the running goal's own bindings in place"""
        return unify(term1, term2, bindings, occurs_check=self.occurs_check,
                     in_place=bindings is self._mutable)

    def unifiable(self, term1: Term, term2: Term, bindings: Bindings) -> bool:
        return unifiable(term1, term2, bindings, self.occurs_check)

    def solve(self, goal: Term, bindings: Bindings) -> Iterator[Bindings]:
        """Solve a goal as call/1 does; a cut inside the goal is local to it"""
        return self._sub_solve(goal, self._shared(bindings), self._call_depth)

    def first_solution(self, goal: Term, bindings: Bindings) -> Optional[Bindings]:
        return self._first(goal, self._shared(bindings), self._call_depth)

    def _shared(self, bindings: Bindings) -> Bindings:
        return dict(bindings) if bindings is self._mutable else bindings

    def _unify_copy(self, term1: Term, term2: Term, bindings: Bindings) -> Optional[Bindings]:
        return unify(term1, term2, bindings, occurs_check=self.occurs_check)

    def _unify_in_place(self, term1: Term, term2: Term, bindings: Bindings) -> bool:
        return unify(term1, term2, bindings, occurs_check=self.occurs_check, in_place=True) is not None

    def output_stream(self, stream: Term, bindings: Bindings) -> io.StringIO:
        """Resolve a stream argument to the buffer it writes to"""
        stream = deref(stream, bindings)
        if isinstance(stream, Variable):
            raise instantiation_error()
        if stream in (Atom("user_output"), Atom("current_output")):
            return self.stdout
        if stream == Atom("user_error"):
            return self.stderr
        if isinstance(stream, Atom):
            raise existence_error("stream", stream)
        raise type_error("stream", resolve(stream, bindings))

    def take_output(self) -> Tuple[str, str]:
        """Return and reset everything written to user_output and user_error"""
        out, err = self.stdout.getvalue(), self.stderr.getvalue()
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()
        return out, err

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def run(self, goal: Term, bindings: Optional[Bindings] = None) -> Iterator[Bindings]:
        """Top-level entry point: solve a query goal"""
        self._cut_to = None
        self._call_depth = 0
        self._mutable = None
        barrier = next(self._barriers)
        return self._solve(_push(goal, barrier, None), dict(bindings or {}), 0, {barrier}, own=True)

    def _sub_solve(self, goal: Term, bindings: Bindings, depth: int) -> Iterator[Bindings]:
        barrier = next(self._barriers)
        return self._solve(_push(goal, barrier, None), bindings, depth + 1, {barrier})

    def _first(self, goal: Term, bindings: Bindings, depth: int) -> Optional[Bindings]:
        solutions = self._sub_solve(goal, bindings, depth)
        try:
            return next(solutions, None)
        finally:
            solutions.close()

    def _solve(self, goals: Goals, bindings: Bindings, depth: int,
               owned: Set[int], own: bool = False) -> Iterator[Bindings]:
        if depth > self.max_depth:
            raise resource_error("depth_limit")

        pending_cut: Optional[int] = None

        while True:
            if goals is None:
                yield bindings
                break

            raw_goal, barrier, rest, size = goals
            if size > self.max_goals:
                raise resource_error("stack")
            goal = deref(raw_goal, bindings)
            if isinstance(goal, Variable):
                raise instantiation_error()
            if isinstance(raw_goal, Variable):
                # A variable goal is called as call/1
                barrier = next(self._barriers)
                owned.add(barrier)

            if isinstance(goal, Compound):
                name, args = goal.functor, goal.args
            elif isinstance(goal, Atom):
                name, args = goal.name, ()
            else:
                raise type_error("callable", goal)
            arity = len(args)

            # Conjunction, true and cut never leave choice points
            if name == "," and arity == 2:
                goals = _push(args[0], barrier, _push(args[1], barrier, rest))
                continue
            if name == "true" and arity == 0:
                goals = rest
                continue
            if name == "!" and arity == 0:
                if barrier not in owned and (pending_cut is None or barrier < pending_cut):
                    pending_cut = barrier
                goals = rest
                continue

            if name == ";" and arity == 2:
                left = deref(args[0], bindings)
                if isinstance(left, Compound) and left.functor == "->" and len(left.args) == 2:
                    condition, then = left.args
                    found = self._first(condition, bindings, depth)
                    if found is not None:
                        own = own or found is not bindings
                        goals, bindings = _push(then, barrier, rest), found
                    else:
                        goals = _push(args[1], barrier, rest)
                    continue
                if isinstance(left, Compound) and left.functor == "*->" and len(left.args) == 2:
                    condition, then = left.args
                    found_any = False
                    for found in self._sub_solve(condition, bindings, depth):
                        found_any = True
                        yield from self._solve(_push(then, barrier, rest), found, depth + 1, set())
                        if self._cut_to is not None:
                            break
                    if found_any:
                        break
                    goals = _push(args[1], barrier, rest)
                    continue
                yield from self._solve(_push(left, barrier, rest), bindings, depth + 1, set())
                if self._cut_to is not None:
                    break
                goals = _push(args[1], barrier, rest)
                continue

            if name == "->" and arity == 2:
                found = self._first(args[0], bindings, depth)
                if found is None:
                    break
                own = own or found is not bindings
                goals, bindings = _push(args[1], barrier, rest), found
                continue

            if name == "*->" and arity == 2:
                inner = next(self._barriers)
                owned.add(inner)
                goals = _push(args[0], inner, _push(args[1], barrier, rest))
                continue

            if name == "\\+" and arity == 1:
                if self._first(args[0], bindings, depth) is not None:
                    break
                goals = rest
                continue

            if name == "call" and 1 <= arity <= 8:
                called = add_args(deref(args[0], bindings), args[1:])
                inner = next(self._barriers)
                owned.add(inner)
                goals = _push(called, inner, rest)
                continue

            if name == "catch" and arity == 3:
                recovered = None
                inner = next(self._barriers)
                solutions = self._solve(_push(args[0], inner, None), bindings, depth + 1, {inner})
                while True:
                    try:
                        solution = next(solutions)
                    except StopIteration:
                        break
                    except PrologError as error:
                        ball = self.renamer.rename(error.term)
                        recovered = self._unify_copy(args[1], ball, bindings)
                        if recovered is None:
                            raise
                        logger.debug(f"Caught {ball}")
                        break
                    yield from self._solve(rest, solution, depth + 1, set())
                    if self._cut_to is not None:
                        solutions.close()
                        break
                if recovered is None:
                    break
                inner = next(self._barriers)
                owned.add(inner)
                own = True
                goals, bindings = _push(args[2], inner, rest), recovered
                continue

            key = (name, arity)
            builtin = self.builtins.get(key)
            if builtin is not None:
                self._call_depth = depth
                if not builtin.nondeterministic:
                    saved = self._mutable
                    self._mutable = bindings if own else None
                    try:
                        result = builtin.function(self, args, bindings)
                    finally:
                        self._mutable = saved
                    if result is None:
                        break
                    own = own or result is not bindings
                    goals, bindings = rest, result
                    continue
                for result in builtin.function(self, args, bindings):
                    yield from self._solve(rest, result, depth + 1, set())
                    if self._cut_to is not None:
                        break
                break

            predicate = self.kb.get(key)
            if predicate is None:
                raise existence_error("procedure", indicator_term(name, arity))

            clause_barrier = next(self._barriers)
            owned.add(clause_barrier)
            matched: Optional[Tuple[Term, Term]] = None
            stopped = False
            for clause in list(predicate.clauses):
                mapping: Dict[str, Term] = {}
                head = self.renamer.rename(clause.head, mapping)
                if not unifiable(goal, head, bindings, self.occurs_check):
                    continue
                body = self.renamer.rename(clause.body, mapping)
                if matched is not None:
                    # Another clause matches, so this one runs on a copy
                    unified = self._unify_copy(goal, matched[0], bindings)
                    yield from self._solve(_continue(matched[1], clause_barrier, rest),
                                           unified, depth + 1, set(), own=True)
                    if self._cut_to is not None:
                        stopped = True
                        break
                matched = (head, body)
            if stopped or matched is None:
                break
            # Last alternative: continue in this frame
            if not own:
                bindings, own = dict(bindings), True
            self._unify_in_place(goal, matched[0], bindings)
            goals = _continue(matched[1], clause_barrier, rest)

        if self._cut_to is not None and self._cut_to in owned:
            self._cut_to = None
        if pending_cut is not None and (self._cut_to is None or pending_cut < self._cut_to):
            self._cut_to = pending_cut


def _push(goal: Term, barrier: int, rest: Goals) -> Goals:
    return (goal, barrier, rest, rest[3] + 1 if rest is not None else 1)


def _continue(body: Term, barrier: int, rest: Goals) -> Goals:
    if body == Atom("true"):
        return rest
    return _push(body, barrier, rest)


def add_args(goal: Term, extra: tuple) -> Term:
    """Append extra arguments to a callable term, as call/N does"""
    if isinstance(goal, Variable):
        raise instantiation_error()
    if not extra:
        if isinstance(goal, (Atom, Compound)):
            return goal
        raise type_error("callable", goal)
    if isinstance(goal, Atom):
        return Compound(goal.name, extra)
    if isinstance(goal, Compound):
        return Compound(goal.functor, goal.args + tuple(extra))
    raise type_error("callable", goal)
