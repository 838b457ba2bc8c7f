"""
Tests for consulting programs and running queries
"""
import pytest
from prologmcp import PrologEngine, AnswerStatus, PrologError, atom, number, compound, plist
from prologmcp.config import QueryConfig


FAMILY = """
parent(tom, bob).
parent(bob, ann).
parent(bob, pat).
grandparent(X, Z) :- parent(X, Y), parent(Y, Z).
"""


@pytest.fixture
def engine():
    engine = PrologEngine()
    engine.consult_text(FAMILY)
    return engine


def answers(engine, text):
    return [str(answer) for answer in engine.query(text)]


class TestConsult:
    """Test loading program text"""

    def test_facts_and_rules(self, engine):
        """Test consulting facts and rules"""
        assert answers(engine, "grandparent(tom, Who)") == ["Who = ann", "Who = pat", "false"]

    def test_consulting_twice_is_idempotent(self, engine):
        """Test consulting the same text twice"""
        before = engine.listing()
        engine.consult_text(FAMILY)
        assert engine.listing() == before
        assert answers(engine, "parent(tom, X)") == ["X = bob", "false"]

    def test_duplicates_in_one_text_are_kept(self):
        """Test that repeated clauses in a single program are all stored"""
        engine = PrologEngine()
        engine.consult_text("coin(heads). coin(heads). coin(tails).")
        assert answers(engine, "findall(X, coin(X), L)") == ["L = [heads,heads,tails]", "false"]

    def test_reconsulting_duplicates_is_idempotent(self):
        """Test that consulting a text with duplicates twice stores each copy once"""
        engine = PrologEngine()
        engine.consult_text("coin(heads). coin(heads).")
        engine.consult_text("coin(heads). coin(heads).")
        engine.consult_text("coin(heads).")
        assert answers(engine, "findall(X, coin(X), L)") == ["L = [heads,heads]", "false"]
        engine.consult_text("coin(heads). coin(heads). coin(heads).")
        assert answers(engine, "findall(X, coin(X), L)") == ["L = [heads,heads,heads]", "false"]

    def test_clauses_accumulate(self, engine):
        """Test clauses from separate texts accumulate"""
        engine.consult_text("parent(ann, joe).")
        assert answers(engine, "grandparent(bob, X)") == ["X = joe", "false"]

    def test_syntax_error_keeps_earlier_clauses(self):
        """Test a syntax error keeps clauses before it"""
        engine = PrologEngine()
        with pytest.raises(PrologError):
            engine.consult_text("a(1).\nb(2).\nc(.\n")
        assert engine.ask("a(1)")
        assert engine.ask("b(2)")

    def test_cannot_redefine_builtins(self):
        """Test builtins cannot be redefined"""
        engine = PrologEngine()
        with pytest.raises(PrologError) as info:
            engine.consult_text("atom(x).")
        assert info.value.term.args[0].functor == "permission_error"

    def test_library_predicates_can_be_redefined(self):
        """Test library predicates can be replaced"""
        engine = PrologEngine()
        engine.consult_text("last(_, mine).")
        assert answers(engine, "last([a, b], X)") == ["X = mine", "false"]

    def test_directives_run_while_loading(self):
        """Test directives run during consult"""
        engine = PrologEngine()
        warnings = engine.consult_text(":- dynamic counter/1.\ncounter(0).\n:- assertz(counter(1)).")
        assert warnings == []
        assert answers(engine, "counter(X)") == ["X = 0", "X = 1", "false"]

    def test_failed_directive_is_a_warning(self):
        """Test a failing directive gives a warning"""
        engine = PrologEngine()
        warnings = engine.consult_text("p(1).\n:- p(2).\nq(1).")
        assert warnings == ["Warning: Goal (directive) failed: p(2)"]
        assert engine.ask("q(1)")

    def test_directive_error_raises(self):
        """Test an erroring directive raises"""
        engine = PrologEngine()
        with pytest.raises(PrologError):
            engine.consult_text(":- X is foo + 1.")

    def test_initialization_runs_after_load(self):
        """Test initialization/1 goals run after loading"""
        engine = PrologEngine()
        warnings = engine.consult_text(":- initialization(ready).\nready.")
        assert warnings == []

    def test_grammar_rules(self):
        """Test DCG translation"""
        engine = PrologEngine()
        engine.consult_text("""
            greeting --> [hello], name.
            name --> [world].
            name --> [prolog].
        """)
        assert answers(engine, "phrase(greeting, [hello, prolog])") == ["true", "false"]
        assert answers(engine, "phrase(greeting, [hello, X])") == ["X = world", "X = prolog", "false"]

    def test_grammar_rule_goals_and_pushback(self):
        """Test DCG goals in braces and pushback"""
        engine = PrologEngine()
        engine.consult_text("""
            digits([D|T]) --> digit(D), digits(T).
            digits([D]) --> digit(D).
            digit(D) --> [D], { D >= 0'0, D =< 0'9 }.
            ab --> "ab".
            peek(X), [X] --> [X].
        """)
        assert answers(engine, "phrase(digits(Ds), [0'1, 0'2])") == ["Ds = [49,50]", "false"]
        assert answers(engine, "phrase(ab, [97, 98])") == ["true", "false"]
        assert answers(engine, "phrase(peek(X), [a], R)") == ["X = a, R = [a]", "false"]


class TestQuery:
    """Test the answer sequence of a query"""

    def test_answers_end_with_failure(self, engine):
        """Test the answer stream ends with failure"""
        results = list(engine.query("parent(bob, X)"))
        assert [a.status for a in results] == [AnswerStatus.SUCCESS, AnswerStatus.SUCCESS, AnswerStatus.FAILURE]
        assert results[0].bindings == {"X": atom("ann")}

    def test_no_solutions(self, engine):
        """Test a query with no solutions"""
        assert answers(engine, "parent(ann, X)") == ["false"]

    def test_ground_query(self, engine):
        """Test a ground query"""
        assert answers(engine, "parent(tom, bob)") == ["true", "false"]

    def test_underscore_and_unbound_variables_not_reported(self, engine):
        """Test which variables are reported"""
        results = list(engine.query("parent(_P, X), Y = Y"))
        assert results[0].bindings == {"X": atom("bob")}

    def test_binding_values_are_resolved(self):
        """Test binding values are fully resolved"""
        engine = PrologEngine()
        results = list(engine.query("X = f(Y), Y = [1, 2]"))
        assert results[0].bindings["X"] == compound("f", plist(number(1), number(2)))
        assert str(results[0]) == "X = f([1,2]), Y = [1,2]"

    def test_output_is_captured_per_answer(self):
        """Test output is captured per answer"""
        engine = PrologEngine()
        results = list(engine.query("member(X, [a, b]), write(X), nl"))
        assert [a.stdout for a in results] == ["a\n", "b\n", ""]

    def test_stderr_is_captured(self):
        """Test stderr output is captured"""
        engine = PrologEngine()
        results = list(engine.query("format(user_error, 'oops~n', [])"))
        assert results[0].stderr == "oops\n"

    def test_syntax_error_answer(self):
        """Test a syntax error becomes an error answer"""
        engine = PrologEngine()
        results = list(engine.query("foo("))
        assert len(results) == 1
        assert results[0].status is AnswerStatus.ERROR
        assert results[0].stderr.startswith("Syntax error")

    def test_unknown_procedure_is_error(self):
        """Test calling an unknown procedure"""
        engine = PrologEngine()
        results = list(engine.query("missing(1)"))
        assert results[-1].status is AnswerStatus.ERROR
        formal = results[-1].error.args[0]
        assert formal == compound("existence_error", atom("procedure"), compound("/", atom("missing"), number(1)))

    def test_error_after_solutions(self):
        """Test an error after some solutions"""
        engine = PrologEngine()
        engine.consult_text("p(1). p(oops). p(3).")
        results = list(engine.query("p(X), Y is X + 1"))
        assert [a.status for a in results] == [AnswerStatus.SUCCESS, AnswerStatus.ERROR]

    def test_uncaught_throw(self):
        """Test an uncaught throw"""
        engine = PrologEngine()
        results = list(engine.query("throw(my_ball)"))
        assert len(results) == 1
        assert results[0].error == atom("my_ball")

    def test_depth_limit(self):
        """Test the depth limit"""
        engine = PrologEngine(max_depth=50)
        engine.consult_text("loop(X) :- loop(X).\nloop(_).")
        results = list(engine.query("loop(1)"))
        assert results[-1].status is AnswerStatus.ERROR
        assert results[-1].error.args[0] == compound("resource_error", atom("depth_limit"))

    def test_growing_continuation_limit(self):
        """Test the pending goal limit"""
        engine = PrologEngine()
        engine.evaluator.max_goals = 1000
        engine.consult_text("grow(X) :- grow(X), true.")
        results = list(engine.query("grow(1)"))
        assert results[-1].error.args[0] == compound("resource_error", atom("stack"))

    def test_deep_tail_recursion(self):
        """Test deep tail recursion"""
        engine = PrologEngine()
        engine.consult_text("count(N, N) :- !.\ncount(I, N) :- I1 is I + 1, count(I1, N).")
        assert answers(engine, "count(0, 2000)") == ["true", "false"]

    def test_long_deterministic_recursion(self):
        """Test deterministic recursion far deeper than the frame limit"""
        engine = PrologEngine()
        engine.consult_text("count(N, N) :- !.\ncount(I, N) :- I1 is I + 1, count(I1, N).")
        assert answers(engine, "count(0, 50000)") == ["true", "false"]
        assert answers(engine, "numlist(1, 20000, _L), length(_L, N)") == ["N = 20000", "false"]

    def test_failed_branches_leave_no_bindings(self):
        """Test that bindings made by a failed branch are gone on backtracking"""
        engine = PrologEngine()
        engine.consult_text("r(X) :- X = 1, fail.\nq(X, Y) :- X = a, Y = b.")
        assert answers(engine, "(r(Y) -> true ; var(Y))") == ["true", "false"]
        assert answers(engine, "(q(A, c) ; true), var(A)") == ["true", "false"]
        assert answers(engine, "f(X, b) \\= f(a, c), var(X)") == ["true", "false"]
        assert answers(engine, "assertz(c(1)), assertz(c(2)), retractall(c(X)), findall(Y, c(Y), L)") == \
            ["L = []", "false"]

    def test_max_solutions(self):
        """Test the solution cap"""
        engine = PrologEngine(max_solutions=2)
        results = list(engine.query("between(1, inf, X)"))
        assert [str(a) for a in results] == ["X = 1", "X = 2", "false"]
        assert results[-1].stderr == "Warning: stopped after 2 solutions\n"

    def test_query_can_be_abandoned(self, engine):
        """Test closing a query early"""
        answers_iter = engine.query("parent(X, Y)")
        assert next(answers_iter).succeeded
        answers_iter.close()
        assert engine.ask("parent(tom, bob)")

    def test_from_config(self):
        """Test building an engine from config"""
        engine = PrologEngine.from_config(QueryConfig(max_depth=10, max_solutions=1))
        assert engine.evaluator.max_depth == 10
        assert engine.max_solutions == 1


class TestListing:
    """Test the knowledge base text used for saved sessions"""

    def test_listing_can_be_reloaded(self, engine):
        """Test a listing consults back to the same clauses"""
        engine.consult_text(":- dynamic seen/1.\nname('John Smith').")
        text = engine.listing()
        fresh = PrologEngine()
        fresh.consult_text(text)
        assert fresh.listing() == text

    def test_library_not_listed(self):
        """Test library predicates are left out of listings"""
        assert PrologEngine().listing() == ""

    def test_clear(self, engine):
        """Test clearing the knowledge base"""
        engine.clear()
        assert engine.listing() == ""
        assert engine.ask("append([a], [b], [a, b])")
        assert str(engine) == "PrologEngine: 0 clauses"
