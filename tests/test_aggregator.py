"""
Tests for folding query answers into tool results
"""
import asyncio
import json

from prologmcp import PrologEngine, Answer, AnswerStatus, atom, number, compound, plist, var, string
from prologmcp.aggregator import (
    NO_OUTPUT_MESSAGE, QueryAggregator, serialize_term, serialize_bindings,
)
from prologmcp.results import ERROR_AUDIENCE, ERROR_PRIORITY


def aggregate(answers):
    return asyncio.run(QueryAggregator().consume(iter(answers))).to_result()


class TestSerialization:
    """Test the JSON form of binding values"""

    def test_numbers_keep_their_type(self):
        """Test numbers serialize as JSON numbers"""
        assert serialize_term(number(3)) == 3
        assert serialize_term(number(2.5)) == 2.5

    def test_lists_become_arrays(self):
        """Test proper lists serialize as arrays"""
        assert serialize_term(plist(number(1), atom("a"))) == [1, "a"]
        assert serialize_term(atom("[]")) == []
        assert serialize_term(plist(plist(number(1)))) == [[1]]

    def test_other_terms_become_quoted_text(self):
        """Test other terms serialize as quoted Prolog text"""
        assert serialize_term(atom("bob")) == "bob"
        assert serialize_term(atom("John Smith")) == "'John Smith'"
        assert serialize_term(string("text")) == '"text"'
        assert serialize_term(compound("f", var("X"))) == "f(X)"
        assert serialize_term(plist(atom("a"), tail=var("T"))) == "[a|T]"

    def test_bindings(self):
        """Test serializing a binding set"""
        assert serialize_bindings({"X": atom("bob"), "N": number(1)}) == {"X": "bob", "N": 1}


class TestAggregation:
    """Test block order and content"""

    def test_solutions_block(self):
        """Test the solutions block is a JSON array"""
        result = aggregate([
            Answer(AnswerStatus.SUCCESS, {"X": atom("bob")}),
            Answer(AnswerStatus.SUCCESS, {"X": atom("liz")}),
            Answer(AnswerStatus.FAILURE),
        ])
        assert len(result.blocks) == 1
        text = result.blocks[0].text
        assert text.startswith("Results:\n")
        assert json.loads(text[len("Results:\n"):]) == [{"X": "bob"}, {"X": "liz"}]
        assert not result.is_error

    def test_solution_order_is_kept(self):
        """Test solutions keep the order they were found in"""
        result = aggregate([Answer(AnswerStatus.SUCCESS, {"N": number(n)}) for n in (3, 1, 2)])
        assert json.loads(result.texts[0][len("Results:\n"):]) == [{"N": 3}, {"N": 1}, {"N": 2}]

    def test_ground_success_is_an_empty_binding_set(self):
        """Test a ground success adds an empty binding set"""
        result = aggregate([Answer(AnswerStatus.SUCCESS), Answer(AnswerStatus.FAILURE)])
        assert result.texts == ["Results:\n[\n  {}\n]"]

    def test_no_solutions_gives_fallback(self):
        """Test the fallback block when nothing succeeds"""
        result = aggregate([Answer(AnswerStatus.FAILURE)])
        assert result.texts == [NO_OUTPUT_MESSAGE]

    def test_empty_sequence_gives_fallback(self):
        """Test the fallback block for an empty answer stream"""
        assert aggregate([]).texts == [NO_OUTPUT_MESSAGE]

    def test_block_order(self):
        """Test the order of output, error and solution blocks"""
        result = aggregate([
            Answer(AnswerStatus.SUCCESS, {"X": number(1)}, stdout="hello\n"),
            Answer(AnswerStatus.FAILURE, stderr="Warning: careful\n"),
        ])
        assert [text.split("\n", 1)[0] for text in result.texts] == ["Stdout:", "Stderr:", "Results:"]
        assert result.texts[0] == "Stdout:\nhello\n"
        assert result.texts[1] == "Stderr:\nWarning: careful\n"

    def test_output_is_concatenated_across_answers(self):
        """Test output from every answer is joined"""
        result = aggregate([
            Answer(AnswerStatus.SUCCESS, stdout="a"),
            Answer(AnswerStatus.SUCCESS, stdout="b"),
            Answer(AnswerStatus.FAILURE, stdout="c"),
        ])
        assert result.texts[0] == "Stdout:\nabc"

    def test_error_answer_goes_to_stderr(self):
        """Test an error answer becomes an annotated stderr block"""
        result = aggregate([
            Answer(AnswerStatus.SUCCESS, {"X": number(1)}),
            Answer(AnswerStatus.ERROR, error=compound("error", atom("boom"), var("_"))),
        ])
        assert result.texts[0].startswith("Stderr:\nQuery error term: error(boom,")
        assert result.texts[1].startswith("Results:")
        assert not result.is_error


class TestFaults:
    """Test exceptions raised while pulling answers"""

    @staticmethod
    def faulty_answers():
        yield Answer(AnswerStatus.SUCCESS, {"X": number(1)}, stdout="before\n")
        raise RuntimeError("engine corrupted")

    def test_partial_solutions_kept_with_fault_last(self):
        """Test solutions before a fault are still reported"""
        result = aggregate(self.faulty_answers())
        assert [text.split("\n", 1)[0] for text in result.texts] == [
            "Stdout:", "Results:", "Error executing query: engine corrupted"]
        fault = result.blocks[-1]
        assert fault.annotations.priority == ERROR_PRIORITY
        assert fault.annotations.audience == ERROR_AUDIENCE
        assert result.is_error

    def test_consumption_stops_at_fault(self):
        """Test answers after a fault are not pulled"""
        pulled = []

        def answers():
            pulled.append(1)
            raise ValueError("bad")
            yield  # pragma: no cover

        aggregator = asyncio.run(QueryAggregator().consume(answers()))
        assert aggregator.fault == "bad"
        assert pulled == [1]
        assert aggregator.to_result().texts == ["Error executing query: bad"]

    def test_answers_are_closed(self):
        """Test the answer stream is closed after folding"""
        closed = []

        def answers():
            try:
                yield Answer(AnswerStatus.SUCCESS)
                yield Answer(AnswerStatus.FAILURE)
            finally:
                closed.append(True)

        aggregate(answers())
        assert closed == [True]


class TestWithEngine:
    """Test aggregation of real engine answers"""

    def test_query_results(self):
        """Test folding a real engine query"""
        engine = PrologEngine()
        engine.consult_text("parent(tom, bob). parent(tom, liz).")
        result = aggregate(engine.query("parent(tom, X)"))
        assert str(result) == 'Results:\n[\n  {\n    "X": "bob"\n  },\n  {\n    "X": "liz"\n  }\n]'

    def test_output_and_solutions(self):
        """Test a query that writes and binds"""
        engine = PrologEngine()
        result = aggregate(engine.query("member(X, [1, 2]), format('~w~n', [X])"))
        assert result.texts[0] == "Stdout:\n1\n2\n"
        assert json.loads(result.texts[1][len("Results:\n"):]) == [{"X": 1}, {"X": 2}]

    def test_unknown_procedure(self):
        """Test an unknown procedure error from the engine"""
        engine = PrologEngine()
        result = aggregate(engine.query("nope"))
        assert result.texts == [
            "Stderr:\nQuery error term: error(existence_error(procedure,nope/0),_)\n"]
