"""
Tests for the Prolog reader
"""
import pytest
from prologmcp import atom, var, compound, number, string, plist, PrologSyntaxError
from prologmcp.reader import Tokenizer, read_term, read_terms, parse_term, parse_number
from prologmcp.terms import NIL, EMPTY_BLOCK


class TestAtomsAndNumbers:
    """Test primary terms"""

    def test_plain_and_quoted_atoms(self):
        """Test plain and quoted atoms"""
        assert parse_term("foo") == atom("foo")
        assert parse_term("'hello world'") == atom("hello world")
        assert parse_term("'it''s'") == atom("it's")
        assert parse_term("[]") == NIL
        assert parse_term("{}") == EMPTY_BLOCK

    def test_symbolic_and_solo_atoms(self):
        """Test symbol and solo atoms"""
        assert parse_term("+") == atom("+")
        assert parse_term("!") == atom("!")

    def test_numbers(self):
        """Test number tokens"""
        assert parse_term("42") == number(42)
        assert parse_term("3.14") == number(3.14)
        assert parse_term("1.0e3") == number(1000.0)
        assert parse_term("-7") == number(-7)
        assert parse_term("0x1F") == number(31)
        assert parse_term("0'a") == number(97)

    def test_escapes(self):
        """Test escapes in quoted text"""
        assert parse_term("'a\\nb'") == atom("a\nb")
        assert parse_term('"tab\\there"') == string("tab\there")

    def test_strings(self):
        """Test double quoted strings"""
        assert parse_term('"hello"') == string("hello")

    def test_parse_number(self):
        """Test parse_number"""
        assert parse_number(" 12 ") == number(12)
        assert parse_number("-2.5") == number(-2.5)
        assert parse_number("abc") is None
        assert parse_number("") is None


class TestCompoundsAndOperators:
    """Test operator precedence parsing"""

    def test_compound(self):
        """Test reading compound terms"""
        term, variables = read_term("parent(tom, X)")
        assert term == compound("parent", atom("tom"), var("X"))
        assert list(variables) == ["X"]

    def test_arithmetic_precedence(self):
        """Test arithmetic operator precedence"""
        assert parse_term("1 + 2 * 3") == compound("+", number(1), compound("*", number(2), number(3)))
        assert parse_term("1 - 2 - 3") == compound("-", compound("-", number(1), number(2)), number(3))
        assert parse_term("2 ** 3") == compound("**", number(2), number(3))

    def test_clause_structure(self):
        """Test reading a rule"""
        term = parse_term("grandparent(X, Z) :- parent(X, Y), parent(Y, Z)")
        assert term.functor == ":-"
        head, body = term.args
        assert head == compound("grandparent", var("X"), var("Z"))
        assert body.functor == ","

    def test_if_then_else(self):
        """Test reading if-then-else"""
        term = parse_term("( a -> b ; c )")
        assert term == compound(";", compound("->", atom("a"), atom("b")), atom("c"))

    def test_soft_cut(self):
        """Test reading soft cut"""
        term = parse_term("( a *-> b ; c )")
        assert term.args[0] == compound("*->", atom("a"), atom("b"))

    def test_bar_as_disjunction(self):
        """Test the bar as disjunction"""
        assert parse_term("(a | b)") == compound(";", atom("a"), atom("b"))

    def test_prefix_operators(self):
        """Test prefix operators"""
        assert parse_term("\\+ foo") == compound("\\+", atom("foo"))
        assert parse_term("- X") == compound("-", var("X"))
        assert parse_term(":- dynamic counter/1") == compound(
            ":-", compound("dynamic", compound("/", atom("counter"), number(1))))

    def test_operator_as_atom_argument(self):
        """Test an operator used as an atom argument"""
        assert parse_term("foo(+, -)") == compound("foo", atom("+"), atom("-"))

    def test_curly_term(self):
        """Test curly brace terms"""
        assert parse_term("{a, b}") == compound("{}", compound(",", atom("a"), atom("b")))

    def test_grammar_rule(self):
        """Test reading a grammar rule"""
        term = parse_term("greeting --> [hello], name")
        assert term.functor == "-->"


class TestListsAndVariables:
    """Test list syntax and variable scoping"""

    def test_lists(self):
        """Test list syntax"""
        assert parse_term("[a, b]") == plist(atom("a"), atom("b"))
        assert parse_term("[H|T]") == plist(var("H"), tail=var("T"))
        assert parse_term("[a, b | c]") == plist(atom("a"), atom("b"), tail=atom("c"))

    def test_anonymous_variables_are_distinct(self):
        """Test each _ is a new variable"""
        term, variables = read_term("p(_, _)")
        first, second = term.args
        assert first != second
        assert variables == {}

    def test_named_variables_are_shared(self):
        """Test named variables are shared in a clause"""
        term, variables = read_term("p(X, Y, X)")
        assert term.args[0] == term.args[2]
        assert list(variables) == ["X", "Y"]


class TestProgramText:
    """Test reading whole programs"""

    def test_read_terms(self):
        text = """
        % facts
        parent(tom, bob).
        parent(bob, ann). /* block
        comment */
        grandparent(X, Z) :- parent(X, Y), parent(Y, Z).
        """
        terms = [term for term, _ in read_terms(text)]
        assert len(terms) == 3
        assert terms[0] == compound("parent", atom("tom"), atom("bob"))

    def test_each_clause_has_own_variables(self):
        """Test clauses do not share variables"""
        pairs = list(read_terms("p(X). q(X, Y)."))
        assert list(pairs[0][1]) == ["X"]
        assert list(pairs[1][1]) == ["X", "Y"]

    def test_syntax_error_after_good_clauses(self):
        """Clauses before a syntax error are produced first"""
        reader = read_terms("a.\nb.\nc(.\n")
        assert next(reader)[0] == atom("a")
        assert next(reader)[0] == atom("b")
        with pytest.raises(PrologSyntaxError) as info:
            next(reader)
        assert info.value.line == 3

    def test_query_end_is_optional(self):
        """Test that the terminating period of a single term may be left out"""
        assert parse_term("foo(X).") == parse_term("foo(X)")

    def test_term_without_end_keeps_variables(self):
        """Test reading a query typed without a period"""
        term, variables = read_term("parent(tom, X)")
        assert term == compound("parent", atom("tom"), var("X"))
        assert list(variables) == ["X"]

    def test_tokens_repeat_eof(self):
        """Test that the token stream keeps answering eof once the text is used up"""
        tokens = Tokenizer("a").tokens()
        assert [next(tokens).kind for _ in range(4)] == ["atom", "eof", "eof", "eof"]

    @pytest.mark.parametrize("text", ["", "foo(", "foo(a) bar", "'unterminated", "[a, b"])
    def test_malformed(self, text):
        """Test malformed input raises"""
        with pytest.raises(PrologSyntaxError):
            read_term(text)

    def test_syntax_error_term(self):
        """Test the syntax error term"""
        with pytest.raises(PrologSyntaxError) as info:
            read_term("p(")
        assert info.value.term.functor == "error"
        assert "Syntax error" in str(info.value)
