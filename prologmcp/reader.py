"""
Reader for standard Prolog text.

Turns program and query text into terms. Supports quoted atoms, strings,
numbers (including 0'c character codes and 0x/0o/0b radix literals), lists,
curly terms, comments and the operator table in ``operators.py``.

Examples:
    >>> term, variables = read_term("parent(tom, X).")
    >>> str(term), list(variables)
    ('parent(tom,X)', ['X'])
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import PrologSyntaxError
from .operators import infix_op, prefix_op, infix_arg_priorities, prefix_arg_priority
from .terms import Term, Atom, Number, String, Variable, Compound, NIL, EMPTY_BLOCK

SYMBOL_CHARS = set("+-*/\\^<>=~:.?@#&$")
SOLO_CHARS = set("!;")
PUNCTUATION = set("()[]{},|")

_FLOAT_RE = re.compile(r"\d+\.\d+(?:[eE][+-]?\d+)?|\d+[eE][+-]?\d+")
_INT_RE = re.compile(r"0x[0-9a-fA-F]+|0o[0-7]+|0b[01]+|\d+")

_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "a": "\a", "b": "\b", "f": "\f",
    "v": "\v", "0": "\0", "\\": "\\", "'": "'", '"': '"', "`": "`", "e": "\x1b",
    "s": " ",
}


@dataclass
class Token:
    kind: str  # atom, qatom, var, int, float, str, punct, end, eof
    value: object
    line: int
    layout_before: bool = False


class Tokenizer:
    """Splits Prolog text into tokens"""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.line = 1

    def tokens(self) -> Iterator[Token]:
        """Token stream; once the text is used up, eof is repeated on every pull"""
        while True:
            layout = self._skip_layout()
            if self.pos >= len(self.text):
                yield Token("eof", None, self.line, layout)
                continue
            token = self._next_token()
            token.layout_before = layout
            yield token

    # ------------------------------------------------------------------
    # Layout and comments
    # ------------------------------------------------------------------

    def _skip_layout(self) -> bool:
        start = self.pos
        text = self.text
        while self.pos < len(text):
            char = text[self.pos]
            if char == "\n":
                self.line += 1
                self.pos += 1
            elif char.isspace():
                self.pos += 1
            elif char == "%":
                end = text.find("\n", self.pos)
                self.pos = len(text) if end < 0 else end
            elif text.startswith("/*", self.pos):
                end = text.find("*/", self.pos + 2)
                if end < 0:
                    raise PrologSyntaxError("unterminated block comment", self.line)
                self.line += text.count("\n", self.pos, end)
                self.pos = end + 2
            else:
                break
        return self.pos > start

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def _next_token(self) -> Token:
        text = self.text
        char = text[self.pos]
        line = self.line

        if char.isdigit():
            return self._number()

        if char == "_" or char.isalpha():
            start = self.pos
            while self.pos < len(text) and (text[self.pos].isalnum() or text[self.pos] == "_"):
                self.pos += 1
            name = text[start:self.pos]
            if char == "_" or char.isupper():
                return Token("var", name, line)
            return Token("atom", name, line)

        if char == "'":
            return Token("qatom", self._quoted("'"), line)

        if char == '"':
            return Token("str", self._quoted('"'), line)

        if char == "`":
            return Token("str", self._quoted("`"), line)

        if char in PUNCTUATION:
            self.pos += 1
            return Token("punct", char, line)

        if char in SOLO_CHARS:
            self.pos += 1
            return Token("atom", char, line)

        if char in SYMBOL_CHARS:
            # A lone '.' followed by layout or end of input terminates a clause
            if char == "." and (self.pos + 1 >= len(text)
                                or text[self.pos + 1].isspace()
                                or text[self.pos + 1] == "%"):
                self.pos += 1
                return Token("end", ".", line)
            start = self.pos
            while self.pos < len(text) and text[self.pos] in SYMBOL_CHARS:
                self.pos += 1
            return Token("atom", text[start:self.pos], line)

        raise PrologSyntaxError(f"unexpected character {char!r}", line)

    def _number(self) -> Token:
        text = self.text
        line = self.line
        if text.startswith("0'", self.pos):
            self.pos += 2
            if self.pos >= len(text):
                raise PrologSyntaxError("unterminated character code", line)
            char = text[self.pos]
            if char == "\\":
                value = self._escape()
            elif char == "'" and text.startswith("''", self.pos):
                self.pos += 2
                value = "'"
            else:
                self.pos += 1
                value = char
            return Token("int", ord(value), line)

        float_match = _FLOAT_RE.match(text, self.pos)
        if float_match:
            self.pos = float_match.end()
            return Token("float", float(float_match.group()), line)

        int_match = _INT_RE.match(text, self.pos)
        literal = int_match.group()
        self.pos = int_match.end()
        if literal[:2] in ("0x", "0o", "0b"):
            return Token("int", int(literal, 0), line)
        return Token("int", int(literal), line)

    def _quoted(self, quote: str) -> str:
        text = self.text
        line = self.line
        self.pos += 1
        chars = []
        while True:
            if self.pos >= len(text):
                raise PrologSyntaxError("unterminated quoted text", line)
            char = text[self.pos]
            if char == quote:
                if text.startswith(quote * 2, self.pos):
                    chars.append(quote)
                    self.pos += 2
                    continue
                self.pos += 1
                return "".join(chars)
            if char == "\\":
                if text.startswith("\\\n", self.pos):
                    # Line continuation
                    self.pos += 2
                    self.line += 1
                    continue
                chars.append(self._escape())
                continue
            if char == "\n":
                self.line += 1
            chars.append(char)
            self.pos += 1

    def _escape(self) -> str:
        text = self.text
        self.pos += 1
        if self.pos >= len(text):
            raise PrologSyntaxError("unterminated escape sequence", self.line)
        char = text[self.pos]
        if char in _ESCAPES:
            self.pos += 1
            return _ESCAPES[char]
        if char == "x":
            end = text.find("\\", self.pos)
            digits = text[self.pos + 1:end] if end > 0 else ""
            if not digits or not all(c in "0123456789abcdefABCDEF" for c in digits):
                raise PrologSyntaxError("malformed hexadecimal escape", self.line)
            self.pos = end + 1
            return chr(int(digits, 16))
        if char.isdigit():
            end = text.find("\\", self.pos)
            digits = text[self.pos:end] if end > 0 else ""
            if not digits or not all(c in "01234567" for c in digits):
                raise PrologSyntaxError("malformed octal escape", self.line)
            self.pos = end + 1
            return chr(int(digits, 8))
        raise PrologSyntaxError(f"undefined escape sequence \\{char}", self.line)


class Parser:
    """
    Operator precedence parser over a token stream.

    Each call to read_clause() consumes one term terminated by '.', with its
    own variable scope.
    """

    TERMINATORS = {")", "]", "}", ",", "|"}

    def __init__(self, text: str):
        self._tokens = Tokenizer(text).tokens()
        self._peeked: Optional[Token] = None
        self._varmap: Dict[str, Variable] = {}
        self._anonymous = 0

    # ------------------------------------------------------------------
    # Token stream helpers
    # ------------------------------------------------------------------

    def _peek(self) -> Token:
        if self._peeked is None:
            self._peeked = next(self._tokens)
        return self._peeked

    def _next(self) -> Token:
        token = self._peek()
        self._peeked = None
        return token

    def _expect(self, kind: str, value: object = None) -> Token:
        token = self._next()
        if token.kind != kind or (value is not None and token.value != value):
            expected = value if value is not None else kind
            raise PrologSyntaxError(f"expected {expected!s}, found {_describe(token)}", token.line)
        return token

    # ------------------------------------------------------------------
    # Clauses
    # ------------------------------------------------------------------

    def at_eof(self) -> bool:
        return self._peek().kind == "eof"

    def read_clause(self, allow_eof_end: bool = False) -> Tuple[Term, Dict[str, Variable]]:
        """Read one term followed by an end token; returns the term and its named variables"""
        self._varmap = {}
        term, _ = self._parse(1200)
        token = self._next()
        if token.kind == "end":
            return term, dict(self._varmap)
        if token.kind == "eof" and allow_eof_end:
            return term, dict(self._varmap)
        raise PrologSyntaxError(f"operator expected, found {_describe(token)}", token.line)

    # ------------------------------------------------------------------
    # Terms
    # ------------------------------------------------------------------

    def _parse(self, max_priority: int) -> Tuple[Term, int]:
        left, left_priority = self._parse_primary(max_priority)
        return self._parse_infix(left, left_priority, max_priority)

    def _parse_infix(self, left: Term, left_priority: int, max_priority: int) -> Tuple[Term, int]:
        while True:
            token = self._peek()
            name = self._operator_name(token)
            if name is None:
                break
            op = infix_op(name)
            if op is None:
                break
            priority, op_type = op
            left_max, right_max = infix_arg_priorities(priority, op_type)
            if priority > max_priority or left_priority > left_max:
                break
            self._next()
            right, _ = self._parse(right_max)
            functor = ";" if name == "|" else name
            left = Compound(functor, (left, right))
            left_priority = priority
        return left, left_priority

    @staticmethod
    def _operator_name(token: Token) -> Optional[str]:
        if token.kind == "atom":
            return token.value
        if token.kind == "punct" and token.value in (",", "|"):
            return token.value
        return None

    def _parse_primary(self, max_priority: int) -> Tuple[Term, int]:
        token = self._next()
        kind = token.kind

        if kind == "int" or kind == "float":
            return Number(token.value), 0

        if kind == "var":
            return self._variable(token.value), 0

        if kind == "str":
            return String(token.value), 0

        if kind == "punct":
            if token.value == "(":
                term, _ = self._parse(1200)
                self._expect("punct", ")")
                return term, 0
            if token.value == "[":
                if self._peek().kind == "punct" and self._peek().value == "]":
                    self._next()
                    return self._atom_or_compound("[]", token)
                return self._parse_list(), 0
            if token.value == "{":
                if self._peek().kind == "punct" and self._peek().value == "}":
                    self._next()
                    return self._atom_or_compound("{}", token)
                term, _ = self._parse(1200)
                self._expect("punct", "}")
                return Compound("{}", (term,)), 0
            raise PrologSyntaxError(f"unexpected {_describe(token)}", token.line)

        if kind == "atom" or kind == "qatom":
            name = token.value
            following = self._peek()

            if following.kind == "punct" and following.value == "(" and not following.layout_before:
                return self._atom_or_compound(name, token)

            if kind == "atom" and name == "-" and following.kind in ("int", "float") \
                    and not following.layout_before:
                number = self._next()
                return Number(-number.value), 0

            op = prefix_op(name) if kind == "atom" else None
            if op is not None and self._starts_term(following):
                priority, op_type = op
                if priority > max_priority:
                    priority = 999
                arg_max = prefix_arg_priority(priority, op_type)
                operand, _ = self._parse(arg_max)
                return Compound(name, (operand,)), priority

            if infix_op(name) is not None or op is not None:
                # Bare operator atoms bind loosely
                return Atom(name), min(max(
                    (infix_op(name) or (0, ""))[0], (op or (0, ""))[0]), max_priority)
            return Atom(name), 0

        if kind == "end":
            raise PrologSyntaxError("unexpected end of clause", token.line)
        raise PrologSyntaxError("unexpected end of input", token.line)

    def _starts_term(self, token: Token) -> bool:
        if token.kind in ("eof", "end"):
            return False
        if token.kind == "punct":
            return token.value in ("(", "[", "{")
        if token.kind == "atom":
            # An infix operator after a prefix operator means the prefix is an atom operand
            if infix_op(token.value) is not None and prefix_op(token.value) is None:
                return False
        return True

    def _atom_or_compound(self, name: str, token: Token) -> Tuple[Term, int]:
        following = self._peek()
        if following.kind == "punct" and following.value == "(" and not following.layout_before:
            self._next()
            args = [self._parse(999)[0]]
            while True:
                separator = self._next()
                if separator.kind == "punct" and separator.value == ",":
                    args.append(self._parse(999)[0])
                    continue
                if separator.kind == "punct" and separator.value == ")":
                    break
                raise PrologSyntaxError(f"expected , or ) in arguments, found {_describe(separator)}",
                                        separator.line)
            return Compound(name, args), 0
        if name == "[]":
            return NIL, 0
        if name == "{}":
            return EMPTY_BLOCK, 0
        return Atom(name), 0

    def _parse_list(self) -> Term:
        items = [self._parse(999)[0]]
        tail: Term = NIL
        while True:
            token = self._next()
            if token.kind == "punct" and token.value == ",":
                items.append(self._parse(999)[0])
                continue
            if token.kind == "punct" and token.value == "|":
                tail = self._parse(999)[0]
                self._expect("punct", "]")
                break
            if token.kind == "punct" and token.value == "]":
                break
            raise PrologSyntaxError(f"expected , | or ] in list, found {_describe(token)}", token.line)
        result = tail
        for item in reversed(items):
            result = Compound(".", (item, result))
        return result

    def _variable(self, name: str) -> Variable:
        if name == "_":
            self._anonymous += 1
            return Variable(f"_{self._anonymous}")
        if name not in self._varmap:
            self._varmap[name] = Variable(name)
        return self._varmap[name]


def _describe(token: Token) -> str:
    if token.kind == "eof":
        return "end of input"
    if token.kind == "end":
        return "end of clause"
    return repr(token.value)


# ============================================================================
# Public API
# ============================================================================

def read_terms(text: str) -> Iterator[Tuple[Term, Dict[str, Variable]]]:
    """
    Lazily read every clause in a program text.

    Syntax errors are raised when the offending clause is reached, so clauses
    before it have already been produced.
    """
    parser = Parser(text)
    while not parser.at_eof():
        yield parser.read_clause()


def read_term(text: str) -> Tuple[Term, Dict[str, Variable]]:
    """
    Read a single term; the terminating '.' is optional.

    Returns the term and a mapping of its named variables in order of
    first appearance.
    """
    parser = Parser(text)
    if parser.at_eof():
        raise PrologSyntaxError("empty term", 1)
    term, variables = parser.read_clause(allow_eof_end=True)
    if not parser.at_eof():
        raise PrologSyntaxError("unexpected text after term", parser._peek().line)
    return term, variables


def parse_term(text: str) -> Term:
    """Read a single term, discarding variable names"""
    return read_term(text)[0]


def parse_number(text: str) -> Optional[Number]:
    """Parse text as a number literal (with optional sign); None if it is not one"""
    stripped = text.strip()
    if not stripped:
        return None
    try:
        term = parse_term(stripped)
    except PrologSyntaxError:
        return None
    if isinstance(term, Number):
        return term
    if isinstance(term, Compound) and term.functor in ("-", "+") and len(term.args) == 1 \
            and isinstance(term.args[0], Number):
        value = term.args[0].value
        return Number(-value if term.functor == "-" else value)
    return None
