"""
Text and output builtins: atoms, strings, character lists, term I/O and
format/1,2,3.

Everything written goes to the evaluator's user_output or user_error
buffers; the engine attaches their contents to the answer being produced.
"""

import io
from typing import Callable, List, Optional, Tuple

from .terms import Term, Atom, Number, String, Variable, Compound, NIL
from .utils import deref, resolve, list_to_python, make_list
from .writer import format_term, format_number, portray_clause
from .reader import read_term, parse_number
from .arithmetic import evaluate
from .builtins import (
    builtin, bound, integer_arg, callable_arg, list_arg, indicator_arg, unify_pairs,
)
from .errors import (
    PrologError, instantiation_error, type_error, domain_error, representation_error,
)

MakeText = Callable[[str], Term]


def _string(text: str) -> Term:
    return String(text)


def _atom(text: str) -> Term:
    return Atom(text)


# ============================================================================
# Text conversion helpers
# ============================================================================

def _char_of(item: Term, bindings) -> str:
    item = deref(item, bindings)
    if isinstance(item, Variable):
        raise instantiation_error()
    if isinstance(item, Number) and item.is_integer:
        try:
            return chr(item.value)
        except (ValueError, OverflowError):
            raise representation_error("character_code")
    if isinstance(item, Atom) and len(item.name) == 1:
        return item.name
    raise type_error("character", resolve(item, bindings))


def text_of(term: Term, bindings, kind: str = "atom") -> str:
    """
    Text of an atomic term, a string, or a code or character list.

    Raises:
        PrologError: instantiation error for unbound input, type error otherwise
    """
    term = deref(term, bindings)
    if isinstance(term, Variable):
        raise instantiation_error()
    if term == NIL and kind in ("list", "text"):
        return ""
    if isinstance(term, Atom):
        return term.name
    if isinstance(term, String):
        return term.value
    if isinstance(term, Number):
        return format_number(term.value)
    if isinstance(term, Compound) and term.functor == "." and len(term.args) == 2:
        items, tail = list_to_python(term, bindings)
        if isinstance(tail, Variable):
            raise instantiation_error()
        if tail == NIL:
            return "".join(_char_of(item, bindings) for item in items)
    raise type_error(kind, resolve(term, bindings))


def _is_unbound(term: Term, bindings) -> bool:
    return isinstance(deref(term, bindings), Variable)


def _chars(text: str) -> Term:
    return make_list([Atom(char) for char in text])


def _codes(text: str) -> Term:
    return make_list([Number(ord(char)) for char in text])


def _number_from_text(text: str) -> Number:
    number = parse_number(text)
    if number is None:
        raise PrologError(Compound("error", (
            Compound("syntax_error", (Atom("illegal_number"),)), Variable("_"))))
    return number


# ============================================================================
# Atoms and strings
# ============================================================================

def _length(name: str) -> None:
    @builtin(name, 2)
    def length(ev, args, bindings):
        size = deref(args[1], bindings)
        if not isinstance(size, Variable):
            value = integer_arg(size, bindings)
            if value < 0:
                raise domain_error("not_less_than_zero", size)
        return ev.unify(size, Number(len(text_of(args[0], bindings))), bindings)


_length("atom_length")
_length("string_length")


def _split_conversion(name: str, make: MakeText, explode: Callable[[str], Term]) -> None:
    """Register name/2 converting between a text (first) and a list form (second)"""
    @builtin(name, 2)
    def convert(ev, args, bindings):
        if not _is_unbound(args[0], bindings):
            return ev.unify(args[1], explode(text_of(args[0], bindings)), bindings)
        return ev.unify(args[0], make(text_of(args[1], bindings, "list")), bindings)


_split_conversion("atom_chars", _atom, _chars)
_split_conversion("atom_codes", _atom, _codes)
_split_conversion("string_chars", _string, _chars)
_split_conversion("string_codes", _string, _codes)


@builtin("char_code", 2)
def _char_code(ev, args, bindings):
    char = deref(args[0], bindings)
    if not isinstance(char, Variable):
        if not (isinstance(char, Atom) and len(char.name) == 1):
            raise type_error("character", char)
        return ev.unify(args[1], Number(ord(char.name)), bindings)
    code = integer_arg(args[1], bindings)
    try:
        return ev.unify(char, Atom(chr(code)), bindings)
    except (ValueError, OverflowError):
        raise representation_error("character_code")


def _number_conversion(name: str, explode: Callable[[str], Term]) -> None:
    @builtin(name, 2)
    def convert(ev, args, bindings):
        number = deref(args[0], bindings)
        if _is_unbound(args[1], bindings) or not _list_is_ground(args[1], bindings):
            if isinstance(number, Variable):
                raise instantiation_error()
            if not isinstance(number, Number):
                raise type_error("number", resolve(number, bindings))
            return ev.unify(args[1], explode(format_number(number.value)), bindings)
        return ev.unify(number, _number_from_text(text_of(args[1], bindings, "list")), bindings)


def _list_is_ground(term: Term, bindings) -> bool:
    items, tail = list_to_python(term, bindings)
    if tail != NIL:
        return False
    return not any(isinstance(deref(item, bindings), Variable) for item in items)


_number_conversion("number_codes", _codes)
_number_conversion("number_chars", _chars)


@builtin("atom_number", 2)
def _atom_number(ev, args, bindings):
    text = deref(args[0], bindings)
    if isinstance(text, Variable):
        number = bound(args[1], bindings)
        if not isinstance(number, Number):
            raise type_error("number", resolve(number, bindings))
        return ev.unify(text, Atom(format_number(number.value)), bindings)
    number = parse_number(text_of(text, bindings))
    if number is None:
        return None
    return ev.unify(args[1], number, bindings)


@builtin("number_string", 2)
def _number_string(ev, args, bindings):
    if not _is_unbound(args[1], bindings):
        number = _number_from_text(text_of(args[1], bindings, "string"))
        return ev.unify(args[0], number, bindings)
    number = bound(args[0], bindings)
    if not isinstance(number, Number):
        raise type_error("number", resolve(number, bindings))
    return ev.unify(args[1], String(format_number(number.value)), bindings)


@builtin("atom_string", 2)
def _atom_string(ev, args, bindings):
    if not _is_unbound(args[0], bindings):
        return ev.unify(args[1], String(text_of(args[0], bindings)), bindings)
    return ev.unify(args[0], Atom(text_of(args[1], bindings, "string")), bindings)


@builtin("string_to_atom", 2)
def _string_to_atom(ev, args, bindings):
    if not _is_unbound(args[0], bindings):
        return ev.unify(args[1], Atom(text_of(args[0], bindings, "string")), bindings)
    return ev.unify(args[0], String(text_of(args[1], bindings)), bindings)


def _case_conversion(name: str, make: MakeText, convert: Callable[[str], str]) -> None:
    @builtin(name, 2)
    def change_case(ev, args, bindings):
        return ev.unify(args[1], make(convert(text_of(args[0], bindings))), bindings)


_case_conversion("upcase_atom", _atom, str.upper)
_case_conversion("downcase_atom", _atom, str.lower)
_case_conversion("string_upper", _string, str.upper)
_case_conversion("string_lower", _string, str.lower)


def _concatenation(name: str, make: MakeText) -> None:
    @builtin(name, 3, nondeterministic=True)
    def concat(ev, args, bindings):
        left, right, whole = args
        if not _is_unbound(left, bindings) and not _is_unbound(right, bindings):
            text = text_of(left, bindings) + text_of(right, bindings)
            unified = ev.unify(whole, make(text), bindings)
            if unified is not None:
                yield unified
            return
        text = text_of(whole, bindings)
        for split in range(len(text) + 1):
            unified = unify_pairs(ev, bindings, (left, make(text[:split])),
                                  (right, make(text[split:])))
            if unified is not None:
                yield unified


_concatenation("atom_concat", _atom)
_concatenation("string_concat", _string)


def _optional_int(term: Term, bindings) -> Optional[int]:
    term = deref(term, bindings)
    if isinstance(term, Variable):
        return None
    value = integer_arg(term, bindings)
    if value < 0:
        raise domain_error("not_less_than_zero", term)
    return value


def _substrings(name: str, make: MakeText) -> None:
    @builtin(name, 5, nondeterministic=True)
    def substring(ev, args, bindings):
        text = text_of(args[0], bindings)
        size = len(text)
        before_arg, length_arg, after_arg, sub_arg = args[1:]
        before = _optional_int(before_arg, bindings)
        length = _optional_int(length_arg, bindings)
        after = _optional_int(after_arg, bindings)

        if not _is_unbound(sub_arg, bindings):
            sub = text_of(sub_arg, bindings)
            starts = [i for i in range(size - len(sub) + 1) if text.startswith(sub, i)]
            candidates = [(start, len(sub)) for start in starts]
        else:
            if before is not None:
                starts = [before] if before <= size else []
            elif length is not None and after is not None:
                starts = [size - length - after] if size - length - after >= 0 else []
            else:
                starts = list(range(size + 1))
            candidates = []
            for start in starts:
                if length is not None:
                    lengths = [length] if start + length <= size else []
                elif after is not None:
                    lengths = [size - start - after] if size - start - after >= 0 else []
                else:
                    lengths = list(range(size - start + 1))
                candidates.extend((start, span) for span in lengths)

        for start, span in candidates:
            unified = unify_pairs(
                ev, bindings,
                (before_arg, Number(start)), (length_arg, Number(span)),
                (after_arg, Number(size - start - span)),
                (sub_arg, make(text[start:start + span])))
            if unified is not None:
                yield unified


_substrings("sub_atom", _atom)
_substrings("sub_string", _string)


@builtin("atomic_list_concat", 2)
def _atomic_list_concat(ev, args, bindings):
    parts = [text_of(item, bindings) for item in list_arg(args[0], bindings)]
    return ev.unify(args[1], Atom("".join(parts)), bindings)


@builtin("atomic_list_concat", 3)
def _atomic_list_concat_separator(ev, args, bindings):
    separator = text_of(args[1], bindings)
    items, tail = list_to_python(args[0], bindings)
    joinable = tail == NIL and not any(_is_unbound(item, bindings) for item in items)
    if joinable:
        text = separator.join(text_of(item, bindings) for item in items)
        return ev.unify(args[2], Atom(text), bindings)
    if not separator:
        raise domain_error("non_empty_atom", Atom(separator))
    whole = text_of(args[2], bindings)
    return ev.unify(args[0], make_list([Atom(part) for part in whole.split(separator)]), bindings)


@builtin("split_string", 4)
def _split_string(ev, args, bindings):
    text = text_of(args[0], bindings)
    separators = text_of(args[1], bindings)
    padding = text_of(args[2], bindings)
    parts: List[str] = []
    if separators:
        current = []
        for char in text:
            if char in separators:
                parts.append("".join(current))
                current = []
            else:
                current.append(char)
        parts.append("".join(current))
    else:
        parts = [text]
    return ev.unify(args[3], make_list([String(part.strip(padding)) for part in parts]), bindings)


# ============================================================================
# Terms as text
# ============================================================================

def _parse_text(ev, text: str) -> Tuple[Term, List[Tuple[str, Term]]]:
    term, variables = read_term(text)
    mapping = {}
    renamed = ev.renamer.rename(term, mapping)
    return renamed, [(name, mapping[variable.name]) for name, variable in variables.items()]


def _term_text(name: str, make: MakeText) -> None:
    @builtin(name, 2)
    def convert(ev, args, bindings):
        if not _is_unbound(args[1], bindings):
            term, _ = _parse_text(ev, text_of(args[1], bindings))
            return ev.unify(args[0], term, bindings)
        text = format_term(resolve(args[0], bindings), quoted=True)
        return ev.unify(args[1], make(text), bindings)


_term_text("term_to_atom", _atom)
_term_text("term_string", _string)


@builtin("atom_to_term", 3)
def _atom_to_term(ev, args, bindings):
    term, variables = _parse_text(ev, text_of(args[0], bindings))
    names = make_list([Compound("=", (Atom(name), variable)) for name, variable in variables])
    return unify_pairs(ev, bindings, (args[1], term), (args[2], names))


# ============================================================================
# Output
# ============================================================================

def _write_builtins(name: str, quoted: bool, ignore_ops: bool = False, newline: bool = False) -> None:
    def write(ev, stream, term, bindings):
        text = format_term(resolve(term, bindings), quoted=quoted, ignore_ops=ignore_ops)
        stream.write(text + ("\n" if newline else ""))
        return bindings

    @builtin(name, 1)
    def write_user(ev, args, bindings):
        return write(ev, ev.stdout, args[0], bindings)

    @builtin(name, 2)
    def write_stream(ev, args, bindings):
        return write(ev, ev.output_stream(args[0], bindings), args[1], bindings)


_write_builtins("write", quoted=False)
_write_builtins("print", quoted=True)
_write_builtins("writeln", quoted=False, newline=True)
_write_builtins("writeq", quoted=True)
_write_builtins("write_canonical", quoted=True, ignore_ops=True)


def _write_options(options: Term, bindings) -> Tuple[bool, bool]:
    quoted = ignore_ops = False
    for option in list_arg(options, bindings):
        option = bound(option, bindings)
        if isinstance(option, Compound) and len(option.args) == 1:
            value = deref(option.args[0], bindings) == Atom("true")
            if option.functor == "quoted":
                quoted = value
            elif option.functor == "ignore_ops":
                ignore_ops = value
    return quoted, ignore_ops


@builtin("write_term", 2)
def _write_term(ev, args, bindings):
    quoted, ignore_ops = _write_options(args[1], bindings)
    ev.stdout.write(format_term(resolve(args[0], bindings), quoted=quoted, ignore_ops=ignore_ops))
    return bindings


@builtin("write_term", 3)
def _write_term_stream(ev, args, bindings):
    stream = ev.output_stream(args[0], bindings)
    quoted, ignore_ops = _write_options(args[2], bindings)
    stream.write(format_term(resolve(args[1], bindings), quoted=quoted, ignore_ops=ignore_ops))
    return bindings


@builtin("nl", 0)
def _nl(ev, args, bindings):
    ev.stdout.write("\n")
    return bindings


@builtin("nl", 1)
def _nl_stream(ev, args, bindings):
    ev.output_stream(args[0], bindings).write("\n")
    return bindings


def _tab(stream: io.StringIO, amount: Term, bindings) -> None:
    count = evaluate(amount, bindings)
    if not isinstance(count, int):
        raise type_error("integer", Number(count))
    stream.write(" " * max(count, 0))


@builtin("tab", 1)
def _tab_user(ev, args, bindings):
    _tab(ev.stdout, args[0], bindings)
    return bindings


@builtin("tab", 2)
def _tab_stream(ev, args, bindings):
    _tab(ev.output_stream(args[0], bindings), args[1], bindings)
    return bindings


def _put_char(stream: io.StringIO, char: Term, bindings) -> None:
    char = bound(char, bindings)
    if not (isinstance(char, Atom) and len(char.name) == 1):
        raise type_error("character", resolve(char, bindings))
    stream.write(char.name)


@builtin("put_char", 1)
def _put_char_user(ev, args, bindings):
    _put_char(ev.stdout, args[0], bindings)
    return bindings


@builtin("put_char", 2)
def _put_char_stream(ev, args, bindings):
    _put_char(ev.output_stream(args[0], bindings), args[1], bindings)
    return bindings


@builtin("flush_output", 0)
def _flush_output(ev, args, bindings):
    return bindings


@builtin("listing", 0)
def _listing(ev, args, bindings):
    ev.stdout.write(ev.kb.listing())
    return bindings


@builtin("listing", 1)
def _listing_spec(ev, args, bindings):
    spec = bound(args[0], bindings)
    if isinstance(spec, Atom):
        ev.stdout.write(ev.kb.listing(spec.name))
    else:
        name, arity = indicator_arg(spec, bindings)
        ev.stdout.write(ev.kb.listing(name, arity))
    return bindings


@builtin("portray_clause", 1)
def _portray_clause(ev, args, bindings):
    ev.stdout.write(portray_clause(resolve(args[0], bindings)) + "\n")
    return bindings


@builtin("portray_clause", 2)
def _portray_clause_stream(ev, args, bindings):
    stream = ev.output_stream(args[0], bindings)
    stream.write(portray_clause(resolve(args[1], bindings)) + "\n")
    return bindings


# ============================================================================
# format/1,2,3
# ============================================================================

def format_error(message: str) -> PrologError:
    return PrologError(Compound("error", (Compound("format", (String(message),)), Variable("_"))))


class _Formatter:
    """Expands a format string; tracks column stops for ~t, ~| and ~+"""

    def __init__(self, ev, bindings, arguments: List[Term]):
        self.ev = ev
        self.bindings = bindings
        self.arguments = arguments
        self.done = ""
        self.segment = ""
        self.fills: List[Tuple[int, str]] = []
        self.last_stop = 0

    def next_argument(self) -> Term:
        if not self.arguments:
            raise format_error("not enough arguments")
        return self.arguments.pop(0)

    def column(self) -> int:
        text = self.done + self.segment
        return len(text) - (text.rfind("\n") + 1)

    def column_stop(self, target: int) -> None:
        line_start = self.done.rfind("\n") + 1
        start_column = len(self.done) - line_start
        pad = target - start_column - len(self.segment)
        segment = self.segment
        if pad > 0:
            if not self.fills:
                segment += " " * pad
            else:
                share, extra = divmod(pad, len(self.fills))
                pieces, previous = [], 0
                for index, (position, char) in enumerate(self.fills):
                    pieces.append(segment[previous:position])
                    width = share + (1 if index >= len(self.fills) - extra else 0)
                    pieces.append(char * width)
                    previous = position
                pieces.append(segment[previous:])
                segment = "".join(pieces)
        self.done += segment
        self.segment = ""
        self.fills = []
        self.last_stop = target

    def emit(self, text: str) -> None:
        self.segment += text

    def run(self, pattern: str) -> str:
        index = 0
        while index < len(pattern):
            char = pattern[index]
            index += 1
            if char != "~":
                self.emit(char)
                continue
            if index >= len(pattern):
                raise format_error("truncated format directive")

            numeric: Optional[int] = None
            fill_char: Optional[str] = None
            if pattern[index] == "*":
                numeric = integer_arg(self.next_argument(), self.bindings)
                index += 1
            elif pattern[index] == "`":
                fill_char = pattern[index + 1]
                numeric = ord(fill_char)
                index += 2
            else:
                start = index
                while index < len(pattern) and pattern[index].isdigit():
                    index += 1
                if index > start:
                    numeric = int(pattern[start:index])
            if index >= len(pattern):
                raise format_error("truncated format directive")
            directive = pattern[index]
            index += 1
            self.directive(directive, numeric, fill_char)

        self.done += self.segment
        self.segment = ""
        if self.arguments:
            raise format_error("too many arguments")
        return self.done

    def directive(self, directive: str, numeric: Optional[int], fill_char: Optional[str]) -> None:
        bindings = self.bindings
        if directive == "~":
            self.emit("~")
        elif directive == "w":
            self.emit(format_term(resolve(self.next_argument(), bindings)))
        elif directive in ("p", "q"):
            self.emit(format_term(resolve(self.next_argument(), bindings), quoted=True))
        elif directive == "a":
            argument = bound(self.next_argument(), bindings)
            if isinstance(argument, Compound):
                raise type_error("atomic", resolve(argument, bindings))
            self.emit(text_of(argument, bindings))
        elif directive in ("d", "D"):
            self.emit(self._integer(self.next_argument(), numeric or 0, directive == "D"))
        elif directive in ("f", "e", "g"):
            value = evaluate(self.next_argument(), bindings)
            digits = 6 if numeric is None else numeric
            self.emit(f"{value:.{digits}{directive}}")
        elif directive == "n":
            self.emit("\n" * (numeric or 1))
        elif directive == "c":
            code = integer_arg(self.next_argument(), bindings)
            self.emit(chr(code) * (numeric or 1))
        elif directive in ("r", "R"):
            if numeric is None or not 2 <= numeric <= 36:
                raise format_error("radix expected")
            value = integer_arg(self.next_argument(), bindings)
            self.emit(_to_radix(value, numeric, upper=directive == "R"))
        elif directive == "s":
            self.emit(text_of(self.next_argument(), bindings, "text"))
        elif directive == "i":
            self.next_argument()
        elif directive == "t":
            char = fill_char if fill_char is not None else (chr(numeric) if numeric else " ")
            self.fills.append((len(self.segment), char))
        elif directive == "|":
            self.column_stop(numeric if numeric is not None else self.column())
        elif directive == "+":
            self.column_stop(self.last_stop + (8 if numeric is None else numeric))
        else:
            raise format_error(f"unknown directive ~{directive}")

    def _integer(self, argument: Term, decimals: int, group: bool) -> str:
        value = evaluate(argument, self.bindings)
        if not isinstance(value, int):
            raise format_error("~d expects an integer argument")
        sign = "-" if value < 0 else ""
        digits = str(abs(value))
        fraction = ""
        if decimals > 0:
            digits = digits.rjust(decimals + 1, "0")
            digits, fraction = digits[:-decimals], "." + digits[-decimals:]
        if group:
            digits = f"{int(digits):,}"
        return sign + digits + fraction


def _to_radix(value: int, radix: int, upper: bool) -> str:
    alphabet = "0123456789abcdefghijklmnopqrstuvwxyz"
    if upper:
        alphabet = alphabet.upper()
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, remainder = divmod(value, radix)
        digits.append(alphabet[remainder])
    return sign + "".join(reversed(digits))


def format_to_text(ev, pattern: Term, arguments: Term, bindings) -> str:
    text = text_of(pattern, bindings, "text")
    items, tail = list_to_python(arguments, bindings)
    if tail != NIL:
        items = [arguments]
    return _Formatter(ev, bindings, list(items)).run(text)


@builtin("format", 1)
def _format(ev, args, bindings):
    ev.stdout.write(format_to_text(ev, args[0], NIL, bindings))
    return bindings


@builtin("format", 2)
def _format_args(ev, args, bindings):
    ev.stdout.write(format_to_text(ev, args[0], args[1], bindings))
    return bindings


_SINKS = {"atom": _atom, "string": _string, "codes": _codes, "chars": _chars}


def _sink(term: Term, bindings) -> Optional[Tuple[Term, MakeText]]:
    """Output target atom(A), string(S), codes(C) or chars(C); None for a stream"""
    term = bound(term, bindings)
    if isinstance(term, Compound) and len(term.args) == 1 and term.functor in _SINKS:
        return term.args[0], _SINKS[term.functor]
    return None


@builtin("format", 3)
def _format_to(ev, args, bindings):
    text = format_to_text(ev, args[1], args[2], bindings)
    sink = _sink(args[0], bindings)
    if sink is None:
        ev.output_stream(args[0], bindings).write(text)
        return bindings
    target, make = sink
    return ev.unify(target, make(text), bindings)


@builtin("with_output_to", 2)
def _with_output_to(ev, args, bindings):
    sink = _sink(args[0], bindings)
    if sink is None:
        raise domain_error("output_sink", resolve(args[0], bindings))
    goal = callable_arg(args[1], bindings)
    saved = ev.stdout
    ev.stdout = io.StringIO()
    try:
        solution = ev.first_solution(goal, bindings)
        captured = ev.stdout.getvalue()
    finally:
        ev.stdout = saved
    if solution is None:
        return None
    target, make = sink
    return ev.unify(target, make(captured), solution)
