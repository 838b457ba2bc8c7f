"""
Error types for prolog-mcp

Two families live here:

- Engine errors (``PrologError`` and ``PrologSyntaxError``) carry an ISO-style
  error term and can be caught by ``catch/3`` inside the engine.
- Service errors (``PrologMCPError`` and subclasses) form the taxonomy the
  session manager maps every failure into before building a tool response.
"""

from typing import Optional

from .terms import Term, Atom, Number, Compound, Variable


class PrologError(Exception):
    """An error thrown inside the engine, carrying the thrown term"""

    def __init__(self, term: Term, message: Optional[str] = None):
        self.term = term
        super().__init__(message or str(term))


class PrologSyntaxError(PrologError):
    """Raised by the reader for malformed program or query text"""

    def __init__(self, message: str, line: int = 0):
        self.line = line
        term = Compound("error", (
            Compound("syntax_error", (Atom(message),)),
            Compound("line", (Number(line),)),
        ))
        location = f" at line {line}" if line else ""
        super().__init__(term, f"Syntax error{location}: {message}")


def _error(formal: Term, context: Optional[Term] = None) -> PrologError:
    return PrologError(Compound("error", (formal, context or Variable("_"))))


def instantiation_error() -> PrologError:
    return _error(Atom("instantiation_error"))


def type_error(kind: str, culprit: Term) -> PrologError:
    return _error(Compound("type_error", (Atom(kind), culprit)))


def domain_error(domain: str, culprit: Term) -> PrologError:
    return _error(Compound("domain_error", (Atom(domain), culprit)))


def existence_error(kind: str, culprit: Term) -> PrologError:
    return _error(Compound("existence_error", (Atom(kind), culprit)))


def permission_error(action: str, kind: str, culprit: Term) -> PrologError:
    return _error(Compound("permission_error", (Atom(action), Atom(kind), culprit)))


def representation_error(what: str) -> PrologError:
    return _error(Compound("representation_error", (Atom(what),)))


def evaluation_error(what: str) -> PrologError:
    return _error(Compound("evaluation_error", (Atom(what),)))


def resource_error(what: str) -> PrologError:
    return _error(Compound("resource_error", (Atom(what),)))


def indicator_term(name: str, arity: int) -> Term:
    return Compound("/", (Atom(name), Number(arity)))


# ============================================================================
# Service error taxonomy
# ============================================================================

class PrologMCPError(Exception):
    """Base class for failures surfaced as error blocks by the session manager"""


class ValidationError(PrologMCPError):
    """Empty or malformed input, including session names escaping the sessions root"""


class IngestionError(PrologMCPError):
    """Program text could not be parsed or loaded; the engine may be partially updated"""


class QueryFault(PrologMCPError):
    """The engine raised while producing query answers"""


class PersistenceError(PrologMCPError):
    """Session file could not be read or written, or there was nothing to save"""


class SessionNotFoundError(PersistenceError):
    """The requested session file does not exist"""
