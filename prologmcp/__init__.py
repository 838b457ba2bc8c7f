"""
prolog-mcp - Persistent Prolog reasoning sessions over the Model Context Protocol

A pure-Python Prolog engine owned by a session manager that loads programs,
runs queries and saves or restores the knowledge base through named session
files, exposed as four MCP tools.
"""

from .terms import Term, Atom, Number, String, Variable, Compound
from .factories import atom, var, compound, number, string, plist
from .knowledge import Clause, Predicate, KnowledgeBase
from .unification import unify, match, subsumes, variant
from .reader import read_term, read_terms, parse_term
from .writer import format_term, portray_clause
from .engine import PrologEngine, Answer, AnswerStatus
from .errors import (
    PrologError, PrologSyntaxError,
    PrologMCPError, ValidationError, IngestionError, QueryFault, PersistenceError, SessionNotFoundError,
)
from .results import ToolResult, TextBlock, Annotations
from .persistence import SessionStore
from .session import SessionManager
from .config import PrologMCPConfig, get_config, set_config, reset_config

__version__ = "0.1.0"
__all__ = [
    "Term", "Atom", "Number", "String", "Variable", "Compound",
    "atom", "var", "compound", "number", "string", "plist",
    "Clause", "Predicate", "KnowledgeBase",
    "unify", "match", "subsumes", "variant",
    "read_term", "read_terms", "parse_term", "format_term", "portray_clause",
    "PrologEngine", "Answer", "AnswerStatus",
    "PrologError", "PrologSyntaxError",
    "PrologMCPError", "ValidationError", "IngestionError", "QueryFault", "PersistenceError",
    "SessionNotFoundError",
    "ToolResult", "TextBlock", "Annotations",
    "SessionStore", "SessionManager",
    "PrologMCPConfig", "get_config", "set_config", "reset_config",
]
