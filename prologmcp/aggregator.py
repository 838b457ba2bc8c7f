"""
Query result aggregation

Folds the lazy answer sequence of one query into a single ToolResult. Each
answer is pulled in a worker thread so the event loop stays responsive while
the engine searches for the next solution.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Iterator, List, Optional

from .terms import Term, Number
from .utils import proper_list
from .writer import format_term
from .engine import Answer, AnswerStatus
from .errors import QueryFault
from .results import ERROR_AUDIENCE, TextBlock, ToolResult, error_block

logger = logging.getLogger(__name__)

NO_OUTPUT_MESSAGE = "Query succeeded with no output or solutions found."

_EXHAUSTED = object()


def serialize_term(term: Term) -> Any:
    """
    JSON-friendly form of a binding value.

    Examples:
        >>> serialize_term(parse_term("[1, 2.5, foo(X)]"))
        [1, 2.5, 'foo(X)']
        >>> serialize_term(parse_term("'hello world'"))
        "'hello world'"
    """
    if isinstance(term, Number):
        return term.value
    items = proper_list(term)
    if items is not None:
        return [serialize_term(item) for item in items]
    return format_term(term, quoted=True)


def serialize_bindings(bindings: Dict[str, Term]) -> Dict[str, Any]:
    return {name: serialize_term(value) for name, value in bindings.items()}


class QueryAggregator:
    """
    Accumulates solutions, output and diagnostics for one query.

    A fault raised while pulling an answer stops consumption; solutions
    gathered before it are kept and the fault is reported last.
    """

    def __init__(self):
        self.solutions: List[Dict[str, Any]] = []
        self.stdout: List[str] = []
        self.stderr: List[str] = []
        self.fault: Optional[str] = None

    def add(self, answer: Answer) -> None:
        if answer.status is AnswerStatus.SUCCESS:
            self.solutions.append(serialize_bindings(answer.bindings))
        elif answer.status is AnswerStatus.ERROR:
            self.stderr.append(f"Query error term: {answer.error}\n")
        if answer.stdout:
            self.stdout.append(answer.stdout)
        if answer.stderr:
            self.stderr.append(answer.stderr)

    async def consume(self, answers: Iterator[Answer]) -> 'QueryAggregator':
        try:
            while True:
                try:
                    answer = await asyncio.to_thread(next, answers, _EXHAUSTED)
                except Exception as error:
                    fault = QueryFault(str(error) or type(error).__name__)
                    logger.exception(f"Query faulted: {fault}")
                    self.fault = str(fault)
                    break
                if answer is _EXHAUSTED:
                    break
                self.add(answer)
        finally:
            close = getattr(answers, "close", None)
            if close is not None:
                close()
        return self

    def to_result(self) -> ToolResult:
        blocks: List[TextBlock] = []
        out = "".join(self.stdout)
        err = "".join(self.stderr)
        if out:
            blocks.append(TextBlock(f"Stdout:\n{out}"))
        if err:
            blocks.append(TextBlock(f"Stderr:\n{err}"))
        if self.solutions:
            blocks.append(TextBlock(f"Results:\n{json.dumps(self.solutions, indent=2)}"))
        if self.fault is not None:
            blocks.append(error_block(f"Error executing query: {self.fault}", ERROR_AUDIENCE))
        if not blocks:
            blocks.append(TextBlock(NO_OUTPUT_MESSAGE))
        return ToolResult(blocks)
