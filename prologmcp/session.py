"""
Persistent reasoning session manager

Owns one Prolog engine for the lifetime of the process and exposes four
operations on it: loading program text, running queries, and saving or
restoring the knowledge base through named session files.

Operations are coroutines admitted one at a time through an asyncio lock.
Engine work and file I/O run in worker threads inside the critical section,
so the event loop stays responsive while the engine is never touched by two
operations at once. Every failure is mapped into the service error taxonomy
and returned as an error block; no operation raises to its caller.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import List, Optional

from .config import PrologMCPConfig
from .engine import PrologEngine
from .aggregator import QueryAggregator
from .persistence import SessionStore
from .results import ToolResult
from .logging_config import SessionEventLogger
from .errors import (
    PrologError, PrologMCPError, ValidationError, IngestionError, PersistenceError,
)

logger = logging.getLogger(__name__)
events = SessionEventLogger(__name__)

LISTING_QUERY = "listing."


class SessionManager:
    """
    Serializes tool operations against a single long-lived engine.

    Examples:
        >>> manager = SessionManager(SessionStore("./prolog-sessions"))
        >>> str(asyncio.run(manager.load_rules("parent(tom, bob).")))
        'Program loaded successfully'
    """

    def __init__(self, store: SessionStore, engine: Optional[PrologEngine] = None):
        self._store = store
        self._engine = engine if engine is not None else PrologEngine()
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: PrologMCPConfig) -> 'SessionManager':
        store = SessionStore(config.session.sessions_path,
                             extension=config.session.extension,
                             encoding=config.session.encoding)
        return cls(store, PrologEngine.from_config(config.query))

    @property
    def sessions_dir(self) -> Path:
        return self._store.root

    def ensure_sessions_dir(self) -> Path:
        return self._store.ensure_root()

    def saved_sessions(self) -> List[str]:
        return self._store.list_sessions()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def load_rules(self, program: str) -> ToolResult:
        """Add program text to the knowledge base; earlier clauses stay on failure"""
        if not program or not program.strip():
            return self._failed("Error loading program:\n", ValidationError("Program text must not be empty"))

        async with self._lock:
            started = time.perf_counter()
            try:
                warnings = await self._ingest(program)
            except IngestionError as e:
                return self._failed("Error loading program:\n", e)
            events.log_program_loaded(len(program), len(warnings), _elapsed_ms(started))

        text = "Program loaded successfully"
        if warnings:
            text += "\n\nWarnings:\n" + "\n".join(warnings)
        return ToolResult.text(text)

    async def run_query(self, query: str) -> ToolResult:
        """Run a query to exhaustion and aggregate its answers"""
        if not query or not query.strip():
            return self._failed("Error executing query: ", ValidationError("Query must not be empty"))

        async with self._lock:
            started = time.perf_counter()
            aggregator = await QueryAggregator().consume(self._engine.query(query))
            events.log_query_completed(query, len(aggregator.solutions),
                                       aggregator.fault is not None, _elapsed_ms(started))
        return aggregator.to_result()

    async def save_session(self, name: str) -> ToolResult:
        """Write the current listing to ``<sessions_dir>/<name>.pl``"""
        async with self._lock:
            try:
                self._store.resolve(name)
                listing = await self._listing()
                if not listing.strip():
                    raise PersistenceError("No program content to save")
                if self._store.exists(name):
                    logger.info(f"Overwriting saved session {name}")
                path = await asyncio.to_thread(self._store.write, name, listing)
            except PrologMCPError as e:
                return self._failed("Error saving session: ", e)
            events.log_session_event("saved", path)
        return ToolResult.text(f"Session saved to {path}")

    async def load_session(self, name: str) -> ToolResult:
        """Merge a saved session into the knowledge base"""
        async with self._lock:
            try:
                path = self._store.resolve(name)
                text = await asyncio.to_thread(self._store.read, name)
                await self._ingest(text)
            except PrologMCPError as e:
                return self._failed("Error loading session: ", e)
            events.log_session_event("loaded", path)
        return ToolResult.text(f"Session loaded from {path}")

    # ------------------------------------------------------------------
    # Engine access, only ever called while holding the lock
    # ------------------------------------------------------------------

    async def _ingest(self, text: str) -> List[str]:
        try:
            return await asyncio.to_thread(self._engine.consult_text, text)
        except PrologError as e:
            raise IngestionError(str(e)) from e
        except RecursionError as e:
            raise IngestionError("Program too deeply nested") from e
        except Exception as e:
            logger.exception("Unexpected failure while consulting program text")
            raise IngestionError(str(e) or type(e).__name__) from e

    async def _listing(self) -> str:
        answers = self._engine.query(LISTING_QUERY)
        parts = []
        try:
            while True:
                try:
                    answer = await asyncio.to_thread(next, answers, None)
                except Exception as e:
                    logger.exception("Unexpected failure while listing the knowledge base")
                    raise PersistenceError(str(e) or type(e).__name__) from e
                if answer is None:
                    break
                if answer.error is not None:
                    raise PersistenceError(f"listing failed: {answer.error}")
                if answer.stdout:
                    parts.append(answer.stdout + "\n")
        finally:
            answers.close()
        return "".join(parts)

    def _failed(self, prefix: str, error: PrologMCPError) -> ToolResult:
        logger.warning(f"{type(error).__name__}: {error}")
        return ToolResult.error(f"{prefix}{error}")


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
