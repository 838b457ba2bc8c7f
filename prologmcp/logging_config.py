"""
Logging Configuration for prolog-mcp

Log records always go to stderr: with the stdio transport, stdout carries
the MCP protocol stream. An optional rotating log file and a structured JSON
format are available for deployments that collect logs.
"""

import logging
import logging.handlers
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union


class StructuredFormatter(logging.Formatter):
    """Structured JSON formatter for logs"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_entry.update(record.extra_fields)

        return json.dumps(log_entry)


class SessionEventLogger:
    """Logger for session manager events, carrying structured fields"""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_program_loaded(self, characters: int, warnings: int, execution_time: float) -> None:
        self.logger.info(
            "Program loaded",
            extra={
                'extra_fields': {
                    'event_type': 'program_loaded',
                    'characters': characters,
                    'warnings': warnings,
                    'execution_time_ms': execution_time
                }
            }
        )

    def log_query_completed(self, query: str, solution_count: int,
                            faulted: bool, execution_time: float) -> None:
        self.logger.debug(
            "Query executed",
            extra={
                'extra_fields': {
                    'event_type': 'query_performance',
                    'query': query,
                    'solution_count': solution_count,
                    'faulted': faulted,
                    'execution_time_ms': execution_time
                }
            }
        )

    def log_session_event(self, action: str, path: Path) -> None:
        self.logger.info(
            f"Session {action}: {path}",
            extra={
                'extra_fields': {
                    'event_type': f'session_{action}',
                    'path': str(path)
                }
            }
        )


def setup_logging(log_level: str = "INFO",
                  log_file: Optional[Union[str, Path]] = None,
                  enable_structured_logging: bool = False) -> None:
    """
    Setup logging for the server process

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a rotating log file
        enable_structured_logging: Whether to use structured JSON logging
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if enable_structured_logging:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # Console handler on stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    setup_component_loggers(level)


def setup_component_loggers(level: int = logging.INFO) -> None:
    """Setup per-component log levels"""

    # Service components follow the configured level
    logging.getLogger('prologmcp.session').setLevel(level)
    logging.getLogger('prologmcp.persistence').setLevel(level)
    logging.getLogger('prologmcp.server').setLevel(level)

    # Engine internals are chatty at DEBUG
    engine_level = max(level, logging.INFO)
    logging.getLogger('prologmcp.engine').setLevel(engine_level)
    logging.getLogger('prologmcp.evaluator').setLevel(max(level, logging.WARNING))
    logging.getLogger('prologmcp.knowledge').setLevel(max(level, logging.WARNING))

    # External libraries
    logging.getLogger('mcp').setLevel(max(level, logging.WARNING))
