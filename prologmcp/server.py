"""
prolog-mcp MCP (Model Context Protocol) Server

Exposes the session manager as four tools over MCP. Tool results are lists
of text content blocks; error blocks carry priority 1.0 annotations.

Usage:
    prolog-mcp --sessions-dir ./prolog-sessions --transport stdio
"""

import argparse
import logging
from typing import List, Optional

from mcp.server.fastmcp import FastMCP
from mcp.types import Annotations, TextContent

from .config import PrologMCPConfig, TRANSPORTS, get_config
from .session import SessionManager
from .results import ToolResult
from .logging_config import setup_logging

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def to_content(result: ToolResult) -> List[TextContent]:
    """Convert a ToolResult into MCP text content, keeping block order"""
    content = []
    for block in result.blocks:
        annotations = None
        if block.annotations is not None:
            audience = list(block.annotations.audience) if block.annotations.audience else None
            annotations = Annotations(priority=block.annotations.priority, audience=audience)
        content.append(TextContent(type="text", text=block.text, annotations=annotations))
    return content


def create_server(config: Optional[PrologMCPConfig] = None,
                  manager: Optional[SessionManager] = None) -> FastMCP:
    """
    Build the MCP server with its four tools.

    Args:
        config: Server configuration; the global config when omitted
        manager: Session manager to serve; built from the config when omitted
    """
    if config is None:
        config = get_config()
    if manager is None:
        manager = SessionManager.from_config(config)
    sessions_dir = manager.ensure_sessions_dir()
    logger.info(f"Sessions directory: {sessions_dir}")
    saved = manager.saved_sessions()
    if saved:
        logger.info(f"Saved sessions: {', '.join(saved)}")

    server = FastMCP(config.server.name)

    @server.tool(name="loadProgram")
    async def load_program(program: str):
        """Loads Prolog program definitions that can be queried later

        Args:
            program: The Prolog program definitions to load
        """
        return to_content(await manager.load_rules(program))

    @server.tool(name="runPrologQuery")
    async def run_prolog_query(query: str):
        """Executes a Prolog query against loaded definitions

        Args:
            query: The Prolog query to execute
        """
        return to_content(await manager.run_query(query))

    @server.tool(name="saveSession")
    async def save_session(filename: str):
        """Saves the current Prolog session to a file for later loading

        Args:
            filename: The name to save the session under
        """
        return to_content(await manager.save_session(filename))

    @server.tool(name="loadSession")
    async def load_session(filename: str):
        """Loads a previously saved Prolog session

        Args:
            filename: The name of the session to load
        """
        return to_content(await manager.load_session(filename))

    return server


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="prolog-mcp", description="Prolog MCP Server")
    parser.add_argument("--config", help="Path to prolog-mcp config file (YAML or JSON)")
    parser.add_argument("--sessions-dir", help="Directory where sessions are saved")
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="Logging level")
    parser.add_argument("--transport", choices=TRANSPORTS, help="MCP transport")
    return parser


def load_config(args: argparse.Namespace) -> PrologMCPConfig:
    """Config from file and environment, then command line overrides"""
    config = PrologMCPConfig.load(args.config)
    if args.sessions_dir:
        config.session.sessions_dir = args.sessions_dir
    if args.log_level:
        config.log_level = args.log_level
    if args.transport:
        config.server.transport = args.transport
    return config


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the prolog-mcp console script"""
    args = build_parser().parse_args(argv)
    config = load_config(args)

    setup_logging(config.log_level, config.log_file, config.structured_logging)

    server = create_server(config)
    logger.info(f"Starting {config.server.name} {config.server.version} ({config.server.transport})")
    server.run(transport=config.server.transport)


if __name__ == "__main__":
    main()
