"""
Tests for the MCP server wiring
"""
import asyncio
import logging

import pytest
from prologmcp import SessionManager, SessionStore, ToolResult, TextBlock, Annotations
from prologmcp.config import PrologMCPConfig
from prologmcp.results import error_block, ERROR_AUDIENCE
from prologmcp.server import to_content, create_server, build_parser, load_config


@pytest.fixture
def config(tmp_path):
    config = PrologMCPConfig()
    config.session.sessions_dir = str(tmp_path / "sessions")
    return config


def call(server, name, arguments):
    """Call a tool and return its text content"""
    result = asyncio.run(server.call_tool(name, arguments))
    # Newer SDK versions return (content, structured) pairs
    if isinstance(result, tuple):
        result = result[0]
    return [content.text for content in result]


class TestToContent:
    """Test conversion of tool results to MCP content"""

    def test_plain_blocks(self):
        """Test converting plain blocks"""
        content = to_content(ToolResult([TextBlock("one"), TextBlock("two")]))
        assert [c.text for c in content] == ["one", "two"]
        assert all(c.type == "text" for c in content)
        assert content[0].annotations is None

    def test_error_annotations(self):
        """Test error blocks keep their annotations"""
        content = to_content(ToolResult([error_block("bad", ERROR_AUDIENCE)]))
        assert content[0].annotations.priority == 1.0
        assert content[0].annotations.audience == ["user", "assistant"]

    def test_error_without_audience(self):
        """Test error blocks without an audience"""
        content = to_content(ToolResult([TextBlock("bad", Annotations(1.0))]))
        assert content[0].annotations.priority == 1.0
        assert content[0].annotations.audience is None


class TestServer:
    """Test the registered tools"""

    def test_creates_sessions_dir(self, config, tmp_path):
        """Test the server creates the sessions directory"""
        create_server(config)
        assert (tmp_path / "sessions").is_dir()

    def test_logs_saved_sessions(self, config, tmp_path, caplog):
        """Test the saved sessions are logged at startup"""
        sessions = tmp_path / "sessions"
        sessions.mkdir()
        (sessions / "family.pl").write_text("parent(tom, bob).\n")
        (sessions / "coins.pl").write_text("coin(heads).\n")
        with caplog.at_level(logging.INFO, logger="prologmcp.server"):
            create_server(config)
        assert "Saved sessions: coins, family" in [record.getMessage() for record in caplog.records]

    def test_four_tools(self, config):
        """Test the four tools are registered"""
        server = create_server(config)
        tools = asyncio.run(server.list_tools())
        assert {tool.name for tool in tools} == {"loadProgram", "runPrologQuery", "saveSession", "loadSession"}
        schemas = {tool.name: tool.inputSchema for tool in tools}
        assert "program" in schemas["loadProgram"]["properties"]
        assert "query" in schemas["runPrologQuery"]["properties"]
        assert "filename" in schemas["saveSession"]["properties"]
        assert "filename" in schemas["loadSession"]["properties"]

    def test_tool_descriptions(self, config):
        """Test the tool descriptions"""
        tools = {tool.name: tool for tool in asyncio.run(create_server(config).list_tools())}
        assert tools["runPrologQuery"].description.startswith("Executes a Prolog query")

    def test_tools_share_one_session(self, config, tmp_path):
        """Test the tools share one session"""
        manager = SessionManager(SessionStore(tmp_path / "sessions"))
        server = create_server(config, manager)
        assert call(server, "loadProgram", {"program": "parent(tom, bob)."}) == ["Program loaded successfully"]
        assert call(server, "runPrologQuery", {"query": "parent(tom, X)"}) == [
            'Results:\n[\n  {\n    "X": "bob"\n  }\n]']
        saved = call(server, "saveSession", {"filename": "family"})
        assert saved[0].startswith("Session saved to ")
        assert call(server, "loadSession", {"filename": "family"})[0].startswith("Session loaded from ")


class TestCommandLine:
    """Test argument parsing and config overrides"""

    def test_defaults(self, monkeypatch, tmp_path):
        """Test default command line options"""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.delenv("PROLOG_MCP_SESSIONS_DIR", raising=False)
        monkeypatch.delenv("PROLOG_MCP_LOG_LEVEL", raising=False)
        config = load_config(build_parser().parse_args([]))
        assert config.server.transport == "stdio"
        assert config.session.sessions_dir == "./prolog-sessions"

    def test_overrides(self, monkeypatch, tmp_path):
        """Test command line overrides"""
        monkeypatch.delenv("PROLOG_MCP_SESSIONS_DIR", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        args = build_parser().parse_args([
            "--sessions-dir", "/srv/sessions", "--log-level", "DEBUG", "--transport", "sse"])
        config = load_config(args)
        assert config.session.sessions_dir == "/srv/sessions"
        assert config.log_level == "DEBUG"
        assert config.server.transport == "sse"

    def test_config_file(self, monkeypatch, tmp_path):
        """Test the --config option"""
        monkeypatch.delenv("PROLOG_MCP_SESSIONS_DIR", raising=False)
        monkeypatch.delenv("PROLOG_MCP_LOG_LEVEL", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("session:\n  sessions_dir: /data/sessions\nlog_level: WARNING\n")
        config = load_config(build_parser().parse_args(["--config", str(path)]))
        assert config.session.sessions_dir == "/data/sessions"
        assert config.log_level == "WARNING"

    def test_invalid_transport(self):
        """Test an invalid transport option"""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--transport", "carrier-pigeon"])
