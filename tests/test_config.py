"""
Tests for prolog-mcp configuration and logging setup
"""
import json
import logging

import pytest
import yaml
from prologmcp import get_config, set_config, reset_config
from prologmcp.config import PrologMCPConfig, ServerConfig, QueryConfig
from prologmcp.logging_config import StructuredFormatter, SessionEventLogger, setup_logging


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    monkeypatch.delenv("PROLOG_MCP_SESSIONS_DIR", raising=False)
    monkeypatch.delenv("PROLOG_MCP_LOG_LEVEL", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    yield
    reset_config()


class TestConfig:
    """Test config defaults, files and overrides"""

    def test_defaults(self):
        """Test default configuration values"""
        config = PrologMCPConfig()
        assert config.server.name == "prolog-mcp"
        assert config.server.transport == "stdio"
        assert config.session.sessions_dir == "./prolog-sessions"
        assert config.session.extension == ".pl"
        assert config.query.max_depth == 500
        assert config.query.max_solutions == 0
        assert config.log_level == "INFO"

    def test_unknown_transport(self):
        """Test an unknown transport is rejected"""
        with pytest.raises(ValueError):
            ServerConfig(transport="telnet")

    def test_yaml_round_trip(self, tmp_path):
        """Test saving and loading YAML config"""
        config = PrologMCPConfig()
        config.session.sessions_dir = "/var/lib/prolog"
        config.query = QueryConfig(max_depth=100, occurs_check=True)
        path = tmp_path / "config.yaml"
        config.save(path)

        assert yaml.safe_load(path.read_text())["query"]["occurs_check"] is True
        loaded = PrologMCPConfig.load(path)
        assert loaded.to_dict() == config.to_dict()

    def test_json_file(self, tmp_path):
        """Test loading a JSON config file"""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"server": {"transport": "sse"}, "structured_logging": True}))
        loaded = PrologMCPConfig.load(path)
        assert loaded.server.transport == "sse"
        assert loaded.server.name == "prolog-mcp"
        assert loaded.structured_logging

    def test_search_path(self, tmp_path):
        """Test the config file search order"""
        (tmp_path / "prolog_mcp_config.yaml").write_text("log_level: DEBUG\n")
        assert PrologMCPConfig.load().log_level == "DEBUG"

    def test_home_directory_config(self, tmp_path):
        """Test the config file in the home directory"""
        config_dir = tmp_path / ".prolog-mcp"
        config_dir.mkdir()
        (config_dir / "config.yml").write_text("session:\n  extension: .pro\n")
        assert PrologMCPConfig.load().session.extension == ".pro"

    def test_empty_file(self, tmp_path):
        """Test an empty config file gives defaults"""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert PrologMCPConfig.load(path).to_dict() == PrologMCPConfig().to_dict()

    def test_environment_overrides(self, monkeypatch, tmp_path):
        """Test environment variables override the file"""
        monkeypatch.setenv("PROLOG_MCP_SESSIONS_DIR", "/tmp/elsewhere")
        monkeypatch.setenv("PROLOG_MCP_LOG_LEVEL", "ERROR")
        path = tmp_path / "config.yaml"
        path.write_text("session:\n  sessions_dir: /from/file\n")
        config = PrologMCPConfig.load(path)
        assert config.session.sessions_dir == "/tmp/elsewhere"
        assert config.log_level == "ERROR"

    def test_sessions_path_expands_home(self, tmp_path):
        """Test the sessions path expands ~"""
        config = PrologMCPConfig()
        config.session.sessions_dir = "~/sessions"
        assert config.session.sessions_path == tmp_path / "sessions"

    def test_global_config(self):
        """Test the global config accessors"""
        custom = PrologMCPConfig()
        custom.log_level = "WARNING"
        set_config(custom)
        assert get_config() is custom
        reset_config()
        assert get_config().log_level == "INFO"


class TestLogging:
    """Test logging setup"""

    def test_structured_formatter(self):
        """Test the structured log formatter"""
        record = logging.LogRecord("prologmcp.session", logging.INFO, __file__, 10, "Program loaded", None, None)
        record.extra_fields = {"event_type": "program_loaded", "characters": 12}
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["message"] == "Program loaded"
        assert entry["level"] == "INFO"
        assert entry["event_type"] == "program_loaded"
        assert entry["characters"] == 12

    def test_session_events(self, caplog):
        """Test session event logging"""
        events = SessionEventLogger("prologmcp.session")
        with caplog.at_level(logging.INFO, logger="prologmcp.session"):
            events.log_program_loaded(12, 0, 1.5)
            events.log_session_event("saved", "/tmp/family.pl")
        messages = [record.getMessage() for record in caplog.records]
        assert messages == ["Program loaded", "Session saved: /tmp/family.pl"]
        assert caplog.records[0].extra_fields["event_type"] == "program_loaded"

    def test_setup_logging_uses_stderr_and_file(self, tmp_path):
        """Test logging goes to stderr and the log file"""
        log_file = tmp_path / "logs" / "server.log"
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging("DEBUG", log_file, enable_structured_logging=True)
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 2
            logging.getLogger("prologmcp.server").info("hello")
            for handler in root.handlers:
                handler.flush()
            line = log_file.read_text().strip().splitlines()[-1]
            assert json.loads(line)["message"] == "hello"
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
