"""
prolog-mcp Configuration System

Manages configuration for the server, session storage, query evaluation and
logging. Supports both YAML and JSON formats; environment variables override
values read from files.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional, Union
from dataclasses import dataclass, field, asdict

import yaml

TRANSPORTS = ("stdio", "sse", "streamable-http")


@dataclass
class ServerConfig:
    """MCP server identity and transport"""
    name: str = "prolog-mcp"
    version: str = "0.1.0"
    transport: str = "stdio"  # "stdio", "sse" or "streamable-http"

    def __post_init__(self):
        if self.transport not in TRANSPORTS:
            raise ValueError(f"Unknown transport {self.transport!r}; expected one of {', '.join(TRANSPORTS)}")


@dataclass
class SessionConfig:
    """Where saved sessions live"""
    sessions_dir: str = "./prolog-sessions"
    extension: str = ".pl"
    encoding: str = "utf-8"

    @property
    def sessions_path(self) -> Path:
        return Path(self.sessions_dir).expanduser()


@dataclass
class QueryConfig:
    """Query evaluation configuration"""
    max_depth: int = 500  # Nested resolution frames before resource_error
    occurs_check: bool = False
    max_solutions: int = 0  # 0 means unlimited


@dataclass
class PrologMCPConfig:
    """Main prolog-mcp configuration"""
    server: ServerConfig = field(default_factory=ServerConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    query: QueryConfig = field(default_factory=QueryConfig)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    structured_logging: bool = False

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "PrologMCPConfig":
        """
        Load configuration from file.

        Args:
            path: Path to config file. If None, searches for:
                  1. ~/.prolog-mcp/config.yaml (or .yml)
                  2. ~/.prolog-mcp/config.json
                  3. ./prolog_mcp_config.yaml (or .yml)
                  4. ./prolog_mcp_config.json

        Returns:
            PrologMCPConfig instance with environment overrides applied
        """
        if path:
            return cls._load_from_file(Path(path)).apply_environment()

        search_paths = [
            Path.home() / ".prolog-mcp" / "config.yaml",
            Path.home() / ".prolog-mcp" / "config.yml",
            Path.home() / ".prolog-mcp" / "config.json",
            Path("prolog_mcp_config.yaml"),
            Path("prolog_mcp_config.yml"),
            Path("prolog_mcp_config.json"),
        ]

        for config_path in search_paths:
            if config_path.exists():
                return cls._load_from_file(config_path).apply_environment()

        # Default config if no file found
        return cls().apply_environment()

    @classmethod
    def _load_from_file(cls, path: Path) -> "PrologMCPConfig":
        """Load config from specific file"""
        with open(path, 'r') as f:
            if path.suffix in ['.yaml', '.yml']:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrologMCPConfig":
        """Create config from dictionary"""
        config = cls()

        if 'server' in data:
            config.server = ServerConfig(**data['server'])

        if 'session' in data:
            config.session = SessionConfig(**data['session'])

        if 'query' in data:
            config.query = QueryConfig(**data['query'])

        for key in ['log_level', 'log_file', 'structured_logging']:
            if key in data:
                setattr(config, key, data[key])

        return config

    def apply_environment(self) -> "PrologMCPConfig":
        """Apply PROLOG_MCP_* environment overrides in place"""
        sessions_dir = os.getenv("PROLOG_MCP_SESSIONS_DIR")
        if sessions_dir:
            self.session.sessions_dir = sessions_dir
        log_level = os.getenv("PROLOG_MCP_LOG_LEVEL")
        if log_level:
            self.log_level = log_level
        return self

    def save(self, path: Union[str, Path]) -> None:
        """
        Save configuration to file.

        Args:
            path: Path to save config (extension determines format)
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.to_dict()

        with open(path, 'w') as f:
            if path.suffix in ['.yaml', '.yml']:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(data, f, indent=2)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        return {
            'server': asdict(self.server),
            'session': asdict(self.session),
            'query': asdict(self.query),
            'log_level': self.log_level,
            'log_file': self.log_file,
            'structured_logging': self.structured_logging
        }


# Global config instance
_config: Optional[PrologMCPConfig] = None


def get_config() -> PrologMCPConfig:
    """Get the global config instance"""
    global _config
    if _config is None:
        _config = PrologMCPConfig.load()
    return _config


def set_config(config: PrologMCPConfig) -> None:
    """Set the global config instance"""
    global _config
    _config = config


def reset_config() -> None:
    """Reset to default config"""
    global _config
    _config = PrologMCPConfig()
