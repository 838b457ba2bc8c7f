"""
Session persistence

Sessions are stored as ``<root>/<name>.pl`` files holding a verbatim
listing of the knowledge base. Names are validated so that the resolved path
always stays inside the sessions directory.
"""

import logging
from pathlib import Path
from typing import List, Union

from .errors import ValidationError, PersistenceError, SessionNotFoundError

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Named-file storage for saved sessions.

    Examples:
        >>> store = SessionStore("/tmp/sessions")
        >>> store.resolve("family")
        PosixPath('/tmp/sessions/family.pl')
        >>> store.resolve("../etc/passwd")
        Traceback (most recent call last):
        ...
        prologmcp.errors.ValidationError: Session name '../etc/passwd' resolves outside the sessions directory
    """

    def __init__(self, root: Union[str, Path], extension: str = ".pl", encoding: str = "utf-8"):
        self.root = Path(root).expanduser()
        self.extension = extension
        self.encoding = encoding

    def ensure_root(self) -> Path:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create sessions directory {self.root}: {e}") from e
        return self.root

    def resolve(self, name: str) -> Path:
        """Path of a session file; rejects names that would escape the root"""
        if not name or not name.strip():
            raise ValidationError("Session name must not be empty")
        if "\0" in name:
            raise ValidationError("Session name must not contain NUL characters")
        if Path(name).is_absolute():
            raise ValidationError(f"Session name {name!r} must be relative")

        root = self.root.resolve()
        path = (root / f"{name}{self.extension}").resolve()
        if path.parent != root and root not in path.parents:
            raise ValidationError(f"Session name {name!r} resolves outside the sessions directory")
        return path

    def write(self, name: str, text: str) -> Path:
        path = self.resolve(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding=self.encoding) as f:
                f.write(text)
        except OSError as e:
            raise PersistenceError(f"Cannot write {path}: {e}") from e
        logger.debug(f"Wrote {len(text)} characters to {path}")
        return path

    def read(self, name: str) -> str:
        path = self.resolve(name)
        try:
            with open(path, 'r', encoding=self.encoding) as f:
                return f.read()
        except FileNotFoundError as e:
            raise SessionNotFoundError(f"Session file {path} not found") from e
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Cannot read {path}: {e}") from e

    def exists(self, name: str) -> bool:
        return self.resolve(name).is_file()

    def list_sessions(self) -> List[str]:
        """Names of stored sessions, sorted"""
        if not self.root.is_dir():
            return []
        return sorted(path.stem for path in self.root.glob(f"*{self.extension}") if path.is_file())
