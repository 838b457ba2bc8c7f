"""
Tests for session file storage
"""
import pytest
from prologmcp import SessionStore, ValidationError, PersistenceError, SessionNotFoundError


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "sessions")


class TestResolve:
    """Test session name validation"""

    def test_plain_name(self, store):
        """Test resolving a plain session name"""
        path = store.resolve("family")
        assert path.name == "family.pl"
        assert path.parent == store.root.resolve()

    def test_nested_name_stays_inside(self, store):
        """Test a nested name stays inside the directory"""
        path = store.resolve("projects/family")
        assert store.root.resolve() in path.parents

    @pytest.mark.parametrize("name", ["", "   ", "../escape", "a/../../escape", "bad\0name"])
    def test_rejected_names(self, store, name):
        """Test names that escape the directory"""
        with pytest.raises(ValidationError):
            store.resolve(name)

    def test_absolute_name_rejected(self, store, tmp_path):
        """Test absolute names are rejected"""
        with pytest.raises(ValidationError):
            store.resolve(str(tmp_path / "elsewhere"))

    def test_custom_extension(self, tmp_path):
        """Test a custom file extension"""
        assert SessionStore(tmp_path, extension=".pro").resolve("x").name == "x.pro"


class TestReadWrite:
    """Test reading and writing session files"""

    def test_round_trip(self, store):
        """Test writing then reading a session"""
        path = store.write("family", "parent(tom, bob).\n")
        assert path.read_text(encoding="utf-8") == "parent(tom, bob).\n"
        assert store.read("family") == "parent(tom, bob).\n"
        assert store.exists("family")

    def test_write_creates_directories(self, store):
        """Test writing creates parent directories"""
        store.write("deep/nested/session", "a.\n")
        assert store.read("deep/nested/session") == "a.\n"

    def test_unicode_text(self, store):
        """Test session text keeps unicode"""
        store.write("names", "name('Zoë').\n")
        assert store.read("names") == "name('Zoë').\n"

    def test_missing_session(self, store):
        """Test reading a missing session"""
        with pytest.raises(SessionNotFoundError) as info:
            store.read("nothing")
        assert "not found" in str(info.value)
        assert isinstance(info.value, PersistenceError)

    def test_unreadable_session(self, store):
        """Test reading an unreadable session"""
        store.ensure_root()
        (store.root / "folder.pl").mkdir()
        with pytest.raises(PersistenceError):
            store.read("folder")

    def test_write_failure(self, store):
        """Test a failed write"""
        store.ensure_root()
        (store.root / "taken.pl").mkdir()
        with pytest.raises(PersistenceError):
            store.write("taken", "a.\n")

    def test_list_sessions(self, store):
        """Test listing saved sessions"""
        assert store.list_sessions() == []
        store.write("b", "b.\n")
        store.write("a", "a.\n")
        (store.root / "notes.txt").write_text("ignored")
        assert store.list_sessions() == ["a", "b"]
