import pytest

import database
import storage


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Fresh SQLite database per test."""
    monkeypatch.setattr(database, "USE_POSTGRES", False)
    monkeypatch.setattr(database, "DB_PATH", str(tmp_path / "trips.db"))
    database.init_db()
    return database


@pytest.fixture
def temp_storage(tmp_path, monkeypatch):
    """Attachment store rooted in a temp directory with a fixed signing key."""
    root = tmp_path / "files"
    monkeypatch.setattr(storage, "STORAGE_DIR", root)
    monkeypatch.setattr(storage, "SIGNING_KEY", "test-signing-key")
    return root
