"""Shared pytest fixtures for all tests."""

import os

# cheap argon2 parameters; must be set before server.config is imported
os.environ.setdefault("SFS_ARGON2_TIME_COST", "1")
os.environ.setdefault("SFS_ARGON2_MEMORY_COST", "1024")
os.environ.setdefault("SFS_ARGON2_PARALLELISM", "1")
os.environ.setdefault("SFS_JWT_SECRET", "test-signing-secret")

import pytest
from fastapi.testclient import TestClient

from cli.config import Config
from server import service_locator
from server.database import init_database
from server.repositories import create_memory_store, create_sqlite_store
from server.storage import DiskStorage
from server.tokens import TokenIssuer
from server.utils import utc_now

TEST_SECRET = "test-signing-secret"


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Returns:
        Path to temporary .sfs directory
    """
    config_dir = tmp_path / '.sfs'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """Config instance backed by a file in a temp directory."""
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_path):
    """
    Empty Store, once per implementation. Contract tests that take this
    fixture run against both.
    """
    if request.param == "sqlite":
        db_path = str(tmp_path / "test.db")
        init_database(db_path)
        return create_sqlite_store(db_path)
    return create_memory_store()


@pytest.fixture
def memory_store():
    return create_memory_store()


@pytest.fixture
def storage(tmp_path):
    return DiskStorage(tmp_path / "uploads", chunk_size=16)


@pytest.fixture
def token_issuer():
    return TokenIssuer(TEST_SECRET, ttl_seconds=3600)


@pytest.fixture
def make_user(store):
    """Factory inserting a user straight into the store (no hashing)."""
    def _make_user(username: str, password_hash: str = "not-a-real-hash"):
        return store.users.create_user(username, password_hash, utc_now())
    return _make_user


@pytest.fixture
def configured(store, storage, token_issuer):
    """Install store, storage and issuer in the service locator."""
    service_locator.configure(store, storage, token_issuer)
    yield store
    service_locator.reset()


@pytest.fixture
def client(configured):
    """FastAPI test client running against the configured store."""
    from server.main import app

    with TestClient(app) as test_client:
        yield test_client
