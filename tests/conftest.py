"""
Pytest configuration and fixtures for recipient importer tests.

The import core is exercised against in-memory fakes of its capabilities
(source fetch, batch write, remaining time, re-dispatch, report sink), so no
database or object storage is needed unless a test asks for one.
"""

import os

# Unit tests never bootstrap the production database.
os.environ.setdefault("SKIP_DB_INIT", "1")

import pytest
from sqlalchemy import create_engine


@pytest.fixture
def sqlite_engine(tmp_path):
    """A throwaway SQLite database standing in for Postgres."""
    engine = create_engine(f"sqlite:///{tmp_path / 'recipients.db'}")
    yield engine
    engine.dispose()
