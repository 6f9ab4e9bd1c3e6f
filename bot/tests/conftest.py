"""Shared fixtures for the SplitBot test suite."""
import os

os.environ.setdefault("BOT_TOKEN", "test-token")
os.environ.setdefault("OPENAI_API_KEY", "test-key")

import pytest

from core.ledger import Member
from storage import database


@pytest.fixture
def db():
    """Fresh in-memory SQLite database for each test."""
    assert database.init_database("sqlite://")
    database.create_tables()
    yield database
    database.drop_tables()


@pytest.fixture
def members():
    return [
        Member(id=1, name="Alice"),
        Member(id=2, name="Bob"),
        Member(id=3, name="Carol"),
    ]
