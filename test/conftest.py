"""
Shared fixtures: a throwaway SQLite database per test, optionally seeded
with the demo user, plus an isolated trace logger and worker pool.
"""

import pytest

from finance_buddy.config import reset_settings
from finance_buddy.db import schema
from finance_buddy.db.store import SQLiteStore, set_store
from finance_buddy.utils.async_processor import AsyncProcessor
from finance_buddy.utils.logger import AgentLogger


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("FINANCE_BUDDY_DB", str(tmp_path / "finance_buddy.db"))
    monkeypatch.setenv("FINANCE_BUDDY_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("FINANCE_BUDDY_BACKEND", "sqlite")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    reset_settings()
    yield
    set_store(None)
    reset_settings()


@pytest.fixture
def store(tmp_path):
    db = SQLiteStore(str(tmp_path / "finance_buddy.db"))
    set_store(db)
    return db


@pytest.fixture
def demo_user(store):
    return schema.seed_demo_user(store.db_path)


@pytest.fixture
def logger(tmp_path):
    return AgentLogger(log_dir=str(tmp_path / "logs"))


@pytest.fixture
def processor():
    pool = AsyncProcessor(max_workers=4)
    yield pool
    pool.shutdown()
