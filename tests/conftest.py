"""Shared pytest fixtures."""

from collections import defaultdict

import pytest
import yaml
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from quill.config import clear_settings_cache, set_config_path
from quill.db.base import Base
from quill.db.models import Post, PostRevision, User  # noqa: F401
from quill.db.services.revision_capabilities import RevisionCapabilities
from quill.lib.hooks import hooks
from quill.lib.locks import RecordLocks

# A revisions table from before numbering and snapshot columns existed,
# with the note column under its old name.
LEGACY_REVISIONS_DDL = """
CREATE TABLE post_revisions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    post_id INTEGER NOT NULL REFERENCES posts (id) ON DELETE CASCADE,
    content_html TEXT NOT NULL DEFAULT '',
    change_summary VARCHAR(255),
    created_at DATETIME NOT NULL
)
"""


@pytest.fixture
def temp_app_yaml(tmp_path):
    """Create a temporary app.yaml file for testing."""
    config_path = tmp_path / "app.yaml"

    def _create_config(config: dict):
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f)
        return config_path

    return _create_config


@pytest.fixture
def isolated_settings():
    """Reset config resolution and the settings cache around a test."""
    clear_settings_cache()
    yield
    set_config_path(None)
    clear_settings_cache()


@pytest.fixture
def clean_hooks():
    """Save and restore hooks state around a test."""
    original_filters = {name: list(handlers) for name, handlers in hooks._filters.items()}
    original_actions = {name: list(handlers) for name, handlers in hooks._actions.items()}
    yield
    hooks._filters = defaultdict(list, original_filters)
    hooks._actions = defaultdict(list, original_actions)


@pytest.fixture
async def engine(tmp_path):
    """A file-backed SQLite database on the newest schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'quill.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def legacy_engine(tmp_path):
    """A SQLite database whose revisions table only stores content."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'legacy.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(
            Base.metadata.create_all, tables=[User.__table__, Post.__table__]
        )
        await conn.execute(text(LEGACY_REVISIONS_DDL))
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def legacy_session_maker(legacy_engine):
    return async_sessionmaker(legacy_engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def full_capabilities():
    return RevisionCapabilities.full()


@pytest.fixture
def legacy_capabilities():
    return RevisionCapabilities(diff_summary_column="change_summary")


@pytest.fixture
def locks():
    return RecordLocks()
