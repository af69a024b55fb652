import os

os.environ.setdefault("ENV", "test")

import pytest
from sqlalchemy import create_engine

from app.core.notifications import NotificationHub
from app.core.pipeline import IngestionPipeline
from app.db import DatabaseManager
from app.services.media_store import MediaStore

pytest_plugins = [
    "tests.fixtures.client_fixtures",
    "tests.fixtures.message_fixtures",
    "tests.fixtures.app_fixtures",
]


@pytest.fixture(scope="function")
def db_manager(tmp_path):
    """DatabaseManager bound to a file-based SQLite database for this test."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'tracker.db'}",
        connect_args={"check_same_thread": False},
    )
    manager = DatabaseManager(engine=engine)
    manager.create_all()
    yield manager
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_manager):
    session = db_manager.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def media_store(tmp_path):
    return MediaStore(tmp_path / "media")


@pytest.fixture
def hub():
    return NotificationHub(queue_size=50)


@pytest.fixture
def pipeline(db_manager, media_store, hub):
    return IngestionPipeline(db_manager.db_session, media_store, hub)
