# tests/conftest.py
import sys
import pytest
from pathlib import Path
from unittest.mock import MagicMock
from sqlalchemy.sql import text

# Add project root to Python path
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from catalog.config import Settings
from catalog.models.remote import RemotePage
from catalog.remote.westmanga_client import WestMangaClient
from catalog.sa.database import Database
from catalog.sa.models import Genre
from catalog.sync.chapter_backfill import ChapterBackfillEngine
from catalog.sync.reconciler import ReconciliationEngine

@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory):
    """Create a temporary directory for the test database."""
    test_dir = tmp_path_factory.mktemp("test_db")
    return str(test_dir / "test_catalog.db")

@pytest.fixture(scope="session")
def database(test_db_path):
    """Create a test database instance with a fresh schema"""
    db = Database(f"sqlite:///{test_db_path}")
    db.drop_db()
    db.init_db()
    yield db
    db.engine.dispose()

@pytest.fixture(autouse=True)
def cleanup_db(database):
    """Clean up database tables before each test"""
    with database.engine.begin() as conn:
        # Delete in reverse order of dependencies
        conn.execute(text("DELETE FROM chapter_image"))
        conn.execute(text("DELETE FROM chapter"))
        conn.execute(text("DELETE FROM manga_genre"))
        conn.execute(text("DELETE FROM manga"))
        conn.execute(text("DELETE FROM genre"))
    yield

@pytest.fixture(scope="function")
def db_session(database):
    """Create a new database session for a test"""
    session = database.get_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

@pytest.fixture
def sync_settings():
    """Settings with retries and delays switched off"""
    return Settings(sync_retries=0, sync_retry_delay=0.0)

@pytest.fixture
def remote_client():
    """A WestManga client stub with an empty catalog"""
    client = MagicMock(spec=WestMangaClient)
    client.list_page.return_value = RemotePage(items=[], page=1, per_page=25, last_page=1)
    client.get_detail_by_slug.return_value = None
    client.get_chapter_by_slug.return_value = None
    return client

@pytest.fixture
def backfill_engine(remote_client, database, sync_settings):
    return ChapterBackfillEngine(client=remote_client, database=database, settings=sync_settings)

@pytest.fixture
def reconciler(remote_client, database, sync_settings, backfill_engine):
    return ReconciliationEngine(
        client=remote_client,
        database=database,
        backfill=backfill_engine,
        settings=sync_settings
    )

@pytest.fixture
def genres(db_session):
    """Seed the admin-managed genre table"""
    seeded = [Genre(name="Action", slug="action"), Genre(name="Romance", slug="romance")]
    db_session.add_all(seeded)
    db_session.commit()
    return seeded

def manga_payload(remote_id, slug, title=None, **extra):
    """Build a remote listing item"""
    payload = {'id': remote_id, 'slug': slug, 'title': title or slug.replace('-', ' ').title()}
    payload.update(extra)
    return payload

def chapter_payload(chapter_id, number, manga_slug='manga', **extra):
    """Build a remote chapter summary"""
    payload = {
        'id': chapter_id,
        'number': number,
        'slug': f"{manga_slug}-remote-{number}",
        'created_at': {'time': 1700000000},
    }
    payload.update(extra)
    return payload

def page_of(*items, page=1, last_page=1):
    return RemotePage(items=list(items), page=page, per_page=25, last_page=last_page)
