# tests/test_sa/test_repositories/test_manga_repository.py

import pytest
from sqlalchemy.exc import IntegrityError
from catalog.sa.repositories import MangaRepository, GenreRepository
from catalog.sa.models import Manga

@pytest.fixture
def manga_repo(db_session):
    """Fixture to create a MangaRepository instance."""
    return MangaRepository(db_session)

def mirrored_fields(remote_id, slug, title="Remote Title", **extra):
    fields = {
        'remote_id': remote_id,
        'slug': slug,
        'title': title,
        'author': 'Unknown',
        'content_type': 'comic',
        'color': True,
        'hot': False,
        'is_project': False,
        'is_safe': True,
        'rating': 0,
        'bookmark_count': 0,
        'views': 0,
        'status': 'ongoing',
    }
    fields.update(extra)
    return fields

def test_upsert_mirrored_inserts_new_entry(manga_repo, db_session):
    """Test that an unknown remote id creates a mirrored row."""
    manga, created = manga_repo.upsert_mirrored(mirrored_fields(101, "a"))
    db_session.commit()

    assert created is True
    assert manga.remote_id == 101
    assert manga.is_manual is False
    assert manga.last_synced_at is not None
    assert manga_repo.count_manga() == 1

def test_upsert_mirrored_overwrites_existing_entry(manga_repo, db_session):
    """Test that a known remote id is overwritten in place."""
    first, _ = manga_repo.upsert_mirrored(mirrored_fields(202, "b", title="Stale", synopsis="old"))
    db_session.commit()

    second, created = manga_repo.upsert_mirrored(mirrored_fields(202, "b", title="Fresh"))
    db_session.commit()

    assert created is False
    assert second.id == first.id
    assert second.title == "Fresh"
    # Full overwrite: a field the remote no longer sends is cleared
    assert second.synopsis is None
    assert manga_repo.count_manga() == 1

def test_upsert_mirrored_requires_remote_id(manga_repo):
    """Test that mirrored rows cannot be written without a remote id."""
    with pytest.raises(ValueError):
        manga_repo.upsert_mirrored(mirrored_fields(None, "x"))

def test_upsert_mirrored_slug_clash_raises(manga_repo, db_session):
    """Test that a slug owned by another row is a constraint error, not an overwrite."""
    manual = manga_repo.create_manual("Local", "shared-slug", author="Me")
    db_session.commit()

    with pytest.raises(IntegrityError):
        manga_repo.upsert_mirrored(mirrored_fields(303, "shared-slug"))
    db_session.rollback()

    kept = manga_repo.get_by_slug("shared-slug")
    assert kept.id == manual.id
    assert kept.is_manual is True
    assert kept.title == "Local"

def test_create_manual(manga_repo, db_session):
    """Test creating a locally authored entry."""
    manga = manga_repo.create_manual("My Manga", "my-manga", synopsis="Written here")
    db_session.commit()

    assert manga.id is not None
    assert manga.is_manual is True
    assert manga.remote_id is None

def test_create_manual_rejects_remote_id(manga_repo):
    """Test that a manual entry cannot carry a remote id."""
    with pytest.raises(ValueError):
        manga_repo.create_manual("Nope", "nope", remote_id=5)

def test_provenance_constraint(db_session):
    """Test that the database rejects a manual row with a remote id."""
    db_session.add(Manga(title="Bad", slug="bad", is_manual=True, remote_id=9))
    with pytest.raises(IntegrityError):
        db_session.flush()
    db_session.rollback()

def test_get_by_remote_id_ignores_manual_entries(manga_repo, db_session):
    """Test that manual entries are invisible to remote id lookups."""
    manga_repo.create_manual("Local", "local")
    db_session.commit()

    assert manga_repo.get_by_remote_id(1) is None

def test_search_manga_by_provenance(manga_repo, db_session):
    """Test filtering search results by provenance."""
    manga_repo.create_manual("Local Hero", "local-hero")
    manga_repo.upsert_mirrored(mirrored_fields(1, "remote-hero", title="Remote Hero"))
    db_session.commit()

    assert [m.slug for m in manga_repo.search_manga("hero", is_manual=True)] == ["local-hero"]
    assert [m.slug for m in manga_repo.search_manga("hero", is_manual=False)] == ["remote-hero"]
    assert len(manga_repo.search_manga("hero")) == 2
    assert manga_repo.count_manga(is_manual=False) == 1

def test_get_with_genres(manga_repo, db_session, genres):
    """Test loading a manga together with its linked genres."""
    manga, _ = manga_repo.upsert_mirrored(mirrored_fields(1, "linked"))
    GenreRepository(db_session).link_by_names(manga.id, ["action", "Romance"])
    db_session.commit()

    loaded = manga_repo.get_with_genres("linked")

    assert sorted(link.genre.name for link in loaded.manga_genres) == ["Action", "Romance"]
    assert manga_repo.get_with_genres("missing") is None
