# tests/test_sync/test_reconciler.py

import threading
import pytest
from unittest.mock import patch
from sqlalchemy.exc import OperationalError
from catalog.exceptions import RemoteUnavailable
from catalog.models.remote import RemoteChapterDetail, RemoteMangaDetail
from catalog.sa.models import Chapter, ChapterImage, Manga, MangaGenre
from catalog.sa.repositories import GenreRepository, MangaRepository
from catalog.sync.reconciler import ReconciliationEngine
from catalog.sync.result import SyncMode, SyncRunResult
from conftest import manga_payload, chapter_payload, page_of

def manga_rows(session):
    rows = session.query(Manga).order_by(Manga.slug).all()
    return [
        {c.name: getattr(m, c.name) for c in Manga.__table__.columns
         if c.name not in ('created_at', 'updated_at', 'last_synced_at')}
        for m in rows
    ]

def snapshot(session):
    session.expire_all()
    return {
        'manga': manga_rows(session),
        'links': sorted((l.manga_id, l.genre_id) for l in session.query(MangaGenre).all()),
        'chapters': sorted((c.manga_id, c.chapter_number, c.slug) for c in session.query(Chapter).all()),
        'images': sorted((i.chapter_id, i.page_number, i.image_path) for i in session.query(ChapterImage).all()),
    }

def test_end_to_end_insert_and_update(reconciler, remote_client, db_session):
    """Test one new and one stale mirrored item in a manga-only run."""
    MangaRepository(db_session).upsert_mirrored(
        dict(manga_payload(202, "b"), remote_id=202, title="Stale Title", author="Unknown",
             content_type="comic", color=True, hot=False, is_project=False, is_safe=True,
             rating=0, bookmark_count=0, views=0, status="ongoing")
    )
    db_session.commit()
    remote_client.list_page.return_value = page_of(
        manga_payload(101, "a", title="Alpha"),
        manga_payload(202, "b", title="Fresh Title"),
    )

    result = reconciler.sync_page(1, 25, SyncMode.MANGA_ONLY)

    assert result.to_dict()['synced'] == 1
    assert result.to_dict()['updated'] == 1
    assert result.to_dict()['errors'] == 0
    assert result.to_dict()['total'] == 2

    db_session.expire_all()
    repo = MangaRepository(db_session)
    a = repo.get_by_slug("a")
    assert a.remote_id == 101
    assert a.is_manual is False
    assert repo.get_by_slug("b").title == "Fresh Title"
    remote_client.list_page.assert_called_once_with(page=1, per_page=25)
    remote_client.get_detail_by_slug.assert_not_called()

def test_sync_page_is_idempotent(reconciler, remote_client, genres, db_session):
    """Test that a second full run over unchanged data changes nothing."""
    remote_client.list_page.return_value = page_of(
        manga_payload(1, "one", genres=[{'name': 'action'}, {'name': 'ROMANCE'}]),
        manga_payload(2, "two", genres=[{'name': 'Action'}]),
    )
    details = {
        "one": RemoteMangaDetail.model_validate(manga_payload(
            1, "one", genres=[{'name': 'Action'}],
            chapters=[chapter_payload(11, "1", "one"), chapter_payload(12, "2", "one")]
        )),
        "two": RemoteMangaDetail.model_validate(manga_payload(2, "two")),
    }
    remote_client.get_detail_by_slug.side_effect = lambda slug: details.get(slug)
    remote_client.get_chapter_by_slug.side_effect = lambda slug: RemoteChapterDetail(
        slug=slug, images=[f"https://img/{slug}/1.jpg", f"https://img/{slug}/2.jpg"]
    )

    first = reconciler.sync_page(1, 25, SyncMode.FULL)
    state_after_first = snapshot(db_session)
    second = reconciler.sync_page(1, 25, SyncMode.FULL)

    assert (first.inserted, first.updated, first.errors) == (2, 0, 0)
    assert (first.chapters_synced, first.images_synced) == (2, 4)
    assert (second.inserted, second.updated, second.errors) == (0, 2, 0)
    assert (second.chapters_synced, second.chapters_updated, second.images_synced) == (0, 2, 0)
    assert snapshot(db_session) == state_after_first
    assert len(state_after_first['links']) == 3

def test_manual_entries_are_never_touched(reconciler, remote_client, db_session):
    """Test that a sync run leaves manual entries exactly as they were."""
    manual = MangaRepository(db_session).create_manual(
        "Local Story", "local-story", author="Local Author", synopsis="Hand written", rating=9.1
    )
    db_session.commit()
    before = manga_rows(db_session)

    remote_client.list_page.return_value = page_of(
        manga_payload(10, "remote-story"),
        # Same slug as the manual entry
        manga_payload(11, "local-story", title="Remote Takeover", author="Someone"),
    )

    result = reconciler.sync_page(1, 25, SyncMode.MANGA_ONLY)

    assert result.inserted == 1
    assert result.skipped_manual == 1
    assert result.errors == 0

    db_session.expire_all()
    after = [row for row in manga_rows(db_session) if row['id'] == manual.id]
    assert after == [row for row in before if row['id'] == manual.id]
    assert MangaRepository(db_session).get_by_remote_id(11) is None

def test_failing_item_does_not_abort_the_page(reconciler, remote_client, db_session):
    """Test that a DB error on item #3 of 5 is counted and the rest are persisted."""
    remote_client.list_page.return_value = page_of(
        *[manga_payload(i, f"manga-{i}") for i in range(1, 6)]
    )
    real_upsert = MangaRepository.upsert_mirrored

    def flaky_upsert(self, fields):
        if fields['remote_id'] == 3:
            raise OperationalError("INSERT INTO manga", {}, Exception("disk I/O error"))
        return real_upsert(self, fields)

    with patch.object(MangaRepository, 'upsert_mirrored', flaky_upsert):
        result = reconciler.sync_page(1, 25, SyncMode.MANGA_ONLY)

    assert result.errors == 1
    assert result.synced + result.updated == 4
    assert result.total == 5
    assert result.failures[0]['item'] == "manga-3"
    assert "disk I/O error" in result.failures[0]['message']

    repo = MangaRepository(db_session)
    assert sorted(m.remote_id for m in repo.search_manga(limit=10)) == [1, 2, 4, 5]

def test_unknown_genre_is_skipped_not_failed(reconciler, remote_client, db_session):
    remote_client.list_page.return_value = page_of(
        manga_payload(1, "lonely", genres=[{'name': 'Isekai'}])
    )

    result = reconciler.sync_page(1, 25, SyncMode.MANGA_ONLY)

    assert result.synced == 1
    assert result.errors == 0
    genre_repo = GenreRepository(db_session)
    assert genre_repo.count_links() == 0
    assert genre_repo.get_by_name_ci("Isekai") is None

def test_malformed_item_is_counted(reconciler, remote_client, db_session):
    remote_client.list_page.return_value = page_of(
        manga_payload(1, "good"),
        {'slug': 'no-id-or-title'},
    )

    result = reconciler.sync_page(1, 25, SyncMode.MANGA_ONLY)

    assert result.synced == 1
    assert result.errors == 1
    assert result.failures[0]['item'] == "no-id-or-title"

def test_page_fetch_failure_propagates_after_retries(remote_client, database, backfill_engine, sync_settings):
    engine = ReconciliationEngine(
        client=remote_client, database=database, backfill=backfill_engine,
        retries=2, retry_delay=0, settings=sync_settings
    )
    remote_client.list_page.side_effect = RemoteUnavailable("down")

    with pytest.raises(RemoteUnavailable):
        engine.sync_page(1, 25, SyncMode.FULL)
    assert remote_client.list_page.call_count == 3

def test_manga_and_chapters_mode_skips_images(reconciler, remote_client):
    remote_client.list_page.return_value = page_of(manga_payload(1, "one"))
    remote_client.get_detail_by_slug.return_value = RemoteMangaDetail.model_validate(
        manga_payload(1, "one", chapters=[chapter_payload(11, "1", "one")])
    )

    result = reconciler.sync_page(1, 25, "mangaAndChapters")

    assert result.chapters_synced == 1
    assert result.images_synced == 0
    remote_client.get_chapter_by_slug.assert_not_called()

def test_detail_failure_counts_as_chapter_error(reconciler, remote_client):
    """Test that a failed backfill keeps the manga counted as reconciled."""
    remote_client.list_page.return_value = page_of(manga_payload(1, "one"))
    remote_client.get_detail_by_slug.side_effect = RemoteUnavailable("detail down")

    result = reconciler.sync_page(1, 25, SyncMode.MANGA_AND_CHAPTERS)

    assert result.synced == 1
    assert result.errors == 0
    assert result.chapter_errors == 1
    assert result.failures == [{'item': 'one', 'message': 'detail down'}]

def test_cancelled_run_starts_no_items(reconciler, remote_client, db_session):
    remote_client.list_page.return_value = page_of(manga_payload(1, "one"), manga_payload(2, "two"))
    cancel_event = threading.Event()
    cancel_event.set()

    result = reconciler.sync_page(1, 25, SyncMode.FULL, cancel_event=cancel_event)

    assert result.cancelled is True
    assert result.total == 2
    assert result.synced == 0
    assert MangaRepository(db_session).count_manga() == 0

def test_cancel_keeps_committed_items(reconciler, remote_client, db_session):
    """Test that items committed before cancellation stay committed."""
    remote_client.list_page.return_value = page_of(manga_payload(1, "one"), manga_payload(2, "two"))
    cancel_event = threading.Event()
    real_sync_item = reconciler._sync_item

    def sync_then_cancel(item, mode, event):
        result = real_sync_item(item, mode, event)
        cancel_event.set()
        return result

    with patch.object(reconciler, '_sync_item', side_effect=sync_then_cancel):
        result = reconciler.sync_page(1, 25, SyncMode.MANGA_ONLY, cancel_event=cancel_event)

    assert result.cancelled is True
    assert result.synced == 1
    assert MangaRepository(db_session).get_by_remote_id(1) is not None
    assert MangaRepository(db_session).get_by_remote_id(2) is None

def test_worker_pool_merges_per_item_results(remote_client, database, backfill_engine, sync_settings):
    engine = ReconciliationEngine(
        client=remote_client, database=database, backfill=backfill_engine,
        workers=3, settings=sync_settings
    )
    remote_client.list_page.return_value = page_of(*[manga_payload(i, f"m-{i}") for i in range(1, 7)])

    def fake_item(item, mode, cancel_event):
        result = SyncRunResult()
        if item['id'] % 2:
            result.inserted = 1
        else:
            result.record_failure(item['slug'], "boom")
        return result

    with patch.object(engine, '_sync_item', side_effect=fake_item):
        result = engine.sync_page(1, 25, SyncMode.MANGA_ONLY)

    assert result.synced == 3
    assert result.errors == 3
    assert [f['item'] for f in result.failures] == ["m-2", "m-4", "m-6"]

def test_sync_pages_stops_at_last_page(reconciler, remote_client):
    remote_client.list_page.side_effect = [
        page_of(manga_payload(1, "one"), page=1, last_page=2),
        page_of(manga_payload(2, "two"), page=2, last_page=2),
    ]
    seen = []

    result = reconciler.sync_pages(start_page=1, pages=5, limit=25, mode=SyncMode.MANGA_ONLY,
                                   on_page=lambda page, r: seen.append((page, r.synced)))

    assert seen == [(1, 1), (2, 1)]
    assert result.synced == 2
    assert result.total == 2
    assert result.has_more is False
    assert remote_client.list_page.call_count == 2

def test_non_object_entries_are_counted_as_failures(reconciler, remote_client):
    """Test that null or string entries in a page count towards total and errors."""
    remote_client.list_page.return_value = page_of(manga_payload(1, "good"), None, "junk")

    result = reconciler.sync_page(1, 25, SyncMode.MANGA_ONLY)

    assert result.total == 3
    assert result.synced == 1
    assert result.errors == 2
    assert [f['item'] for f in result.failures] == ["unknown", "unknown"]

def test_mirror_renamed_to_manual_slug_is_skipped(reconciler, remote_client, db_session):
    """Test that an existing mirror moving onto a manual entry's slug is skipped."""
    repo = MangaRepository(db_session)
    manual = repo.create_manual("Local Story", "local-story")
    db_session.commit()
    remote_client.list_page.return_value = page_of(manga_payload(5, "remote-story", title="Remote Story"))
    reconciler.sync_page(1, 25, SyncMode.MANGA_ONLY)

    remote_client.list_page.return_value = page_of(manga_payload(5, "local-story", title="Renamed"))
    result = reconciler.sync_page(1, 25, SyncMode.MANGA_ONLY)

    assert result.skipped_manual == 1
    assert result.errors == 0
    assert result.updated == 0
    db_session.expire_all()
    mirror = repo.get_by_remote_id(5)
    assert mirror.slug == "remote-story"
    assert mirror.title == "Remote Story"
    assert repo.get_by_id(manual.id).title == "Local Story"

def test_on_item_reports_progress_in_page_order(reconciler, remote_client):
    remote_client.list_page.return_value = page_of(
        manga_payload(1, "one", title="One"), {'slug': 'broken'}, manga_payload(3, "three", title="Three")
    )
    progress = []

    reconciler.sync_page(
        1, 25, SyncMode.MANGA_ONLY,
        on_item=lambda processed, total, label, item_result: progress.append(
            (processed, total, label, item_result.errors)
        )
    )

    assert progress == [(1, 3, "One", 0), (2, 3, "broken", 1), (3, 3, "Three", 0)]

def test_on_item_with_worker_pool(remote_client, database, backfill_engine, sync_settings):
    engine = ReconciliationEngine(
        client=remote_client, database=database, backfill=backfill_engine,
        workers=2, settings=sync_settings
    )
    remote_client.list_page.return_value = page_of(*[manga_payload(i, f"m-{i}") for i in range(1, 5)])
    processed = []

    engine.sync_page(1, 25, SyncMode.MANGA_ONLY, on_item=lambda n, total, label, r: processed.append(n))

    assert processed == [1, 2, 3, 4]
