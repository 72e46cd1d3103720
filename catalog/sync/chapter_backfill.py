# catalog/sync/chapter_backfill.py

import threading
from typing import Optional

from catalog.config import Settings, get_settings
from catalog.exceptions import (
    ChapterSyncError, EntryNotFound, ManualEntryError, SyncCancelled
)
from catalog.models.remote import RemoteChapter
from catalog.remote.westmanga_client import WestMangaClient
from catalog.resolvers.entry_transformer import transform_chapter
from catalog.sa.database import Database, get_database
from catalog.sa.models import Manga
from catalog.sa.repositories import ChapterRepository, GenreRepository, MangaRepository
from catalog.utils.log import get_logger
from catalog.utils.retry import call_with_retries
from .result import BackfillResult


def _chapter_ref(raw_chapter):
    if isinstance(raw_chapter, dict):
        return raw_chapter.get('slug'), raw_chapter.get('number')
    return None, None


class ChapterBackfillEngine:
    """Fills in chapters and chapter images for mirrored manga.

    Chapters are matched by remote chapter ID, then by chapter number, so
    re-running after a partial failure only fills the gap. Each chapter is
    written in its own transaction.
    """

    def __init__(
        self,
        client: Optional[WestMangaClient] = None,
        database: Optional[Database] = None,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        settings: Optional[Settings] = None
    ):
        settings = settings or get_settings()
        self.client = client or WestMangaClient(settings=settings)
        self.database = database or get_database()
        self.retries = settings.sync_retries if retries is None else retries
        self.retry_delay = settings.sync_retry_delay if retry_delay is None else retry_delay
        self.max_failures = settings.sync_max_failures
        self.logger = get_logger(self.__class__.__name__, settings.log_level)

    def _fetch(self, func, slug):
        return call_with_retries(
            func, slug,
            retries=self.retries,
            delay=self.retry_delay,
            logger=self.logger
        )

    def _check_cancelled(self, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise SyncCancelled("Chapter backfill cancelled")

    def sync_one(
        self,
        entry: Manga,
        include_images: bool = False,
        cancel_event: Optional[threading.Event] = None
    ) -> BackfillResult:
        """
        Bring one mirrored manga's chapters up to date.

        Args:
            entry: A mirrored Manga row; only its id and slug are read
            include_images: Also fetch images for chapters that lack them
            cancel_event: When set, stop before the next chapter

        Returns:
            BackfillResult with counters. ``remote_missing`` is set when
            the remote has no detail for the slug.

        Raises:
            ManualEntryError: If the entry is manually authored
            RemoteUnavailable: If the detail fetch failed after retries
        """
        if entry.is_manual:
            raise ManualEntryError(entry.slug)

        result = BackfillResult(max_failures=self.max_failures)
        manga_id, manga_slug = entry.id, entry.slug

        try:
            self._check_cancelled(cancel_event)
        except SyncCancelled:
            result.cancelled = True
            return result

        detail = self._fetch(self.client.get_detail_by_slug, manga_slug)
        if detail is None:
            result.remote_missing = True
            return result

        with self.database.get_db() as session:
            GenreRepository(session).link_by_names(manga_id, detail.genre_names)

        for raw_chapter in detail.chapters:
            try:
                self._check_cancelled(cancel_event)
            except SyncCancelled:
                self.logger.info(f"Backfill of '{manga_slug}' cancelled")
                result.cancelled = True
                break

            try:
                remote_chapter = RemoteChapter.model_validate(raw_chapter)
                self._sync_chapter(manga_id, manga_slug, remote_chapter, include_images, result)
            except Exception as e:
                chapter_slug, number = _chapter_ref(raw_chapter)
                error = ChapterSyncError(str(e), chapter_slug=chapter_slug, number=number)
                self.logger.error(f"Failed to sync chapter {error.item} of '{manga_slug}': {e}")
                result.record_failure(error.item, str(error))

        self.logger.info(
            f"Backfilled '{manga_slug}': {result.chapters_synced} new, "
            f"{result.chapters_updated} updated, {result.images_synced} images, {result.errors} errors"
        )
        return result

    def _sync_chapter(
        self,
        manga_id: int,
        manga_slug: str,
        remote_chapter: RemoteChapter,
        include_images: bool,
        result: BackfillResult
    ) -> None:
        chapter_data = transform_chapter(remote_chapter, manga_slug)

        with self.database.get_db() as session:
            repo = ChapterRepository(session)
            chapter = repo.find_for_remote(
                manga_id,
                chapter_data['remote_chapter_id'],
                chapter_data['chapter_number']
            )
            if chapter is None:
                chapter = repo.create(manga_id, chapter_data)
                created = True
            else:
                repo.update_metadata(chapter, chapter_data)
                created = False
            chapter_id = chapter.id
            image_count = repo.count_images(chapter_id)

        if created:
            result.chapters_synced += 1
        else:
            result.chapters_updated += 1

        if not include_images:
            return
        if not self._needs_images(image_count, remote_chapter.page_count):
            result.skipped_images += 1
            return

        detail = self._fetch(self.client.get_chapter_by_slug, remote_chapter.slug)
        if detail is None or not detail.images:
            self.logger.warning(f"No images returned for chapter '{remote_chapter.slug}'")
            return

        with self.database.get_db() as session:
            repo = ChapterRepository(session)
            for page_number, image_path in enumerate(detail.images, start=1):
                if repo.upsert_image(chapter_id, page_number, image_path):
                    result.images_synced += 1

    @staticmethod
    def _needs_images(local_count: int, remote_count: Optional[int]) -> bool:
        # Without a remote page count any stored image marks the chapter complete
        if remote_count is None:
            return local_count == 0
        return local_count < remote_count

    def sync_by_slug(
        self,
        slug: str,
        include_images: bool = False,
        cancel_event: Optional[threading.Event] = None
    ) -> BackfillResult:
        """
        Backfill one manga identified by its local slug.

        Raises:
            EntryNotFound: If no local manga has the slug
            ManualEntryError: If the manga is manually authored
            RemoteUnavailable: If the detail fetch failed after retries
        """
        with self.database.get_db() as session:
            entry = MangaRepository(session).get_by_slug(slug)
            if entry is None:
                raise EntryNotFound(slug)
            if entry.is_manual:
                raise ManualEntryError(slug)
        return self.sync_one(entry, include_images=include_images, cancel_event=cancel_event)
