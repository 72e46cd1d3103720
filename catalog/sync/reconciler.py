# catalog/sync/reconciler.py

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Any, Union, Callable

from catalog.config import Settings, get_settings
from catalog.exceptions import ItemReconciliationError
from catalog.models.remote import RemoteManga
from catalog.remote.westmanga_client import WestMangaClient
from catalog.resolvers.entry_transformer import transform_manga
from catalog.sa.database import Database, get_database
from catalog.sa.repositories import GenreRepository, MangaRepository
from catalog.utils.log import get_logger
from catalog.utils.retry import call_with_retries
from .chapter_backfill import ChapterBackfillEngine
from .result import SyncMode, SyncRunResult

# Called as on_item(processed, total, label, item_result) after each item
ItemCallback = Callable[[int, int, str, SyncRunResult], None]


def _item_ref(item):
    if isinstance(item, dict):
        return item.get('slug'), item.get('id')
    return None, None


def _item_label(item) -> str:
    if isinstance(item, dict):
        return str(item.get('title') or item.get('slug') or item.get('id') or 'unknown')
    return repr(item)


class ReconciliationEngine:
    """Reconciles pages of the remote catalog into the local store.

    Remote items are matched to local rows strictly by remote_id, so manual
    entries are never looked at, let alone written. Every item is
    reconciled in its own transaction; a failing item is counted and the
    run moves on. Nothing is cached between runs.
    """

    def __init__(
        self,
        client: Optional[WestMangaClient] = None,
        database: Optional[Database] = None,
        backfill: Optional[ChapterBackfillEngine] = None,
        workers: Optional[int] = None,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        settings: Optional[Settings] = None
    ):
        settings = settings or get_settings()
        self.client = client or WestMangaClient(settings=settings)
        self.database = database or get_database()
        self.workers = max(1, workers or settings.sync_workers)
        self.retries = settings.sync_retries if retries is None else retries
        self.retry_delay = settings.sync_retry_delay if retry_delay is None else retry_delay
        self.max_failures = settings.sync_max_failures
        self.backfill = backfill or ChapterBackfillEngine(
            client=self.client,
            database=self.database,
            retries=self.retries,
            retry_delay=self.retry_delay,
            settings=settings
        )
        self.logger = get_logger(self.__class__.__name__, settings.log_level)

    def sync_page(
        self,
        page: int = 1,
        limit: int = 25,
        mode: Union[SyncMode, str] = SyncMode.FULL,
        cancel_event: Optional[threading.Event] = None,
        on_item: Optional[ItemCallback] = None,
        **filters
    ) -> SyncRunResult:
        """
        Reconcile one page of the remote listing.

        Args:
            page: Remote page number
            limit: Items per page
            mode: manga_only, manga_and_chapters or full
            cancel_event: When set, no further items are started
            on_item: Called with (processed, total, label, item_result) after
                each item, in page order
            filters: Listing filters passed through to the client

        Returns:
            SyncRunResult for the page

        Raises:
            RemoteUnavailable: If the page itself could not be fetched
        """
        mode = SyncMode.parse(mode)
        remote_page = call_with_retries(
            self.client.list_page,
            page=page,
            per_page=limit,
            retries=self.retries,
            delay=self.retry_delay,
            logger=self.logger,
            **filters
        )

        result = SyncRunResult(
            requested=remote_page.per_page,
            total=len(remote_page.items),
            has_more=remote_page.has_more,
            max_failures=self.max_failures
        )
        self.logger.info(
            f"Reconciling page {remote_page.page}/{remote_page.last_page} "
            f"({result.total} items, mode={mode.value}, workers={self.workers})"
        )

        processed = 0
        if self.workers == 1:
            for item in remote_page.items:
                if cancel_event is not None and cancel_event.is_set():
                    result.cancelled = True
                    break
                item_result = self._sync_item(item, mode, cancel_event)
                result.merge(item_result)
                processed += 1
                if on_item:
                    on_item(processed, result.total, _item_label(item), item_result)
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                futures = [
                    (item, executor.submit(self._sync_item, item, mode, cancel_event))
                    for item in remote_page.items
                ]
                for item, future in futures:
                    item_result = future.result()
                    result.merge(item_result)
                    processed += 1
                    if on_item:
                        on_item(processed, result.total, _item_label(item), item_result)

        self.logger.info(
            f"Page {remote_page.page} done: {result.synced} inserted, {result.updated} updated, "
            f"{result.skipped_manual} skipped, {result.errors} errors"
            + (" (cancelled)" if result.cancelled else "")
        )
        return result

    def sync_pages(
        self,
        start_page: int = 1,
        pages: int = 1,
        limit: int = 25,
        mode: Union[SyncMode, str] = SyncMode.FULL,
        cancel_event: Optional[threading.Event] = None,
        on_page: Optional[Callable[[int, SyncRunResult], None]] = None,
        **filters
    ) -> SyncRunResult:
        """
        Reconcile consecutive pages, stopping early when the remote runs out.

        A failed fetch of any page propagates; pages already reconciled stay
        committed, so the run can resume from the failed page.

        Args:
            on_page: Called with (page, result) after each page
        """
        total = SyncRunResult(max_failures=self.max_failures)
        page = max(1, start_page)
        for _ in range(max(1, pages)):
            result = self.sync_page(page, limit, mode, cancel_event=cancel_event, **filters)
            total.merge(result)
            total.has_more = result.has_more
            if on_page:
                on_page(page, result)
            if result.cancelled or not result.has_more:
                break
            page += 1
        return total

    def _sync_item(
        self,
        item: Any,
        mode: SyncMode,
        cancel_event: Optional[threading.Event]
    ) -> SyncRunResult:
        """Reconcile one raw remote entry into a fresh accumulator.

        Entries that are not payload objects fail validation and are counted
        like any other malformed item.
        """
        result = SyncRunResult(max_failures=self.max_failures)
        if cancel_event is not None and cancel_event.is_set():
            result.cancelled = True
            return result

        slug, remote_id = _item_ref(item)
        try:
            manga, created, skipped = self._upsert(item)
        except Exception as e:
            error = ItemReconciliationError(str(e), slug=slug, remote_id=remote_id)
            self.logger.error(f"Failed to reconcile {error.item}: {e}")
            result.record_failure(error.item, str(error))
            return result

        if skipped:
            result.skipped_manual += 1
            return result
        if created:
            result.inserted += 1
        else:
            result.updated += 1

        if mode.includes_chapters:
            try:
                backfill = self.backfill.sync_one(
                    manga,
                    include_images=mode.includes_images,
                    cancel_event=cancel_event
                )
            except Exception as e:
                self.logger.error(f"Failed to fetch chapters for '{manga.slug}': {e}")
                result.record_chapter_failure(manga.slug, str(e))
            else:
                result.add_backfill(backfill)
        return result

    def _upsert(self, item: Any):
        """
        Insert or overwrite the local mirror of one remote item and link its genres.

        Returns:
            Tuple of (manga, created, skipped). skipped is True when the slug
            belongs to a manual entry, whether the remote item is new or
            already mirrored under another slug; the manual entry and the
            existing mirror are both left untouched.
        """
        remote = RemoteManga.model_validate(item)
        fields = transform_manga(remote)

        with self.database.get_db() as session:
            manga_repo = MangaRepository(session)
            existing = manga_repo.get_by_remote_id(remote.id)
            clash = manga_repo.get_by_slug(remote.slug)
            if clash is not None and clash.is_manual and (existing is None or clash.id != existing.id):
                self.logger.warning(
                    f"Remote manga {remote.id} uses slug '{remote.slug}' of a manual entry, skipping"
                )
                return existing or clash, False, True

            manga, created = manga_repo.upsert_mirrored(fields)
            linked = GenreRepository(session).link_by_names(manga.id, remote.genre_names)
            self.logger.debug(
                f"{'Inserted' if created else 'Updated'} '{manga.slug}' (remote {remote.id}), {linked} new genre links"
            )
        return manga, created, False
