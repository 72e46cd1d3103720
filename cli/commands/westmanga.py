import click
from catalog.config import get_settings
from catalog.exceptions import RemoteUnavailable, EntryNotFound, ManualEntryError
from catalog.remote.westmanga_client import WestMangaClient
from catalog.sa.database import Database
from catalog.sync.chapter_backfill import ChapterBackfillEngine
from catalog.sync.reconciler import ReconciliationEngine
from catalog.sync.result import SyncMode
from ..utils import ProgressTracker, print_sync_start, print_backfill

MODE_CHOICES = [mode.value for mode in SyncMode]

@click.group()
def westmanga():
    """WestManga mirror commands"""
    pass

@westmanga.command()
@click.option('--page', default=1, type=int, help='Remote page to start from')
@click.option('--limit', default=25, type=int, help='Manga per page (clamped to 1..100)')
@click.option('--pages', default=1, type=int, help='Number of consecutive pages to sync')
@click.option('--mode', type=click.Choice(MODE_CHOICES), default=None,
              help='What to sync (default: SYNC_MODE setting)')
@click.option('--workers', default=None, type=int, help='Parallel item workers (default: SYNC_WORKERS setting)')
@click.option('--verbose/--no-verbose', default=False, help='Show detailed progress')
def sync(page: int, limit: int, pages: int, mode: str, workers: int, verbose: bool):
    """Reconcile remote WestManga pages into the local catalog

    Manual entries are never touched. Items that fail are reported and the
    run carries on; re-running is safe.

    Example:
        catalog-sync westmanga sync --pages 5  # Sync the first five pages
        catalog-sync westmanga sync --page 3 --mode manga_only  # Metadata only from page 3
    """
    settings = get_settings()
    mode = mode or settings.sync_mode
    database = Database()
    database.init_db()
    engine = ReconciliationEngine(database=database, workers=workers, settings=settings)
    print_sync_start(page, pages, limit, mode, engine.workers, verbose)

    tracker = ProgressTracker(verbose)
    try:
        engine.sync_pages(start_page=page, pages=pages, limit=limit, mode=mode, on_page=tracker.add_page)
    except RemoteUnavailable as e:
        tracker.print_results()
        click.echo("\n" + click.style(f"Error fetching page from WestManga: {str(e)}", fg='red'), err=True)
        raise SystemExit(1)

    tracker.print_results()

@westmanga.command(name='sync-chapters')
@click.argument('slug')
@click.option('--images/--no-images', default=False, help='Also fetch missing chapter images')
@click.option('--verbose/--no-verbose', default=False, help='Show failed chapters')
def sync_chapters(slug: str, images: bool, verbose: bool):
    """Backfill chapters of one mirrored manga

    SLUG is the local slug of a manga that was already synced.
    """
    database = Database()
    database.init_db()
    backfill = ChapterBackfillEngine(database=database)
    try:
        result = backfill.sync_by_slug(slug, include_images=images)
    except (EntryNotFound, ManualEntryError) as e:
        click.echo(click.style(str(e), fg='red'), err=True)
        raise SystemExit(1)
    except RemoteUnavailable as e:
        click.echo(click.style(f"Error fetching '{slug}' from WestManga: {str(e)}", fg='red'), err=True)
        raise SystemExit(1)

    if result.remote_missing:
        click.echo(click.style(f"Manga '{slug}' not found on WestManga", fg='yellow'))
        return
    print_backfill(slug, result, verbose)

@westmanga.command(name='list')
@click.option('--page', default=1, type=int, help='Page number')
@click.option('--per-page', default=25, type=int, help='Items per page')
@click.option('--search', default=None, help='Search by title')
def list_remote(page: int, per_page: int, search: str):
    """List manga on the remote catalog without syncing"""
    client = WestMangaClient()
    try:
        remote_page = client.list_page(page=page, per_page=per_page, search=search)
    except RemoteUnavailable as e:
        click.echo(click.style(f"Error: {str(e)}", fg='red'), err=True)
        raise SystemExit(1)
    finally:
        client.close()

    if not remote_page.items:
        click.echo("\nNo manga found.")
        return

    click.echo(click.style(f"\nPage {remote_page.page} of {remote_page.last_page}:", fg='blue'))
    for item in remote_page.items:
        if not isinstance(item, dict):
            continue
        click.echo(f" - {item.get('title')} " +
                  click.style(f"({item.get('slug')}, id {item.get('id')})", fg='cyan'))
