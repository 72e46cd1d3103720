import click
from typing import List, Dict, Optional
from catalog.sync.result import SyncRunResult, BackfillResult

class ProgressTracker:
    """Collects sync results across pages and prints them"""

    def __init__(self, verbose: bool = False):
        self.result = SyncRunResult()
        self.pages = 0
        self.verbose = verbose

    def add_page(self, page: int, result: SyncRunResult):
        """Fold one page's result into the totals"""
        self.pages += 1
        self.result.merge(result)
        if self.verbose:
            click.echo(click.style(f"Page {page}: ", fg='blue') +
                      click.style(f"{result.synced} new, {result.updated} updated", fg='green') +
                      (click.style(f", {result.errors} errors", fg='red') if result.errors else ""))

    def print_results(self, item_type: str = 'manga'):
        """Print the results of the operation"""
        print_counters(self.result, item_type, self.verbose, pages=self.pages)

def _print_failures(failures: List[Dict[str, str]], verbose: bool):
    if failures and verbose:
        click.echo("\n" + click.style("Failed items:", fg='yellow'))
        for failure in failures:
            click.echo(click.style(f"  {failure['item']}: ", fg='red') +
                      click.style(failure['message'], fg='yellow'))
    elif failures:
        click.echo(click.style(f"\n{len(failures)} items failed. ", fg='yellow') +
                  click.style("Use --verbose to see details.", fg='blue'))

def print_counters(result: SyncRunResult, item_type: str = 'manga',
                   verbose: bool = False, pages: Optional[int] = None) -> None:
    """Print the counters of a reconciliation run"""
    click.echo("\n" + click.style("Results:", fg='blue'))
    if pages is not None:
        click.echo(click.style("Pages: ", fg='blue') + click.style(str(pages), fg='cyan'))
    click.echo(click.style("Seen: ", fg='blue') +
              click.style(str(result.total), fg='cyan') +
              click.style(f" {item_type}", fg='blue'))
    click.echo(click.style("Inserted: ", fg='blue') + click.style(str(result.synced), fg='green'))
    click.echo(click.style("Updated: ", fg='blue') + click.style(str(result.updated), fg='green'))
    if result.skipped_manual:
        click.echo(click.style("Skipped (manual slug): ", fg='blue') +
                  click.style(str(result.skipped_manual), fg='yellow'))
    if result.chapters_synced or result.chapters_updated or result.chapter_errors:
        click.echo(click.style("Chapters: ", fg='blue') +
                  click.style(f"{result.chapters_synced} new, {result.chapters_updated} updated", fg='green') +
                  click.style(f", {result.images_synced} images", fg='cyan'))
    errors_color = 'red' if result.errors else 'green'
    click.echo(click.style("Errors: ", fg='blue') + click.style(str(result.errors), fg=errors_color))
    if result.chapter_errors:
        click.echo(click.style("Chapter errors: ", fg='blue') + click.style(str(result.chapter_errors), fg='red'))
    if result.cancelled:
        click.echo(click.style("Run was cancelled before finishing", fg='yellow'))
    _print_failures(result.failures, verbose)

def print_backfill(slug: str, result: BackfillResult, verbose: bool = False) -> None:
    """Print the counters of a single-manga chapter backfill"""
    click.echo("\n" + click.style(f"Chapters for {slug}:", fg='blue'))
    click.echo(click.style("New: ", fg='blue') + click.style(str(result.chapters_synced), fg='green'))
    click.echo(click.style("Updated: ", fg='blue') + click.style(str(result.chapters_updated), fg='green'))
    click.echo(click.style("Images: ", fg='blue') + click.style(str(result.images_synced), fg='cyan'))
    errors_color = 'red' if result.errors else 'green'
    click.echo(click.style("Errors: ", fg='blue') + click.style(str(result.errors), fg=errors_color))
    _print_failures(result.failures, verbose)

def print_sync_start(page: int, pages: int, limit: int, mode: str, workers: int, verbose: bool = False) -> None:
    """Print sync operation start information"""
    if not verbose:
        return
    click.echo(click.style("\nSyncing from page ", fg='blue') +
              click.style(str(page), fg='cyan') +
              click.style(f" ({pages} page{'s' if pages != 1 else ''} of up to ", fg='blue') +
              click.style(str(limit), fg='cyan') +
              click.style(" manga)", fg='blue'))
    click.echo(click.style("Mode: ", fg='blue') + click.style(mode, fg='cyan') +
              click.style(", workers: ", fg='blue') + click.style(str(workers), fg='cyan'))
