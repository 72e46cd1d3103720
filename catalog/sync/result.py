# catalog/sync/result.py

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any

DEFAULT_MAX_FAILURES = 50


class SyncMode(str, Enum):
    MANGA_ONLY = "manga_only"
    MANGA_AND_CHAPTERS = "manga_and_chapters"
    FULL = "full"

    @property
    def includes_chapters(self) -> bool:
        return self is not SyncMode.MANGA_ONLY

    @property
    def includes_images(self) -> bool:
        return self is SyncMode.FULL

    @classmethod
    def parse(cls, value) -> "SyncMode":
        """Accept enum members, snake_case values or the camelCase names the admin UI sends"""
        if isinstance(value, cls):
            return value
        aliases = {
            'mangaonly': cls.MANGA_ONLY,
            'mangaandchapters': cls.MANGA_AND_CHAPTERS,
            'full': cls.FULL,
        }
        key = str(value).replace('_', '').replace('-', '').lower()
        if key not in aliases:
            raise ValueError(f"Unknown sync mode: {value!r}")
        return aliases[key]


def _append_capped(failures: List[Dict[str, str]], entries, limit: int) -> None:
    room = max(0, limit - len(failures))
    failures.extend(entries[:room])


@dataclass
class BackfillResult:
    """Counters for one manga's chapter backfill"""
    chapters_synced: int = 0
    chapters_updated: int = 0
    images_synced: int = 0
    skipped_images: int = 0
    errors: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)
    remote_missing: bool = False
    cancelled: bool = False
    max_failures: int = DEFAULT_MAX_FAILURES

    def record_failure(self, item: str, message: str) -> None:
        self.errors += 1
        _append_capped(self.failures, [{'item': item, 'message': message}], self.max_failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'chapters_synced': self.chapters_synced,
            'chapters_updated': self.chapters_updated,
            'images_synced': self.images_synced,
            'skipped_images': self.skipped_images,
            'errors': self.errors,
            'failures': list(self.failures),
            'remote_missing': self.remote_missing,
            'cancelled': self.cancelled,
        }


@dataclass
class SyncRunResult:
    """
    Accumulator for one reconciliation run.

    Each worker fills its own instance; instances are combined with merge()
    once the workers are done, so no counter is shared between threads.
    ``failed`` counts manga that could not be reconciled. Chapter-level
    failures, including a failed detail fetch during backfill, are counted
    in ``chapter_errors`` instead.
    """
    requested: int = 0
    total: int = 0
    inserted: int = 0
    updated: int = 0
    skipped_manual: int = 0
    failed: int = 0
    chapter_errors: int = 0
    chapters_synced: int = 0
    chapters_updated: int = 0
    images_synced: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)
    cancelled: bool = False
    has_more: bool = False
    max_failures: int = DEFAULT_MAX_FAILURES

    @property
    def synced(self) -> int:
        return self.inserted

    @property
    def errors(self) -> int:
        return self.failed

    def record_failure(self, item: str, message: str) -> None:
        self.failed += 1
        _append_capped(self.failures, [{'item': item, 'message': message}], self.max_failures)

    def record_chapter_failure(self, item: str, message: str) -> None:
        self.chapter_errors += 1
        _append_capped(self.failures, [{'item': item, 'message': message}], self.max_failures)

    def add_backfill(self, backfill: BackfillResult) -> None:
        self.chapters_synced += backfill.chapters_synced
        self.chapters_updated += backfill.chapters_updated
        self.images_synced += backfill.images_synced
        self.chapter_errors += backfill.errors
        _append_capped(self.failures, backfill.failures, self.max_failures)
        self.cancelled = self.cancelled or backfill.cancelled

    def merge(self, other: "SyncRunResult") -> "SyncRunResult":
        """Fold another accumulator's counters into this one and return self"""
        self.requested += other.requested
        self.total += other.total
        self.inserted += other.inserted
        self.updated += other.updated
        self.skipped_manual += other.skipped_manual
        self.failed += other.failed
        self.chapter_errors += other.chapter_errors
        self.chapters_synced += other.chapters_synced
        self.chapters_updated += other.chapters_updated
        self.images_synced += other.images_synced
        self.cancelled = self.cancelled or other.cancelled
        self.has_more = self.has_more or other.has_more
        _append_capped(self.failures, other.failures, self.max_failures)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            'synced': self.synced,
            'updated': self.updated,
            'errors': self.errors,
            'total': self.total,
            'requested': self.requested,
            'skipped_manual': self.skipped_manual,
            'chapter_errors': self.chapter_errors,
            'chapters_synced': self.chapters_synced,
            'chapters_updated': self.chapters_updated,
            'images_synced': self.images_synced,
            'failures': list(self.failures),
            'has_more': self.has_more,
            'cancelled': self.cancelled,
        }
