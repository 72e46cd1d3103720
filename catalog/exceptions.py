# catalog/exceptions.py
from typing import Optional


class CatalogSyncError(Exception):
    """Base class for all catalog sync errors"""
    pass


class RemoteUnavailable(CatalogSyncError):
    """The remote catalog could not be reached or answered with a failure.

    Covers network errors, timeouts, non-2xx responses and payloads whose
    ``status`` flag is false.
    """

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class RemoteNotFound(CatalogSyncError):
    """The remote catalog has no item for the requested slug"""

    def __init__(self, slug: str):
        super().__init__(f"Remote item not found: {slug}")
        self.slug = slug


class ItemReconciliationError(CatalogSyncError):
    """A single remote manga could not be reconciled into the local store"""

    def __init__(self, message: str, slug: Optional[str] = None, remote_id: Optional[int] = None):
        super().__init__(message)
        self.slug = slug
        self.remote_id = remote_id

    @property
    def item(self) -> str:
        if self.slug:
            return self.slug
        return f"remote_id={self.remote_id}" if self.remote_id is not None else "unknown"


class ChapterSyncError(CatalogSyncError):
    """A single remote chapter could not be backfilled"""

    def __init__(self, message: str, chapter_slug: Optional[str] = None, number=None):
        super().__init__(message)
        self.chapter_slug = chapter_slug
        self.number = number

    @property
    def item(self) -> str:
        if self.chapter_slug:
            return self.chapter_slug
        return f"chapter {self.number}" if self.number is not None else "unknown chapter"


class SyncCancelled(CatalogSyncError):
    """The run's cancel token was set; committed work is kept"""
    pass


class EntryNotFound(CatalogSyncError):
    """No local catalog entry exists for the given slug"""

    def __init__(self, slug: str):
        super().__init__(f"Manga with slug '{slug}' not found. Sync the manga first.")
        self.slug = slug


class ManualEntryError(CatalogSyncError):
    """The entry is manually authored and must not be touched by sync"""

    def __init__(self, slug: str):
        super().__init__(f"Manga '{slug}' is a manual entry; chapter sync only applies to mirrored manga.")
        self.slug = slug
