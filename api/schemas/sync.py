# api/schemas/sync.py
from typing import Optional, List, Any
from pydantic import BaseModel

class SyncRequest(BaseModel):
    page: int = 1
    limit: int = 25

class ChapterSyncRequest(BaseModel):
    include_images: bool = False

class SyncFailure(BaseModel):
    item: str
    message: str

class SyncResponse(BaseModel):
    message: str
    synced: int
    updated: int
    errors: int
    total: int
    skipped_manual: int = 0
    chapter_errors: int = 0
    chapters_synced: int = 0
    chapters_updated: int = 0
    images_synced: int = 0
    failures: List[SyncFailure] = []
    has_more: bool = False
    cancelled: bool = False

class ChapterSyncResponse(BaseModel):
    message: str
    chapters_synced: int
    chapters_updated: int
    images_synced: int
    skipped_images: int = 0
    errors: int
    failures: List[SyncFailure] = []
    cancelled: bool = False

class RemoteList(BaseModel):
    items: List[Any]
    page: int
    per_page: int
    last_page: int
    total: Optional[int] = None
    has_more: bool
