from .base import Base, TimestampMixin, LastSyncedMixin
from .genre import Genre
from .manga import Manga, MangaGenre, MangaStatus
from .chapter import Chapter, ChapterImage

__all__ = [
    'Base',
    'TimestampMixin',
    'LastSyncedMixin',
    'Manga',
    'MangaGenre',
    'MangaStatus',
    'Genre',
    'Chapter',
    'ChapterImage'
]
