from .database import Database
from .models import (
    Base, Manga, MangaGenre, MangaStatus, Genre,
    Chapter, ChapterImage
)

__all__ = [
    'Database',
    'Base',
    'Manga',
    'MangaGenre',
    'MangaStatus',
    'Genre',
    'Chapter',
    'ChapterImage'
]
