from .manga import MangaRepository
from .genre import GenreRepository
from .chapter import ChapterRepository

__all__ = ['MangaRepository', 'GenreRepository', 'ChapterRepository']
