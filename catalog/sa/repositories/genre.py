# catalog/sa/repositories/genre.py

from typing import Iterable, List, Optional
from sqlalchemy import func, desc
from catalog.utils.log import get_logger
from ..models import Genre, MangaGenre
from .base import BaseRepository

class GenreRepository(BaseRepository):
    """Repository for managing Genre entities and their manga links.

    Genres are admin-managed. Linking only ever matches existing genres;
    nothing in this repository creates a genre as a side effect of linking.
    """

    def __init__(self, session):
        super().__init__(session)
        self.logger = get_logger(self.__class__.__name__)

    def get_by_name(self, name: str) -> Optional[Genre]:
        """Get a genre by its exact name.

        Args:
            name: The name of the genre to retrieve

        Returns:
            The Genre object if found, None otherwise
        """
        return self.session.query(Genre).filter(Genre.name == name).first()

    def get_by_name_ci(self, name: str) -> Optional[Genre]:
        """Get a genre by case-insensitive name equality.

        Args:
            name: The genre name as spelled by the remote catalog

        Returns:
            The Genre object if found, None otherwise
        """
        if not name or not name.strip():
            return None
        return (
            self.session.query(Genre)
            .filter(func.lower(Genre.name) == name.strip().lower())
            .first()
        )

    def create(self, name: str, slug: Optional[str] = None) -> Genre:
        """Create a genre. Only called from explicit admin actions.

        Raises:
            ValueError: If a genre with the same name (case-insensitive) exists
        """
        if self.get_by_name_ci(name):
            raise ValueError(f"Genre '{name}' already exists")
        genre = Genre(name=name.strip(), slug=slug)
        self.session.add(genre)
        self.session.flush()
        return genre

    def list_genres(self, query: Optional[str] = None, limit: Optional[int] = None) -> List[Genre]:
        """List genres ordered by name.

        Args:
            query: Optional substring filter
            limit: Maximum number of results to return

        Returns:
            List of Genre objects
        """
        base_query = self.session.query(Genre)
        if query:
            base_query = base_query.filter(Genre.name.ilike(f"%{query}%"))
        base_query = base_query.order_by(Genre.name)
        if limit:
            base_query = base_query.limit(limit)
        return base_query.all()

    def get_genres_by_manga(self, manga_id: int) -> List[Genre]:
        """Get all genres linked to a manga"""
        return (
            self.session.query(Genre)
            .join(Genre.manga_genres)
            .filter(MangaGenre.manga_id == manga_id)
            .order_by(Genre.name)
            .all()
        )

    def get_popular_genres(self, limit: int = 10) -> List[Genre]:
        """Get genres ordered by number of linked manga"""
        return (
            self.session.query(Genre)
            .outerjoin(Genre.manga_genres)
            .group_by(Genre.id)
            .order_by(desc(func.count(MangaGenre.manga_id)), Genre.name)
            .limit(limit)
            .all()
        )

    def link_manga(self, manga_id: int, genre_id: int) -> bool:
        """Link a manga to a genre, ignoring an existing link.

        Args:
            manga_id: Local manga ID
            genre_id: Local genre ID

        Returns:
            True if a new link was written, False if it already existed
        """
        stmt = self._ignore_insert(MangaGenre.__table__)
        if stmt is not None:
            result = self.session.execute(stmt.values(manga_id=manga_id, genre_id=genre_id))
            rowcount = self._rowcount(result)
            return bool(rowcount) if rowcount is not None else True

        existing = self.session.get(MangaGenre, (manga_id, genre_id))
        if existing:
            return False
        self.session.add(MangaGenre(manga_id=manga_id, genre_id=genre_id))
        self.session.flush()
        return True

    def link_by_names(self, manga_id: int, names: Iterable[str]) -> int:
        """Link a manga to every existing genre whose name matches, case-insensitively.

        Names with no local genre are skipped.

        Args:
            manga_id: Local manga ID
            names: Genre names from the remote catalog

        Returns:
            Number of new links written
        """
        linked = 0
        seen = set()
        for name in names:
            genre = self.get_by_name_ci(name)
            if genre is None:
                self.logger.debug(f"No local genre named '{name}', skipping link for manga {manga_id}")
                continue
            if genre.id in seen:
                continue
            seen.add(genre.id)
            if self.link_manga(manga_id, genre.id):
                linked += 1
        return linked

    def count_links(self, manga_id: Optional[int] = None) -> int:
        """Count manga-genre links, optionally for one manga"""
        query = self.session.query(func.count()).select_from(MangaGenre)
        if manga_id is not None:
            query = query.filter(MangaGenre.manga_id == manga_id)
        return query.scalar() or 0
