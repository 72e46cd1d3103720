# catalog/sa/repositories/manga.py
from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime, UTC
from sqlalchemy import select, desc, func
from sqlalchemy.orm import joinedload
from ..models import Manga, MangaGenre
from .base import BaseRepository

# Fields a mirrored row takes from the remote catalog; everything else is local
MIRRORED_FIELDS = (
    'title', 'slug', 'alternative_name', 'author', 'synopsis', 'thumbnail',
    'content_type', 'country_code', 'color', 'hot', 'is_project', 'is_safe',
    'rating', 'bookmark_count', 'views', 'release', 'status',
)

class MangaRepository(BaseRepository):

    def get_by_id(self, manga_id: int) -> Optional[Manga]:
        """Get a manga by its local ID"""
        return self.session.get(Manga, manga_id)

    def get_by_remote_id(self, remote_id: int) -> Optional[Manga]:
        """Get a mirrored manga by its WestManga ID.

        Manual entries have no remote ID, so they can never be returned here.
        """
        return (
            self.session.execute(
                select(Manga)
                .where(Manga.remote_id == remote_id)
                .execution_options(populate_existing=True)
            )
            .scalars()
            .first()
        )

    def get_by_slug(self, slug: str) -> Optional[Manga]:
        """Get a manga by slug, regardless of provenance"""
        return self.session.query(Manga).filter(Manga.slug == slug).first()

    def get_with_genres(self, slug: str) -> Optional[Manga]:
        """Get a manga by slug with its genre links loaded"""
        return (
            self.session.query(Manga)
            .filter(Manga.slug == slug)
            .options(joinedload(Manga.manga_genres).joinedload(MangaGenre.genre))
            .first()
        )

    def create_manual(self, title: str, slug: str, **fields) -> Manga:
        """Create a locally authored entry.

        Args:
            title: Manga title
            slug: Unique slug
            fields: Any other descriptive columns

        Returns:
            The created Manga, flushed so it has an ID

        Raises:
            ValueError: If a remote_id is passed for a manual entry
        """
        if fields.get('remote_id') is not None:
            raise ValueError("Manual entries cannot carry a remote_id")
        fields.pop('remote_id', None)
        fields.pop('is_manual', None)
        manga = Manga(title=title, slug=slug, is_manual=True, remote_id=None, **fields)
        self.session.add(manga)
        self.session.flush()
        return manga

    def upsert_mirrored(self, fields: Dict[str, Any]) -> Tuple[Manga, bool]:
        """Insert or fully overwrite a mirrored entry keyed on remote_id.

        On SQLite and PostgreSQL this is a single INSERT .. ON CONFLICT (remote_id)
        DO UPDATE, so two overlapping runs cannot both insert the same remote item.
        A slug that collides with another row still raises IntegrityError; the
        conflict target is remote_id only, so a manual entry is never overwritten.
        Other dialects fall back to a lookup followed by insert or update.

        Args:
            fields: Transformed entry fields, must include remote_id

        Returns:
            Tuple of (manga, created)
        """
        remote_id = fields.get('remote_id')
        if remote_id is None:
            raise ValueError("Mirrored entries require a remote_id")

        now = datetime.now(UTC)
        values = {name: fields.get(name) for name in MIRRORED_FIELDS}
        values.update(is_manual=False, last_synced_at=now, updated_at=now)

        existing = self.get_by_remote_id(remote_id)
        created = existing is None

        stmt = self._conflict_insert(Manga.__table__)
        if stmt is not None:
            stmt = stmt.values(remote_id=remote_id, created_at=now, **values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Manga.__table__.c.remote_id],
                set_=values
            )
            self.session.execute(stmt)
            manga = self.get_by_remote_id(remote_id)
            return manga, created

        if existing is None:
            existing = Manga(remote_id=remote_id, created_at=now, **values)
            self.session.add(existing)
        else:
            for name, value in values.items():
                setattr(existing, name, value)
        self.session.flush()
        return existing, created

    def search_manga(
        self,
        query: Optional[str] = None,
        is_manual: Optional[bool] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[Manga]:
        """Search manga by title, optionally filtered by provenance.

        Args:
            query: Search query string
            is_manual: True for manual entries, False for mirrored, None for both
            limit: Maximum number of results to return
            offset: Number of records to skip

        Returns:
            List of Manga objects, most recently updated first
        """
        base_query = self.session.query(Manga)

        if query and query.strip():
            base_query = base_query.filter(Manga.title.ilike(f"%{query}%"))

        if is_manual is not None:
            base_query = base_query.filter(Manga.is_manual.is_(is_manual))

        return base_query.order_by(desc(Manga.updated_at)).offset(offset).limit(limit).all()

    def count_manga(self, is_manual: Optional[bool] = None) -> int:
        """Count manga, optionally filtered by provenance"""
        query = self.session.query(func.count(Manga.id))
        if is_manual is not None:
            query = query.filter(Manga.is_manual.is_(is_manual))
        return query.scalar() or 0
