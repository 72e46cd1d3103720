# catalog/sa/models/manga.py
from enum import Enum
from sqlalchemy import String, Integer, Float, Boolean, Text, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column
from .base import Base, TimestampMixin, LastSyncedMixin

class MangaStatus(str, Enum):
    ONGOING = "ongoing"
    COMPLETED = "completed"
    HIATUS = "hiatus"

class MangaGenre(Base, TimestampMixin):
    __tablename__ = 'manga_genre'

    manga_id: Mapped[int] = mapped_column(ForeignKey('manga.id', ondelete='CASCADE'), primary_key=True)
    genre_id: Mapped[int] = mapped_column(ForeignKey('genre.id', ondelete='CASCADE'), primary_key=True)

    # Relationships
    manga = relationship('Manga', back_populates='manga_genres')
    genre = relationship('Genre', back_populates='manga_genres')

class Manga(Base, TimestampMixin, LastSyncedMixin):
    """A catalog entry: either authored locally (is_manual) or mirrored from WestManga (remote_id)"""
    __tablename__ = 'manga'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    remote_id: Mapped[int | None] = mapped_column(Integer, unique=True, nullable=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    alternative_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    synopsis: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    content_type: Mapped[str] = mapped_column(String(50), nullable=False, default='comic')
    country_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    color: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    hot: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_project: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_safe: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    bookmark_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    release: Mapped[str | None] = mapped_column(String(20), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=MangaStatus.ONGOING.value)
    is_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    manga_genres = relationship('MangaGenre', back_populates='manga', cascade='all, delete-orphan')
    chapters = relationship('Chapter', back_populates='manga', cascade='all, delete-orphan')

    # Convenience relationship
    genres = relationship('Genre', secondary='manga_genre', viewonly=True)

    __table_args__ = (
        # Manual entries never carry a remote id; mirrored entries always do
        CheckConstraint(
            '(is_manual = true AND remote_id IS NULL) OR (is_manual = false AND remote_id IS NOT NULL)',
            name='ck_manga_provenance'
        ),

        # Search indexes
        Index('idx_manga_title', 'title'),
        Index('idx_manga_is_manual', 'is_manual'),

        # Sync tracking indexes
        Index('idx_manga_last_synced_at', 'last_synced_at'),
    )

    def __repr__(self) -> str:
        source = 'manual' if self.is_manual else f'remote:{self.remote_id}'
        return f"<Manga {self.slug} ({source})>"
