# catalog/sa/models/chapter.py
from datetime import datetime, UTC
from sqlalchemy import String, Integer, ForeignKey, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column
from .base import Base

class Chapter(Base):
    __tablename__ = 'chapter'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    manga_id: Mapped[int] = mapped_column(ForeignKey('manga.id', ondelete='CASCADE'), nullable=False)
    remote_chapter_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    chapter_number: Mapped[str] = mapped_column(String(20), nullable=False)  # Normalized decimal, e.g. "10" or "10.5"
    slug: Mapped[str] = mapped_column(String(300), nullable=False)
    cover_image: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))

    # Relationships
    manga = relationship('Manga', back_populates='chapters')
    images = relationship('ChapterImage', back_populates='chapter', cascade='all, delete-orphan',
                          order_by='ChapterImage.page_number')

    __table_args__ = (
        UniqueConstraint('manga_id', 'chapter_number', name='uq_chapter_manga_number'),
        Index('idx_chapter_remote_chapter_id', 'remote_chapter_id'),
        Index('idx_chapter_slug', 'slug'),
    )

class ChapterImage(Base):
    __tablename__ = 'chapter_image'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    chapter_id: Mapped[int] = mapped_column(ForeignKey('chapter.id', ondelete='CASCADE'), nullable=False)
    page_number: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-based reading order
    image_path: Mapped[str] = mapped_column(String(1024), nullable=False)

    # Relationships
    chapter = relationship('Chapter', back_populates='images')

    __table_args__ = (
        UniqueConstraint('chapter_id', 'page_number', name='uq_chapter_image_page'),
    )
