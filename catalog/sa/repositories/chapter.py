# catalog/sa/repositories/chapter.py
from typing import Optional, List, Dict, Any
from sqlalchemy import func, cast, Float
from ..models import Chapter, ChapterImage
from .base import BaseRepository

class ChapterRepository(BaseRepository):

    def get_by_id(self, chapter_id: int) -> Optional[Chapter]:
        return self.session.get(Chapter, chapter_id)

    def get_by_slug(self, slug: str) -> Optional[Chapter]:
        return self.session.query(Chapter).filter(Chapter.slug == slug).first()

    def find_for_remote(
        self,
        manga_id: int,
        remote_chapter_id: Optional[int],
        chapter_number: str
    ) -> Optional[Chapter]:
        """Find the local chapter a remote chapter corresponds to.

        Matches by remote chapter ID within the manga first, then by
        chapter number within the manga.

        Args:
            manga_id: Local manga ID
            remote_chapter_id: WestManga chapter ID, may be None
            chapter_number: Normalized chapter number

        Returns:
            The matching Chapter, or None
        """
        if remote_chapter_id is not None:
            chapter = (
                self.session.query(Chapter)
                .filter(
                    Chapter.manga_id == manga_id,
                    Chapter.remote_chapter_id == remote_chapter_id
                )
                .first()
            )
            if chapter:
                return chapter

        return (
            self.session.query(Chapter)
            .filter(
                Chapter.manga_id == manga_id,
                Chapter.chapter_number == chapter_number
            )
            .first()
        )

    def create(self, manga_id: int, chapter_data: Dict[str, Any]) -> Chapter:
        """Create a chapter from transformed chapter data"""
        chapter = Chapter(
            manga_id=manga_id,
            remote_chapter_id=chapter_data.get('remote_chapter_id'),
            title=chapter_data['title'],
            chapter_number=chapter_data['chapter_number'],
            slug=chapter_data['slug'],
            cover_image=chapter_data.get('cover_image'),
        )
        if chapter_data.get('created_at'):
            chapter.created_at = chapter_data['created_at']
        self.session.add(chapter)
        self.session.flush()
        return chapter

    def update_metadata(self, chapter: Chapter, chapter_data: Dict[str, Any]) -> Chapter:
        """Update title, number and slug only. Images and cover are left alone."""
        chapter.title = chapter_data['title']
        chapter.chapter_number = chapter_data['chapter_number']
        chapter.slug = chapter_data['slug']
        if chapter.remote_chapter_id is None and chapter_data.get('remote_chapter_id') is not None:
            chapter.remote_chapter_id = chapter_data['remote_chapter_id']
        self.session.flush()
        return chapter

    def list_by_manga(self, manga_id: int) -> List[Chapter]:
        """List a manga's chapters, highest chapter number first"""
        return (
            self.session.query(Chapter)
            .filter(Chapter.manga_id == manga_id)
            .order_by(cast(Chapter.chapter_number, Float).desc())
            .all()
        )

    def count_by_manga(self, manga_id: int) -> int:
        return (
            self.session.query(func.count(Chapter.id))
            .filter(Chapter.manga_id == manga_id)
            .scalar() or 0
        )

    def count_images(self, chapter_id: int) -> int:
        """Count stored images for a chapter"""
        return (
            self.session.query(func.count(ChapterImage.id))
            .filter(ChapterImage.chapter_id == chapter_id)
            .scalar() or 0
        )

    def get_images(self, chapter_id: int) -> List[ChapterImage]:
        """Get a chapter's images in reading order"""
        return (
            self.session.query(ChapterImage)
            .filter(ChapterImage.chapter_id == chapter_id)
            .order_by(ChapterImage.page_number)
            .all()
        )

    def upsert_image(self, chapter_id: int, page_number: int, image_path: str) -> bool:
        """Store the image for one page, replacing the path if the page exists.

        Args:
            chapter_id: Local chapter ID
            page_number: 1-based page number
            image_path: Image URL or upload path

        Returns:
            True if a new page row was created
        """
        if page_number < 1:
            raise ValueError(f"Page numbers are 1-based, got {page_number}")

        image = (
            self.session.query(ChapterImage)
            .filter(
                ChapterImage.chapter_id == chapter_id,
                ChapterImage.page_number == page_number
            )
            .first()
        )
        if image:
            if image.image_path != image_path:
                image.image_path = image_path
                self.session.flush()
            return False

        self.session.add(ChapterImage(
            chapter_id=chapter_id,
            page_number=page_number,
            image_path=image_path
        ))
        self.session.flush()
        return True

    def add_uploaded_images(self, chapter_id: int, image_paths: List[str]) -> List[ChapterImage]:
        """Append manually uploaded images; upload order defines page numbers"""
        start = (
            self.session.query(func.max(ChapterImage.page_number))
            .filter(ChapterImage.chapter_id == chapter_id)
            .scalar() or 0
        )
        images = []
        for offset, path in enumerate(image_paths, start=1):
            image = ChapterImage(chapter_id=chapter_id, page_number=start + offset, image_path=path)
            self.session.add(image)
            images.append(image)
        self.session.flush()
        return images
