# catalog/models/remote.py

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator
from datetime import datetime, UTC
from typing import Optional, List, Any


def _optional_str(value):
    if value is None or value == "":
        return None
    return str(value)


class RemoteGenre(BaseModel):
    id: Optional[int] = None
    name: str
    slug: Optional[str] = None

    model_config = ConfigDict(extra='ignore')


class RemoteChapter(BaseModel):
    """A chapter summary as listed in a manga detail payload"""
    id: Optional[int] = None
    number: str
    title: Optional[str] = None
    slug: str
    created_at: Optional[datetime] = None
    page_count: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices('page_count', 'total_page')
    )

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    @field_validator('number', mode='before')
    @classmethod
    def _number_as_text(cls, value):
        if value is None or str(value).strip() == "":
            raise ValueError("chapter number is required")
        return str(value).strip()

    @field_validator('created_at', mode='before')
    @classmethod
    def _epoch_seconds(cls, value):
        # The remote sends {"time": <epoch seconds>, ...}
        if isinstance(value, dict):
            value = value.get('time')
        if value is None or value == "":
            return None
        if isinstance(value, (int, float)) or (isinstance(value, str) and value.isdigit()):
            return datetime.fromtimestamp(int(value), UTC)
        return value


class RemoteChapterDetail(BaseModel):
    """A chapter with its image URLs in reading order"""
    id: Optional[int] = None
    slug: Optional[str] = None
    number: Optional[str] = None
    images: List[str] = []

    model_config = ConfigDict(extra='ignore')

    @field_validator('number', mode='before')
    @classmethod
    def _number_as_text(cls, value):
        return _optional_str(value)

    @field_validator('images', mode='before')
    @classmethod
    def _drop_empty(cls, value):
        if value is None:
            return []
        return [image for image in value if image]


class RemoteManga(BaseModel):
    """A manga as it appears in a listing page.

    Field names follow the remote payload; the entry transformer maps them
    onto catalog columns. Optional fields stay None when the remote omits
    them so the transformer can tell "absent" from "false".
    """
    id: int
    slug: str
    title: str
    alternative_name: Optional[str] = None
    author: Optional[str] = None
    sinopsis: Optional[str] = None
    synopsis: Optional[str] = None
    cover: Optional[str] = None
    content_type: Optional[str] = None
    country_id: Optional[str] = None
    color: Optional[bool] = None
    hot: Optional[bool] = None
    is_project: Optional[bool] = None
    is_safe: Optional[bool] = None
    rating: Optional[float] = None
    bookmark_count: Optional[int] = None
    total_views: Optional[int] = None
    release: Optional[str] = None
    status: Optional[str] = None
    genres: List[RemoteGenre] = []

    model_config = ConfigDict(extra='ignore')

    @field_validator('slug', 'title')
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator('country_id', 'release', mode='before')
    @classmethod
    def _as_text(cls, value):
        return _optional_str(value)

    @field_validator('rating', mode='before')
    @classmethod
    def _lenient_rating(cls, value):
        if value is None or value == "":
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @field_validator('genres', mode='before')
    @classmethod
    def _genre_objects(cls, value):
        if not value:
            return []
        genres = [{'name': genre} if isinstance(genre, str) else genre for genre in value]
        return [genre for genre in genres if isinstance(genre, RemoteGenre) or (isinstance(genre, dict) and genre.get('name'))]

    @property
    def genre_names(self) -> List[str]:
        return [genre.name for genre in self.genres if genre.name]


class RemoteMangaDetail(RemoteManga):
    """A manga detail payload, carrying its chapter list.

    Chapter summaries are kept as raw payload entries and validated one by
    one during backfill, so one malformed chapter cannot sink the others.
    """
    chapters: List[Any] = []

    @field_validator('chapters', mode='before')
    @classmethod
    def _no_chapters(cls, value):
        return value or []


class RemotePage(BaseModel):
    """One page of the remote listing.

    Items are kept as raw payload entries; each is validated on its own during
    reconciliation so one malformed item cannot sink the page.
    """
    items: List[Any] = []
    page: int = 1
    per_page: int = 25
    last_page: int = 1
    total: Optional[int] = None

    @property
    def has_more(self) -> bool:
        return self.page < self.last_page
