# catalog/resolvers/entry_transformer.py

import math
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Union

from catalog.models.remote import RemoteManga, RemoteChapter
from catalog.sa.models import MangaStatus

# Ratings are stored as DECIMAL(3,1) upstream
RATING_LIMIT = 99.9

_STATUSES = {status.value for status in MangaStatus}


def _clamp_rating(rating) -> float:
    if rating is None or math.isnan(float(rating)):
        return 0
    rating = max(-RATING_LIMIT, min(RATING_LIMIT, float(rating)))
    return round(rating, 1)


def _normalize_status(status) -> str:
    if status:
        status = str(status).strip().lower()
        if status in _STATUSES:
            return status
    return MangaStatus.ONGOING.value


def transform_manga(remote: Union[RemoteManga, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Map a remote manga onto catalog entry fields.

    Pure function: no I/O, no state. Fields the remote omits get the
    catalog defaults. Booleans that the remote sends explicitly, including
    false, are kept as sent.

    Args:
        remote: A RemoteManga, or a raw payload dict to validate first

    Returns:
        Dictionary of catalog fields plus remote_id and is_manual=False

    Raises:
        ValueError: If the payload has no usable id, slug or title
    """
    if not isinstance(remote, RemoteManga):
        remote = RemoteManga.model_validate(remote)

    return {
        'remote_id': remote.id,
        'title': remote.title,
        'slug': remote.slug,
        'alternative_name': remote.alternative_name or None,
        'author': remote.author or 'Unknown',
        'synopsis': remote.sinopsis or remote.synopsis or None,
        'thumbnail': remote.cover or None,
        'content_type': remote.content_type or 'comic',
        'country_code': remote.country_id or None,
        'color': remote.color if remote.color is not None else True,
        'hot': bool(remote.hot),
        'is_project': bool(remote.is_project),
        'is_safe': remote.is_safe if remote.is_safe is not None else True,
        'rating': _clamp_rating(remote.rating),
        'bookmark_count': remote.bookmark_count or 0,
        'views': remote.total_views or 0,
        'release': remote.release or None,
        'status': _normalize_status(remote.status),
        'is_manual': False,
    }


def normalize_chapter_number(number) -> str:
    """
    Render a chapter number in its canonical text form.

    "10", "10.0" and 10 all become "10"; "10.50" becomes "10.5".
    Non-numeric labels are kept as stripped text.
    """
    text = str(number).strip()
    try:
        value = Decimal(text)
    except InvalidOperation:
        return text
    if not value.is_finite():
        return text
    return format(value.normalize(), 'f')


def chapter_slug(manga_slug: str, number) -> str:
    return f"{manga_slug}-chapter-{normalize_chapter_number(number)}"


def transform_chapter(remote: RemoteChapter, manga_slug: str) -> Dict[str, Any]:
    """
    Map a remote chapter summary onto chapter fields.

    The local slug is derived from the manga slug and the chapter number;
    the remote chapter slug is only used for fetching images.
    """
    number = normalize_chapter_number(remote.number)
    return {
        'remote_chapter_id': remote.id,
        'title': remote.title or f"Chapter {number}",
        'chapter_number': number,
        'slug': chapter_slug(manga_slug, number),
        'created_at': remote.created_at,
    }
