# catalog/remote/westmanga_client.py

import threading
from typing import Optional, Dict, Any, List
from urllib.parse import quote

import requests
from pydantic import ValidationError

from catalog.config import Settings, get_settings
from catalog.exceptions import RemoteUnavailable, RemoteNotFound
from catalog.models.remote import RemotePage, RemoteMangaDetail, RemoteChapterDetail, RemoteGenre
from catalog.utils.log import get_logger
from catalog.utils.rate_limit import RateLimiter

MIN_PER_PAGE = 1
MAX_PER_PAGE = 100


class WestMangaClient:
    """Typed client for the WestManga catalog API.

    The client performs exactly one HTTP call per method call. It never
    retries and never caches; callers decide whether a retry is safe.
    At most ``max_in_flight`` calls run at once across threads sharing
    the client.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        detail_path: Optional[str] = None,
        chapter_path: Optional[str] = None,
        max_in_flight: Optional[int] = None,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[requests.Session] = None,
        settings: Optional[Settings] = None
    ):
        settings = settings or get_settings()
        self.base_url = (base_url or settings.westmanga_base_url).rstrip('/')
        self.timeout = timeout if timeout is not None else settings.westmanga_timeout
        self.detail_path = detail_path or settings.westmanga_detail_path
        self.chapter_path = chapter_path or settings.westmanga_chapter_path
        self.rate_limiter = rate_limiter or RateLimiter(
            min_delay=settings.westmanga_min_delay,
            max_delay=settings.westmanga_max_delay
        )
        self._in_flight = threading.BoundedSemaphore(max_in_flight or settings.westmanga_max_in_flight)

        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })
        self.logger = get_logger(self.__class__.__name__, settings.log_level)

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Perform one GET against the API and return the decoded payload.

        Args:
            path: Path below the base URL
            params: Query parameters

        Returns:
            The JSON payload, whose ``status`` flag is true

        Raises:
            RemoteNotFound: On a 404 response
            RemoteUnavailable: On network errors, timeouts, other non-2xx
                responses, undecodable bodies or ``status: false``
        """
        url = self._url(path)
        with self._in_flight:
            self.rate_limiter.delay()
            self.logger.debug(f"GET {url} {params or ''}")
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
            except requests.Timeout as e:
                raise RemoteUnavailable(f"Timed out after {self.timeout}s: {e}", url=url)
            except requests.RequestException as e:
                raise RemoteUnavailable(f"Request failed: {e}", url=url)

        if response.status_code == 404:
            raise RemoteNotFound(path)
        if not 200 <= response.status_code < 300:
            raise RemoteUnavailable(
                f"HTTP {response.status_code} from {url}",
                url=url,
                status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError:
            raise RemoteUnavailable(f"Invalid JSON from {url}", url=url, status_code=response.status_code)

        if not isinstance(payload, dict) or not payload.get('status'):
            message = payload.get('message') if isinstance(payload, dict) else None
            raise RemoteUnavailable(
                f"Remote reported failure{': ' + str(message) if message else ''}",
                url=url,
                status_code=response.status_code
            )
        return payload

    def list_page(
        self,
        page: int = 1,
        per_page: int = 25,
        search: Optional[str] = None,
        genre: Optional[str] = None,
        status: Optional[str] = None,
        type: Optional[str] = None,
        sort: Optional[str] = None
    ) -> RemotePage:
        """
        Fetch one page of the remote listing.

        Out-of-range paging values are clamped: page to at least 1 and
        per_page into 1..100.

        Args:
            page: Page number
            per_page: Items per page
            search: Title search
            genre: Genre filter
            status: Status filter (ongoing, completed)
            type: Content type filter (comic, manga, manhwa, manhua)
            sort: Sort order (latest, popular, rating)

        Returns:
            RemotePage with raw items and paginator data
        """
        page = max(1, int(page))
        per_page = min(MAX_PER_PAGE, max(MIN_PER_PAGE, int(per_page)))

        params: Dict[str, Any] = {'page': page, 'per_page': per_page}
        filters = {'search': search, 'genre': genre, 'status': status, 'type': type, 'sort': sort}
        params.update({key: value for key, value in filters.items() if value})

        try:
            payload = self._get('/contents', params=params)
        except RemoteNotFound:
            raise RemoteUnavailable("Listing endpoint returned 404", url=self._url('/contents'), status_code=404)

        items = payload.get('data') or []
        if not isinstance(items, list):
            raise RemoteUnavailable("Listing payload has no item list", url=self._url('/contents'))

        paginator = payload.get('paginator') or {}
        last_page = paginator.get('last_page') or page
        return RemotePage(
            items=list(items),
            page=page,
            per_page=per_page,
            last_page=int(last_page),
            total=paginator.get('total')
        )

    def get_detail_by_slug(self, slug: str) -> Optional[RemoteMangaDetail]:
        """
        Fetch one manga's full detail, including its chapter list.

        Returns:
            RemoteMangaDetail, or None if the remote has no such slug

        Raises:
            RemoteUnavailable: If the call failed or the payload is malformed
        """
        path = self.detail_path.format(slug=quote(slug, safe=''))
        try:
            payload = self._get(path)
        except RemoteNotFound:
            self.logger.info(f"No remote manga for slug '{slug}'")
            return None

        data = payload.get('data')
        if not data:
            return None
        try:
            return RemoteMangaDetail.model_validate(data)
        except ValidationError as e:
            raise RemoteUnavailable(f"Malformed detail payload for '{slug}': {e}", url=self._url(path))

    def get_chapter_by_slug(self, chapter_slug: str) -> Optional[RemoteChapterDetail]:
        """
        Fetch one chapter's image list.

        Returns:
            RemoteChapterDetail, or None if the remote has no such chapter

        Raises:
            RemoteUnavailable: If the call failed or the payload is malformed
        """
        path = self.chapter_path.format(slug=quote(chapter_slug, safe=''))
        try:
            payload = self._get(path)
        except RemoteNotFound:
            self.logger.info(f"No remote chapter for slug '{chapter_slug}'")
            return None

        data = payload.get('data')
        if not data:
            return None
        try:
            return RemoteChapterDetail.model_validate(data)
        except ValidationError as e:
            raise RemoteUnavailable(f"Malformed chapter payload for '{chapter_slug}': {e}", url=self._url(path))

    def list_genres(self) -> List[RemoteGenre]:
        """Fetch the remote genre catalog. Used only by explicit admin seeding."""
        try:
            payload = self._get('/contents/genres')
        except RemoteNotFound:
            raise RemoteUnavailable("Genre endpoint returned 404", url=self._url('/contents/genres'), status_code=404)
        data = payload.get('data') or []
        return [RemoteGenre.model_validate(genre) for genre in data if isinstance(genre, dict) and genre.get('name')]
