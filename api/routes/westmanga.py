# api/routes/westmanga.py

import asyncio
import json
import threading
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse

from catalog.config import get_settings
from catalog.exceptions import RemoteUnavailable, EntryNotFound, ManualEntryError
from catalog.remote.westmanga_client import WestMangaClient
from catalog.sync.chapter_backfill import ChapterBackfillEngine
from catalog.sync.reconciler import ReconciliationEngine
from catalog.sync.result import SyncMode, SyncRunResult
from catalog.utils.log import get_logger
from api.schemas.sync import (
    SyncRequest, SyncResponse, ChapterSyncRequest, ChapterSyncResponse, RemoteList
)

router = APIRouter(prefix="/api/westmanga", tags=["westmanga"])
logger = get_logger("WestMangaRoutes")

DISCONNECT_POLL_SECONDS = 0.5
SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}

SYNC_MESSAGES = {
    SyncMode.MANGA_ONLY: "Manga sync completed",
    SyncMode.MANGA_AND_CHAPTERS: "Manga and chapter sync completed",
    SyncMode.FULL: "Full sync completed",
}


# Dependencies, overridden in tests
def get_client() -> WestMangaClient:
    return WestMangaClient()

def get_reconciler() -> ReconciliationEngine:
    return ReconciliationEngine()

def get_backfill() -> ChapterBackfillEngine:
    return ChapterBackfillEngine()


async def _watch_disconnect(request: Request, cancel_event: threading.Event) -> None:
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logger.warning("Client disconnected, cancelling sync run")
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def _run_cancellable(request: Request, func, *args, **kwargs):
    """Run a blocking sync in the threadpool, cancelling it if the client goes away.

    Items already committed when the client disconnects stay committed.
    """
    cancel_event = threading.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
    try:
        return await run_in_threadpool(func, *args, cancel_event=cancel_event, **kwargs)
    finally:
        cancel_event.set()
        watcher.cancel()


def _wants_event_stream(request: Request) -> bool:
    return "text/event-stream" in request.headers.get("accept", "")


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def _percentage(processed: int, total: int) -> int:
    return round(processed * 100 / total) if total else 100


async def _sync_events(engine: ReconciliationEngine, body: SyncRequest, mode: SyncMode):
    """
    Run one page sync and yield its progress as server-sent events.

    Emits a "starting" progress event, a "processing" event per item (plus an
    "error" progress event for each failed item), then the final counters as
    a "progress" and a "complete" event. A failed page fetch ends the stream
    with an "error" event. Closing the stream cancels the run.
    """
    loop = asyncio.get_running_loop()
    events: asyncio.Queue = asyncio.Queue()
    cancel_event = threading.Event()

    def on_item(processed: int, total: int, label: str, item_result: SyncRunResult):
        progress = {
            "processed": processed,
            "total": total,
            "percentage": _percentage(processed, total),
        }
        loop.call_soon_threadsafe(events.put_nowait, ("progress", {
            "status": "processing", "message": f"Processed {label}", "current_manga": label, **progress
        }))
        if item_result.errors:
            failures = item_result.failures
            loop.call_soon_threadsafe(events.put_nowait, ("progress", {
                "status": "error",
                "message": f"Error: {label}",
                "error": failures[0]["message"] if failures else "",
                **progress
            }))

    yield _sse("progress", {
        "status": "starting", "message": "Starting sync", "processed": 0, "total": body.limit, "percentage": 0
    })
    task = asyncio.ensure_future(run_in_threadpool(
        engine.sync_page, body.page, body.limit, mode, cancel_event=cancel_event, on_item=on_item
    ))
    getter = None
    try:
        while True:
            getter = asyncio.ensure_future(events.get())
            await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            if not getter.done():
                break
            yield _sse(*getter.result())
        while not events.empty():
            yield _sse(*events.get_nowait())

        try:
            result = task.result()
        except RemoteUnavailable as e:
            logger.error(f"Sync of page {body.page} failed: {e}")
            yield _sse("error", {"error": f"Failed to fetch page {body.page} from WestManga", "details": str(e)})
            return
        except Exception as e:
            logger.error(f"Sync of page {body.page} failed: {e}")
            yield _sse("error", {"error": "Sync failed", "details": str(e)})
            return

        message = SYNC_MESSAGES[mode] + (" (cancelled)" if result.cancelled else "")
        final = {
            "message": message,
            "status": "complete",
            **result.to_dict(),
            "processed": result.total,
            "percentage": 100,
        }
        yield _sse("progress", final)
        yield _sse("complete", final)
    finally:
        cancel_event.set()
        if getter is not None and not getter.done():
            getter.cancel()


async def _sync(request: Request, engine: ReconciliationEngine, body: Optional[SyncRequest], mode: SyncMode):
    body = body or SyncRequest()
    if _wants_event_stream(request):
        return StreamingResponse(
            _sync_events(engine, body, mode), media_type="text/event-stream", headers=SSE_HEADERS
        )
    try:
        result = await _run_cancellable(request, engine.sync_page, body.page, body.limit, mode)
    except RemoteUnavailable as e:
        logger.error(f"Sync of page {body.page} failed: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to fetch page {body.page} from WestManga: {e}")

    message = SYNC_MESSAGES[mode]
    if result.cancelled:
        message += " (cancelled)"
    return {"message": message, **result.to_dict()}


@router.get("/list", response_model=RemoteList)
def list_remote(
    page: int = Query(1, description="Page number"),
    per_page: int = Query(25, description="Items per page, clamped to 1..100"),
    search: Optional[str] = Query(None, description="Search by title"),
    genre: Optional[str] = Query(None, description="Genre filter"),
    status: Optional[str] = Query(None, description="Status filter (ongoing, completed)"),
    type: Optional[str] = Query(None, description="Content type (comic, manga, manhwa, manhua)"),
    sort: Optional[str] = Query(None, description="Sort by (latest, popular, rating)"),
    client: WestMangaClient = Depends(get_client)
):
    """Browse the remote catalog without writing anything locally."""
    try:
        remote_page = client.list_page(
            page=page, per_page=per_page, search=search,
            genre=genre, status=status, type=type, sort=sort
        )
    except RemoteUnavailable as e:
        raise HTTPException(status_code=502, detail=f"WestManga is unavailable: {e}")

    return {
        "items": remote_page.items,
        "page": remote_page.page,
        "per_page": remote_page.per_page,
        "last_page": remote_page.last_page,
        "total": remote_page.total,
        "has_more": remote_page.has_more,
    }


@router.post("/sync", response_model=SyncResponse)
async def sync(
    request: Request,
    body: Optional[SyncRequest] = None,
    engine: ReconciliationEngine = Depends(get_reconciler)
):
    """
    Reconcile one remote page in the deployment's configured mode.

    Returns 200 with counters whenever the page was fetched, even if some
    items failed; 502 if the page itself could not be fetched.
    With ``Accept: text/event-stream`` the progress is streamed as
    server-sent events instead.
    """
    return await _sync(request, engine, body, SyncMode.parse(get_settings().sync_mode))


@router.post("/sync-manga-only", response_model=SyncResponse)
async def sync_manga_only(
    request: Request,
    body: Optional[SyncRequest] = None,
    engine: ReconciliationEngine = Depends(get_reconciler)
):
    return await _sync(request, engine, body, SyncMode.MANGA_ONLY)


@router.post("/sync-manga-chapters", response_model=SyncResponse)
async def sync_manga_chapters(
    request: Request,
    body: Optional[SyncRequest] = None,
    engine: ReconciliationEngine = Depends(get_reconciler)
):
    return await _sync(request, engine, body, SyncMode.MANGA_AND_CHAPTERS)


@router.post("/sync-chapters/{slug}", response_model=ChapterSyncResponse)
async def sync_chapters(
    slug: str,
    request: Request,
    body: Optional[ChapterSyncRequest] = None,
    backfill: ChapterBackfillEngine = Depends(get_backfill)
):
    """Backfill chapters of one mirrored manga."""
    body = body or ChapterSyncRequest()
    try:
        result = await _run_cancellable(
            request, backfill.sync_by_slug, slug, include_images=body.include_images
        )
    except EntryNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ManualEntryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RemoteUnavailable as e:
        raise HTTPException(status_code=502, detail=f"Failed to fetch '{slug}' from WestManga: {e}")

    if result.remote_missing:
        raise HTTPException(status_code=404, detail=f"Manga '{slug}' not found on WestManga")

    return {"message": f"Chapters synced for '{slug}'", **result.to_dict()}
