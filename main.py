import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.requests import Request
from fastapi.responses import JSONResponse, PlainTextResponse

import storage
from config import settings
from discovery import DiscoveryEngine
from errors import MalformedImport, NotFound, ProviderError, ValidationError
from models import Watched, WatchedEntry
from tmdb import TMDBClient
from watched import NAMESPACE, WatchHistoryStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# import_all reads, awaits TMDB, then replaces; two imports must not interleave.
_import_lock = asyncio.Lock()


def _parse_ids(raw: Optional[str]) -> list[int]:
    ids: list[int] = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        if not (part.isascii() and part.isdigit()):
            raise ValidationError(f"Invalid person id: {part!r}")
        ids.append(int(part))
    return ids


@asynccontextmanager
async def lifespan(app: FastAPI):
    db_path = Path(settings.db_path)
    await storage.init_db(db_path)
    provider = TMDBClient(
        settings.tmdb_api_key,
        language=settings.tmdb_language,
        timeout=settings.tmdb_timeout,
    )
    app.state.provider = provider
    app.state.engine = DiscoveryEngine(
        provider,
        popularity_floor=settings.popularity_floor,
        detail_limit=settings.detail_limit,
        max_in_flight=settings.discovery_max_in_flight,
    )
    app.state.store = WatchHistoryStore(
        storage.SQLiteStorage(NAMESPACE, db_path),
        provider,
        hydrate_max_in_flight=settings.hydrate_max_in_flight,
    )
    logger.info("Watch history stored in %s", db_path)
    yield
    await provider.aclose()


app = FastAPI(lifespan=lifespan)


def get_provider(request: Request) -> TMDBClient:
    return request.app.state.provider


def get_engine(request: Request) -> DiscoveryEngine:
    return request.app.state.engine


def get_store(request: Request) -> WatchHistoryStore:
    return request.app.state.store


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse({"error": str(exc)}, status_code=404)


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    logger.error("TMDB error on %s: %s", request.url.path, exc)
    return JSONResponse({"error": "Failed to fetch data from TMDB"}, status_code=502)


@app.exception_handler(MalformedImport)
@app.exception_handler(ValidationError)
async def bad_request_handler(request: Request, exc: Exception):
    return JSONResponse({"error": str(exc)}, status_code=400)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/search")
async def search(q: str = "", provider: TMDBClient = Depends(get_provider)):
    return {"results": await provider.search_movies(q)}


@app.get("/api/movie/{movie_id}")
async def movie_detail(movie_id: int, engine: DiscoveryEngine = Depends(get_engine)):
    return {"movie": await engine.get_movie_detail(movie_id)}


@app.get("/api/movie/{movie_id}/title")
async def movie_title(movie_id: int, provider: TMDBClient = Depends(get_provider)):
    return await provider.get_movie_title(movie_id)


@app.get("/api/cast-movies")
async def cast_movies(
    ids: Optional[str] = None,
    fallback: bool = False,
    details: bool = False,
    engine: DiscoveryEngine = Depends(get_engine),
):
    person_ids = _parse_ids(ids)
    if details:
        results = await engine.discover_with_details(person_ids, fallback_to_unfiltered=fallback)
    else:
        results = await engine.discover(person_ids, fallback_to_unfiltered=fallback)
    return {"results": results}


@app.get("/api/watched")
async def list_watched(store: WatchHistoryStore = Depends(get_store)):
    return await store.load()


@app.get("/api/watched/export", response_class=PlainTextResponse)
async def export_watched(store: WatchHistoryStore = Depends(get_store)):
    return PlainTextResponse(await store.export_all(), media_type="application/yaml")


@app.post("/api/watched/import")
async def import_watched(request: Request, store: WatchHistoryStore = Depends(get_store)):
    async with _import_lock:
        imported = await store.import_all(await request.body())
    return {"imported": imported}


@app.delete("/api/watched")
async def clear_watched(store: WatchHistoryStore = Depends(get_store)):
    await store.clear()
    return {"status": "cleared"}


@app.get("/api/watched/{movie_id}")
async def get_watched(movie_id: int, store: WatchHistoryStore = Depends(get_store)):
    entry = await store.get(movie_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Not watched")
    return entry


@app.put("/api/watched/{movie_id}")
async def set_watched(
    movie_id: int, entry: WatchedEntry, store: WatchHistoryStore = Depends(get_store)
):
    watched = Watched(id=movie_id, **entry.model_dump())
    await store.set(watched)
    return watched


@app.delete("/api/watched/{movie_id}")
async def remove_watched(movie_id: int, store: WatchHistoryStore = Depends(get_store)):
    await store.remove(movie_id)
    return {"status": "removed"}
