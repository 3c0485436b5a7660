import logging
from datetime import date, datetime, timezone
from typing import Any, Optional, Union

import pydantic
import yaml

from concurrency import gather_limited
from errors import MalformedImport
from models import Watched, WatchedEntry
from storage import Storage
from tmdb import TMDBClient

logger = logging.getLogger(__name__)

NAMESPACE = "watched"

WatchedCollection = dict[int, WatchedEntry]


def _watched_at(value: str) -> datetime:
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def _to_stored(entry: WatchedEntry) -> dict[str, Any]:
    return entry.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)


def _strip_id(entry: Watched) -> WatchedEntry:
    return WatchedEntry(title=entry.title, year=entry.year, watched_on=entry.watched_on)


def _parse_payload(payload: Union[str, bytes]) -> list[Watched]:
    """Parse an export document into entries, without touching TMDB."""
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedImport(f"Import payload is not valid UTF-8: {exc}") from exc
    try:
        data = yaml.safe_load(payload)
    except yaml.YAMLError as exc:
        raise MalformedImport(f"Import payload is not valid YAML: {exc}") from exc

    if data is None:
        return []
    if not isinstance(data, list):
        raise MalformedImport("Import payload must be a list of entries.")

    entries: list[Watched] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise MalformedImport(f"Entry {index} is not a mapping.")
        item = dict(item)
        # Unquoted dates come back from YAML as date objects.
        watched_on = item.get("watchedOn")
        if isinstance(watched_on, (date, datetime)):
            item["watchedOn"] = watched_on.isoformat()
        try:
            entries.append(Watched.model_validate(item))
        except pydantic.ValidationError as exc:
            raise MalformedImport(f"Entry {index} is invalid: {exc}") from exc
    return entries


class WatchHistoryStore:
    """
    The user's watched movies, keyed by TMDB movie id.

    Exports keep only id and watchedOn; title and year are looked up again from
    TMDB when an export is imported.
    """

    def __init__(
        self,
        storage: Storage,
        provider: TMDBClient,
        *,
        hydrate_max_in_flight: Optional[int] = 1,
    ) -> None:
        self._storage = storage
        self._provider = provider
        self.hydrate_max_in_flight = hydrate_max_in_flight

    async def get_all(self) -> WatchedCollection:
        raw = await self._storage.get_all()
        return {int(key): WatchedEntry.model_validate(value) for key, value in raw.items()}

    async def get(self, movie_id: int) -> Optional[Watched]:
        raw = await self._storage.get(str(movie_id))
        if raw is None:
            return None
        return Watched(id=movie_id, **WatchedEntry.model_validate(raw).model_dump())

    async def load(self) -> list[Watched]:
        """All entries, most recently watched first. Ties keep storage order."""
        entries = [
            Watched(id=movie_id, **entry.model_dump())
            for movie_id, entry in (await self.get_all()).items()
        ]
        return sorted(entries, key=lambda entry: _watched_at(entry.watched_on), reverse=True)

    async def has(self, movie_id: int) -> bool:
        return await self._storage.get(str(movie_id)) is not None

    async def add(self, entry: Watched) -> None:
        await self._storage.set(str(entry.id), _to_stored(entry))

    async def set(self, entry: Watched) -> None:
        await self._storage.set(str(entry.id), _to_stored(entry))

    async def remove(self, movie_id: int) -> None:
        await self._storage.remove(str(movie_id))

    async def clear(self) -> None:
        await self._storage.clear()

    async def export_all(self) -> str:
        return self.serialize(await self.get_all())

    @staticmethod
    def serialize(collection: WatchedCollection) -> str:
        rows = [
            {"id": movie_id, "watchedOn": entry.watched_on}
            for movie_id, entry in collection.items()
        ]
        return yaml.safe_dump(rows, sort_keys=False, default_flow_style=False)

    async def import_all(self, payload: Union[str, bytes]) -> int:
        """
        Replace the whole store with the entries in payload.
        Nothing is written unless every entry was parsed and hydrated.
        """
        collection = await self.deserialize(payload)
        await self._storage.replace_all(
            {str(movie_id): _to_stored(entry) for movie_id, entry in collection.items()}
        )
        logger.info("Imported %d watched entries", len(collection))
        return len(collection)

    async def deserialize(self, payload: Union[str, bytes]) -> WatchedCollection:
        entries = await self.hydrate(_parse_payload(payload))
        return {entry.id: _strip_id(entry) for entry in entries}

    async def hydrate(self, entries: list[Watched]) -> list[Watched]:
        """Fill in missing title/year from TMDB. Any lookup failure aborts the batch."""
        missing = sum(1 for entry in entries if not entry.is_hydrated)
        if missing:
            logger.info("Looking up %d of %d watched entries on TMDB", missing, len(entries))
        return await gather_limited(self._hydrate_one, entries, self.hydrate_max_in_flight)

    async def _hydrate_one(self, entry: Watched) -> Watched:
        if entry.is_hydrated:
            return entry
        movie = await self._provider.get_movie_title(entry.id)
        return entry.model_copy(update={"title": movie.title, "year": movie.year})
