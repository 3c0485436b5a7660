import asyncio
import logging
from typing import Optional, TypeVar

import httpx
from pydantic import BaseModel, Field, ValidationError

from errors import NotFound, ProviderError, ProviderUnavailable
from models import MovieCastMember, MovieDetail, MovieSummary, MovieTitle, PersonCredit

logger = logging.getLogger(__name__)

TMDB_BASE = "https://api.themoviedb.org/3"
TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p"

POSTER_SIZE = "w500"
CREDIT_POSTER_SIZE = "w200"
BACKDROP_SIZE = "original"
PROFILE_SIZE = "w185"

SEARCH_RESULT_LIMIT = 25
DEFAULT_MAX_CONNECTIONS = 10

M = TypeVar("M", bound=BaseModel)


# Raw TMDB payloads. Only the fields we read are declared; extras are ignored.


class _TmdbMovie(BaseModel):
    id: int
    title: str
    overview: Optional[str] = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[str] = ""
    vote_average: float = 0.0
    vote_count: int = 0
    runtime: Optional[int] = None


class _TmdbCastMember(BaseModel):
    id: int
    name: str
    character: Optional[str] = ""
    profile_path: Optional[str] = None


class _TmdbMovieCredits(BaseModel):
    cast: list[_TmdbCastMember] = Field(default_factory=list)


class _TmdbCastCredit(BaseModel):
    id: int
    title: str
    character: Optional[str] = ""
    poster_path: Optional[str] = None
    release_date: Optional[str] = ""
    vote_average: float = 0.0
    vote_count: int = 0


class _TmdbPersonCredits(BaseModel):
    cast: list[_TmdbCastCredit] = Field(default_factory=list)


class _TmdbSearchPage(BaseModel):
    results: list[_TmdbMovie] = Field(default_factory=list)


def _image_url(size: str, path: Optional[str]) -> Optional[str]:
    return f"{TMDB_IMAGE_BASE}/{size}{path}" if path else None


def _parse_year(release_date: Optional[str]) -> Optional[int]:
    if release_date and len(release_date) >= 4 and release_date[:4].isdigit():
        return int(release_date[:4])
    return None


class TMDBClient:
    """
    Async TMDB client. Every response is validated against the payload schema
    above and converted into our own models; anything else raises ProviderError.
    """

    def __init__(
        self,
        api_key: str,
        *,
        language: str = "en-US",
        timeout: float = 30.0,
        max_connections: int = DEFAULT_MAX_CONNECTIONS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.language = language
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._semaphore = asyncio.Semaphore(max_connections)

    async def __aenter__(self) -> "TMDBClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, path: str, schema: type[M], **params) -> M:
        url = f"{TMDB_BASE}{path}"
        query = {"api_key": self.api_key, "language": self.language, **params}
        try:
            async with self._semaphore:
                response = await self._client.get(url, params=query)
        except httpx.HTTPError as exc:
            logger.warning("TMDB request to %s failed: %s", path, exc)
            raise ProviderUnavailable(f"TMDB request failed: {exc}") from exc

        if response.status_code == 404:
            raise NotFound(
                f"TMDB has no resource at {path}",
                status_code=404,
                body_snippet=response.text[:400],
            )
        if not response.is_success:
            logger.warning("TMDB returned HTTP %s for %s", response.status_code, path)
            raise ProviderUnavailable(
                f"TMDB request failed with HTTP {response.status_code}.",
                status_code=response.status_code,
                body_snippet=response.text[:400],
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(
                "TMDB returned non-JSON response.",
                status_code=response.status_code,
                body_snippet=response.text[:400],
            ) from exc

        try:
            return schema.model_validate(payload)
        except ValidationError as exc:
            raise ProviderError(f"TMDB returned unexpected payload for {path}: {exc}") from exc

    async def get_movie_by_id(self, movie_id: int) -> MovieDetail:
        """Movie details without cast."""
        movie = await self._get(f"/movie/{movie_id}", _TmdbMovie)
        release_date = movie.release_date or ""
        return MovieDetail(
            id=movie.id,
            title=movie.title,
            year=_parse_year(release_date),
            overview=movie.overview or "",
            poster_url=_image_url(POSTER_SIZE, movie.poster_path),
            backdrop_url=_image_url(BACKDROP_SIZE, movie.backdrop_path),
            rating=movie.vote_average,
            runtime=movie.runtime,
            release_date=release_date,
        )

    async def get_movie_title(self, movie_id: int) -> MovieTitle:
        movie = await self.get_movie_by_id(movie_id)
        return MovieTitle(id=movie.id, title=movie.title, year=movie.year)

    async def get_movie_credits(self, movie_id: int) -> list[MovieCastMember]:
        credits = await self._get(f"/movie/{movie_id}/credits", _TmdbMovieCredits)
        return [
            MovieCastMember(
                person_id=member.id,
                name=member.name,
                character=member.character or "",
                photo_url=_image_url(PROFILE_SIZE, member.profile_path),
            )
            for member in credits.cast
        ]

    async def get_movie_detail(self, movie_id: int) -> MovieDetail:
        """Movie details and cast, fetched concurrently."""
        movie, cast = await asyncio.gather(
            self.get_movie_by_id(movie_id),
            self.get_movie_credits(movie_id),
        )
        return movie.model_copy(update={"cast": cast})

    async def get_person_credits(self, person_id: int) -> list[PersonCredit]:
        """Movies a person is credited in as cast, in TMDB order."""
        credits = await self._get(f"/person/{person_id}/movie_credits", _TmdbPersonCredits)
        return [
            PersonCredit(
                movie_id=credit.id,
                title=credit.title,
                character=credit.character or "",
                poster_url=_image_url(CREDIT_POSTER_SIZE, credit.poster_path),
                release_date=credit.release_date or "",
                vote_average=credit.vote_average,
                vote_count=credit.vote_count,
            )
            for credit in credits.cast
        ]

    async def search_movies(self, query: str) -> list[MovieSummary]:
        """Search TMDB by title. A blank query returns [] without a request."""
        query = query.strip()
        if not query:
            return []
        page = await self._get("/search/movie", _TmdbSearchPage, query=query, page=1)
        return [
            MovieSummary(
                id=movie.id,
                title=movie.title,
                poster_url=_image_url(POSTER_SIZE, movie.poster_path),
                release_date=movie.release_date or "",
                vote_average=movie.vote_average,
                vote_count=movie.vote_count,
            )
            for movie in page.results[:SEARCH_RESULT_LIMIT]
        ]
