import logging
from typing import Iterable, Optional

from concurrency import gather_limited
from errors import ValidationError
from models import DiscoveredMovie, MovieDetail, PersonCredit
from tmdb import TMDBClient

logger = logging.getLogger(__name__)

DEFAULT_POPULARITY_FLOOR = 20
DEFAULT_DETAIL_LIMIT = 20


def normalize_person_ids(person_ids: Iterable[int]) -> list[int]:
    """Drop duplicates keeping first-seen order. Rejects anything but positive ints."""
    normalized: dict[int, None] = {}
    for person_id in person_ids:
        if isinstance(person_id, bool) or not isinstance(person_id, int):
            raise ValidationError(f"Person id must be an integer, got {person_id!r}")
        if person_id <= 0:
            raise ValidationError(f"Person id must be positive, got {person_id}")
        normalized.setdefault(person_id, None)
    return list(normalized)


def merge_credits(
    credits_by_person: Iterable[tuple[int, list[PersonCredit]]],
) -> list[DiscoveredMovie]:
    """
    Fold every person's credit list into one movie per id, accumulating the
    matched person ids and the character each of them plays.
    Movies keep the order in which they were first seen.
    """
    movies: dict[int, DiscoveredMovie] = {}
    for person_id, credits in credits_by_person:
        for credit in credits:
            movie = movies.get(credit.movie_id)
            if movie is None:
                movie = DiscoveredMovie(
                    id=credit.movie_id,
                    title=credit.title,
                    poster_url=credit.poster_url,
                    release_date=credit.release_date,
                    vote_average=credit.vote_average,
                    vote_count=credit.vote_count,
                    matched_person_ids={person_id},
                )
                movies[credit.movie_id] = movie
            else:
                movie.matched_person_ids.add(person_id)

            existing = movie.character_by_person.get(person_id)
            if existing is None:
                movie.character_by_person[person_id] = credit.character
            elif credit.character and credit.character not in existing.split(" / "):
                # Same person credited twice in one movie.
                joined = f"{existing} / {credit.character}" if existing else credit.character
                movie.character_by_person[person_id] = joined
    return list(movies.values())


def rank_movies(movies: list[DiscoveredMovie]) -> list[DiscoveredMovie]:
    """Most matched persons first, then newest release. Both sorts are stable."""
    by_release = sorted(movies, key=lambda movie: movie.release_date or "", reverse=True)
    return sorted(by_release, key=lambda movie: movie.match_count, reverse=True)


class DiscoveryEngine:
    def __init__(
        self,
        provider: TMDBClient,
        *,
        popularity_floor: int = DEFAULT_POPULARITY_FLOOR,
        detail_limit: int = DEFAULT_DETAIL_LIMIT,
        max_in_flight: Optional[int] = None,
    ) -> None:
        self._provider = provider
        self.popularity_floor = popularity_floor
        self.detail_limit = detail_limit
        self.max_in_flight = max_in_flight

    async def discover(
        self, person_ids: Iterable[int], *, fallback_to_unfiltered: bool = False
    ) -> list[DiscoveredMovie]:
        """
        Movies shared by the given people, ranked by how many of them appear.

        Movies with a vote count at or below the popularity floor are dropped.
        When that leaves nothing and fallback_to_unfiltered is set, the unfiltered
        ranking is returned instead. A failed credit fetch fails the whole call.
        """
        ids = normalize_person_ids(person_ids)
        if not ids:
            return []

        credit_lists = await gather_limited(
            self._provider.get_person_credits, ids, self.max_in_flight
        )
        movies = merge_credits(zip(ids, credit_lists))
        popular = [movie for movie in movies if movie.vote_count > self.popularity_floor]
        logger.info(
            "Discovered %d movies for %d people (%d above popularity floor)",
            len(movies),
            len(ids),
            len(popular),
        )
        if not popular and fallback_to_unfiltered:
            popular = movies
        return rank_movies(popular)

    async def discover_with_details(
        self, person_ids: Iterable[int], *, fallback_to_unfiltered: bool = False
    ) -> list[DiscoveredMovie]:
        """discover(), with full detail loaded for the first detail_limit movies only."""
        movies = await self.discover(person_ids, fallback_to_unfiltered=fallback_to_unfiltered)
        head = movies[: self.detail_limit]
        loaded = await gather_limited(self.load_detail, head, self.max_in_flight)
        return loaded + movies[self.detail_limit :]

    async def get_movie_detail(self, movie_id: int) -> MovieDetail:
        return await self._provider.get_movie_detail(movie_id)

    async def load_detail(self, movie: DiscoveredMovie) -> DiscoveredMovie:
        if movie.detail_loaded:
            return movie
        detail = await self.get_movie_detail(movie.id)
        return movie.model_copy(
            update={
                "overview": detail.overview,
                "runtime": detail.runtime,
                "backdrop_url": detail.backdrop_url,
                "poster_url": movie.poster_url or detail.poster_url,
                "cast": detail.cast,
                "detail_loaded": True,
            },
            deep=True,
        )
