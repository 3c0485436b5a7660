import os
from pathlib import Path

import pytest

os.environ.setdefault("TMDB_API_KEY", "test-key")

from errors import NotFound  # noqa: E402
from models import MovieTitle  # noqa: E402


class FakeProvider:
    """Stands in for TMDBClient. Records every title lookup."""

    def __init__(self, titles: dict[int, MovieTitle] | None = None, credits=None) -> None:
        self.titles = titles or {}
        self.credits = credits or {}
        self.title_lookups: list[int] = []
        self.credit_lookups: list[int] = []

    async def get_movie_title(self, movie_id: int) -> MovieTitle:
        self.title_lookups.append(movie_id)
        if movie_id not in self.titles:
            raise NotFound(f"No movie {movie_id}", status_code=404)
        return self.titles[movie_id]

    async def get_person_credits(self, person_id: int):
        self.credit_lookups.append(person_id)
        if person_id not in self.credits:
            raise NotFound(f"No person {person_id}", status_code=404)
        return self.credits[person_id]


@pytest.fixture
def tmp_db(tmp_path) -> Path:
    """Returns path to a temporary SQLite database file."""
    return tmp_path / "test.db"


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(
        titles={
            550: MovieTitle(id=550, title="Fight Club", year=1999),
            27205: MovieTitle(id=27205, title="Inception", year=2010),
        }
    )
