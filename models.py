from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WatchedEntry(BaseModel):
    """One watched movie as stored under its id. title/year are cached from TMDB."""

    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    year: Optional[int] = None
    watched_on: str = Field(alias="watchedOn")  # ISO 8601 date or datetime

    @field_validator("watched_on")
    @classmethod
    def _check_iso(cls, value: str) -> str:
        datetime.fromisoformat(value)
        return value

    @property
    def is_hydrated(self) -> bool:
        return bool(self.title) and self.year is not None


class Watched(WatchedEntry):
    id: int


class CastMember(BaseModel):
    person_id: int
    character_name: str = ""


class MovieTitle(BaseModel):
    id: int
    title: str
    year: Optional[int] = None


class MovieSummary(BaseModel):
    id: int
    title: str
    poster_url: Optional[str] = None
    release_date: str = ""
    vote_average: float = 0.0
    vote_count: int = 0


class PersonCredit(BaseModel):
    movie_id: int
    title: str
    character: str = ""
    poster_url: Optional[str] = None
    release_date: str = ""
    vote_average: float = 0.0
    vote_count: int = 0


class MovieCastMember(BaseModel):
    person_id: int
    name: str
    character: str = ""
    photo_url: Optional[str] = None


class MovieDetail(BaseModel):
    id: int
    title: str
    year: Optional[int] = None
    overview: str = ""
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    rating: float = 0.0
    runtime: Optional[int] = None
    release_date: str = ""
    cast: list[MovieCastMember] = Field(default_factory=list)


class DiscoveredMovie(BaseModel):
    id: int
    title: str
    poster_url: Optional[str] = None
    release_date: str = ""
    vote_average: float = 0.0
    vote_count: int = 0
    matched_person_ids: set[int]
    character_by_person: dict[int, str] = Field(default_factory=dict)
    detail_loaded: bool = False
    # Filled once the full detail is loaded.
    overview: Optional[str] = None
    runtime: Optional[int] = None
    backdrop_url: Optional[str] = None
    cast: list[MovieCastMember] = Field(default_factory=list)

    @field_validator("matched_person_ids")
    @classmethod
    def _non_empty(cls, value: set[int]) -> set[int]:
        if not value:
            raise ValueError("matched_person_ids must not be empty")
        return value

    @property
    def match_count(self) -> int:
        return len(self.matched_person_ids)

    @property
    def cast_members(self) -> list[CastMember]:
        return [
            CastMember(person_id=person_id, character_name=character)
            for person_id, character in self.character_by_person.items()
        ]
