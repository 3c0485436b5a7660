from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    tmdb_api_key: str
    tmdb_language: str = "en-US"
    tmdb_timeout: float = 30.0
    db_path: str = "data/moviegpt.db"
    popularity_floor: int = 20
    detail_limit: int = 20
    hydrate_max_in_flight: Optional[int] = 1
    discovery_max_in_flight: Optional[int] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()
