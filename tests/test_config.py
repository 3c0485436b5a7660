import pytest
from pydantic import ValidationError


def test_valid_config(monkeypatch):
    monkeypatch.setenv("TMDB_API_KEY", "abc123")
    monkeypatch.delenv("POPULARITY_FLOOR", raising=False)
    monkeypatch.delenv("HYDRATE_MAX_IN_FLIGHT", raising=False)
    monkeypatch.delenv("DISCOVERY_MAX_IN_FLIGHT", raising=False)

    from importlib import reload
    import config

    reload(config)

    assert config.settings.tmdb_api_key == "abc123"
    assert config.settings.tmdb_language == "en-US"
    assert config.settings.popularity_floor == 20
    assert config.settings.detail_limit == 20
    assert config.settings.hydrate_max_in_flight == 1
    assert config.settings.discovery_max_in_flight is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("TMDB_API_KEY", "abc123")
    monkeypatch.setenv("POPULARITY_FLOOR", "100")
    monkeypatch.setenv("HYDRATE_MAX_IN_FLIGHT", "4")

    from config import Settings

    settings = Settings(_env_file=None)
    assert settings.popularity_floor == 100
    assert settings.hydrate_max_in_flight == 4


def test_missing_required_vars(monkeypatch):
    monkeypatch.delenv("TMDB_API_KEY", raising=False)

    from config import Settings

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
