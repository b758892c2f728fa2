from __future__ import annotations

from safetrail.settings import Settings


def test_env_aliases(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/trail")
    monkeypatch.setenv("PLACE_SCORING_STRATEGY", " Weighted ")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = Settings(_env_file=None)

    assert config.postgres_url == "postgresql://u:p@db:5432/trail"
    assert config.place_scoring_strategy == "weighted"
    assert config.log_level == "DEBUG"


def test_defaults(monkeypatch) -> None:
    for name in ("POSTGRES_URL", "DATABASE_URL", "PLACE_SCORING_STRATEGY", "ENV", "APP_ENV", "ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)

    config = Settings(_env_file=None)

    assert config.place_scoring_strategy == "simple"
    assert config.cache_ttl_seconds == 300
    assert config.is_prod()
