import pytest
from pydantic import ValidationError

from app.core.config import Settings


@pytest.mark.parametrize("missing", ["DATABASE_URL", "JWT_SECRET"])
def test_settings_require_database_url_and_jwt_secret(monkeypatch, missing):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    monkeypatch.delenv(missing)

    with pytest.raises(ValidationError) as err:
        Settings()
    assert missing in str(err.value)


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql+psycopg://ratings@db/ratings")
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    monkeypatch.setenv("RATING_FLOOR", "150")

    cfg = Settings()
    assert cfg.JWT_SECRET == "s3cret"
    assert cfg.RATING_FLOOR == 150
    assert cfg.RATING_DEFAULT == 1200
