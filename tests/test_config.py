import pytest
from pydantic import ValidationError

from polar4_api.config import Settings


def test_defaults():
    settings = Settings.from_env({})
    assert settings.csv_path == "data/postcodes.csv"
    assert settings.port == 3000
    assert settings.allowed_origins == ["*"]
    assert settings.rate_limit == 100
    assert settings.graceful_shutdown_seconds == 10
    assert not settings.is_production


def test_from_env():
    settings = Settings.from_env({
        "CSV_PATH": "/srv/polar4.csv",
        "PORT": "8080",
        "ENVIRONMENT": "production",
        "ALLOWED_ORIGINS": "https://a.example, https://b.example",
        "RATE_LIMIT": "20",
        "DATABASE_URL": "",
    })
    assert settings.csv_path == "/srv/polar4.csv"
    assert settings.port == 8080
    assert settings.is_production
    assert settings.allowed_origins == ["https://a.example", "https://b.example"]
    assert settings.rate_limit == 20
    assert settings.database_url is None


def test_invalid_port():
    with pytest.raises(ValidationError):
        Settings.from_env({"PORT": "http"})
