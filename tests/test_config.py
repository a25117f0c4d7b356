from pathlib import Path

import pytest

from vedicpanchang.config import DEFAULT_LATITUDE, load_settings


def test_defaults(monkeypatch):
    for name in (
        "PANCHANG_DATABASE_URL",
        "PANCHANG_EPHEMERIS_DIR",
        "PANCHANG_EPHEMERIS_TIMEOUT",
        "PANCHANG_LOG_LEVEL",
        "PANCHANG_DEFAULT_LATITUDE",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()
    assert settings.database_url == "sqlite:///panchang.db"
    assert settings.ephemeris_dir.name == "resources"
    assert settings.ephemeris_timeout == 60.0
    assert settings.log_level == "INFO"
    assert settings.default_latitude == DEFAULT_LATITUDE


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("PANCHANG_DATABASE_URL", "postgresql://localhost/panchang")
    monkeypatch.setenv("PANCHANG_EPHEMERIS_DIR", str(tmp_path))
    monkeypatch.setenv("PANCHANG_EPHEMERIS_TIMEOUT", "5")
    monkeypatch.setenv("PANCHANG_LOG_LEVEL", "debug")

    settings = load_settings()
    assert settings.database_url == "postgresql://localhost/panchang"
    assert settings.ephemeris_dir == Path(tmp_path)
    assert settings.ephemeris_timeout == 5.0
    assert settings.log_level == "DEBUG"


def test_bad_number(monkeypatch):
    monkeypatch.setenv("PANCHANG_EPHEMERIS_TIMEOUT", "soon")
    with pytest.raises(ValueError, match="PANCHANG_EPHEMERIS_TIMEOUT"):
        load_settings()
