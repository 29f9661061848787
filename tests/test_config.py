"""
Tests for configuration loading in `labguard/config.py`.

Covers:
- Defaults when no environment variables are set
- Log level coercion to the expected Literal
- Boolean and origin list parsing
- Export locale validation
- get_config cache behavior
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from pydantic import ValidationError

from labguard.config import (
    ExportConfig,
    _level_to_literal,
    get_config,
    load_config_from_env,
)

ENV_VARS = (
    "SEED_DEFAULT_ANALYTES", "DATABASE_URL", "DATABASE_ECHO",
    "API_HOST", "API_PORT", "API_ALLOWED_ORIGINS", "LOG_LEVEL",
    "EXPORT_CSV_SEPARATOR", "EXPORT_DECIMAL", "EXPORT_DATE_FORMAT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start every test from an empty environment and a cold cache."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def test_defaults() -> None:
    config = load_config_from_env()

    assert config.seed_default_analytes is True
    assert config.database.url == "sqlite:///./labguard_qc.db"
    assert config.api.port == 8000
    assert config.api.allowed_origins == ["*"]
    assert config.logging.level == "INFO"
    assert (config.export.csv_separator, config.export.decimal) == (";", ",")
    assert config.export.date_format == "%d/%m/%Y"


@pytest.mark.parametrize("raw,expected", [
    ("debug", "DEBUG"),
    (" warning ", "WARNING"),
    ("verbose", "INFO"),
])
def test_level_to_literal(raw: str, expected: str) -> None:
    assert _level_to_literal(raw) == expected


def test_overrides_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("API_PORT", "9100")
    monkeypatch.setenv("API_ALLOWED_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("SEED_DEFAULT_ANALYTES", "no")

    config = load_config_from_env()

    assert config.database.url == "sqlite://"
    assert config.api.port == 9100
    assert config.api.allowed_origins == ["http://a.test", "http://b.test"]
    assert config.seed_default_analytes is False


def test_invalid_port_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("API_PORT", "70000")

    with pytest.raises(ValidationError):
        load_config_from_env()


def test_decimal_must_differ_from_separator() -> None:
    with pytest.raises(ValidationError):
        ExportConfig(csv_separator=",", decimal=",")

    assert ExportConfig(csv_separator=",", decimal=".").decimal == "."


def test_get_config_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_config()
    monkeypatch.setenv("API_PORT", "9200")

    assert get_config() is first

    get_config.cache_clear()
    assert get_config().api.port == 9200
