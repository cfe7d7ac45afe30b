import logging

import pytest

from weblimo.body import BodyOptions
from weblimo.config import Settings, configure_logging, load_settings, validate_settings


def test_load_settings_defaults() -> None:
    settings = load_settings()
    assert settings.environment == "dev"
    assert settings.debug is False
    assert settings.log_level == "INFO"
    assert settings.body_options() == BodyOptions()


def test_load_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("WEBLIMO_ENV", "PROD")
    monkeypatch.setenv("WEBLIMO_LOG_LEVEL", "warning")
    monkeypatch.setenv("WEBLIMO_BODY_LIMIT_JSON", "100kb")
    monkeypatch.setenv("WEBLIMO_MAX_FILE_SIZE", "1mb")
    settings = load_settings()
    assert settings.environment == "prod"
    assert settings.log_level == "WARNING"
    options = settings.body_options()
    assert options.limit_for("json") == 102400
    assert options.limit_for("text") is None
    assert options.max_file_size == "1mb"


def test_invalid_settings_are_rejected(monkeypatch) -> None:
    with pytest.raises(ValueError):
        validate_settings(Settings(environment="staging"))
    with pytest.raises(ValueError):
        validate_settings(Settings(environment="prod", debug=True))
    with pytest.raises(ValueError):
        validate_settings(Settings(log_level="LOUD"))
    with pytest.raises(ValueError):
        validate_settings(Settings(body_limits={"json": "huge"}))
    monkeypatch.setenv("WEBLIMO_BODY_LIMIT_RAW", "-1")
    with pytest.raises(ValueError):
        load_settings()


def test_configure_logging() -> None:
    logger = logging.getLogger("weblimo")
    previous = logger.level
    try:
        configure_logging(Settings(debug=True))
        assert logger.level == logging.DEBUG
        configure_logging(Settings(log_level="ERROR"))
        assert logger.level == logging.ERROR
    finally:
        logger.setLevel(previous)
