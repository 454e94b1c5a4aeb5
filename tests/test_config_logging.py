from __future__ import annotations

import json
import logging

import pytest

from bgsport import config
from bgsport.config import ENV_DATA_DIR, ENV_LOG_LEVEL, resolve_settings
from bgsport.logging_setup import LOGGER_NAME, configure_logging


@pytest.fixture
def home(tmp_path, monkeypatch):
    default_dir = tmp_path / "home" / ".bg_sport"
    monkeypatch.setattr(config, "_default_data_dir", lambda: default_dir)
    return default_dir


def test_session_wins_over_environment(tmp_path, home):
    s = resolve_settings(
        session={"bg_sport_data_dir": str(tmp_path / "from_session")},
        environ={ENV_DATA_DIR: str(tmp_path / "from_env")},
    )
    assert s.data_dir == (tmp_path / "from_session").resolve()
    assert s.db_path.name == "bg_sport.db"
    assert s.data_dir.is_dir()


def test_environment_then_persisted_then_default(tmp_path, home):
    s = resolve_settings(session={}, environ={ENV_DATA_DIR: str(tmp_path / "from_env")})
    assert s.data_dir == (tmp_path / "from_env").resolve()

    assert resolve_settings(session={}, environ={}).data_dir == home.resolve()

    (home / config.CONFIG_FILE_NAME).write_text(json.dumps({"data_dir": str(tmp_path / "persisted")}), encoding="utf-8")
    assert resolve_settings(session={}, environ={}).data_dir == (tmp_path / "persisted").resolve()


def test_broken_settings_file_is_ignored(home):
    home.mkdir(parents=True)
    (home / config.CONFIG_FILE_NAME).write_text("{not json", encoding="utf-8")
    assert resolve_settings(session={}, environ={}).data_dir == home.resolve()


def test_defaults_and_log_level(tmp_path, home):
    s = resolve_settings(session={}, environ={ENV_LOG_LEVEL: "debug"})
    assert s.log_level == "DEBUG"
    assert s.currency == "LAK"
    assert s.size_upcharge == 20000
    assert s.page_size == 20
    assert s.log_dir == s.data_dir / "logs"


def test_configure_logging_is_idempotent(tmp_path):
    logger = logging.getLogger(LOGGER_NAME)
    saved = list(logger.handlers)
    for h in saved:
        logger.removeHandler(h)
    try:
        configure_logging(tmp_path / "logs", "DEBUG")
        configure_logging(tmp_path / "logs", "DEBUG")
        assert len(logger.handlers) == 2
        assert logger.level == logging.DEBUG

        logging.getLogger("bgsport.services.orders").info("hello from orders")
        for h in logger.handlers:
            h.flush()
        assert "hello from orders" in (tmp_path / "logs" / "bg_sport.log").read_text(encoding="utf-8")
    finally:
        for h in list(logger.handlers):
            h.close()
            logger.removeHandler(h)
        for h in saved:
            logger.addHandler(h)
