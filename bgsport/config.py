from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "BG_SPORT_DATA_DIR"
ENV_LOG_LEVEL = "BG_SPORT_LOG_LEVEL"

DEFAULT_SIZE_UPCHARGE = 20000
DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "LAK"
    size_upcharge: int = DEFAULT_SIZE_UPCHARGE
    page_size: int = DEFAULT_PAGE_SIZE
    log_level: str = "INFO"

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


def _default_data_dir() -> Path:
    return Path.home() / ".bg_sport"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = data_dir / CONFIG_FILE_NAME
    payload = {"data_dir": str(data_dir)}
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Also remember it in the default folder so the next start picks it up.
    default_dir = _default_data_dir()
    if default_dir != data_dir:
        default_dir.mkdir(parents=True, exist_ok=True)
        (default_dir / CONFIG_FILE_NAME).write_text(json.dumps(payload, indent=2), encoding="utf-8")

    st.session_state["bg_sport_data_dir"] = str(data_dir)


def resolve_settings(session: dict | None = None, environ: dict | None = None) -> Settings:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    session = session if session is not None else {}
    environ = environ if environ is not None else dict(os.environ)

    if session.get("bg_sport_data_dir"):
        data_dir = Path(session["bg_sport_data_dir"]).expanduser().resolve()
    elif environ.get(ENV_DATA_DIR):
        data_dir = Path(environ[ENV_DATA_DIR]).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    data_dir.mkdir(parents=True, exist_ok=True)
    level = str(environ.get(ENV_LOG_LEVEL, "INFO")).strip().upper() or "INFO"
    return Settings(data_dir=data_dir, db_path=data_dir / "bg_sport.db", log_level=level)


@st.cache_resource
def get_settings() -> Settings:
    return resolve_settings(session=dict(st.session_state))
