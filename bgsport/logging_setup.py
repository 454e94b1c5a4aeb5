"""
Logging setup for the order desk.

Every module logs through ``logging.getLogger(__name__)``; this module only
attaches handlers to the ``bgsport`` logger once per process:

- a file handler writing to ``<data_dir>/logs/bg_sport.log``
- a stderr handler mirroring WARNING and above
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

__all__ = ["configure_logging", "LOGGER_NAME"]

LOGGER_NAME = "bgsport"
LOG_FILE_NAME = "bg_sport.log"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(log_dir: Optional[Path] = None, level: str | int = "INFO") -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level if isinstance(level, int) else getattr(logging, str(level).upper(), logging.INFO))
    logger.propagate = False

    if logger.handlers:
        return logger

    formatter = logging.Formatter(_FORMAT)

    if log_dir is not None:
        try:
            Path(log_dir).mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(str(Path(log_dir) / LOG_FILE_NAME), mode="a", encoding="utf-8", delay=True)
        except OSError:
            fh = None
        if fh is not None:
            fh.setFormatter(formatter)
            logger.addHandler(fh)

    sh = logging.StreamHandler()
    sh.setLevel(logging.WARNING)
    sh.setFormatter(formatter)
    logger.addHandler(sh)
    return logger
