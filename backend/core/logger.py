"""
Centralised logging configuration.

Levels, handlers and formats live in etc/logging.conf.  This module fills in
the log-file path and hands the result to the standard-library fileConfig
loader, once, at first import.

Import the ready-made logger anywhere:
    from core.logger import logger
"""

import configparser
import logging
import logging.config
from pathlib import Path

# backend/core/logger.py  →  ../../  →  repo root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_LOG_DIR = _PROJECT_ROOT / "log"
_LOG_FILE = _LOG_DIR / "app.log"
_LOGGING_CONF = _PROJECT_ROOT / "etc" / "logging.conf"


def _configure() -> None:
    _LOG_DIR.mkdir(exist_ok=True)

    # logging.conf carries %(log_file)s as a placeholder for the absolute path
    raw = _LOGGING_CONF.read_text(encoding="utf-8")
    raw = raw.replace("%(log_file)s", str(_LOG_FILE))

    # RawConfigParser: the format strings contain %(asctime)s and friends,
    # which an interpolating parser would choke on.
    parser = configparser.RawConfigParser()
    parser.read_string(raw)
    logging.config.fileConfig(parser, disable_existing_loggers=False)


_configure()

logger = logging.getLogger("cherry")
