"""Process logging, configured from ``SYLLABUS_*`` environment flags.

Application records go to stderr with the default format. Telemetry lines
(``syllabus.telemetry``) get their own handler and a bare format, since the
message already carries a JSON document, and do not propagate to the root.

Flags:

- ``SYLLABUS_LOG_LEVEL``: root level, ``INFO`` by default.
- ``SYLLABUS_SCHEDULER_LOG_LEVEL``: level for the job scheduler only.
- ``SYLLABUS_TELEMETRY_LOGGING``: ``0`` mutes telemetry lines; listeners still fire.
- ``SYLLABUS_DEBUG_SQL`` / ``SYLLABUS_DEBUG_HTTP``: ``1`` turns on engine/access chatter.
"""

import logging
import os
from logging.config import dictConfig
from typing import Any, Dict, Mapping, Optional

from .telemetry import TELEMETRY_LOGGER

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
TELEMETRY_LOG_FORMAT = "%(asctime)s %(message)s"
SCHEDULER_LOGGER = "syllabus_tracker.scheduler"


def _flag(env: Mapping[str, str], name: str, default: str = "0") -> bool:
    return env.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


def build_logging_config(env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Translate environment flags into a ``dictConfig`` document."""
    env = os.environ if env is None else env
    level = env.get("SYLLABUS_LOG_LEVEL", "INFO").upper()
    telemetry_level = "INFO" if _flag(env, "SYLLABUS_TELEMETRY_LOGGING", "1") else "WARNING"

    loggers: Dict[str, Dict[str, Any]] = {
        TELEMETRY_LOGGER: {
            "handlers": ["telemetry"],
            "level": telemetry_level,
            "propagate": False,
        },
    }
    scheduler_level = env.get("SYLLABUS_SCHEDULER_LOG_LEVEL")
    if scheduler_level:
        loggers[SCHEDULER_LOGGER] = {"level": scheduler_level.upper()}
    if _flag(env, "SYLLABUS_DEBUG_SQL"):
        loggers["sqlalchemy.engine"] = {"level": "INFO"}
    if _flag(env, "SYLLABUS_DEBUG_HTTP"):
        loggers["uvicorn.access"] = {"level": "DEBUG"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": DEFAULT_LOG_FORMAT},
            "telemetry": {"format": TELEMETRY_LOG_FORMAT},
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
            "telemetry": {
                "class": "logging.StreamHandler",
                "formatter": "telemetry",
            },
        },
        "loggers": loggers,
        "root": {
            "handlers": ["default"],
            "level": level,
        },
    }


def configure_logging(env: Optional[Mapping[str, str]] = None) -> None:
    dictConfig(build_logging_config(env))
    logging.getLogger(__name__).debug("Logging configured")


__all__ = ["DEFAULT_LOG_FORMAT", "TELEMETRY_LOG_FORMAT", "build_logging_config", "configure_logging"]
