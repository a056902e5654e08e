from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict, Iterable, Optional, Union

from settings import get_settings

LINE_FORMAT = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# attributes passed through ``extra=`` by the session, store and acceptor
CONTEXT_KEYS = (
    "session_id",
    "peer",
    "stage",
    "reason",
    "user_id",
    "store_path",
    "active_sessions",
)

_configured = False


class ContextualFormatter(logging.Formatter):
    """Formatter that suffixes each line with the session context it carries.

    ``log.info("Session started", extra={"session_id": "3"})`` renders as
    ``... | Session started | session_id=3``. Keys that are absent or ``None``
    are left out.
    """

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        style: str = "%",
        extra_keys: Optional[Iterable[str]] = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self.context_keys = tuple(CONTEXT_KEYS if extra_keys is None else extra_keys)

    def context_of(self, record: logging.LogRecord) -> str:
        pairs = []
        for key in self.context_keys:
            value = record.__dict__.get(key)
            if value is not None:
                pairs.append(f"{key}={value}")
        return " ".join(pairs)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = self.context_of(record)
        return f"{line} | {context}" if context else line


def _dict_config(level: Union[str, int]) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "session": {
                "()": ContextualFormatter,
                "fmt": LINE_FORMAT,
                "datefmt": DATE_FORMAT,
            }
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "session",
            }
        },
        "root": {"handlers": ["stderr"], "level": level},
    }


def configure_logging(level: Union[str, int, None] = None, force: bool = False) -> None:
    """Install the stderr handler once per process.

    ``force`` re-applies the configuration, which is how ``collector serve
    --log-level`` overrides the level taken from ``LOG_LEVEL``.
    """
    global _configured
    if _configured and not force:
        return
    dictConfig(_dict_config(level if level is not None else get_settings().log_level))
    _configured = True
