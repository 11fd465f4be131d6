"""Logging setup: JSON lines in production, plain text elsewhere."""
import logging
import sys
from pythonjsonlogger import jsonlogger
from app.core.config import settings

# Loggers that are too chatty at INFO for import runs.
_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "multipart")


def setup_logging() -> None:
    """Configure the root logger from APP_ENV and LOG_LEVEL."""
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    if settings.APP_ENV == "production":
        handler.setFormatter(
            jsonlogger.JsonFormatter(
                "%(asctime)s %(name)s %(levelname)s %(message)s",
                rename_fields={"asctime": "timestamp", "levelname": "level"},
                static_fields={"service": "atol-api"},
            )
        )
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))

    logging.root.handlers = [handler]
    logging.root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
