from __future__ import annotations

import logging.config


def setup_logging(level: str = "INFO", fmt: str = "plain") -> None:
    """
    Configure the root logger.

    fmt="plain" -> "LEVEL [logger]: message"
    fmt="json"  -> one JSON object per line (python-json-logger)
    """
    use_json = fmt.lower() == "json"

    formatters = {
        "default": {
            "format": "%(asctime)s %(levelname)s [%(name)s]: %(message)s",
        },
        "json": {
            "()": "pythonjsonlogger.json.JsonFormatter",
            "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
        },
    }

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json" if use_json else "default",
            "stream": "ext://sys.stdout",
        }
    }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "handlers": handlers,
            "root": {"handlers": ["console"], "level": level.upper()},
        }
    )
