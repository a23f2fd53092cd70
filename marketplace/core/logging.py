import logging
import logging.config
from pathlib import Path
from marketplace.core.config import settings


def _build_logging_config(log_dir: str, level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout"
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": level,
                "formatter": "default",
                "filename": f"{log_dir}/app.log",
                "maxBytes": 10485760,
                "backupCount": 5
            },
            "error_file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": "ERROR",
                "formatter": "default",
                "filename": f"{log_dir}/error.log",
                "maxBytes": 10485760,
                "backupCount": 5
            }
        },
        "root": {
            "level": level,
            "handlers": ["console", "file", "error_file"]
        },
        "loggers": {
            "marketplace": {
                "level": level,
                "handlers": ["console", "file", "error_file"],
                "propagate": False
            },
            "uvicorn.access": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            }
        }
    }


def configure_logging(log_dir: str = None, level: str = None):
    log_dir = log_dir or settings.LOG_DIR
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(_build_logging_config(log_dir, (level or settings.LOG_LEVEL).upper()))
