"""Logging configuration for the command line."""

import logging
import logging.config


VERBOSITY_LEVELS = {0: "WARNING", 1: "INFO"}


def level_for_verbosity(verbosity: int, default: str = "WARNING") -> str:
    """Map a -v count to a level name; two or more means DEBUG."""
    if verbosity <= 0:
        return default.upper()
    return VERBOSITY_LEVELS.get(verbosity, "DEBUG")


def build_logging_config(level: str) -> dict:
    """dictConfig schema routing the package's loggers to a rich console handler."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "rich": {"format": "%(name)s - %(message)s", "datefmt": "[%X]"},
        },
        "handlers": {
            "console": {
                "class": "rich.logging.RichHandler",
                "level": level,
                "formatter": "rich",
                "rich_tracebacks": True,
                "show_path": False,
            },
        },
        "loggers": {
            "incident_stats": {
                "level": level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def configure_logging(verbosity: int = 0, default_level: str = "WARNING") -> str:
    """Install the console handler and return the effective level name."""
    level = level_for_verbosity(verbosity, default_level)
    logging.config.dictConfig(build_logging_config(level))
    return level
