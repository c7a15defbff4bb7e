"""
Logging setup for RegWatch.

Modules log through children of the ``regwatch`` logger. setup_logging()
attaches a stderr handler and optionally a rotating file handler to that
parent, leaving the root logger of the host application alone.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from regwatch.config.settings import LoggingSettings


ROOT_LOGGER_NAME = "regwatch"

_configured = False


def _build_handlers(settings: "LoggingSettings") -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if settings.log_to_console:
        # stdout belongs to CLI output
        handlers.append(logging.StreamHandler(sys.stderr))
    if settings.file_path is not None:
        settings.file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                settings.file_path,
                maxBytes=settings.max_file_size_mb * 1024 * 1024,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        )
    return handlers


def setup_logging(settings: "LoggingSettings | None" = None) -> logging.Logger:
    """
    Attach handlers to the ``regwatch`` logger.

    Only the first call has an effect until reset_logging() runs, so the
    CLI and library callers can both call it.
    """
    global _configured

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    if _configured:
        return app_logger

    if settings is None:
        from regwatch.config.settings import LoggingSettings

        settings = LoggingSettings()

    level = logging.getLevelName(settings.level)
    formatter = logging.Formatter(settings.format, datefmt=settings.date_format)
    app_logger.handlers.clear()
    for handler in _build_handlers(settings):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        app_logger.addHandler(handler)

    app_logger.setLevel(level)
    app_logger.propagate = False
    _configured = True
    return app_logger


def reset_logging() -> None:
    """Close and detach the handlers installed by setup_logging()."""
    global _configured

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
    app_logger.propagate = True
    _configured = False


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Logger under the ``regwatch`` namespace.

    Names from inside the package (``__name__``) are used as they are;
    anything else is nested below ``regwatch``.
    """
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Appends ``[key=value]`` pairs, e.g. a job id and URL, to every message."""

    def process(self, msg, kwargs):
        if not self.extra:
            return msg, kwargs
        tags = " ".join(f"[{key}={value}]" for key, value in self.extra.items())
        return f"{msg} {tags}", kwargs


def get_logger_with_context(name: str | None = None, **context: str) -> LoggerAdapter:
    """
    Logger that tags each message with ``context``.

    Example:
        >>> log = get_logger_with_context(__name__, job_id=job.id, url=job.url)
        >>> log.info("Job started")  # Job started [job_id=...] [url=...]
    """
    return LoggerAdapter(get_logger(name), context)
