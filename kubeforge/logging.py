"""Logging configuration for the kubeforge package."""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .utils import redact_text

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class RedactingFilter(logging.Filter):
    """Mask join tokens and certificate keys before a record is written."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_text(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def add_file_handler(settings, logger_name: str = "kubeforge") -> logging.Handler:
    """
    Attach a rotating, redacting file handler described by a LoggingConfig.

    Args:
        settings: LoggingConfig with file, max_size_mb and backup_count set
        logger_name: Logger that receives the handler

    Returns:
        The handler that was added
    """
    log_file = Path(settings.file).expanduser().absolute()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=log_file,
        maxBytes=settings.max_size_mb * 1024 * 1024,
        backupCount=settings.backup_count
    )
    handler.setFormatter(logging.Formatter(settings.format or DEFAULT_FORMAT))
    handler.addFilter(RedactingFilter())
    logging.getLogger(logger_name).addHandler(handler)
    return handler
