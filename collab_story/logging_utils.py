"""Shared logging utilities.

Provides a SafeStreamHandler that gracefully handles broken pipes and closed
file descriptors (e.g. when uvicorn reloads while requests are in flight),
and configure_logging() used by the API and the CLI.
"""
import logging
import logging.handlers
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that ignores broken pipe and closed file errors.

    When running behind a reloader, stdout can be closed underneath us.
    Standard StreamHandler raises BrokenPipeError or ValueError in this case.
    This handler silently ignores these errors while still logging to file handlers.
    """

    def emit(self, record):
        try:
            super().emit(record)
        except BrokenPipeError:
            pass  # stdout closed
        except ValueError:
            pass  # I/O operation on closed file


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
):
    """Configure root logger with a SafeStreamHandler and optional rotating file.

    Safe to call multiple times (guards against duplicate handlers).

    Args:
        level: Logging level to set (default: INFO)
        log_file: Path of a rotating log file, or None for stream-only logging
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger()
    formatter = logging.Formatter(LOG_FORMAT)

    if not any(isinstance(h, SafeStreamHandler) for h in logger.handlers):
        handler = SafeStreamHandler()  # Defaults to sys.stderr
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if log_file and not any(
        isinstance(h, logging.handlers.RotatingFileHandler)
        and getattr(h, "baseFilename", None) == log_file
        for h in logger.handlers
    ):
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=3,
            )
        except OSError as e:
            logger.warning(f"Cannot open log file {log_file}: {e}")
        else:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    for handler in logger.handlers:
        if isinstance(handler, (SafeStreamHandler, logging.handlers.RotatingFileHandler)):
            handler.setLevel(level)
    logger.setLevel(level)

    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
