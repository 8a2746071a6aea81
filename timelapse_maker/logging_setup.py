"""Logging configuration for the timelapse maker."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "timelapse_maker"
LOG_FORMAT = "%(asctime)s.%(msecs)03d - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _open_log_file(log_file: Union[str, Path]) -> tuple[Optional[logging.Handler], Optional[str]]:
    """Open ``log_file``, falling back to its bare name in the working directory."""
    log_path = Path(log_file).expanduser()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, encoding="utf-8"), None
    except OSError as exc:
        fallback_path = Path.cwd() / log_path.name
        try:
            handler = logging.FileHandler(fallback_path, encoding="utf-8")
        except OSError as fallback_exc:
            return None, f"Logging to console only; cannot open '{log_path}' or '{fallback_path}': {fallback_exc}"
        return handler, f"Cannot open log file '{log_path}' ({exc}); writing to '{fallback_path}'"


def configure_logging(
    log_file: Union[str, Path, None] = None,
    *,
    level: int = logging.INFO,
) -> logging.Logger:
    """Send records to the console and, when ``log_file`` is set, to that file."""
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    warning = None
    if log_file:
        file_handler, warning = _open_log_file(log_file)
        if file_handler is not None:
            handlers.insert(0, file_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers, force=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    if warning:
        logger.warning(warning)
    return logger


__all__ = ["configure_logging"]
